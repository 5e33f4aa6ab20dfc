"""Registry of source handlers chosen by URL scheme."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

Handler = Callable[[str], Any]


class UnsupportedSchemeError(ValueError):
    """No handler is registered for the scheme of a source URL."""


class HandlerRegistry:
    """Maps URL schemes to functions that open producers."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._lock = threading.Lock()

    def register(self, scheme: str, handler: Handler) -> None:
        """Register ``handler`` for URLs starting with ``scheme:``."""
        with self._lock:
            self._handlers[scheme] = handler

    def get_handler(self, url: str) -> Handler | None:
        """Return the handler for the scheme of ``url``, or None."""
        i = url.find(":")
        if i <= 0:
            return None
        with self._lock:
            return self._handlers.get(url[:i])

    def has_producer(self, url: str) -> bool:
        """Return True if some handler accepts ``url``."""
        return self.get_handler(url) is not None

    def get_producer(self, url: str) -> Any:
        """Open a producer for ``url`` with its handler."""
        handler = self.get_handler(url)
        if handler is None:
            raise UnsupportedSchemeError(f"unsupported scheme: {url}")
        return handler(url)