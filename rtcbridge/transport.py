"""Message transport for the WebSocket API, and origin checking."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit


@dataclass
class Message:
    """A typed message exchanged over the web API."""

    type: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; ``value`` is left out when empty."""
        data: dict[str, Any] = {"type": self.type}
        if self.value not in (None, "", [], {}):
            data["value"] = self.value
        return data


class Transport:
    """One client connection: writes go to a sink, close runs callbacks."""

    def __init__(self, request: Any = None) -> None:
        self.request = request
        self.consumer: Any = None

        self._closed = False
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()

        self._on_change: Callable[[], None] | None = None
        self._on_write: Callable[[Any], None] | None = None
        self._on_close: list[Callable[[], None]] = []

    def on_write(self, func: Callable[[Any], None]) -> None:
        """Set the sink for written messages; notifies the change callback."""
        with self._lock:
            if self._on_change is not None:
                self._on_change()
            self._on_write = func

    def write(self, msg: Any) -> None:
        """Send ``msg`` to the current sink."""
        with self._write_lock:
            if self._on_write is None:
                raise RuntimeError("transport has no writer")
            self._on_write(msg)

    def close(self) -> None:
        """Run the close callbacks and mark the transport closed."""
        with self._lock:
            for func in self._on_close:
                func()
            self._closed = True

    def on_change(self, func: Callable[[], None]) -> None:
        """Set the callback run when the writer is replaced."""
        with self._lock:
            self._on_change = func

    def on_close(self, func: Callable[[], None]) -> None:
        """Run ``func`` on close, or now if already closed."""
        with self._lock:
            if self._closed:
                func()
            else:
                self._on_close.append(func)


def _origin_host(origin: str) -> str | None:
    try:
        netloc = urlsplit(origin).netloc
    except ValueError:
        return None
    return netloc.rpartition("@")[2]


def check_origin(origin: str | None, host: str, mode: str = "") -> bool:
    """Decide whether a WebSocket request from ``origin`` to ``host`` is allowed.

    ``mode`` "*" allows any origin; "" allows the same host ignoring the
    origin's port; anything else requires the same host.
    """
    if mode == "*" or origin is None:
        return True

    origin_host = _origin_host(origin)
    if origin_host is None:
        return False

    if mode == "":
        if origin_host == host:
            return True
        i = origin_host.find(":")
        if i > 0:
            return origin_host[:i] == host
        return False

    return origin_host.lower() == host.lower()