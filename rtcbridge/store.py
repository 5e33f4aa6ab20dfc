"""A small JSON key-value store kept in one file."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_STORE = "rtcbridge.json"


class Store:
    """Values by key, loaded lazily from a JSON file and saved on every change."""

    def __init__(self, path: str | os.PathLike[str] = DEFAULT_STORE) -> None:
        self.path = path
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is None:
            data: Any = None
            try:
                with open(self.path, encoding="utf-8") as fh:
                    text = fh.read()
            except OSError:
                text = None
            if text is not None:
                try:
                    data = json.loads(text)
                except ValueError as exc:
                    log.warning("read storage: %s", exc)
            self._data = data if isinstance(data, dict) else {}
        return self._data

    def _save(self) -> None:
        text = json.dumps(self._load(), sort_keys=True, separators=(",", ":"))
        with open(self.path, "w", encoding="utf-8") as fh:
            fh.write(text)

    def get_raw(self, key: str) -> Any:
        """Return the value stored under ``key``, or None."""
        return self._load().get(key)

    def get_dict(self, key: str) -> dict[str, Any]:
        """Return the mapping stored under ``key``, or a new empty one."""
        raw = self.get_raw(key)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise TypeError(f"stored value is not a mapping: {key}")
        return raw

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` and write the file."""
        self._load()[key] = value
        self._save()