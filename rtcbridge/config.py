"""Application configuration from YAML files and inline YAML documents."""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

log = logging.getLogger(__name__)

VERSION = "1.2.0"
DEFAULT_CONFIG = "rtcbridge.yaml"

TRACE = logging.DEBUG - 5

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "disabled": logging.CRITICAL + 10,
}


def _parse_level(value: Any) -> int | None:
    """Return the logging level for a level name, or None if unknown or empty."""
    if not isinstance(value, str):
        return None
    return _LEVELS.get(value.lower())


def _overlay(base: Any, value: Any) -> Any:
    """Lay ``value`` over ``base`` the way a YAML document fills existing settings."""
    if isinstance(base, dict) and isinstance(value, dict):
        for key, item in value.items():
            base[key] = _overlay(base.get(key), item)
        return base
    return copy.deepcopy(value)


@dataclass
class AppConfig:
    """Parsed configuration documents, applied in order, later ones winning."""

    documents: list[dict[str, Any]] = field(default_factory=list)
    config_path: str = ""
    info: dict[str, Any] = field(default_factory=lambda: {"version": VERSION})

    @classmethod
    def from_sources(
        cls, sources: Iterable[str] | None = None, cwd: str | None = None
    ) -> "AppConfig":
        """Load configs given as file paths or as raw YAML starting with ``{``.

        The first file path becomes ``config_path``; missing files are skipped.
        """
        sources = list(sources) if sources else [DEFAULT_CONFIG]
        cwd = os.getcwd() if cwd is None else cwd

        config = cls()
        texts: list[str] = []
        for source in sources:
            if source.startswith("{"):
                texts.append(source)
                continue
            path = source if os.path.isabs(source) else os.path.join(cwd, source)
            if not config.config_path:
                config.config_path = path
            try:
                with open(path, encoding="utf-8") as fh:
                    texts.append(fh.read())
            except OSError:
                continue

        if config.config_path:
            config.info["config_path"] = config.config_path

        for text in texts:
            try:
                document = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                log.warning("read config: %s", exc)
                continue
            if isinstance(document, dict):
                config.documents.append(document)
            elif document is not None:
                log.warning("read config: document is not a mapping")
        return config

    def section(self, name: str, default: Any = None) -> Any:
        """Return section ``name`` laid over a copy of ``default``."""
        result = copy.deepcopy(default)
        for document in self.documents:
            if name in document:
                result = _overlay(result, document[name])
        return result

    def log_level(self, module: str | None = None) -> int:
        """Return the log level for ``module``, or the global level."""
        levels = self.section("log", {})
        if not isinstance(levels, dict):
            levels = {}

        default = _parse_level(levels.get("level")) or logging.INFO

        if module is not None and module in levels:
            level = _parse_level(levels[module])
            if level is not None:
                return level
            log.warning("unknown log level for %s: %r", module, levels[module])
        return default


def merge(dst: dict[str, Any], src: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``src`` into ``dst`` recursively; lists and scalars are replaced."""
    for key, value in src.items():
        current = dst.get(key) if key in dst else None
        if key in dst and isinstance(current, dict):
            if not isinstance(value, dict):
                raise TypeError(f"cannot merge {type(value).__name__} into mapping: {key}")
            dst[key] = merge(current, value)
        else:
            dst[key] = value
    return dst


def merge_yaml(path: str | os.PathLike[str], text: str) -> str:
    """Merge the YAML ``text`` into the YAML file at ``path`` and return the result."""
    with open(path, encoding="utf-8") as fh:
        first = yaml.safe_load(fh) or {}
    second = yaml.safe_load(text) or {}
    if not isinstance(first, dict) or not isinstance(second, dict):
        raise TypeError("both YAML documents must be mappings")
    return yaml.safe_dump(merge(first, second), sort_keys=True, default_flow_style=False)