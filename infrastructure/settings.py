"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path | None = None, data: dict | None = None) -> None:
        """Load settings from `settings_path`, or wrap `data` directly.

        Raises:
            FileNotFoundError: `settings_path` was given but does not exist.
            ValueError: The file is not a JSON object.
        """
        self._path = Path(settings_path) if settings_path is not None else None
        if self._path is None:
            self._data: dict[str, Any] = dict(data or {})
            return
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise ValueError(f"settings must be a JSON object: {self._path}")
        self._data = loaded

    @property
    def path(self) -> Path | None:
        """File the settings were read from, if any."""
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node
