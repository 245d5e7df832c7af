"""Filesystem delivery of geotagged files: single file or zip archive."""

from __future__ import annotations

import os
from pathlib import Path
import zipfile

from loguru import logger

from core.services.interfaces import IOutputSink


def _unique_path(path: Path) -> Path:
    """Return `path`, or `name (n).ext` when it already exists."""
    if not path.exists():
        return path
    n = 1
    while True:
        candidate = path.with_name(f"{path.stem} ({n}){path.suffix}")
        if not candidate.exists():
            return candidate
        n += 1


class DirectoryOutputSink(IOutputSink):
    """Writes outputs into a directory without overwriting existing files."""

    def __init__(self, out_dir: str | Path) -> None:
        self._dir = Path(os.path.expandvars(str(out_dir))).expanduser()

    @property
    def directory(self) -> Path:
        """Target directory."""
        return self._dir

    def save_file(self, name: str, data: bytes) -> str:
        """Write `data` as `name` and return the written path."""
        self._dir.mkdir(parents=True, exist_ok=True)
        path = _unique_path(self._dir / Path(name).name)
        path.write_bytes(data)
        logger.info("Saved {} ({} bytes)", path, len(data))
        return str(path)

    def save_archive(self, name: str, entries: list[tuple[str, bytes]]) -> str:
        """Write all `entries` into one zip archive and return its path."""
        self._dir.mkdir(parents=True, exist_ok=True)
        path = _unique_path(self._dir / Path(name).name)
        # JPEG data does not compress further
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_STORED) as zf:
            for entry_name, data in entries:
                zf.writestr(entry_name, data)
        logger.info("Saved archive {} with {} entries", path, len(entries))
        return str(path)
