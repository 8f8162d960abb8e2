"""JSON document store for the dashboard data directory.

Every document is read fully, mutated in memory and rewritten wholesale.
Writes go to a temporary sibling first and are renamed into place, so a
crashed run leaves the previous file intact.
"""

import json
import os
from decimal import Decimal
from pathlib import Path
from typing import Any

from pulsefeed.logging import get_logger

logger = get_logger(__name__)


def _encode(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JsonFileStore:
    """Reads and writes JSON documents under one data directory.

    Usage:
        store = JsonFileStore("data")
        existing = store.load("burn-history.json") or {}
        store.save("burn-history.json", {"lastUpdated": ..., ...})
    """

    def __init__(self, data_dir: str | Path) -> None:
        self._root = Path(data_dir)

    @property
    def root(self) -> Path:
        return self._root

    def path(self, name: str) -> Path:
        return self._root / name

    def exists(self, name: str) -> bool:
        return self.path(name).is_file()

    def load(self, name: str) -> dict[str, Any] | None:
        """Return the parsed document, or None if absent or unreadable.

        A corrupt file is logged and treated as absent so the next run
        rebuilds it instead of crashing.
        """
        path = self.path(name)
        if not path.is_file():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("json_load_failed", path=str(path), error=str(exc))
            return None
        if not isinstance(data, dict):
            logger.warning("json_load_unexpected_shape", path=str(path), type=type(data).__name__)
            return None
        logger.debug(
            "json_loaded",
            path=str(path),
            size_mb=round(path.stat().st_size / 1024 / 1024, 2),
            last_updated=data.get("lastUpdated"),
        )
        return data

    def save(self, name: str, data: dict[str, Any], pretty: bool = True) -> Path:
        """Write ``data`` to ``name``, creating parent directories."""
        path = self.path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")

        with tmp_path.open("w", encoding="utf-8") as fh:
            if pretty:
                json.dump(data, fh, indent=2, default=_encode)
            else:
                json.dump(data, fh, separators=(",", ":"), default=_encode)
        os.replace(tmp_path, path)

        logger.info(
            "json_written",
            path=str(path),
            size_mb=round(path.stat().st_size / 1024 / 1024, 2),
        )
        return path

    def glob(self, pattern: str) -> list[str]:
        """Names (relative to the root) of files matching ``pattern``."""
        if not self._root.is_dir():
            return []
        return sorted(str(p.relative_to(self._root)) for p in self._root.glob(pattern) if p.is_file())

    def delete(self, name: str) -> None:
        path = self.path(name)
        if path.is_file():
            path.unlink()
            logger.info("json_deleted", path=str(path))

    def set_aside(self, name: str) -> Path | None:
        """Rename ``name`` to ``name.corrupt`` so it survives an overwrite."""
        path = self.path(name)
        if not path.is_file():
            return None
        target = path.with_name(path.name + ".corrupt")
        os.replace(path, target)
        logger.warning("json_set_aside", path=str(path), target=str(target))
        return target
