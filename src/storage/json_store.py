# src/storage/json_store.py — v1
"""JSON file-based key-value store (default CACHE_BACKEND=json).

Stores each key as an individual JSON file under CACHE_ROOT.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from stockscan.storage.base_kv_store import BaseKeyValueStore, StorageUnavailable

logger = logging.getLogger(__name__)


class JsonKeyValueStore(BaseKeyValueStore):
    """File-based store using one JSON file per key."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()

    async def get(self, key: str) -> Any | None:
        """Read a key. Corrupt files read as missing."""
        path = self._entry_path(key)
        try:
            if not path.exists():
                return None
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageUnavailable(key, str(e)) from e
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Discarding corrupt store file %s: %s", path.name, e)
            return None

    async def set(self, key: str, value: Any) -> None:
        """Write a key atomically (temp file + rename)."""
        path = self._entry_path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageUnavailable(key, str(e)) from e

    async def delete(self, key: str) -> None:
        path = self._entry_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(key, str(e)) from e

    async def keys(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(p.stem for p in self._root.glob("*.json"))

    def _entry_path(self, key: str) -> Path:
        """Return file path for a store key."""
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe_key}.json"
