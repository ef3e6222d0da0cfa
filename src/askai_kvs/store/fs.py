"""
Filesystem store backend.
"""

from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from urllib.parse import quote

from ..concurrency import run_sync
from ..config.store import FSStoreConfig
from .base import BaseStoreBackend, Record


class FSStoreBackend(BaseStoreBackend):
    """
    One JSON file per key under ``data_dir``.

    Writes go to a temporary file that is renamed over the target, so a
    reader never sees a partial document. Conditional inserts hard-link the
    temporary file into place, which fails if the target already exists.
    """

    name = "fs"
    supports_conditional_insert = True

    def __init__(self, config: FSStoreConfig) -> None:
        self.config = config
        self.dir = Path(config.data_dir)

    async def ensure_ready(self) -> None:
        await run_sync(self.dir.mkdir, parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        return self.dir / f"{quote(key, safe='')}.json"

    def _tmp_path(self, path: Path) -> Path:
        return path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")

    @staticmethod
    def _encode(record: Record) -> str:
        return json.dumps(record.to_dict(), ensure_ascii=False)

    async def read(self, key: str) -> Record | None:
        path = self._path_for(key)
        try:
            raw = await run_sync(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        return Record.from_dict(json.loads(raw))

    async def write(self, record: Record) -> None:
        path = self._path_for(record.key)
        tmp_path = self._tmp_path(path)
        payload = self._encode(record)

        def _write_atomic() -> None:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)

        await run_sync(_write_atomic)

    async def insert_if_absent(self, record: Record) -> bool:
        path = self._path_for(record.key)
        tmp_path = self._tmp_path(path)
        payload = self._encode(record)

        def _link_exclusive() -> bool:
            tmp_path.write_text(payload, encoding="utf-8")
            try:
                os.link(tmp_path, path)
            except FileExistsError:
                return False
            finally:
                tmp_path.unlink(missing_ok=True)
            return True

        return await run_sync(_link_exclusive)

    async def delete(self, key: str) -> None:
        await run_sync(self._path_for(key).unlink, missing_ok=True)


__all__ = ["FSStoreBackend"]
