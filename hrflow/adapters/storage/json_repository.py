"""JSON file-based repository adapter implementing RepositoryPort.

One file per entity collection (``<data_dir>/<entity>.json``) holding a
list of records. Writes are atomic (temp file + rename) and serialized
by an asyncio lock so concurrent requests don't interleave read-modify-
write cycles.
"""

import asyncio
import json
import os
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional


def _log(msg: str):
    print(msg, file=sys.stderr)


class JsonRepository:
    """File-backed RepositoryPort."""

    def __init__(self, data_dir: str = "data"):
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _path(self, entity: str) -> Path:
        return self._data_dir / f"{entity}.json"

    def _load(self, entity: str) -> List[Dict[str, Any]]:
        path = self._path(entity)
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            _log(f"[JsonRepository] unreadable {path.name}: {e}")
            return []
        return raw if isinstance(raw, list) else []

    def _save(self, entity: str, records: List[Dict[str, Any]]) -> None:
        path = self._path(entity)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(records, ensure_ascii=False, indent=2, default=str)
        # Atomic write
        fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, str(path))
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    async def list(self, entity: str) -> List[Dict[str, Any]]:
        return self._load(entity)

    async def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]:
        for record in self._load(entity):
            if str(record.get("id")) == str(record_id):
                return record
        return None

    async def create(self, entity: str, record: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            records = self._load(entity)
            stored = dict(record)
            stored["id"] = str(stored.get("id") or uuid.uuid4())
            records.append(stored)
            self._save(entity, records)
            return stored

    async def update(self, entity: str, record_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        async with self._lock:
            records = self._load(entity)
            for record in records:
                if str(record.get("id")) == str(record_id):
                    record.update(changes)
                    record["id"] = str(record_id)
                    self._save(entity, records)
                    return record
            return None

    async def delete(self, entity: str, record_id: str) -> bool:
        async with self._lock:
            records = self._load(entity)
            kept = [r for r in records if str(r.get("id")) != str(record_id)]
            if len(kept) == len(records):
                return False
            self._save(entity, kept)
            return True
