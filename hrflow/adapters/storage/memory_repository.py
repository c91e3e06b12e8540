"""In-memory RepositoryPort for tests and demos."""

import copy
import uuid
from typing import Any, Dict, Iterable, List, Optional


class InMemoryRepository:
    """Dict-backed RepositoryPort. Records keep insertion order."""

    def __init__(self, seed: Optional[Dict[str, Iterable[Dict[str, Any]]]] = None):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for entity, records in (seed or {}).items():
            for record in records:
                self._insert(entity, record)

    def _table(self, entity: str) -> Dict[str, Dict[str, Any]]:
        return self._data.setdefault(entity, {})

    def _insert(self, entity: str, record: Dict[str, Any]) -> Dict[str, Any]:
        stored = copy.deepcopy(record)
        stored["id"] = str(stored.get("id") or uuid.uuid4())
        self._table(entity)[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def list(self, entity: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._table(entity).values()]

    async def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]:
        record = self._table(entity).get(str(record_id))
        return copy.deepcopy(record) if record is not None else None

    async def create(self, entity: str, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._insert(entity, record)

    async def update(self, entity: str, record_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        record = self._table(entity).get(str(record_id))
        if record is None:
            return None
        record.update(copy.deepcopy(changes))
        record["id"] = str(record_id)
        return copy.deepcopy(record)

    async def delete(self, entity: str, record_id: str) -> bool:
        return self._table(entity).pop(str(record_id), None) is not None
