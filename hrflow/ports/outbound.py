"""Outbound ports: interfaces for external system adapters."""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

# Entity collections the dispatcher reads and writes
ENTITIES = (
    "employees",
    "candidates",
    "pto_requests",
    "interviews",
    "tools",
    "tool_assignments",
    "territories",
    "contracts",
    "documents",
    "reviews",
    "notes",
    "messages",
    "termination_reminders",
    "confirmations",
)


@runtime_checkable
class RepositoryPort(Protocol):
    """CRUD over plain dict records, keyed by entity collection."""

    async def list(self, entity: str) -> List[Dict[str, Any]]: ...

    async def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]: ...

    async def create(self, entity: str, record: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update(
        self, entity: str, record_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]: ...

    async def delete(self, entity: str, record_id: str) -> bool: ...


@runtime_checkable
class NotificationPort(Protocol):
    """Best-effort message delivery (email, chat webhook, ...)."""

    async def send(self, to: str, subject: str, body: str) -> bool: ...
