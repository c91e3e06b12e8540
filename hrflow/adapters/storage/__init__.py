"""Repository adapters."""

from hrflow.adapters.storage.json_repository import JsonRepository
from hrflow.adapters.storage.memory_repository import InMemoryRepository

__all__ = ["JsonRepository", "InMemoryRepository"]
