"""Port interfaces (Hexagonal Architecture)."""

from hrflow.ports.outbound import ENTITIES, NotificationPort, RepositoryPort

__all__ = [
    "ENTITIES",
    "NotificationPort",
    "RepositoryPort",
]
