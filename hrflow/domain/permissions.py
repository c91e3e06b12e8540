"""Permission gate: pure predicates over an actor's role and department."""

from __future__ import annotations

from typing import Callable, Optional

from hrflow.domain.models import Actor

TRUE_ADMIN = "TRUE_ADMIN"
ADMIN = "ADMIN"
HR_MANAGER = "HR_MANAGER"
MANAGER = "MANAGER"
EMPLOYEE = "EMPLOYEE"

_MANAGEMENT_ROLES = frozenset({TRUE_ADMIN, ADMIN, HR_MANAGER, MANAGER})
_AGENT_ROLES = frozenset({TRUE_ADMIN, ADMIN, HR_MANAGER})
_TERRITORY_ROLES = frozenset({TRUE_ADMIN, ADMIN})

RECRUITMENT_DEPARTMENT = "Recruitment"

Permission = Callable[[Actor], bool]


def can_manage_candidates(actor: Actor) -> bool:
    return actor.role in _MANAGEMENT_ROLES or actor.department == RECRUITMENT_DEPARTMENT


def can_manage_employees(actor: Actor) -> bool:
    return actor.role in _MANAGEMENT_ROLES


def can_manage_team(actor: Actor) -> bool:
    return actor.role in _MANAGEMENT_ROLES


def can_manage_agents(actor: Actor) -> bool:
    return actor.role in _AGENT_ROLES


def can_manage_territories(actor: Actor) -> bool:
    return actor.role in _TERRITORY_ROLES


def can_view_own_data(actor: Actor) -> bool:
    return True


def can_request_pto(actor: Actor) -> bool:
    return bool(actor.is_active)


def permission_name(permission: Optional[Permission]) -> str:
    if permission is None:
        return "none"
    return getattr(permission, "__name__", repr(permission))
