"""Domain data models: pure Python dataclasses."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass
class Actor:
    """The authenticated person a message came from."""

    id: str
    role: str  # "TRUE_ADMIN" | "ADMIN" | "HR_MANAGER" | "MANAGER" | "EMPLOYEE"
    department: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    is_active: bool = True

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.id


@dataclass
class ActionContext:
    """One inbound message. Built per request and never persisted."""

    actor: Optional[Actor]
    message: str


@dataclass
class ActionResult:
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    requires_confirmation: bool = False
    confirmation_data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MatchType(str, Enum):
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    FULL_NAME = "full_name"
    NAME = "name"  # single-name records (tools, territories, contracts)


@dataclass
class FuzzyMatch:
    record: Dict[str, Any]
    score: float
    match_type: MatchType


# Closed set of command kinds per domain
DOMAIN_KINDS: Dict[str, Tuple[str, ...]] = {
    "employee": (
        "create_employee",
        "update_employee",
        "terminate_employee",
        "reset_password",
        "transfer_employee",
        "add_note",
        "employee_stats",
    ),
    "pto": (
        "request_pto",
        "pto_balance",
        "cancel_pto",
        "approve_pto",
        "bulk_approve_pto",
        "deny_pto",
        "adjust_balance",
        "submit_pto_for",
    ),
    "recruiting": (
        "create_candidate",
        "move_stage",
        "bulk_move",
        "schedule_interview",
        "reject_candidate",
        "archive_candidates",
    ),
    "document": (
        "upload_document",
        "delete_document",
        "set_permissions",
        "share_document",
        "expire_documents",
        "archive_documents",
    ),
    "review": (
        "create_review",
        "complete_review",
        "bulk_create",
        "send_reminders",
        "generate_reports",
        "schedule_reviews",
    ),
    "tools": (
        "add_tool",
        "remove_tool",
        "assign_tool",
        "return_tool",
        "check_inventory",
        "order_tools",
        "generate_report",
    ),
    "territory": (
        "create_territory",
        "assign_manager",
        "transfer_employees",
        "merge_territories",
        "delete_territory",
        "generate_report",
    ),
    "contract": (
        "create_contract",
        "send_contract",
        "sign_contract",
        "renew_contract",
        "terminate_contract",
        "expire_contracts",
        "generate_report",
    ),
    "lookup": ("search",),
    "messaging": ("send_email",),
}


@dataclass
class Command:
    """A typed request produced by a domain parser."""

    domain: str
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        kinds = DOMAIN_KINDS.get(self.domain)
        if kinds is None:
            raise ValueError(f"Unknown domain: {self.domain!r}")
        if self.kind not in kinds:
            raise ValueError(f"Unknown {self.domain} command: {self.kind!r}")
