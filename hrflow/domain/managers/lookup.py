"""Universal lookup: find people, requests and assets by name."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.permissions import can_manage_candidates, can_manage_team
from hrflow.domain.resolver import full_name

# target -> words that select it
TARGETS = {
    "employees": ("employee", "person", "people", "staff", "user", "team member", "who is"),
    "candidates": ("candidate", "applicant", "recruit"),
    "pto": ("pto", "vacation", "leave", "time off"),
    "tools": ("tool", "equipment", "inventory"),
    "contracts": ("contract",),
    "territories": ("territory", "territories"),
    "documents": ("document", "file"),
}

_TRIGGER_RE = re.compile(r"\b(?:find|look\s*up|search|who\s+is|show|get|list)\b", re.IGNORECASE)
_TERM_RE = re.compile(
    r"(?i:\b(?:find|look\s*up|search\s+for|search|who\s+is|show\s+me|show|get|list))\s+"
    r"(?:(?i:the|all|any|my)\s+)?"
    r"(?:(?i:employees?|candidates?|applicants?|tools?|equipment|contracts?|territor(?:y|ies)|documents?|files?|"
    r"pto|staff|person|people|users?)\s+)?"
    r"(?:(?i:named|called|for)\s+)?"
    r"([A-Za-z][\w'-]*(?:\s+[A-Z][\w'-]*)?)"
)
_STOP_WORDS = {
    "and", "for", "with", "all", "me", "my", "the", "of", "in", "on", "about", "requests", "request",
    "employees", "employee", "candidates", "candidate", "tools", "tool", "contracts", "contract",
    "territories", "territory", "documents", "document", "pto", "staff", "people", "list", "pending",
}
MAX_RESULTS = 20


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a lookup Command, or None."""
    if not _TRIGGER_RE.search(message):
        return None
    lower = message.lower()
    targets = [t for t, words in TARGETS.items() if any(w in lower for w in words)]
    if not targets:
        return None
    m = _TERM_RE.search(message)
    term = m.group(1).strip() if m else None
    if term and term.lower() in _STOP_WORDS:
        term = None
    return Command("lookup", "search", {"targets": targets, "term": term})


class LookupManager(DomainManager):
    domain = "lookup"

    async def _do_search(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        term = data.get("term")
        found: Dict[str, List[Dict[str, Any]]] = {}
        for target in data.get("targets", []):
            if target == "candidates" and not can_manage_candidates(actor):
                continue
            found[target] = await getattr(self, f"_search_{target}")(term, actor)
        if not found:
            return ActionResult(success=False, message="You don't have access to look that up.", error="not_permitted")
        counts = ", ".join(f"{len(v)} {k}" for k, v in found.items())
        subject = f" matching \"{term}\"" if term else ""
        return ActionResult(success=True, message=f"Found {counts}{subject}.", data=found)

    def _people(self, term: Optional[str], records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if term:
            records = [m.record for m in self.resolver.rank(term, records)]
        return records[:MAX_RESULTS]

    def _named(self, term: Optional[str], records: List[Dict[str, Any]], key: str = "name") -> List[Dict[str, Any]]:
        if term:
            records = [m.record for m in self.resolver.rank_by_name(term, records, key)]
        return records[:MAX_RESULTS]

    async def _search_employees(self, term, actor: Actor):
        return [
            {
                "id": e["id"],
                "name": full_name(e),
                "email": e.get("email", ""),
                "position": e.get("position", ""),
                "department": e.get("department", ""),
                "is_active": e.get("is_active", True),
            }
            for e in self._people(term, await self.repo.list("employees"))
        ]

    async def _search_candidates(self, term, actor: Actor):
        return [
            {
                "id": c["id"],
                "name": full_name(c),
                "email": c.get("email", ""),
                "position": c.get("position", ""),
                "status": c.get("status", ""),
            }
            for c in self._people(term, await self.repo.list("candidates"))
        ]

    async def _search_pto(self, term, actor: Actor):
        employee_ids = {actor.id}
        if term and can_manage_team(actor):
            employee_ids = {e["id"] for e in self._people(term, await self.repo.list("employees"))}
        elif can_manage_team(actor) and not term:
            employee_ids = None
        return [
            r for r in await self.repo.list("pto_requests")
            if employee_ids is None or r.get("employee_id") in employee_ids
        ][:MAX_RESULTS]

    async def _search_tools(self, term, actor: Actor):
        return self._named(term, await self.repo.list("tools"))

    async def _search_contracts(self, term, actor: Actor):
        return self._named(term, await self.repo.list("contracts"), key="title")

    async def _search_territories(self, term, actor: Actor):
        return self._named(term, await self.repo.list("territories"))

    async def _search_documents(self, term, actor: Actor):
        return self._named(term, await self.repo.list("documents"))
