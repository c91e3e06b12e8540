"""Shared executor plumbing for the domain managers.

A manager owns one business area. ``execute`` runs a parsed Command by
dispatching to ``_do_<kind>``; ``confirm`` runs a confirmation payload
through the method named in ``confirm_actions``. Both are exception
boundaries: whatever goes wrong comes back as a failed ActionResult.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from hrflow.domain.confirmation import ConfirmationBroker, describe_record
from hrflow.domain.events import EventOutbox
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import EntityResolver, Outcome, full_name
from hrflow.ports.outbound import RepositoryPort


def _log(msg: str):
    print(msg, file=sys.stderr)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ManagerSettings:
    default_pto_days: int = 15
    low_stock_threshold: int = 5
    default_order_quantity: int = 10
    email_domain: str = "company.com"
    hr_email: str = "hr@company.com"
    default_interview_location: str = "Main Office"
    interview_minutes: int = 60
    candidate_archive_days: int = 90
    document_archive_days: int = 365


class DomainManager:
    domain: str = ""
    # confirmation action -> method that applies a resolved payload
    confirm_actions: Dict[str, str] = {}
    # confirmation action -> command kind whose permission it needs
    confirm_kinds: Dict[str, str] = {}

    def __init__(
        self,
        repository: RepositoryPort,
        broker: Optional[ConfirmationBroker] = None,
        resolver: Optional[EntityResolver] = None,
        settings: Optional[ManagerSettings] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.repo = repository
        self.broker = broker or ConfirmationBroker()
        self.resolver = resolver or EntityResolver()
        self.settings = settings or ManagerSettings()
        self._today = today or date.today

    def today(self) -> date:
        return self._today()

    # -- entry points --

    async def execute(self, command: Command, actor: Actor, outbox: EventOutbox) -> ActionResult:
        handler = getattr(self, f"_do_{command.kind}", None)
        if handler is None:
            return ActionResult(
                success=False,
                message=f"I can't handle '{command.kind}' requests yet.",
                error="unsupported_command",
            )
        return await self._guard(command.kind, handler, command.data, actor, outbox)

    async def confirm(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        action = payload.get("action", "")
        method = self.confirm_actions.get(action)
        if method is None:
            return ActionResult(
                success=False,
                message=f"Unknown confirmation action: {action}",
                error="unknown_action",
            )
        return await self._guard(action, getattr(self, method), payload, actor, outbox)

    def kind_for(self, action: str) -> str:
        return self.confirm_kinds.get(action, action)

    async def _guard(self, label: str, handler, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        try:
            return await handler(data, actor, outbox)
        except Exception as e:
            _log(f"[{self.domain}] {label} failed: {e}")
            return ActionResult(
                success=False,
                message=f"Something went wrong while processing that {self.domain} request. Please try again.",
                error=str(e),
            )

    # -- helpers --

    async def _resolve_person(
        self,
        entity: str,
        fragment: str,
        action: str,
        label: str,
        records: Optional[List[Dict[str, Any]]] = None,
        **fields,
    ) -> Tuple[Optional[Dict[str, Any]], Optional[ActionResult]]:
        """Return (record, None) on a confident match, else (None, result)."""
        if records is None:
            records = await self.repo.list(entity)
        resolution = self.resolver.resolve(fragment, records)
        if resolution.outcome is Outcome.AUTO:
            return resolution.selected, None
        if resolution.outcome is Outcome.AMBIGUOUS:
            return None, self.broker.disambiguate(fragment, resolution, action, label, **fields)
        return None, self._not_found(label, fragment)

    async def _resolve_named(
        self,
        entity: str,
        fragment: str,
        action: str,
        label: str,
        **fields,
    ) -> Tuple[Optional[Dict[str, Any]], Optional[ActionResult]]:
        resolution = self.resolver.resolve_by_name(fragment, await self.repo.list(entity))
        if resolution.outcome is Outcome.AUTO:
            return resolution.selected, None
        if resolution.outcome is Outcome.AMBIGUOUS:
            return None, self.broker.disambiguate(fragment, resolution, action, label, **fields)
        return None, self._not_found(label, fragment)

    async def _record_from(
        self, entity: str, payload: Dict[str, Any], key: str
    ) -> Optional[Dict[str, Any]]:
        """Load the record a confirmation payload points at.

        Accepts the explicit id field, a ``selected_id`` chosen from a
        disambiguation list, or a lone candidate.
        """
        record_id = payload.get(key) or payload.get("selected_id")
        candidates = payload.get("candidates") or []
        if not record_id and len(candidates) == 1:
            record_id = candidates[0].get("id")
        if not record_id:
            return None
        return await self.repo.get(entity, str(record_id))

    def _clarify(self, question: str) -> ActionResult:
        return ActionResult(success=False, message=question)

    def _not_found(self, label: str, fragment: str, suggestions: Optional[List[str]] = None) -> ActionResult:
        message = f"I couldn't find a {label} matching \"{fragment}\"."
        data = None
        if suggestions:
            message += " Did you mean one of these: " + ", ".join(suggestions) + "?"
            data = {"suggestions": suggestions}
        return ActionResult(success=False, message=message, error="not_found", data=data)

    @staticmethod
    def name_of(record: Dict[str, Any]) -> str:
        return full_name(record) or describe_record(record)
