"""Intent scanner: runs one message past every business area it touches.

Each Route pairs a cheap trigger regex with a permission gate, a parser
and the manager that executes what the parser produced. Routes are
independent: a message can yield several results, and a failure in one
route never stops the others.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Pattern

from hrflow.domain.confirmation import ConfirmationBroker, PendingConfirmationStore
from hrflow.domain.events import EventOutbox, NotificationRelay
from hrflow.domain.managers import (
    ContractManager,
    DocumentManager,
    DomainManager,
    EmployeeManager,
    LookupManager,
    ManagerSettings,
    MessagingManager,
    PTOManager,
    RecruitingManager,
    ReviewManager,
    TerritoryManager,
    ToolsManager,
)
from hrflow.domain.managers import (
    contract,
    document,
    employee,
    lookup,
    messaging,
    pto,
    recruiting,
    review,
    territory,
    tools,
)
from hrflow.domain.models import ActionContext, ActionResult, Actor, Command
from hrflow.domain.permissions import (
    Permission,
    can_manage_candidates,
    can_manage_employees,
    can_manage_team,
    can_manage_territories,
    can_request_pto,
    can_view_own_data,
    permission_name,
)
from hrflow.domain.resolver import EntityResolver
from hrflow.ports.outbound import NotificationPort, RepositoryPort


def _log(msg: str):
    print(msg, file=sys.stderr)


GREETINGS = frozenset({"hi", "hello", "hey", "good morning", "good afternoon", "good evening"})

CONFIRM_ERRORS = {
    "not_found": "I couldn't find that confirmation.",
    "forbidden": "That confirmation belongs to someone else.",
    "expired": "That confirmation has expired. Please make the request again.",
    "disabled": "Confirmations by reference are not enabled.",
}


@dataclass
class Route:
    domain: str
    trigger: Pattern[str]
    permission: Permission
    parser: Callable[[str], Optional[Command]]
    manager: DomainManager
    # kind -> extra gate on top of the route permission
    kind_permissions: Dict[str, Permission] = field(default_factory=dict)


def _rx(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


_MANAGE_TEAM_PTO = ("approve_pto", "bulk_approve_pto", "deny_pto", "adjust_balance", "submit_pto_for")
_MANAGE_DOCUMENTS = ("delete_document", "set_permissions", "expire_documents", "archive_documents")


def build_routes(
    repository: RepositoryPort,
    broker: Optional[ConfirmationBroker] = None,
    resolver: Optional[EntityResolver] = None,
    settings: Optional[ManagerSettings] = None,
    today: Optional[Callable[[], date]] = None,
) -> List[Route]:
    """The standard route table, in scan order."""
    broker = broker or ConfirmationBroker()

    def make(cls):
        return cls(repository, broker=broker, resolver=resolver, settings=settings, today=today)

    return [
        Route("lookup", _rx(r"\b(?:find|look\s*up|search|who\s+is|show|list)\b"),
              can_view_own_data, lookup.parse_command, make(LookupManager)),
        Route("recruiting", _rx(r"\b(?:candidates?|applicants?|interview|recruit\w*|pipeline|reject)\b"),
              can_manage_candidates, recruiting.parse_command, make(RecruitingManager)),
        Route("pto", _rx(r"\b(?:pto|time\s+off|vacation|leave|days?\s+off|sick)\b"),
              can_request_pto, pto.parse_command, make(PTOManager),
              {kind: can_manage_team for kind in _MANAGE_TEAM_PTO}),
        Route("messaging", _rx(r"\b(?:email|e-mail|message)\b"),
              can_view_own_data, messaging.parse_command, make(MessagingManager)),
        Route("employee", _rx(
            r"\b(?:employees?|staff|hire|onboard|terminate|fire|offboard|deactivate|let\s+go|password|"
            r"note|headcount|how\s+many|transfer|department|update|change|edit)\b"
        ), can_manage_employees, employee.parse_command, make(EmployeeManager)),
        Route("document", _rx(r"\b(?:documents?|files?|docs?|handbook|policy)\b"),
              can_view_own_data, document.parse_command, make(DocumentManager),
              {kind: can_manage_employees for kind in _MANAGE_DOCUMENTS}),
        Route("review", _rx(r"\b(?:reviews?|evaluations?|appraisals?)\b"),
              can_manage_employees, review.parse_command, make(ReviewManager)),
        Route("tools", _rx(r"\b(?:tools?|equipment|inventory|stock|restock)\b"),
              can_manage_employees, tools.parse_command, make(ToolsManager)),
        Route("territory", _rx(r"\bterritor(?:y|ies)\b"),
              can_manage_territories, territory.parse_command, make(TerritoryManager)),
        Route("contract", _rx(r"\b(?:contracts?|nda|agreements?)\b"),
              can_manage_employees, contract.parse_command, make(ContractManager)),
    ]


class Dispatcher:
    def __init__(
        self,
        routes: List[Route],
        broker: Optional[ConfirmationBroker] = None,
        relay: Optional[NotificationRelay] = None,
        report_permission_denied: bool = False,
    ):
        self.routes = routes
        self.broker = broker or ConfirmationBroker()
        self.relay = relay or NotificationRelay()
        self.report_permission_denied = report_permission_denied
        self._confirm_index: Dict[str, Route] = {}
        for route in routes:
            for action in route.manager.confirm_actions:
                if action in self._confirm_index:
                    raise ValueError(f"Confirmation action '{action}' is claimed by two routes")
                self._confirm_index[action] = route

    @classmethod
    def create(
        cls,
        repository: RepositoryPort,
        notifier: Optional[NotificationPort] = None,
        store: Optional[PendingConfirmationStore] = None,
        resolver: Optional[EntityResolver] = None,
        settings: Optional[ManagerSettings] = None,
        today: Optional[Callable[[], date]] = None,
        report_permission_denied: bool = False,
    ) -> "Dispatcher":
        broker = ConfirmationBroker(store)
        routes = build_routes(repository, broker=broker, resolver=resolver, settings=settings, today=today)
        return cls(
            routes,
            broker=broker,
            relay=NotificationRelay(notifier),
            report_permission_denied=report_permission_denied,
        )

    @property
    def store(self) -> Optional[PendingConfirmationStore]:
        return self.broker.store

    # -- scanning --

    async def process(self, context: ActionContext) -> List[ActionResult]:
        message = (context.message or "").strip()
        if message.lower().rstrip("!.?, ") in GREETINGS:
            return []

        actor = context.actor
        if not self._valid_actor(actor):
            _log("[Dispatcher] Rejected message: actor is missing id or role")
            return [ActionResult(
                success=False,
                message="User context is incomplete for action processing.",
                error="Missing user role information",
            )]

        results: List[ActionResult] = []
        for route in self.routes:
            result = await self._run_route(route, message, actor)
            if result is not None:
                results.append(result)
        return results

    async def _run_route(self, route: Route, message: str, actor: Actor) -> Optional[ActionResult]:
        if not route.trigger.search(message):
            return None
        if not route.permission(actor):
            return self._denied(route.domain, route.permission, actor)
        try:
            command = route.parser(message)
            if command is None:
                return None
            gate = route.kind_permissions.get(command.kind)
            if gate is not None and not gate(actor):
                return self._denied(f"{route.domain}.{command.kind}", gate, actor)
            outbox = EventOutbox()
            result = await route.manager.execute(command, actor, outbox)
            result = await self.broker.track(result, actor)
            await self.relay.flush(outbox)
            return result
        except Exception as e:
            _log(f"[Dispatcher] {route.domain} route failed: {e}")
            return ActionResult(
                success=False,
                message=f"Something went wrong while handling the {route.domain} part of your request.",
                error=str(e),
            )

    def _denied(self, label: str, permission: Permission, actor: Actor) -> Optional[ActionResult]:
        _log(f"[Dispatcher] {label} skipped: {actor.id} ({actor.role}) fails {permission_name(permission)}")
        if not self.report_permission_denied:
            return None
        return ActionResult(
            success=False,
            message=f"You don't have permission to do that ({label}).",
            error="permission_denied",
        )

    @staticmethod
    def _valid_actor(actor: Optional[Actor]) -> bool:
        return actor is not None and bool(actor.id) and bool(actor.role)

    # -- confirmations --

    async def confirm(
        self,
        actor: Actor,
        payload: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        selection: Optional[Any] = None,
    ) -> ActionResult:
        """Run a confirmed action from its payload or a stored correlation id.

        ``selection`` picks an entry from a disambiguation list, either by
        record id or by 1-based position.
        """
        if not self._valid_actor(actor):
            return ActionResult(
                success=False,
                message="User context is incomplete for action processing.",
                error="Missing user role information",
            )
        if correlation_id:
            if self.store is None:
                return ActionResult(success=False, message=CONFIRM_ERRORS["disabled"], error="disabled")
            pending, error = await self.store.claim(correlation_id, actor.id)
            if pending is None:
                message = CONFIRM_ERRORS.get(error) or f"That confirmation was already {error.replace('already_', '')}."
                return ActionResult(success=False, message=message, error=error)
            payload = dict(pending.payload)
        if not payload or not payload.get("action"):
            return ActionResult(success=False, message="There is nothing to confirm.", error="missing_payload")

        payload = dict(payload)
        if selection is not None:
            payload["selected_id"] = self._selected_id(payload, selection)

        result = await self._run_confirmation(payload, actor)
        if correlation_id:
            await self.store.finish(correlation_id, result.success, result.error)
        return result

    async def _run_confirmation(self, payload: Dict[str, Any], actor: Actor) -> ActionResult:
        action = payload["action"]
        route = self._confirm_index.get(action)
        if route is None:
            return ActionResult(success=False, message=f"Unknown confirmation action: {action}", error="unknown_action")
        if not route.permission(actor):
            _log(f"[Dispatcher] confirm {action} refused for {actor.id} ({actor.role})")
            return ActionResult(success=False, message="You don't have permission to do that.", error="permission_denied")
        kind = route.manager.kind_for(action)
        gate = route.kind_permissions.get(kind)
        if gate is not None and not gate(actor):
            _log(f"[Dispatcher] confirm {action} refused for {actor.id} ({actor.role}): fails {permission_name(gate)}")
            return ActionResult(success=False, message="You don't have permission to do that.", error="permission_denied")
        outbox = EventOutbox()
        result = await route.manager.confirm(payload, actor, outbox)
        result = await self.broker.track(result, actor)
        await self.relay.flush(outbox)
        _log(f"[Dispatcher] confirm {action}: {'ok' if result.success else result.error or 'needs input'}")
        return result

    @staticmethod
    def _selected_id(payload: Dict[str, Any], selection: Any) -> Any:
        candidates = payload.get("candidates") or []
        text = str(selection).strip()
        if text.isdigit() and not any(str(c.get("id")) == text for c in candidates):
            index = int(text) - 1
            if 0 <= index < len(candidates):
                return candidates[index]["id"]
        return selection

    async def reject(self, actor: Actor, correlation_id: str) -> Dict[str, Any]:
        if self.store is None:
            return {"success": False, "error": "disabled"}
        return await self.store.reject(correlation_id, actor.id)
