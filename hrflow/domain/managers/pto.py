"""PTO: time-off requests, balances and approvals."""

from __future__ import annotations

import re
import sys
from datetime import date
from typing import Any, Dict, List, Optional

from hrflow.domain.dates import DATE_CLARIFICATION, DateRange, parse_date_range
from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import full_name


def _log(msg: str):
    print(msg, file=sys.stderr)


PTO_TYPES = ("VACATION", "SICK", "PERSONAL")

NAME = r"([A-Za-z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)"
_PTO_WORDS = r"(?:pto|time\s+off|vacation|leave|days?\s+off)"

_TRIGGER_RE = re.compile(r"\b(?:pto|time\s+off|vacation|leave|days?\s+off)\b|\bsick\b.*\bdays?\b", re.IGNORECASE)
_FOR_NAME_RES = [
    re.compile(rf"(?i:{_PTO_WORDS}\s+(?:request\s+)?(?:for|from))\s+{NAME}"),
    re.compile(rf"(?i:(?:approve|deny|reject|adjust|cancel|submit|request))\s+{NAME}'s\s+(?i:{_PTO_WORDS})"),
    re.compile(rf"(?i:(?:approve|deny|reject|adjust|cancel))\s+{NAME}\s+(?i:{_PTO_WORDS})"),
    re.compile(rf"(?i:balance\s+(?:for|of))\s+{NAME}"),
    re.compile(rf"(?i:(?:give|add\s+\d+\s+days?\s+(?:\w+\s+)?to))\s+{NAME}"),
]
_REASON_RE = re.compile(r"\b(?:because|reason:?)\s+(.+)", re.IGNORECASE)
_DEPARTMENT_RE = re.compile(r"\b(?:for|in)\s+(?:the\s+)?(\w+)\s+(?:department|team)\b", re.IGNORECASE)
_ADJUST_DAYS_RE = re.compile(r"([+-]?\d+(?:\.\d+)?)\s*(?:days?|hours?)", re.IGNORECASE)
_REQUEST_WORDS = (
    "request", "take", "need", "i want", "i'd like", "i would like", "put in", "book", "off",
    "submit", "schedule", "for me", "my pto", "tomorrow", "next week", "monday", "tuesday",
    "wednesday", "thursday", "friday",
)
_NOT_NAMES = {"me", "my", "all", "everyone", "the", "a", "him", "her", "them", "pto", "time", "vacation"}


def detect_type(lower: str) -> str:
    if "sick" in lower:
        return "SICK"
    if "personal" in lower:
        return "PERSONAL"
    return "VACATION"


def _employee_name(message: str) -> Optional[str]:
    for pattern in _FOR_NAME_RES:
        m = pattern.search(message)
        name = re.sub(r"'s$", "", m.group(1).strip()) if m else ""
        if name and name.lower() not in _NOT_NAMES:
            return name
    return None


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a PTO Command, or None."""
    if not _TRIGGER_RE.search(message):
        return None
    lower = message.lower()
    employee = _employee_name(message)
    reason = _REASON_RE.search(message)
    reason_text = reason.group(1).strip() if reason else None

    if "approve" in lower:
        if re.search(r"\ball\b", lower):
            dept = _DEPARTMENT_RE.search(message)
            return Command("pto", "bulk_approve_pto", {"department": dept.group(1) if dept else None})
        return Command("pto", "approve_pto", {"employee": employee, "override": "override" in lower})

    if "deny" in lower or "reject" in lower or "decline" in lower:
        return Command("pto", "deny_pto", {"employee": employee, "reason": reason_text})

    if "balance" in lower and not any(w in lower for w in ("adjust", "add", "remove", "deduct", "set")):
        return Command("pto", "pto_balance", {"employee": employee})

    if "adjust" in lower or (re.search(r"\b(?:add|give|deduct|remove)\b", lower) and re.search(r"\bdays?\b", lower)):
        days = _ADJUST_DAYS_RE.search(message)
        amount = float(days.group(1)) if days else None
        if amount is not None and re.search(r"\b(?:deduct|remove|subtract)\b", lower):
            amount = -abs(amount)
        return Command("pto", "adjust_balance", {
            "employee": employee,
            "days": amount,
            "type": detect_type(lower),
        })

    if "cancel" in lower:
        return Command("pto", "cancel_pto", {})

    if employee and ("submit" in lower or "request" in lower) and " for " in lower:
        return Command("pto", "submit_pto_for", {
            "employee": employee,
            "text": message,
            "type": detect_type(lower),
            "reason": reason_text,
        })

    if any(w in lower for w in _REQUEST_WORDS):
        return Command("pto", "request_pto", {
            "text": message,
            "type": detect_type(lower),
            "reason": reason_text,
        })
    return None


class PTOManager(DomainManager):
    domain = "pto"
    confirm_actions = {
        "approve_pto": "_apply_approve",
        "deny_pto": "_apply_deny",
        "confirm_bulk_approve": "_apply_bulk_approve",
        "confirm_adjust_balance": "_apply_adjust_balance",
        "submit_pto_for": "_apply_submit_for",
    }
    confirm_kinds = {
        "confirm_bulk_approve": "bulk_approve_pto",
        "confirm_adjust_balance": "adjust_balance",
    }

    # -- balances --

    def _balance(self, employee: Optional[Dict[str, Any]], pto_type: str) -> float:
        balances = (employee or {}).get("pto_balance") or {}
        return float(balances.get(pto_type, self.settings.default_pto_days))

    async def _set_balance(self, employee: Dict[str, Any], pto_type: str, value: float) -> None:
        balances = dict(employee.get("pto_balance") or {})
        balances[pto_type] = value
        employee["pto_balance"] = balances
        await self.repo.update("employees", employee["id"], {"pto_balance": balances})

    async def _requests_of(self, employee_id: str, statuses=("PENDING",)) -> List[Dict[str, Any]]:
        return [
            r for r in await self.repo.list("pto_requests")
            if r.get("employee_id") == employee_id and r.get("status") in statuses
        ]

    # -- self-service --

    async def _do_request_pto(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        span = parse_date_range(data.get("text", ""), self.today())
        if span is None:
            return self._clarify(DATE_CLARIFICATION)
        employee = await self.repo.get("employees", actor.id)
        if employee is None:
            employee = {"id": actor.id, "first_name": actor.first_name, "last_name": actor.last_name, "email": actor.email}
        return await self._create_request(employee, span, data.get("type", "VACATION"), data.get("reason"), actor, outbox)

    async def _create_request(
        self,
        employee: Dict[str, Any],
        span: DateRange,
        pto_type: str,
        reason: Optional[str],
        actor: Actor,
        outbox: EventOutbox,
    ) -> ActionResult:
        if span.start < self.today():
            return self._clarify(f"{span.start.isoformat()} is in the past. Which dates did you mean?")
        days = span.business_days
        if days == 0:
            return self._clarify("That range has no business days in it. Which days do you need off?")
        available = self._balance(employee, pto_type)
        if days > available:
            return ActionResult(
                success=False,
                message=f"That request needs {days} day(s) of {pto_type} but only {available:g} remain.",
                error="insufficient_balance",
            )
        for existing in await self._requests_of(employee["id"], ("PENDING", "APPROVED")):
            if existing["start_date"] <= span.end.isoformat() and existing["end_date"] >= span.start.isoformat():
                return ActionResult(
                    success=False,
                    message=f"That overlaps an existing {existing['status'].lower()} request ({existing['start_date']} to {existing['end_date']}).",
                    error="overlapping_request",
                )
        reason = reason or ("Sick leave" if pto_type == "SICK" else "Personal time off")
        request = await self.repo.create("pto_requests", {
            "employee_id": employee["id"],
            "start_date": span.start.isoformat(),
            "end_date": span.end.isoformat(),
            "business_days": days,
            "type": pto_type,
            "reason": reason,
            "status": "PENDING",
            "submitted_by": actor.id,
            "created_at": now_iso(),
        })
        manager = await self.repo.get("employees", employee["manager_id"]) if employee.get("manager_id") else None
        outbox.emit(
            "pto.requested",
            (manager or {}).get("email") or self.settings.hr_email,
            f"PTO request from {full_name(employee)}",
            f"{full_name(employee)} requested {pto_type} from {request['start_date']} to {request['end_date']} ({days} business days).",
            request_id=request["id"],
        )
        _log(f"[PTO] request {request['id']} for {employee['id']} ({span.start} - {span.end})")
        plural = "s" if days != 1 else ""
        return ActionResult(
            success=True,
            message=(
                f"PTO request submitted for {span.start.strftime('%b %d, %Y')} - {span.end.strftime('%b %d, %Y')} "
                f"({days} business day{plural}, {pto_type}). Your manager will be notified."
            ),
            data={"request": request},
        )

    async def _do_pto_balance(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee = await self.repo.get("employees", actor.id)
        balances = {t: self._balance(employee, t) for t in PTO_TYPES}
        pending = await self._requests_of(actor.id)
        lines = ", ".join(f"{t.title()}: {v:g}" for t, v in balances.items())
        return ActionResult(
            success=True,
            message=f"Your PTO balance is {lines}. Pending requests: {len(pending)}.",
            data={"balances": balances, "pending": len(pending)},
        )

    async def _do_cancel_pto(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        today = self.today().isoformat()
        upcoming = [
            r for r in await self._requests_of(actor.id, ("PENDING", "APPROVED"))
            if r["start_date"] >= today
        ]
        if not upcoming:
            return ActionResult(success=False, message="You have no upcoming PTO requests to cancel.", error="not_found")
        request = max(upcoming, key=lambda r: r.get("created_at", ""))
        await self.repo.update("pto_requests", request["id"], {"status": "CANCELLED", "updated_at": now_iso()})
        if request["status"] == "APPROVED":
            employee = await self.repo.get("employees", actor.id)
            if employee is not None:
                await self._set_balance(employee, request["type"], self._balance(employee, request["type"]) + request["business_days"])
        return ActionResult(
            success=True,
            message=f"Cancelled your PTO request for {request['start_date']} to {request['end_date']}.",
            data={"request_id": request["id"]},
        )

    # -- approvals --

    async def _pending_for(self, data, action: str, **fields):
        """Find the pending request a manager means. Returns (request, result)."""
        if not data.get("employee"):
            pending = await self._requests_of_all()
            if not pending:
                return None, ActionResult(success=False, message="There are no pending PTO requests.")
            if len(pending) > 1:
                names = []
                for r in pending:
                    emp = await self.repo.get("employees", r["employee_id"])
                    names.append(full_name(emp) if emp else r["employee_id"])
                return None, self._clarify("Whose request do you mean? Pending: " + ", ".join(names) + ".")
            return pending[0], None
        employee, result = await self._resolve_person("employees", data["employee"], action, "employee", **fields)
        if employee is None:
            return None, result
        requests = await self._requests_of(employee["id"])
        if not requests:
            return None, ActionResult(success=False, message=f"{full_name(employee)} has no pending PTO requests.")
        return requests[0], None

    async def _requests_of_all(self) -> List[Dict[str, Any]]:
        return [r for r in await self.repo.list("pto_requests") if r.get("status") == "PENDING"]

    async def _request_from(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if payload.get("request_id"):
            return await self.repo.get("pto_requests", payload["request_id"])
        employee = await self._record_from("employees", payload, "employee_id")
        if employee is None:
            return None
        requests = await self._requests_of(employee["id"])
        return requests[0] if requests else None

    async def _do_approve_pto(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        request, result = await self._pending_for(data, "approve_pto", override=data.get("override", False))
        if request is None:
            return result
        return await self._apply_approve({"request_id": request["id"], "override": data.get("override", False)}, actor, outbox)

    async def _apply_approve(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        request = await self._request_from(payload)
        if request is None or request.get("status") != "PENDING":
            return ActionResult(success=False, message="That PTO request is no longer pending.", error="not_pending")
        employee = await self.repo.get("employees", request["employee_id"])
        remaining = self._balance(employee, request["type"]) - request["business_days"]
        if remaining < 0 and not payload.get("override"):
            return ActionResult(
                success=False,
                message=(
                    f"Approving would leave a {request['type']} balance of {remaining:g} days. "
                    "Say \"approve with override\" to approve anyway."
                ),
                error="insufficient_balance",
            )
        await self.repo.update("pto_requests", request["id"], {
            "status": "APPROVED",
            "reviewed_by": actor.id,
            "reviewed_at": now_iso(),
        })
        name = request["employee_id"]
        if employee is not None:
            await self._set_balance(employee, request["type"], remaining)
            name = full_name(employee)
            outbox.emit(
                "pto.approved",
                employee.get("email", ""),
                "Your PTO request was approved",
                f"Your {request['type'].lower()} from {request['start_date']} to {request['end_date']} has been approved.",
                request_id=request["id"],
            )
        return ActionResult(
            success=True,
            message=f"Approved PTO for {name} from {request['start_date']} to {request['end_date']}.",
            data={"request_id": request["id"], "employee_id": request["employee_id"], "remaining": remaining},
        )

    async def _do_bulk_approve_pto(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        pending = await self._requests_of_all()
        if data.get("department"):
            wanted = data["department"].lower()
            kept = []
            for r in pending:
                emp = await self.repo.get("employees", r["employee_id"])
                if emp and str(emp.get("department", "")).lower() == wanted:
                    kept.append(r)
            pending = kept
        if not pending:
            return ActionResult(success=False, message="There are no pending PTO requests to approve.")
        return self.broker.propose(
            f"This will approve {len(pending)} pending PTO request(s).",
            "confirm_bulk_approve",
            request_ids=[r["id"] for r in pending],
        )

    async def _apply_bulk_approve(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        approved, skipped = [], []
        for request_id in payload.get("request_ids", []):
            result = await self._apply_approve({"request_id": request_id}, actor, outbox)
            (approved if result.success else skipped).append(request_id)
        return ActionResult(
            success=bool(approved),
            message=f"Approved {len(approved)} PTO request(s)" + (f", skipped {len(skipped)}." if skipped else "."),
            data={"approved": approved, "skipped": skipped},
        )

    async def _do_deny_pto(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        request, result = await self._pending_for(data, "deny_pto", reason=data.get("reason"))
        if request is None:
            return result
        return await self._apply_deny({"request_id": request["id"], "reason": data.get("reason")}, actor, outbox)

    async def _apply_deny(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        request = await self._request_from(payload)
        if request is None or request.get("status") != "PENDING":
            return ActionResult(success=False, message="That PTO request is no longer pending.", error="not_pending")
        reason = payload.get("reason") or "No reason given"
        await self.repo.update("pto_requests", request["id"], {
            "status": "DENIED",
            "denial_reason": reason,
            "reviewed_by": actor.id,
            "reviewed_at": now_iso(),
        })
        employee = await self.repo.get("employees", request["employee_id"])
        if employee is not None:
            outbox.emit(
                "pto.denied",
                employee.get("email", ""),
                "Your PTO request was denied",
                f"Your request for {request['start_date']} to {request['end_date']} was denied. Reason: {reason}",
                request_id=request["id"],
            )
        name = full_name(employee) if employee else request["employee_id"]
        return ActionResult(
            success=True,
            message=f"Denied PTO for {name} ({reason}).",
            data={"request_id": request["id"], "reason": reason},
        )

    # -- admin adjustments --

    async def _do_adjust_balance(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("employee"):
            return self._clarify("Whose PTO balance should I adjust?")
        if data.get("days") is None:
            return self._clarify("How many days should I add or remove?")
        employee, result = await self._resolve_person(
            "employees", data["employee"], "confirm_adjust_balance", "employee",
            days=data["days"], type=data.get("type", "VACATION"),
        )
        if employee is None:
            return result
        return await self._apply_adjust_balance(
            {"employee_id": employee["id"], "days": data["days"], "type": data.get("type", "VACATION")}, actor, outbox
        )

    async def _apply_adjust_balance(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee = await self._record_from("employees", payload, "employee_id")
        if employee is None:
            return ActionResult(success=False, message="That employee no longer exists.", error="not_found")
        pto_type = payload.get("type") or "VACATION"
        previous = self._balance(employee, pto_type)
        updated = previous + float(payload["days"])
        await self._set_balance(employee, pto_type, updated)
        return ActionResult(
            success=True,
            message=f"Adjusted {full_name(employee)}'s {pto_type} balance from {previous:g} to {updated:g} days.",
            data={"employee_id": employee["id"], "type": pto_type, "previous": previous, "balance": updated},
        )

    async def _do_submit_pto_for(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        span = parse_date_range(data.get("text", ""), self.today())
        if span is None:
            return self._clarify(f"Which dates should I submit for {data['employee']}?")
        fields = {
            "start_date": span.start.isoformat(),
            "end_date": span.end.isoformat(),
            "type": data.get("type", "VACATION"),
            "reason": data.get("reason"),
        }
        employee, result = await self._resolve_person("employees", data["employee"], "submit_pto_for", "employee", **fields)
        if employee is None:
            return result
        return await self._apply_submit_for({"employee_id": employee["id"], **fields}, actor, outbox)

    async def _apply_submit_for(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee = await self._record_from("employees", payload, "employee_id")
        if employee is None:
            return ActionResult(success=False, message="That employee no longer exists.", error="not_found")
        span = DateRange(date.fromisoformat(payload["start_date"]), date.fromisoformat(payload["end_date"]))
        return await self._create_request(employee, span, payload.get("type") or "VACATION", payload.get("reason"), actor, outbox)

