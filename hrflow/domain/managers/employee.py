"""Employee records: onboarding, updates, terminations, notes."""

from __future__ import annotations

import re
import sys
import uuid
from collections import Counter
from typing import Any, Dict, Optional

from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import full_name


def _log(msg: str):
    print(msg, file=sys.stderr)


NAME = r"([A-Za-z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)"
EMAIL_RE = re.compile(r"[\w.%+-]+@[\w.-]+\.[A-Za-z]{2,}")

ROLES = {
    "true admin": "TRUE_ADMIN",
    "hr manager": "HR_MANAGER",
    "admin": "ADMIN",
    "manager": "MANAGER",
    "employee": "EMPLOYEE",
}

_CREATE_RE = re.compile(
    rf"(?i:\b(?:add|create|hire|onboard))\s+(?:(?i:an?)\s+)?(?:(?i:new)\s+)?"
    rf"(?:(?i:employee|user|person|hire)\s+)?(?:(?i:named?|called)\s+)?{NAME}"
)
_TERMINATE_RE = re.compile(
    rf"(?i:\b(?:terminate|fire|deactivate|offboard|let\s+go\s+of|delete\s+employee|remove\s+employee))\s+{NAME}"
)
_RESET_RE = re.compile(rf"(?i:\breset\s+)(?:(?i:the\s+)?(?i:password\s+for)\s+)?{NAME}(?:'s)?(?:\s+(?i:password))?")
_TRANSFER_RE = re.compile(rf"(?i:\b(?:transfer|move))\s+(?:(?i:employee)\s+)?{NAME}\s+(?i:to|into)\b")
_UPDATE_RES = [
    re.compile(rf"(?i:\b(?:update|change|edit|set))\s+{NAME}'s\b"),
    re.compile(rf"(?i:\b(?:update|change|edit))\s+(?i:employee)\s+{NAME}"),
]
_NOTE_SUBJECT_RE = re.compile(rf"(?i:\bnote\s+(?:for|about|on|to))\s+(?:(?i:employee|candidate)\s+)?{NAME}")
_NOTE_BODY_RE = re.compile(r"(?:saying|that says|that|:)\s*(.+)$", re.IGNORECASE)
_DEPARTMENT_TARGET_RE = re.compile(r"\b(?:to|into)\s+(?:the\s+)?([A-Za-z]+)\s+(?:department|team)\b", re.IGNORECASE)
_DEPARTMENT_RE = re.compile(r"\b(?:in|to|into)\s+(?:the\s+)?([A-Z][A-Za-z]+)(?:\s+(?:department|team))?")
_DEPARTMENT_FIELD_RE = re.compile(r"\bdepartment\s+(?:to\s+)?([A-Za-z]+)", re.IGNORECASE)
_POSITION_RE = re.compile(r"\b(?:as\s+(?:an?\s+)?|title\s+(?:to\s+)?|position\s+(?:to\s+)?)([A-Z][\w-]*(?:\s+[A-Z][\w-]*)*)")
_SALARY_RE = re.compile(r"\bsalary\s+(?:to\s+)?\$?([\d,]+)", re.IGNORECASE)
_PHONE_RE = re.compile(r"\d{3}[-.\s]?\d{3}[-.\s]?\d{4}")
_ROLE_RE = re.compile(r"\b(?:as|role\s+(?:to\s+)?)\s*(?:an?\s+)?(true admin|hr manager|admin|manager|employee)\b", re.IGNORECASE)
_REASON_RE = re.compile(r"\b(?:because|reason:?)\s+(.+)", re.IGNORECASE)
_STATS_RE = re.compile(r"\b(?:how many|count|total|headcount)\b", re.IGNORECASE)
_OTHER_AREAS_RE = re.compile(
    r"\b(?:contracts?|nda|territor(?:y|ies)|tools?|inventory|equipment|documents?|reviews?|pto|vacation|time\s+off)\b",
    re.IGNORECASE,
)
_STATS_DEPT_RE = re.compile(r"\bin\s+(?:the\s+)?([A-Za-z]+)(?:\s+(?:department|team))?\b", re.IGNORECASE)

_NOT_NAMES = {"a", "an", "the", "new", "employee", "employees", "user", "him", "her", "them", "my", "me", "password"}


def _name(m) -> Optional[str]:
    if not m:
        return None
    value = re.sub(r"'s$", "", m.group(1).strip())
    if value.lower() in _NOT_NAMES:
        return None
    return value


def _email(message: str) -> Optional[str]:
    m = EMAIL_RE.search(message)
    return m.group(0) if m else None


def parse_command(message: str) -> Optional[Command]:
    """Map free text to an employee Command, or None."""
    lower = message.lower()

    if "note" in lower and re.search(r"\b(?:add|create|make|record|write|leave)\b", lower):
        body = _NOTE_BODY_RE.search(message)
        return Command("employee", "add_note", {
            "subject": _name(_NOTE_SUBJECT_RE.search(message)),
            "subject_type": "candidate" if "candidate" in lower else "employee",
            "content": body.group(1).strip() if body else None,
        })

    # handled by their own areas
    if _OTHER_AREAS_RE.search(message):
        return None

    if _STATS_RE.search(message) and re.search(r"\b(?:employees?|staff|people|headcount)\b", lower):
        dept = _STATS_DEPT_RE.search(message)
        return Command("employee", "employee_stats", {"department": dept.group(1) if dept else None})

    if "reset" in lower and "password" in lower:
        return Command("employee", "reset_password", {
            "employee": _name(_RESET_RE.search(message)),
            "email": _email(message),
        })

    if re.search(r"\b(?:terminate|fire|deactivate|offboard|let go)\b", lower) or re.search(
        r"\b(?:delete|remove)\s+employee\b", lower
    ):
        reason = _REASON_RE.search(message)
        return Command("employee", "terminate_employee", {
            "employee": _name(_TERMINATE_RE.search(message)),
            "email": _email(message),
            "reason": reason.group(1).strip() if reason else None,
        })

    if "transfer" in lower or ("move" in lower and re.search(r"\b(?:department|team)\b", lower)):
        dept = _DEPARTMENT_TARGET_RE.search(message) or _DEPARTMENT_RE.search(message)
        return Command("employee", "transfer_employee", {
            "employee": _name(_TRANSFER_RE.search(message)),
            "email": _email(message),
            "department": dept.group(1) if dept else None,
        })

    if re.search(r"\b(?:employee|hire)\b", lower) and re.search(r"\b(?:add|create|hire|onboard|new)\b", lower):
        m = _CREATE_RE.search(message)
        role = _ROLE_RE.search(message)
        dept = _DEPARTMENT_FIELD_RE.search(message) or _DEPARTMENT_RE.search(message)
        position = _POSITION_RE.search(message)
        name = _name(m)
        first, _, last = (name or "").partition(" ")
        return Command("employee", "create_employee", {
            "first_name": first,
            "last_name": last,
            "email": _email(message),
            "role": ROLES[role.group(1).lower()] if role else "EMPLOYEE",
            "department": dept.group(1) if dept else None,
            "position": position.group(1) if position and not role else None,
        })

    if re.search(r"\b(?:update|change|edit)\b", lower) and re.search(r"\b(?:employee|user)\b|'s\b", lower):
        name = None
        for pattern in _UPDATE_RES:
            name = _name(pattern.search(message))
            if name:
                break
        changes: Dict[str, Any] = {}
        email = _email(message)
        if email and name:
            changes["email"] = email
        dept = _DEPARTMENT_FIELD_RE.search(message)
        if dept:
            changes["department"] = dept.group(1)
        role = re.search(r"\brole\s+(?:to\s+)?(true admin|hr manager|admin|manager|employee)\b", lower)
        if role:
            changes["role"] = ROLES[role.group(1)]
        position = _POSITION_RE.search(message)
        if position:
            changes["position"] = position.group(1)
        salary = _SALARY_RE.search(message)
        if salary:
            changes["salary"] = int(salary.group(1).replace(",", ""))
        phone = _PHONE_RE.search(message)
        if phone:
            changes["phone"] = phone.group(0)
        return Command("employee", "update_employee", {
            "employee": name,
            "email": None if name else email,
            "changes": changes,
        })

    return None


class EmployeeManager(DomainManager):
    domain = "employee"
    confirm_actions = {
        "create_employee": "_apply_create_employee",
        "confirm_termination": "_apply_terminate",
        "confirm_employee_update": "_apply_update",
        "confirm_password_reset": "_apply_reset_password",
        "confirm_transfer": "_apply_transfer",
        "confirm_add_note": "_apply_add_note",
    }

    async def _find(self, data, action: str, **fields):
        """Resolve the employee a command refers to, by email or by name."""
        if data.get("email"):
            wanted = data["email"].lower()
            for record in await self.repo.list("employees"):
                if str(record.get("email", "")).lower() == wanted:
                    return record, None
            return None, self._not_found("employee", data["email"])
        if not data.get("employee"):
            return None, self._clarify("Which employee do you mean? Give me a name or email address.")
        return await self._resolve_person("employees", data["employee"], action, "employee", **fields)

    # -- create --

    async def _do_create_employee(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("first_name"):
            return self._clarify("What is the new employee's name?")
        email = data.get("email") or (
            f"{data['first_name']}.{data.get('last_name') or 'new'}@{self.settings.email_domain}".lower()
        )
        summary = (
            f"Create employee {data['first_name']} {data.get('last_name', '')}".rstrip()
            + f" ({email}) as {data.get('role') or 'EMPLOYEE'}"
            + (f" in {data['department']}" if data.get("department") else "")
            + "."
        )
        return self.broker.propose(
            summary,
            "create_employee",
            first_name=data["first_name"],
            last_name=data.get("last_name", ""),
            email=email,
            role=data.get("role") or "EMPLOYEE",
            department=data.get("department"),
            position=data.get("position"),
        )

    async def _apply_create_employee(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        email = str(payload.get("email") or "").lower()
        if not payload.get("first_name") or not email:
            return self._clarify("I need at least a first name and an email address to create an employee.")
        for record in await self.repo.list("employees"):
            if str(record.get("email", "")).lower() == email:
                return ActionResult(
                    success=False,
                    message=f"An employee with email {email} already exists.",
                    error="duplicate_email",
                )
        employee = await self.repo.create("employees", {
            "first_name": payload["first_name"],
            "last_name": payload.get("last_name", ""),
            "email": email,
            "role": payload.get("role") or "EMPLOYEE",
            "department": payload.get("department") or "",
            "position": payload.get("position") or "",
            "is_active": True,
            "pto_balance": {"VACATION": self.settings.default_pto_days},
            "password_reset_token": uuid.uuid4().hex,
            "created_by": actor.id,
            "created_at": now_iso(),
        })
        outbox.emit(
            "employee.created",
            email,
            "Welcome aboard!",
            f"Hi {employee['first_name']}, your account has been created. Use the link in this email to set your password.",
            employee_id=employee["id"],
        )
        _log(f"[Employee] {employee['id']} created by {actor.id}")
        return ActionResult(
            success=True,
            message=f"Created employee {full_name(employee)} ({email}). A welcome email is on its way.",
            data={"employee": {k: v for k, v in employee.items() if k != "password_reset_token"}},
        )

    # -- terminate --

    async def _do_terminate_employee(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee, result = await self._find(data, "confirm_termination", reason=data.get("reason"))
        if employee is None:
            return result
        if employee["id"] == actor.id:
            return ActionResult(success=False, message="You can't terminate your own account.", error="self_termination")
        return self.broker.propose(
            f"Terminate {full_name(employee)} ({employee.get('email', '')})? Their access will be deactivated "
            "and equipment return reminders will start.",
            "confirm_termination",
            employee_id=employee["id"],
            employee_name=full_name(employee),
            reason=data.get("reason"),
        )

    async def _apply_terminate(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee = await self._record_from("employees", payload, "employee_id")
        if employee is None:
            return ActionResult(success=False, message="That employee no longer exists.", error="not_found")
        if not employee.get("is_active", True):
            return ActionResult(success=False, message=f"{full_name(employee)} is already inactive.", error="already_inactive")
        today = self.today().isoformat()
        await self.repo.update("employees", employee["id"], {
            "is_active": False,
            "status": "TERMINATED",
            "termination_date": today,
            "termination_reason": payload.get("reason") or "",
            "updated_at": now_iso(),
        })
        reminder = await self.repo.create("termination_reminders", {
            "employee_id": employee["id"],
            "employee_name": full_name(employee),
            "employee_email": employee.get("email", ""),
            "termination_date": today,
            "equipment_return_scheduled": False,
            "equipment_returned": False,
            "return_form_signed": False,
            "reminders_sent": [],
        })
        outbox.emit(
            "employee.terminated",
            self.settings.hr_email,
            f"Employee terminated: {full_name(employee)}",
            f"{full_name(employee)} was terminated by {actor.display_name} effective {today}.",
            employee_id=employee["id"],
        )
        return ActionResult(
            success=True,
            message=f"{full_name(employee)} has been terminated and their access deactivated.",
            data={"employee_id": employee["id"], "reminder_id": reminder["id"]},
        )

    # -- update / transfer / password --

    async def _do_update_employee(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        changes = data.get("changes") or {}
        if not changes:
            return self._clarify("What would you like to change? For example department, role, title, salary or phone.")
        employee, result = await self._find(data, "confirm_employee_update", changes=changes)
        if employee is None:
            return result
        return await self._apply_update({"employee_id": employee["id"], "changes": changes}, actor, outbox)

    async def _apply_update(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee = await self._record_from("employees", payload, "employee_id")
        if employee is None:
            return ActionResult(success=False, message="That employee no longer exists.", error="not_found")
        changes = dict(payload.get("changes") or {})
        await self.repo.update("employees", employee["id"], {**changes, "updated_at": now_iso()})
        listed = ", ".join(f"{k} to {v}" for k, v in changes.items())
        return ActionResult(
            success=True,
            message=f"Updated {full_name(employee)}: {listed}.",
            data={"employee_id": employee["id"], "changes": changes},
        )

    async def _do_transfer_employee(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("department"):
            return self._clarify("Which department should they move to?")
        employee, result = await self._find(data, "confirm_transfer", department=data["department"])
        if employee is None:
            return result
        return await self._apply_transfer({"employee_id": employee["id"], "department": data["department"]}, actor, outbox)

    async def _apply_transfer(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee = await self._record_from("employees", payload, "employee_id")
        if employee is None:
            return ActionResult(success=False, message="That employee no longer exists.", error="not_found")
        previous = employee.get("department", "")
        await self.repo.update("employees", employee["id"], {"department": payload["department"], "updated_at": now_iso()})
        outbox.emit(
            "employee.transferred",
            employee.get("email", ""),
            "Department change",
            f"Hi {employee.get('first_name', '')}, you have been moved to {payload['department']}.",
            employee_id=employee["id"],
        )
        return ActionResult(
            success=True,
            message=f"Transferred {full_name(employee)} from {previous or 'no department'} to {payload['department']}.",
            data={"employee_id": employee["id"], "previous": previous, "department": payload["department"]},
        )

    async def _do_reset_password(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee, result = await self._find(data, "confirm_password_reset")
        if employee is None:
            return result
        return await self._apply_reset_password({"employee_id": employee["id"]}, actor, outbox)

    async def _apply_reset_password(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee = await self._record_from("employees", payload, "employee_id")
        if employee is None:
            return ActionResult(success=False, message="That employee no longer exists.", error="not_found")
        await self.repo.update("employees", employee["id"], {
            "password_reset_token": uuid.uuid4().hex,
            "password_reset_requested_at": now_iso(),
        })
        outbox.emit(
            "employee.password_reset",
            employee.get("email", ""),
            "Password reset",
            "A password reset was requested for your account. Follow the link in this email to choose a new one.",
            employee_id=employee["id"],
        )
        return ActionResult(
            success=True,
            message=f"Sent a password reset link to {full_name(employee)} ({employee.get('email', '')}).",
            data={"employee_id": employee["id"]},
        )

    # -- notes / stats --

    async def _do_add_note(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("subject"):
            return self._clarify("Who is the note about?")
        if not data.get("content"):
            return self._clarify(f"What should the note about {data['subject']} say?")
        entity = "candidates" if data.get("subject_type") == "candidate" else "employees"
        record, result = await self._resolve_person(
            entity, data["subject"], "confirm_add_note", data.get("subject_type", "employee"),
            subject_type=data.get("subject_type", "employee"), content=data["content"],
        )
        if record is None:
            return result
        return await self._apply_add_note(
            {"subject_id": record["id"], "subject_type": data.get("subject_type", "employee"), "content": data["content"]},
            actor,
            outbox,
        )

    async def _apply_add_note(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        entity = "candidates" if payload.get("subject_type") == "candidate" else "employees"
        record = await self._record_from(entity, payload, "subject_id")
        if record is None:
            return ActionResult(success=False, message="I couldn't find who that note is about.", error="not_found")
        note = await self.repo.create("notes", {
            "subject_type": payload.get("subject_type", "employee"),
            "subject_id": record["id"],
            "content": payload["content"],
            "author_id": actor.id,
            "created_at": now_iso(),
        })
        return ActionResult(
            success=True,
            message=f"Added a note to {full_name(record)}'s record.",
            data={"note": note},
        )

    async def _do_employee_stats(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        employees = await self.repo.list("employees")
        if data.get("department"):
            wanted = data["department"].lower()
            employees = [e for e in employees if str(e.get("department", "")).lower() == wanted]
        active = [e for e in employees if e.get("is_active", True)]
        by_department = Counter(e.get("department") or "Unassigned" for e in active)
        by_role = Counter(e.get("role") or "EMPLOYEE" for e in active)
        scope = f" in {data['department']}" if data.get("department") else ""
        return ActionResult(
            success=True,
            message=f"There are {len(active)} active employee(s){scope} ({len(employees) - len(active)} inactive).",
            data={
                "total": len(employees),
                "active": len(active),
                "by_department": dict(by_department),
                "by_role": dict(by_role),
            },
        )
