"""Performance reviews: creation, completion, cycles and reminders."""

from __future__ import annotations

import re
from collections import Counter
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from hrflow.domain.dates import find_date_mentions, parse_natural_date
from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import full_name

NAME = r"([A-Za-z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)"

REVIEW_TYPES = ("ANNUAL", "QUARTERLY", "PROBATION", "IMPROVEMENT", "PROJECT")
OPEN_STATUSES = ("SCHEDULED", "IN_PROGRESS")
SINGLE_DUE_DAYS = 14
CYCLE_DUE_DAYS = 30

_FOR_RE = re.compile(rf"(?i:\b(?:review|evaluation)s?\s+(?:for|of|with))\s+{NAME}")
_POSSESSIVE_RE = re.compile(r"\b([A-Z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)'s\s+(?:\w+\s+)?review")
_COMPLETE_RE = re.compile(rf"(?i:\b(?:complete|finish|submit|close))\s+(?:(?i:the)\s+)?{NAME}\s+(?i:review)")
_RATING_RE = re.compile(r"\b(?:rating|rated|rate|score)\s*(?:of|:)?\s*([1-5])\b|\b([1-5])\s*(?:/\s*5|out\s+of\s+5|stars?)", re.IGNORECASE)
_FEEDBACK_RE = re.compile(r"\b(?:feedback|comments?|notes?):\s*(.+)$", re.IGNORECASE)
_DEPARTMENT_RE = re.compile(r"\b(?:in|for)\s+(?:the\s+)?([A-Z][\w&]*(?:\s+[A-Z][\w&]*)*)\s+(?:department|team)")
_BULK_RE = re.compile(r"\b(?:all|every(?:one|body)?|each|whole)\b", re.IGNORECASE)
_NOT_NAMES = {"all", "everyone", "everybody", "the", "a", "an", "my", "team", "each", "annual", "quarterly"}


def review_type(lower: str) -> str:
    if "quarter" in lower:
        return "QUARTERLY"
    if "probation" in lower:
        return "PROBATION"
    if "improvement" in lower or re.search(r"\bpip\b", lower):
        return "IMPROVEMENT"
    if "project" in lower:
        return "PROJECT"
    return "ANNUAL"


def _name(m) -> Optional[str]:
    if not m:
        return None
    value = re.sub(r"'s$", "", m.group(1).strip())
    return None if value.lower() in _NOT_NAMES else value


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a review Command, or None."""
    lower = message.lower()
    if not re.search(r"\b(?:reviews?|evaluations?|appraisals?)\b", lower):
        return None
    mentions = find_date_mentions(message)
    when = mentions[0] if mentions else None
    department = _DEPARTMENT_RE.search(message)
    department = department.group(1) if department else None

    if re.search(r"\bremind(?:er|ers)?\b", lower):
        return Command("review", "send_reminders", {})

    if "report" in lower or "summary" in lower or "stats" in lower:
        return Command("review", "generate_reports", {})

    if re.search(r"\b(?:complete|finish|submit|close)\b", lower):
        rating = _RATING_RE.search(message)
        feedback = _FEEDBACK_RE.search(message)
        person = _name(_COMPLETE_RE.search(message)) or _name(_POSSESSIVE_RE.search(message)) or _name(_FOR_RE.search(message))
        return Command("review", "complete_review", {
            "employee": person,
            "rating": int(rating.group(1) or rating.group(2)) if rating else None,
            "feedback": feedback.group(1).strip() if feedback else None,
        })

    bulk = bool(_BULK_RE.search(message)) or department is not None
    if bulk and re.search(r"\bschedule\b", lower):
        return Command("review", "schedule_reviews", {
            "type": review_type(lower), "department": department, "when": when, "next_week": "next week" in lower,
        })
    if bulk:
        return Command("review", "bulk_create", {"type": review_type(lower), "department": department})

    if re.search(r"\b(?:create|start|schedule|set\s+up|add|new|open)\b", lower):
        return Command("review", "create_review", {
            "employee": _name(_FOR_RE.search(message)) or _name(_POSSESSIVE_RE.search(message)),
            "type": review_type(lower),
            "when": when,
            "next_week": "next week" in lower,
        })

    return None


class ReviewManager(DomainManager):
    domain = "review"
    confirm_actions = {
        "confirm_create_review": "_apply_create",
        "confirm_complete_review": "_apply_complete",
        "confirm_bulk_create_reviews": "_apply_bulk_create",
    }

    def _due(self, data: Dict[str, Any], default_days: int) -> date:
        when = data.get("when")
        due = parse_natural_date(when, self.today(), data.get("next_week", False)) if when else None
        return due or self.today() + timedelta(days=default_days)

    async def _open_reviews(self) -> List[Dict[str, Any]]:
        return [r for r in await self.repo.list("reviews") if r.get("status") in OPEN_STATUSES]

    async def _targets(self, department: Optional[str]) -> List[Dict[str, Any]]:
        employees = [e for e in await self.repo.list("employees") if e.get("is_active", True)]
        if department:
            employees = [e for e in employees if str(e.get("department", "")).lower() == department.lower()]
        return employees

    # -- single reviews --

    async def _do_create_review(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("employee"):
            return self._clarify("Who is the review for?")
        kind = data.get("type") or "ANNUAL"
        due = self._due(data, SINGLE_DUE_DAYS).isoformat()
        person, result = await self._resolve_person(
            "employees", data["employee"], "confirm_create_review", "employee", type=kind, due_date=due
        )
        if person is None:
            return result
        return await self._apply_create({"employee_id": person["id"], "type": kind, "due_date": due}, actor, outbox)

    async def _apply_create(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        person = await self._record_from("employees", payload, "employee_id")
        if person is None:
            return ActionResult(success=False, message="That employee no longer exists.", error="not_found")
        kind = payload.get("type", "ANNUAL")
        for review in await self._open_reviews():
            if review.get("employee_id") == person["id"] and review.get("type") == kind:
                return ActionResult(
                    success=False,
                    message=f"{full_name(person)} already has an open {kind.lower()} review due {review.get('due_date')}.",
                    error="duplicate",
                )
        review = await self.repo.create("reviews", self._review_record(person, actor, kind, payload.get("due_date")))
        outbox.emit(
            "review.created",
            person.get("email", ""),
            f"Your {kind.lower()} review has been scheduled",
            f"Hi {person.get('first_name', '')}, your {kind.lower()} review is due {review['due_date']}.",
            review_id=review["id"],
        )
        return ActionResult(
            success=True,
            message=f"Created a {kind.lower()} review for {full_name(person)}, due {review['due_date']}.",
            data={"review": review},
        )

    def _review_record(self, person: Dict[str, Any], actor: Actor, kind: str, due: Optional[str]) -> Dict[str, Any]:
        return {
            "employee_id": person["id"],
            "reviewer_id": person.get("manager_id") or actor.id,
            "type": kind,
            "status": "SCHEDULED",
            "due_date": due or (self.today() + timedelta(days=SINGLE_DUE_DAYS)).isoformat(),
            "rating": None,
            "feedback": None,
            "created_at": now_iso(),
        }

    async def _do_complete_review(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("employee"):
            return self._clarify("Whose review should I complete?")
        open_reviews = await self._open_reviews()
        reviewed_ids = {r["employee_id"] for r in open_reviews}
        people = [e for e in await self.repo.list("employees") if e["id"] in reviewed_ids]
        fields = {"rating": data.get("rating"), "feedback": data.get("feedback")}
        person, result = await self._resolve_person(
            "employees", data["employee"], "confirm_complete_review", "employee", records=people, **fields
        )
        if person is None:
            return result
        return await self._apply_complete({"employee_id": person["id"], **fields}, actor, outbox)

    async def _apply_complete(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        person = await self._record_from("employees", payload, "employee_id")
        if person is None:
            return ActionResult(success=False, message="That employee no longer exists.", error="not_found")
        pending = sorted(
            (r for r in await self._open_reviews() if r.get("employee_id") == person["id"]),
            key=lambda r: r.get("due_date") or "",
        )
        if not pending:
            return ActionResult(success=False, message=f"{full_name(person)} has no open review.", error="not_found")
        review = pending[0]
        rating = payload.get("rating") or 4
        await self.repo.update("reviews", review["id"], {
            "status": "COMPLETED",
            "rating": rating,
            "feedback": payload.get("feedback"),
            "completed_by": actor.id,
            "completed_at": now_iso(),
        })
        return ActionResult(
            success=True,
            message=f"Completed {full_name(person)}'s {review.get('type', 'ANNUAL').lower()} review with a rating of {rating}/5.",
            data={"review_id": review["id"], "rating": rating},
        )

    # -- review cycles --

    async def _do_bulk_create(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        return await self._propose_cycle(data, actor, CYCLE_DUE_DAYS)

    async def _do_schedule_reviews(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("when") and not data.get("next_week"):
            return self._clarify("When should the reviews be due? For example: schedule annual reviews for all by December 15.")
        return await self._propose_cycle(data, actor, CYCLE_DUE_DAYS)

    async def _propose_cycle(self, data, actor: Actor, default_days: int) -> ActionResult:
        kind = data.get("type") or "ANNUAL"
        targets = await self._targets(data.get("department"))
        if not targets:
            where = f" in {data['department']}" if data.get("department") else ""
            return ActionResult(success=False, message=f"There are no active employees{where}.", error="not_found")
        due = self._due(data, default_days).isoformat()
        scope = f" in {data['department']}" if data.get("department") else ""
        return self.broker.propose(
            f"Create {kind.lower()} reviews for {len(targets)} employee(s){scope}, due {due}?",
            "confirm_bulk_create_reviews",
            employee_ids=[e["id"] for e in targets],
            type=kind,
            due_date=due,
        )

    async def _apply_bulk_create(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        kind = payload.get("type", "ANNUAL")
        already = {r["employee_id"] for r in await self._open_reviews() if r.get("type") == kind}
        created, skipped = [], 0
        for employee_id in payload.get("employee_ids") or []:
            person = await self.repo.get("employees", employee_id)
            if person is None or employee_id in already:
                skipped += 1
                continue
            review = await self.repo.create("reviews", self._review_record(person, actor, kind, payload.get("due_date")))
            created.append(review["id"])
            outbox.emit(
                "review.created",
                person.get("email", ""),
                f"Your {kind.lower()} review has been scheduled",
                f"Hi {person.get('first_name', '')}, your {kind.lower()} review is due {review['due_date']}.",
                review_id=review["id"],
            )
        return ActionResult(
            success=True,
            message=f"Created {len(created)} {kind.lower()} review(s), skipped {skipped}.",
            data={"created": created, "skipped": skipped},
        )

    async def _do_send_reminders(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        soon = self.today() + timedelta(days=7)
        reminded = 0
        for review in await self._open_reviews():
            due = review.get("due_date")
            if not due or date.fromisoformat(due) > soon:
                continue
            reviewer = await self.repo.get("employees", review.get("reviewer_id") or "")
            person = await self.repo.get("employees", review["employee_id"])
            if reviewer is None or person is None:
                continue
            overdue = date.fromisoformat(due) < self.today()
            outbox.emit(
                "review.reminder",
                reviewer.get("email", ""),
                f"{'Overdue' if overdue else 'Upcoming'} review: {full_name(person)}",
                f"The {review.get('type', 'ANNUAL').lower()} review for {full_name(person)} is due {due}.",
                review_id=review["id"],
            )
            reminded += 1
        return ActionResult(
            success=True,
            message=f"Sent {reminded} review reminder(s).",
            data={"reminded": reminded},
        )

    async def _do_generate_reports(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        reviews = await self.repo.list("reviews")
        by_status = Counter(r.get("status", "SCHEDULED") for r in reviews)
        by_type = Counter(r.get("type", "ANNUAL") for r in reviews)
        ratings = [r["rating"] for r in reviews if r.get("status") == "COMPLETED" and r.get("rating")]
        average = round(sum(ratings) / len(ratings), 2) if ratings else None
        today = self.today()
        overdue = sum(
            1 for r in reviews
            if r.get("status") in OPEN_STATUSES and r.get("due_date") and date.fromisoformat(r["due_date"]) < today
        )
        return ActionResult(
            success=True,
            message=(
                f"{len(reviews)} review(s): {by_status.get('COMPLETED', 0)} completed, {overdue} overdue"
                + (f", average rating {average}." if average is not None else ".")
            ),
            data={
                "total": len(reviews),
                "by_status": dict(by_status),
                "by_type": dict(by_type),
                "average_rating": average,
                "overdue": overdue,
            },
        )
