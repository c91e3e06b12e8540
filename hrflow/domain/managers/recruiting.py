"""Recruiting: candidate pipeline moves, interviews, rejections."""

from __future__ import annotations

import re
import sys
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from hrflow.domain.dates import find_date_mentions, parse_natural_date, parse_time
from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import Outcome, full_name


def _log(msg: str):
    print(msg, file=sys.stderr)


VALID_STATUSES = ("APPLIED", "SCREENING", "INTERVIEW", "OFFER", "HIRED", "REJECTED", "DEAD_BY_US")
_CLOSED_STATUSES = ("REJECTED", "DEAD_BY_US")

# Spoken stage names -> pipeline status
_STAGE_WORDS = [
    ("dead by us", "DEAD_BY_US"),
    ("phone screen", "SCREENING"),
    ("screening", "SCREENING"),
    ("interview", "INTERVIEW"),
    ("offer", "OFFER"),
    ("hired", "HIRED"),
    ("rejected", "REJECTED"),
    ("applied", "APPLIED"),
]

NAME = r"([A-Za-z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)"
EMAIL_RE = re.compile(r"[\w.%+-]+@[\w.-]+\.[A-Za-z]{2,}")

_CREATE_RE = re.compile(r"\b(?:add|create|new)\s+(?:a\s+)?(?:new\s+)?(?:candidate|applicant)\b", re.IGNORECASE)
_NAMED_RE = re.compile(rf"\b(?i:named?|called)\s+{NAME}")
_POSITION_RE = re.compile(r"\b(?:for|as)\s+(?:the\s+|a\s+|an\s+)?([A-Z][\w-]*(?:\s+[A-Z][\w-]*)*)(?:\s+(?:position|role))?")
_SCHEDULE_RE = re.compile(r"\b(?:schedule|set\s+up|book)\b", re.IGNORECASE)
_INTERVIEW_NAME_RES = [
    re.compile(rf"\b(?i:interview\s+(?:with|for))\s+{NAME}"),
    re.compile(rf"\b(?:(?i:move)\s+)?{NAME}\s+(?i:to\s+schedule\s+an?\s+interview)"),
    re.compile(rf"\b(?i:schedule)\s+{NAME}\s+(?i:for\s+an?\s+interview)"),
]
_INTERVIEWER_RE = re.compile(r"\b(?:interviewer|with)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")
_LOCATION_RE = re.compile(
    r"\bin\s+(?:the\s+)?([A-Za-z0-9][\w ]*?)(?=\s+(?:on|for|at|with|tomorrow|today|next)\b|[.,!?]|$)",
    re.IGNORECASE,
)
_MOVE_RE = re.compile(rf"\b(?i:move\s+(?:candidate\s+|applicant\s+)?){NAME}\s+(?i:to|into)\b")
_BULK_RE = re.compile(r"\b(?:all|every)\b", re.IGNORECASE)
_REJECT_RE = re.compile(rf"\b(?i:reject\s+(?:candidate\s+|applicant\s+)?){NAME}")
_REASON_RE = re.compile(r"\b(?:because|reason:?)\s+(.+)", re.IGNORECASE)
_DAYS_RE = re.compile(r"(\d+)\s*days?", re.IGNORECASE)

_NOT_NAMES = {"all", "every", "the", "candidate", "candidates", "applicant", "applicants", "them", "him", "her"}


def find_stage(text: str) -> Optional[str]:
    lower = text.lower()
    for word, status in _STAGE_WORDS:
        if word in lower:
            return status
    return None


def split_name(name: str) -> tuple:
    parts = name.strip().split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _clean_name(value: Optional[str]) -> Optional[str]:
    if not value or value.strip().lower() in _NOT_NAMES:
        return None
    return value.strip()


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a recruiting Command, or None."""
    lower = message.lower()

    if _CREATE_RE.search(message):
        name = _NAMED_RE.search(message)
        email = EMAIL_RE.search(message)
        if name or email:
            position = _POSITION_RE.search(message)
            first, last = split_name(name.group(1) if name else "")
            return Command("recruiting", "create_candidate", {
                "first_name": first,
                "last_name": last,
                "email": email.group(0) if email else "",
                "position": position.group(1) if position else "General Application",
            })

    if "interview" in lower and _SCHEDULE_RE.search(message):
        candidate, rest = None, message
        for pattern in _INTERVIEW_NAME_RES:
            m = pattern.search(message)
            if m and _clean_name(m.group(1)):
                candidate, rest = _clean_name(m.group(1)), message[m.end():]
                break
        interviewer = _INTERVIEWER_RE.search(rest)
        location = _LOCATION_RE.search(rest)
        mentions = find_date_mentions(message)
        hour, minute = parse_time(message)
        kind = "IN_PERSON"
        if "video" in lower or "zoom" in lower or "remote" in lower:
            kind = "VIDEO"
        elif "phone" in lower:
            kind = "PHONE"
        return Command("recruiting", "schedule_interview", {
            "candidate": candidate,
            "when": mentions[0] if mentions else None,
            "next_week": "next week" in lower,
            "hour": hour,
            "minute": minute,
            "interviewer": interviewer.group(1) if interviewer else None,
            "location": location.group(1).strip() if location else None,
            "type": kind,
        })

    if re.search(r"\bmove\b", lower) and re.search(r"\b(?:to|into)\b", lower):
        stage = find_stage(lower.split(" to ", 1)[-1]) or find_stage(lower)
        if stage is None and "candidate" not in lower and "applicant" not in lower:
            return None
        if _BULK_RE.search(message):
            head = lower.split(" to ", 1)[0]
            return Command("recruiting", "bulk_move", {"from_stage": find_stage(head), "stage": stage})
        m = _MOVE_RE.search(message)
        return Command("recruiting", "move_stage", {
            "candidate": _clean_name(m.group(1)) if m else None,
            "stage": stage,
        })

    if "reject" in lower and not any(w in lower for w in ("pto", "time off", "vacation", "leave", "contract", "document")):
        m = _REJECT_RE.search(message)
        reason = _REASON_RE.search(message)
        return Command("recruiting", "reject_candidate", {
            "candidate": _clean_name(m.group(1)) if m else None,
            "reason": reason.group(1).strip() if reason else "Position filled",
        })

    if "archive" in lower and ("candidate" in lower or "applicant" in lower):
        days = _DAYS_RE.search(message)
        return Command("recruiting", "archive_candidates", {"days": int(days.group(1)) if days else None})

    return None


class RecruitingManager(DomainManager):
    domain = "recruiting"
    confirm_actions = {
        "confirm_candidate_move": "_apply_move_stage",
        "confirm_bulk_move": "_apply_bulk_move",
        "confirm_interview_schedule": "_apply_schedule_interview",
        "confirm_candidate_reject": "_apply_reject_candidate",
    }

    # -- create --

    async def _do_create_candidate(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("first_name") and not data.get("email"):
            return self._clarify("What is the candidate's name or email address?")
        record = await self.repo.create("candidates", {
            "first_name": data.get("first_name") or data["email"].split("@")[0],
            "last_name": data.get("last_name", ""),
            "email": data.get("email", ""),
            "position": data.get("position") or "General Application",
            "status": "APPLIED",
            "created_by": actor.id,
            "created_at": now_iso(),
            "updated_at": now_iso(),
        })
        _log(f"[Recruiting] candidate {record['id']} created by {actor.id}")
        return ActionResult(
            success=True,
            message=f"Added candidate {self.name_of(record)} for {record['position']}.",
            data={"candidate": record},
        )

    # -- stage moves --

    async def _do_move_stage(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        stage = data.get("stage")
        if not data.get("candidate"):
            return self._clarify("Which candidate would you like to move?")
        if stage not in VALID_STATUSES:
            return self._clarify(
                "I didn't recognize that stage. Valid stages are: " + ", ".join(VALID_STATUSES) + "."
            )
        candidates = await self.repo.list("candidates")
        record, result = await self._resolve_person(
            "candidates", data["candidate"], "confirm_candidate_move", "candidate",
            records=candidates, target_status=stage,
        )
        if record is None:
            if result.error == "not_found":
                in_stage = [full_name(c) for c in candidates if c.get("status") == stage]
                if in_stage:
                    return ActionResult(
                        success=False,
                        message=(
                            f"I couldn't find a candidate matching \"{data['candidate']}\". "
                            f"Candidates already in {stage}: " + ", ".join(in_stage) + "."
                        ),
                        error="not_found",
                        data={"suggestions": in_stage},
                    )
            return result
        return await self._apply_move_stage(
            {"candidate_id": record["id"], "target_status": stage}, actor, outbox
        )

    async def _apply_move_stage(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        candidate = await self._record_from("candidates", payload, "candidate_id")
        if candidate is None:
            return ActionResult(success=False, message="That candidate no longer exists.", error="not_found")
        stage = payload.get("target_status")
        if stage not in VALID_STATUSES:
            return self._clarify("Valid stages are: " + ", ".join(VALID_STATUSES) + ".")
        previous = candidate.get("status")
        await self.repo.update("candidates", candidate["id"], {"status": stage, "updated_at": now_iso()})
        name = self.name_of(candidate)
        outbox.emit(
            "candidate.status_changed",
            candidate.get("email", ""),
            "Your application status has been updated",
            f"Hi {candidate.get('first_name', '')}, your application is now in the {stage.lower()} stage.",
            candidate_id=candidate["id"],
            status=stage,
        )
        message = f"Moved {name} from {previous} to {stage}."
        if stage == "INTERVIEW":
            message += " Would you like me to schedule the interview?"
        return ActionResult(
            success=True,
            message=message,
            data={"candidate_id": candidate["id"], "name": name, "previous_status": previous, "status": stage},
        )

    async def _do_bulk_move(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        stage = data.get("stage")
        if stage not in VALID_STATUSES:
            return self._clarify("Which stage should the candidates move to? Valid stages are: " + ", ".join(VALID_STATUSES) + ".")
        source = data.get("from_stage")
        selected = [
            c for c in await self.repo.list("candidates")
            if c.get("status") != stage
            and (c.get("status") == source if source else c.get("status") not in _CLOSED_STATUSES)
            and not c.get("archived")
        ]
        if not selected:
            where = f" in {source}" if source else ""
            return ActionResult(success=False, message=f"There are no candidates{where} to move.", error="not_found")
        return self.broker.propose(
            f"This will move {len(selected)} candidate(s) to {stage}: " + ", ".join(full_name(c) for c in selected) + ".",
            "confirm_bulk_move",
            candidate_ids=[c["id"] for c in selected],
            target_status=stage,
        )

    async def _apply_bulk_move(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        stage = payload.get("target_status")
        moved: List[str] = []
        for candidate_id in payload.get("candidate_ids", []):
            result = await self._apply_move_stage({"candidate_id": candidate_id, "target_status": stage}, actor, outbox)
            if result.success:
                moved.append(result.data["name"])
        return ActionResult(
            success=bool(moved),
            message=f"Moved {len(moved)} candidate(s) to {stage}.",
            data={"moved": moved, "status": stage},
            error=None if moved else "nothing_moved",
        )

    # -- interviews --

    async def _do_schedule_interview(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("candidate"):
            return self._clarify("Which candidate would you like to interview?")
        when = data.get("when")
        day = parse_natural_date(when, self.today(), data.get("next_week", False)) if when else None
        if day is None:
            return self._clarify(f"What date should the interview with {data['candidate']} be?")

        interviewer_id, interviewer_name = actor.id, actor.display_name
        notes: List[str] = []
        if data.get("interviewer"):
            resolution = self.resolver.resolve(data["interviewer"], await self.repo.list("employees"))
            if resolution.outcome is Outcome.AUTO:
                interviewer_id = resolution.selected["id"]
                interviewer_name = full_name(resolution.selected)
            else:
                notes.append(f"I couldn't match interviewer \"{data['interviewer']}\", so I put you down instead.")
        if day.weekday() >= 5:
            notes.append(f"Note: {day.strftime('%A')} is a weekend day.")

        scheduled = datetime(day.year, day.month, day.day, data.get("hour", 10), data.get("minute", 0))
        fields = {
            "interviewer_id": interviewer_id,
            "interviewer_name": interviewer_name,
            "scheduled_date": scheduled.isoformat(),
            "duration": self.settings.interview_minutes,
            "type": data.get("type") or "IN_PERSON",
            "location": data.get("location") or self.settings.default_interview_location,
        }
        record, result = await self._resolve_person(
            "candidates", data["candidate"], "confirm_interview_schedule", "candidate", **fields
        )
        if record is None:
            return result
        summary = (
            f"Interview with {full_name(record)} on {scheduled.strftime('%A, %B %d at %I:%M %p')} "
            f"with {interviewer_name} at {fields['location']} ({fields['duration']} min)."
        )
        if notes:
            summary += "\n" + "\n".join(notes)
        return self.broker.propose(
            summary,
            "confirm_interview_schedule",
            candidate_id=record["id"],
            candidate_name=full_name(record),
            candidate_email=record.get("email", ""),
            **fields,
        )

    async def _apply_schedule_interview(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        candidate = await self._record_from("candidates", payload, "candidate_id")
        if candidate is None:
            return ActionResult(success=False, message="That candidate no longer exists.", error="not_found")
        if not payload.get("scheduled_date"):
            return self._clarify("When should the interview take place?")
        interview = await self.repo.create("interviews", {
            "candidate_id": candidate["id"],
            "interviewer_id": payload.get("interviewer_id") or actor.id,
            "scheduled_date": payload["scheduled_date"],
            "duration": payload.get("duration", self.settings.interview_minutes),
            "type": payload.get("type", "IN_PERSON"),
            "location": payload.get("location") or self.settings.default_interview_location,
            "status": "SCHEDULED",
            "created_by": actor.id,
            "created_at": now_iso(),
        })
        if candidate.get("status") in ("APPLIED", "SCREENING"):
            await self.repo.update("candidates", candidate["id"], {"status": "INTERVIEW", "updated_at": now_iso()})
        when = datetime.fromisoformat(payload["scheduled_date"]).strftime("%A, %B %d at %I:%M %p")
        outbox.emit(
            "interview.scheduled",
            candidate.get("email", ""),
            "Interview invitation",
            f"Hi {candidate.get('first_name', '')}, your interview is scheduled for {when} at {interview['location']}.",
            interview_id=interview["id"],
        )
        name = payload.get("candidate_name") or full_name(candidate)
        return ActionResult(
            success=True,
            message=f"Scheduled an interview with {name} for {when}.",
            data={"interview": interview},
        )

    # -- reject / archive --

    async def _do_reject_candidate(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("candidate"):
            return self._clarify("Which candidate would you like to reject?")
        record, result = await self._resolve_person(
            "candidates", data["candidate"], "confirm_candidate_reject", "candidate", reason=data.get("reason")
        )
        if record is None:
            return result
        return await self._apply_reject_candidate(
            {"candidate_id": record["id"], "reason": data.get("reason")}, actor, outbox
        )

    async def _apply_reject_candidate(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        candidate = await self._record_from("candidates", payload, "candidate_id")
        if candidate is None:
            return ActionResult(success=False, message="That candidate no longer exists.", error="not_found")
        reason = payload.get("reason") or "Position filled"
        await self.repo.update("candidates", candidate["id"], {
            "status": "REJECTED",
            "rejection_reason": reason,
            "updated_at": now_iso(),
        })
        outbox.emit(
            "candidate.rejected",
            candidate.get("email", ""),
            "Update on your application",
            f"Hi {candidate.get('first_name', '')}, thank you for your interest. We have decided not to move forward at this time.",
            candidate_id=candidate["id"],
        )
        return ActionResult(
            success=True,
            message=f"Rejected {full_name(candidate)} ({reason}).",
            data={"candidate_id": candidate["id"], "reason": reason},
        )

    async def _do_archive_candidates(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        days = data.get("days") or self.settings.candidate_archive_days
        cutoff = self.today() - timedelta(days=days)
        archived = []
        for candidate in await self.repo.list("candidates"):
            if candidate.get("archived") or candidate.get("status") not in _CLOSED_STATUSES:
                continue
            updated = _as_date(candidate.get("updated_at"))
            if updated is not None and updated <= cutoff:
                await self.repo.update("candidates", candidate["id"], {"archived": True, "archived_at": now_iso()})
                archived.append(candidate["id"])
        return ActionResult(
            success=True,
            message=f"Archived {len(archived)} closed candidate(s) older than {days} days.",
            data={"archived": archived, "days": days},
        )


def _as_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None
