"""Email sending to employees, candidates or raw addresses."""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import Outcome, full_name

NAME = r"([A-Za-z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)"
EMAIL_RE = re.compile(r"[\w.%+-]+@[\w.-]+\.[A-Za-z]{2,}")

_TRIGGER_RE = re.compile(r"(?i:\bsend\b.*\b(?:email|e-mail|message)\b)|(?i:\bemail)\s+[A-Z]")
_RECIPIENT_RES = [
    re.compile(rf"(?i:\bsend)\s+{NAME}\s+(?i:an?\s+(?:email|e-mail|message))"),
    re.compile(rf"(?i:\b(?:email|e-mail|message))\s+(?i:to)\s+{NAME}"),
    re.compile(rf"(?i:\bsend)\s+(?i:an?\s+)?(?i:email|e-mail|message)\s+(?i:to)\s+{NAME}"),
    re.compile(rf"(?i:\bemail)\s+{NAME}\s+(?i:about|regarding|saying|that)"),
]
_SUBJECT_RE = re.compile(r"\b(?:subject|about|regarding):?\s*([^.!?:]+)", re.IGNORECASE)
_BODY_RE = re.compile(r"\b(?:saying|body|content|message):\s*(.+)$", re.IGNORECASE)
PRONOUNS = {"him", "her", "them", "they", "he", "she", "it"}
_NOT_NAMES = {"an", "a", "the", "email", "message"}


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a send_email Command, or None."""
    if not _TRIGGER_RE.search(message):
        return None
    recipient = None
    email = EMAIL_RE.search(message)
    if email:
        recipient = email.group(0)
    else:
        for pattern in _RECIPIENT_RES:
            m = pattern.search(message)
            if m and m.group(1).lower() not in _NOT_NAMES:
                recipient = m.group(1).strip()
                break
    subject = _SUBJECT_RE.search(message)
    body = _BODY_RE.search(message)
    return Command("messaging", "send_email", {
        "recipient": recipient,
        "subject": subject.group(1).strip() if subject else None,
        "body": body.group(1).strip() if body else None,
        "text": message,
    })


class MessagingManager(DomainManager):
    domain = "messaging"
    confirm_actions = {
        "confirm_send_email": "_apply_send_email",
    }

    async def _do_send_email(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        recipient = data.get("recipient")
        if not recipient:
            return self._clarify("Who should I send the email to? Give me a name or an email address.")
        if recipient.lower() in PRONOUNS:
            return self._clarify(f"Who do you mean by \"{recipient}\"? Give me a name or an email address.")
        fields = {
            "subject": data.get("subject") or "Message from HR",
            "body": data.get("body") or data.get("text", ""),
        }
        if "@" in recipient:
            return await self._apply_send_email({"to": recipient, "to_name": recipient.split("@")[0], **fields}, actor, outbox)

        employees = await self.repo.list("employees")
        resolution = self.resolver.resolve(recipient, employees)
        entity = "employees"
        if resolution.outcome is Outcome.NOT_FOUND:
            resolution = self.resolver.resolve(recipient, await self.repo.list("candidates"))
            entity = "candidates"
        if resolution.outcome is Outcome.NOT_FOUND:
            return self._not_found("person", recipient)
        if resolution.outcome is Outcome.AMBIGUOUS:
            return self.broker.disambiguate(recipient, resolution, "confirm_send_email", "person", entity=entity, **fields)
        record = resolution.selected
        return await self._apply_send_email(
            {"to": record.get("email", ""), "to_name": full_name(record), "recipient_id": record["id"], "entity": entity, **fields},
            actor,
            outbox,
        )

    async def _apply_send_email(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        to, to_name = payload.get("to"), payload.get("to_name")
        if not to:
            record = await self._record_from(payload.get("entity", "employees"), payload, "recipient_id")
            if record is None:
                return ActionResult(success=False, message="I couldn't find that recipient.", error="not_found")
            to, to_name = record.get("email", ""), full_name(record)
        if not to:
            return ActionResult(success=False, message=f"{to_name} has no email address on file.", error="missing_email")
        body = f"Hello {to_name},\n\n{payload.get('body', '')}\n\nBest regards,\n{actor.display_name}"
        message = await self.repo.create("messages", {
            "to": to,
            "subject": payload.get("subject") or "Message from HR",
            "body": body,
            "sender_id": actor.id,
            "created_at": now_iso(),
        })
        outbox.emit("message.sent", to, message["subject"], body, message_id=message["id"])
        return ActionResult(
            success=True,
            message=f"Email sent to {to_name} ({to}).",
            data={"message_id": message["id"], "to": to, "subject": message["subject"]},
        )
