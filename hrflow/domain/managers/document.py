"""Documents: uploads, sharing, permissions and retention."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.managers.messaging import EMAIL_RE
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import Outcome

NAME = r"([A-Za-z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)"

CATEGORIES = [
    ("POLICY", ("policy", "handbook", "procedure", "guideline")),
    ("CONTRACT", ("contract", "agreement", "nda", "offer letter")),
    ("TAX", ("w-2", "w2", "w-4", "w4", "1099", "tax")),
    ("CERTIFICATION", ("certificate", "certification", "license")),
    ("TRAINING", ("training", "onboarding", "course")),
]
ACCESS_LEVELS = ("PUBLIC", "DEPARTMENT", "MANAGERS", "PRIVATE")

_QUOTED_RE = re.compile(r"[\"']([^\"']+)[\"']")
_DOC_NAME_RE = re.compile(
    r"\b(?:upload|add|delete|remove|share|expire|archive|make|set\s+permissions\s+(?:on|for))\s+"
    r"(?:the\s+|a\s+|an\s+|my\s+)?(?:new\s+)?(?:(?:document|file)\s+(?:called\s+|named\s+)?)?"
    r"([A-Za-z0-9][\w .-]*?)(?:\s+(?:document|file|doc))?"
    r"(?=\s+(?:for|with|to|from|permanently|public|private|visible)\b|[.,!?]|$)",
    re.IGNORECASE,
)
_FOR_RE = re.compile(rf"(?i:\bfor)\s+{NAME}")
_DAYS_RE = re.compile(r"(\d+)\s*days?", re.IGNORECASE)
_YEARS_RE = re.compile(r"(\d+)\s*years?", re.IGNORECASE)
_SHARE_WITH_RE = re.compile(rf"(?i:\bwith)\s+{NAME}")
_NOT_DOCS = {"", "document", "documents", "file", "files", "doc", "docs", "old", "all", "expired", "permissions"}


def categorize(name: str) -> str:
    lower = name.lower()
    for category, words in CATEGORIES:
        if any(w in lower for w in words):
            return category
    return "GENERAL"


def _doc_name(message: str) -> Optional[str]:
    quoted = _QUOTED_RE.search(message)
    if quoted:
        return quoted.group(1).strip()
    m = _DOC_NAME_RE.search(message)
    if not m:
        return None
    name = m.group(1).strip()
    return None if name.lower() in _NOT_DOCS else name


def _access_level(lower: str) -> Optional[str]:
    if "public" in lower or "everyone" in lower:
        return "PUBLIC"
    if "department" in lower:
        return "DEPARTMENT"
    if "manager" in lower:
        return "MANAGERS"
    if "private" in lower or "only me" in lower:
        return "PRIVATE"
    return None


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a document Command, or None."""
    lower = message.lower()
    if not re.search(r"\b(?:document|documents|file|files|doc|docs|handbook|policy)\b", lower):
        return None

    if re.search(r"\b(?:expire|expired|expiring)\b", lower):
        return Command("document", "expire_documents", {})

    if re.search(r"\barchive\b", lower):
        days = _DAYS_RE.search(message)
        years = _YEARS_RE.search(message)
        older = int(days.group(1)) if days else int(years.group(1)) * 365 if years else None
        return Command("document", "archive_documents", {"older_than_days": older})

    if re.search(r"\bshare\b", lower):
        emails = EMAIL_RE.findall(message)
        person = None if emails else _SHARE_WITH_RE.search(message)
        return Command("document", "share_document", {
            "name": _doc_name(message),
            "emails": emails,
            "person": person.group(1) if person else None,
        })

    if "permission" in lower or "access" in lower or re.search(r"\bmake\b.*\b(?:public|private|visible)\b", lower):
        return Command("document", "set_permissions", {"name": _doc_name(message), "level": _access_level(lower)})

    if re.search(r"\b(?:delete|remove)\b", lower):
        return Command("document", "delete_document", {
            "name": _doc_name(message),
            "permanent": bool(re.search(r"\b(?:permanent(?:ly)?|forever|purge)\b", lower)),
        })

    if re.search(r"\b(?:upload|add|attach|store)\b", lower):
        name = _doc_name(message)
        owner = _FOR_RE.search(message)
        return Command("document", "upload_document", {
            "name": name,
            "category": categorize(name) if name else None,
            "employee": owner.group(1) if owner else None,
        })

    return None


class DocumentManager(DomainManager):
    domain = "document"
    confirm_actions = {
        "confirm_upload_document": "_apply_upload",
        "confirm_delete_document": "_apply_delete",
        "confirm_set_permissions": "_apply_permissions",
        "confirm_share_document": "_apply_share",
    }
    confirm_kinds = {
        "confirm_upload_document": "upload_document",
        "confirm_delete_document": "delete_document",
        "confirm_set_permissions": "set_permissions",
        "confirm_share_document": "share_document",
    }

    async def _active(self) -> List[Dict[str, Any]]:
        return [d for d in await self.repo.list("documents") if d.get("status", "ACTIVE") == "ACTIVE"]

    async def _document(self, fragment: str, action: str, **fields):
        """Resolve among active documents only."""
        resolution = self.resolver.resolve_by_name(fragment, await self._active())
        if resolution.outcome is Outcome.AUTO:
            return resolution.selected, None
        if resolution.outcome is Outcome.AMBIGUOUS:
            return None, self.broker.disambiguate(fragment, resolution, action, "document", **fields)
        return None, self._not_found("document", fragment)

    async def _do_upload_document(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("name"):
            return self._clarify("What is the document called? For example: upload \"Safety Policy 2026\".")
        payload = {"name": data["name"], "category": data.get("category"), "employee_id": actor.id}
        if data.get("employee"):
            fields = {"name": data["name"], "category": data.get("category")}
            person, result = await self._resolve_person(
                "employees", data["employee"], "confirm_upload_document", "employee", **fields
            )
            if person is None:
                return result
            payload["employee_id"] = person["id"]
        return await self._apply_upload(payload, actor, outbox)

    async def _apply_upload(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        employee_id = payload.get("employee_id") or payload.get("selected_id") or actor.id
        document = await self.repo.create("documents", {
            "name": payload["name"],
            "category": payload.get("category") or categorize(payload["name"]),
            "employee_id": employee_id,
            "owner_id": actor.id,
            "status": "ACTIVE",
            "access_level": "PRIVATE",
            "shared_with": [],
            "expires_at": None,
            "created_at": now_iso(),
        })
        return ActionResult(
            success=True,
            message=f"Uploaded {document['name']} ({document['category'].lower()}).",
            data={"document": document},
        )

    async def _do_delete_document(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("name"):
            return self._clarify("Which document should I delete?")
        permanent = bool(data.get("permanent"))
        document, result = await self._document(data["name"], "confirm_delete_document", permanent=permanent)
        if document is None:
            return result
        if permanent:
            return self.broker.propose(
                f"Permanently delete {document['name']}? This cannot be undone.",
                "confirm_delete_document",
                document_id=document["id"],
                permanent=True,
            )
        return await self._apply_delete({"document_id": document["id"], "permanent": False}, actor, outbox)

    async def _apply_delete(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        document = await self._record_from("documents", payload, "document_id")
        if document is None:
            return ActionResult(success=False, message="That document no longer exists.", error="not_found")
        if payload.get("permanent"):
            await self.repo.delete("documents", document["id"])
            return ActionResult(
                success=True,
                message=f"Permanently deleted {document['name']}.",
                data={"document_id": document["id"], "permanent": True},
            )
        await self.repo.update("documents", document["id"], {
            "status": "DELETED",
            "deleted_by": actor.id,
            "deleted_at": now_iso(),
        })
        return ActionResult(
            success=True,
            message=f"Deleted {document['name']}. It can still be restored by an administrator.",
            data={"document_id": document["id"], "permanent": False},
        )

    async def _do_set_permissions(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("name"):
            return self._clarify("Which document's permissions should I change?")
        if data.get("level") not in ACCESS_LEVELS:
            return self._clarify("Who should have access: everyone, the department, managers, or only the owner?")
        document, result = await self._document(data["name"], "confirm_set_permissions", level=data["level"])
        if document is None:
            return result
        return await self._apply_permissions({"document_id": document["id"], "level": data["level"]}, actor, outbox)

    async def _apply_permissions(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        document = await self._record_from("documents", payload, "document_id")
        if document is None:
            return ActionResult(success=False, message="That document no longer exists.", error="not_found")
        level = payload.get("level", "PRIVATE")
        await self.repo.update("documents", document["id"], {"access_level": level, "updated_at": now_iso()})
        return ActionResult(
            success=True,
            message=f"{document['name']} is now visible to: {level.lower()}.",
            data={"document_id": document["id"], "access_level": level},
        )

    async def _do_share_document(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("name"):
            return self._clarify("Which document should I share?")
        emails = list(data.get("emails") or [])
        if not emails and not data.get("person"):
            return self._clarify("Who should I share it with? Give me a name or an email address.")
        if emails:
            document, result = await self._document(data["name"], "confirm_share_document", emails=emails)
            if document is None:
                return result
            return await self._apply_share({"document_id": document["id"], "emails": emails}, actor, outbox)

        # named recipient: pick the document first, then ask about the person if needed
        document, result = await self._document(data["name"], "confirm_share_document")
        if document is None:
            return self._clarify(result.message) if result.requires_confirmation else result
        person, result = await self._resolve_person(
            "employees", data["person"], "confirm_share_document", "employee", document_id=document["id"]
        )
        if person is None:
            return result
        return await self._apply_share({"document_id": document["id"], "emails": [person.get("email", "")]}, actor, outbox)

    async def _apply_share(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        document = await self.repo.get("documents", str(payload.get("document_id") or ""))
        emails = [e for e in payload.get("emails") or [] if e]
        if document is None:
            # document picked from a disambiguation list
            document = await self._record_from("documents", payload, "document_id")
        elif not emails and payload.get("selected_id"):
            person = await self.repo.get("employees", str(payload["selected_id"]))
            emails = [person.get("email", "")] if person and person.get("email") else []
        if document is None:
            return ActionResult(success=False, message="That document no longer exists.", error="not_found")
        if not emails:
            return ActionResult(success=False, message="There is no email address to share with.", error="missing_email")
        shared = list(document.get("shared_with") or [])
        shared.extend(e for e in emails if e not in shared)
        await self.repo.update("documents", document["id"], {"shared_with": shared, "updated_at": now_iso()})
        for email in emails:
            outbox.emit(
                "document.shared",
                email,
                f"{actor.display_name} shared a document with you",
                f"{document['name']} has been shared with you.",
                document_id=document["id"],
            )
        return ActionResult(
            success=True,
            message=f"Shared {document['name']} with " + ", ".join(emails) + ".",
            data={"document_id": document["id"], "shared_with": shared},
        )

    async def _do_expire_documents(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        today = self.today()
        expired = []
        for document in await self._active():
            expires = document.get("expires_at")
            if expires and date.fromisoformat(str(expires)[:10]) < today:
                await self.repo.update("documents", document["id"], {"status": "EXPIRED"})
                expired.append(document["name"])
        return ActionResult(
            success=True,
            message=f"Marked {len(expired)} document(s) as expired.",
            data={"expired": expired},
        )

    async def _do_archive_documents(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        days = data.get("older_than_days") or self.settings.document_archive_days
        cutoff = self.today() - timedelta(days=days)
        archived = []
        for document in await self._active():
            created = document.get("created_at")
            if created and datetime.fromisoformat(str(created)).date() < cutoff:
                await self.repo.update("documents", document["id"], {"status": "ARCHIVED", "archived_at": now_iso()})
                archived.append(document["name"])
        return ActionResult(
            success=True,
            message=f"Archived {len(archived)} document(s) older than {days} days.",
            data={"archived": archived, "older_than_days": days},
        )
