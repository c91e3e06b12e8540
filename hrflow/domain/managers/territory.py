"""Sales territories: creation, managers, staffing, merges."""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, Optional

from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import Outcome, full_name

NAME = r"([A-Za-z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)"
# territory names run until a keyword or the end of the sentence
_AREA = r"(?:the\s+)?([A-Za-z][\w -]*?)(?:\s+territory)?"
_END = r"(?=\s+(?:to|into|with|and|in|region|as|for)\b|[.,!?]|$)"

_CREATE_RE = re.compile(r"\b(?:create|new|add)\s+(?:a\s+)?(?:new\s+)?territory\b", re.IGNORECASE)
_CALLED_RE = re.compile(rf"\b(?:called|named)\s+{_AREA}{_END}", re.IGNORECASE)
_TERRITORY_FIRST_RE = re.compile(rf"\bterritory\s+(?!called|named){_AREA}{_END}", re.IGNORECASE)
_REGION_RE = re.compile(r"\b(?:in\s+(?:the\s+)?([A-Za-z][\w ]*?)\s+region|region:?\s+([A-Za-z][\w ]*?))(?=[.,!?]|$|\s+(?:with|and)\b)", re.IGNORECASE)
_MANAGER_RES = [
    re.compile(rf"(?i:\b(?:assign|make|set))\s+{NAME}\s+(?i:as\s+)?(?i:the\s+)?(?i:manager)\s+(?i:of|for)\s+(?i:the\s+)?([A-Za-z][\w -]*?)(?:\s+(?i:territory))?(?=[.,!?]|$)"),
    re.compile(rf"(?i:\bmanager\s+(?:of|for)\s+(?:the\s+)?)([A-Za-z][\w -]*?)(?:\s+(?i:territory))?\s+(?i:to|is)\s+{NAME}"),
]
_TRANSFER_FROM_RE = re.compile(rf"\bfrom\s+{_AREA}\s+to\s+{_AREA}{_END}", re.IGNORECASE)
_TRANSFER_ONE_RE = re.compile(rf"(?i:\b(?:transfer|move|reassign))\s+{NAME}\s+(?i:to)\s+(?i:the\s+)?([A-Za-z][\w -]*?)(?:\s+(?i:territory))?(?=[.,!?]|$)")
_MERGE_RE = re.compile(rf"\bmerge\s+{_AREA}\s+(?:into|with|and)\s+{_AREA}{_END}", re.IGNORECASE)
_DELETE_RE = re.compile(rf"\b(?:delete|remove)\s+(?:the\s+)?(?:territory\s+)?{_AREA}{_END}", re.IGNORECASE)

_NOT_AREAS = {"", "territory", "territories", "a", "the", "new", "employees", "all"}


def _area(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = re.sub(r"\s+territory$", "", value.strip(), flags=re.IGNORECASE)
    return None if value.lower() in _NOT_AREAS else value


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a territory Command, or None."""
    lower = message.lower()

    if _CREATE_RE.search(message):
        m = _CALLED_RE.search(message) or _TERRITORY_FIRST_RE.search(message)
        region = _REGION_RE.search(message)
        return Command("territory", "create_territory", {
            "name": _area(m.group(1)) if m else None,
            "region": (region.group(1) or region.group(2)).strip() if region else None,
        })

    if "manager" in lower and re.search(r"\b(?:assign|make|set)\b", lower):
        for i, pattern in enumerate(_MANAGER_RES):
            m = pattern.search(message)
            if m:
                employee, area = (m.group(1), m.group(2)) if i == 0 else (m.group(2), m.group(1))
                return Command("territory", "assign_manager", {"employee": employee, "territory": _area(area)})
        return Command("territory", "assign_manager", {"employee": None, "territory": None})

    if re.search(r"\bmerge\b", lower):
        m = _MERGE_RE.search(message)
        return Command("territory", "merge_territories", {
            "source": _area(m.group(1)) if m else None,
            "target": _area(m.group(2)) if m else None,
        })

    if re.search(r"\b(?:delete|remove)\b", lower):
        m = _DELETE_RE.search(message)
        return Command("territory", "delete_territory", {"territory": _area(m.group(1)) if m else None})

    if re.search(r"\b(?:transfer|move|reassign)\b", lower):
        m = _TRANSFER_FROM_RE.search(message)
        if m and re.search(r"\b(?:employees|staff|everyone|team)\b", lower):
            return Command("territory", "transfer_employees", {
                "employee": None, "source": _area(m.group(1)), "target": _area(m.group(2)),
            })
        m = _TRANSFER_ONE_RE.search(message)
        return Command("territory", "transfer_employees", {
            "employee": m.group(1) if m else None,
            "source": None,
            "target": _area(m.group(2)) if m else None,
        })

    if "report" in lower or "summary" in lower or "overview" in lower:
        return Command("territory", "generate_report", {})

    return None


class TerritoryManager(DomainManager):
    domain = "territory"
    confirm_actions = {
        "confirm_assign_manager": "_apply_assign_manager",
        "confirm_transfer_employees": "_apply_transfer",
        "confirm_merge_territories": "_apply_merge",
        "confirm_delete_territory": "_apply_delete",
    }

    async def _members(self, territory_id: str):
        return [e for e in await self.repo.list("employees") if e.get("territory_id") == territory_id]

    async def _person_and_territory(self, person: str, area: str, action: str, person_key: str, area_key: str):
        """Resolve both sides; an ambiguous side is asked about with the other pinned."""
        people = self.resolver.resolve(person, await self.repo.list("employees"))
        areas = self.resolver.resolve_by_name(area, await self.repo.list("territories"))
        if people.outcome is Outcome.NOT_FOUND:
            return None, None, self._not_found("employee", person)
        if areas.outcome is Outcome.NOT_FOUND:
            return None, None, self._not_found("territory", area)
        if people.outcome is Outcome.AMBIGUOUS and areas.outcome is Outcome.AMBIGUOUS:
            return None, None, self._clarify("Both the employee and the territory are ambiguous. Could you be more specific?")
        if people.outcome is Outcome.AMBIGUOUS:
            return None, None, self.broker.disambiguate(
                person, people, action, "employee", **{area_key: areas.selected["id"]}
            )
        if areas.outcome is Outcome.AMBIGUOUS:
            pinned = [people.selected["id"]] if person_key.endswith("_ids") else people.selected["id"]
            return None, None, self.broker.disambiguate(area, areas, action, "territory", **{person_key: pinned})
        return people.selected, areas.selected, None

    async def _territory_or_question(self, fragment: str):
        resolution = self.resolver.resolve_by_name(fragment, await self.repo.list("territories"))
        if resolution.outcome is Outcome.AUTO:
            return resolution.selected, None
        if resolution.outcome is Outcome.AMBIGUOUS:
            names = ", ".join(m.record.get("name", "") for m in resolution.matches)
            return None, self._clarify(f"Which territory do you mean by \"{fragment}\": {names}?")
        return None, self._not_found("territory", fragment)

    async def _do_create_territory(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        name = data.get("name")
        if not name:
            return self._clarify("What should the new territory be called?")
        for existing in await self.repo.list("territories"):
            if str(existing.get("name", "")).lower() == name.lower():
                return ActionResult(success=False, message=f"Territory {existing['name']} already exists.", error="duplicate")
        territory = await self.repo.create("territories", {
            "name": name,
            "region": data.get("region") or "",
            "manager_id": None,
            "is_active": True,
            "created_by": actor.id,
            "created_at": now_iso(),
        })
        where = f" in the {territory['region']} region" if territory["region"] else ""
        return ActionResult(success=True, message=f"Created territory {name}{where}.", data={"territory": territory})

    # -- managers --

    async def _do_assign_manager(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("employee") or not data.get("territory"):
            return self._clarify("Who should manage which territory? For example: make Jane Doe manager of Northeast.")
        person, territory, result = await self._person_and_territory(
            data["employee"], data["territory"], "confirm_assign_manager", "employee_id", "territory_id"
        )
        if result is not None:
            return result
        return await self._apply_assign_manager(
            {"territory_id": territory["id"], "employee_id": person["id"]}, actor, outbox
        )

    async def _apply_assign_manager(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        territory = await self._record_from("territories", payload, "territory_id")
        person = await self._record_from("employees", payload, "employee_id")
        if territory is None or person is None:
            return ActionResult(success=False, message="That territory or employee no longer exists.", error="not_found")
        await self.repo.update("territories", territory["id"], {"manager_id": person["id"], "updated_at": now_iso()})
        outbox.emit(
            "territory.manager_assigned",
            person.get("email", ""),
            f"You now manage {territory['name']}",
            f"Hi {person.get('first_name', '')}, you have been assigned as manager of the {territory['name']} territory.",
            territory_id=territory["id"],
        )
        return ActionResult(
            success=True,
            message=f"{full_name(person)} is now the manager of {territory['name']}.",
            data={"territory_id": territory["id"], "manager_id": person["id"]},
        )

    # -- staffing --

    async def _do_transfer_employees(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("target"):
            return self._clarify("Which territory should they move to?")
        if data.get("employee"):
            person, target, result = await self._person_and_territory(
                data["employee"], data["target"], "confirm_transfer_employees", "employee_ids", "target_id"
            )
            if result is not None:
                return result
            return await self._apply_transfer({"employee_ids": [person["id"]], "target_id": target["id"]}, actor, outbox)

        target, result = await self._territory_or_question(data["target"])
        if target is None:
            return result
        if not data.get("source"):
            return self._clarify(f"Who should move to {target['name']}?")
        source, result = await self._territory_or_question(data["source"])
        if source is None:
            return result
        members = await self._members(source["id"])
        if not members:
            return ActionResult(success=True, message=f"{source['name']} has no employees to transfer.", data={"moved": 0})
        return self.broker.propose(
            f"Move {len(members)} employee(s) from {source['name']} to {target['name']}?",
            "confirm_transfer_employees",
            employee_ids=[e["id"] for e in members],
            target_id=target["id"],
        )

    async def _apply_transfer(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        ids = list(payload.get("employee_ids") or [])
        if not ids and payload.get("selected_id"):
            # employee picked from a disambiguation list
            ids = [payload["selected_id"]]
            target = await self.repo.get("territories", payload.get("target_id", ""))
        else:
            target = await self._record_from("territories", payload, "target_id")
        if target is None:
            return ActionResult(success=False, message="That territory no longer exists.", error="not_found")
        moved = 0
        for employee_id in ids:
            if await self.repo.update("employees", employee_id, {"territory_id": target["id"]}):
                moved += 1
        return ActionResult(
            success=True,
            message=f"Moved {moved} employee(s) to {target['name']}.",
            data={"moved": moved, "target_id": target["id"]},
        )

    # -- consolidation --

    async def _do_merge_territories(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("source") or not data.get("target"):
            return self._clarify("Which territories should I merge? For example: merge West into Pacific.")
        territories = await self.repo.list("territories")
        source = self.resolver.resolve_by_name(data["source"], territories)
        target = self.resolver.resolve_by_name(data["target"], territories)
        if source.outcome is Outcome.NOT_FOUND:
            return self._not_found("territory", data["source"])
        if target.outcome is Outcome.NOT_FOUND:
            return self._not_found("territory", data["target"])
        if source.outcome is Outcome.AMBIGUOUS and target.outcome is Outcome.AMBIGUOUS:
            return self._clarify("Both territory names are ambiguous. Could you spell them out?")
        if source.outcome is Outcome.AMBIGUOUS:
            return self.broker.disambiguate(
                data["source"], source, "confirm_merge_territories", "territory", target_id=target.selected["id"]
            )
        if target.outcome is Outcome.AMBIGUOUS:
            return self.broker.disambiguate(
                data["target"], target, "confirm_merge_territories", "territory", source_id=source.selected["id"]
            )
        if source.selected["id"] == target.selected["id"]:
            return ActionResult(success=False, message="A territory can't be merged into itself.", error="invalid_merge")
        members = await self._members(source.selected["id"])
        return self.broker.propose(
            f"Merge {source.selected['name']} into {target.selected['name']}? "
            f"{len(members)} employee(s) will move and {source.selected['name']} will be removed.",
            "confirm_merge_territories",
            source_id=source.selected["id"],
            target_id=target.selected["id"],
        )

    async def _apply_merge(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        source = await self._record_from("territories", payload, "source_id")
        target = await self._record_from("territories", payload, "target_id")
        if source is None or target is None:
            return ActionResult(success=False, message="One of those territories no longer exists.", error="not_found")
        members = await self._members(source["id"])
        for employee in members:
            await self.repo.update("employees", employee["id"], {"territory_id": target["id"]})
        await self.repo.delete("territories", source["id"])
        return ActionResult(
            success=True,
            message=f"Merged {source['name']} into {target['name']} ({len(members)} employee(s) moved).",
            data={"target_id": target["id"], "moved": len(members)},
        )

    async def _do_delete_territory(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("territory"):
            return self._clarify("Which territory should I delete?")
        territory, result = await self._resolve_named("territories", data["territory"], "confirm_delete_territory", "territory")
        if territory is None:
            return result
        members = await self._members(territory["id"])
        return self.broker.propose(
            f"Delete territory {territory['name']}? {len(members)} employee(s) will be left unassigned.",
            "confirm_delete_territory",
            territory_id=territory["id"],
        )

    async def _apply_delete(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        territory = await self._record_from("territories", payload, "territory_id")
        if territory is None:
            return ActionResult(success=False, message="That territory no longer exists.", error="not_found")
        members = await self._members(territory["id"])
        for employee in members:
            await self.repo.update("employees", employee["id"], {"territory_id": None})
        await self.repo.delete("territories", territory["id"])
        return ActionResult(
            success=True,
            message=f"Deleted territory {territory['name']}. {len(members)} employee(s) unassigned.",
            data={"territory_id": territory["id"], "unassigned": len(members)},
        )

    async def _do_generate_report(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        territories = await self.repo.list("territories")
        employees = await self.repo.list("employees")
        headcount = Counter(e.get("territory_id") for e in employees if e.get("territory_id"))
        rows = []
        for territory in territories:
            manager = await self.repo.get("employees", territory["manager_id"]) if territory.get("manager_id") else None
            rows.append({
                "id": territory["id"],
                "name": territory["name"],
                "region": territory.get("region", ""),
                "manager": full_name(manager) if manager else None,
                "employees": headcount.get(territory["id"], 0),
            })
        unmanaged = sum(1 for r in rows if r["manager"] is None)
        return ActionResult(
            success=True,
            message=(
                f"{len(rows)} territor{'y' if len(rows) == 1 else 'ies'}, "
                f"{sum(headcount.values())} assigned employee(s), {unmanaged} without a manager."
            ),
            data={"territories": rows},
        )
