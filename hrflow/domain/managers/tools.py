"""Tools & equipment: inventory, assignments and returns."""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, List, Optional

from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import Outcome, full_name

NAME = r"([A-Za-z][A-Za-z'-]*(?:\s+[A-Z][A-Za-z'-]+)?)"

CATEGORIES = [
    ("Hand Tools", ("hammer", "screwdriver", "wrench", "pliers", "saw")),
    ("Power Tools", ("drill", "grinder", "sander", "jigsaw")),
    ("Safety Equipment", ("ladder", "scaffold", "harness", "rope", "helmet", "vest")),
    ("Measuring", ("tape", "level", "square", "ruler")),
    ("Fasteners", ("nail", "screw", "bolt", "anchor")),
]

_TO_INVENTORY_RE = re.compile(r"\b(?:add|stock)\s+(?:(\d+)\s+)?(?:an?\s+|new\s+)*(.+?)\s+(?:to|into)\s+(?:the\s+)?(?:inventory|stock)", re.IGNORECASE)
_ADD_TOOL_RE = re.compile(r"\badd\s+(?:(\d+)\s+)?(?:an?\s+)?(?:new\s+)?(?:tool|equipment)\s+(?:called\s+|named\s+)?([A-Za-z0-9][A-Za-z0-9 -]*?)(?:\s+(?:to|in)\b|[.,]|$)", re.IGNORECASE)
_REMOVE_RE = re.compile(r"\b(?:remove|subtract)\s+(?:(\d+)\s+)?(?:the\s+|an?\s+)?(.+?)\s+from\s+(?:the\s+)?(?:inventory|stock)", re.IGNORECASE)
_ASSIGN_RE = re.compile(
    rf"(?i:\b(?:assign|give))\s+(?:(\d+)\s+)?(?:(?i:the|an?)\s+)?([A-Za-z][\w -]*?)\s+(?i:to)\s+{NAME}"
)
_RETURN_RE = re.compile(r"\breturn(?:ed)?\s+(?:the\s+|an?\s+|(?:\d+)\s+)?([a-z][\w -]*?)(?=\s+(?:from|in|that|which|by)\b|[.,!]|$)", re.IGNORECASE)
_FROM_RE = re.compile(rf"(?i:\bfrom)\s+{NAME}")
_QUANTITY_RE = re.compile(r"(\d+)\s+(?:units?|pieces?|items?)", re.IGNORECASE)
_ORDER_RE = re.compile(r"\b(?:order|restock)\s+(?:(\d+)\s+)?(?:more\s+)?([a-z][\w -]*?)(?=\s+(?:for|from|to)\b|[.,!]|$)", re.IGNORECASE)
_FILLER = re.compile(r"\b(?:tools?|equipment|items?|units?|pieces?)\b", re.IGNORECASE)
_NOT_TOOLS = {"", "inventory", "stock", "tools", "tool", "equipment", "some", "more"}


def categorize(name: str) -> str:
    lower = name.lower()
    for category, words in CATEGORIES:
        if any(w in lower for w in words):
            return category
    return "General"


def _tool_name(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    name = " ".join(_FILLER.sub(" ", raw).split())
    return None if name.lower() in _NOT_TOOLS else name


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a tools Command, or None."""
    lower = message.lower()
    quantity = _QUANTITY_RE.search(message)

    if re.search(r"\b(?:add|stock)\b", lower) and re.search(r"\b(?:tool|inventory|equipment|stock)\b", lower):
        m = _TO_INVENTORY_RE.search(message) or _ADD_TOOL_RE.search(message)
        name = _tool_name(m.group(2)) if m else None
        if not name:
            return Command("tools", "add_tool", {"needs_more_info": True})
        count = m.group(1) or (quantity.group(1) if quantity else None)
        return Command("tools", "add_tool", {
            "name": name,
            "category": categorize(name),
            "quantity": int(count) if count else 1,
            "condition": "NEW",
        })

    if re.search(r"\b(?:remove|subtract)\b", lower) and re.search(r"\b(?:inventory|stock)\b", lower):
        m = _REMOVE_RE.search(message)
        return Command("tools", "remove_tool", {
            "name": _tool_name(m.group(2)) if m else None,
            "quantity": int(m.group(1)) if m and m.group(1) else 1,
        })

    if re.search(r"\b(?:assign|give)\b", lower):
        m = _ASSIGN_RE.search(message)
        return Command("tools", "assign_tool", {
            "name": _tool_name(m.group(2)) if m else None,
            "employee": m.group(3) if m else None,
            "quantity": int(m.group(1)) if m and m.group(1) else (int(quantity.group(1)) if quantity else 1),
        })

    if re.search(r"\breturn(?:ed)?\b", lower):
        m = _RETURN_RE.search(message)
        who = _FROM_RE.search(message)
        condition = "DAMAGED" if "damaged" in lower or "broken" in lower else "POOR" if "poor" in lower else "GOOD"
        return Command("tools", "return_tool", {
            "name": _tool_name(m.group(1)) if m else None,
            "employee": who.group(1) if who else None,
            "condition": condition,
        })

    if "check inventory" in lower or "low stock" in lower or "inventory status" in lower or "in stock" in lower:
        return Command("tools", "check_inventory", {})

    if re.search(r"\b(?:order|restock)\b", lower):
        m = _ORDER_RE.search(message)
        count = (m.group(1) if m else None) or (quantity.group(1) if quantity else None)
        return Command("tools", "order_tools", {
            "name": _tool_name(m.group(2)) if m else None,
            "quantity": int(count) if count else None,
        })

    if "report" in lower or "summary" in lower:
        return Command("tools", "generate_report", {})

    return None


class ToolsManager(DomainManager):
    domain = "tools"
    confirm_actions = {
        "assign_tool": "_apply_assign",
        "return_tool": "_apply_return",
        "confirm_remove_tool": "_apply_remove",
    }

    async def _find_tool_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        wanted = name.lower()
        for tool in await self.repo.list("tools"):
            if str(tool.get("name", "")).lower() == wanted:
                return tool
        return None

    # -- inventory --

    async def _do_add_tool(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if data.get("needs_more_info") or not data.get("name"):
            return self._clarify("What tool would you like to add? Please specify the tool name.")
        quantity = int(data.get("quantity") or 1)
        existing = await self._find_tool_by_name(data["name"])
        if existing is not None:
            await self.repo.update("tools", existing["id"], {
                "quantity": existing.get("quantity", 0) + quantity,
                "available_quantity": existing.get("available_quantity", 0) + quantity,
                "updated_at": now_iso(),
            })
            return ActionResult(
                success=True,
                message=f"Added {quantity} more {existing['name']} to inventory.",
                data={"tool_id": existing["id"], "quantity": existing.get("quantity", 0) + quantity},
            )
        tool = await self.repo.create("tools", {
            "name": data["name"],
            "category": data.get("category") or categorize(data["name"]),
            "quantity": quantity,
            "available_quantity": quantity,
            "condition": data.get("condition", "NEW"),
            "created_by": actor.id,
            "created_at": now_iso(),
        })
        return ActionResult(
            success=True,
            message=f"Added {quantity} x {tool['name']} ({tool['category']}) to inventory.",
            data={"tool": tool},
        )

    async def _do_remove_tool(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("name"):
            return self._clarify("Which tool should I remove from inventory?")
        quantity = int(data.get("quantity") or 1)
        tool, result = await self._resolve_named("tools", data["name"], "confirm_remove_tool", "tool", quantity=quantity)
        if tool is None:
            return result
        return await self._apply_remove({"tool_id": tool["id"], "quantity": quantity}, actor, outbox)

    async def _apply_remove(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        tool = await self._record_from("tools", payload, "tool_id")
        if tool is None:
            return ActionResult(success=False, message="That tool no longer exists.", error="not_found")
        quantity = int(payload.get("quantity") or 1)
        available = tool.get("available_quantity", 0)
        if quantity > available:
            return ActionResult(
                success=False,
                message=f"Only {available} {tool['name']} are available to remove.",
                error="insufficient_stock",
            )
        await self.repo.update("tools", tool["id"], {
            "quantity": tool.get("quantity", 0) - quantity,
            "available_quantity": available - quantity,
            "updated_at": now_iso(),
        })
        return ActionResult(
            success=True,
            message=f"Removed {quantity} {tool['name']} from inventory ({available - quantity} left).",
            data={"tool_id": tool["id"], "available": available - quantity},
        )

    async def _do_check_inventory(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        tools = await self.repo.list("tools")
        low = [t for t in tools if t.get("available_quantity", 0) <= self.settings.low_stock_threshold]
        if not low:
            return ActionResult(success=True, message=f"All {len(tools)} tool(s) are well stocked.", data={"low_stock": []})
        listed = ", ".join(f"{t['name']} ({t.get('available_quantity', 0)})" for t in low)
        return ActionResult(
            success=True,
            message=f"{len(low)} tool(s) are running low: {listed}.",
            data={"low_stock": low},
        )

    async def _do_order_tools(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        quantity = data.get("quantity") or self.settings.default_order_quantity
        if data.get("name"):
            tool, result = await self._resolve_named("tools", data["name"], "confirm_remove_tool", "tool")
            if tool is None and result.requires_confirmation:
                return self._clarify(result.message)
            targets = [tool] if tool else []
            names = [tool["name"]] if tool else [data["name"]]
        else:
            targets = [
                t for t in await self.repo.list("tools")
                if t.get("available_quantity", 0) <= self.settings.low_stock_threshold
            ]
            names = [t["name"] for t in targets]
        if not names:
            return ActionResult(success=True, message="Nothing is low on stock, so there is nothing to order.", data={"ordered": []})
        outbox.emit(
            "tools.order_requested",
            self.settings.hr_email,
            "Tool order request",
            f"{actor.display_name} requested {quantity} of each: " + ", ".join(names),
            tool_ids=[t["id"] for t in targets],
            quantity=quantity,
        )
        return ActionResult(
            success=True,
            message=f"Order request sent for {quantity} x " + ", ".join(names) + ".",
            data={"ordered": names, "quantity": quantity},
        )

    async def _do_generate_report(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        tools = await self.repo.list("tools")
        assignments = [a for a in await self.repo.list("tool_assignments") if a.get("status") == "ASSIGNED"]
        by_category = Counter()
        for tool in tools:
            by_category[tool.get("category", "General")] += tool.get("quantity", 0)
        damaged = [t["name"] for t in tools if t.get("condition") == "DAMAGED"]
        total = sum(t.get("quantity", 0) for t in tools)
        return ActionResult(
            success=True,
            message=(
                f"Inventory report: {len(tools)} tool type(s), {total} unit(s) in total, "
                f"{len(assignments)} active assignment(s), {len(damaged)} damaged."
            ),
            data={
                "tool_types": len(tools),
                "units": total,
                "by_category": dict(by_category),
                "active_assignments": len(assignments),
                "damaged": damaged,
            },
        )

    # -- assignments --

    async def _do_assign_tool(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("name"):
            return self._clarify("Which tool should I assign?")
        if not data.get("employee"):
            return self._clarify(f"Who should get the {data['name']}?")
        quantity = int(data.get("quantity") or 1)
        tools = self.resolver.resolve_by_name(data["name"], await self.repo.list("tools"))
        people = self.resolver.resolve(data["employee"], await self.repo.list("employees"))
        if tools.outcome is Outcome.NOT_FOUND:
            return self._not_found("tool", data["name"])
        if people.outcome is Outcome.NOT_FOUND:
            return self._not_found("employee", data["employee"])
        if tools.outcome is Outcome.AMBIGUOUS and people.outcome is Outcome.AMBIGUOUS:
            return self._clarify("Both the tool and the employee are ambiguous. Could you use their full names?")
        if tools.outcome is Outcome.AMBIGUOUS:
            return self.broker.disambiguate(
                data["name"], tools, "assign_tool", "tool", employee_id=people.selected["id"], quantity=quantity
            )
        if people.outcome is Outcome.AMBIGUOUS:
            return self.broker.disambiguate(
                data["employee"], people, "assign_tool", "employee", tool_id=tools.selected["id"], quantity=quantity
            )
        return await self._apply_assign(
            {"tool_id": tools.selected["id"], "employee_id": people.selected["id"], "quantity": quantity}, actor, outbox
        )

    async def _apply_assign(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        tool = await self._record_from("tools", payload, "tool_id")
        employee = await self._record_from("employees", payload, "employee_id")
        if tool is None or employee is None:
            return ActionResult(success=False, message="That tool or employee no longer exists.", error="not_found")
        quantity = int(payload.get("quantity") or 1)
        available = tool.get("available_quantity", 0)
        if quantity > available:
            return ActionResult(
                success=False,
                message=f"Only {available} {tool['name']} available, can't assign {quantity}.",
                error="insufficient_stock",
            )
        assignment = await self.repo.create("tool_assignments", {
            "tool_id": tool["id"],
            "employee_id": employee["id"],
            "quantity": quantity,
            "status": "ASSIGNED",
            "assigned_by": actor.id,
            "assigned_at": now_iso(),
        })
        await self.repo.update("tools", tool["id"], {"available_quantity": available - quantity})
        outbox.emit(
            "tools.assigned",
            employee.get("email", ""),
            "Equipment assigned to you",
            f"Hi {employee.get('first_name', '')}, {quantity} x {tool['name']} has been assigned to you.",
            assignment_id=assignment["id"],
        )
        return ActionResult(
            success=True,
            message=f"Assigned {quantity} x {tool['name']} to {full_name(employee)}.",
            data={"assignment": assignment},
        )

    async def _do_return_tool(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("name"):
            return self._clarify("Which tool is being returned?")
        tool, result = await self._resolve_named("tools", data["name"], "return_tool", "tool", condition=data.get("condition"))
        if tool is None:
            return result
        active = [
            a for a in await self.repo.list("tool_assignments")
            if a.get("tool_id") == tool["id"] and a.get("status") == "ASSIGNED"
        ]
        if data.get("employee"):
            holders = [await self.repo.get("employees", a["employee_id"]) for a in active]
            resolution = self.resolver.resolve(data["employee"], [h for h in holders if h])
            if resolution.outcome is not Outcome.AUTO:
                return self._not_found("holder of that tool", data["employee"])
            active = [a for a in active if a["employee_id"] == resolution.selected["id"]]
        if not active:
            return ActionResult(success=False, message=f"No one currently has {tool['name']} checked out.", error="not_assigned")
        if len(active) > 1:
            return self._clarify(f"{len(active)} people have {tool['name']}. Who is returning it?")
        return await self._apply_return({"assignment_id": active[0]["id"], "condition": data.get("condition")}, actor, outbox)

    async def _apply_return(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        assignment = await self.repo.get("tool_assignments", payload.get("assignment_id", ""))
        if assignment is None and (payload.get("tool_id") or payload.get("selected_id")):
            tool_id = payload.get("tool_id") or payload.get("selected_id")
            assignment = next(
                (a for a in await self.repo.list("tool_assignments")
                 if a.get("tool_id") == tool_id and a.get("status") == "ASSIGNED"),
                None,
            )
        if assignment is None or assignment.get("status") != "ASSIGNED":
            return ActionResult(success=False, message="That assignment is not active.", error="not_assigned")
        condition = payload.get("condition") or "GOOD"
        await self.repo.update("tool_assignments", assignment["id"], {
            "status": "RETURNED",
            "return_condition": condition,
            "returned_at": now_iso(),
        })
        tool = await self.repo.get("tools", assignment["tool_id"])
        if tool is not None:
            changes: Dict[str, Any] = {"condition": condition}
            if condition != "DAMAGED":
                changes["available_quantity"] = tool.get("available_quantity", 0) + assignment.get("quantity", 1)
            await self.repo.update("tools", tool["id"], changes)
        await self._mark_equipment_returned(assignment["employee_id"])
        name = tool["name"] if tool else assignment["tool_id"]
        return ActionResult(
            success=True,
            message=f"Returned {name} in {condition} condition.",
            data={"assignment_id": assignment["id"], "condition": condition},
        )

    async def _mark_equipment_returned(self, employee_id: str) -> None:
        """Close out termination reminders once nothing is left checked out."""
        still_out: List[Dict[str, Any]] = [
            a for a in await self.repo.list("tool_assignments")
            if a.get("employee_id") == employee_id and a.get("status") == "ASSIGNED"
        ]
        if still_out:
            return
        for reminder in await self.repo.list("termination_reminders"):
            if reminder.get("employee_id") == employee_id and not reminder.get("equipment_returned"):
                await self.repo.update("termination_reminders", reminder["id"], {"equipment_returned": True})
