"""Contracts: drafting, sending, signing, renewals and terminations."""

from __future__ import annotations

import re
from collections import Counter
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from hrflow.domain.dates import add_months, find_date_mentions, parse_natural_date
from hrflow.domain.events import EventOutbox
from hrflow.domain.managers.base import DomainManager, now_iso
from hrflow.domain.managers.messaging import EMAIL_RE
from hrflow.domain.models import ActionResult, Actor, Command
from hrflow.domain.resolver import Outcome, Resolution, full_name

CONTRACT_TYPES = ("EMPLOYMENT", "NDA", "SERVICE", "VENDOR")
OPEN_STATUSES = ("DRAFT", "SENT", "ACTIVE")
DEFAULT_TERM_MONTHS = 12
EXPIRING_WINDOW_DAYS = 30

PARTY = r"([A-Za-z][\w&.'-]*(?:\s+[A-Z][\w&.'-]*){0,3})"

_PARTY_RES = [
    re.compile(rf"(?i:\bcontract\s+(?:for|with|to))\s+{PARTY}"),
    re.compile(rf"(?i:\b(?:nda|agreement)\s+(?:for|with|to))\s+{PARTY}"),
    re.compile(rf"\b{PARTY}'s\s+(?i:(?:\w+\s+)?(?:contract|nda|agreement))"),
    re.compile(rf"(?i:\b(?:send|sign|renew|terminate|cancel|end)\s+(?:the\s+)?){PARTY}\s+(?i:(?:\w+\s+)?(?:contract|nda|agreement))"),
    re.compile(rf"(?i:\b(?:for|with|to))\s+{PARTY}"),
]
_TERM_RE = re.compile(r"(\d+)\s*(months?|years?)", re.IGNORECASE)
_UNTIL_RE = re.compile(r"\b(?:until|through|ending|ends)\s+(.+?)(?=[.,!?]|$)", re.IGNORECASE)
_VALUE_RE = re.compile(r"\$\s?([\d,]+(?:\.\d{2})?)\s*(k)?", re.IGNORECASE)
_REASON_RE = re.compile(r"\b(?:because|reason:?|due\s+to)\s+(.+)", re.IGNORECASE)
_NOT_PARTIES = {
    "the", "a", "an", "all", "contract", "contracts", "nda", "agreement", "signature", "review",
    "signing", "employment", "service", "vendor", "them", "him", "her",
    "send", "sign", "renew", "extend", "terminate", "cancel", "end", "create", "draft", "mark",
}


def contract_type(lower: str) -> str:
    if re.search(r"\b(?:nda|non-disclosure|confidentiality)\b", lower):
        return "NDA"
    if re.search(r"\b(?:vendor|supplier)\b", lower):
        return "VENDOR"
    if re.search(r"\b(?:service|services|consulting|contractor)\b", lower):
        return "SERVICE"
    return "EMPLOYMENT"


def _party(message: str) -> Optional[str]:
    message = EMAIL_RE.sub("", message)
    for pattern in _PARTY_RES:
        for m in pattern.finditer(message):
            value = re.sub(r"'s$", "", m.group(1).strip())
            if value.lower() not in _NOT_PARTIES and value.split()[0].lower() not in _NOT_PARTIES:
                return value
    return None


def _term_months(message: str) -> Optional[int]:
    m = _TERM_RE.search(message)
    if not m:
        return None
    return int(m.group(1)) * (12 if m.group(2).lower().startswith("year") else 1)


def parse_command(message: str) -> Optional[Command]:
    """Map free text to a contract Command, or None."""
    lower = message.lower()
    if not re.search(r"\b(?:contracts?|nda|agreements?)\b", lower):
        return None
    party = _party(message)

    if re.search(r"\b(?:expire|expired|expiring)\b", lower) and not party:
        return Command("contract", "expire_contracts", {})

    if "report" in lower or "summary" in lower or "overview" in lower:
        return Command("contract", "generate_report", {})

    if re.search(r"\b(?:terminate|cancel|end|void)\b", lower):
        reason = _REASON_RE.search(message)
        return Command("contract", "terminate_contract", {
            "party": party, "reason": reason.group(1).strip() if reason else None,
        })

    if re.search(r"\brenew(?:al)?\b", lower) or "extend" in lower:
        return Command("contract", "renew_contract", {"party": party, "months": _term_months(message)})

    if re.search(r"\b(?:signed|sign)\b", lower) and not re.search(r"\bsend\b.*\bfor\s+signature\b", lower):
        return Command("contract", "sign_contract", {"party": party})

    if re.search(r"\b(?:send|email|deliver)\b", lower):
        email = EMAIL_RE.search(message)
        return Command("contract", "send_contract", {"party": party, "email": email.group(0) if email else None})

    if re.search(r"\b(?:create|draft|new|prepare|generate|write|add)\b", lower):
        until = _UNTIL_RE.search(message)
        mentions = find_date_mentions(until.group(1)) if until else []
        value = _VALUE_RE.search(message)
        amount = None
        if value:
            amount = float(value.group(1).replace(",", "")) * (1000 if value.group(2) else 1)
        email = EMAIL_RE.search(message)
        return Command("contract", "create_contract", {
            "party": party,
            "type": contract_type(lower),
            "months": _term_months(message),
            "until": mentions[0] if mentions else None,
            "value": amount,
            "email": email.group(0) if email else None,
        })

    return None


class ContractManager(DomainManager):
    domain = "contract"
    confirm_actions = {
        "confirm_create_contract": "_apply_create",
        "confirm_send_contract": "_apply_send",
        "confirm_sign_contract": "_apply_sign",
        "confirm_renew_contract": "_apply_renew",
        "confirm_terminate_contract": "_apply_terminate",
    }

    def _resolve_contract(self, fragment: str, records: List[Dict[str, Any]]) -> Resolution:
        resolution = self.resolver.resolve_by_name(fragment, records, key="party_name")
        if resolution.outcome is Outcome.NOT_FOUND:
            resolution = self.resolver.resolve_by_name(fragment, records, key="title")
        return resolution

    async def _contract(self, data: Dict[str, Any], action: str, statuses=OPEN_STATUSES, **fields):
        """Find the contract a request names among those in ``statuses``."""
        records = [c for c in await self.repo.list("contracts") if c.get("status") in statuses]
        if not data.get("party"):
            if len(records) == 1:
                return records[0], None
            return None, self._clarify("Which contract do you mean? Tell me who it's with.")
        resolution = self._resolve_contract(data["party"], records)
        if resolution.outcome is Outcome.AUTO:
            return resolution.selected, None
        if resolution.outcome is Outcome.AMBIGUOUS:
            return None, self.broker.disambiguate(data["party"], resolution, action, "contract", **fields)
        return None, self._not_found("contract", data["party"])

    # -- drafting --

    async def _do_create_contract(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        if not data.get("party"):
            return self._clarify("Who is the contract with?")
        kind = data.get("type") or "EMPLOYMENT"
        start = self.today()
        end = parse_natural_date(data["until"], start) if data.get("until") else None
        end = end or add_months(start, data.get("months") or DEFAULT_TERM_MONTHS)
        payload = {
            "party_name": data["party"],
            "type": kind,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "value": data.get("value"),
            "party_email": data.get("email"),
        }
        employees = self.resolver.resolve(data["party"], await self.repo.list("employees"))
        if employees.outcome is Outcome.AMBIGUOUS and kind == "EMPLOYMENT":
            return self.broker.disambiguate(data["party"], employees, "confirm_create_contract", "employee", **payload)
        linked = employees.selected if employees.outcome is Outcome.AUTO else None
        entity = "employees"
        if linked is None:
            candidates = self.resolver.resolve(data["party"], await self.repo.list("candidates"))
            linked = candidates.selected if candidates.outcome is Outcome.AUTO else None
            entity = "candidates"
        if linked is not None:
            payload.update({"party_id": linked["id"], "party_entity": entity})
        return await self._apply_create(payload, actor, outbox)

    async def _apply_create(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        party_name, party_email = payload.get("party_name", ""), payload.get("party_email")
        party_id, entity = payload.get("party_id"), payload.get("party_entity")
        if not party_id and payload.get("selected_id"):
            party_id, entity = payload["selected_id"], "employees"
        if party_id:
            record = await self.repo.get(entity or "employees", str(party_id))
            if record is not None:
                party_name = full_name(record) or party_name
                party_email = party_email or record.get("email")
        kind = payload.get("type", "EMPLOYMENT")
        label = "NDA" if kind == "NDA" else kind.title()
        contract = await self.repo.create("contracts", {
            "title": f"{label} Contract - {party_name}",
            "type": kind,
            "party_name": party_name,
            "party_id": party_id,
            "party_email": party_email,
            "status": "DRAFT",
            "start_date": payload.get("start_date") or self.today().isoformat(),
            "end_date": payload.get("end_date"),
            "value": payload.get("value"),
            "created_by": actor.id,
            "created_at": now_iso(),
        })
        return ActionResult(
            success=True,
            message=f"Drafted {contract['title']} ({contract['start_date']} to {contract['end_date']}).",
            data={"contract": contract},
        )

    async def _do_send_contract(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        contract, result = await self._contract(data, "confirm_send_contract", ("DRAFT", "SENT"), email=data.get("email"))
        if contract is None:
            return result
        return await self._apply_send({"contract_id": contract["id"], "email": data.get("email")}, actor, outbox)

    async def _apply_send(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        contract = await self._record_from("contracts", payload, "contract_id")
        if contract is None:
            return ActionResult(success=False, message="That contract no longer exists.", error="not_found")
        email = payload.get("email") or contract.get("party_email")
        if not email:
            return ActionResult(
                success=False,
                message=f"There is no email address for {contract['party_name']}. Which address should I use?",
                error="missing_email",
            )
        await self.repo.update("contracts", contract["id"], {"status": "SENT", "party_email": email, "sent_at": now_iso()})
        outbox.emit(
            "contract.sent",
            email,
            f"Please review and sign: {contract['title']}",
            f"Hello {contract['party_name']},\n\n{actor.display_name} has sent you {contract['title']} for signature.",
            contract_id=contract["id"],
        )
        return ActionResult(
            success=True,
            message=f"Sent {contract['title']} to {email} for signature.",
            data={"contract_id": contract["id"], "email": email},
        )

    async def _do_sign_contract(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        contract, result = await self._contract(data, "confirm_sign_contract", ("DRAFT", "SENT"))
        if contract is None:
            return result
        return await self._apply_sign({"contract_id": contract["id"]}, actor, outbox)

    async def _apply_sign(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        contract = await self._record_from("contracts", payload, "contract_id")
        if contract is None:
            return ActionResult(success=False, message="That contract no longer exists.", error="not_found")
        if contract.get("status") not in ("DRAFT", "SENT"):
            return ActionResult(
                success=False,
                message=f"{contract['title']} is {contract.get('status', '').lower()} and can't be signed.",
                error="invalid_status",
            )
        await self.repo.update("contracts", contract["id"], {"status": "ACTIVE", "signed_at": now_iso()})
        return ActionResult(
            success=True,
            message=f"{contract['title']} is signed and now active.",
            data={"contract_id": contract["id"], "status": "ACTIVE"},
        )

    # -- lifecycle --

    async def _do_renew_contract(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        months = data.get("months") or DEFAULT_TERM_MONTHS
        contract, result = await self._contract(
            data, "confirm_renew_contract", ("ACTIVE", "EXPIRED"), months=months
        )
        if contract is None:
            return result
        return await self._apply_renew({"contract_id": contract["id"], "months": months}, actor, outbox)

    async def _apply_renew(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        contract = await self._record_from("contracts", payload, "contract_id")
        if contract is None:
            return ActionResult(success=False, message="That contract no longer exists.", error="not_found")
        months = int(payload.get("months") or DEFAULT_TERM_MONTHS)
        current_end = date.fromisoformat(contract["end_date"]) if contract.get("end_date") else self.today()
        new_end = add_months(max(current_end, self.today()), months)
        await self.repo.update("contracts", contract["id"], {
            "status": "ACTIVE",
            "end_date": new_end.isoformat(),
            "renewals": contract.get("renewals", 0) + 1,
            "renewed_at": now_iso(),
        })
        return ActionResult(
            success=True,
            message=f"Renewed {contract['title']} for {months} month(s), now ending {new_end.isoformat()}.",
            data={"contract_id": contract["id"], "end_date": new_end.isoformat()},
        )

    async def _do_terminate_contract(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        contract, result = await self._contract(data, "confirm_terminate_contract", reason=data.get("reason"))
        if contract is None:
            return result
        why = f" Reason: {data['reason']}." if data.get("reason") else ""
        return self.broker.propose(
            f"Terminate {contract['title']}?{why}",
            "confirm_terminate_contract",
            contract_id=contract["id"],
            reason=data.get("reason"),
        )

    async def _apply_terminate(self, payload: Dict[str, Any], actor: Actor, outbox: EventOutbox) -> ActionResult:
        contract = await self._record_from("contracts", payload, "contract_id")
        if contract is None:
            return ActionResult(success=False, message="That contract no longer exists.", error="not_found")
        if contract.get("status") not in OPEN_STATUSES:
            return ActionResult(
                success=False,
                message=f"{contract['title']} is already {contract.get('status', '').lower()}.",
                error="invalid_status",
            )
        await self.repo.update("contracts", contract["id"], {
            "status": "TERMINATED",
            "terminated_at": now_iso(),
            "termination_reason": payload.get("reason") or "",
        })
        if contract.get("party_email"):
            outbox.emit(
                "contract.terminated",
                contract["party_email"],
                f"Contract terminated: {contract['title']}",
                f"{contract['title']} has been terminated effective {self.today().isoformat()}.",
                contract_id=contract["id"],
            )
        return ActionResult(
            success=True,
            message=f"Terminated {contract['title']}.",
            data={"contract_id": contract["id"], "status": "TERMINATED"},
        )

    async def _do_expire_contracts(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        today = self.today()
        expired = []
        for contract in await self.repo.list("contracts"):
            end = contract.get("end_date")
            if contract.get("status") == "ACTIVE" and end and date.fromisoformat(end) < today:
                await self.repo.update("contracts", contract["id"], {"status": "EXPIRED"})
                expired.append(contract["title"])
        return ActionResult(
            success=True,
            message=f"Marked {len(expired)} contract(s) as expired.",
            data={"expired": expired},
        )

    async def _do_generate_report(self, data, actor: Actor, outbox: EventOutbox) -> ActionResult:
        contracts = await self.repo.list("contracts")
        horizon = self.today() + timedelta(days=EXPIRING_WINDOW_DAYS)
        expiring = [
            c["title"] for c in contracts
            if c.get("status") == "ACTIVE" and c.get("end_date") and date.fromisoformat(c["end_date"]) <= horizon
        ]
        by_status = Counter(c.get("status", "DRAFT") for c in contracts)
        return ActionResult(
            success=True,
            message=(
                f"{len(contracts)} contract(s): {by_status.get('ACTIVE', 0)} active, "
                f"{by_status.get('DRAFT', 0) + by_status.get('SENT', 0)} awaiting signature, "
                f"{len(expiring)} expiring within {EXPIRING_WINDOW_DAYS} days."
            ),
            data={
                "total": len(contracts),
                "by_status": dict(by_status),
                "by_type": dict(Counter(c.get("type", "EMPLOYMENT") for c in contracts)),
                "expiring_soon": expiring,
            },
        )
