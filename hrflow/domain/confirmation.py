"""Confirmation hand-off for ambiguous or consequential actions.

The broker shapes "needs approval" results whose ``confirmation_data``
carries every field the executor needs, so a confirmed action runs with
no further text parsing. Replaying a payload is always allowed.

When a PendingConfirmationStore is attached, each proposal is also
recorded server-side under a correlation id:

States: proposed -> confirmed -> executed | failed
        proposed -> rejected
        proposed -> expired   (TTL elapsed before confirmation)
"""

from __future__ import annotations

import asyncio
import sys
import uuid
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from hrflow.domain.models import ActionResult, Actor
from hrflow.domain.resolver import Resolution, full_name
from hrflow.ports.outbound import RepositoryPort

CONFIRMATIONS = "confirmations"


def _log(msg: str):
    print(msg, file=sys.stderr)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def describe_record(record: Dict[str, Any]) -> str:
    return record.get("name") or full_name(record) or str(record.get("id", ""))


def _detail(record: Dict[str, Any]) -> str:
    return str(record.get("position") or record.get("department") or record.get("category") or record.get("status") or "")


class ConfirmationState(str, Enum):
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    EXECUTED = "executed"
    FAILED = "failed"
    REJECTED = "rejected"
    EXPIRED = "expired"


@dataclass
class PendingConfirmation:
    id: str
    action: str
    payload: Dict[str, Any]
    actor_id: str
    state: str
    created_at: str
    expires_at: str
    updated_at: str
    error: Optional[str] = None


class PendingConfirmationStore:
    """Server-side record of proposed actions, keyed by correlation id."""

    def __init__(
        self,
        repository: RepositoryPort,
        ttl_minutes: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._repo = repository
        self._ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock or _utcnow
        # Claim must be atomic so a correlation id runs at most once
        self._lock = asyncio.Lock()

    async def record(self, actor_id: str, payload: Dict[str, Any]) -> PendingConfirmation:
        now = self._clock()
        pending = PendingConfirmation(
            id=str(uuid.uuid4())[:8],
            action=str(payload.get("action", "")),
            payload=dict(payload),
            actor_id=actor_id,
            state=ConfirmationState.PROPOSED.value,
            created_at=now.isoformat(),
            expires_at=(now + self._ttl).isoformat(),
            updated_at=now.isoformat(),
        )
        await self._repo.create(CONFIRMATIONS, asdict(pending))
        return pending

    async def get(self, correlation_id: str) -> Optional[PendingConfirmation]:
        raw = await self._repo.get(CONFIRMATIONS, correlation_id)
        if raw is None:
            return None
        known = {f.name for f in fields(PendingConfirmation)}
        return PendingConfirmation(**{k: v for k, v in raw.items() if k in known})

    async def claim(
        self, correlation_id: str, actor_id: str
    ) -> Tuple[Optional[PendingConfirmation], Optional[str]]:
        """Move a proposal to confirmed. Returns (record, error_code)."""
        async with self._lock:
            pending = await self.get(correlation_id)
            if pending is None:
                return None, "not_found"
            if pending.actor_id != actor_id:
                return None, "forbidden"
            if pending.state == ConfirmationState.PROPOSED.value and self._is_expired(pending):
                await self._set_state(pending, ConfirmationState.EXPIRED)
                return None, "expired"
            if pending.state != ConfirmationState.PROPOSED.value:
                return None, f"already_{pending.state}"
            await self._set_state(pending, ConfirmationState.CONFIRMED)
            return pending, None

    async def finish(self, correlation_id: str, success: bool, error: Optional[str] = None) -> None:
        pending = await self.get(correlation_id)
        if pending is None:
            return
        state = ConfirmationState.EXECUTED if success else ConfirmationState.FAILED
        await self._set_state(pending, state, error=error)

    async def reject(self, correlation_id: str, actor_id: str) -> Dict[str, Any]:
        async with self._lock:
            pending = await self.get(correlation_id)
            if pending is None:
                return {"success": False, "error": "not_found"}
            if pending.actor_id != actor_id:
                return {"success": False, "error": "forbidden"}
            if pending.state != ConfirmationState.PROPOSED.value:
                return {"success": False, "error": f"already_{pending.state}"}
            await self._set_state(pending, ConfirmationState.REJECTED)
        return {"success": True, "id": correlation_id, "state": ConfirmationState.REJECTED.value}

    async def list_pending(self, actor_id: Optional[str] = None) -> List[PendingConfirmation]:
        """Open proposals, expiring any whose TTL has passed."""
        out: List[PendingConfirmation] = []
        for raw in await self._repo.list(CONFIRMATIONS):
            pending = await self.get(raw["id"])
            if pending is None or pending.state != ConfirmationState.PROPOSED.value:
                continue
            if self._is_expired(pending):
                await self._set_state(pending, ConfirmationState.EXPIRED)
                continue
            if actor_id is None or pending.actor_id == actor_id:
                out.append(pending)
        return out

    def _is_expired(self, pending: PendingConfirmation) -> bool:
        return self._clock() >= datetime.fromisoformat(pending.expires_at)

    async def _set_state(
        self, pending: PendingConfirmation, state: ConfirmationState, error: Optional[str] = None
    ) -> None:
        pending.state = state.value
        pending.updated_at = self._clock().isoformat()
        pending.error = error
        await self._repo.update(CONFIRMATIONS, pending.id, {
            "state": pending.state,
            "updated_at": pending.updated_at,
            "error": error,
        })
        _log(f"[Confirm] {pending.id} ({pending.action}) -> {pending.state}")


class ConfirmationBroker:
    """Builds confirmation results; optionally tracks them in a store."""

    def __init__(self, store: Optional[PendingConfirmationStore] = None):
        self.store = store

    def disambiguate(
        self,
        fragment: str,
        resolution: Resolution,
        action: str,
        entity_label: str = "employee",
        **fields_,
    ) -> ActionResult:
        candidates = [
            {
                "id": m.record.get("id"),
                "name": describe_record(m.record),
                "position": _detail(m.record),
                "score": round(m.score, 2),
            }
            for m in resolution.matches
        ]
        if len(candidates) == 1:
            only = candidates[0]
            suffix = f" ({only['position']})" if only["position"] else ""
            message = (
                f"I couldn't find an exact {entity_label} match for \"{fragment}\". "
                f"Did you mean {only['name']}{suffix}?"
            )
        else:
            lines = [
                f"{i}. {c['name']}" + (f" ({c['position']})" if c["position"] else "") + f" - {int(c['score'] * 100)}% match"
                for i, c in enumerate(candidates, 1)
            ]
            message = (
                f"I found {len(candidates)} {entity_label}s matching \"{fragment}\". "
                "Which one did you mean?\n" + "\n".join(lines)
            )
        return ActionResult(
            success=False,
            message=message,
            requires_confirmation=True,
            confirmation_data={"action": action, "candidates": candidates, **fields_},
        )

    def propose(self, summary: str, action: str, **fields_) -> ActionResult:
        return ActionResult(
            success=False,
            message=f"{summary}\n\nPlease confirm to proceed.",
            requires_confirmation=True,
            confirmation_data={"action": action, **fields_},
        )

    async def track(self, result: ActionResult, actor: Actor) -> ActionResult:
        """Record a confirmation result in the store and stamp its id."""
        if self.store is None or not result.requires_confirmation or not result.confirmation_data:
            return result
        pending = await self.store.record(actor.id, result.confirmation_data)
        result.confirmation_data["correlation_id"] = pending.id
        result.data = {**(result.data or {}), "correlation_id": pending.id, "expires_at": pending.expires_at}
        return result
