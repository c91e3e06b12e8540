"""Domain events and the relay that turns them into notifications.

Executors never call the notifier themselves: they record events in a
per-message outbox, and the dispatcher hands the outbox to the relay
once the mutation has been committed. A delivery failure is logged and
never changes the outcome of the action that produced the event.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hrflow.ports.outbound import NotificationPort


def _log(msg: str):
    print(msg, file=sys.stderr)


@dataclass
class DomainEvent:
    kind: str  # e.g. "pto.approved", "interview.scheduled"
    to: str
    subject: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)


class EventOutbox:
    """Events collected while a single message is processed."""

    def __init__(self):
        self._events: List[DomainEvent] = []

    def emit(self, kind: str, to: str, subject: str, body: str, **data) -> DomainEvent:
        event = DomainEvent(kind=kind, to=to, subject=subject, body=body, data=data)
        self._events.append(event)
        return event

    def drain(self) -> List[DomainEvent]:
        events, self._events = self._events, []
        return events

    @property
    def pending(self) -> List[DomainEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)


class NotificationRelay:
    """Delivers drained outbox events through a NotificationPort."""

    def __init__(self, notifier: Optional[NotificationPort] = None):
        self._notifier = notifier
        self.delivered = 0
        self.failed = 0

    async def flush(self, outbox: EventOutbox) -> int:
        events = outbox.drain()
        if self._notifier is None:
            return 0
        sent = 0
        for event in events:
            if not event.to:
                _log(f"[Relay] {event.kind}: no recipient, skipped")
                continue
            try:
                ok = await self._notifier.send(event.to, event.subject, event.body)
            except Exception as e:
                _log(f"[Relay] {event.kind} to {event.to} failed: {e}")
                ok = False
            if ok:
                sent += 1
            else:
                self.failed += 1
        self.delivered += sent
        return sent
