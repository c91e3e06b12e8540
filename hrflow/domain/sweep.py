"""Termination follow-up sweep and the guard that keeps runs from overlapping."""

from __future__ import annotations

import asyncio
import sys
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from hrflow.domain.events import EventOutbox, NotificationRelay
from hrflow.ports.outbound import RepositoryPort

REMINDERS = "termination_reminders"


def _log(msg: str):
    print(msg, file=sys.stderr)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SweepGuard:
    """Non-blocking run guard: an overlapping run is skipped, never queued."""

    def __init__(self, name: str = "Sweep"):
        self.name = name
        self._lock = asyncio.Lock()
        self.runs = 0
        self.skipped = 0
        self.last_started: Optional[str] = None
        self.last_finished: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run(self, job: Callable[[], Any]) -> Optional[Any]:
        """Await ``job()`` unless a run is already in progress."""
        if self._lock.locked():
            self.skipped += 1
            _log(f"[{self.name}] Already running, skipping")
            return None
        async with self._lock:
            self.last_started = _utcnow().isoformat()
            try:
                return await job()
            finally:
                self.runs += 1
                self.last_finished = _utcnow().isoformat()

    def status(self) -> Dict[str, Any]:
        return {
            "busy": self.busy,
            "runs": self.runs,
            "skipped": self.skipped,
            "last_started": self.last_started,
            "last_finished": self.last_finished,
        }


# (stamp, minimum days since termination, flag that makes it unnecessary)
STEPS = (
    ("day_7_return_schedule", 7, "equipment_return_scheduled"),
    ("day_15_hr_alert", 15, "equipment_returned"),
    ("day_30_return_form", 30, "return_form_signed"),
)


class TerminationReminderSweep:
    """Chases terminated employees for equipment return and paperwork.

    At 7 days the employee is asked to schedule an equipment return, at 15
    days HR is alerted if the equipment is still out, and at 30 days the
    employee is reminded to sign the return form. A step is stamped in
    ``reminders_sent`` once it is delivered, so it goes out once; an
    undelivered step is tried again on the next pass.
    """

    def __init__(
        self,
        repository: RepositoryPort,
        relay: Optional[NotificationRelay] = None,
        hr_email: str = "hr@company.com",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._repo = repository
        self._relay = relay or NotificationRelay()
        self.hr_email = hr_email
        self._clock = clock or _utcnow
        self.guard = SweepGuard("TerminationSweep")
        self._task: Optional[asyncio.Task] = None

    async def run_once(self, now: Optional[datetime] = None) -> Optional[int]:
        """Run one guarded pass. Returns reminders sent, or None if skipped."""
        return await self.guard.run(lambda: self._sweep(now or self._clock()))

    async def _sweep(self, now: datetime) -> int:
        today = now.date() if isinstance(now, datetime) else now
        sent = 0
        for reminder in await self._repo.list(REMINDERS):
            try:
                sent += await self._process(reminder, today)
            except Exception as e:
                _log(f"[TerminationSweep] reminder {reminder.get('id')} skipped: {e}")
        if sent:
            _log(f"[TerminationSweep] {sent} reminder(s) sent")
        return sent

    async def _process(self, reminder: Dict[str, Any], today: date) -> int:
        """Deliver due steps one by one; only delivered steps are stamped."""
        terminated = reminder.get("termination_date")
        if not terminated:
            return 0
        elapsed = (today - date.fromisoformat(str(terminated)[:10])).days
        stamped = list(reminder.get("reminders_sent") or [])
        due = [
            stamp for stamp, days, done_flag in STEPS
            if elapsed >= days and not reminder.get(done_flag) and stamp not in stamped
        ]
        delivered = []
        outbox = EventOutbox()
        try:
            for stamp in due:
                self._emit(stamp, reminder, outbox)
                if await self._relay.flush(outbox):
                    delivered.append(stamp)
        finally:
            if delivered:
                await self._repo.update(REMINDERS, reminder["id"], {"reminders_sent": stamped + delivered})
        return len(delivered)

    def _emit(self, stamp: str, reminder: Dict[str, Any], outbox: EventOutbox) -> None:
        name = reminder.get("employee_name", "")
        email = reminder.get("employee_email", "")
        if stamp == "day_7_return_schedule":
            outbox.emit(
                "termination.return_schedule",
                email,
                "Please schedule your equipment return",
                f"Hi {name},\n\nPlease reply to schedule a time to return your company equipment.",
                reminder_id=reminder["id"],
            )
        elif stamp == "day_15_hr_alert":
            outbox.emit(
                "termination.equipment_outstanding",
                self.hr_email,
                f"Equipment not returned: {name}",
                f"{name} was terminated on {reminder.get('termination_date')} and has not returned their equipment.",
                reminder_id=reminder["id"],
            )
        else:
            outbox.emit(
                "termination.return_form",
                email,
                "Please sign your equipment return form",
                f"Hi {name},\n\nYour equipment return form is still unsigned. Please sign it at your earliest convenience.",
                reminder_id=reminder["id"],
            )

    # -- background loop --

    def start(self, interval_seconds: float) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(interval_seconds))

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _loop(self, interval_seconds: float) -> None:
        _log(f"[TerminationSweep] loop started, every {interval_seconds}s")
        while True:
            try:
                await self.run_once()
            except Exception as e:
                _log(f"[TerminationSweep] sweep error: {e}")
            await asyncio.sleep(interval_seconds)
