"""Tests for the termination reminder sweep and its run guard."""

import asyncio
from datetime import datetime, timezone

import pytest

from hrflow.adapters.storage.memory_repository import InMemoryRepository
from hrflow.domain.events import NotificationRelay
from hrflow.domain.sweep import SweepGuard, TerminationReminderSweep


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    async def send(self, to, subject, body):
        self.sent.append((to, subject))
        return True


def reminder(rid, terminated, **flags):
    return {
        "id": rid,
        "employee_id": f"emp-{rid}",
        "employee_name": f"Person {rid}",
        "employee_email": f"{rid}@company.com",
        "termination_date": terminated,
        "equipment_return_scheduled": False,
        "equipment_returned": False,
        "return_form_signed": False,
        "reminders_sent": [],
        **flags,
    }


def at(day):
    return datetime(2026, 10, day, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def notifier():
    return RecordingNotifier()


def make_sweep(notifier, *reminders):
    repo = InMemoryRepository({"termination_reminders": list(reminders)})
    return TerminationReminderSweep(repo, NotificationRelay(notifier), hr_email="hr@company.com"), repo


class TestSweepGuard:
    @pytest.mark.asyncio
    async def test_overlapping_run_is_skipped(self):
        guard = SweepGuard("Test")
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return "done"

        first = asyncio.create_task(guard.run(slow))
        await asyncio.sleep(0)
        assert guard.busy is True
        assert await guard.run(slow) is None
        release.set()
        assert await first == "done"
        assert guard.status()["runs"] == 1
        assert guard.status()["skipped"] == 1
        assert guard.busy is False

    @pytest.mark.asyncio
    async def test_failed_job_still_counts(self):
        guard = SweepGuard("Test")

        async def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await guard.run(broken)
        assert guard.runs == 1
        assert guard.last_finished is not None


class TestTerminationReminderSweep:
    @pytest.mark.asyncio
    async def test_nothing_due_in_first_week(self, notifier):
        sweep, _ = make_sweep(notifier, reminder("a", "2026-10-18"))
        assert await sweep.run_once(at(21)) == 0
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_day_seven_asks_employee(self, notifier):
        sweep, repo = make_sweep(notifier, reminder("a", "2026-10-14"))
        assert await sweep.run_once(at(21)) == 1
        assert notifier.sent == [("a@company.com", "Please schedule your equipment return")]
        assert (await repo.get("termination_reminders", "a"))["reminders_sent"] == ["day_7_return_schedule"]

    @pytest.mark.asyncio
    async def test_steps_are_sent_once(self, notifier):
        sweep, _ = make_sweep(notifier, reminder("a", "2026-10-14"))
        await sweep.run_once(at(21))
        assert await sweep.run_once(at(22)) == 0
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_late_sweep_catches_up(self, notifier):
        sweep, repo = make_sweep(notifier, reminder("a", "2026-09-01"))
        assert await sweep.run_once(at(21)) == 3
        recipients = [to for to, _ in notifier.sent]
        assert recipients == ["a@company.com", "hr@company.com", "a@company.com"]
        assert len((await repo.get("termination_reminders", "a"))["reminders_sent"]) == 3

    @pytest.mark.asyncio
    async def test_done_flags_suppress_steps(self, notifier):
        sweep, _ = make_sweep(
            notifier,
            reminder("a", "2026-09-01", equipment_return_scheduled=True, equipment_returned=True),
        )
        assert await sweep.run_once(at(21)) == 1
        assert notifier.sent == [("a@company.com", "Please sign your equipment return form")]

    @pytest.mark.asyncio
    async def test_hr_alert_at_fifteen_days(self, notifier):
        sweep, _ = make_sweep(
            notifier,
            reminder("a", "2026-10-06", reminders_sent=["day_7_return_schedule"]),
        )
        assert await sweep.run_once(at(21)) == 1
        assert notifier.sent == [("hr@company.com", "Equipment not returned: Person a")]

    @pytest.mark.asyncio
    async def test_reminder_without_date_is_ignored(self, notifier):
        sweep, _ = make_sweep(notifier, reminder("a", None))
        assert await sweep.run_once(at(21)) == 0

    @pytest.mark.asyncio
    async def test_bad_row_does_not_abort_pass(self, notifier):
        sweep, repo = make_sweep(
            notifier,
            reminder("a", "2026-10-01"),
            reminder("b", "10/01/2026"),
            reminder("c", "2026-10-13"),
        )
        assert await sweep.run_once(at(20)) == 3
        assert [to for to, _ in notifier.sent] == ["a@company.com", "hr@company.com", "c@company.com"]
        assert (await repo.get("termination_reminders", "a"))["reminders_sent"] == [
            "day_7_return_schedule", "day_15_hr_alert",
        ]
        assert (await repo.get("termination_reminders", "b"))["reminders_sent"] == []
        assert sweep.guard.runs == 1

    @pytest.mark.asyncio
    async def test_undelivered_step_is_retried(self):
        class FlakyNotifier(RecordingNotifier):
            def __init__(self):
                super().__init__()
                self.down = True

            async def send(self, to, subject, body):
                if self.down:
                    return False
                return await super().send(to, subject, body)

        flaky = FlakyNotifier()
        sweep, repo = make_sweep(flaky, reminder("a", "2026-10-14"))
        assert await sweep.run_once(at(21)) == 0
        assert (await repo.get("termination_reminders", "a"))["reminders_sent"] == []

        flaky.down = False
        assert await sweep.run_once(at(22)) == 1
        assert flaky.sent == [("a@company.com", "Please schedule your equipment return")]
        assert (await repo.get("termination_reminders", "a"))["reminders_sent"] == ["day_7_return_schedule"]

    @pytest.mark.asyncio
    async def test_start_and_stop_loop(self, notifier):
        sweep, _ = make_sweep(notifier)
        sweep.start(3600)
        for _ in range(5):
            await asyncio.sleep(0)
        await sweep.stop()
        assert sweep.guard.runs == 1
