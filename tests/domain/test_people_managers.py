"""Executor tests for employees, PTO, recruiting, messaging and lookup."""

from datetime import date

import pytest

from hrflow.adapters.storage.memory_repository import InMemoryRepository
from hrflow.domain.events import EventOutbox
from hrflow.domain.managers import (
    EmployeeManager,
    LookupManager,
    MessagingManager,
    PTOManager,
    RecruitingManager,
)
from hrflow.domain.models import Actor, Command

TODAY = date(2026, 10, 21)

HR = Actor(id="hr1", role="HR_MANAGER", first_name="Hana", last_name="Park", email="hana@company.com")
SARAH = Actor(id="e1", role="EMPLOYEE", first_name="Sarah", last_name="Chen", email="sarah@company.com")


def seed():
    return {
        "employees": [
            {"id": "e1", "first_name": "Sarah", "last_name": "Chen", "email": "sarah@company.com",
             "department": "HR", "pto_balance": {"VACATION": 10}},
            {"id": "e2", "first_name": "David", "last_name": "Chen", "email": "david@company.com",
             "department": "Sales", "pto_balance": {"VACATION": 2}},
            {"id": "e4", "first_name": "Maria", "last_name": "Lopez", "email": "maria@company.com",
             "department": "Sales", "role": "MANAGER"},
            {"id": "e5", "first_name": "John", "last_name": "Smith", "email": "john@company.com",
             "department": "Engineering"},
        ],
        "candidates": [
            {"id": "c1", "first_name": "Jon", "last_name": "Smith", "email": "jon@mail.com", "status": "APPLIED"},
            {"id": "c3", "first_name": "Robert", "last_name": "Brown", "email": "rob@mail.com", "status": "APPLIED"},
        ],
    }


def make(cls, data=None):
    repo = InMemoryRepository(seed() if data is None else data)
    return cls(repo, today=lambda: TODAY), repo


async def run(manager, kind, actor=HR, **data):
    outbox = EventOutbox()
    result = await manager.execute(Command(manager.domain, kind, data), actor, outbox)
    return result, outbox


async def confirm(manager, payload, actor=HR, **extra):
    outbox = EventOutbox()
    result = await manager.confirm({**payload, **extra}, actor, outbox)
    return result, outbox


class TestEmployeeManager:
    @pytest.mark.asyncio
    async def test_create_is_proposed_then_applied(self):
        mgr, repo = make(EmployeeManager)
        proposal, _ = await run(
            mgr, "create_employee",
            first_name="Priya", last_name="Nair", email=None, role="MANAGER", department="Engineering", position=None,
        )
        assert proposal.requires_confirmation is True
        assert proposal.confirmation_data["email"] == "priya.nair@company.com"

        result, outbox = await confirm(mgr, proposal.confirmation_data)
        assert result.success is True
        assert "password_reset_token" not in result.data["employee"]
        stored = [e for e in await repo.list("employees") if e["email"] == "priya.nair@company.com"]
        assert stored[0]["role"] == "MANAGER"
        assert stored[0]["pto_balance"] == {"VACATION": 15}
        assert [e.kind for e in outbox.pending] == ["employee.created"]

    @pytest.mark.asyncio
    async def test_create_duplicate_email(self):
        mgr, _ = make(EmployeeManager)
        result, _ = await confirm(mgr, {"action": "create_employee", "first_name": "S", "email": "SARAH@company.com"})
        assert result.error == "duplicate_email"

    @pytest.mark.asyncio
    async def test_terminate_starts_reminders(self):
        mgr, repo = make(EmployeeManager)
        proposal, _ = await run(mgr, "terminate_employee", employee="John Smith", email=None, reason="restructuring")
        assert proposal.confirmation_data["action"] == "confirm_termination"
        result, outbox = await confirm(mgr, proposal.confirmation_data)
        assert result.success is True
        john = await repo.get("employees", "e5")
        assert john["is_active"] is False
        assert john["termination_date"] == "2026-10-21"
        reminders = await repo.list("termination_reminders")
        assert reminders[0]["employee_id"] == "e5"
        assert reminders[0]["reminders_sent"] == []
        assert outbox.pending[0].to == "hr@company.com"

    @pytest.mark.asyncio
    async def test_cannot_terminate_self(self):
        mgr, _ = make(EmployeeManager)
        actor = Actor(id="e1", role="ADMIN")
        result, _ = await run(mgr, "terminate_employee", actor=actor, employee="Sarah Chen", email=None, reason=None)
        assert result.error == "self_termination"

    @pytest.mark.asyncio
    async def test_transfer_misspelled_then_confirmed(self):
        mgr, repo = make(EmployeeManager)
        result, _ = await run(mgr, "transfer_employee", employee="Davd", email=None, department="Marketing")
        assert result.requires_confirmation is True
        assert result.confirmation_data["department"] == "Marketing"
        done, outbox = await confirm(mgr, result.confirmation_data, selected_id="e2")
        assert done.success is True
        assert (await repo.get("employees", "e2"))["department"] == "Marketing"
        assert outbox.pending[0].to == "david@company.com"

    @pytest.mark.asyncio
    async def test_reset_password_by_email(self):
        mgr, repo = make(EmployeeManager)
        result, outbox = await run(mgr, "reset_password", employee=None, email="John@Company.com")
        assert result.success is True
        assert (await repo.get("employees", "e5"))["password_reset_token"]
        assert outbox.pending[0].kind == "employee.password_reset"

    @pytest.mark.asyncio
    async def test_update_needs_changes(self):
        mgr, _ = make(EmployeeManager)
        result, _ = await run(mgr, "update_employee", employee="Sarah Chen", email=None, changes={})
        assert result.success is False
        assert "What would you like to change" in result.message

    @pytest.mark.asyncio
    async def test_note_on_candidate(self):
        mgr, repo = make(EmployeeManager)
        result, _ = await run(mgr, "add_note", subject="Robert Brown", subject_type="candidate", content="strong portfolio")
        assert result.success is True
        note = (await repo.list("notes"))[0]
        assert note["subject_id"] == "c3"
        assert note["author_id"] == "hr1"

    @pytest.mark.asyncio
    async def test_stats(self):
        mgr, _ = make(EmployeeManager)
        result, _ = await run(mgr, "employee_stats", department="sales")
        assert result.data["active"] == 2
        assert result.data["by_department"] == {"Sales": 2}


class TestPTOManager:
    @staticmethod
    def with_requests(*requests):
        data = seed()
        data["pto_requests"] = list(requests)
        return data

    @staticmethod
    def request(rid, employee_id, start, end, days, status="PENDING"):
        return {
            "id": rid, "employee_id": employee_id, "start_date": start, "end_date": end,
            "business_days": days, "type": "VACATION", "status": status, "created_at": f"2026-10-0{rid[-1]}",
        }

    @pytest.mark.asyncio
    async def test_request_over_balance(self):
        mgr, _ = make(PTOManager)
        actor = Actor(id="e2", role="EMPLOYEE")
        result, _ = await run(mgr, "request_pto", actor=actor, text="Dec 14 to Dec 16", type="VACATION", reason=None)
        assert result.error == "insufficient_balance"

    @pytest.mark.asyncio
    async def test_request_overlapping(self):
        data = self.with_requests(self.request("r1", "e1", "2026-12-15", "2026-12-15", 1, status="APPROVED"))
        mgr, _ = make(PTOManager, data)
        result, _ = await run(mgr, "request_pto", actor=SARAH, text="Dec 14 to Dec 16", type="VACATION", reason=None)
        assert result.error == "overlapping_request"

    @pytest.mark.asyncio
    async def test_request_without_dates_asks(self):
        mgr, _ = make(PTOManager)
        result, _ = await run(mgr, "request_pto", actor=SARAH, text="I need some time off", type="VACATION", reason=None)
        assert result.success is False
        assert "When would you like to take time off" in result.message

    @pytest.mark.asyncio
    async def test_request_in_past_asks(self):
        mgr, _ = make(PTOManager)
        result, _ = await run(
            mgr, "submit_pto_for", employee="Sarah Chen", text="from 2026-10-01 to 2026-10-02", type="VACATION", reason=None
        )
        assert result.success is False
        assert "in the past" in result.message

    @pytest.mark.asyncio
    async def test_approve_deducts_balance(self):
        mgr, repo = make(PTOManager, self.with_requests(self.request("r1", "e1", "2026-11-02", "2026-11-04", 3)))
        result, outbox = await run(mgr, "approve_pto", employee="Sarah Chen", override=False)
        assert result.success is True
        assert result.data["remaining"] == 7
        assert (await repo.get("pto_requests", "r1"))["status"] == "APPROVED"
        assert (await repo.get("employees", "e1"))["pto_balance"]["VACATION"] == 7
        assert outbox.pending[0].to == "sarah@company.com"

    @pytest.mark.asyncio
    async def test_approve_over_balance_needs_override(self):
        data = self.with_requests(self.request("r2", "e2", "2026-11-02", "2026-11-04", 3))
        mgr, repo = make(PTOManager, data)
        refused, _ = await run(mgr, "approve_pto", employee="David Chen", override=False)
        assert refused.error == "insufficient_balance"
        forced, _ = await run(mgr, "approve_pto", employee="David Chen", override=True)
        assert forced.success is True
        assert (await repo.get("employees", "e2"))["pto_balance"]["VACATION"] == -1

    @pytest.mark.asyncio
    async def test_approve_without_name_and_several_pending(self):
        data = self.with_requests(
            self.request("r1", "e1", "2026-11-02", "2026-11-02", 1),
            self.request("r2", "e2", "2026-11-03", "2026-11-03", 1),
        )
        mgr, _ = make(PTOManager, data)
        result, _ = await run(mgr, "approve_pto", employee=None, override=False)
        assert result.success is False
        assert "Sarah Chen" in result.message and "David Chen" in result.message

    @pytest.mark.asyncio
    async def test_bulk_approve_by_department(self):
        data = self.with_requests(
            self.request("r1", "e1", "2026-11-02", "2026-11-02", 1),
            self.request("r2", "e2", "2026-11-03", "2026-11-03", 1),
        )
        mgr, repo = make(PTOManager, data)
        proposal, _ = await run(mgr, "bulk_approve_pto", department="Sales")
        assert proposal.confirmation_data["request_ids"] == ["r2"]
        result, _ = await confirm(mgr, proposal.confirmation_data)
        assert result.data == {"approved": ["r2"], "skipped": []}
        assert (await repo.get("pto_requests", "r1"))["status"] == "PENDING"

    @pytest.mark.asyncio
    async def test_deny(self):
        mgr, repo = make(PTOManager, self.with_requests(self.request("r2", "e2", "2026-11-03", "2026-11-03", 1)))
        result, outbox = await run(mgr, "deny_pto", employee="David Chen", reason="coverage")
        assert result.success is True
        stored = await repo.get("pto_requests", "r2")
        assert stored["status"] == "DENIED"
        assert stored["denial_reason"] == "coverage"
        assert outbox.pending[0].kind == "pto.denied"

    @pytest.mark.asyncio
    async def test_cancel_approved_restores_balance(self):
        data = self.with_requests(self.request("r1", "e1", "2026-11-02", "2026-11-04", 3, status="APPROVED"))
        mgr, repo = make(PTOManager, data)
        result, _ = await run(mgr, "cancel_pto", actor=SARAH)
        assert result.success is True
        assert (await repo.get("pto_requests", "r1"))["status"] == "CANCELLED"
        assert (await repo.get("employees", "e1"))["pto_balance"]["VACATION"] == 13

    @pytest.mark.asyncio
    async def test_adjust_balance(self):
        mgr, repo = make(PTOManager)
        result, _ = await run(mgr, "adjust_balance", employee="Sarah Chen", days=-2.0, type="VACATION")
        assert result.data["previous"] == 10
        assert result.data["balance"] == 8
        assert (await repo.get("employees", "e1"))["pto_balance"]["VACATION"] == 8

    @pytest.mark.asyncio
    async def test_balance(self):
        mgr, _ = make(PTOManager)
        result, _ = await run(mgr, "pto_balance", actor=SARAH, employee=None)
        assert result.data["balances"] == {"VACATION": 10, "SICK": 15, "PERSONAL": 15}


class TestRecruitingManager:
    @pytest.mark.asyncio
    async def test_create_candidate(self):
        mgr, repo = make(RecruitingManager)
        result, _ = await run(
            mgr, "create_candidate", first_name="Alice", last_name="Wong", email="alice@mail.com", position="Data Engineer"
        )
        assert result.success is True
        assert result.data["candidate"]["status"] == "APPLIED"
        assert len(await repo.list("candidates")) == 3

    @pytest.mark.asyncio
    async def test_create_needs_name_or_email(self):
        mgr, _ = make(RecruitingManager)
        result, _ = await run(mgr, "create_candidate", first_name="", last_name="", email="", position=None)
        assert result.success is False

    @pytest.mark.asyncio
    async def test_bulk_move(self):
        mgr, repo = make(RecruitingManager)
        proposal, _ = await run(mgr, "bulk_move", from_stage="APPLIED", stage="SCREENING")
        assert proposal.confirmation_data["candidate_ids"] == ["c1", "c3"]
        result, outbox = await confirm(mgr, proposal.confirmation_data)
        assert result.data["moved"] == ["Jon Smith", "Robert Brown"]
        assert len(outbox) == 2
        assert (await repo.get("candidates", "c3"))["status"] == "SCREENING"

    @pytest.mark.asyncio
    async def test_unknown_stage(self):
        mgr, _ = make(RecruitingManager)
        result, _ = await run(mgr, "move_stage", candidate="Jon Smith", stage=None)
        assert "Valid stages are" in result.message

    @pytest.mark.asyncio
    async def test_not_found_lists_stage_members(self):
        data = seed()
        data["candidates"][0]["status"] = "OFFER"
        mgr, _ = make(RecruitingManager, data)
        result, _ = await run(mgr, "move_stage", candidate="Xavier", stage="OFFER")
        assert result.error == "not_found"
        assert result.data["suggestions"] == ["Jon Smith"]

    @pytest.mark.asyncio
    async def test_reject(self):
        mgr, repo = make(RecruitingManager)
        result, outbox = await run(mgr, "reject_candidate", candidate="Robert Brown", reason=None)
        assert result.success is True
        stored = await repo.get("candidates", "c3")
        assert stored["status"] == "REJECTED"
        assert stored["rejection_reason"] == "Position filled"
        assert outbox.pending[0].kind == "candidate.rejected"

    @pytest.mark.asyncio
    async def test_weekend_interview_is_flagged(self):
        mgr, _ = make(RecruitingManager)
        result, _ = await run(
            mgr, "schedule_interview",
            candidate="Robert Brown", when="saturday", next_week=False, hour=10, minute=0,
            interviewer="Maria", location=None, type="IN_PERSON",
        )
        data = result.confirmation_data
        assert data["scheduled_date"] == "2026-10-24T10:00:00"
        assert data["interviewer_id"] == "e4"
        assert data["location"] == "Main Office"
        assert "Saturday is a weekend day" in result.message

    @pytest.mark.asyncio
    async def test_interview_without_date_asks(self):
        mgr, _ = make(RecruitingManager)
        result, _ = await run(
            mgr, "schedule_interview",
            candidate="Robert Brown", when=None, next_week=False, hour=10, minute=0,
            interviewer=None, location=None, type="IN_PERSON",
        )
        assert result.success is False
        assert result.requires_confirmation is False

    @pytest.mark.asyncio
    async def test_archive_closed_candidates(self):
        data = seed()
        data["candidates"] += [
            {"id": "c8", "first_name": "Old", "last_name": "Reject", "status": "REJECTED",
             "updated_at": "2026-06-01T00:00:00+00:00"},
            {"id": "c9", "first_name": "New", "last_name": "Reject", "status": "REJECTED",
             "updated_at": "2026-10-01T00:00:00+00:00"},
        ]
        mgr, repo = make(RecruitingManager, data)
        result, _ = await run(mgr, "archive_candidates", days=None)
        assert result.data["archived"] == ["c8"]
        assert (await repo.get("candidates", "c8"))["archived"] is True


class TestMessagingManager:
    @pytest.mark.asyncio
    async def test_raw_address(self):
        mgr, repo = make(MessagingManager)
        result, outbox = await run(mgr, "send_email", recipient="ops@vendor.com", subject="Invoice", body="Attached.", text="")
        assert result.success is True
        assert outbox.pending[0].to == "ops@vendor.com"
        assert (await repo.list("messages"))[0]["sender_id"] == "hr1"

    @pytest.mark.asyncio
    async def test_pronoun_asks(self):
        mgr, _ = make(MessagingManager)
        result, _ = await run(mgr, "send_email", recipient="him", subject=None, body=None, text="send him an email")
        assert result.success is False
        assert result.requires_confirmation is False

    @pytest.mark.asyncio
    async def test_misspelled_name_then_selected(self):
        mgr, _ = make(MessagingManager)
        result, _ = await run(mgr, "send_email", recipient="Davd", subject="Hi", body="Lunch?", text="")
        assert result.confirmation_data["action"] == "confirm_send_email"
        assert result.confirmation_data["entity"] == "employees"
        done, outbox = await confirm(mgr, result.confirmation_data, selected_id="e2")
        assert done.success is True
        assert outbox.pending[0].to == "david@company.com"

    @pytest.mark.asyncio
    async def test_falls_back_to_candidates(self):
        mgr, _ = make(MessagingManager)
        result, outbox = await run(mgr, "send_email", recipient="Robert Brown", subject=None, body="Hello", text="")
        assert result.success is True
        assert outbox.pending[0].to == "rob@mail.com"

    @pytest.mark.asyncio
    async def test_missing_email(self):
        data = seed()
        data["employees"].append({"id": "e9", "first_name": "Quinn", "last_name": "Ng"})
        mgr, _ = make(MessagingManager, data)
        result, _ = await run(mgr, "send_email", recipient="Quinn Ng", subject=None, body="Hi", text="")
        assert result.error == "missing_email"


class TestLookupManager:
    @pytest.mark.asyncio
    async def test_search_employees(self):
        mgr, _ = make(LookupManager)
        result, _ = await run(mgr, "search", targets=["employees"], term="Chen")
        assert [e["id"] for e in result.data["employees"]] == ["e1", "e2"]

    @pytest.mark.asyncio
    async def test_candidates_need_permission(self):
        mgr, _ = make(LookupManager)
        result, _ = await run(mgr, "search", actor=SARAH, targets=["candidates"], term=None)
        assert result.error == "not_permitted"

    @pytest.mark.asyncio
    async def test_employee_sees_own_pto_only(self):
        data = seed()
        data["pto_requests"] = [
            {"id": "r1", "employee_id": "e1", "status": "PENDING"},
            {"id": "r2", "employee_id": "e2", "status": "PENDING"},
        ]
        mgr, _ = make(LookupManager, data)
        mine, _ = await run(mgr, "search", actor=SARAH, targets=["pto"], term=None)
        assert [r["id"] for r in mine.data["pto"]] == ["r1"]
        everyone, _ = await run(mgr, "search", targets=["pto"], term=None)
        assert len(everyone.data["pto"]) == 2
