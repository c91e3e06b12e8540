"""Tests for the intent scanner and confirmation round trips."""

from datetime import date, datetime, timedelta, timezone

import pytest

from hrflow.adapters.notify.log_notifier import LogNotifier
from hrflow.adapters.storage.memory_repository import InMemoryRepository
from hrflow.domain.confirmation import PendingConfirmationStore
from hrflow.domain.dispatcher import Dispatcher, build_routes
from hrflow.domain.models import ActionContext, Actor

TODAY = date(2026, 10, 21)

HR = Actor(id="hr1", role="HR_MANAGER", department="HR", first_name="Hana", last_name="Park", email="hana@company.com")
EMPLOYEE = Actor(id="e3", role="EMPLOYEE", department="Sales", first_name="Ken", last_name="Adams")


def seed():
    return {
        "employees": [
            {"id": "e1", "first_name": "Sarah", "last_name": "Chen", "email": "sarah@company.com", "department": "HR"},
            {"id": "e2", "first_name": "David", "last_name": "Chen", "email": "david@company.com", "department": "Sales"},
            {"id": "e3", "first_name": "Ken", "last_name": "Adams", "email": "ken@company.com", "manager_id": "e4"},
            {"id": "e4", "first_name": "Maria", "last_name": "Lopez", "email": "maria@company.com", "role": "MANAGER"},
            {"id": "e5", "first_name": "John", "last_name": "Smith", "email": "john@company.com"},
        ],
        "candidates": [
            {"id": "c1", "first_name": "Jon", "last_name": "Smith", "email": "jon@mail.com", "status": "APPLIED"},
            {"id": "c2", "first_name": "John", "last_name": "Smith", "email": "johns@mail.com", "status": "APPLIED"},
            {"id": "c3", "first_name": "Robert", "last_name": "Brown", "email": "rob@mail.com", "status": "APPLIED"},
        ],
    }


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 10, 21, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


@pytest.fixture
def repo():
    return InMemoryRepository(seed())


@pytest.fixture
def notifier():
    return LogNotifier()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher(repo, notifier, clock):
    return Dispatcher.create(
        repo,
        notifier=notifier,
        store=PendingConfirmationStore(repo, ttl_minutes=30, clock=clock),
        today=lambda: TODAY,
    )


async def _say(dispatcher, actor, message):
    return await dispatcher.process(ActionContext(actor=actor, message=message))


class TestScanning:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("greeting", ["hi", "Hello!", "good morning."])
    async def test_greeting_yields_nothing(self, dispatcher, greeting):
        assert await _say(dispatcher, HR, greeting) == []

    @pytest.mark.asyncio
    async def test_greeting_must_be_whole_message(self, dispatcher):
        results = await _say(dispatcher, HR, "hi, find employee John")
        assert len(results) == 1
        assert results[0].success is True

    @pytest.mark.asyncio
    async def test_missing_actor(self, dispatcher):
        results = await dispatcher.process(ActionContext(actor=None, message="find employee John"))
        assert len(results) == 1
        assert results[0].success is False
        assert results[0].message == "User context is incomplete for action processing."
        assert results[0].error == "Missing user role information"

    @pytest.mark.asyncio
    async def test_actor_without_role(self, dispatcher):
        results = await _say(dispatcher, Actor(id="x", role=""), "find employee John")
        assert len(results) == 1
        assert results[0].error == "Missing user role information"

    @pytest.mark.asyncio
    async def test_exact_match_runs_without_confirmation(self, dispatcher, repo):
        results = await _say(dispatcher, HR, "Move Jon Smith to offer stage")
        assert len(results) == 1
        assert results[0].success is True
        assert results[0].requires_confirmation is False
        assert (await repo.get("candidates", "c1"))["status"] == "OFFER"
        assert (await repo.get("candidates", "c2"))["status"] == "APPLIED"

    @pytest.mark.asyncio
    async def test_no_match_is_plain_failure(self, dispatcher):
        results = await _say(dispatcher, HR, "Move Xavier Quinn to offer")
        assert len(results) == 1
        assert results[0].success is False
        assert results[0].error == "not_found"
        assert results[0].confirmation_data is None

    @pytest.mark.asyncio
    async def test_two_intents_two_results(self, dispatcher):
        results = await _say(dispatcher, HR, "find employee John and send him an email about his schedule")
        assert len(results) == 2
        assert results[0].success is True
        assert results[0].data["employees"][0]["name"] == "John Smith"
        # "him" can't be resolved to anyone, so the email part asks
        assert results[1].success is False
        assert "him" in results[1].message

    @pytest.mark.asyncio
    async def test_pto_request_next_week(self, dispatcher, repo, notifier):
        results = await _say(dispatcher, EMPLOYEE, "I need time off tuesday and wednesday next week")
        assert len(results) == 1
        request = results[0].data["request"]
        assert request["start_date"] == "2026-10-27"
        assert request["end_date"] == "2026-10-28"
        assert request["business_days"] == 2
        assert request["status"] == "PENDING"
        assert notifier.sent[0][0] == "maria@company.com"

    @pytest.mark.asyncio
    async def test_route_permission_denied_is_silent(self, dispatcher):
        assert await _say(dispatcher, EMPLOYEE, "Move Jon Smith to offer stage") == []

    @pytest.mark.asyncio
    async def test_kind_permission_denied_is_silent(self, dispatcher):
        assert await _say(dispatcher, EMPLOYEE, "approve Sarah's pto") == []

    @pytest.mark.asyncio
    async def test_permission_denied_reported_when_enabled(self, repo):
        dispatcher = Dispatcher.create(repo, today=lambda: TODAY, report_permission_denied=True)
        results = await _say(dispatcher, EMPLOYEE, "Move Jon Smith to offer stage")
        assert len(results) == 1
        assert results[0].error == "permission_denied"

    @pytest.mark.asyncio
    async def test_failing_route_does_not_stop_others(self, repo):
        routes = build_routes(repo, today=lambda: TODAY)

        def boom(message):
            raise RuntimeError("parser exploded")

        routes[0].parser = boom
        dispatcher = Dispatcher(routes)
        results = await _say(dispatcher, HR, "find employee John and send an email to Sarah Chen about lunch")
        assert len(results) == 2
        assert results[0].success is False
        assert results[0].error == "parser exploded"
        assert results[1].success is True

    def test_duplicate_confirmation_action_rejected(self, repo):
        routes = build_routes(repo)
        with pytest.raises(ValueError):
            Dispatcher(routes + [routes[1]])


class TestConfirmations:
    @pytest.mark.asyncio
    async def test_misspelling_then_confirm_by_reference(self, dispatcher, repo):
        results = await _say(dispatcher, HR, "Move Robrt to interview")
        assert len(results) == 1
        proposal = results[0]
        assert proposal.requires_confirmation is True
        assert len(proposal.confirmation_data["candidates"]) == 1
        cid = proposal.confirmation_data["correlation_id"]

        done = await dispatcher.confirm(HR, correlation_id=cid, selection="1")
        assert done.success is True
        assert (await repo.get("candidates", "c3"))["status"] == "INTERVIEW"

        again = await dispatcher.confirm(HR, correlation_id=cid)
        assert again.success is False
        assert again.error == "already_executed"

    @pytest.mark.asyncio
    async def test_expired_reference_refused(self, dispatcher, clock, repo):
        proposal = (await _say(dispatcher, HR, "Move Robrt to interview"))[0]
        clock.now += timedelta(minutes=45)
        result = await dispatcher.confirm(HR, correlation_id=proposal.confirmation_data["correlation_id"])
        assert result.error == "expired"
        assert (await repo.get("candidates", "c3"))["status"] == "APPLIED"

    @pytest.mark.asyncio
    async def test_reference_owned_by_someone_else(self, dispatcher):
        proposal = (await _say(dispatcher, HR, "Move Robrt to interview"))[0]
        other = Actor(id="hr2", role="ADMIN")
        result = await dispatcher.confirm(other, correlation_id=proposal.confirmation_data["correlation_id"])
        assert result.error == "forbidden"

    @pytest.mark.asyncio
    async def test_interview_proposal_and_payload_replay(self, dispatcher, repo, notifier):
        results = await _say(dispatcher, HR, "Schedule an interview with Robert Brown tuesday next week at 2pm")
        assert len(results) == 1
        payload = results[0].confirmation_data
        assert payload["action"] == "confirm_interview_schedule"
        assert payload["scheduled_date"] == "2026-10-27T14:00:00"

        first = await dispatcher.confirm(HR, payload=payload)
        second = await dispatcher.confirm(HR, payload=payload)
        assert first.success and second.success
        assert len(await repo.list("interviews")) == 2
        assert (await repo.get("candidates", "c3"))["status"] == "INTERVIEW"
        assert any(to == "rob@mail.com" for to, _, _ in notifier.sent)

    @pytest.mark.asyncio
    async def test_reject_pending(self, dispatcher):
        proposal = (await _say(dispatcher, HR, "Move Robrt to interview"))[0]
        cid = proposal.confirmation_data["correlation_id"]
        assert (await dispatcher.reject(HR, cid))["state"] == "rejected"
        result = await dispatcher.confirm(HR, correlation_id=cid)
        assert result.error == "already_rejected"

    @pytest.mark.asyncio
    async def test_selection_by_record_id(self, dispatcher, repo):
        payload = {
            "action": "confirm_candidate_move",
            "target_status": "SCREENING",
            "candidates": [{"id": "c1"}, {"id": "c2"}],
        }
        result = await dispatcher.confirm(HR, payload=payload, selection="c2")
        assert result.success is True
        assert (await repo.get("candidates", "c2"))["status"] == "SCREENING"

    @pytest.mark.asyncio
    async def test_confirm_checks_route_permission(self, dispatcher):
        payload = {"action": "confirm_candidate_move", "candidate_id": "c1", "target_status": "OFFER"}
        result = await dispatcher.confirm(EMPLOYEE, payload=payload)
        assert result.error == "permission_denied"

    @pytest.mark.asyncio
    async def test_confirm_checks_command_permission(self, dispatcher, repo):
        await repo.create("pto_requests", {
            "id": "r1", "employee_id": "e3", "type": "VACATION", "status": "PENDING",
            "start_date": "2026-11-02", "end_date": "2026-11-03", "business_days": 2,
        })
        await repo.create("documents", {"id": "d1", "name": "Handbook", "status": "ACTIVE"})
        payloads = [
            {"action": "approve_pto", "request_id": "r1"},
            {"action": "confirm_bulk_approve", "request_ids": ["r1"]},
            {"action": "confirm_adjust_balance", "employee_id": "e3", "pto_type": "VACATION", "days": 5},
            {"action": "confirm_delete_document", "document_id": "d1", "permanent": True},
            {"action": "confirm_set_permissions", "document_id": "d1", "level": "PUBLIC"},
        ]
        for payload in payloads:
            result = await dispatcher.confirm(EMPLOYEE, payload=payload)
            assert result.error == "permission_denied", payload["action"]
        assert (await repo.get("pto_requests", "r1"))["status"] == "PENDING"
        assert (await repo.get("documents", "d1"))["status"] == "ACTIVE"

    @pytest.mark.asyncio
    async def test_confirm_allows_ungated_commands(self, dispatcher, repo):
        await repo.create("documents", {"id": "d1", "name": "Handbook", "status": "ACTIVE"})
        payload = {"action": "confirm_share_document", "document_id": "d1", "emails": ["sarah@company.com"]}
        result = await dispatcher.confirm(EMPLOYEE, payload=payload)
        assert result.success is True

    @pytest.mark.asyncio
    async def test_unknown_and_missing_payloads(self, dispatcher):
        assert (await dispatcher.confirm(HR, payload={"action": "launch_rocket"})).error == "unknown_action"
        assert (await dispatcher.confirm(HR, payload={})).error == "missing_payload"

    @pytest.mark.asyncio
    async def test_reference_without_store(self, repo):
        dispatcher = Dispatcher.create(repo)
        result = await dispatcher.confirm(HR, correlation_id="abc")
        assert result.error == "disabled"
