"""Tests for the HR action HTTP routes."""

import pytest
from httpx import AsyncClient, ASGITransport

from hrflow.adapters.notify.log_notifier import LogNotifier
from hrflow.adapters.storage.memory_repository import InMemoryRepository
from hrflow.app import create_app
from hrflow.config import AppConfig, __version__

HR = {"id": "hr1", "role": "HR_MANAGER", "first_name": "Hana", "last_name": "Park"}
EMPLOYEE = {"id": "e1", "role": "EMPLOYEE"}


def seed():
    return {
        "employees": [
            {"id": "e1", "first_name": "Sarah", "last_name": "Chen", "email": "sarah@company.com"},
        ],
        "candidates": [
            {"id": "c1", "first_name": "Jon", "last_name": "Smith", "email": "jon@mail.com", "status": "APPLIED"},
            {"id": "c3", "first_name": "Robert", "last_name": "Brown", "email": "rob@mail.com", "status": "APPLIED"},
        ],
    }


@pytest.fixture
def repo():
    return InMemoryRepository(seed())


@pytest.fixture
def transport(repo):
    app = create_app(AppConfig(), repository=repo, notifier=LogNotifier(), run_sweep_loop=False)
    return ASGITransport(app=app)


async def _propose(ac):
    resp = await ac.post("/actions", json={"actor": HR, "message": "Move Robrt to interview"})
    assert resp.status_code == 200
    return resp.json()["results"][0]["confirmation_data"]["correlation_id"]


class TestActions:
    @pytest.mark.asyncio
    async def test_health(self, transport):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/health")
        assert resp.json() == {"status": "ok", "version": __version__}

    @pytest.mark.asyncio
    async def test_process_message(self, transport, repo):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/actions", json={"actor": HR, "message": "Move Jon Smith to offer stage"})
        assert resp.status_code == 200
        results = resp.json()["results"]
        assert len(results) == 1
        assert results[0]["success"] is True
        assert (await repo.get("candidates", "c1"))["status"] == "OFFER"

    @pytest.mark.asyncio
    async def test_greeting_has_no_results(self, transport):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/actions", json={"actor": HR, "message": "hello"})
        assert resp.json() == {"results": []}

    @pytest.mark.asyncio
    async def test_missing_actor_fields_rejected(self, transport):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/actions", json={"actor": {"id": "x"}, "message": "hello"})
        assert resp.status_code == 422


class TestConfirmRoutes:
    @pytest.mark.asyncio
    async def test_confirm_by_reference(self, transport, repo):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            cid = await _propose(ac)
            pending = await ac.get("/actions/confirmations/pending", params={"actor_id": "hr1"})
            assert [p["id"] for p in pending.json()["pending"]] == [cid]

            resp = await ac.post("/actions/confirm", json={"actor": HR, "correlation_id": cid, "selection": "1"})
            assert resp.status_code == 200
            assert resp.json()["success"] is True

            again = await ac.post("/actions/confirm", json={"actor": HR, "correlation_id": cid})
            assert again.json()["error"] == "already_executed"
            pending = await ac.get("/actions/confirmations/pending")
        assert pending.json() == {"pending": []}
        assert (await repo.get("candidates", "c3"))["status"] == "INTERVIEW"

    @pytest.mark.asyncio
    async def test_confirm_by_payload(self, transport, repo):
        payload = {"action": "confirm_candidate_move", "candidate_id": "c1", "target_status": "SCREENING"}
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/actions/confirm", json={"actor": HR, "payload": payload})
        assert resp.json()["success"] is True
        assert (await repo.get("candidates", "c1"))["status"] == "SCREENING"

    @pytest.mark.asyncio
    async def test_confirm_needs_payload_or_reference(self, transport):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/actions/confirm", json={"actor": HR})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_reject(self, transport):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            cid = await _propose(ac)
            resp = await ac.post("/actions/reject", json={"actor": HR, "correlation_id": cid})
            assert resp.json()["state"] == "rejected"
            confirm = await ac.post("/actions/confirm", json={"actor": HR, "correlation_id": cid})
        assert confirm.json()["error"] == "already_rejected"


class TestSweepRoutes:
    @pytest.mark.asyncio
    async def test_status(self, transport):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/actions/sweep")
        data = resp.json()
        assert data["busy"] is False
        assert data["runs"] == 0

    @pytest.mark.asyncio
    async def test_run_requires_admin_role(self, transport):
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/actions/sweep/run", json={"actor": EMPLOYEE})
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_run(self, transport, repo):
        await repo.create("termination_reminders", {
            "employee_id": "e1",
            "employee_name": "Sarah Chen",
            "employee_email": "sarah@company.com",
            "termination_date": "2020-01-01",
            "reminders_sent": [],
        })
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post("/actions/sweep/run", json={"actor": HR})
        data = resp.json()
        assert data["ran"] is True
        assert data["sent"] == 3
        assert data["runs"] == 1
