"""Tests for the role and department permission predicates."""

from hrflow.domain.models import Actor
from hrflow.domain.permissions import (
    can_manage_agents,
    can_manage_candidates,
    can_manage_employees,
    can_manage_team,
    can_manage_territories,
    can_request_pto,
    can_view_own_data,
    permission_name,
)


def actor(role, department="", is_active=True):
    return Actor(id="a1", role=role, department=department, is_active=is_active)


class TestPredicates:
    def test_candidates_allow_recruitment_department(self):
        assert can_manage_candidates(actor("MANAGER")) is True
        assert can_manage_candidates(actor("EMPLOYEE", department="Recruitment")) is True
        assert can_manage_candidates(actor("EMPLOYEE", department="Sales")) is False

    def test_management_roles(self):
        for role in ("TRUE_ADMIN", "ADMIN", "HR_MANAGER", "MANAGER"):
            assert can_manage_employees(actor(role)) is True
            assert can_manage_team(actor(role)) is True
        assert can_manage_employees(actor("EMPLOYEE")) is False
        assert can_manage_team(actor("EMPLOYEE")) is False

    def test_agents_exclude_plain_managers(self):
        assert can_manage_agents(actor("HR_MANAGER")) is True
        assert can_manage_agents(actor("MANAGER")) is False

    def test_territories_are_admin_only(self):
        assert can_manage_territories(actor("ADMIN")) is True
        assert can_manage_territories(actor("TRUE_ADMIN")) is True
        assert can_manage_territories(actor("HR_MANAGER")) is False

    def test_self_service(self):
        assert can_view_own_data(actor("EMPLOYEE")) is True
        assert can_request_pto(actor("EMPLOYEE")) is True
        assert can_request_pto(actor("EMPLOYEE", is_active=False)) is False


class TestPermissionName:
    def test_names(self):
        assert permission_name(None) == "none"
        assert permission_name(can_manage_team) == "can_manage_team"
