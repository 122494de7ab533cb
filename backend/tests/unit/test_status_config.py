"""
Unit tests for status transitions, QC normalization and role permissions
"""
import pytest

from plantops.core.permissions import ALL_ROLES, has_permission
from plantops.core.status_config import (
    StatusTransitionError,
    get_allowed_transitions,
    is_gate_complete,
    normalize_qc_status,
    validate_ncr_action_transition,
    validate_sales_order_transition,
    validate_shipment_transition,
    validate_work_order_transition,
    WORK_ORDER_TRANSITIONS,
)
from plantops.exceptions import InvalidStateError


class TestQCNormalization:

    @pytest.mark.parametrize("raw,expected", [
        ("pass", "passed"),
        ("fail", "failed"),
        ("rework", "hold"),
        ("PASSED", "passed"),
        ("waived", "waived"),
        (None, "pending"),
        ("", "pending"),
        ("garbage", "pending"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_qc_status(raw) == expected

    def test_only_passed_and_waived_complete_a_gate(self):
        assert is_gate_complete("pass")
        assert is_gate_complete("waived")
        assert not is_gate_complete("pending")
        assert not is_gate_complete("hold")
        assert not is_gate_complete("failed")
        assert not is_gate_complete(None)


class TestTransitions:

    def test_same_status_is_a_no_op(self):
        validate_work_order_transition("qc", "qc")
        validate_work_order_transition("completed", "completed")

    def test_pending_work_order_cannot_jump_to_completed(self):
        with pytest.raises(StatusTransitionError) as exc_info:
            validate_work_order_transition("pending", "completed")
        assert exc_info.value.current == "pending"
        assert "in_progress" in exc_info.value.allowed

    def test_transition_error_is_an_invalid_state_error(self):
        with pytest.raises(InvalidStateError):
            validate_sales_order_transition("fulfilled", "approved")

    def test_terminal_states_allow_nothing(self):
        assert get_allowed_transitions(WORK_ORDER_TRANSITIONS, "completed") == []
        assert get_allowed_transitions(WORK_ORDER_TRANSITIONS, "cancelled") == []

    def test_draft_sales_order_can_be_approved_directly(self):
        validate_sales_order_transition("draft", "approved")

    def test_shipment_cannot_skip_shipped(self):
        with pytest.raises(StatusTransitionError):
            validate_shipment_transition("pending", "delivered")

    def test_ncr_action_cannot_be_verified_before_completion(self):
        with pytest.raises(StatusTransitionError):
            validate_ncr_action_transition("pending", "verified")
        validate_ncr_action_transition("completed", "verified")


class TestPermissions:

    def test_admin_can_do_anything(self):
        assert has_permission("admin", "finance:lock")
        assert has_permission("admin", "something:unknown")

    def test_unknown_action_denied_to_non_admins(self):
        for role in ALL_ROLES - {"admin"}:
            assert not has_permission(role, "something:unknown")

    def test_viewer_cannot_write(self):
        for action in ("sales_orders:write", "qc:write", "dispatch:write", "finance:write"):
            assert not has_permission("viewer", action)

    @pytest.mark.parametrize("role,action", [
        ("sales", "sales_orders:approve"),
        ("production", "production:write"),
        ("quality", "qc:write"),
        ("quality", "dispatch_qc:write"),
        ("stores", "materials:write"),
        ("logistics", "dispatch:write"),
        ("accounts", "finance:write"),
    ])
    def test_role_grants(self, role, action):
        assert has_permission(role, action)

    def test_period_lock_is_admin_only(self):
        assert not has_permission("accounts", "finance:lock")

    def test_only_quality_closes_ncrs(self):
        assert has_permission("quality", "ncr:close")
        assert not has_permission("production", "ncr:close")

    def test_only_quality_verifies_ncr_actions(self):
        assert has_permission("quality", "ncr:verify")
        assert not has_permission("production", "ncr:verify")
