"""
Unit tests for the NCR lifecycle
"""
import pytest

from plantops.core.status_config import StatusTransitionError
from plantops.exceptions import BusinessRuleError, InvalidStateError, ValidationError
from plantops.services import ncr_service
from tests.factories import create_test_work_order


@pytest.fixture
def ncr(db_session):
    wo = create_test_work_order(db_session)
    return ncr_service.create_ncr(
        db_session,
        issue_description="Burr on thread start",
        work_order=wo,
        quantity_affected=12,
    )


class TestCreate:

    def test_defaults(self, ncr):
        assert ncr.ncr_number.startswith("NCR-")
        assert ncr.ncr_type == "INTERNAL"
        assert ncr.status == "OPEN"
        assert ncr.unit == "pcs"

    def test_unknown_type(self, db_session):
        with pytest.raises(ValidationError):
            ncr_service.create_ncr(db_session, issue_description="x", ncr_type="VENDOR")

    def test_description_required(self, db_session):
        with pytest.raises(ValidationError):
            ncr_service.create_ncr(db_session, issue_description="  ")


class TestActions:

    def test_adding_action_starts_work(self, db_session, ncr):
        ncr_service.add_action(db_session, ncr, description="Replace chaser insert")
        assert ncr.status == "ACTION_IN_PROGRESS"

    def test_all_done_moves_to_effectiveness_check(self, db_session, ncr):
        first = ncr_service.add_action(db_session, ncr, description="Replace chaser insert")
        second = ncr_service.add_action(db_session, ncr, description="Add deburr step",
                                        action_type="PREVENTIVE")

        ncr_service.update_action_status(db_session, first, "completed")
        assert ncr.status == "ACTION_IN_PROGRESS"
        ncr_service.update_action_status(db_session, second, "in_progress")
        ncr_service.update_action_status(db_session, second, "completed")
        assert ncr.status == "EFFECTIVENESS_PENDING"
        assert second.completed_at is not None

    def test_verified_is_terminal(self, db_session, ncr):
        action = ncr_service.add_action(db_session, ncr, description="Replace chaser insert")
        ncr_service.update_action_status(db_session, action, "completed")
        ncr_service.update_action_status(db_session, action, "verified", user_id=None)

        with pytest.raises(StatusTransitionError):
            ncr_service.update_action_status(db_session, action, "in_progress")

    def test_cannot_verify_pending_action(self, db_session, ncr):
        action = ncr_service.add_action(db_session, ncr, description="Replace chaser insert")
        with pytest.raises(StatusTransitionError):
            ncr_service.update_action_status(db_session, action, "verified")


class TestClose:

    def test_needs_actions(self, db_session, ncr):
        ncr_service.update_ncr(db_session, ncr, root_cause="Worn insert")
        with pytest.raises(BusinessRuleError) as exc_info:
            ncr_service.close_ncr(db_session, ncr)
        assert exc_info.value.details["rule"] == "ncr_actions_required"

    def test_needs_verified_actions(self, db_session, ncr):
        action = ncr_service.add_action(db_session, ncr, description="Replace chaser insert")
        ncr_service.update_action_status(db_session, action, "completed")
        ncr_service.update_ncr(db_session, ncr, root_cause="Worn insert")

        with pytest.raises(BusinessRuleError) as exc_info:
            ncr_service.close_ncr(db_session, ncr)
        assert exc_info.value.details["unverified_action_ids"] == [action.id]

    def test_needs_root_cause(self, db_session, ncr):
        action = ncr_service.add_action(db_session, ncr, description="Replace chaser insert")
        ncr_service.update_action_status(db_session, action, "completed")
        ncr_service.update_action_status(db_session, action, "verified")

        with pytest.raises(BusinessRuleError) as exc_info:
            ncr_service.close_ncr(db_session, ncr)
        assert exc_info.value.details["rule"] == "ncr_root_cause_required"

    def test_close_and_freeze(self, db_session, ncr):
        action = ncr_service.add_action(db_session, ncr, description="Replace chaser insert")
        ncr_service.update_action_status(db_session, action, "completed")
        ncr_service.update_action_status(db_session, action, "verified")
        ncr_service.update_ncr(db_session, ncr, root_cause="Worn insert", disposition="REWORK")

        ncr_service.close_ncr(db_session, ncr)

        assert ncr.status == "CLOSED"
        assert ncr.closed_at is not None
        with pytest.raises(InvalidStateError):
            ncr_service.update_ncr(db_session, ncr, root_cause="Changed my mind")
        with pytest.raises(InvalidStateError):
            ncr_service.add_action(db_session, ncr, description="Late action")
