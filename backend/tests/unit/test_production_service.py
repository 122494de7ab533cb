"""
Unit tests for production logging, batch creation triggers and the
batch quantity ledger
"""
from datetime import date
from decimal import Decimal

import pytest

from plantops.exceptions import (
    BusinessRuleError, InvalidStateError, ProductionLockedError, QuantityExceededError, ValidationError,
)
from plantops.models import ProductionBatch
from plantops.services import dispatch_service, production_service, quality_service, work_order_service
from tests.factories import (
    create_packed_work_order,
    create_released_work_order,
    create_test_work_order,
    log_test_production,
    pass_final_qc,
)


def _batches(db, wo):
    return (
        db.query(ProductionBatch)
        .filter(ProductionBatch.work_order_id == wo.id)
        .order_by(ProductionBatch.batch_number)
        .all()
    )


class TestProductionLogGuards:

    def test_locked_work_order(self, db_session):
        wo = create_test_work_order(db_session)
        with pytest.raises(ProductionLockedError):
            log_test_production(db_session, wo, ok=10)

    def test_on_hold_work_order(self, db_session):
        wo = create_released_work_order(db_session)
        work_order_service.set_status(db_session, wo, "on_hold", reason="Tool change")
        with pytest.raises(InvalidStateError):
            log_test_production(db_session, wo, ok=10)

    def test_needs_some_output(self, db_session):
        wo = create_released_work_order(db_session)
        with pytest.raises(ValidationError):
            log_test_production(db_session, wo, ok=0, rejected=0)

    def test_negative_quantity(self, db_session):
        wo = create_released_work_order(db_session)
        with pytest.raises(ValidationError):
            log_test_production(db_session, wo, ok=10, rejected=-1)


class TestBatchTriggers:

    def test_first_log_opens_initial_batch(self, db_session):
        wo = create_released_work_order(db_session)
        log = log_test_production(db_session, wo, ok=25)

        batch = log.batch
        assert batch.batch_number == 1
        assert batch.trigger_reason == "initial"
        assert batch.qc_material_status == "passed"
        assert batch.qc_first_piece_status == "passed"
        assert batch.qc_final_status == "pending"
        assert batch.production_allowed is True
        assert batch.dispatch_allowed is False

    def test_logs_within_gap_share_a_batch(self, db_session):
        wo = create_released_work_order(db_session)
        first = log_test_production(db_session, wo, ok=10, log_date=date(2026, 1, 1))
        second = log_test_production(db_session, wo, ok=10, log_date=date(2026, 1, 8))

        assert first.production_batch_id == second.production_batch_id
        assert len(_batches(db_session, wo)) == 1

    def test_gap_restart_after_threshold(self, db_session):
        wo = create_released_work_order(db_session)
        log_test_production(db_session, wo, ok=10, log_date=date(2026, 1, 1))
        later = log_test_production(db_session, wo, ok=10, log_date=date(2026, 1, 12))

        first, second = _batches(db_session, wo)
        assert later.production_batch_id == second.id
        assert second.trigger_reason == "gap_restart"
        assert second.previous_batch_id == first.id
        assert first.ended_at is not None

    def test_dispatch_starts_post_dispatch_batch(self, db_session):
        wo, batch, carton = create_packed_work_order(db_session, quantity=100)
        dispatch_service.create_dispatch(db_session, wo, batch, 40, carton=carton)

        log = log_test_production(db_session, wo, ok=30)

        assert log.batch.batch_number == 2
        assert log.batch.trigger_reason == "post_dispatch"
        assert log.batch.previous_batch_id == batch.id


class TestBatchLedger:

    def test_logs_and_final_qc_roll_up(self, db_session):
        wo = create_released_work_order(db_session, quantity=100)
        batch = log_test_production(db_session, wo, ok=100, rejected=5).batch
        pass_final_qc(db_session, wo, batch, inspected=60, rejected=2)

        assert batch.produced_qty == 105
        assert batch.qc_approved_qty == 58
        assert batch.qc_rejected_qty == 7
        assert batch.qc_pending_qty == 40
        assert wo.qty_completed == 98
        assert wo.qty_rejected == 7
        assert wo.completion_pct == Decimal("98.00")

    def test_final_qc_cannot_approve_more_than_produced(self, db_session):
        wo = create_released_work_order(db_session)
        batch = log_test_production(db_session, wo, ok=20).batch

        with pytest.raises(QuantityExceededError) as exc_info:
            quality_service.create_qc_record(db_session, wo, {
                "qc_type": "final", "production_batch_id": batch.id,
                "inspected_quantity": 30, "result": "pass",
            })
        assert exc_info.value.details["available"] == "20"

    def test_deleting_a_log_recalculates(self, db_session):
        wo = create_released_work_order(db_session)
        log_test_production(db_session, wo, ok=20)
        extra = log_test_production(db_session, wo, ok=15)
        batch = extra.batch

        production_service.delete_production_log(db_session, extra)

        assert batch.produced_qty == 20
        assert wo.qty_completed == 20


class TestBatchCompletion:

    def test_batch_without_output_cannot_complete(self, db_session):
        wo = create_released_work_order(db_session)
        batch = production_service.get_or_create_production_batch(db_session, wo)
        with pytest.raises(BusinessRuleError):
            production_service.mark_batch_production_complete(db_session, batch)

    def test_completion_closes_batch(self, db_session):
        wo = create_released_work_order(db_session)
        batch = log_test_production(db_session, wo, ok=20).batch

        production_service.mark_batch_production_complete(db_session, batch)

        assert batch.production_complete is True
        assert batch.ended_at is not None
        assert batch.is_active is False

    def test_logging_after_completion_opens_new_batch(self, db_session):
        wo = create_released_work_order(db_session)
        batch = log_test_production(db_session, wo, ok=20).batch
        production_service.mark_batch_production_complete(db_session, batch)

        log = log_test_production(db_session, wo, ok=5)
        assert log.batch.batch_number == 2
        assert log.batch.trigger_reason == "gap_restart"
