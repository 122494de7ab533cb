"""
Unit tests for work order stage routing, production lock, completion and
sales order fulfilment roll-up
"""
import pytest

from plantops.exceptions import (
    BusinessRuleError, InvalidStateError, ProductionLockedError, ValidationError,
)
from plantops.core.status_config import StatusTransitionError
from plantops.models import QCRecord, WorkOrder
from plantops.services import quality_service, work_order_service
from tests.factories import (
    clear_material_qc,
    create_packed_work_order,
    create_released_work_order,
    create_test_sales_order,
    create_test_work_order,
    log_test_production,
    pass_final_qc,
)


class TestCreateWorkOrder:

    def test_starts_pending_at_goods_in_and_locked(self, db_session):
        wo = create_test_work_order(db_session, quantity=250)

        assert wo.status == "pending"
        assert wo.current_stage == "goods_in"
        assert wo.qc_material_status == "not_started"
        assert wo.qc_first_piece_status == "not_started"
        assert wo.qc_final_status == "not_started"
        assert wo.production_locked is True
        assert wo.qc_status == "pending"
        assert [h.event for h in wo.stage_history] == ["wo_created"]

    def test_quantity_must_be_positive(self, db_session):
        with pytest.raises(ValidationError):
            work_order_service.create_work_order(db_session, {"item_code": "X", "quantity": 0})


class TestMoveStage:

    def test_unknown_stage(self, db_session):
        wo = create_test_work_order(db_session)
        with pytest.raises(ValidationError):
            work_order_service.move_stage(db_session, wo, "painting")

    def test_pre_production_stages_need_no_qc(self, db_session):
        wo = create_test_work_order(db_session)
        work_order_service.move_stage(db_session, wo, "cutting")
        work_order_service.move_stage(db_session, wo, "forging")
        assert wo.current_stage == "forging"
        assert wo.status == "pending"

    def test_production_blocked_until_material_qc_clears(self, db_session):
        wo = create_test_work_order(db_session)
        with pytest.raises(ProductionLockedError) as exc_info:
            work_order_service.move_stage(db_session, wo, "production")
        assert "Material QC" in exc_info.value.message
        assert wo.current_stage == "goods_in"

    def test_entering_production_opens_first_piece_gate(self, db_session):
        wo = create_test_work_order(db_session)
        clear_material_qc(db_session, wo)

        work_order_service.move_stage(db_session, wo, "production")

        assert wo.status == "in_progress"
        assert wo.started_at is not None
        assert wo.qc_first_piece_status == "pending"
        gate = (
            db_session.query(QCRecord)
            .filter(QCRecord.work_order_id == wo.id, QCRecord.qc_type == "first_piece")
            .one()
        )
        assert gate.result == "pending"
        assert gate.qc_number.startswith("QC-FP-")
        # still locked until first piece passes
        assert wo.production_locked is True

    def test_later_stages_need_production_unlocked(self, db_session):
        wo = create_test_work_order(db_session)
        clear_material_qc(db_session, wo)
        work_order_service.move_stage(db_session, wo, "production")

        with pytest.raises(ProductionLockedError):
            work_order_service.move_stage(db_session, wo, "quality")

    def test_quality_and_packing_stages_set_status(self, db_session):
        wo = create_released_work_order(db_session)

        work_order_service.move_stage(db_session, wo, "quality")
        assert wo.status == "qc"
        work_order_service.move_stage(db_session, wo, "packing")
        assert wo.status == "packing"
        events = [(h.from_stage, h.to_stage) for h in wo.stage_history if h.event == "stage_change"]
        assert events[-2:] == [("production", "quality"), ("quality", "packing")]

    def test_rejected_status_change_leaves_stage_unchanged(self, db_session):
        wo = create_test_work_order(db_session)
        quality_service.waive_gate(db_session, wo, "material", "Customer-supplied certified stock")
        quality_service.waive_gate(db_session, wo, "first_piece", "Repeat order, setup unchanged")
        assert wo.status == "pending"

        with pytest.raises(StatusTransitionError):
            work_order_service.move_stage(db_session, wo, "quality")
        assert wo.current_stage == "goods_in"
        assert wo.status == "pending"

    def test_closed_work_order_cannot_move(self, db_session):
        wo = create_test_work_order(db_session)
        work_order_service.cancel_work_order(db_session, wo, reason="Duplicate")
        with pytest.raises(InvalidStateError):
            work_order_service.move_stage(db_session, wo, "cutting")


class TestSetStatus:

    def test_hold_and_resume(self, db_session):
        wo = create_released_work_order(db_session)
        work_order_service.set_status(db_session, wo, "on_hold", reason="Machine breakdown")
        assert wo.status == "on_hold"
        work_order_service.set_status(db_session, wo, "in_progress")
        assert wo.status == "in_progress"

    def test_unknown_status(self, db_session):
        wo = create_test_work_order(db_session)
        with pytest.raises(ValidationError):
            work_order_service.set_status(db_session, wo, "finished")

    def test_completed_routes_through_completion_check(self, db_session):
        wo = create_released_work_order(db_session)
        with pytest.raises(BusinessRuleError):
            work_order_service.set_status(db_session, wo, "completed")


class TestCompletion:

    def test_fresh_work_order_lists_every_blocker(self, db_session):
        wo = create_test_work_order(db_session, quantity=100)
        check = work_order_service.check_wo_completion_status(db_session, wo)

        assert check["can_complete"] is False
        assert len(check["blockers"]) == 4
        assert check["blockers"][0] == "Production not complete for all batches"
        assert check["blockers"][1] == "Produced qty (0) < ordered qty (100)"
        assert check["has_packed_qty"] is False

    def test_short_production_blocks_completion(self, db_session):
        wo = create_released_work_order(db_session, quantity=100)
        log = log_test_production(db_session, wo, ok=60)
        pass_final_qc(db_session, wo, log.batch, inspected=60)

        check = work_order_service.check_wo_completion_status(db_session, wo)
        assert "Produced qty (60) < ordered qty (100)" in check["blockers"]
        assert check["all_batches_final_qc_complete"] is True
        assert check["active_batch_id"] == log.batch.id

    def test_mark_complete_refuses_with_blockers(self, db_session):
        wo = create_released_work_order(db_session)
        with pytest.raises(BusinessRuleError) as exc_info:
            work_order_service.mark_wo_complete(db_session, wo)
        assert exc_info.value.details["rule"] == "wo_completion"
        assert exc_info.value.details["blockers"]
        assert wo.status == "in_progress"

    def test_complete_packed_work_order(self, db_session):
        wo, batch, carton = create_packed_work_order(db_session, quantity=40)

        work_order_service.mark_wo_complete(db_session, wo)

        assert wo.status == "completed"
        assert wo.production_complete is True
        assert wo.completed_at is not None
        assert wo.qty_completed == 40

    def test_sales_order_fulfilled_when_all_work_orders_complete(self, db_session):
        so = create_test_sales_order(db_session, lines=[
            {"item_code": "A", "quantity": 10},
            {"item_code": "B", "quantity": 20},
        ], approve=True)
        first, second = (
            db_session.query(WorkOrder).filter(WorkOrder.id == l.work_order_id).one() for l in so.lines
        )

        create_packed_work_order(db_session, wo=first)
        work_order_service.mark_wo_complete(db_session, first)
        assert so.status == "approved"

        work_order_service.cancel_work_order(db_session, second, reason="Line dropped")
        assert so.status == "fulfilled"
        assert so.fulfilled_at is not None


class TestBatchStatus:

    def test_progression(self, db_session):
        wo = create_released_work_order(db_session, quantity=100)
        assert work_order_service.get_wo_batch_status(db_session, wo)["status"] == "in_production"

        log = log_test_production(db_session, wo, ok=50)
        status = work_order_service.get_wo_batch_status(db_session, wo)
        assert status["status"] == "in_production"
        assert status["qc_pending_qty"] == 50

        pass_final_qc(db_session, wo, log.batch, inspected=30)
        status = work_order_service.get_wo_batch_status(db_session, wo)
        assert status["status"] == "ready_to_dispatch"
        assert status["qc_approved_qty"] == 30
        assert status["remaining_qty"] == 100
