"""
Unit tests for QC gates: ordering, NCR on failure, waivers and the
material lot / batch side effects of inspection results
"""
import pytest

from plantops.exceptions import BusinessRuleError, ProductionLockedError, QCGateError, ValidationError
from plantops.models import AuditLog, NCR, QCRecord
from plantops.services import materials_service, quality_service, work_order_service
from tests.factories import (
    clear_material_qc,
    create_released_work_order,
    create_test_material_lot,
    create_test_work_order,
    gate_record,
    log_test_production,
)


class TestGateOrdering:

    def test_issuing_material_opens_incoming_gate(self, db_session):
        wo = create_test_work_order(db_session)
        lot = create_test_material_lot(db_session)

        materials_service.issue_material(db_session, lot, wo, 25)

        record = gate_record(db_session, wo, "incoming")
        assert record.material_lot_id == lot.id
        assert record.qc_number.startswith("QC-MAT-")
        assert wo.qc_material_status == "pending"

    def test_first_piece_before_material_is_rejected(self, db_session):
        wo = create_test_work_order(db_session)
        record = quality_service.create_qc_record(db_session, wo, {"qc_type": "first_piece"})

        with pytest.raises(QCGateError) as exc_info:
            quality_service.record_qc_result(db_session, record, "pass")
        assert exc_info.value.details["gate"] == "material"

    def test_material_pass_updates_lot_and_gate(self, db_session):
        wo = create_test_work_order(db_session)
        lot = clear_material_qc(db_session, wo)

        assert wo.qc_material_status == "passed"
        assert wo.qc_material_approved_at is not None
        assert lot.qc_status == "passed"
        assert wo.production_locked is True

    def test_first_piece_pass_unlocks_production(self, db_session):
        wo = create_released_work_order(db_session)
        assert wo.qc_first_piece_status == "passed"
        assert wo.production_locked is False
        assert wo.qc_status == "approved"

    def test_rework_result_holds_gate(self, db_session):
        wo = create_test_work_order(db_session)
        clear_material_qc(db_session, wo)
        work_order_service.move_stage(db_session, wo, "production")

        quality_service.record_qc_result(db_session, gate_record(db_session, wo, "first_piece"), "rework")
        assert wo.qc_first_piece_status == "hold"
        assert wo.production_locked is True

    def test_final_qc_needs_a_batch(self, db_session):
        wo = create_released_work_order(db_session)
        with pytest.raises(QCGateError):
            quality_service.create_qc_record(db_session, wo, {"qc_type": "final"})

    def test_second_first_piece_record_is_rejected(self, db_session):
        wo = create_test_work_order(db_session)
        clear_material_qc(db_session, wo)
        work_order_service.move_stage(db_session, wo, "production")
        gate = gate_record(db_session, wo, "first_piece")

        with pytest.raises(BusinessRuleError) as exc_info:
            quality_service.create_qc_record(db_session, wo, {"qc_type": "first_piece"})
        assert exc_info.value.details["rule"] == "qc_gate_unique"
        assert exc_info.value.details["qc_record_id"] == gate.id
        assert db_session.query(QCRecord).filter(
            QCRecord.work_order_id == wo.id, QCRecord.qc_type == "first_piece",
        ).count() == 1

    def test_final_inspections_repeat_per_batch(self, db_session):
        wo = create_released_work_order(db_session)
        batch = log_test_production(db_session, wo, ok=30).batch
        for _ in range(2):
            quality_service.create_qc_record(db_session, wo, {"qc_type": "final", "production_batch_id": batch.id})

        assert db_session.query(QCRecord).filter(
            QCRecord.production_batch_id == batch.id, QCRecord.qc_type == "final",
        ).count() == 2

    def test_unknown_result(self, db_session):
        wo = create_test_work_order(db_session)
        record = quality_service.create_qc_record(db_session, wo, {"qc_type": "in_process"})
        with pytest.raises(ValidationError):
            quality_service.record_qc_result(db_session, record, "maybe")


class TestFailures:

    def test_failed_incoming_inspection_raises_supplier_ncr(self, db_session):
        wo = create_test_work_order(db_session)
        lot = create_test_material_lot(db_session)
        materials_service.issue_material(db_session, lot, wo, 10)
        record = gate_record(db_session, wo, "incoming")

        quality_service.record_qc_result(db_session, record, "fail", remarks="Hardness out of spec")

        ncr = db_session.query(NCR).filter(NCR.qc_record_id == record.id).one()
        assert ncr.ncr_type == "SUPPLIER"
        assert ncr.status == "OPEN"
        assert ncr.material_lot_id == lot.id
        assert "Hardness out of spec" in ncr.issue_description
        assert lot.qc_status == "failed"
        assert wo.qc_status == "failed"

    def test_failure_recorded_twice_raises_one_ncr(self, db_session):
        wo = create_released_work_order(db_session)
        log = log_test_production(db_session, wo, ok=20)
        record = quality_service.create_qc_record(db_session, wo, {
            "qc_type": "final", "production_batch_id": log.batch.id, "inspected_quantity": 20,
        })

        quality_service.record_qc_result(db_session, record, "fail")
        quality_service.record_qc_result(db_session, record, "fail")

        assert db_session.query(NCR).filter(NCR.qc_record_id == record.id).count() == 1
        # a failed final inspection rejects everything inspected
        assert record.rejected_quantity == 20
        assert log.batch.qc_rejected_qty == 20
        assert log.batch.dispatch_allowed is False

    def test_failed_final_inspection_locks_production(self, db_session):
        wo = create_released_work_order(db_session)
        batch = log_test_production(db_session, wo, ok=20).batch
        assert wo.production_locked is False

        quality_service.create_qc_record(db_session, wo, {
            "qc_type": "final", "production_batch_id": batch.id, "inspected_quantity": 20, "result": "fail",
        })

        assert wo.production_locked is True
        assert wo.qc_status == "failed"
        with pytest.raises(ProductionLockedError):
            log_test_production(db_session, wo, ok=5)

    def test_failed_in_process_check_locks_production(self, db_session):
        wo = create_released_work_order(db_session)
        quality_service.create_qc_record(db_session, wo, {"qc_type": "in_process", "result": "fail"})

        assert wo.production_locked is True
        assert wo.qc_status == "failed"

    def test_failed_lot_cannot_be_issued_again(self, db_session):
        wo = create_test_work_order(db_session)
        lot = create_test_material_lot(db_session)
        materials_service.issue_material(db_session, lot, wo, 10)
        quality_service.record_qc_result(db_session, gate_record(db_session, wo, "incoming"), "fail")

        other = create_test_work_order(db_session)
        with pytest.raises(BusinessRuleError) as exc_info:
            materials_service.issue_material(db_session, lot, other, 10)
        assert exc_info.value.details["rule"] == "lot_qc_blocked"


class TestWaiver:

    def test_waive_needs_reason(self, db_session):
        wo = create_test_work_order(db_session)
        with pytest.raises(ValidationError):
            quality_service.waive_gate(db_session, wo, "material", "")

    def test_unknown_gate(self, db_session):
        wo = create_test_work_order(db_session)
        with pytest.raises(ValidationError):
            quality_service.waive_gate(db_session, wo, "paint", "Customer concession")

    def test_waived_gates_unlock_production_and_are_audited(self, db_session):
        wo = create_test_work_order(db_session)

        quality_service.waive_gate(db_session, wo, "material", "Customer-supplied certified stock")
        quality_service.waive_gate(db_session, wo, "first_piece", "Repeat order, setup unchanged")

        assert wo.qc_material_status == "waived"
        assert wo.production_locked is False
        db_session.flush()
        waivers = (
            db_session.query(AuditLog)
            .filter(AuditLog.table_name == "work_orders", AuditLog.record_id == wo.id,
                    AuditLog.action == "QC_GATE_WAIVED")
            .order_by(AuditLog.id)
            .all()
        )
        assert len(waivers) == 2
        assert waivers[0].new_data["reason"] == "Customer-supplied certified stock"

    def test_waiving_final_gate_on_batch_allows_dispatch(self, db_session):
        wo = create_released_work_order(db_session)
        batch = log_test_production(db_session, wo, ok=10).batch
        assert batch.dispatch_allowed is False

        quality_service.waive_gate(db_session, wo, "final", "Customer concession", batch=batch)

        assert batch.qc_final_status == "waived"
        assert batch.dispatch_allowed is True
        assert quality_service.first_blocking_gate(batch) is None
