"""
Unit tests for external processing: challans, receipts, forwarding and overdue tracking
"""
from datetime import date

import pytest

from plantops.exceptions import (
    BusinessRuleError, InvalidStateError, QuantityExceededError, ValidationError,
)
from plantops.models import ExternalMovement
from plantops.services import external_service
from tests.factories import create_released_work_order, create_test_partner, log_test_production


@pytest.fixture
def produced_batch(db_session):
    wo = create_released_work_order(db_session, quantity=100)
    batch = log_test_production(db_session, wo, ok=100).batch
    return wo, batch


class TestSendToPartner:

    def test_send_moves_batch_out(self, db_session, produced_batch):
        wo, batch = produced_batch
        partner = create_test_partner(db_session)

        movement = external_service.send_to_external(
            db_session, batch, partner.id, "plating", 60, expected_return_date=date(2026, 2, 1),
        )

        assert movement.challan_number.startswith("CH-")
        assert movement.status == "sent"
        assert movement.quantity_outstanding == 60
        assert wo.current_stage == "external"
        assert wo.qty_external_wip == 60
        assert batch.location_type == "external_partner"
        assert batch.location_ref == partner.name
        assert batch.current_process == "plating"

    def test_cannot_send_more_than_in_plant(self, db_session, produced_batch):
        wo, batch = produced_batch
        partner = create_test_partner(db_session)
        external_service.send_to_external(db_session, batch, partner.id, "plating", 60)

        with pytest.raises(QuantityExceededError) as exc_info:
            external_service.send_to_external(db_session, batch, partner.id, "plating", 50)
        assert exc_info.value.details["available"] == "40"

    def test_inactive_partner(self, db_session, produced_batch):
        _, batch = produced_batch
        partner = create_test_partner(db_session, active=False)
        with pytest.raises(BusinessRuleError):
            external_service.send_to_external(db_session, batch, partner.id, "plating", 10)

    def test_process_type_required(self, db_session, produced_batch):
        _, batch = produced_batch
        partner = create_test_partner(db_session)
        with pytest.raises(ValidationError):
            external_service.send_to_external(db_session, batch, partner.id, "", 10)


class TestReceipts:

    def test_partial_then_full_return(self, db_session, produced_batch):
        wo, batch = produced_batch
        partner = create_test_partner(db_session)
        movement = external_service.send_to_external(db_session, batch, partner.id, "plating", 60)

        receipt = external_service.record_material_receipt(
            db_session, "partner_to_factory", 30, 5, movement=movement,
        )

        assert receipt.quantity_ok == 25
        assert movement.status == "partially_returned"
        assert movement.quantity_outstanding == 30
        assert batch.qc_rejected_qty == 5
        assert batch.location_type == "factory"
        assert wo.qty_external_wip == 30

        with pytest.raises(QuantityExceededError):
            external_service.record_material_receipt(db_session, "partner_to_factory", 31, movement=movement)

        external_service.record_material_receipt(
            db_session, "partner_to_factory", 30, movement=movement, receipt_date=date(2026, 3, 4),
        )
        assert movement.status == "returned"
        assert movement.actual_return_date == date(2026, 3, 4)
        assert wo.qty_external_wip == 0

    def test_closed_movement_rejects_receipts(self, db_session, produced_batch):
        _, batch = produced_batch
        partner = create_test_partner(db_session)
        movement = external_service.send_to_external(db_session, batch, partner.id, "plating", 10)
        external_service.record_material_receipt(db_session, "partner_to_factory", 10, movement=movement)

        with pytest.raises(InvalidStateError):
            external_service.record_material_receipt(db_session, "partner_to_factory", 1, movement=movement)

    def test_partner_receipt_needs_movement(self, db_session, produced_batch):
        _, batch = produced_batch
        with pytest.raises(ValidationError):
            external_service.record_material_receipt(db_session, "partner_to_factory", 10, batch=batch)

    def test_rejected_cannot_exceed_received(self, db_session, produced_batch):
        _, batch = produced_batch
        with pytest.raises(ValidationError):
            external_service.record_material_receipt(db_session, "supplier_to_factory", 10, 11, batch=batch)

    def test_forward_to_next_partner(self, db_session, produced_batch):
        wo, batch = produced_batch
        plater = create_test_partner(db_session, name="Plater")
        heat_treater = create_test_partner(db_session, name="Heat Treater")
        movement = external_service.send_to_external(db_session, batch, plater.id, "plating", 60)

        external_service.record_material_receipt(
            db_session, "partner_to_partner", 60, 2, movement=movement,
            to_partner_id=heat_treater.id, next_process_type="heat_treatment",
        )

        child = (
            db_session.query(ExternalMovement)
            .filter(ExternalMovement.parent_movement_id == movement.id)
            .one()
        )
        assert movement.status == "forwarded"
        assert child.partner_id == heat_treater.id
        assert child.quantity_sent == 58
        assert child.process_type == "heat_treatment"
        assert batch.location_ref == "Heat Treater"
        assert wo.qty_external_wip == 58

    def test_forward_needs_destination(self, db_session, produced_batch):
        _, batch = produced_batch
        partner = create_test_partner(db_session)
        movement = external_service.send_to_external(db_session, batch, partner.id, "plating", 10)
        with pytest.raises(ValidationError):
            external_service.record_material_receipt(db_session, "partner_to_partner", 10, movement=movement)


class TestOverdue:

    def test_open_movements_past_expected_return(self, db_session, produced_batch):
        _, batch = produced_batch
        partner = create_test_partner(db_session)
        late = external_service.send_to_external(
            db_session, batch, partner.id, "plating", 10, expected_return_date=date(2026, 1, 10),
        )
        external_service.send_to_external(
            db_session, batch, partner.id, "plating", 10, expected_return_date=date(2026, 2, 10),
        )
        returned = external_service.send_to_external(
            db_session, batch, partner.id, "plating", 10, expected_return_date=date(2026, 1, 5),
        )
        external_service.record_material_receipt(db_session, "partner_to_factory", 10, movement=returned)

        overdue = external_service.list_overdue_movements(db_session, today=date(2026, 1, 15))
        assert [m.id for m in overdue] == [late.id]
