"""
Unit tests for dispatch QC releases, cartons, dispatches and shipment gating
"""
import pytest

from plantops.exceptions import (
    DispatchBlockedError, InvalidStateError, QCGateError, QuantityExceededError, ValidationError,
)
from plantops.models import Carton, WorkOrder
from plantops.services import dispatch_service, packing_service
from tests.factories import (
    create_packed_work_order,
    create_released_work_order,
    create_test_sales_order,
    log_test_production,
    pass_final_qc,
)


@pytest.fixture
def approved_batch(db_session):
    """A released WO with 100 pcs produced and passed at final QC."""
    wo = create_released_work_order(db_session, quantity=100)
    batch = log_test_production(db_session, wo, ok=100).batch
    pass_final_qc(db_session, wo, batch, inspected=100)
    return wo, batch


class TestDispatchQCRelease:

    def test_needs_final_qc(self, db_session):
        wo = create_released_work_order(db_session)
        batch = log_test_production(db_session, wo, ok=50).batch

        with pytest.raises(QCGateError) as exc_info:
            packing_service.create_dispatch_qc_batch(db_session, batch, 10)
        assert exc_info.value.details["gate"] == "final"

    def test_release_limited_to_unreleased_approved(self, db_session, approved_batch):
        wo, batch = approved_batch
        dqc = packing_service.create_dispatch_qc_batch(db_session, batch, 60)

        assert dqc.status == "approved"
        assert dqc.qc_batch_id.startswith("DQC-")
        with pytest.raises(QuantityExceededError):
            packing_service.create_dispatch_qc_batch(db_session, batch, 50)
        packing_service.create_dispatch_qc_batch(db_session, batch, 40)

    def test_zero_release(self, db_session, approved_batch):
        wo, batch = approved_batch
        with pytest.raises(ValidationError):
            packing_service.create_dispatch_qc_batch(db_session, batch, 0)


class TestCartons:

    def test_packing_consumes_release(self, db_session, approved_batch):
        wo, batch = approved_batch
        dqc = packing_service.create_dispatch_qc_batch(db_session, batch, 60)

        first = packing_service.pack_carton(db_session, wo, batch, 30, dqc=dqc)
        assert first.carton_number.startswith("CTN-")
        assert first.status == "packed"
        assert dqc.status == "partially_consumed"

        packing_service.pack_carton(db_session, wo, batch, 30, dqc=dqc)
        assert dqc.status == "consumed"

        with pytest.raises(QuantityExceededError):
            packing_service.pack_carton(db_session, wo, batch, 10, dqc=dqc)

    def test_cannot_pack_more_than_approved(self, db_session, approved_batch):
        wo, batch = approved_batch
        packing_service.pack_carton(db_session, wo, batch, 80)
        with pytest.raises(QuantityExceededError):
            packing_service.pack_carton(db_session, wo, batch, 25)

    def test_batch_from_other_work_order(self, db_session, approved_batch):
        _, batch = approved_batch
        other = create_released_work_order(db_session)
        with pytest.raises(ValidationError):
            packing_service.pack_carton(db_session, other, batch, 5)

    def test_update_quantity_adjusts_release(self, db_session, approved_batch):
        wo, batch = approved_batch
        dqc = packing_service.create_dispatch_qc_batch(db_session, batch, 50)
        carton = packing_service.pack_carton(db_session, wo, batch, 20, dqc=dqc)

        packing_service.update_carton_quantity(db_session, carton, 50)
        assert carton.quantity == 50
        assert dqc.status == "consumed"

        with pytest.raises(QuantityExceededError):
            packing_service.update_carton_quantity(db_session, carton, 51)

    def test_delete_returns_release(self, db_session, approved_batch):
        wo, batch = approved_batch
        dqc = packing_service.create_dispatch_qc_batch(db_session, batch, 40)
        carton = packing_service.pack_carton(db_session, wo, batch, 40, dqc=dqc)

        packing_service.delete_carton(db_session, carton)

        assert dqc.consumed_quantity == 0
        assert dqc.status == "approved"
        assert db_session.query(Carton).count() == 0

    def test_ready_only_from_packed(self, db_session, approved_batch):
        wo, batch = approved_batch
        carton = packing_service.pack_carton(db_session, wo, batch, 10)
        packing_service.mark_ready_for_dispatch(db_session, carton)
        assert carton.status == "ready_for_dispatch"
        with pytest.raises(InvalidStateError):
            packing_service.mark_ready_for_dispatch(db_session, carton)


class TestDispatch:

    def test_dispatch_full_carton(self, db_session):
        wo, batch, carton = create_packed_work_order(db_session, quantity=50)

        dispatch = dispatch_service.create_dispatch(db_session, wo, batch, 50, carton=carton)

        assert dispatch.dispatch_number.startswith("DSP-")
        assert carton.status == "dispatched"
        assert batch.dispatched_qty == 50
        assert wo.qty_dispatched == 50

    def test_partial_carton_stays_open(self, db_session):
        wo, batch, carton = create_packed_work_order(db_session, quantity=50)

        dispatch_service.create_dispatch(db_session, wo, batch, 20, carton=carton)
        assert carton.status == "ready_for_dispatch"

        with pytest.raises(QuantityExceededError):
            dispatch_service.create_dispatch(db_session, wo, batch, 31, carton=carton)

    def test_blocked_before_final_qc(self, db_session):
        wo = create_released_work_order(db_session)
        batch = log_test_production(db_session, wo, ok=10).batch
        with pytest.raises(DispatchBlockedError):
            dispatch_service.create_dispatch(db_session, wo, batch, 10)

    def test_carton_without_release_is_blocked(self, db_session, approved_batch):
        wo, batch = approved_batch
        carton = packing_service.pack_carton(db_session, wo, batch, 10)
        packing_service.mark_ready_for_dispatch(db_session, carton)

        with pytest.raises(DispatchBlockedError):
            dispatch_service.create_dispatch(db_session, wo, batch, 10, carton=carton)

    def test_loose_dispatch_needs_release(self, db_session, approved_batch):
        wo, batch = approved_batch
        carton = packing_service.pack_carton(db_session, wo, batch, 10)
        packing_service.mark_ready_for_dispatch(db_session, carton)

        with pytest.raises(DispatchBlockedError) as exc_info:
            dispatch_service.create_dispatch(db_session, wo, batch, 10)
        assert "no dispatch QC approval" in exc_info.value.message

    def test_loose_dispatch_needs_ready_cartons(self, db_session):
        wo, batch, _ = create_packed_work_order(db_session, quantity=30, ready=False)
        with pytest.raises(DispatchBlockedError) as exc_info:
            dispatch_service.create_dispatch(db_session, wo, batch, 10)
        assert "No cartons packed yet" in exc_info.value.message

    def test_loose_dispatch_limited_to_packed(self, db_session):
        wo, batch, _ = create_packed_work_order(db_session, quantity=30)
        dispatch_service.create_dispatch(db_session, wo, batch, 25)
        with pytest.raises(QuantityExceededError):
            dispatch_service.create_dispatch(db_session, wo, batch, 10)

    def test_delete_dispatch_reopens_carton(self, db_session):
        wo, batch, carton = create_packed_work_order(db_session, quantity=20)
        dispatch = dispatch_service.create_dispatch(db_session, wo, batch, 20, carton=carton)

        dispatch_service.delete_dispatch(db_session, dispatch)

        assert carton.status == "ready_for_dispatch"
        assert wo.qty_dispatched == 0


class TestShipments:

    def _so_work_order(self, db):
        so = create_test_sales_order(db, approve=True)
        wo = db.query(WorkOrder).filter(WorkOrder.id == so.lines[0].work_order_id).one()
        return so, wo

    def test_ship_and_deliver(self, db_session):
        so, wo = self._so_work_order(db_session)
        create_packed_work_order(db_session, wo=wo)
        shipment = dispatch_service.create_shipment(db_session, so, {"work_order_id": wo.id, "carrier": "BlueDart"})
        assert shipment.status == "pending"
        assert shipment.shipment_number.startswith("SHP-")

        dispatch_service.update_shipment_status(db_session, shipment, "shipped")
        assert shipment.shipped_at is not None
        assert shipment.batch_id is not None
        dispatch_service.update_shipment_status(db_session, shipment, "delivered")
        assert shipment.delivered_at is not None

    def test_shipping_blocked_until_final_qc(self, db_session):
        so, wo = self._so_work_order(db_session)
        create_released_work_order(db_session, wo=wo)
        log_test_production(db_session, wo, ok=40)
        shipment = dispatch_service.create_shipment(db_session, so, {"work_order_id": wo.id})

        with pytest.raises(DispatchBlockedError) as exc_info:
            dispatch_service.update_shipment_status(db_session, shipment, "shipped")
        assert exc_info.value.details["gate"] == "qc_final_status"
        assert shipment.status == "pending"

    def test_cannot_skip_shipped(self, db_session):
        so, wo = self._so_work_order(db_session)
        shipment = dispatch_service.create_shipment(db_session, so, {"work_order_id": wo.id})
        with pytest.raises(InvalidStateError):
            dispatch_service.update_shipment_status(db_session, shipment, "delivered")

    def test_work_order_of_other_order_rejected(self, db_session):
        so, _ = self._so_work_order(db_session)
        _, other_wo = self._so_work_order(db_session)
        with pytest.raises(ValidationError):
            dispatch_service.create_shipment(db_session, so, {"work_order_id": other_wo.id})
