"""
Unit tests for sales order intake, approval, sync to work orders and cancellation
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from plantops.exceptions import InvalidStateError, NotFoundError, ValidationError
from plantops.models import Notification, WorkOrder
from plantops.services import sales_order_service
from tests.factories import (
    create_released_work_order,
    create_test_customer,
    create_test_item,
    create_test_sales_order,
    create_test_user,
)


def _work_order_for(db, line):
    return db.query(WorkOrder).filter(WorkOrder.id == line.work_order_id).one()


class TestCreateSalesOrder:

    def test_totals_and_customer_defaults(self, db_session):
        customer = create_test_customer(db_session, currency="EUR", payment_terms_days=45)
        so = create_test_sales_order(db_session, customer=customer, lines=[
            {"item_code": "ITEM-A", "quantity": 100, "price_per_pc": Decimal("2.50")},
            {"item_code": "ITEM-B", "quantity": 10, "price_per_pc": Decimal("7.125")},
        ])

        assert so.status == "draft"
        assert so.so_number.startswith("SO-")
        assert so.total_amount == Decimal("321.25")
        assert so.currency == "EUR"
        assert so.payment_terms_days == 45
        assert [l.line_number for l in so.lines] == [1, 2]
        assert all(l.status == "pending" for l in so.lines)

    def test_needs_at_least_one_line(self, db_session):
        customer = create_test_customer(db_session)
        with pytest.raises(ValidationError):
            sales_order_service.create_sales_order(db_session, {"customer_id": customer.id, "lines": []})

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            sales_order_service.create_sales_order(
                db_session, {"customer_id": 999, "lines": [{"item_code": "X", "quantity": 1}]},
            )

    def test_rejects_zero_quantity_line(self, db_session):
        customer = create_test_customer(db_session)
        with pytest.raises(ValidationError):
            sales_order_service.create_sales_order(
                db_session, {"customer_id": customer.id, "lines": [{"item_code": "X", "quantity": 0}]},
            )


class TestApproveSalesOrder:

    def test_every_line_gets_one_work_order(self, db_session):
        so = create_test_sales_order(db_session, lines=[
            {"item_code": "ITEM-A", "quantity": 100, "price_per_pc": Decimal("1")},
            {"item_code": "ITEM-B", "quantity": 40, "price_per_pc": Decimal("3")},
        ], approve=True)

        assert so.status == "approved"
        assert so.approved_at is not None
        wos = db_session.query(WorkOrder).filter(WorkOrder.sales_order_id == so.id).all()
        assert len(wos) == 2
        for line in so.lines:
            assert line.status == "approved"
            wo = _work_order_for(db_session, line)
            assert wo.sales_order_line_id == line.id
            assert wo.quantity == line.quantity
            assert wo.status == "pending"
            assert wo.current_stage == "goods_in"
            assert wo.production_locked is True
            assert wo.customer_po == so.po_number
            assert wo.financial_snapshot["line"]["item_code"] == line.item_code

    def test_generating_work_order_is_idempotent(self, db_session):
        so = create_test_sales_order(db_session, approve=True)
        line = so.lines[0]
        first = _work_order_for(db_session, line)

        again = sales_order_service.generate_work_order_from_line(db_session, line)
        assert again.id == first.id
        line.work_order_id = None
        again = sales_order_service.generate_work_order_from_line(db_session, line)
        assert again.id == first.id
        assert line.work_order_id == first.id
        assert db_session.query(WorkOrder).count() == 1

    def test_material_specs_fall_back_to_item_master(self, db_session):
        create_test_item(db_session, item_code="FLANGE-01", material_size_mm=Decimal("25.00"),
                         material_shape="round", alloy="EN8")
        so = create_test_sales_order(db_session, lines=[{"item_code": "FLANGE-01", "quantity": 5}], approve=True)

        wo = _work_order_for(db_session, so.lines[0])
        assert wo.material_size_mm == "round 25mm"
        assert wo.alloy == "EN8"

    def test_line_spec_beats_order_spec_beats_item(self, db_session):
        create_test_item(db_session, item_code="SHAFT-02", alloy="EN8", material_size_mm=Decimal("30"))
        so = create_test_sales_order(
            db_session,
            lines=[
                {"item_code": "SHAFT-02", "quantity": 5, "alloy": "SS316"},
                {"item_code": "SHAFT-02", "quantity": 5},
            ],
            alloy="SS304",
            material_rod_forging_size_mm="hex 32mm",
            approve=True,
        )
        first, second = (_work_order_for(db_session, l) for l in so.lines)
        assert first.alloy == "SS316"
        assert second.alloy == "SS304"
        assert first.material_size_mm == "hex 32mm"

    def test_due_date_falls_back_to_expected_delivery(self, db_session):
        delivery = date.today() + timedelta(days=60)
        so = create_test_sales_order(db_session, expected_delivery_date=delivery, approve=True)
        assert _work_order_for(db_session, so.lines[0]).due_date == delivery

    def test_cannot_approve_cancelled_order(self, db_session):
        so = create_test_sales_order(db_session)
        sales_order_service.cancel_sales_order(db_session, so, "Customer withdrew PO")
        with pytest.raises(InvalidStateError):
            sales_order_service.approve_sales_order(db_session, so)


class TestUpdateSalesOrder:

    def test_so_number_is_read_only(self, db_session):
        so = create_test_sales_order(db_session)
        with pytest.raises(ValidationError):
            sales_order_service.update_sales_order(db_session, so, {"so_number": "SO-HACKED-001"})

    def test_resending_same_so_number_is_allowed(self, db_session):
        so = create_test_sales_order(db_session)
        sales_order_service.update_sales_order(db_session, so, {"so_number": so.so_number, "notes": "ok"})
        assert so.notes == "ok"

    def test_edit_flows_into_unstarted_work_order(self, db_session):
        so = create_test_sales_order(db_session, approve=True)
        line = so.lines[0]
        new_due = date.today() + timedelta(days=90)

        sales_order_service.update_sales_order(
            db_session, so, {"lines": [{"id": line.id, "quantity": 150, "due_date": new_due}]},
        )

        wo = _work_order_for(db_session, line)
        assert wo.quantity == 150
        assert wo.due_date == new_due
        assert so.total_amount == Decimal("375.00")
        assert wo.financial_snapshot["line"]["quantity"] == 150

    def test_started_work_order_is_flagged_not_changed(self, db_session):
        admin = create_test_user(db_session, role="admin")
        production = create_test_user(db_session, role="production")
        create_test_user(db_session, role="sales")
        so = create_test_sales_order(db_session, approve=True)
        line = so.lines[0]
        wo = _work_order_for(db_session, line)
        create_released_work_order(db_session, wo=wo)

        line.quantity = 150
        flagged = sales_order_service.sync_work_orders_from_sales_order(db_session, so)

        assert flagged == [wo.wo_number]
        assert wo.quantity == 100
        notified = {
            n.user_id for n in db_session.query(Notification)
            .filter(Notification.notification_type == "approval_required").all()
        }
        assert notified == {admin.id, production.id}

    def test_new_line_on_approved_order_gets_work_order(self, db_session):
        so = create_test_sales_order(db_session, approve=True)
        sales_order_service.update_sales_order(
            db_session, so, {"lines": [{"item_code": "ITEM-Z", "quantity": 12, "price_per_pc": 1}]},
        )
        added = so.lines[-1]
        assert added.status == "approved"
        assert added.work_order_id is not None

    def test_fulfilled_order_is_read_only(self, db_session):
        so = create_test_sales_order(db_session)
        so.status = "fulfilled"
        with pytest.raises(InvalidStateError):
            sales_order_service.update_sales_order(db_session, so, {"notes": "late change"})


class TestCancelSalesOrder:

    def test_reason_required(self, db_session):
        so = create_test_sales_order(db_session)
        with pytest.raises(ValidationError):
            sales_order_service.cancel_sales_order(db_session, so, "  ")

    def test_cancels_open_work_orders(self, db_session):
        so = create_test_sales_order(db_session, lines=[
            {"item_code": "A", "quantity": 10},
            {"item_code": "B", "quantity": 20},
        ], approve=True)

        sales_order_service.cancel_sales_order(db_session, so, "PO withdrawn")

        assert so.status == "cancelled"
        assert so.cancellation_reason == "PO withdrawn"
        statuses = {wo.status for wo in db_session.query(WorkOrder).filter(WorkOrder.sales_order_id == so.id)}
        assert statuses == {"cancelled"}

    def test_cancel_line_cancels_unstarted_work_order(self, db_session):
        so = create_test_sales_order(db_session, lines=[
            {"item_code": "A", "quantity": 10, "price_per_pc": 2},
            {"item_code": "B", "quantity": 20, "price_per_pc": 1},
        ], approve=True)
        line = so.lines[0]

        sales_order_service.cancel_line_item(db_session, line, reason="Dropped")

        assert line.status == "cancelled"
        assert _work_order_for(db_session, line).status == "cancelled"
        assert so.total_amount == Decimal("20.00")
