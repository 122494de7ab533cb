"""
Unit tests for invoices, period locks, overdue marking and aging
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from plantops.exceptions import (
    DuplicateError, InvalidStateError, NotFoundError, PeriodLockedError, ValidationError,
)
from plantops.models import WorkOrder
from plantops.services import dispatch_service, finance_service
from tests.factories import create_packed_work_order, create_test_customer, create_test_sales_order


def _invoice(db, customer, amount="100.00", invoice_date=None, issue=True, **extra):
    data = {
        "customer_id": customer.id,
        "invoice_date": invoice_date or date.today(),
        "items": [{"item_code": "ITEM-A", "quantity": 1, "rate": Decimal(amount)}],
    }
    data.update(extra)
    invoice = finance_service.create_invoice(db, data)
    if issue:
        finance_service.issue_invoice(db, invoice)
    return invoice


class TestInvoiceTotals:

    def test_gst_rounds_half_up(self, db_session):
        customer = create_test_customer(db_session)
        invoice = finance_service.create_invoice(db_session, {
            "customer_id": customer.id,
            "invoice_date": date(2026, 4, 1),
            "gst_percent": 18,
            "items": [
                {"item_code": "ITEM-A", "quantity": 3, "rate": Decimal("10.555")},
                {"item_code": "ITEM-B", "quantity": 2, "rate": 4},
            ],
        })

        assert invoice.status == "draft"
        assert invoice.invoice_number == "INV-2026-00001"
        assert [i.amount for i in invoice.items] == [Decimal("31.67"), Decimal("8.00")]
        assert invoice.subtotal == Decimal("39.67")
        assert invoice.gst_amount == Decimal("7.14")
        assert invoice.total_amount == Decimal("46.81")
        assert invoice.balance_amount == Decimal("46.81")

    def test_due_date_from_customer_terms(self, db_session):
        customer = create_test_customer(db_session, payment_terms_days=45)
        invoice = _invoice(db_session, customer, invoice_date=date(2026, 4, 1), issue=False)
        assert invoice.due_date == date(2026, 5, 16)

    def test_needs_items(self, db_session):
        customer = create_test_customer(db_session)
        with pytest.raises(ValidationError):
            finance_service.create_invoice(db_session, {"customer_id": customer.id, "items": []})

    def test_update_replaces_items(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _invoice(db_session, customer, issue=False)
        finance_service.update_invoice(db_session, invoice, {
            "items": [{"item_code": "ITEM-A", "quantity": 4, "rate": 5}], "gst_percent": 10,
        })
        assert invoice.total_amount == Decimal("22.00")


class TestIssueAndClose:

    def test_issue(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _invoice(db_session, customer)
        assert invoice.status == "issued"
        assert invoice.issued_at is not None
        with pytest.raises(InvalidStateError):
            finance_service.issue_invoice(db_session, invoice)

    def test_zero_total_cannot_be_issued(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _invoice(db_session, customer, amount="0", issue=False)
        with pytest.raises(ValidationError):
            finance_service.issue_invoice(db_session, invoice)

    def test_short_close_writes_off_balance(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _invoice(db_session, customer, amount="80.00")

        finance_service.short_close(db_session, invoice, "Customer dispute settled")

        assert invoice.status == "short_closed"
        assert invoice.short_closed_amount == Decimal("80.00")
        assert invoice.balance_amount == Decimal("0.00")

    def test_short_close_needs_payable_invoice(self, db_session):
        customer = create_test_customer(db_session)
        draft = _invoice(db_session, customer, issue=False)
        with pytest.raises(InvalidStateError):
            finance_service.short_close(db_session, draft, "Dispute")

    def test_only_drafts_are_deleted(self, db_session):
        customer = create_test_customer(db_session)
        issued = _invoice(db_session, customer)
        with pytest.raises(InvalidStateError):
            finance_service.delete_invoice(db_session, issued)

    def test_cancel(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _invoice(db_session, customer)
        finance_service.cancel_invoice(db_session, invoice)
        assert invoice.status == "cancelled"
        assert invoice.balance_amount == 0


class TestPeriodLocks:

    def test_locked_month_blocks_invoicing(self, db_session):
        customer = create_test_customer(db_session)
        finance_service.lock_period(db_session, 2026, 3, reason="Q1 closed")

        with pytest.raises(PeriodLockedError):
            _invoice(db_session, customer, invoice_date=date(2026, 3, 15), issue=False)
        _invoice(db_session, customer, invoice_date=date(2026, 4, 1), issue=False)

    def test_lock_blocks_issuing_existing_draft(self, db_session):
        customer = create_test_customer(db_session)
        draft = _invoice(db_session, customer, invoice_date=date(2026, 3, 15), issue=False)
        finance_service.lock_period(db_session, 2026, 3)
        with pytest.raises(PeriodLockedError):
            finance_service.issue_invoice(db_session, draft)

    def test_duplicate_lock(self, db_session):
        finance_service.lock_period(db_session, 2026, 3)
        with pytest.raises(DuplicateError):
            finance_service.lock_period(db_session, 2026, 3)

    def test_invalid_month(self, db_session):
        with pytest.raises(ValidationError):
            finance_service.lock_period(db_session, 2026, 13)

    def test_unlock(self, db_session):
        finance_service.lock_period(db_session, 2026, 3)
        finance_service.unlock_period(db_session, 2026, 3)
        assert finance_service.is_period_locked(db_session, date(2026, 3, 1)) is False
        with pytest.raises(NotFoundError):
            finance_service.unlock_period(db_session, 2026, 3)


class TestOverdueAndAging:

    def test_mark_overdue(self, db_session):
        customer = create_test_customer(db_session)
        late = _invoice(db_session, customer, invoice_date=date(2026, 1, 1))
        current = _invoice(db_session, customer, invoice_date=date(2026, 2, 10))
        _invoice(db_session, customer, invoice_date=date(2026, 1, 1), issue=False)

        count = finance_service.mark_overdue(db_session, today=date(2026, 2, 15))

        assert count == 1
        assert late.status == "overdue"
        assert current.status == "issued"

    def test_customer_outstanding_buckets(self, db_session):
        customer = create_test_customer(db_session, payment_terms_days=0)
        today = date(2026, 6, 30)
        _invoice(db_session, customer, amount="10.00", invoice_date=today - timedelta(days=5))
        _invoice(db_session, customer, amount="20.00", invoice_date=today - timedelta(days=45))
        _invoice(db_session, customer, amount="30.00", invoice_date=today - timedelta(days=75))
        _invoice(db_session, customer, amount="40.00", invoice_date=today - timedelta(days=120))

        aging = finance_service.customer_outstanding(db_session, customer.id, today=today)

        assert aging["buckets"] == {
            "0-30": Decimal("10.00"),
            "31-60": Decimal("20.00"),
            "61-90": Decimal("30.00"),
            "90+": Decimal("40.00"),
        }
        assert aging["total"] == Decimal("100.00")
        assert aging["invoice_count"] == 4


class TestInvoiceFromDispatches:

    def test_lines_priced_from_sales_order(self, db_session):
        so = create_test_sales_order(db_session, approve=True)
        wo = db_session.query(WorkOrder).filter(WorkOrder.id == so.lines[0].work_order_id).one()
        wo, batch, carton = create_packed_work_order(db_session, wo=wo)
        dispatch = dispatch_service.create_dispatch(db_session, wo, batch, 100, carton=carton)

        invoice = finance_service.create_invoice(db_session, {
            "customer_id": so.customer_id, "from_dispatches": [dispatch.id], "sales_order_id": so.id,
        })

        item = invoice.items[0]
        assert item.dispatch_id == dispatch.id
        assert item.rate == Decimal("2.50")
        assert invoice.subtotal == Decimal("250.00")

        with pytest.raises(DuplicateError):
            finance_service.create_invoice(db_session, {
                "customer_id": so.customer_id, "from_dispatches": [dispatch.id],
            })
