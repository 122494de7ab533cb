"""
Unit tests for receipts, allocations and credit adjustments
"""
from datetime import date
from decimal import Decimal

import pytest

from plantops.exceptions import (
    BusinessRuleError, InvalidStateError, PeriodLockedError, QuantityExceededError, ValidationError,
)
from plantops.services import finance_service, receivables_service
from tests.factories import create_test_customer


def _issued_invoice(db, customer, amount="100.00", invoice_date=None):
    invoice = finance_service.create_invoice(db, {
        "customer_id": customer.id,
        "invoice_date": invoice_date or date.today(),
        "items": [{"item_code": "ITEM-A", "quantity": 1, "rate": Decimal(amount)}],
    })
    return finance_service.issue_invoice(db, invoice)


def _receipt(db, customer, amount="100.00", receipt_date=None):
    return receivables_service.record_receipt(db, {
        "customer_id": customer.id,
        "amount": Decimal(amount),
        "receipt_date": receipt_date or date.today(),
        "payment_mode": "bank_transfer",
    })


class TestReceipts:

    def test_record(self, db_session):
        customer = create_test_customer(db_session)
        receipt = _receipt(db_session, customer)
        assert receipt.receipt_number.startswith("RCPT-")
        assert receipt.status == "pending"
        assert receipt.unallocated_amount == Decimal("100.00")

    def test_amount_must_be_positive(self, db_session):
        customer = create_test_customer(db_session)
        with pytest.raises(ValidationError):
            _receipt(db_session, customer, amount="0")

    def test_locked_period(self, db_session):
        customer = create_test_customer(db_session)
        finance_service.lock_period(db_session, 2026, 2)
        with pytest.raises(PeriodLockedError):
            _receipt(db_session, customer, receipt_date=date(2026, 2, 14))


class TestAllocation:

    def test_part_then_full_payment(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _issued_invoice(db_session, customer, amount="100.00")
        first = _receipt(db_session, customer, amount="60.00")
        second = _receipt(db_session, customer, amount="80.00")

        receivables_service.allocate_receipt(db_session, first, invoice, "60.00")
        assert invoice.status == "part_paid"
        assert invoice.balance_amount == Decimal("40.00")
        assert first.status == "fully_allocated"

        receivables_service.allocate_receipt(db_session, second, invoice, "40.00")
        assert invoice.status == "paid"
        assert invoice.balance_amount == Decimal("0.00")
        assert second.status == "partially_allocated"

    def test_cannot_exceed_invoice_balance(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _issued_invoice(db_session, customer, amount="50.00")
        receipt = _receipt(db_session, customer, amount="100.00")
        with pytest.raises(QuantityExceededError):
            receivables_service.allocate_receipt(db_session, receipt, invoice, "50.01")

    def test_cannot_exceed_receipt(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _issued_invoice(db_session, customer, amount="100.00")
        receipt = _receipt(db_session, customer, amount="30.00")
        with pytest.raises(QuantityExceededError):
            receivables_service.allocate_receipt(db_session, receipt, invoice, "31.00")

    def test_other_customer(self, db_session):
        invoice = _issued_invoice(db_session, create_test_customer(db_session))
        receipt = _receipt(db_session, create_test_customer(db_session))
        with pytest.raises(ValidationError):
            receivables_service.allocate_receipt(db_session, receipt, invoice, "10.00")

    def test_draft_invoice(self, db_session):
        customer = create_test_customer(db_session)
        draft = finance_service.create_invoice(db_session, {
            "customer_id": customer.id, "items": [{"item_code": "X", "quantity": 1, "rate": 10}],
        })
        receipt = _receipt(db_session, customer)
        with pytest.raises(InvalidStateError):
            receivables_service.allocate_receipt(db_session, receipt, draft, "10.00")

    def test_part_payment_past_due_is_overdue(self, db_session):
        customer = create_test_customer(db_session, payment_terms_days=30)
        invoice = _issued_invoice(db_session, customer, invoice_date=date(2026, 1, 5))
        receipt = _receipt(db_session, customer, amount="20.00")

        receivables_service.allocate_receipt(db_session, receipt, invoice, "20.00")
        assert invoice.status == "overdue"

    def test_remove_allocation_restores_balances(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _issued_invoice(db_session, customer)
        receipt = _receipt(db_session, customer)
        allocation = receivables_service.allocate_receipt(db_session, receipt, invoice, "100.00")
        assert invoice.status == "paid"

        receivables_service.remove_allocation(db_session, allocation)

        assert invoice.status == "issued"
        assert invoice.balance_amount == Decimal("100.00")
        assert receipt.status == "pending"

    def test_invoice_with_allocations_cannot_be_cancelled(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _issued_invoice(db_session, customer)
        receipt = _receipt(db_session, customer)
        receivables_service.allocate_receipt(db_session, receipt, invoice, "10.00")
        db_session.refresh(invoice)
        with pytest.raises(InvalidStateError):
            finance_service.cancel_invoice(db_session, invoice)


class TestCreditAdjustments:

    def test_apply_in_parts(self, db_session):
        customer = create_test_customer(db_session)
        invoice = _issued_invoice(db_session, customer, amount="100.00")
        adjustment = receivables_service.create_credit_adjustment(db_session, {
            "customer_id": customer.id, "adjustment_type": "rejection",
            "amount": Decimal("50.00"), "reason": "12 pcs rejected at customer",
        })
        assert adjustment.adjustment_number.startswith("CADJ-")
        assert adjustment.status == "pending"

        receivables_service.apply_credit_adjustment(db_session, adjustment, invoice, "30.00")
        assert adjustment.status == "partial"
        assert invoice.adjustment_amount == Decimal("30.00")
        assert invoice.balance_amount == Decimal("70.00")
        assert invoice.status == "part_paid"

        with pytest.raises(QuantityExceededError):
            receivables_service.apply_credit_adjustment(db_session, adjustment, invoice, "25.00")

        receivables_service.apply_credit_adjustment(db_session, adjustment, invoice, "20.00")
        assert adjustment.status == "applied"
        with pytest.raises(BusinessRuleError):
            receivables_service.apply_credit_adjustment(db_session, adjustment, invoice, "1.00")

    def test_unknown_type(self, db_session):
        customer = create_test_customer(db_session)
        with pytest.raises(ValidationError):
            receivables_service.create_credit_adjustment(db_session, {
                "customer_id": customer.id, "adjustment_type": "goodwill", "amount": 5,
            })
