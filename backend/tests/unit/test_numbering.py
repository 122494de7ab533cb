"""
Unit tests for document number generation
"""
from datetime import date

from plantops.services import numbering
from tests.factories import create_test_work_order


class TestDocumentNumbers:

    def test_first_sales_order_number_of_the_day(self, db_session):
        assert numbering.generate_so_number(db_session, date(2026, 1, 18)) == "SO-20260118-001"

    def test_work_order_sequence_continues_from_highest(self, db_session):
        first = create_test_work_order(db_session)
        second = create_test_work_order(db_session)
        year = date.today().year
        assert first.wo_number == f"WO-{year}-00001"
        assert second.wo_number == f"WO-{year}-00002"
        assert second.display_id == second.wo_number

    def test_qc_numbers_are_sequenced_per_type(self, db_session):
        assert numbering.generate_qc_number(db_session, "first_piece") == "QC-FP-000001"
        assert numbering.generate_qc_number(db_session, "incoming") == "QC-MAT-000001"
        assert numbering.generate_qc_number(db_session, "final") == "QC-FINAL-000001"

    def test_dqc_id_carries_two_digit_year_suffix(self, db_session):
        assert numbering.generate_dqc_id(db_session, date(2026, 3, 1)) == "DQC-00001-26"

    def test_yearly_finance_numbers(self, db_session):
        on = date(2026, 5, 2)
        assert numbering.generate_invoice_number(db_session, on) == "INV-2026-00001"
        assert numbering.generate_ncr_number(db_session, on) == "NCR-2026-0001"
        assert numbering.generate_adjustment_number(db_session, on) == "CADJ-2026-0001"

    def test_daily_logistics_numbers(self, db_session):
        on = date(2026, 2, 9)
        assert numbering.generate_carton_number(db_session, on) == "CTN-20260209-001"
        assert numbering.generate_dispatch_number(db_session, on) == "DSP-20260209-001"
        assert numbering.generate_shipment_number(db_session, on) == "SHP-20260209-001"
        assert numbering.generate_challan_number(db_session, on) == "CH-20260209-001"
        assert numbering.generate_receipt_number(db_session, on) == "RCPT-20260209-001"
