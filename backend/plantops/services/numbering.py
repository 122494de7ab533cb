"""
Document number generation.

Every document gets a human-readable code built from a prefix, an
optional date part and a zero-padded sequence. The next sequence is
found by scanning existing codes with the same prefix, so callers must
flush newly added rows before generating the next number in the same
transaction.

    SO-20260118-001     sales order (per day)
    WO-2026-00001       work order (per year)
    QC-FP-000001        QC record (per type)
    DQC-00001-26        dispatch QC batch (per two-digit year)
"""
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from plantops.models import (
    SalesOrder, WorkOrder, QCRecord, DispatchQCBatch, Carton, Dispatch, Shipment,
    ExternalMovement, MaterialReceipt, NCR, Invoice, CustomerReceipt, CreditAdjustment, MaterialLot,
)

QC_TYPE_CODES = {
    "incoming": "MAT",
    "first_piece": "FP",
    "in_process": "IP",
    "final": "FINAL",
}


def _next_code(db: Session, column, prefix: str, width: int, suffix: str = "") -> str:
    """Return prefix + (highest existing sequence + 1) + suffix."""
    highest = 0
    for (code,) in db.query(column).filter(column.like(f"{prefix}%{suffix}")).all():
        middle = code[len(prefix):len(code) - len(suffix)] if suffix else code[len(prefix):]
        if middle.isdigit():
            highest = max(highest, int(middle))
    return f"{prefix}{highest + 1:0{width}d}{suffix}"


def _day(on: Optional[date]) -> str:
    return (on or date.today()).strftime("%Y%m%d")


def _year(on: Optional[date]) -> int:
    return (on or date.today()).year


def generate_so_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, SalesOrder.so_number, f"SO-{_day(on)}-", 3)


def generate_wo_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, WorkOrder.wo_number, f"WO-{_year(on)}-", 5)


def generate_qc_number(db: Session, qc_type: str) -> str:
    code = QC_TYPE_CODES.get(qc_type, qc_type.upper())
    return _next_code(db, QCRecord.qc_number, f"QC-{code}-", 6)


def generate_dqc_id(db: Session, on: Optional[date] = None) -> str:
    yy = f"{_year(on) % 100:02d}"
    return _next_code(db, DispatchQCBatch.qc_batch_id, "DQC-", 5, suffix=f"-{yy}")


def generate_carton_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, Carton.carton_number, f"CTN-{_day(on)}-", 3)


def generate_dispatch_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, Dispatch.dispatch_number, f"DSP-{_day(on)}-", 3)


def generate_shipment_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, Shipment.shipment_number, f"SHP-{_day(on)}-", 3)


def generate_challan_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, ExternalMovement.challan_number, f"CH-{_day(on)}-", 3)


def generate_material_receipt_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, MaterialReceipt.receipt_number, f"MR-{_day(on)}-", 3)


def generate_lot_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, MaterialLot.lot_number, f"LOT-{_day(on)}-", 3)


def generate_ncr_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, NCR.ncr_number, f"NCR-{_year(on)}-", 4)


def generate_invoice_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, Invoice.invoice_number, f"INV-{_year(on)}-", 5)


def generate_receipt_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, CustomerReceipt.receipt_number, f"RCPT-{_day(on)}-", 3)


def generate_adjustment_number(db: Session, on: Optional[date] = None) -> str:
    return _next_code(db, CreditAdjustment.adjustment_number, f"CADJ-{_year(on)}-", 4)
