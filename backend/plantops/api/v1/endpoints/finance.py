"""
Finance endpoints: invoices, receipts, credit adjustments, period locks

Every write that touches a dated document is refused with 423 when its
month is locked.
"""
from datetime import date
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.exceptions import NotFoundError
from plantops.models import (
    CreditAdjustment, CustomerReceipt, FinancePeriodLock, Invoice, ReceiptAllocation,
)
from plantops.models.user import User
from plantops.schemas.common import ListResponse, MessageResponse, PaginationParams, paginate
from plantops.schemas.finance import (
    AllocationCreate,
    AllocationResponse,
    CreditAdjustmentCreate,
    CreditAdjustmentResponse,
    CreditApplication,
    InvoiceAdjustmentResponse,
    InvoiceCreate,
    InvoiceResponse,
    InvoiceUpdate,
    MarkOverdueResponse,
    PeriodLockCreate,
    PeriodLockResponse,
    ReceiptCreate,
    ReceiptResponse,
    ShortCloseRequest,
)
from plantops.services import finance_service, receivables_service

router = APIRouter(prefix="/finance", tags=["Finance"])


# ============================================================================
# Invoices
# ============================================================================

@router.get("/invoices", response_model=ListResponse[InvoiceResponse])
async def list_invoices(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    customer_id: Optional[int] = None,
    status_filter: Optional[str] = None,
):
    query = db.query(Invoice)
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if status_filter:
        query = query.filter(Invoice.status == status_filter)
    total = query.count()
    rows = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()) \
        .offset(pagination.offset).limit(pagination.limit).all()
    return paginate(rows, total, pagination)


@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    payload: InvoiceCreate,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    data = payload.model_dump()
    invoice = finance_service.create_invoice(db, data, user_id=current_user.id)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return finance_service.get_invoice(db, invoice_id)


@router.patch("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    invoice = finance_service.get_invoice(db, invoice_id)
    finance_service.update_invoice(db, invoice, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(invoice)
    return invoice


@router.delete("/invoices/{invoice_id}", response_model=MessageResponse)
async def delete_invoice(
    invoice_id: int,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    invoice = finance_service.get_invoice(db, invoice_id)
    number = invoice.invoice_number
    finance_service.delete_invoice(db, invoice)
    db.commit()
    return MessageResponse(message=f"Invoice {number} deleted")


@router.post("/invoices/{invoice_id}/issue", response_model=InvoiceResponse)
async def issue_invoice(
    invoice_id: int,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    invoice = finance_service.get_invoice(db, invoice_id)
    finance_service.issue_invoice(db, invoice, user_id=current_user.id)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.post("/invoices/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: int,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    invoice = finance_service.get_invoice(db, invoice_id)
    finance_service.cancel_invoice(db, invoice, user_id=current_user.id)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.post("/invoices/{invoice_id}/short-close", response_model=InvoiceResponse)
async def short_close_invoice(
    invoice_id: int,
    payload: ShortCloseRequest,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    invoice = finance_service.get_invoice(db, invoice_id)
    finance_service.short_close(db, invoice, payload.reason, user_id=current_user.id)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.post("/invoices/mark-overdue", response_model=MarkOverdueResponse)
async def mark_overdue(
    as_of: Optional[date] = None,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    count = finance_service.mark_overdue(db, today=as_of)
    db.commit()
    return MarkOverdueResponse(marked_overdue=count)


# ============================================================================
# Receipts
# ============================================================================

@router.get("/receipts", response_model=ListResponse[ReceiptResponse])
async def list_receipts(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    customer_id: Optional[int] = None,
):
    query = db.query(CustomerReceipt)
    if customer_id:
        query = query.filter(CustomerReceipt.customer_id == customer_id)
    total = query.count()
    rows = query.order_by(CustomerReceipt.receipt_date.desc(), CustomerReceipt.id.desc()) \
        .offset(pagination.offset).limit(pagination.limit).all()
    return paginate(rows, total, pagination)


@router.post("/receipts", response_model=ReceiptResponse, status_code=status.HTTP_201_CREATED)
async def record_receipt(
    payload: ReceiptCreate,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    receipt = receivables_service.record_receipt(db, payload.model_dump(), user_id=current_user.id)
    db.commit()
    db.refresh(receipt)
    return receipt


@router.get("/receipts/{receipt_id}", response_model=ReceiptResponse)
async def get_receipt(
    receipt_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return receivables_service.get_receipt(db, receipt_id)


@router.delete("/receipts/{receipt_id}", response_model=MessageResponse)
async def delete_receipt(
    receipt_id: int,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    receipt = receivables_service.get_receipt(db, receipt_id)
    number = receipt.receipt_number
    receivables_service.delete_receipt(db, receipt)
    db.commit()
    return MessageResponse(message=f"Receipt {number} deleted")


@router.post("/receipts/{receipt_id}/allocations", response_model=AllocationResponse,
             status_code=status.HTTP_201_CREATED)
async def allocate_receipt(
    receipt_id: int,
    payload: AllocationCreate,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    receipt = receivables_service.get_receipt(db, receipt_id)
    invoice = finance_service.get_invoice(db, payload.invoice_id)
    allocation = receivables_service.allocate_receipt(db, receipt, invoice, payload.amount,
                                                      user_id=current_user.id)
    db.commit()
    db.refresh(allocation)
    return allocation


@router.delete("/allocations/{allocation_id}", response_model=MessageResponse)
async def remove_allocation(
    allocation_id: int,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    allocation = db.query(ReceiptAllocation).filter(ReceiptAllocation.id == allocation_id).first()
    if not allocation:
        raise NotFoundError("ReceiptAllocation", allocation_id)
    receivables_service.remove_allocation(db, allocation, user_id=current_user.id)
    db.commit()
    return MessageResponse(message="Allocation removed")


# ============================================================================
# Credit adjustments
# ============================================================================

@router.get("/adjustments", response_model=List[CreditAdjustmentResponse])
async def list_adjustments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    customer_id: Optional[int] = None,
):
    query = db.query(CreditAdjustment)
    if customer_id:
        query = query.filter(CreditAdjustment.customer_id == customer_id)
    return query.order_by(CreditAdjustment.id.desc()).all()


@router.post("/adjustments", response_model=CreditAdjustmentResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(
    payload: CreditAdjustmentCreate,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    adjustment = receivables_service.create_credit_adjustment(db, payload.model_dump(), user_id=current_user.id)
    db.commit()
    db.refresh(adjustment)
    return adjustment


@router.post("/adjustments/{adjustment_id}/apply", response_model=InvoiceAdjustmentResponse,
             status_code=status.HTTP_201_CREATED)
async def apply_adjustment(
    adjustment_id: int,
    payload: CreditApplication,
    current_user: User = Depends(require_permission("finance:write")),
    db: Session = Depends(get_db),
):
    adjustment = db.query(CreditAdjustment).filter(CreditAdjustment.id == adjustment_id).first()
    if not adjustment:
        raise NotFoundError("CreditAdjustment", adjustment_id)
    invoice = finance_service.get_invoice(db, payload.invoice_id)
    application = receivables_service.apply_credit_adjustment(db, adjustment, invoice, payload.amount,
                                                               user_id=current_user.id)
    db.commit()
    db.refresh(application)
    return application


# ============================================================================
# Period locks
# ============================================================================

@router.get("/period-locks", response_model=List[PeriodLockResponse])
async def list_period_locks(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return db.query(FinancePeriodLock).order_by(FinancePeriodLock.year, FinancePeriodLock.month).all()


@router.post("/period-locks", response_model=PeriodLockResponse, status_code=status.HTTP_201_CREATED)
async def lock_period(
    payload: PeriodLockCreate,
    current_user: User = Depends(require_permission("finance:lock")),
    db: Session = Depends(get_db),
):
    lock = finance_service.lock_period(db, payload.year, payload.month, reason=payload.reason,
                                       user_id=current_user.id)
    db.commit()
    db.refresh(lock)
    return lock


@router.delete("/period-locks/{year}/{month}", response_model=MessageResponse)
async def unlock_period(
    year: int,
    month: int,
    current_user: User = Depends(require_permission("finance:lock")),
    db: Session = Depends(get_db),
):
    finance_service.unlock_period(db, year, month, user_id=current_user.id)
    db.commit()
    return MessageResponse(message=f"Period {year}-{month:02d} unlocked")
