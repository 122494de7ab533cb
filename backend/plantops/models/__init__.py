"""Database models"""
from plantops.models.user import User
from plantops.models.master_data import Customer, Item, ExternalPartner
from plantops.models.sales_order import SalesOrder, SalesOrderLine
from plantops.models.work_order import WorkOrder, WOStageHistory
from plantops.models.material import MaterialLot, MaterialIssue
from plantops.models.production import ProductionBatch, ProductionLog
from plantops.models.quality import QCRecord, NCR, NCRAction
from plantops.models.external import ExternalMovement, MaterialReceipt
from plantops.models.packing import DispatchQCBatch, Carton
from plantops.models.dispatch import Dispatch, Shipment
from plantops.models.finance import (
    Invoice, InvoiceItem, CustomerReceipt, ReceiptAllocation,
    CreditAdjustment, InvoiceAdjustment, FinancePeriodLock,
)
from plantops.models.audit import AuditLog, Notification

__all__ = [
    # Users
    "User",
    # Master data
    "Customer",
    "Item",
    "ExternalPartner",
    # Sales
    "SalesOrder",
    "SalesOrderLine",
    # Production
    "WorkOrder",
    "WOStageHistory",
    "ProductionBatch",
    "ProductionLog",
    # Materials
    "MaterialLot",
    "MaterialIssue",
    # Quality
    "QCRecord",
    "NCR",
    "NCRAction",
    # External processing
    "ExternalMovement",
    "MaterialReceipt",
    # Packing & dispatch
    "DispatchQCBatch",
    "Carton",
    "Dispatch",
    "Shipment",
    # Finance
    "Invoice",
    "InvoiceItem",
    "CustomerReceipt",
    "ReceiptAllocation",
    "CreditAdjustment",
    "InvoiceAdjustment",
    "FinancePeriodLock",
    # Audit
    "AuditLog",
    "Notification",
]
