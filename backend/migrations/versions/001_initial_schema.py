"""Initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-01-05

Creates master data, sales, shop floor, quality, external processing,
packing, dispatch, finance and audit tables with their unique and check
constraints.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# (table, column, unique)
# Partial unique indexes on QC gate records; final and in-process inspections repeat
GATE_UNIQUE_INDEXES = [
    ('uq_qc_first_piece_wo', ['work_order_id'],
     "qc_type = 'first_piece' AND production_batch_id IS NULL"),
    ('uq_qc_first_piece_batch', ['production_batch_id'],
     "qc_type = 'first_piece' AND production_batch_id IS NOT NULL"),
    ('uq_qc_incoming_lot', ['work_order_id', 'material_lot_id'],
     "qc_type = 'incoming' AND material_lot_id IS NOT NULL"),
]

INDEXES = [
    ('users', 'email', True),
    ('users', 'role', False),
    ('users', 'status', False),
    ('customers', 'code', True),
    ('customers', 'name', False),
    ('items', 'item_code', True),
    ('external_partners', 'name', True),
    ('sales_orders', 'so_number', True),
    ('sales_orders', 'customer_id', False),
    ('sales_orders', 'po_number', False),
    ('sales_orders', 'status', False),
    ('sales_orders', 'created_at', False),
    ('sales_order_lines', 'sales_order_id', False),
    ('sales_order_lines', 'item_code', False),
    ('sales_order_lines', 'status', False),
    ('sales_order_lines', 'work_order_id', False),
    ('work_orders', 'wo_number', True),
    ('work_orders', 'display_id', False),
    ('work_orders', 'sales_order_id', False),
    ('work_orders', 'customer_id', False),
    ('work_orders', 'item_code', False),
    ('work_orders', 'due_date', False),
    ('work_orders', 'status', False),
    ('work_orders', 'current_stage', False),
    ('work_orders', 'created_at', False),
    ('wo_stage_history', 'work_order_id', False),
    ('material_lots', 'lot_number', True),
    ('material_lots', 'heat_no', False),
    ('material_issues', 'material_lot_id', False),
    ('material_issues', 'work_order_id', False),
    ('production_batches', 'work_order_id', False),
    ('production_logs', 'work_order_id', False),
    ('production_logs', 'production_batch_id', False),
    ('production_logs', 'log_date', False),
    ('qc_records', 'qc_number', True),
    ('qc_records', 'work_order_id', False),
    ('qc_records', 'production_batch_id', False),
    ('qc_records', 'material_lot_id', False),
    ('qc_records', 'qc_type', False),
    ('ncrs', 'ncr_number', True),
    ('ncrs', 'work_order_id', False),
    ('ncrs', 'qc_record_id', False),
    ('ncrs', 'status', False),
    ('ncr_actions', 'ncr_id', False),
    ('external_movements', 'challan_number', True),
    ('external_movements', 'work_order_id', False),
    ('external_movements', 'production_batch_id', False),
    ('external_movements', 'partner_id', False),
    ('external_movements', 'expected_return_date', False),
    ('external_movements', 'status', False),
    ('material_receipts', 'receipt_number', True),
    ('material_receipts', 'external_movement_id', False),
    ('material_receipts', 'production_batch_id', False),
    ('dispatch_qc_batches', 'qc_batch_id', True),
    ('dispatch_qc_batches', 'work_order_id', False),
    ('dispatch_qc_batches', 'production_batch_id', False),
    ('dispatch_qc_batches', 'status', False),
    ('cartons', 'carton_number', True),
    ('cartons', 'work_order_id', False),
    ('cartons', 'production_batch_id', False),
    ('cartons', 'dispatch_qc_batch_id', False),
    ('cartons', 'status', False),
    ('shipments', 'shipment_number', True),
    ('shipments', 'sales_order_id', False),
    ('shipments', 'work_order_id', False),
    ('shipments', 'customer_id', False),
    ('shipments', 'status', False),
    ('dispatches', 'dispatch_number', True),
    ('dispatches', 'work_order_id', False),
    ('dispatches', 'production_batch_id', False),
    ('dispatches', 'carton_id', False),
    ('dispatches', 'shipment_id', False),
    ('dispatches', 'dispatched_at', False),
    ('invoices', 'invoice_number', True),
    ('invoices', 'customer_id', False),
    ('invoices', 'sales_order_id', False),
    ('invoices', 'work_order_id', False),
    ('invoices', 'invoice_date', False),
    ('invoices', 'due_date', False),
    ('invoices', 'status', False),
    ('invoice_items', 'invoice_id', False),
    ('invoice_items', 'dispatch_id', False),
    ('customer_receipts', 'receipt_number', True),
    ('customer_receipts', 'customer_id', False),
    ('customer_receipts', 'receipt_date', False),
    ('customer_receipts', 'status', False),
    ('receipt_allocations', 'receipt_id', False),
    ('receipt_allocations', 'invoice_id', False),
    ('credit_adjustments', 'adjustment_number', True),
    ('credit_adjustments', 'customer_id', False),
    ('credit_adjustments', 'status', False),
    ('invoice_adjustments', 'adjustment_id', False),
    ('invoice_adjustments', 'invoice_id', False),
    ('audit_logs', 'table_name', False),
    ('audit_logs', 'record_id', False),
    ('audit_logs', 'action', False),
    ('audit_logs', 'changed_at', False),
    ('notifications', 'user_id', False),
    ('notifications', 'notification_type', False),
    ('notifications', 'created_at', False),
]


def _now():
    return sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP'))


def _updated():
    return sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP'))


def _qc_gate(prefix: str, default: str):
    return [
        sa.Column(f'{prefix}_status', sa.String(length=20), nullable=False, server_default=default),
        sa.Column(f'{prefix}_approved_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column(f'{prefix}_approved_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema - create all tables."""
    # ------------------------------------------------------------------
    # Users & master data
    # ------------------------------------------------------------------
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='viewer'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        _now(),
        _updated(),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=30), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('contact_name', sa.String(length=120), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=40), nullable=True),
        sa.Column('billing_address', sa.Text(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('payment_terms_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _now(),
        _updated(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_code', sa.String(length=60), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('drawing_number', sa.String(length=60), nullable=True),
        sa.Column('material_size_mm', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('material_shape', sa.String(length=30), nullable=True),
        sa.Column('alloy', sa.String(length=60), nullable=True),
        sa.Column('gross_weight_per_pc_g', sa.Numeric(precision=12, scale=3), nullable=True),
        sa.Column('net_weight_per_pc_g', sa.Numeric(precision=12, scale=3), nullable=True),
        sa.Column('cycle_time_seconds', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _now(),
        _updated(),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('external_partners',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('process_types', sa.String(length=255), nullable=True),
        sa.Column('contact_name', sa.String(length=120), nullable=True),
        sa.Column('phone', sa.String(length=40), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _now(),
        sa.PrimaryKeyConstraint('id')
    )

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------
    op.create_table('sales_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('so_number', sa.String(length=30), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('po_number', sa.String(length=60), nullable=True),
        sa.Column('po_date', sa.Date(), nullable=True),
        sa.Column('expected_delivery_date', sa.Date(), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('payment_terms_days', sa.Integer(), nullable=True),
        sa.Column('incoterm', sa.String(length=20), nullable=True),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('material_rod_forging_size_mm', sa.String(length=60), nullable=True),
        sa.Column('alloy', sa.String(length=60), nullable=True),
        sa.Column('gross_weight_per_pc_g', sa.Numeric(precision=12, scale=3), nullable=True),
        sa.Column('net_weight_per_pc_g', sa.Numeric(precision=12, scale=3), nullable=True),
        sa.Column('cycle_time_seconds', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(), nullable=True),
        _now(),
        _updated(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('sales_order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('item_code', sa.String(length=60), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_per_pc', sa.Numeric(precision=14, scale=4), nullable=False, server_default='0'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('material_rod_forging_size_mm', sa.String(length=60), nullable=True),
        sa.Column('alloy', sa.String(length=60), nullable=True),
        sa.Column('gross_weight_per_pc_g', sa.Numeric(precision=12, scale=3), nullable=True),
        sa.Column('net_weight_per_pc_g', sa.Numeric(precision=12, scale=3), nullable=True),
        sa.Column('cycle_time_seconds', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('work_order_id', sa.Integer(), nullable=True),
        _now(),
        _updated(),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('sales_order_id', 'line_number', name='uq_so_line_number'),
        sa.CheckConstraint('quantity > 0', name='ck_so_line_quantity_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    # ------------------------------------------------------------------
    # Work orders & materials
    # ------------------------------------------------------------------
    op.create_table('work_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('wo_number', sa.String(length=30), nullable=False),
        sa.Column('display_id', sa.String(length=30), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=True),
        sa.Column('sales_order_line_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_po', sa.String(length=60), nullable=True),
        sa.Column('item_code', sa.String(length=60), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('current_stage', sa.String(length=20), nullable=False, server_default='goods_in'),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('material_size_mm', sa.String(length=60), nullable=True),
        sa.Column('alloy', sa.String(length=60), nullable=True),
        sa.Column('gross_weight_per_pc_g', sa.Numeric(precision=12, scale=3), nullable=True),
        sa.Column('net_weight_per_pc_g', sa.Numeric(precision=12, scale=3), nullable=True),
        sa.Column('cycle_time_seconds', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('financial_snapshot', sa.JSON(), nullable=True),
        *_qc_gate('qc_material', 'not_started'),
        *_qc_gate('qc_first_piece', 'not_started'),
        *_qc_gate('qc_final', 'not_started'),
        sa.Column('qc_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('production_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('qty_completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qty_rejected', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qty_dispatched', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qty_external_wip', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completion_pct', sa.Numeric(precision=6, scale=2), nullable=False, server_default='0'),
        sa.Column('production_complete', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _now(),
        _updated(),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id']),
        sa.ForeignKeyConstraint(['sales_order_line_id'], ['sales_order_lines.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.UniqueConstraint('sales_order_line_id', name='uq_wo_sales_order_line'),
        sa.CheckConstraint('quantity > 0', name='ck_wo_quantity_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('wo_stage_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('event', sa.String(length=30), nullable=False, server_default='stage_change'),
        sa.Column('from_stage', sa.String(length=30), nullable=True),
        sa.Column('to_stage', sa.String(length=30), nullable=True),
        sa.Column('from_status', sa.String(length=20), nullable=True),
        sa.Column('to_status', sa.String(length=20), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('material_lots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('lot_number', sa.String(length=30), nullable=False),
        sa.Column('heat_no', sa.String(length=60), nullable=True),
        sa.Column('alloy', sa.String(length=60), nullable=True),
        sa.Column('size_mm', sa.String(length=60), nullable=True),
        sa.Column('supplier', sa.String(length=200), nullable=True),
        sa.Column('supplier_invoice', sa.String(length=60), nullable=True),
        sa.Column('quantity_received_kg', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('quantity_issued_kg', sa.Numeric(precision=12, scale=3), nullable=False, server_default='0'),
        sa.Column('qc_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('received_date', sa.Date(), nullable=False),
        sa.Column('received_by', sa.Integer(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['received_by'], ['users.id']),
        sa.CheckConstraint('quantity_received_kg > 0', name='ck_lot_received_positive'),
        sa.CheckConstraint('quantity_issued_kg >= 0', name='ck_lot_issued_non_negative'),
        sa.CheckConstraint('quantity_issued_kg <= quantity_received_kg', name='ck_lot_issued_le_received'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('material_issues',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('material_lot_id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('quantity_kg', sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('issued_by', sa.Integer(), nullable=True),
        sa.Column('issued_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['material_lot_id'], ['material_lots.id']),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['issued_by'], ['users.id']),
        sa.CheckConstraint('quantity_kg > 0', name='ck_issue_quantity_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    # ------------------------------------------------------------------
    # Production
    # ------------------------------------------------------------------
    op.create_table('production_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('batch_number', sa.Integer(), nullable=False),
        sa.Column('trigger_reason', sa.String(length=20), nullable=False, server_default='initial'),
        sa.Column('previous_batch_id', sa.Integer(), nullable=True),
        sa.Column('batch_quantity', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('stage', sa.String(length=30), nullable=False, server_default='production'),
        sa.Column('stage_entered_at', sa.DateTime(), nullable=True),
        sa.Column('location_type', sa.String(length=20), nullable=False, server_default='factory'),
        sa.Column('location_ref', sa.String(length=200), nullable=True),
        sa.Column('current_process', sa.String(length=60), nullable=True),
        *_qc_gate('qc_material', 'pending'),
        *_qc_gate('qc_first_piece', 'pending'),
        *_qc_gate('qc_final', 'pending'),
        sa.Column('production_allowed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('dispatch_allowed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('produced_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qc_approved_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qc_rejected_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qc_pending_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('dispatched_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('production_complete', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('production_completed_at', sa.DateTime(), nullable=True),
        sa.Column('production_completed_by', sa.Integer(), nullable=True),
        _now(),
        _updated(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['previous_batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['production_completed_by'], ['users.id']),
        sa.UniqueConstraint('work_order_id', 'batch_number', name='uq_batch_number_per_wo'),
        sa.CheckConstraint(
            "trigger_reason IN ('initial', 'post_dispatch', 'gap_restart')",
            name='ck_batch_trigger_reason',
        ),
        sa.CheckConstraint('produced_qty >= 0', name='ck_batch_produced_non_negative'),
        sa.CheckConstraint('qc_approved_qty >= 0', name='ck_batch_approved_non_negative'),
        sa.CheckConstraint('qc_rejected_qty >= 0', name='ck_batch_rejected_non_negative'),
        sa.CheckConstraint('dispatched_qty >= 0', name='ck_batch_dispatched_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('production_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('production_batch_id', sa.Integer(), nullable=False),
        sa.Column('log_date', sa.Date(), nullable=False),
        sa.Column('shift', sa.String(length=10), nullable=True),
        sa.Column('machine', sa.String(length=60), nullable=True),
        sa.Column('operator', sa.String(length=120), nullable=True),
        sa.Column('operation', sa.String(length=60), nullable=True),
        sa.Column('ok_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rejection_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rework_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('downtime_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['production_batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.CheckConstraint('ok_quantity >= 0', name='ck_log_ok_non_negative'),
        sa.CheckConstraint('rejection_quantity >= 0', name='ck_log_rejection_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )

    # ------------------------------------------------------------------
    # Quality
    # ------------------------------------------------------------------
    op.create_table('qc_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('qc_number', sa.String(length=30), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('production_batch_id', sa.Integer(), nullable=True),
        sa.Column('material_lot_id', sa.Integer(), nullable=True),
        sa.Column('qc_type', sa.String(length=20), nullable=False),
        sa.Column('result', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('inspected_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rejected_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('measurements', sa.Text(), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('inspected_by', sa.Integer(), nullable=True),
        sa.Column('inspected_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['production_batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['material_lot_id'], ['material_lots.id']),
        sa.ForeignKeyConstraint(['inspected_by'], ['users.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id']),
        sa.CheckConstraint(
            "qc_type IN ('incoming', 'first_piece', 'in_process', 'final')",
            name='ck_qc_type',
        ),
        sa.CheckConstraint('inspected_quantity >= 0', name='ck_qc_inspected_non_negative'),
        sa.CheckConstraint('rejected_quantity >= 0', name='ck_qc_rejected_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('ncrs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ncr_number', sa.String(length=30), nullable=False),
        sa.Column('ncr_type', sa.String(length=20), nullable=False, server_default='INTERNAL'),
        sa.Column('work_order_id', sa.Integer(), nullable=True),
        sa.Column('qc_record_id', sa.Integer(), nullable=True),
        sa.Column('material_lot_id', sa.Integer(), nullable=True),
        sa.Column('quantity_affected', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit', sa.String(length=10), nullable=False, server_default='pcs'),
        sa.Column('issue_description', sa.Text(), nullable=False),
        sa.Column('root_cause', sa.Text(), nullable=True),
        sa.Column('disposition', sa.String(length=30), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='OPEN'),
        sa.Column('raised_by', sa.Integer(), nullable=True),
        sa.Column('closed_by', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        _now(),
        _updated(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['qc_record_id'], ['qc_records.id']),
        sa.ForeignKeyConstraint(['material_lot_id'], ['material_lots.id']),
        sa.ForeignKeyConstraint(['raised_by'], ['users.id']),
        sa.ForeignKeyConstraint(['closed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('ncr_actions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ncr_id', sa.Integer(), nullable=False),
        sa.Column('action_type', sa.String(length=20), nullable=False, server_default='CORRECTIVE'),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('verified_by', sa.Integer(), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['ncr_id'], ['ncrs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id']),
        sa.ForeignKeyConstraint(['verified_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    # ------------------------------------------------------------------
    # External processing
    # ------------------------------------------------------------------
    op.create_table('external_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('challan_number', sa.String(length=30), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('production_batch_id', sa.Integer(), nullable=False),
        sa.Column('partner_id', sa.Integer(), nullable=False),
        sa.Column('parent_movement_id', sa.Integer(), nullable=True),
        sa.Column('process_type', sa.String(length=60), nullable=False),
        sa.Column('quantity_sent', sa.Integer(), nullable=False),
        sa.Column('quantity_returned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_rejected', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sent_date', sa.Date(), nullable=False),
        sa.Column('expected_return_date', sa.Date(), nullable=True),
        sa.Column('actual_return_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='sent'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _now(),
        _updated(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['production_batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['partner_id'], ['external_partners.id']),
        sa.ForeignKeyConstraint(['parent_movement_id'], ['external_movements.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.CheckConstraint('quantity_sent > 0', name='ck_move_sent_positive'),
        sa.CheckConstraint('quantity_returned >= 0', name='ck_move_returned_non_negative'),
        sa.CheckConstraint('quantity_rejected >= 0', name='ck_move_rejected_non_negative'),
        sa.CheckConstraint('quantity_returned + quantity_rejected <= quantity_sent', name='ck_move_back_le_sent'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('material_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('receipt_number', sa.String(length=30), nullable=False),
        sa.Column('receipt_type', sa.String(length=30), nullable=False),
        sa.Column('external_movement_id', sa.Integer(), nullable=True),
        sa.Column('production_batch_id', sa.Integer(), nullable=True),
        sa.Column('to_partner_id', sa.Integer(), nullable=True),
        sa.Column('quantity_received', sa.Integer(), nullable=False),
        sa.Column('quantity_rejected', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_ok', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('receipt_date', sa.Date(), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('received_by', sa.Integer(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['external_movement_id'], ['external_movements.id']),
        sa.ForeignKeyConstraint(['production_batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['to_partner_id'], ['external_partners.id']),
        sa.ForeignKeyConstraint(['received_by'], ['users.id']),
        sa.CheckConstraint('quantity_received > 0', name='ck_receipt_received_positive'),
        sa.CheckConstraint('quantity_rejected >= 0', name='ck_receipt_rejected_non_negative'),
        sa.CheckConstraint('quantity_rejected <= quantity_received', name='ck_receipt_rejected_le_received'),
        sa.PrimaryKeyConstraint('id')
    )

    # ------------------------------------------------------------------
    # Packing & dispatch
    # ------------------------------------------------------------------
    op.create_table('dispatch_qc_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('qc_batch_id', sa.String(length=20), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('production_batch_id', sa.Integer(), nullable=False),
        sa.Column('qc_approved_quantity', sa.Integer(), nullable=False),
        sa.Column('consumed_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='approved'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        _now(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['production_batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id']),
        sa.CheckConstraint('qc_approved_quantity > 0', name='ck_dqc_approved_positive'),
        sa.CheckConstraint('consumed_quantity >= 0', name='ck_dqc_consumed_non_negative'),
        sa.CheckConstraint('consumed_quantity <= qc_approved_quantity', name='ck_dqc_consumed_le_approved'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('cartons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('carton_number', sa.String(length=30), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('production_batch_id', sa.Integer(), nullable=False),
        sa.Column('dispatch_qc_batch_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('gross_weight_kg', sa.Numeric(precision=10, scale=3), nullable=True),
        sa.Column('net_weight_kg', sa.Numeric(precision=10, scale=3), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='packed'),
        sa.Column('packed_by', sa.Integer(), nullable=True),
        sa.Column('packed_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        _updated(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['production_batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['dispatch_qc_batch_id'], ['dispatch_qc_batches.id']),
        sa.ForeignKeyConstraint(['packed_by'], ['users.id']),
        sa.CheckConstraint('quantity > 0', name='ck_carton_quantity_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('shipments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shipment_number', sa.String(length=30), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=True),
        sa.Column('work_order_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('batch_id', sa.Integer(), nullable=True),
        sa.Column('carrier', sa.String(length=100), nullable=True),
        sa.Column('tracking_number', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('shipped_at', sa.DateTime(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id']),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('dispatches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('dispatch_number', sa.String(length=30), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('production_batch_id', sa.Integer(), nullable=False),
        sa.Column('carton_id', sa.Integer(), nullable=True),
        sa.Column('shipment_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('dispatched_by', sa.Integer(), nullable=True),
        sa.Column('dispatched_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['production_batch_id'], ['production_batches.id']),
        sa.ForeignKeyConstraint(['carton_id'], ['cartons.id']),
        sa.ForeignKeyConstraint(['shipment_id'], ['shipments.id']),
        sa.ForeignKeyConstraint(['dispatched_by'], ['users.id']),
        sa.CheckConstraint('quantity > 0', name='ck_dispatch_quantity_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    # ------------------------------------------------------------------
    # Finance
    # ------------------------------------------------------------------
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=30), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), nullable=True),
        sa.Column('work_order_id', sa.Integer(), nullable=True),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('gst_percent', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
        sa.Column('subtotal', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('gst_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('adjustment_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('balance_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('short_closed_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('short_close_reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('issued_at', sa.DateTime(), nullable=True),
        _now(),
        _updated(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['sales_order_id'], ['sales_orders.id']),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.CheckConstraint('paid_amount >= 0', name='ck_invoice_paid_non_negative'),
        sa.CheckConstraint('adjustment_amount >= 0', name='ck_invoice_adjustment_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('dispatch_id', sa.Integer(), nullable=True),
        sa.Column('item_code', sa.String(length=60), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('rate', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['dispatch_id'], ['dispatches.id']),
        sa.CheckConstraint('quantity > 0', name='ck_invoice_item_quantity_positive'),
        sa.CheckConstraint('rate >= 0', name='ck_invoice_item_rate_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('customer_receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('receipt_number', sa.String(length=30), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('receipt_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('allocated_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('payment_mode', sa.String(length=30), nullable=True),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='pending'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.CheckConstraint('amount > 0', name='ck_receipt_amount_positive'),
        sa.CheckConstraint('allocated_amount >= 0', name='ck_receipt_allocated_non_negative'),
        sa.CheckConstraint('allocated_amount <= amount', name='ck_receipt_allocated_le_amount'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('receipt_allocations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('receipt_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('allocated_by', sa.Integer(), nullable=True),
        sa.Column('allocated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['receipt_id'], ['customer_receipts.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['allocated_by'], ['users.id']),
        sa.UniqueConstraint('receipt_id', 'invoice_id', name='uq_allocation_receipt_invoice'),
        sa.CheckConstraint('amount > 0', name='ck_allocation_amount_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('credit_adjustments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('adjustment_number', sa.String(length=30), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('adjustment_type', sa.String(length=30), nullable=False),
        sa.Column('ncr_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('remaining_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['ncr_id'], ['ncrs.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.CheckConstraint('amount > 0', name='ck_adjustment_amount_positive'),
        sa.CheckConstraint('remaining_amount >= 0', name='ck_adjustment_remaining_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('invoice_adjustments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('adjustment_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('applied_by', sa.Integer(), nullable=True),
        sa.Column('applied_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['adjustment_id'], ['credit_adjustments.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['applied_by'], ['users.id']),
        sa.CheckConstraint('amount > 0', name='ck_invoice_adjustment_amount_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('finance_period_locks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('locked_by', sa.Integer(), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['locked_by'], ['users.id']),
        sa.UniqueConstraint('year', 'month', name='uq_period_lock_year_month'),
        sa.CheckConstraint('month BETWEEN 1 AND 12', name='ck_period_lock_month'),
        sa.PrimaryKeyConstraint('id')
    )

    # ------------------------------------------------------------------
    # Audit & notifications
    # ------------------------------------------------------------------
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('table_name', sa.String(length=60), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=40), nullable=False),
        sa.Column('old_data', sa.JSON(), nullable=True),
        sa.Column('new_data', sa.JSON(), nullable=True),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('notification_type', sa.String(length=40), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(length=40), nullable=True),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        _now(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    for table, column, unique in INDEXES:
        op.create_index(op.f(f'ix_{table}_{column}'), table, [column], unique=unique)

    for name, columns, where in GATE_UNIQUE_INDEXES:
        op.create_index(
            name, 'qc_records', columns, unique=True,
            sqlite_where=sa.text(where), postgresql_where=sa.text(where),
        )


def downgrade() -> None:
    """Downgrade schema - drop all tables."""
    for name, _, _ in reversed(GATE_UNIQUE_INDEXES):
        op.drop_index(name, table_name='qc_records')

    for table, column, _ in reversed(INDEXES):
        op.drop_index(op.f(f'ix_{table}_{column}'), table_name=table)

    for table in (
        'notifications', 'audit_logs',
        'finance_period_locks', 'invoice_adjustments', 'credit_adjustments',
        'receipt_allocations', 'customer_receipts', 'invoice_items', 'invoices',
        'dispatches', 'shipments', 'cartons', 'dispatch_qc_batches',
        'material_receipts', 'external_movements',
        'ncr_actions', 'ncrs', 'qc_records',
        'production_logs', 'production_batches',
        'material_issues', 'material_lots',
        'wo_stage_history', 'work_orders',
        'sales_order_lines', 'sales_orders',
        'external_partners', 'items', 'customers', 'users',
    ):
        op.drop_table(table)
