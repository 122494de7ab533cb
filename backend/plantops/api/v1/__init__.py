"""
API v1 Router - PlantOps
"""
from fastapi import APIRouter
from plantops.api.v1.endpoints import (
    audit,
    auth,
    customers,
    dispatch,
    external,
    finance,
    items,
    materials,
    ncr,
    notifications,
    packing,
    partners,
    production,
    qc,
    sales_orders,
    users,
    work_orders,
)

router = APIRouter()

# Authentication & staff
router.include_router(auth.router)
router.include_router(users.router)

# Master data
router.include_router(customers.router)
router.include_router(items.router)
router.include_router(partners.router)

# Sales
router.include_router(sales_orders.router)

# Shop floor
router.include_router(work_orders.router)
router.include_router(materials.router)
router.include_router(production.router)
router.include_router(qc.router)
router.include_router(ncr.router)

# External processing, packing & dispatch
router.include_router(external.router)
router.include_router(packing.router)
router.include_router(dispatch.router)

# Finance
router.include_router(finance.router)

# Audit & notifications
router.include_router(audit.router)
router.include_router(notifications.router)
