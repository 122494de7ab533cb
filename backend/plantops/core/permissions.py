"""
Role-based access policy.

Each write action names the roles allowed to perform it. Reads are open
to any authenticated, active user. Admins may do everything.
"""
from enum import Enum
from typing import Dict, FrozenSet


class Role(str, Enum):
    ADMIN = "admin"
    SALES = "sales"
    PRODUCTION = "production"
    QUALITY = "quality"
    STORES = "stores"
    LOGISTICS = "logistics"
    ACCOUNTS = "accounts"
    VIEWER = "viewer"


ALL_ROLES = frozenset(r.value for r in Role)


def _roles(*roles: Role) -> FrozenSet[str]:
    return frozenset({Role.ADMIN.value, *(r.value for r in roles)})


PERMISSIONS: Dict[str, FrozenSet[str]] = {
    "users:write": _roles(),
    "master_data:write": _roles(Role.SALES, Role.STORES),
    "sales_orders:write": _roles(Role.SALES),
    "sales_orders:approve": _roles(Role.SALES),
    "work_orders:write": _roles(Role.PRODUCTION),
    "work_orders:complete": _roles(Role.PRODUCTION, Role.QUALITY),
    "materials:write": _roles(Role.STORES),
    "production:write": _roles(Role.PRODUCTION),
    "qc:write": _roles(Role.QUALITY),
    "external:write": _roles(Role.PRODUCTION, Role.STORES, Role.LOGISTICS),
    "packing:write": _roles(Role.LOGISTICS, Role.PRODUCTION),
    "dispatch_qc:write": _roles(Role.QUALITY),
    "dispatch:write": _roles(Role.LOGISTICS),
    "ncr:write": _roles(Role.QUALITY, Role.PRODUCTION),
    "ncr:verify": _roles(Role.QUALITY),
    "ncr:close": _roles(Role.QUALITY),
    "finance:write": _roles(Role.ACCOUNTS),
    "finance:lock": _roles(),
}


def has_permission(role: str, action: str) -> bool:
    """Unknown actions are denied to everyone but admins."""
    if role == Role.ADMIN.value:
        return True
    return role in PERMISSIONS.get(action, frozenset())
