# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS (STAFF JOB ROLES)
# =========================================================
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_ACCOUNTANT = "accountant"
ROLE_SALES = "sales"
ROLE_PURCHASING = "purchasing"
ROLE_WAREHOUSE = "warehouse"


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views protect capabilities, not raw roles.
CAP_DOCUMENTS_VIEW = "documents.view"
CAP_DOCUMENTS_EDIT = "documents.edit"
CAP_DOCUMENTS_VALIDATE = "documents.validate"
CAP_DOCUMENTS_CONVERT = "documents.convert"

CAP_PAYMENTS_VIEW = "payments.view"
CAP_PAYMENTS_EDIT = "payments.edit"

CAP_BALANCES_VIEW = "balances.view"
CAP_STOCK_VIEW = "stock.view"

ALL_CAPABILITIES = {
    CAP_DOCUMENTS_VIEW,
    CAP_DOCUMENTS_EDIT,
    CAP_DOCUMENTS_VALIDATE,
    CAP_DOCUMENTS_CONVERT,
    CAP_PAYMENTS_VIEW,
    CAP_PAYMENTS_EDIT,
    CAP_BALANCES_VIEW,
    CAP_STOCK_VIEW,
}


# =========================================================
# ROLE → CAPABILITY MAP
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {*ALL_CAPABILITIES},
    ROLE_MANAGER: {*ALL_CAPABILITIES},
    ROLE_ACCOUNTANT: {
        CAP_DOCUMENTS_VIEW,
        CAP_DOCUMENTS_VALIDATE,
        CAP_DOCUMENTS_CONVERT,
        CAP_PAYMENTS_VIEW,
        CAP_PAYMENTS_EDIT,
        CAP_BALANCES_VIEW,
        CAP_STOCK_VIEW,
    },
    ROLE_SALES: {
        CAP_DOCUMENTS_VIEW,
        CAP_DOCUMENTS_EDIT,
        CAP_DOCUMENTS_VALIDATE,
        CAP_PAYMENTS_VIEW,
        CAP_BALANCES_VIEW,
    },
    ROLE_PURCHASING: {
        CAP_DOCUMENTS_VIEW,
        CAP_DOCUMENTS_EDIT,
        CAP_DOCUMENTS_VALIDATE,
        CAP_STOCK_VIEW,
    },
    ROLE_WAREHOUSE: {
        CAP_DOCUMENTS_VIEW,
        CAP_STOCK_VIEW,
    },
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def effective_capabilities_for(request, user) -> set[str]:
    if getattr(user, "is_superuser", False):
        return set(ALL_CAPABILITIES)
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


def get_request_tenant(request):
    """
    Tenant of the authenticated user.

    Identity is an external collaborator: the tenant carried by the user row
    is trusted verbatim.
    """
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return None
    return getattr(user, "tenant", None)


# =========================================================
# Permissions
# =========================================================
class HasTenant(BasePermission):
    """Authenticated user attached to an active tenant."""

    message = "User is not attached to an active tenant."

    def has_permission(self, request, view):
        tenant = get_request_tenant(request)
        return bool(tenant and tenant.is_active)


class HasCapability(BasePermission):
    """
    Require a capability.

    Usage:
        permission_classes = [IsAuthenticated, HasTenant, HasCapability]
        required_capability = CAP_PAYMENTS_EDIT
    or per HTTP method:
        required_capability = {"GET": CAP_PAYMENTS_VIEW, "POST": CAP_PAYMENTS_EDIT}
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_capability", None)
        if isinstance(required, dict):
            required = required.get(request.method)
        if not required:
            # deny-by-default: an unmapped method is not an open endpoint
            return False

        return required in effective_capabilities_for(request, user)
