"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    workspaces, payments, adjustments,
    bill_draft, history, pending_charges, audit
)

router = APIRouter()

# Workspace lifecycle
router.include_router(workspaces.router)

# Collect payment
router.include_router(payments.router)

# Adjust balance and add-on bill
router.include_router(adjustments.router)

# Renew (bill draft) and catalog plans
router.include_router(bill_draft.router)

# Balance history
router.include_router(history.router)

# Pending charges
router.include_router(pending_charges.router)

# Audit trail
router.include_router(audit.router)
