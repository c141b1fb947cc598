"""
Audit Trail API Endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.db.session import get_db
from backend.app.schemas.workspace import AuditLogResponse
from backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("/customers/{customer_id}", response_model=List[AuditLogResponse])
async def customer_audit_trail(
    customer_id: str,
    action: Optional[str] = Query(None, description="Filter by action, e.g. PAYMENT_RECORDED"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """Operator actions on one customer's ledger, most recent first."""
    return await get_audit_trail(db, customer_id=customer_id, action=action, limit=limit)
