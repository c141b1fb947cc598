"""
Pending Charge API Endpoints.

Charges parked for the customer's next invoice. They do not change the
balance, so no ledger reload follows.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from backend.app.core.dependencies import get_operator, get_workspace
from backend.app.db.session import get_db
from backend.app.schemas.ledger import PendingCharge, PendingChargeSummary
from backend.app.schemas.workspace import PendingChargeInput
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.customer_workspace import CustomerWorkspace

router = APIRouter(prefix="/workspaces/{workspace_id}/pending-charges", tags=["Pending Charges"])


@router.get("", response_model=PendingChargeSummary)
async def list_pending_charges(workspace: CustomerWorkspace = Depends(get_workspace)):
    """Open charges and their total."""
    return await workspace.pending_charges()


@router.post("", response_model=PendingCharge, status_code=status.HTTP_201_CREATED)
async def add_pending_charge(
    body: PendingChargeInput,
    workspace: CustomerWorkspace = Depends(get_workspace),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    charge = await workspace.add_pending_charge(body.description, body.amount, body.charge_type)

    await log_event(
        db=db,
        action=AuditAction.PENDING_CHARGE_ADDED,
        customer_id=workspace.customer_id,
        operator=operator,
        metadata={
            "charge_id": charge.id,
            "charge_type": charge.charge_type.value,
            "amount": str(charge.amount)
        }
    )

    return charge


@router.put("/{charge_id}", response_model=PendingCharge)
async def update_pending_charge(
    body: PendingChargeInput,
    charge_id: str = Path(..., description="Pending charge ID"),
    workspace: CustomerWorkspace = Depends(get_workspace),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    """Edit a charge that has not been applied to an invoice yet."""
    charge = await workspace.update_pending_charge(
        charge_id,
        description=body.description,
        amount=body.amount,
        charge_type=body.charge_type,
    )

    await log_event(
        db=db,
        action=AuditAction.PENDING_CHARGE_UPDATED,
        customer_id=workspace.customer_id,
        operator=operator,
        metadata={"charge_id": charge.id, "amount": str(charge.amount)}
    )

    return charge


@router.delete("/{charge_id}", response_model=PendingCharge)
async def remove_pending_charge(
    charge_id: str = Path(..., description="Pending charge ID"),
    workspace: CustomerWorkspace = Depends(get_workspace),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    charge = await workspace.remove_pending_charge(charge_id)

    await log_event(
        db=db,
        action=AuditAction.PENDING_CHARGE_REMOVED,
        customer_id=workspace.customer_id,
        operator=operator,
        metadata={"charge_id": charge.id, "amount": str(charge.amount)}
    )

    return charge
