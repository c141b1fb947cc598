"""
Balance Adjustment and Add-on Bill API Endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from backend.app.core.dependencies import get_operator, get_workspace
from backend.app.db.session import get_db
from backend.app.schemas.workspace import (
    AddOnBilledResponse,
    AddOnInput,
    AddOnQuoteResponse,
    AdjustmentInput,
    AdjustmentQuoteResponse,
    AdjustmentRecordedResponse,
)
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.customer_workspace import CustomerWorkspace

router = APIRouter(prefix="/workspaces/{workspace_id}", tags=["Adjust Balance"])


@router.post("/adjustment/preview", response_model=AdjustmentQuoteResponse)
async def preview_adjustment(body: AdjustmentInput, workspace: CustomerWorkspace = Depends(get_workspace)):
    """Signed difference between the new and the current balance."""
    workspace.edit_adjustment(**body.model_dump())
    current_balance = workspace.current_balance
    quote = workspace.adjustment.quote(current_balance)
    return AdjustmentQuoteResponse(
        current_balance=current_balance,
        new_balance=quote.new_balance,
        delta=quote.delta,
        direction=quote.direction,
        amount=quote.amount,
    )


@router.post("/adjustment", response_model=AdjustmentRecordedResponse)
async def adjust_balance(
    body: AdjustmentInput,
    workspace: CustomerWorkspace = Depends(get_workspace),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    workspace.edit_adjustment(**body.model_dump())
    customer_id = workspace.customer_id
    result = await workspace.adjust_balance()
    entry = result.record

    await log_event(
        db=db,
        action=AuditAction.BALANCE_ADJUSTED,
        customer_id=customer_id,
        operator=operator,
        metadata={
            "transaction_id": entry.id,
            "direction": entry.direction.value,
            "amount": str(entry.amount),
            "reason": body.reason
        }
    )

    return AdjustmentRecordedResponse(transaction=entry, applied=result.applied, reload_error=result.reload_error)


@router.post("/add-on/preview", response_model=AddOnQuoteResponse, tags=["Add-on Bill"])
async def preview_add_on(body: AddOnInput, workspace: CustomerWorkspace = Depends(get_workspace)):
    workspace.edit_add_on(**body.model_dump())
    current_balance = workspace.current_balance
    quote = workspace.add_on.quote(current_balance)
    return AddOnQuoteResponse(
        current_balance=current_balance,
        item_name=quote.item_name,
        price=quote.price,
        projected_balance=quote.projected_balance,
    )


@router.post("/add-on", response_model=AddOnBilledResponse, tags=["Add-on Bill"])
async def bill_add_on(
    body: AddOnInput,
    workspace: CustomerWorkspace = Depends(get_workspace),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    """Charge an ad-hoc item; the ledger books it as a debit against a new invoice."""
    workspace.edit_add_on(**body.model_dump())
    customer_id = workspace.customer_id
    result = await workspace.bill_add_on()
    invoice = result.record

    await log_event(
        db=db,
        action=AuditAction.ADD_ON_BILLED,
        customer_id=customer_id,
        operator=operator,
        metadata={
            "invoice_id": invoice.id,
            "item_name": body.item_name,
            "amount": str(invoice.amount_total)
        }
    )

    return AddOnBilledResponse(invoice=invoice, applied=result.applied, reload_error=result.reload_error)
