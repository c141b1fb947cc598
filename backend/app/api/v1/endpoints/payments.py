"""
Collect Payment API Endpoints.

Live quote of the collect-payment form and submission of the payment.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from backend.app.core.dependencies import get_operator, get_workspace
from backend.app.db.session import get_db
from backend.app.schemas.workspace import (
    PaymentFormInput,
    PaymentFormState,
    PaymentQuoteResponse,
    PaymentRecordedResponse,
)
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.customer_workspace import CustomerWorkspace
from backend.app.services.workspace_views import payment_form_view

router = APIRouter(prefix="/workspaces/{workspace_id}/payment", tags=["Collect Payment"])


@router.get("", response_model=PaymentFormState)
async def get_payment_form(workspace: CustomerWorkspace = Depends(get_workspace)):
    """Current form values, including any prefill from Generate & Collect."""
    return payment_form_view(workspace)


@router.post("/preview", response_model=PaymentQuoteResponse)
async def preview_payment(body: PaymentFormInput, workspace: CustomerWorkspace = Depends(get_workspace)):
    """Update the form and show total payable and projected balance."""
    workspace.edit_payment(**body.model_dump(exclude_unset=True))
    current_balance = workspace.current_balance
    quote = workspace.payment.quote(current_balance)
    return PaymentQuoteResponse(
        current_balance=current_balance,
        amount=quote.amount,
        discount=quote.discount,
        total_payable=quote.total_payable,
        projected_balance=quote.projected_balance,
    )


@router.post("", response_model=PaymentRecordedResponse)
async def record_payment(
    body: PaymentFormInput,
    workspace: CustomerWorkspace = Depends(get_workspace),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    """
    Record the payment in the ledger.

    On success the form resets and the workspace reloads; on failure the
    form keeps what the operator typed.
    """
    workspace.edit_payment(**body.model_dump(exclude_unset=True))
    customer_id = workspace.customer_id
    result = await workspace.record_payment()
    payment = result.record

    await log_event(
        db=db,
        action=AuditAction.PAYMENT_RECORDED,
        customer_id=customer_id,
        operator=operator,
        metadata={
            "payment_id": payment.id,
            "amount": str(payment.amount),
            "discount": str(payment.discount),
            "invoice_id": payment.invoice_id
        }
    )

    return PaymentRecordedResponse(payment=payment, applied=result.applied, reload_error=result.reload_error)
