"""
Renew / Bill Draft API Endpoints.

Drive the bill draft through open, stage, edit and submit. Every call
returns the full draft so the console can redraw the review table.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.core.dependencies import get_operator, get_workspace
from backend.app.db.session import get_db
from backend.app.models.ledger_enums import SubmitAction
from backend.app.schemas.ledger import Plan
from backend.app.schemas.workspace import (
    AdditionalAmountRequest,
    DraftItemEdit,
    DraftOpenRequest,
    DraftResponse,
    DraftStageRequest,
    DraftSubmissionResponse,
    DraftSubmitRequest,
    EditModeRequest,
    FixedAmountRequest,
    PeriodResponse,
    PeriodSuggestionRequest,
)
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.customer_workspace import CustomerWorkspace
from backend.app.services.workspace_views import draft_view, payment_form_view

router = APIRouter(prefix="/workspaces/{workspace_id}", tags=["Renew"])


@router.get("/plans", response_model=List[Plan])
async def list_active_plans(workspace: CustomerWorkspace = Depends(get_workspace)):
    """Active catalog plans the operator can pick from."""
    return await workspace.list_plans()


@router.get("/draft", response_model=DraftResponse)
async def get_draft(workspace: CustomerWorkspace = Depends(get_workspace)):
    return draft_view(workspace.draft)


@router.post("/draft/open", response_model=DraftResponse)
async def open_draft(body: DraftOpenRequest, workspace: CustomerWorkspace = Depends(get_workspace)):
    workspace.require_projection()
    workspace.draft.open(body.tab)
    return draft_view(workspace.draft)


@router.put("/draft/tab", response_model=DraftResponse)
async def select_tab(body: DraftOpenRequest, workspace: CustomerWorkspace = Depends(get_workspace)):
    workspace.draft.select_tab(body.tab)
    return draft_view(workspace.draft)


@router.post("/draft/plans/{plan_id}", response_model=DraftResponse)
async def toggle_plan(
    plan_id: str = Path(..., description="Catalog plan ID"),
    workspace: CustomerWorkspace = Depends(get_workspace)
):
    """Select the plan, or unselect it when it is already selected."""
    await workspace.toggle_plan(plan_id)
    return draft_view(workspace.draft)


@router.put("/draft/fixed-amount", response_model=DraftResponse)
async def set_fixed_amount(body: FixedAmountRequest, workspace: CustomerWorkspace = Depends(get_workspace)):
    workspace.draft.set_fixed_amount(body.amount)
    return draft_view(workspace.draft)


@router.post("/draft/period", response_model=PeriodResponse)
async def suggest_period(body: PeriodSuggestionRequest, workspace: CustomerWorkspace = Depends(get_workspace)):
    """
    Suggest a billing period.

    ``last_invoice`` continues the day after the latest subscription invoice
    ends; ``today`` starts today. Both default to the customer's billing
    cycle length.
    """
    months = body.period_months if body.period_months is not None else workspace.default_period_months()
    period = workspace.suggest_period(body.mode, months)
    return PeriodResponse(period_start=period.start, period_end=period.end, period_months=months)


@router.post("/draft/stage", response_model=DraftResponse)
async def stage_draft(body: DraftStageRequest, workspace: CustomerWorkspace = Depends(get_workspace)):
    workspace.stage_draft(body.period_start, body.period_end)
    return draft_view(workspace.draft)


@router.put("/draft/edit-mode", response_model=DraftResponse)
async def set_edit_mode(body: EditModeRequest, workspace: CustomerWorkspace = Depends(get_workspace)):
    workspace.draft.set_edit_mode(body.enabled)
    return draft_view(workspace.draft)


@router.patch("/draft/items/{index}", response_model=DraftResponse)
async def edit_item(
    body: DraftItemEdit,
    index: int = Path(..., ge=0, description="Item position"),
    workspace: CustomerWorkspace = Depends(get_workspace)
):
    workspace.draft.edit_item(index, **body.model_dump(exclude_unset=True))
    return draft_view(workspace.draft)


@router.delete("/draft/items/{index}", response_model=DraftResponse)
async def remove_item(
    index: int = Path(..., ge=0, description="Item position"),
    workspace: CustomerWorkspace = Depends(get_workspace)
):
    workspace.draft.remove_item(index)
    return draft_view(workspace.draft)


@router.put("/draft/additional-amount", response_model=DraftResponse)
async def set_additional_amount(body: AdditionalAmountRequest, workspace: CustomerWorkspace = Depends(get_workspace)):
    workspace.draft.set_additional_amount(body.amount)
    return draft_view(workspace.draft)


@router.post("/draft/submit", response_model=DraftSubmissionResponse)
async def submit_draft(
    body: DraftSubmitRequest,
    workspace: CustomerWorkspace = Depends(get_workspace),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    """
    Generate the subscription invoice.

    GENERATE_AND_COLLECT prefills the collect-payment form with the invoice
    total; GENERATE_AND_VIEW also returns the stored invoice. A failed
    follow-up fetch is reported in ``follow_up_error`` while the invoice
    itself stays created.
    """
    customer_id = workspace.customer_id
    submission = await workspace.submit_draft(body.action)

    await log_event(
        db=db,
        action=AuditAction.INVOICE_GENERATED,
        customer_id=customer_id,
        operator=operator,
        metadata={
            "invoice_id": submission.invoice.id,
            "amount_total": str(submission.invoice.amount_total),
            "submit_action": submission.action.value
        }
    )

    response = DraftSubmissionResponse(
        invoice=submission.invoice,
        action=submission.action,
        applied=submission.applied,
        next_section=submission.next_section,
        preview=submission.preview,
        follow_up_error=submission.follow_up_error,
        reload_error=submission.reload_error,
    )
    if submission.applied and submission.action == SubmitAction.GENERATE_AND_COLLECT:
        response.payment_form = payment_form_view(workspace)
    return response


@router.delete("/draft", response_model=DraftResponse, status_code=status.HTTP_200_OK)
async def close_draft(workspace: CustomerWorkspace = Depends(get_workspace)):
    """Discard the draft and the plan selection."""
    workspace.draft.close()
    return draft_view(workspace.draft)
