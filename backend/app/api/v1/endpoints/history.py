"""
Balance History API Endpoints.

Ledger entries newest first, summary stats, CSV download, entry preview
and deletion of the latest eligible entry.
"""

from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from backend.app.core.config import settings
from backend.app.core.dependencies import get_operator, get_workspace
from backend.app.db.session import get_db
from backend.app.domain.billing.transaction_history import DELETE_PAYMENT, PREVIEW_INVOICE
from backend.app.schemas.workspace import (
    DeletionResponse,
    EntryPreviewResponse,
    HistoryRow,
    HistoryStatsResponse,
)
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.customer_workspace import CustomerWorkspace

router = APIRouter(prefix="/workspaces/{workspace_id}/history", tags=["Balance History"])


@router.get("", response_model=List[HistoryRow])
async def list_history(workspace: CustomerWorkspace = Depends(get_workspace)):
    history = workspace.require_projection().history
    return [HistoryRow(**row) for row in history.rows(settings.currency_symbol)]


@router.get("/stats", response_model=HistoryStatsResponse)
async def history_stats(workspace: CustomerWorkspace = Depends(get_workspace)):
    stats = workspace.require_projection().history.stats()
    return HistoryStatsResponse(
        count=stats.count,
        counts_by_kind=stats.counts_by_kind,
        total_debits=stats.total_debits,
        total_credits=stats.total_credits,
    )


@router.get("/export")
async def export_history(workspace: CustomerWorkspace = Depends(get_workspace)):
    """Download the loaded history as CSV."""
    csv_text = workspace.require_projection().history.to_csv()
    filename = f"balance-history-{workspace.customer_id}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{transaction_id}/preview", response_model=EntryPreviewResponse)
async def preview_entry(
    transaction_id: str = Path(..., description="Ledger transaction ID"),
    workspace: CustomerWorkspace = Depends(get_workspace)
):
    """Fetch the invoice or payment a ledger entry points at."""
    target, document = await workspace.preview_entry(transaction_id)
    if target == PREVIEW_INVOICE:
        return EntryPreviewResponse(target=target, invoice=document)
    return EntryPreviewResponse(target=target, payment=document)


@router.delete("/{transaction_id}", response_model=DeletionResponse)
async def delete_entry(
    transaction_id: str = Path(..., description="Ledger transaction ID"),
    confirm: bool = Query(False, description="Must be true; deletion cannot be undone"),
    workspace: CustomerWorkspace = Depends(get_workspace),
    operator: Optional[str] = Depends(get_operator),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a ledger entry.

    Only the newest entry qualifies, never a subscription invoice and never
    anything older than the latest subscription invoice. Payments are
    deleted through the payments resource so the ledger can reverse them.
    """
    customer_id = workspace.customer_id
    result = await workspace.delete_entry(transaction_id, confirmed=confirm)

    await log_event(
        db=db,
        action=AuditAction.PAYMENT_DELETED if result.route == DELETE_PAYMENT else AuditAction.TRANSACTION_DELETED,
        customer_id=customer_id,
        operator=operator,
        metadata={
            "transaction_id": result.transaction_id,
            "remote_id": result.remote_id
        }
    )

    return DeletionResponse(
        transaction_id=result.transaction_id,
        route=result.route,
        remote_id=result.remote_id,
        applied=result.applied,
        reload_error=result.reload_error,
    )
