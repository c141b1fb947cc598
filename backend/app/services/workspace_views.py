"""Build API response models from workspace state."""

from dataclasses import asdict

from backend.app.core.config import settings
from backend.app.domain.billing.bill_draft import BillDraft
from backend.app.schemas.workspace import (
    ActionGatesResponse,
    DraftItemResponse,
    DraftResponse,
    HistoryRow,
    PaymentFormState,
    ProjectionResponse,
    SectionState,
    WorkspaceResponse,
)
from backend.app.services.customer_workspace import CustomerWorkspace


def projection_view(workspace: CustomerWorkspace) -> ProjectionResponse:
    projection = workspace.require_projection()
    gates = workspace.gates()
    return ProjectionResponse(
        customer=projection.customer,
        current_balance=projection.current_balance,
        balance_status=projection.balance_status,
        last_bill=projection.last_bill,
        last_payment=projection.last_payment,
        gates=ActionGatesResponse(**asdict(gates)),
        history=[HistoryRow(**row) for row in projection.history.rows(settings.currency_symbol)],
    )


def workspace_view(workspace: CustomerWorkspace) -> WorkspaceResponse:
    return WorkspaceResponse(
        workspace_id=workspace.workspace_id,
        customer_id=workspace.customer_id,
        generation=workspace.generation,
        draft_state=workspace.draft.state,
        projection=projection_view(workspace) if workspace.projection is not None else None,
    )


def sections_view(workspace: CustomerWorkspace) -> list[SectionState]:
    sections = workspace.gates().sections(loaded=workspace.projection is not None)
    return [SectionState(section=section, enabled=enabled) for section, enabled in sections.items()]


def draft_view(draft: BillDraft) -> DraftResponse:
    return DraftResponse(
        state=draft.state,
        tab=draft.tab,
        selected_plans=draft.ordered_selection(),
        fixed_amount=draft.fixed_amount,
        period_start=draft.period_start,
        period_end=draft.period_end,
        edit_mode=draft.edit_mode,
        items=[
            DraftItemResponse(
                position=position,
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_amount=item.total_amount,
                item_type=item.item_type,
                editable=item.editable,
                plan_id=item.plan_id,
            )
            for position, item in enumerate(draft.items)
        ],
        subtotal=draft.subtotal,
        additional_amount=draft.additional_amount,
        prev_balance=draft.prev_balance,
        grand_total=draft.grand_total,
    )


def payment_form_view(workspace: CustomerWorkspace) -> PaymentFormState:
    return PaymentFormState(**workspace.payment.snapshot())
