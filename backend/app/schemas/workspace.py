"""
Workspace Pydantic schemas.

Request and response models for the operator console API. Money inputs are
accepted raw (number or string) so the ledger calculators can report
missing and non-numeric values per field.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Union

from backend.app.models.ledger_enums import (
    BalanceStatus,
    BillItemType,
    ChargeType,
    Direction,
    DraftState,
    DraftTab,
    Section,
    SubmitAction,
    TransactionKind,
)
from backend.app.schemas.ledger import Customer, Invoice, Payment, Plan, Transaction

RawAmount = Union[Decimal, str, None]


# Requests

class WorkspaceOpen(BaseModel):
    """Schema for opening a workspace or switching its customer."""
    customer_id: str = Field(..., min_length=1, max_length=64)


class PaymentFormInput(BaseModel):
    amount: RawAmount = None
    discount: RawAmount = None
    method: Optional[str] = None
    recorded_at: Optional[datetime] = None
    comments: Optional[str] = Field(None, max_length=500)
    invoice_id: Optional[str] = None


class AdjustmentInput(BaseModel):
    new_balance: RawAmount = None
    reason: Optional[str] = Field(None, max_length=500)


class AddOnInput(BaseModel):
    item_name: Optional[str] = Field(None, max_length=200)
    price: RawAmount = None
    charge_type: Optional[ChargeType] = None


class PendingChargeInput(BaseModel):
    """New values for a pending charge; omitted fields keep their stored value on update."""
    charge_type: Optional[ChargeType] = None
    description: Optional[str] = Field(None, max_length=500)
    amount: RawAmount = None


class DraftOpenRequest(BaseModel):
    tab: DraftTab = DraftTab.PLANS


class FixedAmountRequest(BaseModel):
    amount: RawAmount = None


class PeriodSuggestionRequest(BaseModel):
    mode: Literal["last_invoice", "today"]
    period_months: Optional[int] = None


class DraftStageRequest(BaseModel):
    period_start: date
    period_end: date


class EditModeRequest(BaseModel):
    enabled: bool


class DraftItemEdit(BaseModel):
    name: Optional[str] = None
    quantity: Optional[int] = None
    unit_price: RawAmount = None


class AdditionalAmountRequest(BaseModel):
    amount: RawAmount = None


class DraftSubmitRequest(BaseModel):
    action: SubmitAction = SubmitAction.GENERATE


# Responses

class PaymentQuoteResponse(BaseModel):
    current_balance: Decimal
    amount: Decimal
    discount: Decimal
    total_payable: Decimal
    projected_balance: Decimal


class PaymentFormState(BaseModel):
    amount: Any = None
    discount: Any = None
    method: Any = None
    recorded_at: Optional[datetime] = None
    comments: Optional[str] = None
    invoice_id: Optional[str] = None


class AdjustmentQuoteResponse(BaseModel):
    current_balance: Decimal
    new_balance: Decimal
    delta: Decimal
    direction: Direction
    amount: Decimal


class AddOnQuoteResponse(BaseModel):
    current_balance: Decimal
    item_name: str
    price: Decimal
    projected_balance: Decimal


class ActionGatesResponse(BaseModel):
    collect_payment: bool
    adjust_balance: bool
    add_on_bill: bool
    renew: bool
    renew_from_last_invoice: bool
    delete_latest: bool


class SectionState(BaseModel):
    section: Section
    enabled: bool


class HistoryRow(BaseModel):
    position: int
    id: str
    kind: TransactionKind
    transaction_date: datetime
    title: str
    subtitle: str
    direction: Direction
    amount: Decimal
    signed_amount: str
    balance_before: Decimal
    balance_after: Decimal
    balance_label: str
    deletable: bool


class HistoryStatsResponse(BaseModel):
    count: int
    counts_by_kind: Dict[str, int]
    total_debits: Decimal
    total_credits: Decimal


class ProjectionResponse(BaseModel):
    customer: Customer
    current_balance: Decimal
    balance_status: BalanceStatus
    last_bill: Optional[Invoice]
    last_payment: Optional[Payment]
    gates: ActionGatesResponse
    history: List[HistoryRow]


class WorkspaceResponse(BaseModel):
    """Schema for a workspace snapshot."""
    workspace_id: str
    customer_id: Optional[str]
    generation: int
    draft_state: DraftState
    projection: Optional[ProjectionResponse]


class DraftItemResponse(BaseModel):
    position: int
    name: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    item_type: BillItemType
    editable: bool
    plan_id: Optional[str]


class DraftResponse(BaseModel):
    state: DraftState
    tab: DraftTab
    selected_plans: List[Plan]
    fixed_amount: Any = None
    period_start: Optional[date]
    period_end: Optional[date]
    edit_mode: bool
    items: List[DraftItemResponse]
    subtotal: Decimal
    additional_amount: Decimal
    prev_balance: Decimal
    grand_total: Decimal


class PeriodResponse(BaseModel):
    period_start: date
    period_end: date
    period_months: int


class PaymentRecordedResponse(BaseModel):
    payment: Payment
    applied: bool
    reload_error: Optional[str] = None


class AdjustmentRecordedResponse(BaseModel):
    transaction: Transaction
    applied: bool
    reload_error: Optional[str] = None


class AddOnBilledResponse(BaseModel):
    invoice: Invoice
    applied: bool
    reload_error: Optional[str] = None


class DraftSubmissionResponse(BaseModel):
    invoice: Invoice
    action: SubmitAction
    applied: bool
    next_section: Optional[Section] = None
    preview: Optional[Invoice] = None
    follow_up_error: Optional[str] = None
    reload_error: Optional[str] = None
    payment_form: Optional[PaymentFormState] = None


class DeletionResponse(BaseModel):
    transaction_id: str
    route: str
    remote_id: str
    applied: bool
    reload_error: Optional[str] = None


class EntryPreviewResponse(BaseModel):
    target: Literal["invoice", "payment"]
    invoice: Optional[Invoice] = None
    payment: Optional[Payment] = None


class AuditLogResponse(BaseModel):
    """Schema for displaying audit records."""
    id: int
    operator: Optional[str]
    action: str
    customer_id: str
    meta_data: Optional[Dict[str, Any]]
    correlation_id: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True
