"""
Ledger read models.

Pydantic models for the data returned by the remote ledger and catalog
services. The services speak camelCase JSON; fields are snake_case here and
accept either spelling.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.app.models.ledger_enums import (
    BillingCycle,
    BillItemType,
    ChargeType,
    Direction,
    InvoiceKind,
    ReferenceType,
    SubscriptionStatus,
    TransactionKind,
)

_CYCLE_MONTHS = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.HALF_YEARLY: 6,
    BillingCycle.YEARLY: 12,
}


class LedgerModel(BaseModel):
    """
    Base for wire models exchanged with the remote services.

    camelCase is accepted on input; output keeps the snake_case field names.
    """
    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
        coerce_numbers_to_str=True,
        from_attributes=True,
    )


class Plan(LedgerModel):
    id: str
    name: str
    monthly_price: Decimal = Field(..., ge=0)
    code: Optional[str] = None


class PlanRef(LedgerModel):
    id: str
    name: str


class Subscription(LedgerModel):
    id: Optional[str] = None
    plan: Optional[PlanRef] = None
    agreed_monthly_price: Decimal = Decimal("0")
    billing_type: Optional[str] = None
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    billing_cycle_value: int = 1
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE

    @property
    def is_billable(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and self.agreed_monthly_price > 0

    @property
    def period_months(self) -> int:
        """Length of one renewal period in calendar months."""
        if self.billing_cycle == BillingCycle.MONTHLY:
            return max(self.billing_cycle_value, 1)
        return _CYCLE_MONTHS[self.billing_cycle]


class Area(LedgerModel):
    id: Optional[str] = None
    area_name: Optional[str] = None


class Customer(LedgerModel):
    id: str
    name: str
    phone: Optional[str] = None
    balance: Decimal = Decimal("0")
    area: Optional[Area] = None
    subscriptions: List[Subscription] = Field(default_factory=list)
    # Pre-multi-subscription customers carry a single subscription here
    subscription: Optional[Subscription] = None


class InvoiceItem(LedgerModel):
    name: str
    quantity: int = 1
    unit_price: Decimal
    total_amount: Decimal
    item_type: BillItemType = BillItemType.INTERNET_SERVICE
    plan_id: Optional[str] = None


class Invoice(LedgerModel):
    id: str
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    items: List[InvoiceItem] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    amount_total: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    status: Optional[str] = None
    due_date: Optional[date] = None
    invoice_kind: InvoiceKind = InvoiceKind.SUBSCRIPTION


class Payment(LedgerModel):
    id: str
    invoice_id: Optional[str] = None
    amount: Decimal
    discount: Decimal = Decimal("0")
    method: Optional[str] = None
    collected_at: Optional[datetime] = None
    comments: Optional[str] = None
    collector: Optional[str] = None


class TransactionReference(LedgerModel):
    type: ReferenceType
    id: str


class Transaction(LedgerModel):
    """One balance-affecting ledger entry."""
    id: str
    kind: TransactionKind
    transaction_date: datetime
    balance_before: Decimal
    balance_after: Decimal
    direction: Direction
    amount: Decimal = Field(..., ge=0)
    reference: Optional[TransactionReference] = None
    description: Optional[str] = None
    invoice_kind: Optional[InvoiceKind] = None
    recorded_at: Optional[datetime] = None

    @property
    def is_subscription_invoice(self) -> bool:
        return self.kind == TransactionKind.INVOICE and self.invoice_kind == InvoiceKind.SUBSCRIPTION

    @property
    def expected_balance_after(self) -> Decimal:
        if self.direction == Direction.DEBIT:
            return self.balance_before + self.amount
        return self.balance_before - self.amount

    @property
    def is_consistent(self) -> bool:
        return self.expected_balance_after == self.balance_after


class LedgerSummary(LedgerModel):
    """Balance, last bill and last payment for one customer."""
    current_balance: Decimal = Decimal("0")
    last_bill: Optional[Invoice] = None
    last_payment: Optional[Payment] = None


class PendingCharge(LedgerModel):
    """A charge parked for the customer's next invoice."""
    id: str
    customer_id: Optional[str] = None
    charge_type: ChargeType = ChargeType.OTHER
    description: str = ""
    amount: Decimal = Field(..., ge=0)
    status: Optional[str] = None
    created_at: Optional[datetime] = None


class PendingChargeSummary(LedgerModel):
    total_amount: Decimal = Decimal("0")
    charges: List[PendingCharge] = []
