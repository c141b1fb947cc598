"""
Bill draft builder.

Stages the line items of a subscription invoice before it is sent to the
ledger. The draft is a small state machine:

    CLOSED → OPEN(tab) → STAGED → SUBMITTING → CLOSED

Items come from, in priority order: plans picked in this session, the
customer's active priced subscriptions, the legacy single subscription
field, then the fixed-amount tab. Every item keeps
totalAmount = unitPrice × quantity.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from backend.app.core.exceptions import DraftStateError, ValidationError
from backend.app.domain.billing.money import ZERO, is_blank, quantize, to_decimal
from backend.app.models.ledger_enums import BillItemType, DraftState, DraftTab
from backend.app.schemas.ledger import Customer, Plan, Subscription

logger = logging.getLogger(__name__)

FIXED_BILL_NAME = "Fixed Bill Amount"
NO_ITEMS_MESSAGE = "No valid subscription or bill item"


@dataclass
class BillDraftItem:
    name: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    item_type: BillItemType
    editable: bool = True
    plan_id: Optional[str] = None
    subscription_id: Optional[str] = None

    def recompute(self) -> None:
        self.total_amount = quantize(self.unit_price * self.quantity)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unitPrice": str(self.unit_price),
            "totalAmount": str(self.total_amount),
            "itemType": self.item_type.value,
            "planId": self.plan_id,
        }


def _service_item(name: str, price: Decimal, plan_id: Optional[str], subscription_id: Optional[str] = None) -> BillDraftItem:
    price = quantize(price)
    return BillDraftItem(
        name=name,
        quantity=1,
        unit_price=price,
        total_amount=price,
        item_type=BillItemType.INTERNET_SERVICE,
        editable=True,
        plan_id=plan_id,
        subscription_id=subscription_id,
    )


def _subscription_item(subscription: Subscription) -> BillDraftItem:
    plan = subscription.plan
    return _service_item(
        name=plan.name if plan else "Internet Service",
        price=subscription.agreed_monthly_price,
        plan_id=plan.id if plan else None,
        subscription_id=subscription.id,
    )


@dataclass
class BillDraft:
    """Mutable bill draft for one customer workspace."""

    state: DraftState = DraftState.CLOSED
    tab: DraftTab = DraftTab.PLANS
    selected_plans: Dict[str, Plan] = field(default_factory=dict)
    fixed_amount: Any = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    items: List[BillDraftItem] = field(default_factory=list)
    additional_amount: Decimal = ZERO
    prev_balance: Decimal = ZERO
    edit_mode: bool = False

    # -- transitions -------------------------------------------------------

    def _require(self, action: str, *states: DraftState) -> None:
        if self.state not in states:
            raise DraftStateError(self.state.value, action)

    def open(self, tab: DraftTab = DraftTab.PLANS) -> None:
        self._require("open", DraftState.CLOSED, DraftState.OPEN)
        self.state = DraftState.OPEN
        self.tab = tab

    def close(self) -> None:
        """Discard the draft and every session selection."""
        self._require("close", DraftState.CLOSED, DraftState.OPEN, DraftState.STAGED)
        self._clear()

    def _clear(self) -> None:
        self.state = DraftState.CLOSED
        self.tab = DraftTab.PLANS
        self.selected_plans = {}
        self.fixed_amount = None
        self.period_start = None
        self.period_end = None
        self.items = []
        self.additional_amount = ZERO
        self.prev_balance = ZERO
        self.edit_mode = False

    def select_tab(self, tab: DraftTab) -> None:
        self._require("switch tab", DraftState.OPEN)
        self.tab = tab

    def toggle_plan(self, plan: Plan) -> bool:
        """Select or unselect a plan; returns True when it ends up selected."""
        self._require("select plans", DraftState.OPEN)
        if plan.id in self.selected_plans:
            del self.selected_plans[plan.id]
            return False
        self.selected_plans[plan.id] = plan
        return True

    def ordered_selection(self) -> List[Plan]:
        return sorted(self.selected_plans.values(), key=lambda plan: (plan.name, plan.id))

    def set_fixed_amount(self, value: Any) -> None:
        self._require("set the fixed amount", DraftState.OPEN)
        self.fixed_amount = value

    def stage(self, customer: Customer, period_start: date, period_end: date, prev_balance: Decimal) -> List[BillDraftItem]:
        """
        Build the line items for the given period.

        Falls back through the item sources in priority order. When nothing
        yields an item the draft is closed and ValidationError is raised.
        """
        self._require("stage items", DraftState.CLOSED, DraftState.OPEN)
        if period_start is None or period_end is None:
            raise ValidationError({"period": "Billing period dates are required"})
        if period_end < period_start:
            raise ValidationError({"period": "Billing period ends before it starts"})

        items = self._items_from_sources(customer)
        if not items:
            self._clear()
            raise ValidationError({"items": NO_ITEMS_MESSAGE})

        self.items = items
        self.period_start = period_start
        self.period_end = period_end
        self.prev_balance = quantize(Decimal(prev_balance))
        self.additional_amount = ZERO
        self.edit_mode = False
        self.state = DraftState.STAGED
        logger.debug("Staged %d bill item(s) for customer %s", len(items), customer.id)
        return items

    def _items_from_sources(self, customer: Customer) -> List[BillDraftItem]:
        if self.selected_plans:
            return [_service_item(plan.name, plan.monthly_price, plan.id) for plan in self.ordered_selection()]

        billable = [sub for sub in customer.subscriptions if sub.is_billable]
        if billable:
            return [_subscription_item(sub) for sub in billable]

        legacy = customer.subscription
        if legacy is not None and legacy.agreed_monthly_price > 0:
            return [_subscription_item(legacy)]

        amount = to_decimal(self.fixed_amount)
        if amount is not None and amount > 0:
            return [
                BillDraftItem(
                    name=FIXED_BILL_NAME,
                    quantity=1,
                    unit_price=amount,
                    total_amount=amount,
                    item_type=BillItemType.FIXED_BILL,
                    editable=True,
                )
            ]
        return []

    # -- staged editing ----------------------------------------------------

    def set_edit_mode(self, enabled: bool) -> None:
        self._require("toggle edit mode", DraftState.STAGED)
        self.edit_mode = enabled

    def _item(self, index: int) -> BillDraftItem:
        if not 0 <= index < len(self.items):
            raise ValidationError({"index": f"No bill item at position {index}"})
        return self.items[index]

    def edit_item(self, index: int, name: Any = None, quantity: Any = None, unit_price: Any = None) -> BillDraftItem:
        self._require("edit items", DraftState.STAGED)
        if not self.edit_mode:
            raise DraftStateError("not in edit mode", "edit items")
        item = self._item(index)
        if not item.editable:
            raise ValidationError({"index": f"Bill item {index} is not editable"})

        errors: Dict[str, str] = {}
        new_name = item.name
        if name is not None:
            new_name = name.strip() if isinstance(name, str) else ""
            if not new_name:
                errors["name"] = "Item name is required"
        new_quantity = item.quantity
        if quantity is not None:
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
                errors["quantity"] = "Quantity must be a whole number of at least 1"
            else:
                new_quantity = quantity
        new_price = item.unit_price
        if unit_price is not None:
            parsed = to_decimal(unit_price)
            if parsed is None or parsed < 0:
                errors["unit_price"] = "Unit price must be a number of at least 0"
            else:
                new_price = parsed
        if errors:
            raise ValidationError(errors)

        item.name = new_name
        item.quantity = new_quantity
        item.unit_price = new_price
        item.recompute()
        return item

    def remove_item(self, index: int) -> BillDraftItem:
        self._require("remove items", DraftState.STAGED)
        self._item(index)
        return self.items.pop(index)

    def set_additional_amount(self, value: Any) -> None:
        self._require("set the additional amount", DraftState.STAGED)
        if is_blank(value):
            self.additional_amount = ZERO
            return
        parsed = to_decimal(value)
        if parsed is None:
            raise ValidationError({"additional_amount": "Additional amount must be a number"})
        self.additional_amount = parsed

    # -- totals ------------------------------------------------------------

    @property
    def subtotal(self) -> Decimal:
        return quantize(sum((item.total_amount for item in self.items), ZERO))

    @property
    def grand_total(self) -> Decimal:
        return quantize(self.subtotal + self.additional_amount + self.prev_balance)

    def recompute(self) -> Decimal:
        for item in self.items:
            item.recompute()
        return self.grand_total

    # -- submission --------------------------------------------------------

    def payload(self) -> Dict[str, Any]:
        if not self.items:
            raise ValidationError({"items": NO_ITEMS_MESSAGE})
        total = self.recompute()
        subscriptions = [
            {"subscriptionId": item.subscription_id, "planId": item.plan_id, "price": str(item.unit_price)}
            for item in self.items
            if item.item_type == BillItemType.INTERNET_SERVICE
        ]
        return {
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            "items": [item.to_payload() for item in self.items],
            "subtotal": str(self.subtotal),
            "additionalAmount": str(self.additional_amount),
            "prevBalance": str(self.prev_balance),
            "amountTotal": str(total),
            "subscriptions": subscriptions,
        }

    def begin_submit(self) -> Dict[str, Any]:
        self._require("submit", DraftState.STAGED)
        payload = self.payload()
        self.state = DraftState.SUBMITTING
        return payload

    def submit_failed(self) -> None:
        """Back to STAGED with every edit intact."""
        self._require("recover from a failed submit", DraftState.SUBMITTING)
        self.state = DraftState.STAGED

    def submit_succeeded(self) -> None:
        self._require("finish submitting", DraftState.SUBMITTING)
        self._clear()
