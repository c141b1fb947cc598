"""Balance correction form."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from backend.app.core.exceptions import ValidationError
from backend.app.domain.billing.money import is_blank, quantize, to_decimal
from backend.app.models.ledger_enums import Direction


@dataclass(frozen=True)
class AdjustmentQuote:
    new_balance: Decimal
    delta: Decimal

    @property
    def direction(self) -> Direction:
        return Direction.DEBIT if self.delta > 0 else Direction.CREDIT

    @property
    def amount(self) -> Decimal:
        return abs(self.delta)


def quote_adjustment(current_balance: Decimal, new_balance: Any) -> AdjustmentQuote:
    """delta = newBalance - currentBalance, signed and unclamped."""
    parsed = to_decimal(new_balance)
    if is_blank(new_balance):
        raise ValidationError({"new_balance": "New balance is required"})
    if parsed is None:
        raise ValidationError({"new_balance": "New balance must be a number"})
    return AdjustmentQuote(new_balance=parsed, delta=quantize(parsed - Decimal(current_balance)))


class AdjustmentCalculator:
    """State of the adjust-balance form."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.new_balance: Any = None
        self.reason: Optional[str] = None

    def update(self, new_balance: Any = None, reason: Optional[str] = None) -> None:
        self.new_balance = new_balance
        self.reason = reason

    def quote(self, current_balance: Decimal) -> AdjustmentQuote:
        return quote_adjustment(current_balance, self.new_balance)

    def build_payload(self, customer_id: str, current_balance: Decimal) -> Dict[str, Any]:
        quote = self.quote(current_balance)
        if quote.delta == 0:
            raise ValidationError({"new_balance": "New balance equals the current balance"})
        return {
            "customerId": customer_id,
            "previousBalance": str(quantize(Decimal(current_balance))),
            "newBalance": str(quote.new_balance),
            "amount": str(quote.amount),
            "direction": quote.direction.value,
            "reason": (self.reason or "").strip() or None,
        }
