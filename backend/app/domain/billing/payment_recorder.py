"""
Payment collection form.

Validates operator input, projects the balance after the payment and builds
the payload the ledger service expects for a PAYMENT entry.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from backend.app.core.exceptions import ValidationError
from backend.app.domain.billing.money import ZERO, is_blank, quantize, to_decimal
from backend.app.models.ledger_enums import PaymentMethod


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PaymentQuote:
    amount: Decimal
    discount: Decimal
    total_payable: Decimal
    projected_balance: Decimal


def quote_payment(current_balance: Decimal, amount: Any, discount: Any = None) -> PaymentQuote:
    """
    Compute what a payment does to the balance.

    totalPayable = amount - discount
    projectedBalance = max(0, currentBalance - totalPayable)

    A discount larger than the amount is accepted as-is; the negative
    totalPayable then raises the balance.
    """
    errors: Dict[str, str] = {}

    parsed_amount = to_decimal(amount)
    if is_blank(amount):
        errors["amount"] = "Amount is required"
    elif parsed_amount is None:
        errors["amount"] = "Amount must be a number"
    elif parsed_amount <= 0:
        errors["amount"] = "Amount must be greater than 0"

    parsed_discount = to_decimal(discount)
    if parsed_discount is None:
        parsed_discount = ZERO
    elif parsed_discount < 0:
        errors["discount"] = "Discount cannot be negative"

    if errors:
        raise ValidationError(errors)

    total_payable = parsed_amount - parsed_discount
    projected = quantize(Decimal(current_balance) - total_payable)
    return PaymentQuote(
        amount=parsed_amount,
        discount=parsed_discount,
        total_payable=total_payable,
        projected_balance=max(ZERO, projected),
    )


class PaymentRecorder:
    """State of the collect-payment form for one customer workspace."""

    FIELDS = ("amount", "discount", "method", "recorded_at", "comments", "invoice_id")

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        self.amount: Any = None
        self.discount: Any = ZERO
        self.method: Any = PaymentMethod.CASH
        self.recorded_at: Optional[datetime] = self._clock()
        self.comments: Optional[str] = None
        self.invoice_id: Optional[str] = None

    def update(self, **changes) -> None:
        for field, value in changes.items():
            if field not in self.FIELDS:
                raise ValueError(f"Unknown payment field: {field}")
            setattr(self, field, value)

    def prefill(self, amount: Decimal, invoice_id: Optional[str] = None) -> None:
        """Start a fresh form for collecting a just-generated invoice."""
        self.reset()
        self.amount = amount
        self.invoice_id = invoice_id

    def quote(self, current_balance: Decimal) -> PaymentQuote:
        return quote_payment(current_balance, self.amount, self.discount)

    def _method(self) -> PaymentMethod:
        try:
            return PaymentMethod(self.method)
        except ValueError:
            raise ValidationError({"method": f"Unsupported payment method: {self.method}"})

    def build_payload(self, customer_id: str, current_balance: Decimal) -> Dict[str, Any]:
        quote = self.quote(current_balance)
        method = self._method()
        if self.recorded_at is None:
            raise ValidationError({"recorded_at": "Payment date is required"})
        return {
            "customerId": customer_id,
            "invoiceId": self.invoice_id,
            "amount": str(quote.amount),
            "discount": str(quote.discount),
            "totalPayable": str(quote.total_payable),
            "method": method.value,
            "collectedAt": self.recorded_at.isoformat(),
            "comments": (self.comments or "").strip() or None,
        }

    def snapshot(self) -> Dict[str, Any]:
        return {field: getattr(self, field) for field in self.FIELDS}
