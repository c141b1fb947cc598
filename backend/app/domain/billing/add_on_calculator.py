"""Ad-hoc add-on charge form."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from backend.app.core.exceptions import ValidationError
from backend.app.domain.billing.money import is_blank, quantize, to_decimal
from backend.app.models.ledger_enums import ChargeType, Direction


@dataclass(frozen=True)
class AddOnQuote:
    item_name: str
    price: Decimal
    projected_balance: Decimal


def quote_add_on(current_balance: Decimal, item_name: Any, price: Any) -> AddOnQuote:
    errors: Dict[str, str] = {}
    name = item_name.strip() if isinstance(item_name, str) else ""
    if not name:
        errors["item_name"] = "Item name is required"

    parsed_price = to_decimal(price)
    if is_blank(price):
        errors["price"] = "Price is required"
    elif parsed_price is None:
        errors["price"] = "Price must be a number"
    elif parsed_price <= 0:
        errors["price"] = "Price must be greater than 0"

    if errors:
        raise ValidationError(errors)
    return AddOnQuote(
        item_name=name,
        price=parsed_price,
        projected_balance=quantize(Decimal(current_balance) + parsed_price),
    )


class AddOnCalculator:
    """State of the add-on-bill form."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.item_name: Any = ""
        self.price: Any = None
        self.charge_type: ChargeType = ChargeType.OTHER

    def update(self, item_name: Any = "", price: Any = None, charge_type: Any = None) -> None:
        self.item_name = item_name
        self.price = price
        if charge_type is not None:
            try:
                self.charge_type = ChargeType(charge_type)
            except ValueError:
                raise ValidationError({"charge_type": f"Unknown charge type: {charge_type}"})

    def quote(self, current_balance: Decimal) -> AddOnQuote:
        return quote_add_on(current_balance, self.item_name, self.price)

    def build_payload(self, customer_id: str, current_balance: Decimal) -> Dict[str, Any]:
        quote = self.quote(current_balance)
        return {
            "customerId": customer_id,
            "itemName": quote.item_name,
            "price": str(quote.price),
            "chargeType": self.charge_type.value,
            "direction": Direction.DEBIT.value,
        }
