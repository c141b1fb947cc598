"""
Pending charges.

A pending charge is a one-off amount (router installation, late fee, ...)
parked against a customer without touching the balance. The ledger folds
pending charges into the customer's next invoice and marks them APPLIED;
until then they can be edited or withdrawn.
"""

from typing import Any, Dict, Optional

from backend.app.core.exceptions import ValidationError
from backend.app.domain.billing.money import is_blank, to_decimal
from backend.app.models.ledger_enums import ChargeType

DEFAULT_CHARGE_TYPE = ChargeType.ROUTER_INSTALLATION
PENDING = "PENDING"


def _charge_type(value: Any, errors: Dict[str, str]) -> Optional[ChargeType]:
    if value is None:
        return DEFAULT_CHARGE_TYPE
    try:
        return ChargeType(value)
    except ValueError:
        errors["charge_type"] = f"Unknown charge type: {value}"
        return None


def pending_charge_payload(customer_id: str, description: Any, amount: Any, charge_type: Any = None) -> Dict[str, Any]:
    """
    Validate a pending charge and build the ledger request body.

    Raises:
        ValidationError: per field, before any network call
    """
    errors: Dict[str, str] = {}
    kind = _charge_type(charge_type, errors)

    text = description.strip() if isinstance(description, str) else ""
    if not text:
        errors["description"] = "Description is required"

    parsed = to_decimal(amount)
    if is_blank(amount):
        errors["amount"] = "Amount is required"
    elif parsed is None:
        errors["amount"] = "Amount must be a number"
    elif parsed <= 0:
        errors["amount"] = "Amount must be greater than 0"

    if errors:
        raise ValidationError(errors)
    return {
        "customerId": customer_id,
        "chargeType": kind.value,
        "description": text,
        "amount": str(parsed),
    }


def is_open(status: Optional[str]) -> bool:
    """Charges already folded into an invoice are read-only."""
    return status is None or status.upper() == PENDING
