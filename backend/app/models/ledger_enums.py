"""
Ledger enumerations.
"""

import enum


class TransactionKind(str, enum.Enum):
    """Kind of balance-affecting ledger entry."""
    INVOICE = "INVOICE"
    PAYMENT = "PAYMENT"
    BALANCE_ADJUSTMENT = "BALANCE_ADJUSTMENT"
    ADD_ON_BILL = "ADD_ON_BILL"


class Direction(str, enum.Enum):
    """Ledger entry direction."""
    DEBIT = "DEBIT"  # Increases the amount owed
    CREDIT = "CREDIT"  # Decreases the amount owed


class InvoiceKind(str, enum.Enum):
    SUBSCRIPTION = "SUBSCRIPTION"
    OTHER = "OTHER"


class ReferenceType(str, enum.Enum):
    INVOICE = "INVOICE"
    PAYMENT = "PAYMENT"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    UPI = "UPI"
    BHIM = "BHIM"
    PHONEPE = "PhonePe"
    CARD = "CARD"


class BillItemType(str, enum.Enum):
    INTERNET_SERVICE = "INTERNET_SERVICE"
    FIXED_BILL = "FIXED_BILL"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"


class BillingCycle(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    HALF_YEARLY = "HALF_YEARLY"
    YEARLY = "YEARLY"


class ChargeType(str, enum.Enum):
    """Categories for add-on bills and pending charges."""
    ROUTER_INSTALLATION = "ROUTER_INSTALLATION"
    EQUIPMENT_CHARGE = "EQUIPMENT_CHARGE"
    LATE_FEE = "LATE_FEE"
    ADJUSTMENT = "ADJUSTMENT"
    OTHER = "OTHER"


class BalanceStatus(str, enum.Enum):
    PAID = "PAID"  # Nothing owed
    UNPAID = "UNPAID"  # Customer owes money
    CREDIT = "CREDIT"  # Customer paid in advance


class DraftState(str, enum.Enum):
    """
    Bill draft state.

    Flow:
        CLOSED → OPEN → STAGED → SUBMITTING → CLOSED
        A failed submission returns SUBMITTING → STAGED
    """
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    STAGED = "STAGED"
    SUBMITTING = "SUBMITTING"


class DraftTab(str, enum.Enum):
    PLANS = "PLANS"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class SubmitAction(str, enum.Enum):
    """Post-submit navigation of a bill draft."""
    GENERATE_AND_COLLECT = "GENERATE_AND_COLLECT"
    GENERATE = "GENERATE"
    GENERATE_AND_VIEW = "GENERATE_AND_VIEW"


class Section(str, enum.Enum):
    """Operator-selectable sections of the customer workspace."""
    COLLECT_PAYMENT = "collect-payment"
    RENEW = "renew"
    SUBSCRIPTION = "subscription"
    ADJUST_BALANCE = "adjust-balance"
    ADD_ON_BILL = "add-on-bill"
    BALANCE_HISTORY = "balance-history"
    HARDWARE = "hardware"
    FOLLOW_UP = "follow-up"
    EDIT = "edit"
    DOCUMENTS = "documents"
