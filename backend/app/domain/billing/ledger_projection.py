"""
Ledger projection.

What the workspace shows for one customer after a reload: balance, last
bill, last payment, history, and which actions the operator may take.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

from backend.app.domain.billing.transaction_history import TransactionHistory
from backend.app.models.ledger_enums import BalanceStatus, InvoiceKind, Section
from backend.app.schemas.ledger import Customer, Invoice, LedgerSummary, Payment


def balance_status(balance: Decimal) -> BalanceStatus:
    if balance == 0:
        return BalanceStatus.PAID
    if balance > 0:
        return BalanceStatus.UNPAID
    return BalanceStatus.CREDIT


@dataclass(frozen=True)
class ActionGates:
    collect_payment: bool = False
    adjust_balance: bool = False
    add_on_bill: bool = False
    renew: bool = False
    renew_from_last_invoice: bool = False
    delete_latest: bool = False

    def sections(self, loaded: bool) -> Dict[Section, bool]:
        return {
            Section.COLLECT_PAYMENT: self.collect_payment,
            Section.RENEW: self.renew,
            Section.SUBSCRIPTION: loaded,
            Section.ADJUST_BALANCE: self.adjust_balance,
            Section.ADD_ON_BILL: self.add_on_bill,
            Section.BALANCE_HISTORY: loaded,
            Section.HARDWARE: loaded,
            Section.FOLLOW_UP: loaded,
            Section.EDIT: loaded,
            Section.DOCUMENTS: loaded,
        }


@dataclass
class BusyFlags:
    payment: bool = False
    adjustment: bool = False
    add_on: bool = False
    draft: bool = False
    delete: bool = False


@dataclass(frozen=True)
class LedgerProjection:
    customer: Customer
    summary: LedgerSummary
    history: TransactionHistory = field(repr=False)

    @property
    def current_balance(self) -> Decimal:
        return self.summary.current_balance

    @property
    def balance_status(self) -> BalanceStatus:
        return balance_status(self.current_balance)

    @property
    def last_bill(self) -> Optional[Invoice]:
        return self.summary.last_bill

    @property
    def last_payment(self) -> Optional[Payment]:
        return self.summary.last_payment

    @property
    def last_subscription_period_end(self):
        bill = self.last_bill
        if bill is None or bill.invoice_kind != InvoiceKind.SUBSCRIPTION:
            return None
        return bill.period_end

    def gates(self, busy: BusyFlags, draft_idle: bool = True) -> ActionGates:
        return ActionGates(
            collect_payment=not busy.payment,
            adjust_balance=not busy.adjustment,
            add_on_bill=not busy.add_on,
            renew=not busy.draft and draft_idle,
            renew_from_last_invoice=(
                not busy.draft and draft_idle and self.last_subscription_period_end is not None
            ),
            delete_latest=not busy.delete and self.history.deletable_entry() is not None,
        )
