"""
Customer transaction history.

Keeps the ledger entries newest first and decides which entry, if any, may
be deleted. Recomputing downstream balances after a delete is the ledger
service's job; the console only refuses deletes that could leave a
subscription invoice sitting on top of a rewritten balance.
"""

import csv
import io
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from backend.app.core.exceptions import NotFoundError
from backend.app.domain.billing.money import ZERO
from backend.app.models.ledger_enums import Direction, ReferenceType, TransactionKind
from backend.app.schemas.ledger import Transaction

logger = logging.getLogger(__name__)

DELETE_PAYMENT = "payment"
DELETE_TRANSACTION = "transaction"
PREVIEW_INVOICE = "invoice"
PREVIEW_PAYMENT = "payment"


@dataclass(frozen=True)
class HistoryStats:
    count: int
    counts_by_kind: Dict[str, int]
    total_debits: Decimal
    total_credits: Decimal


def _short_date(value: datetime) -> str:
    return value.strftime("%d %b %y")


def _long_date(value: datetime) -> str:
    return value.strftime("%d %b %Y")


def _money(amount: Decimal, symbol: str) -> str:
    text = f"{amount:,.2f}"
    if text.endswith(".00"):
        text = text[:-3]
    return f"{symbol}{text}"


def entry_title(entry: Transaction) -> str:
    if entry.kind == TransactionKind.PAYMENT:
        return f"Payment On {_short_date(entry.transaction_date)}"
    if entry.kind == TransactionKind.INVOICE:
        return entry.description or f"Bill On {_short_date(entry.transaction_date)}"
    if entry.kind == TransactionKind.BALANCE_ADJUSTMENT:
        return entry.description or "Balance Adjustment"
    return entry.description or "Add-on Bill"


def entry_subtitle(entry: Transaction) -> str:
    when = _long_date(entry.recorded_at or entry.transaction_date)
    if entry.kind == TransactionKind.INVOICE:
        return f"Billed On {when}"
    if entry.kind == TransactionKind.BALANCE_ADJUSTMENT:
        return f"Changed On {when}"
    return f"Recorded On {when}"


def signed_amount(entry: Transaction, symbol: str = "₹") -> str:
    sign = "(-)" if entry.direction == Direction.CREDIT else "(+)"
    return f"{sign} {_money(entry.amount, symbol)}"


def balance_label(balance: Decimal, symbol: str = "₹") -> str:
    if balance == 0:
        return _money(ZERO, symbol)
    if balance > 0:
        return f"{_money(balance, symbol)} Due"
    return f"{_money(abs(balance), symbol)} Advance"


class TransactionHistory:
    """Ordered view over a customer's ledger entries; position 0 is the newest."""

    def __init__(self, entries: Iterable[Transaction]):
        # Stable sort keeps the service's order for entries sharing a timestamp
        self.entries: List[Transaction] = sorted(entries, key=lambda entry: entry.transaction_date, reverse=True)
        self._latest_subscription_invoice = next(
            (entry for entry in self.entries if entry.is_subscription_invoice), None
        )
        for entry in self.entries:
            if not entry.is_consistent:
                logger.warning(
                    "Ledger entry %s balance mismatch: expected %s, service reports %s",
                    entry.id, entry.expected_balance_after, entry.balance_after
                )

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def latest_subscription_invoice(self) -> Optional[Transaction]:
        return self._latest_subscription_invoice

    def is_deletable(self, entry: Transaction, position: int) -> bool:
        return self.deletion_blocker(entry, position) is None

    def deletion_blocker(self, entry: Transaction, position: int) -> Optional[str]:
        """Why an entry may not be deleted, or None when it may."""
        if position != 0:
            return "Only the most recent ledger entry can be deleted"
        if entry.is_subscription_invoice:
            return "Subscription invoices cannot be deleted"
        latest = self._latest_subscription_invoice
        if latest is not None and entry.transaction_date < latest.transaction_date:
            return "Entries older than the latest subscription invoice cannot be deleted"
        return None

    def deletable_entry(self) -> Optional[Transaction]:
        if self.entries and self.is_deletable(self.entries[0], 0):
            return self.entries[0]
        return None

    def locate(self, transaction_id: str) -> Tuple[int, Transaction]:
        for position, entry in enumerate(self.entries):
            if entry.id == transaction_id:
                return position, entry
        raise NotFoundError("Transaction", transaction_id)

    @staticmethod
    def delete_route(entry: Transaction) -> Tuple[str, str]:
        """
        Pick the remote delete operation for an entry.

        Payments recorded on their own are removed through the payment
        endpoint so the payment record goes too; everything else goes
        through the generic transaction delete.
        """
        reference = entry.reference
        if entry.kind == TransactionKind.PAYMENT and reference and reference.type == ReferenceType.PAYMENT:
            return DELETE_PAYMENT, reference.id
        return DELETE_TRANSACTION, entry.id

    @staticmethod
    def preview_target(entry: Transaction) -> Tuple[str, str]:
        reference = entry.reference
        if entry.kind == TransactionKind.PAYMENT:
            if reference is None or reference.type != ReferenceType.PAYMENT:
                raise NotFoundError("Payment for transaction", entry.id)
            return PREVIEW_PAYMENT, reference.id
        if reference is None or reference.type != ReferenceType.INVOICE:
            raise NotFoundError("Invoice for transaction", entry.id)
        return PREVIEW_INVOICE, reference.id

    def stats(self) -> HistoryStats:
        counts = Counter(entry.kind.value for entry in self.entries)
        debits = sum((e.amount for e in self.entries if e.direction == Direction.DEBIT), ZERO)
        credits = sum((e.amount for e in self.entries if e.direction == Direction.CREDIT), ZERO)
        return HistoryStats(
            count=len(self.entries),
            counts_by_kind=dict(counts),
            total_debits=debits,
            total_credits=credits,
        )

    def rows(self, symbol: str = "₹") -> List[dict]:
        return [
            {
                "position": position,
                "id": entry.id,
                "kind": entry.kind,
                "transaction_date": entry.transaction_date,
                "title": entry_title(entry),
                "subtitle": entry_subtitle(entry),
                "direction": entry.direction,
                "amount": entry.amount,
                "signed_amount": signed_amount(entry, symbol),
                "balance_before": entry.balance_before,
                "balance_after": entry.balance_after,
                "balance_label": balance_label(entry.balance_after, symbol),
                "deletable": self.is_deletable(entry, position),
            }
            for position, entry in enumerate(self.entries)
        ]

    def to_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["date", "kind", "description", "direction", "amount", "balance_before", "balance_after"])
        for entry in self.entries:
            writer.writerow([
                entry.transaction_date.isoformat(),
                entry.kind.value,
                entry_title(entry),
                entry.direction.value,
                str(entry.amount),
                str(entry.balance_before),
                str(entry.balance_after),
            ])
        return buffer.getvalue()
