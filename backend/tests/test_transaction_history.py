"""
Transaction history ordering, deletion eligibility and display tests.
"""

import csv
import io
from datetime import datetime
from decimal import Decimal

import pytest

from backend.app.core.exceptions import NotFoundError
from backend.app.domain.billing.transaction_history import (
    DELETE_PAYMENT,
    DELETE_TRANSACTION,
    PREVIEW_INVOICE,
    PREVIEW_PAYMENT,
    TransactionHistory,
    balance_label,
    signed_amount,
)
from backend.app.schemas.ledger import Transaction

T1 = datetime(2024, 4, 10, 9, 0)
T2 = datetime(2024, 5, 1, 9, 0)
T3 = datetime(2024, 5, 20, 9, 0)


def entry(id, kind, when, direction, amount, before, after, reference=None, invoice_kind=None):
    return Transaction.model_validate({
        "id": id,
        "kind": kind,
        "transactionDate": when.isoformat(),
        "direction": direction,
        "amount": amount,
        "balanceBefore": before,
        "balanceAfter": after,
        "reference": reference,
        "invoiceKind": invoice_kind,
    })


def payment(id, when, amount, before, after):
    return entry(id, "PAYMENT", when, "CREDIT", amount, before, after, {"type": "PAYMENT", "id": f"pay-{id}"})


def subscription_invoice(id, when, amount, before, after):
    return entry(id, "INVOICE", when, "DEBIT", amount, before, after, {"type": "INVOICE", "id": f"inv-{id}"},
                 "SUBSCRIPTION")


@pytest.fixture
def history():
    # Delivered out of order on purpose
    return TransactionHistory([
        payment("t1", T1, "100", "600", "500"),
        payment("t3", T3, "200", "999", "799"),
        subscription_invoice("t2", T2, "499", "500", "999"),
    ])


def test_entries_sorted_newest_first(history):
    assert [e.id for e in history] == ["t3", "t2", "t1"]


def test_only_latest_payment_is_deletable(history):
    flags = [history.is_deletable(e, position) for position, e in enumerate(history)]
    assert flags == [True, False, False]
    assert history.deletable_entry().id == "t3"


def test_latest_subscription_invoice_never_deletable():
    history = TransactionHistory([
        payment("t1", T1, "100", "600", "500"),
        subscription_invoice("t2", T2, "499", "500", "999"),
    ])
    assert history.deletable_entry() is None
    assert history.deletion_blocker(history.entries[0], 0) == "Subscription invoices cannot be deleted"


def test_non_latest_entry_blocker_message(history):
    _, oldest = history.locate("t1")
    assert history.deletion_blocker(oldest, 2) == "Only the most recent ledger entry can be deleted"


def test_equal_timestamps_keep_service_order():
    history = TransactionHistory([
        entry("a", "BALANCE_ADJUSTMENT", T3, "DEBIT", "10", "0", "10"),
        entry("b", "ADD_ON_BILL", T3, "DEBIT", "5", "10", "15", {"type": "INVOICE", "id": "inv-b"}),
    ])
    assert [e.id for e in history] == ["a", "b"]


def test_locate_unknown_raises(history):
    with pytest.raises(NotFoundError):
        history.locate("missing")


def test_delete_route_for_payment_and_other_entries(history):
    assert TransactionHistory.delete_route(history.entries[0]) == (DELETE_PAYMENT, "pay-t3")
    adjustment = entry("adj", "BALANCE_ADJUSTMENT", T3, "CREDIT", "50", "300", "250")
    assert TransactionHistory.delete_route(adjustment) == (DELETE_TRANSACTION, "adj")


def test_preview_target(history):
    assert TransactionHistory.preview_target(history.entries[0]) == (PREVIEW_PAYMENT, "pay-t3")
    assert TransactionHistory.preview_target(history.entries[1]) == (PREVIEW_INVOICE, "inv-t2")
    adjustment = entry("adj", "BALANCE_ADJUSTMENT", T3, "CREDIT", "50", "300", "250")
    with pytest.raises(NotFoundError):
        TransactionHistory.preview_target(adjustment)


def test_inconsistent_entry_logged(caplog):
    TransactionHistory([entry("bad", "PAYMENT", T1, "CREDIT", "100", "500", "450")])
    assert "balance mismatch" in caplog.text


def test_display_helpers(history):
    assert signed_amount(history.entries[0]) == "(-) ₹200"
    assert signed_amount(history.entries[1]) == "(+) ₹499"
    assert balance_label(Decimal("0")) == "₹0"
    assert balance_label(Decimal("120.50")) == "₹120.50 Due"
    assert balance_label(Decimal("-1500")) == "₹1,500 Advance"


def test_rows_carry_deletable_flag(history):
    rows = history.rows()
    assert rows[0]["title"] == "Payment On 20 May 24"
    assert rows[0]["deletable"] is True
    assert rows[1]["subtitle"] == "Billed On 01 May 2024"
    assert [row["position"] for row in rows] == [0, 1, 2]


def test_stats(history):
    stats = history.stats()
    assert stats.count == 3
    assert stats.counts_by_kind == {"PAYMENT": 2, "INVOICE": 1}
    assert stats.total_debits == Decimal("499.00")
    assert stats.total_credits == Decimal("300.00")


def test_csv_export(history):
    rows = list(csv.reader(io.StringIO(history.to_csv())))
    assert rows[0][0] == "date"
    assert len(rows) == 4
    assert rows[1][1] == "PAYMENT"
    assert Decimal(rows[1][4]) == Decimal("200")
