"""
Ledger projection and action gate tests.
"""

from datetime import date, datetime
from decimal import Decimal

from backend.app.domain.billing.ledger_projection import BusyFlags, LedgerProjection, balance_status
from backend.app.domain.billing.transaction_history import TransactionHistory
from backend.app.models.ledger_enums import BalanceStatus, Section
from backend.app.schemas.ledger import Customer, LedgerSummary, Transaction


def make_projection(balance="499", last_bill=None, entries=()):
    summary = LedgerSummary.model_validate({"currentBalance": balance, "lastBill": last_bill})
    customer = Customer(id="c1", name="Asha Rao", balance=Decimal(balance))
    return LedgerProjection(customer, summary, TransactionHistory(entries))


def test_balance_status():
    assert balance_status(Decimal("0")) == BalanceStatus.PAID
    assert balance_status(Decimal("10")) == BalanceStatus.UNPAID
    assert balance_status(Decimal("-10")) == BalanceStatus.CREDIT


def test_last_subscription_period_end_only_from_subscription_bills():
    projection = make_projection(last_bill={"id": "inv-1", "periodEnd": "2024-05-31", "invoiceKind": "SUBSCRIPTION"})
    assert projection.last_subscription_period_end == date(2024, 5, 31)

    projection = make_projection(last_bill={"id": "inv-2", "periodEnd": "2024-05-31", "invoiceKind": "OTHER"})
    assert projection.last_subscription_period_end is None


def test_gates_when_idle():
    projection = make_projection(last_bill={"id": "inv-1", "periodEnd": "2024-05-31"})
    gates = projection.gates(BusyFlags())
    assert gates.collect_payment and gates.adjust_balance and gates.add_on_bill
    assert gates.renew and gates.renew_from_last_invoice
    assert gates.delete_latest is False


def test_gates_follow_busy_flags():
    projection = make_projection()
    gates = projection.gates(BusyFlags(payment=True, draft=True))
    assert gates.collect_payment is False
    assert gates.renew is False
    assert gates.adjust_balance is True
    assert gates.renew_from_last_invoice is False


def test_submitting_draft_blocks_renew():
    gates = make_projection().gates(BusyFlags(), draft_idle=False)
    assert gates.renew is False


def test_delete_gate_tracks_history():
    latest = Transaction.model_validate({
        "id": "t1", "kind": "PAYMENT", "transactionDate": datetime(2024, 6, 1).isoformat(),
        "direction": "CREDIT", "amount": "100", "balanceBefore": "599", "balanceAfter": "499",
        "reference": {"type": "PAYMENT", "id": "pay-1"},
    })
    projection = make_projection(entries=[latest])
    assert projection.gates(BusyFlags()).delete_latest is True
    assert projection.gates(BusyFlags(delete=True)).delete_latest is False


def test_sections_map():
    gates = make_projection().gates(BusyFlags(add_on=True))
    sections = gates.sections(loaded=True)
    assert sections[Section.ADD_ON_BILL] is False
    assert sections[Section.BALANCE_HISTORY] is True
    assert len(sections) == len(Section)
