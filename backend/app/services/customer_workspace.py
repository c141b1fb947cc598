"""
Customer workspace service.

One workspace follows one customer at a time. It owns the payment,
adjustment, add-on and bill-draft forms, forwards their submissions to the
ledger service and reloads customer, summary and history after every
successful mutation.

Switching customers bumps the workspace generation. Any reload or
submission that resolves under an older generation is dropped instead of
being applied to the new customer's screen.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional, Tuple, Union

from backend.app.core.exceptions import AppException, DeletionNotAllowedError, NotFoundError, ValidationError
from backend.app.core.reliability import SingleFlight
from backend.app.domain.billing.add_on_calculator import AddOnCalculator
from backend.app.domain.billing.adjustment_calculator import AdjustmentCalculator
from backend.app.domain.billing.bill_draft import BillDraft
from backend.app.domain.billing.ledger_projection import ActionGates, BusyFlags, LedgerProjection
from backend.app.domain.billing.payment_recorder import PaymentRecorder
from backend.app.domain.billing.pending_charges import is_open, pending_charge_payload
from backend.app.domain.billing.renewal_dates import RenewalDateCalculator, RenewalPeriod
from backend.app.domain.billing.transaction_history import (
    DELETE_PAYMENT,
    PREVIEW_INVOICE,
    TransactionHistory,
)
from backend.app.models.ledger_enums import DraftState, Section, SubmitAction
from backend.app.schemas.ledger import Invoice, Payment, PendingCharge, PendingChargeSummary, Plan, Transaction
from backend.app.services.cache import LedgerReadCache
from backend.app.services.ledger_client import CatalogClient, LedgerClient

logger = logging.getLogger(__name__)

PERIOD_FROM_LAST_INVOICE = "last_invoice"
PERIOD_FROM_TODAY = "today"


@dataclass
class MutationResult:
    """
    A mutation the ledger accepted.

    `reload_error` is set when the refresh that follows it failed; the
    mutation itself stands and must not be submitted again.
    """
    record: Union[Payment, Transaction, Invoice]
    applied: bool = True
    reload_error: Optional[str] = None


@dataclass
class DraftSubmission:
    invoice: Invoice
    action: SubmitAction
    applied: bool = True
    next_section: Optional[Section] = None
    preview: Optional[Invoice] = None
    follow_up_error: Optional[str] = None
    reload_error: Optional[str] = None


@dataclass
class DeletionResult:
    transaction_id: str
    route: str
    remote_id: str
    applied: bool = True
    reload_error: Optional[str] = None


class CustomerWorkspace:

    def __init__(self, workspace_id: str, ledger: LedgerClient, catalog: CatalogClient, cache: LedgerReadCache):
        self.workspace_id = workspace_id
        self.ledger = ledger
        self.catalog = catalog
        self.cache = cache
        self.customer_id: Optional[str] = None
        self.generation = 0
        self.projection: Optional[LedgerProjection] = None
        self._reset_forms()

    def _reset_forms(self) -> None:
        self.payment = PaymentRecorder()
        self.adjustment = AdjustmentCalculator()
        self.add_on = AddOnCalculator()
        self.draft = BillDraft()
        self.payment_flight = SingleFlight("payment")
        self.adjustment_flight = SingleFlight("balance adjustment")
        self.add_on_flight = SingleFlight("add-on bill")
        self.draft_flight = SingleFlight("bill draft")
        self.delete_flight = SingleFlight("delete")
        self.pending_flight = SingleFlight("pending charge")

    # -- context -----------------------------------------------------------

    def _context(self) -> Tuple[str, int]:
        if self.customer_id is None:
            raise ValidationError({"customer_id": "No customer is open in this workspace"})
        return self.customer_id, self.generation

    def require_projection(self) -> LedgerProjection:
        self._context()
        if self.projection is None:
            raise NotFoundError("Ledger projection for customer", self.customer_id)
        return self.projection

    @property
    def current_balance(self) -> Decimal:
        return self.require_projection().current_balance

    async def open_customer(self, customer_id: str) -> bool:
        """Point the workspace at a customer, dropping every form of the previous one."""
        self.generation += 1
        self.customer_id = str(customer_id)
        self.projection = None
        self._reset_forms()
        logger.info("Workspace %s opened customer %s", self.workspace_id, self.customer_id)
        return await self.reload()

    async def reload(self, fresh: bool = False) -> bool:
        """
        Read customer, summary and history together.

        Returns False when the workspace moved to another customer while the
        reads were in flight; the results are then discarded.
        """
        customer_id, generation = self._context()
        if fresh:
            await self.cache.invalidate_customer(customer_id)
        customer, summary, transactions = await asyncio.gather(
            self.cache.customer(customer_id, lambda: self.ledger.get_customer(customer_id)),
            self.cache.summary(customer_id, lambda: self.ledger.get_summary(customer_id)),
            self.cache.history(customer_id, lambda: self.ledger.list_transactions(customer_id)),
        )
        if generation != self.generation:
            logger.info("Discarding reload of customer %s: workspace %s moved on", customer_id, self.workspace_id)
            return False
        self.projection = LedgerProjection(customer, summary, TransactionHistory(transactions))
        return True

    async def _after_mutation(self, customer_id: str, generation: int) -> Tuple[bool, Optional[str]]:
        """
        Refresh after a mutation the ledger already accepted.

        Returns (applied, reload_error). A failed refresh leaves the previous
        projection on screen and is reported, never raised.
        """
        if generation != self.generation:
            await self.cache.invalidate_customer(customer_id)
            logger.info("Mutation for customer %s resolved after workspace %s moved on", customer_id, self.workspace_id)
            return False, None
        try:
            applied = await self.reload(fresh=True)
        except AppException as e:
            logger.error("Reload of customer %s after a mutation failed: %s", customer_id, e.message)
            return True, e.message
        return applied, None

    def gates(self) -> ActionGates:
        if self.projection is None:
            return ActionGates()
        busy = BusyFlags(
            payment=self.payment_flight.busy,
            adjustment=self.adjustment_flight.busy,
            add_on=self.add_on_flight.busy,
            draft=self.draft_flight.busy,
            delete=self.delete_flight.busy,
        )
        return self.projection.gates(busy, draft_idle=self.draft.state != DraftState.SUBMITTING)

    # -- simple forms ------------------------------------------------------

    def edit_payment(self, **changes) -> None:
        self.payment_flight.ensure_idle()
        self.payment.update(**changes)

    def edit_adjustment(self, **changes) -> None:
        self.adjustment_flight.ensure_idle()
        self.adjustment.update(**changes)

    def edit_add_on(self, **changes) -> None:
        self.add_on_flight.ensure_idle()
        self.add_on.update(**changes)

    async def _settle(self, record, customer_id: str, generation: int, form) -> MutationResult:
        if generation == self.generation:
            form.reset()
        applied, reload_error = await self._after_mutation(customer_id, generation)
        return MutationResult(record=record, applied=applied, reload_error=reload_error)

    async def record_payment(self) -> MutationResult:
        async with self.payment_flight.claim():
            customer_id, generation = self._context()
            form = self.payment
            payload = form.build_payload(customer_id, self.current_balance)
            payment = await self.ledger.create_payment(payload)
            logger.info("Recorded payment %s for customer %s", payment.id, customer_id)
            return await self._settle(payment, customer_id, generation, form)

    async def adjust_balance(self) -> MutationResult:
        async with self.adjustment_flight.claim():
            customer_id, generation = self._context()
            form = self.adjustment
            payload = form.build_payload(customer_id, self.current_balance)
            entry = await self.ledger.create_adjustment(customer_id, payload)
            logger.info("Adjusted balance of customer %s by %s %s", customer_id, payload["direction"], payload["amount"])
            return await self._settle(entry, customer_id, generation, form)

    async def bill_add_on(self) -> MutationResult:
        async with self.add_on_flight.claim():
            customer_id, generation = self._context()
            form = self.add_on
            payload = form.build_payload(customer_id, self.current_balance)
            invoice = await self.ledger.create_add_on_invoice(customer_id, payload)
            logger.info("Billed add-on %r to customer %s as invoice %s", payload["itemName"], customer_id, invoice.id)
            return await self._settle(invoice, customer_id, generation, form)

    # -- bill draft --------------------------------------------------------

    async def list_plans(self) -> List[Plan]:
        return await self.cache.plans(self.catalog.list_active_plans)

    async def toggle_plan(self, plan_id: str) -> bool:
        plans = await self.list_plans()
        plan = next((plan for plan in plans if plan.id == str(plan_id)), None)
        if plan is None:
            raise NotFoundError("Active plan", plan_id)
        return self.draft.toggle_plan(plan)

    def default_period_months(self) -> int:
        customer = self.require_projection().customer
        for subscription in customer.subscriptions:
            if subscription.is_billable:
                return subscription.period_months
        if customer.subscription is not None:
            return customer.subscription.period_months
        return 1

    def suggest_period(self, mode: str, period_months: Optional[int] = None, today: Optional[date] = None) -> RenewalPeriod:
        months = period_months if period_months is not None else self.default_period_months()
        if mode == PERIOD_FROM_LAST_INVOICE:
            period = RenewalDateCalculator.from_last_invoice(self.require_projection().last_subscription_period_end, months)
            if period.is_empty:
                raise ValidationError({"period": "No previous subscription invoice to continue from"})
            return period
        if mode == PERIOD_FROM_TODAY:
            return RenewalDateCalculator.from_today(months, today)
        raise ValidationError({"mode": f"Unknown period mode: {mode}"})

    def stage_draft(self, period_start: date, period_end: date):
        projection = self.require_projection()
        return self.draft.stage(projection.customer, period_start, period_end, projection.current_balance)

    async def submit_draft(self, action: SubmitAction) -> DraftSubmission:
        async with self.draft_flight.claim():
            customer_id, generation = self._context()
            draft = self.draft
            payload = draft.begin_submit()
            try:
                invoice = await self.ledger.create_subscription_invoice(customer_id, payload)
            except Exception:
                draft.submit_failed()
                raise
            draft.submit_succeeded()
            logger.info("Generated invoice %s for customer %s (%s)", invoice.id, customer_id, action.value)

            submission = DraftSubmission(invoice=invoice, action=action)
            applied, submission.reload_error = await self._after_mutation(customer_id, generation)
            if not applied:
                submission.applied = False
                return submission

            if action == SubmitAction.GENERATE_AND_COLLECT:
                self.payment.prefill(Decimal(payload["amountTotal"]), invoice.id)
                submission.next_section = Section.COLLECT_PAYMENT
            elif action == SubmitAction.GENERATE_AND_VIEW:
                # The invoice already exists; a failed preview only gets reported
                try:
                    submission.preview = await self.ledger.get_invoice(invoice.id)
                except AppException as e:
                    logger.warning("Preview of new invoice %s failed: %s", invoice.id, e.message)
                    submission.follow_up_error = e.message
            return submission

    # -- pending charges -------------------------------------------------

    async def pending_charges(self) -> PendingChargeSummary:
        """Charges waiting for the next invoice; read fresh, never cached."""
        customer_id, _ = self._context()
        return await self.ledger.get_pending_summary(customer_id)

    async def _open_charge(self, customer_id: str, charge_id: str) -> PendingCharge:
        charges = await self.ledger.list_pending_charges(customer_id)
        charge = next((charge for charge in charges if charge.id == str(charge_id)), None)
        if charge is None:
            raise NotFoundError("Pending charge", charge_id)
        if not is_open(charge.status):
            raise ValidationError({"status": "Charge was already applied to an invoice"})
        return charge

    async def add_pending_charge(self, description: Any, amount: Any, charge_type: Any = None) -> PendingCharge:
        async with self.pending_flight.claim():
            customer_id, _ = self._context()
            payload = pending_charge_payload(customer_id, description, amount, charge_type)
            charge = await self.ledger.create_pending_charge(payload)
            logger.info("Parked pending charge %s (%s) for customer %s", charge.id, payload["amount"], customer_id)
            return charge

    async def update_pending_charge(
        self, charge_id: str, description: Any = None, amount: Any = None, charge_type: Any = None
    ) -> PendingCharge:
        """Edit an open charge; fields left as None keep their stored value."""
        async with self.pending_flight.claim():
            customer_id, _ = self._context()
            current = await self._open_charge(customer_id, charge_id)
            payload = pending_charge_payload(
                customer_id,
                current.description if description is None else description,
                current.amount if amount is None else amount,
                current.charge_type if charge_type is None else charge_type,
            )
            charge = await self.ledger.update_pending_charge(current.id, payload)
            logger.info("Updated pending charge %s of customer %s", charge.id, customer_id)
            return charge

    async def remove_pending_charge(self, charge_id: str) -> PendingCharge:
        async with self.pending_flight.claim():
            customer_id, _ = self._context()
            charge = await self._open_charge(customer_id, charge_id)
            await self.ledger.delete_pending_charge(charge.id)
            logger.info("Removed pending charge %s of customer %s", charge.id, customer_id)
            return charge

    # -- history -----------------------------------------------------------

    async def delete_entry(self, transaction_id: str, confirmed: bool) -> DeletionResult:
        if not confirmed:
            raise DeletionNotAllowedError(transaction_id, "Deleting a ledger entry is irreversible and must be confirmed")
        async with self.delete_flight.claim():
            customer_id, generation = self._context()
            history = self.require_projection().history
            position, entry = history.locate(str(transaction_id))
            blocker = history.deletion_blocker(entry, position)
            if blocker:
                raise DeletionNotAllowedError(transaction_id, blocker)

            route, remote_id = history.delete_route(entry)
            if route == DELETE_PAYMENT:
                await self.ledger.delete_payment(remote_id)
            else:
                await self.ledger.delete_transaction(remote_id)
            logger.info("Deleted %s %s of customer %s", route, remote_id, customer_id)

            applied, reload_error = await self._after_mutation(customer_id, generation)
            return DeletionResult(
                transaction_id=entry.id, route=route, remote_id=remote_id, applied=applied, reload_error=reload_error
            )

    async def preview_entry(self, transaction_id: str) -> Tuple[str, Union[Invoice, Payment]]:
        history = self.require_projection().history
        _, entry = history.locate(str(transaction_id))
        target, remote_id = history.preview_target(entry)
        if target == PREVIEW_INVOICE:
            return target, await self.ledger.get_invoice(remote_id)
        return target, await self.ledger.get_payment(remote_id)
