"""
Centralized Test Configuration.

Wires the API to an in-memory audit database, a mock Redis and a fake
ledger/catalog service served through httpx.MockTransport.
"""

import itertools
import json
import re
from datetime import datetime, timedelta
from decimal import Decimal

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
from backend.app.core.dependencies import get_catalog_client, get_ledger_client
from backend.app.services.cache import LedgerReadCache
from backend.app.services.customer_workspace import CustomerWorkspace
from backend.app.services.ledger_client import CatalogClient, LedgerClient
from backend.app.services.workspace_registry import workspace_registry

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

LEDGER_URL = "http://ledger.test"
CATALOG_URL = "http://catalog.test"


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("Redis is down")

    async def ping(self):
        self._check()
        if self._closed:
            return False
        return True

    async def get(self, key):
        self._check()
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, *keys):
        self._check()
        if self._closed:
            return 0
        removed = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                removed += 1
        return removed

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


def _money(value) -> str:
    return str(Decimal(str(value)).quantize(Decimal("0.01")))


class FakeLedgerService:
    """
    In-memory stand-in for the remote ledger and catalog services.

    Speaks camelCase JSON inside a {success, data} envelope. Tests can
    inject a canned response or a transport exception per (method, path)
    through `failures`.
    """

    def __init__(self):
        self.customers = {}
        self.transactions = {}
        self.invoices = {}
        self.payments = {}
        self.pending_charges = {}
        self.plans = []
        self.requests = []
        self.failures = {}
        self.envelope = True
        self._ids = itertools.count(100)
        self._clock = datetime(2024, 6, 1, 10, 0, 0)

    # -- seeding -----------------------------------------------------------

    def add_customer(self, customer_id, balance="0", subscriptions=None, subscription=None, name="Asha Rao"):
        self.customers[customer_id] = {
            "id": customer_id,
            "name": name,
            "phone": "9800000000",
            "balance": _money(balance),
            "area": {"id": "a1", "areaName": "North Block"},
            "subscriptions": subscriptions or [],
            "subscription": subscription,
        }
        self.transactions.setdefault(customer_id, [])
        return self.customers[customer_id]

    def add_invoice(self, customer_id, amount, period_start, period_end, when, invoice_kind="SUBSCRIPTION"):
        """Seed a subscription invoice and its ledger entry."""
        invoice = {
            "id": f"inv-{next(self._ids)}",
            "customerId": customer_id,
            "periodStart": period_start,
            "periodEnd": period_end,
            "items": [],
            "subtotal": _money(amount),
            "amountTotal": _money(amount),
            "status": "UNPAID",
            "invoiceKind": invoice_kind,
        }
        self.invoices[invoice["id"]] = invoice
        self._book(customer_id, "INVOICE", "DEBIT", amount, {"type": "INVOICE", "id": invoice["id"]},
                   when=when, invoice_kind=invoice_kind)
        return invoice

    def add_payment(self, customer_id, amount, when):
        payment = {"id": f"pay-{next(self._ids)}", "customerId": customer_id, "amount": _money(amount),
                   "discount": "0.00", "method": "CASH"}
        self.payments[payment["id"]] = payment
        self._book(customer_id, "PAYMENT", "CREDIT", amount, {"type": "PAYMENT", "id": payment["id"]}, when=when)
        return payment

    def add_pending_charge(self, customer_id, amount, description="Router installation",
                           charge_type="ROUTER_INSTALLATION", status="PENDING"):
        charge = {
            "id": f"pc-{next(self._ids)}",
            "customerId": customer_id,
            "chargeType": charge_type,
            "description": description,
            "amount": _money(amount),
            "status": status,
            "createdAt": self._now().isoformat(),
        }
        self.pending_charges[charge["id"]] = charge
        return charge

    def seed_default(self):
        """Customer c1: one Fiber 100 subscription billed for May, owing 499."""
        self.plans = [
            {"id": "p1", "name": "Fiber 100", "monthlyPrice": "499", "code": "F100"},
            {"id": "p2", "name": "Fiber 200", "monthlyPrice": "799", "code": "F200"},
        ]
        self.add_customer(
            "c1",
            subscriptions=[{
                "id": "s1",
                "plan": {"id": "p1", "name": "Fiber 100"},
                "agreedMonthlyPrice": "499",
                "billingCycle": "MONTHLY",
                "billingCycleValue": 1,
                "status": "ACTIVE",
            }],
        )
        self.add_invoice("c1", "499", "2024-05-01", "2024-05-31", when=datetime(2024, 5, 1, 9, 0))
        self.add_customer("c2", balance="0", name="Ravi Kumar")

    # -- helpers -----------------------------------------------------------

    def _now(self):
        self._clock += timedelta(minutes=1)
        return self._clock

    def _book(self, customer_id, kind, direction, amount, reference, when=None, invoice_kind=None, description=None):
        customer = self.customers[customer_id]
        amount = Decimal(str(amount))
        before = Decimal(customer["balance"])
        after = before + amount if direction == "DEBIT" else before - amount
        customer["balance"] = _money(after)
        entry = {
            "id": f"txn-{next(self._ids)}",
            "customerId": customer_id,
            "kind": kind,
            "transactionDate": (when or self._now()).isoformat(),
            "balanceBefore": _money(before),
            "balanceAfter": _money(after),
            "direction": direction,
            "amount": _money(amount),
            "reference": reference,
            "invoiceKind": invoice_kind,
            "description": description,
        }
        self.transactions[customer_id].append(entry)
        return entry

    def _unbook(self, customer_id, entry):
        customer = self.customers[customer_id]
        amount = Decimal(entry["amount"])
        balance = Decimal(customer["balance"])
        balance = balance - amount if entry["direction"] == "DEBIT" else balance + amount
        customer["balance"] = _money(balance)
        self.transactions[customer_id].remove(entry)

    def _find_entry(self, predicate):
        for customer_id, entries in self.transactions.items():
            for entry in entries:
                if predicate(entry):
                    return customer_id, entry
        return None, None

    def _latest(self, customer_id, collection):
        found = [item for item in collection.values() if item.get("customerId") == customer_id]
        return found[-1] if found else None

    def requests_to(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    # -- transport ---------------------------------------------------------

    def _ok(self, data, status_code=200):
        body = {"success": True, "data": data} if self.envelope else data
        return httpx.Response(status_code, json=body)

    def _missing(self, what):
        return httpx.Response(404, json={"success": False, "message": f"{what} not found"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method, path = request.method, request.url.path

        failure = self.failures.get((method, path))
        if isinstance(failure, Exception):
            raise failure
        if failure is not None:
            return failure

        body = json.loads(request.content) if request.content else {}

        if method == "GET" and path == "/plans":
            return self._ok(self.plans)

        match = re.fullmatch(r"/customers/([^/]+)", path)
        if match and method == "GET":
            customer = self.customers.get(match.group(1))
            return self._ok(customer) if customer else self._missing("Customer")

        match = re.fullmatch(r"/customers/([^/]+)/billing-summary", path)
        if match and method == "GET":
            customer_id = match.group(1)
            customer = self.customers.get(customer_id)
            if customer is None:
                return self._missing("Customer")
            return self._ok({
                "currentBalance": customer["balance"],
                "lastBill": self._latest(customer_id, self.invoices),
                "lastPayment": self._latest(customer_id, self.payments),
            })

        match = re.fullmatch(r"/transactions/customer/([^/]+)", path)
        if match and method == "GET":
            customer_id = match.group(1)
            if customer_id not in self.customers:
                return self._missing("Customer")
            return self._ok({"transactions": list(self.transactions[customer_id])})

        if method == "POST" and path == "/payments/record":
            customer_id = body["customerId"]
            payment = {
                "id": f"pay-{next(self._ids)}",
                "customerId": customer_id,
                "invoiceId": body.get("invoiceId"),
                "amount": body["amount"],
                "discount": body["discount"],
                "method": body["method"],
                "collectedAt": body["collectedAt"],
                "comments": body.get("comments"),
            }
            self.payments[payment["id"]] = payment
            self._book(customer_id, "PAYMENT", "CREDIT", body["totalPayable"], {"type": "PAYMENT", "id": payment["id"]})
            return self._ok(payment, 201)

        match = re.fullmatch(r"/customers/([^/]+)/balance-adjustments", path)
        if match and method == "POST":
            entry = self._book(match.group(1), "BALANCE_ADJUSTMENT", body["direction"], body["amount"], None,
                               description=body.get("reason"))
            return self._ok(entry, 201)

        match = re.fullmatch(r"/customers/([^/]+)/add-on-bills", path)
        if match and method == "POST":
            customer_id = match.group(1)
            invoice = {
                "id": f"inv-{next(self._ids)}",
                "customerId": customer_id,
                "items": [{"name": body["itemName"], "quantity": 1, "unitPrice": body["price"],
                           "totalAmount": body["price"], "itemType": "FIXED_BILL"}],
                "subtotal": body["price"],
                "amountTotal": body["price"],
                "invoiceKind": "OTHER",
            }
            self.invoices[invoice["id"]] = invoice
            self._book(customer_id, "ADD_ON_BILL", "DEBIT", body["price"], {"type": "INVOICE", "id": invoice["id"]},
                       description=body["itemName"])
            return self._ok(invoice, 201)

        match = re.fullmatch(r"/customers/([^/]+)/invoices", path)
        if match and method == "POST":
            customer_id = match.group(1)
            charged = Decimal(body["subtotal"]) + Decimal(body["additionalAmount"])
            invoice = {
                "id": f"inv-{next(self._ids)}",
                "customerId": customer_id,
                "periodStart": body["periodStart"],
                "periodEnd": body["periodEnd"],
                "items": body["items"],
                "subtotal": body["subtotal"],
                "amountTotal": body["amountTotal"],
                "status": "UNPAID",
                "invoiceKind": "SUBSCRIPTION",
            }
            self.invoices[invoice["id"]] = invoice
            self._book(customer_id, "INVOICE", "DEBIT", charged, {"type": "INVOICE", "id": invoice["id"]},
                       invoice_kind="SUBSCRIPTION")
            return self._ok(invoice, 201)

        match = re.fullmatch(r"/invoices/([^/]+)", path)
        if match and method == "GET":
            invoice = self.invoices.get(match.group(1))
            return self._ok(invoice) if invoice else self._missing("Invoice")

        match = re.fullmatch(r"/payments/([^/]+)", path)
        if match and method == "GET":
            payment = self.payments.get(match.group(1))
            return self._ok(payment) if payment else self._missing("Payment")
        if match and method == "DELETE":
            payment_id = match.group(1)
            if self.payments.pop(payment_id, None) is None:
                return self._missing("Payment")
            customer_id, entry = self._find_entry(lambda e: (e.get("reference") or {}).get("id") == payment_id)
            if entry is not None:
                self._unbook(customer_id, entry)
            return self._ok(None)

        match = re.fullmatch(r"/transactions/([^/]+)", path)
        if match and method == "DELETE":
            customer_id, entry = self._find_entry(lambda e: e["id"] == match.group(1))
            if entry is None:
                return self._missing("Transaction")
            self._unbook(customer_id, entry)
            return self._ok(None)

        match = re.fullmatch(r"/pending-charges/customer/([^/]+)(/summary)?", path)
        if match and method == "GET":
            customer_id = match.group(1)
            if customer_id not in self.customers:
                return self._missing("Customer")
            charges = [c for c in self.pending_charges.values() if c["customerId"] == customer_id]
            if not match.group(2):
                return self._ok(charges)
            open_charges = [c for c in charges if c["status"] == "PENDING"]
            total = sum((Decimal(c["amount"]) for c in open_charges), Decimal("0"))
            return self._ok({"totalAmount": _money(total), "charges": open_charges})

        if method == "POST" and path == "/pending-charges":
            charge = self.add_pending_charge(body["customerId"], body["amount"], body["description"], body["chargeType"])
            return self._ok(charge, 201)

        match = re.fullmatch(r"/pending-charges/([^/]+)", path)
        if match and method in ("PUT", "DELETE"):
            charge_id = match.group(1)
            if charge_id not in self.pending_charges:
                return self._missing("Pending charge")
            if method == "DELETE":
                return self._ok(self.pending_charges.pop(charge_id))
            charge = self.pending_charges[charge_id]
            charge.update(chargeType=body["chargeType"], description=body["description"], amount=_money(body["amount"]))
            return self._ok(charge)

        return httpx.Response(405, json={"success": False, "message": f"{method} {path} not supported"})


@pytest.fixture
def ledger_service():
    service = FakeLedgerService()
    service.seed_default()
    return service


@pytest.fixture
async def ledger_client(ledger_service):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(ledger_service.handler), base_url=LEDGER_URL)
    client = LedgerClient(http_client=http_client, timeout_seconds=2)
    yield client
    await client.aclose()


@pytest.fixture
async def catalog_client(ledger_service):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(ledger_service.handler), base_url=CATALOG_URL)
    client = CatalogClient(http_client=http_client, timeout_seconds=2)
    yield client
    await client.aclose()


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def cache(mock_redis):
    return LedgerReadCache(mock_redis, ttl_seconds=60, enabled=True)


@pytest.fixture
def workspace(ledger_client, catalog_client, cache):
    return CustomerWorkspace("ws-test", ledger_client, catalog_client, cache)


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory, mock_redis, ledger_client, catalog_client):
    """Async client for testing, with every outside dependency overridden."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_ledger_client] = lambda: ledger_client
    app.dependency_overrides[get_catalog_client] = lambda: catalog_client
    workspace_registry.clear()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
    workspace_registry.clear()
