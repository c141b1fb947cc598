"""
Remote ledger client tests.

Error mapping, envelope handling and the circuit breaker around transport
failures.
"""

from decimal import Decimal

import httpx
import pytest

from backend.app.core.exceptions import (
    NotFoundError,
    RemoteRejectionError,
    RemoteTimeoutError,
    ServiceUnavailableError,
)
from backend.app.core.reliability import CircuitBreaker
from backend.app.services.ledger_client import LedgerClient, RemoteServerError

LEDGER_URL = "http://ledger.test"


@pytest.mark.asyncio
async def test_reads_customer_through_envelope(ledger_client):
    customer = await ledger_client.get_customer("c1")
    assert customer.name == "Asha Rao"
    assert customer.subscriptions[0].plan.name == "Fiber 100"


@pytest.mark.asyncio
async def test_reads_bare_payload_without_envelope(ledger_client, ledger_service):
    ledger_service.envelope = False
    history = await ledger_client.list_transactions("c1")
    assert len(history) == 1
    assert history[0].is_subscription_invoice


@pytest.mark.asyncio
async def test_missing_customer_maps_to_not_found(ledger_client):
    with pytest.raises(NotFoundError) as exc:
        await ledger_client.get_customer("nobody")
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_rejection_keeps_remote_message(ledger_client, ledger_service):
    ledger_service.failures[("POST", "/payments/record")] = httpx.Response(
        400, json={"success": False, "message": "Invoice already settled"}
    )
    with pytest.raises(RemoteRejectionError) as exc:
        await ledger_client.create_payment({"customerId": "c1"})
    assert exc.value.message == "Invoice already settled"
    assert exc.value.remote_status == 400


@pytest.mark.asyncio
async def test_unsuccessful_envelope_is_rejection(ledger_client, ledger_service):
    ledger_service.failures[("GET", "/invoices/inv-x")] = httpx.Response(
        200, json={"success": False, "message": "Invoice locked"}
    )
    with pytest.raises(RemoteRejectionError, match="Invoice locked"):
        await ledger_client.get_invoice("inv-x")


@pytest.mark.asyncio
async def test_unexpected_payload_is_rejection(ledger_client, ledger_service):
    ledger_service.failures[("GET", "/customers/c1")] = httpx.Response(200, json={"success": True, "data": {"id": "c1"}})
    with pytest.raises(RemoteRejectionError):
        await ledger_client.get_customer("c1")


@pytest.mark.asyncio
async def test_timeout_maps_to_remote_timeout(ledger_client, ledger_service):
    ledger_service.failures[("GET", "/customers/c1")] = httpx.ReadTimeout("read timed out")
    with pytest.raises(RemoteTimeoutError) as exc:
        await ledger_client.get_customer("c1")
    assert exc.value.status_code == 504
    assert exc.value.details["timeout_seconds"] == 2


@pytest.mark.asyncio
async def test_server_error_is_rejection(ledger_client, ledger_service):
    ledger_service.failures[("GET", "/customers/c1")] = httpx.Response(503, json={"message": "maintenance"})
    with pytest.raises(RemoteServerError):
        await ledger_client.get_customer("c1")


@pytest.mark.asyncio
async def test_circuit_opens_after_transport_failures(ledger_service):
    ledger_service.failures[("GET", "/customers/c1")] = httpx.ConnectError("connection refused")
    client = LedgerClient(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(ledger_service.handler), base_url=LEDGER_URL),
        breaker=CircuitBreaker(
            failure_threshold=2, reset_timeout=60, trip_on=(httpx.TransportError, RemoteServerError)
        ),
    )

    for _ in range(2):
        with pytest.raises(ServiceUnavailableError):
            await client.get_customer("c1")
    calls_before = len(ledger_service.requests)

    with pytest.raises(ServiceUnavailableError, match="unavailable"):
        await client.get_customer("c1")
    assert len(ledger_service.requests) == calls_before
    await client.aclose()


@pytest.mark.asyncio
async def test_rejections_do_not_trip_circuit(ledger_client, ledger_service):
    for _ in range(10):
        with pytest.raises(NotFoundError):
            await ledger_client.get_invoice("missing")
    assert ledger_client.breaker.state == "CLOSED"


@pytest.mark.asyncio
async def test_correlation_id_forwarded(ledger_client, ledger_service):
    from backend.app.core.observability import correlation_id_var

    token = correlation_id_var.set("corr-123")
    try:
        await ledger_client.get_customer("c1")
    finally:
        correlation_id_var.reset(token)
    assert ledger_service.requests[-1].headers["X-Correlation-ID"] == "corr-123"


@pytest.mark.asyncio
async def test_catalog_lists_active_plans(catalog_client, ledger_service):
    plans = await catalog_client.list_active_plans()
    assert [plan.name for plan in plans] == ["Fiber 100", "Fiber 200"]
    assert ledger_service.requests[-1].url.params["status"] == "ACTIVE"


@pytest.mark.asyncio
async def test_pending_charge_summary_parses_camel_case(ledger_client, ledger_service):
    ledger_service.add_pending_charge("c1", "750", charge_type="EQUIPMENT_CHARGE")
    ledger_service.add_pending_charge("c1", "100", status="APPLIED")

    summary = await ledger_client.get_pending_summary("c1")

    assert summary.total_amount == Decimal("750.00")
    assert [charge.charge_type.value for charge in summary.charges] == ["EQUIPMENT_CHARGE"]
    assert len(await ledger_client.list_pending_charges("c1")) == 2


@pytest.mark.asyncio
async def test_missing_pending_charge_maps_to_not_found(ledger_client):
    with pytest.raises(NotFoundError):
        await ledger_client.delete_pending_charge("pc-missing")
