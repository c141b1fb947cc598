"""
Remote ledger and catalog clients.

Thin async wrappers over the services that own the ledger. Every call has a
bounded timeout, non-success answers become AppException subclasses, and
transport failures feed a circuit breaker so a dead service fails fast.
Nothing is retried.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    NotFoundError,
    RemoteRejectionError,
    RemoteTimeoutError,
    ServiceUnavailableError,
)
from backend.app.core.observability import current_correlation_id
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.schemas.ledger import (
    Customer,
    Invoice,
    LedgerSummary,
    Payment,
    PendingCharge,
    PendingChargeSummary,
    Plan,
    Transaction,
)

logger = logging.getLogger(__name__)

_transactions = TypeAdapter(List[Transaction])
_plans = TypeAdapter(List[Plan])
_pending_charges = TypeAdapter(List[PendingCharge])


class RemoteServerError(RemoteRejectionError):
    """5xx from a remote service; counts against the circuit breaker."""


def _message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"Remote service answered {response.status_code}"


class RemoteServiceClient:
    """Shared request plumbing for the ledger and catalog clients."""

    service = "ledger"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = None,
        http_client: Optional[httpx.AsyncClient] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.timeout_seconds = timeout_seconds or settings.remote_timeout_seconds
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(self.timeout_seconds),
            headers={"Content-Type": "application/json"},
        )
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=settings.circuit_failure_threshold,
            reset_timeout=settings.circuit_reset_timeout,
            trip_on=(httpx.TransportError, RemoteServerError),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        correlation_id = current_correlation_id()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        response = await self._client.request(method, path, headers=headers, **kwargs)
        if response.status_code >= 500:
            raise RemoteServerError(_message(response), response.status_code, self.service)
        return response

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        resource: Optional[str] = None,
        resource_id: Any = None,
        **kwargs,
    ) -> Any:
        try:
            response = await self.breaker.call(self._send, method, path, **kwargs)
        except CircuitOpenError:
            logger.warning("%s skipped: %s circuit is open", operation, self.service)
            raise ServiceUnavailableError(f"{self.service.capitalize()} service unavailable")
        except httpx.TimeoutException:
            logger.warning("%s timed out after %ss", operation, self.timeout_seconds)
            raise RemoteTimeoutError(operation, self.timeout_seconds)
        except httpx.TransportError as e:
            logger.warning("%s failed: %s", operation, e)
            raise ServiceUnavailableError(f"{self.service.capitalize()} service unreachable")
        except RemoteServerError as e:
            logger.error("%s rejected by %s service: %s", operation, self.service, e.message)
            raise

        if response.status_code == 404 and resource:
            raise NotFoundError(resource, resource_id)
        if response.status_code >= 400:
            message = _message(response)
            logger.warning("%s rejected (%s): %s", operation, response.status_code, message)
            raise RemoteRejectionError(message, response.status_code, self.service)

        if not response.content:
            return None
        body = response.json()
        if isinstance(body, dict) and "success" in body:
            if body["success"] is False:
                raise RemoteRejectionError(body.get("message") or f"{operation} failed", response.status_code, self.service)
            return body.get("data")
        return body

    def _parse(self, adapter_or_model, data: Any, operation: str):
        try:
            if isinstance(adapter_or_model, TypeAdapter):
                return adapter_or_model.validate_python(data)
            return adapter_or_model.model_validate(data)
        except PydanticValidationError as e:
            logger.error("%s returned an unexpected payload: %s", operation, e)
            raise RemoteRejectionError(f"{operation} returned an unexpected payload", None, self.service)


class LedgerClient(RemoteServiceClient):
    service = "ledger"

    def __init__(self, base_url: str = None, **kwargs):
        super().__init__(base_url or settings.ledger_service_url, **kwargs)

    async def get_customer(self, customer_id: str) -> Customer:
        data = await self._request("GET", f"/customers/{customer_id}", "Read customer", "Customer", customer_id)
        return self._parse(Customer, data, "Read customer")

    async def get_summary(self, customer_id: str) -> LedgerSummary:
        data = await self._request(
            "GET", f"/customers/{customer_id}/billing-summary", "Read billing summary", "Customer", customer_id
        )
        return self._parse(LedgerSummary, data or {}, "Read billing summary")

    async def list_transactions(self, customer_id: str) -> List[Transaction]:
        data = await self._request(
            "GET", f"/transactions/customer/{customer_id}", "Read transaction history", "Customer", customer_id
        )
        if isinstance(data, dict):
            data = data.get("transactions", [])
        return self._parse(_transactions, data or [], "Read transaction history")

    async def create_payment(self, payload: Dict[str, Any]) -> Payment:
        data = await self._request("POST", "/payments/record", "Record payment", json=payload)
        return self._parse(Payment, data, "Record payment")

    async def create_adjustment(self, customer_id: str, payload: Dict[str, Any]) -> Transaction:
        data = await self._request(
            "POST", f"/customers/{customer_id}/balance-adjustments", "Adjust balance", json=payload
        )
        return self._parse(Transaction, data, "Adjust balance")

    async def create_add_on_invoice(self, customer_id: str, payload: Dict[str, Any]) -> Invoice:
        data = await self._request("POST", f"/customers/{customer_id}/add-on-bills", "Create add-on bill", json=payload)
        return self._parse(Invoice, data, "Create add-on bill")

    async def create_subscription_invoice(self, customer_id: str, payload: Dict[str, Any]) -> Invoice:
        data = await self._request("POST", f"/customers/{customer_id}/invoices", "Generate invoice", json=payload)
        return self._parse(Invoice, data, "Generate invoice")

    async def get_invoice(self, invoice_id: str) -> Invoice:
        data = await self._request("GET", f"/invoices/{invoice_id}", "Read invoice", "Invoice", invoice_id)
        return self._parse(Invoice, data, "Read invoice")

    async def get_payment(self, payment_id: str) -> Payment:
        data = await self._request("GET", f"/payments/{payment_id}", "Read payment", "Payment", payment_id)
        return self._parse(Payment, data, "Read payment")

    async def delete_transaction(self, transaction_id: str) -> None:
        await self._request(
            "DELETE", f"/transactions/{transaction_id}", "Delete transaction", "Transaction", transaction_id
        )

    async def delete_payment(self, payment_id: str) -> None:
        await self._request("DELETE", f"/payments/{payment_id}", "Delete payment", "Payment", payment_id)

    async def list_pending_charges(self, customer_id: str) -> List[PendingCharge]:
        data = await self._request(
            "GET", f"/pending-charges/customer/{customer_id}", "Read pending charges", "Customer", customer_id
        )
        if isinstance(data, dict):
            data = data.get("charges", [])
        return self._parse(_pending_charges, data or [], "Read pending charges")

    async def get_pending_summary(self, customer_id: str) -> PendingChargeSummary:
        data = await self._request(
            "GET",
            f"/pending-charges/customer/{customer_id}/summary",
            "Read pending charge summary",
            "Customer",
            customer_id,
        )
        return self._parse(PendingChargeSummary, data or {}, "Read pending charge summary")

    async def create_pending_charge(self, payload: Dict[str, Any]) -> PendingCharge:
        data = await self._request("POST", "/pending-charges", "Add pending charge", json=payload)
        return self._parse(PendingCharge, data, "Add pending charge")

    async def update_pending_charge(self, charge_id: str, payload: Dict[str, Any]) -> PendingCharge:
        data = await self._request(
            "PUT", f"/pending-charges/{charge_id}", "Update pending charge", "Pending charge", charge_id, json=payload
        )
        return self._parse(PendingCharge, data, "Update pending charge")

    async def delete_pending_charge(self, charge_id: str) -> None:
        await self._request(
            "DELETE", f"/pending-charges/{charge_id}", "Remove pending charge", "Pending charge", charge_id
        )


class CatalogClient(RemoteServiceClient):
    service = "catalog"

    def __init__(self, base_url: str = None, **kwargs):
        super().__init__(base_url or settings.catalog_service_url, **kwargs)

    async def list_active_plans(self) -> List[Plan]:
        data = await self._request("GET", "/plans", "List plans", params={"status": "ACTIVE"})
        if isinstance(data, dict):
            data = data.get("plans", [])
        return self._parse(_plans, data or [], "List plans")
