"""
Ledger read cache.

Short-lived Redis copies of a customer's ledger reads. Any successful
mutation drops every key of that customer before the workspace reloads, so
a cached read never outlives the ledger state it was taken from.
"""

import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from pydantic import TypeAdapter
from redis.exceptions import RedisError

from backend.app.core.config import settings
from backend.app.schemas.ledger import Customer, LedgerSummary, Plan, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

CUSTOMER_READS = ("customer", "summary", "history")

_transactions = TypeAdapter(List[Transaction])
_plans = TypeAdapter(List[Plan])


def customer_key(customer_id: str, read: str) -> str:
    return f"ledger:{customer_id}:{read}"


class LedgerReadCache:

    def __init__(self, redis, ttl_seconds: int = None, enabled: bool = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds or settings.ledger_cache_ttl_seconds
        self.enabled = settings.cache_enabled if enabled is None else enabled

    async def _get(self, key: str) -> Optional[str]:
        if not self.enabled:
            return None
        try:
            return await self.redis.get(key)
        except RedisError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None

    async def _set(self, key: str, value: str) -> None:
        if not self.enabled:
            return
        try:
            await self.redis.set(key, value, ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    async def _cached(self, key: str, adapter: TypeAdapter, loader: Callable[[], Awaitable[T]]) -> T:
        raw = await self._get(key)
        if raw is not None:
            return adapter.validate_json(raw)
        value = await loader()
        await self._set(key, adapter.dump_json(value).decode())
        return value

    async def customer(self, customer_id: str, loader: Callable[[], Awaitable[Customer]]) -> Customer:
        return await self._cached(customer_key(customer_id, "customer"), TypeAdapter(Customer), loader)

    async def summary(self, customer_id: str, loader: Callable[[], Awaitable[LedgerSummary]]) -> LedgerSummary:
        return await self._cached(customer_key(customer_id, "summary"), TypeAdapter(LedgerSummary), loader)

    async def history(self, customer_id: str, loader: Callable[[], Awaitable[List[Transaction]]]) -> List[Transaction]:
        return await self._cached(customer_key(customer_id, "history"), _transactions, loader)

    async def plans(self, loader: Callable[[], Awaitable[List[Plan]]]) -> List[Plan]:
        return await self._cached("catalog:plans:active", _plans, loader)

    async def invalidate_customer(self, customer_id: str) -> None:
        """
        Forget every cached ledger read for one customer.

        When Redis refuses the delete the cache switches itself off, so the
        stale keys are never read again through this instance.
        """
        if not self.enabled:
            return
        keys = [customer_key(customer_id, read) for read in CUSTOMER_READS]
        try:
            await self.redis.delete(*keys)
        except RedisError as e:
            logger.error("Cache invalidation failed for customer %s, bypassing cache: %s", customer_id, e)
            self.enabled = False
