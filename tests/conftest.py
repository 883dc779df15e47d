"""Pytest configuration and fixtures"""
import asyncio
import os
from decimal import Decimal
from typing import Callable, Dict, List, Optional

import pytest

# Keep tests off any real Redis / remote API
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)
os.environ.setdefault("CART_API_URL", "http://cart.test")

from cartsync.cart import CartItem, MemoryStore, PersistenceAdapter, PreferencesStore


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Sync Redis stand-in with the Upstash client surface we use."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiries: Dict[str, Optional[int]] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiries[key] = ex
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


class FakeAsyncRedis(FakeRedis):
    """Async flavour of FakeRedis."""

    async def get(self, key):
        return FakeRedis.get(self, key)

    async def set(self, key, value, ex=None):
        return FakeRedis.set(self, key, value, ex=ex)

    async def delete(self, *keys):
        return FakeRedis.delete(self, *keys)


class FakeRemote:
    """
    In-memory remote cart recording every call.

    `fetch_gate` and `save_gate` hold calls until set, `fetch_error` makes
    fetches raise and `before_save` runs while a write is "on the wire".
    """

    def __init__(self, items: Optional[List[CartItem]] = None, save_ok: bool = True):
        self.items: List[CartItem] = list(items or [])
        self.save_ok = save_ok
        self.fetch_calls = 0
        self.saved: List[List[CartItem]] = []
        self.fetch_gate: Optional[asyncio.Event] = None
        self.fetch_error: Optional[Exception] = None
        self.before_save: Optional[Callable[[], None]] = None
        self.save_gate: Optional[asyncio.Event] = None

    async def fetch_cart(self, use_cache: bool = True, fallback: bool = True) -> List[CartItem]:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.items)

    async def save_cart(self, items) -> bool:
        items = list(items)
        if self.save_gate is not None:
            await self.save_gate.wait()
        if self.before_save is not None:
            self.before_save()
        self.saved.append(items)
        if self.save_ok:
            self.items = items
        return self.save_ok


@pytest.fixture
def make_item():
    """Factory for cart items."""
    def _make(product_id: str = "prod-1", quantity: int = 1, price: str = "10.00", **kwargs) -> CartItem:
        return CartItem(
            product_id=product_id,
            name=kwargs.pop("name", f"Product {product_id}"),
            unit_price=Decimal(price),
            quantity=quantity,
            **kwargs,
        )
    return _make


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def durable_store():
    return MemoryStore()


@pytest.fixture
def session_store():
    return MemoryStore()


@pytest.fixture
def preferences(durable_store):
    return PreferencesStore(durable_store)


@pytest.fixture
def persistence(durable_store, session_store, preferences, clock):
    return PersistenceAdapter(
        durable=durable_store,
        session=session_store,
        preferences=preferences,
        clock=clock,
    )


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_async_redis():
    return FakeAsyncRedis()


@pytest.fixture
def make_remote():
    """Factory for in-memory remote carts."""
    def _make(items: Optional[List[CartItem]] = None, save_ok: bool = True) -> FakeRemote:
        return FakeRemote(items, save_ok)
    return _make


@pytest.fixture
def monotonic():
    """Clock for throttle windows."""
    return FakeClock(now=0.0)
