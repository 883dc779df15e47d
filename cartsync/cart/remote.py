"""
Client for the authoritative remote cart.

GET /api/cart returns {"data": [...]}; POST /api/cart replaces the whole
cart. Both calls are bounded by a timeout and never raise: a failed read
falls back to the last good read (or empty) and a failed write reports False.
"""
import asyncio
import time
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from cartsync.config import CART_API_TIMEOUT, CART_API_URL, CART_IDENTITY, CART_READ_CACHE_TTL
from cartsync.errors import ERROR_FETCH_FAILED, ERROR_FETCH_TIMEOUT, ERROR_SAVE_FAILED, ERROR_SAVE_TIMEOUT
from cartsync.logging import get_logger
from .models import CartItem, items_from_dicts

logger = get_logger(__name__)

CART_PATH = "/api/cart"
IDENTITY_HEADER = "X-Cart-Identity"


class ReadCache:
    """
    Short-lived cache of the last successful remote read.

    `get` only answers while the entry is fresh; `last_good` keeps answering
    after expiry and serves as the fallback when the network fails.
    """

    def __init__(self, ttl: float = CART_READ_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._items: Optional[List[CartItem]] = None
        self._stored_at: Optional[float] = None

    def get(self) -> Optional[List[CartItem]]:
        if self._items is None or self._stored_at is None:
            return None
        if self.clock() - self._stored_at > self.ttl:
            return None
        return list(self._items)

    def set(self, items: Iterable[CartItem]) -> None:
        self._items = list(items)
        self._stored_at = self.clock()

    def invalidate(self) -> None:
        """Expire the entry but keep it as a fallback."""
        self._stored_at = None

    @property
    def last_good(self) -> List[CartItem]:
        return list(self._items) if self._items is not None else []


class RemoteCartClient:
    """HTTP access to the remote cart with timeout and read cache."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = CART_API_TIMEOUT,
        cache: Optional[ReadCache] = None,
        identity: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or CART_API_URL).rstrip("/")
        self.timeout = timeout
        self.cache = cache if cache is not None else ReadCache()
        self.identity = identity if identity is not None else CART_IDENTITY
        self._transport = transport
        self._cookies = httpx.Cookies()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.identity:
            headers[IDENTITY_HEADER] = self.identity
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers=self._headers(),
            cookies=self._cookies,
        )

    async def fetch_cart(self, use_cache: bool = True, fallback: bool = True) -> List[CartItem]:
        """
        Fetch the remote cart; never raises.

        On failure returns the last good read, or an empty list when
        `fallback` is False.
        """
        if use_cache:
            cached = self.cache.get()
            if cached is not None:
                return cached

        try:
            items = await asyncio.wait_for(self._get(), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"{ERROR_FETCH_TIMEOUT} after {self.timeout}s")
            return self.cache.last_good if fallback else []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"{ERROR_FETCH_FAILED}: {e}")
            return self.cache.last_good if fallback else []
        except Exception as e:
            logger.error(f"{ERROR_FETCH_FAILED}: {e}", exc_info=True)
            return self.cache.last_good if fallback else []

        self.cache.set(items)
        return list(items)

    async def save_cart(self, items: Iterable[CartItem]) -> bool:
        """Replace the remote cart with `items`; returns success."""
        items = list(items)
        try:
            await asyncio.wait_for(self._post(items), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"{ERROR_SAVE_TIMEOUT} after {self.timeout}s")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"{ERROR_SAVE_FAILED}: {e}")
            return False
        except Exception as e:
            # Misconfiguration, e.g. an invalid CART_API_URL
            logger.error(f"{ERROR_SAVE_FAILED}: {e}", exc_info=True)
            return False

        # Server now holds exactly what we sent
        self.cache.set(items)
        return True

    async def _get(self) -> List[CartItem]:
        async with self._client() as client:
            response = await client.get(CART_PATH)
            response.raise_for_status()
            self._cookies.update(response.cookies)
            payload = response.json()

        if not isinstance(payload, dict):
            raise ValueError("unexpected cart payload")
        return items_from_dicts(payload.get("data") or [])

    async def _post(self, items: List[CartItem]) -> None:
        async with self._client() as client:
            response = await client.post(CART_PATH, json=[item.to_dict() for item in items])
            response.raise_for_status()
            self._cookies.update(response.cookies)
