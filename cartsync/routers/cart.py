"""
Remote Cart Router

Authoritative whole-cart storage consumed by RemoteCartClient.

- GET /api/cart: {"success": true, "data": [items]}
- POST /api/cart: replace the cart with the posted list
- DELETE /api/cart: empty the cart

Carts are keyed by the X-Cart-Identity header, falling back to a guest id
kept in a cookie.
"""
import json
import secrets
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from pydantic import ValidationError

from cartsync.cart.models import CartItem, items_from_dicts, normalize_items
from cartsync.config import REMOTE_CART_TTL
from cartsync.db import RedisKeys, get_redis
from cartsync.errors import ERROR_CART_STORAGE_UNAVAILABLE, ERROR_INVALID_CART
from cartsync.logging import get_logger, safe_for_log
from .models import CartItemPayload

logger = get_logger(__name__)

router = APIRouter(tags=["cart"])

GUEST_COOKIE = "guest_id"


class RemoteCartRepository:
    """Carts in Redis as JSON lists with a sliding TTL."""

    def __init__(self, redis_client, ttl: int = REMOTE_CART_TTL):
        self.redis = redis_client
        self.ttl = ttl

    async def get(self, identity: str) -> List[CartItem]:
        key = RedisKeys.cart_key(identity)
        data = await self.redis.get(key)
        if not data:
            return []

        try:
            raw_items = json.loads(data)
        except (json.JSONDecodeError, TypeError) as e:
            # Corrupted data - clear it and report an empty cart
            logger.warning(f"Corrupted cart data for {safe_for_log(identity, max_length=8)}: {e}")
            await self.redis.delete(key)
            return []
        return normalize_items(items_from_dicts(raw_items))

    async def replace(self, identity: str, items: List[CartItem]) -> None:
        key = RedisKeys.cart_key(identity)
        if not items:
            await self.redis.delete(key)
            return
        await self.redis.set(key, json.dumps([item.to_dict() for item in items]), ex=self.ttl)

    async def clear(self, identity: str) -> None:
        await self.redis.delete(RedisKeys.cart_key(identity))


def get_cart_repository() -> RemoteCartRepository:
    try:
        return RemoteCartRepository(get_redis())
    except ValueError as e:
        logger.error(f"Redis not available: {e}")
        raise HTTPException(status_code=503, detail=ERROR_CART_STORAGE_UNAVAILABLE)


def resolve_identity(
    request: Request,
    response: Response,
    x_cart_identity: Optional[str] = Header(default=None),
) -> str:
    """Identity header, else guest cookie, else a new guest id."""
    if x_cart_identity:
        return x_cart_identity

    guest_id = request.cookies.get(GUEST_COOKIE)
    if not guest_id:
        guest_id = f"guest_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        response.set_cookie(GUEST_COOKIE, guest_id, httponly=True, samesite="lax", max_age=REMOTE_CART_TTL)
    return guest_id


def _parse_items(payload) -> List[CartItem]:
    if not isinstance(payload, list):
        raise HTTPException(status_code=400, detail=ERROR_INVALID_CART)
    try:
        validated = [CartItemPayload.model_validate(raw) for raw in payload]
    except ValidationError as e:
        logger.warning(f"Rejected cart payload: {e.error_count()} validation errors")
        raise HTTPException(status_code=400, detail=ERROR_INVALID_CART)

    items = [
        CartItem(
            product_id=line.product_id,
            variant_id=line.variant_id or None,
            selected_language=line.selected_language or None,
            name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            image_ref=line.image_ref,
            is_digital_good=line.is_digital_good,
            slug_ref=line.slug_ref,
        )
        for line in validated
    ]
    return normalize_items(items)


@router.get("/api/cart")
async def get_cart(
    identity: str = Depends(resolve_identity),
    repo: RemoteCartRepository = Depends(get_cart_repository),
):
    try:
        items = await repo.get(identity)
    except Exception as e:
        logger.error(f"Failed to get cart from Redis: {e}")
        raise HTTPException(status_code=503, detail=ERROR_CART_STORAGE_UNAVAILABLE)
    return {"success": True, "data": [item.to_dict() for item in items]}


@router.post("/api/cart")
async def replace_cart(
    request: Request,
    identity: str = Depends(resolve_identity),
    repo: RemoteCartRepository = Depends(get_cart_repository),
):
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail=ERROR_INVALID_CART)

    items = _parse_items(payload)
    try:
        await repo.replace(identity, items)
    except Exception as e:
        logger.error(f"Failed to save cart to Redis: {e}")
        raise HTTPException(status_code=503, detail=ERROR_CART_STORAGE_UNAVAILABLE)

    logger.info(f"Cart for {safe_for_log(identity, max_length=8)} replaced ({len(items)} lines)")
    return {"success": True, "data": [item.to_dict() for item in items]}


@router.delete("/api/cart")
async def clear_cart(
    identity: str = Depends(resolve_identity),
    repo: RemoteCartRepository = Depends(get_cart_repository),
):
    try:
        await repo.clear(identity)
    except Exception as e:
        logger.error(f"Failed to clear cart in Redis: {e}")
        raise HTTPException(status_code=503, detail=ERROR_CART_STORAGE_UNAVAILABLE)
    return {"success": True, "data": []}


@router.get("/api/health")
async def health():
    return {"status": "ok"}
