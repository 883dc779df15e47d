"""
Conflict resolution between two cart replicas.

Server items provide the baseline of which lines exist; client items carry
the most recent user intent, so their quantity wins for shared lines.
Quantities are never added together: repeated reconciliation of carts that
already agree must not double-count.
"""
from dataclasses import replace
from typing import Dict, Iterable, List

from .models import CartItem

# Fields the client may refine on a shared line; None on the client side
# keeps whatever the server had.
_CLIENT_OVERRIDABLE = ("name", "image_ref", "is_digital_good", "slug_ref")


def merge(client_items: Iterable[CartItem], server_items: Iterable[CartItem]) -> List[CartItem]:
    """
    Merge client and server carts into one canonical list.

    Output order: server lines in server order, then client-only lines in
    client order. Lines with quantity <= 0 are dropped.
    """
    merged: Dict[str, CartItem] = {}

    for item in server_items:
        merged[item.id] = replace(item)

    for client_item in client_items:
        existing = merged.get(client_item.id)
        if existing is None:
            merged[client_item.id] = replace(client_item)
            continue

        overrides = {
            name: getattr(client_item, name)
            for name in _CLIENT_OVERRIDABLE
            if getattr(client_item, name) is not None
        }
        merged[client_item.id] = replace(existing, quantity=client_item.quantity, **overrides)

    return [item for item in merged.values() if item.quantity > 0]


def carts_match(left: Iterable[CartItem], right: Iterable[CartItem]) -> bool:
    """True when both carts hold the same ids with the same quantities."""
    left_map = {item.id: item.quantity for item in left}
    right_map = {item.id: item.quantity for item in right}
    return left_map == right_map
