"""
cartsync - Cart Synchronization & Persistence Engine

This package contains:
- cart: replica, merge, local persistence, remote client, sync timing
- db: Upstash Redis clients and key prefixes
- routers: remote cart API (FastAPI)
- logging: centralized logging

Note: Imports are lazy so that using the engine does not pull in FastAPI.
"""

__all__ = [
    "CartEngine",
    "CartItem",
    "get_cart_engine",
    "create_app",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "CartEngine":
        from cartsync.cart import CartEngine
        return CartEngine
    elif name == "CartItem":
        from cartsync.cart import CartItem
        return CartItem
    elif name == "get_cart_engine":
        from cartsync.cart import get_cart_engine
        return get_cart_engine
    elif name == "create_app":
        from cartsync.app import create_app
        return create_app
    raise AttributeError(f"module 'cartsync' has no attribute '{name}'")
