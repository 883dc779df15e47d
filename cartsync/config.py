"""
Engine configuration.

All values come from environment variables and are read once at import.
User-level durability preferences are not configured here; they live in
the durable store and are re-read on every persistence call
(see cartsync.cart.persistence.PreferencesStore).
"""

import os

# Remote cart API
CART_API_URL = os.environ.get("CART_API_URL", "http://localhost:8000")
CART_API_TIMEOUT = float(os.environ.get("CART_API_TIMEOUT", "10"))
CART_READ_CACHE_TTL = float(os.environ.get("CART_READ_CACHE_TTL", "30"))
# Identity sent as X-Cart-Identity; empty means "let the server assign a guest id"
CART_IDENTITY = os.environ.get("CART_IDENTITY", "")

# Sync timing
CART_DEBOUNCE_SECONDS = float(os.environ.get("CART_DEBOUNCE_SECONDS", "1.0"))
CART_THROTTLE_SECONDS = float(os.environ.get("CART_THROTTLE_SECONDS", "2.0"))

# Local persistence
CART_STORAGE_NAMESPACE = os.environ.get("CART_STORAGE_NAMESPACE", "cartsync:")
CART_STALE_AFTER_HOURS = float(os.environ.get("CART_STALE_AFTER_HOURS", "4"))

# Server side
REMOTE_CART_TTL = int(os.environ.get("REMOTE_CART_TTL", "86400"))
