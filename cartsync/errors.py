"""
Common Error Constants

Shared messages for engine logs and remote cart API responses.
"""

# Remote cart API
ERROR_INVALID_CART = "Invalid cart data"
ERROR_CART_STORAGE_UNAVAILABLE = "Cart storage unavailable"

# Remote client
ERROR_FETCH_TIMEOUT = "Cart fetch request timed out"
ERROR_SAVE_TIMEOUT = "Cart save request timed out"
ERROR_FETCH_FAILED = "Failed to fetch cart"
ERROR_SAVE_FAILED = "Failed to save cart"

# Reconciliation
ERROR_PUSH_LOCAL_FAILED = "Failed to sync client cart to server"
ERROR_PUSH_MERGED_FAILED = "Failed to save merged cart to server"
ERROR_PUSH_RESTORED_FAILED = "Failed to save restored cart to server"

# Local persistence
ERROR_CORRUPTED_RECORD = "Corrupted cart record"
ERROR_STORAGE_WRITE = "Failed to write cart storage"
ERROR_STORAGE_READ = "Failed to read cart storage"
