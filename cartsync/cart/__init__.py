"""Cart package: models, merge, persistence, remote client, sync and engine facade."""
from .models import (
    CartAgeInfo,
    CartItem,
    PersistenceRecord,
    SyncMode,
    SyncPreferences,
    SyncResult,
    make_item_id,
)
from .merge import merge, carts_match
from .storage import KeyValueStore, MemoryStore, RedisStore, StorageKeys
from .persistence import PersistenceAdapter, PreferencesStore
from .remote import ReadCache, RemoteCartClient
from .replica import CartReplica
from .sync import SyncCoordinator
from .service import CartEngine, create_cart_engine, get_cart_engine

__all__ = [
    "CartAgeInfo",
    "CartItem",
    "PersistenceRecord",
    "SyncMode",
    "SyncPreferences",
    "SyncResult",
    "make_item_id",
    "merge",
    "carts_match",
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "StorageKeys",
    "PersistenceAdapter",
    "PreferencesStore",
    "ReadCache",
    "RemoteCartClient",
    "CartReplica",
    "SyncCoordinator",
    "CartEngine",
    "create_cart_engine",
    "get_cart_engine",
]
