"""
Local cart persistence with user-selectable durability policies.

Modes:
- disabled: nothing is stored, nothing survives a reload
- session: kept in the session-scoped store for the current session only
- persistent: kept in the durable store, honored in any session
- smart (default): persistent, but records older than the expiry window
  (since first write or since last access) are discarded on load
"""
import json
import secrets
import time
from typing import Callable, Iterable, List, Optional

from cartsync.config import CART_STALE_AFTER_HOURS
from cartsync.errors import ERROR_CORRUPTED_RECORD, ERROR_STORAGE_READ, ERROR_STORAGE_WRITE
from cartsync.logging import get_logger, safe_for_log
from .models import (
    CartAgeInfo,
    CartItem,
    PersistenceRecord,
    SyncMode,
    SyncPreferences,
    normalize_items,
)
from .storage import KeyValueStore, StorageKeys

logger = get_logger(__name__)

SECONDS_PER_HOUR = 3600


class PreferencesStore:
    """Reads and writes SyncPreferences in the durable store."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self) -> SyncPreferences:
        """Current preferences; missing or unreadable settings mean defaults."""
        try:
            raw = self.store.get(StorageKeys.PREFERENCES)
        except Exception as e:
            logger.warning(f"Failed to read cart preferences, using defaults: {e}")
            return SyncPreferences()

        if not raw:
            return SyncPreferences()

        try:
            return SyncPreferences.from_dict(json.loads(raw))
        except ValueError as e:
            logger.warning(f"Failed to parse cart preferences, using defaults: {e}")
            return SyncPreferences()

    def update(self, **changes) -> SyncPreferences:
        """Apply partial changes and store the result."""
        data = self.get().to_dict()
        for key, value in changes.items():
            data[key] = value.value if isinstance(value, SyncMode) else value
        updated = SyncPreferences.from_dict(data)

        try:
            self.store.set(StorageKeys.PREFERENCES, json.dumps(updated.to_dict()))
        except Exception as e:
            logger.error(f"Failed to save cart preferences: {e}")
        return updated

    def reset(self) -> None:
        try:
            self.store.remove(StorageKeys.PREFERENCES)
        except Exception as e:
            logger.error(f"Failed to reset cart preferences: {e}")


class PersistenceAdapter:
    """
    Mirrors the cart replica into local storage according to the active policy.

    Preferences are re-read on every call. Every storage failure degrades to
    "no record" or a skipped write; nothing here raises to the caller.
    """

    def __init__(
        self,
        durable: KeyValueStore,
        session: KeyValueStore,
        preferences: Optional[PreferencesStore] = None,
        clock: Callable[[], float] = time.time,
        stale_after_hours: float = CART_STALE_AFTER_HOURS,
    ):
        self.durable = durable
        self.session = session
        self.preferences = preferences or PreferencesStore(durable)
        self.clock = clock
        self.stale_after_hours = stale_after_hours

    # =====================================================
    # PUBLIC API
    # =====================================================
    def load(self) -> List[CartItem]:
        """Load the stored cart, honoring policy, session and expiry."""
        prefs = self.preferences.get()
        if prefs.mode is SyncMode.DISABLED:
            return []

        store = self._store_for(prefs.mode)
        record = self._read_record(store, clear_corrupted=True)
        if record is None:
            return []

        if prefs.mode is SyncMode.SESSION and record.session_id != self.session_id():
            logger.info(
                f"Stored cart belongs to session {safe_for_log(record.session_id, max_length=8)}, not loading"
            )
            return []

        if prefs.mode is SyncMode.SMART and self._is_expired(record, prefs):
            logger.info("Stored cart expired, clearing")
            self.clear()
            return []

        record.last_access_at = self.clock()
        self._write(store, record)

        return normalize_items(record.items)

    def save(self, items: Iterable[CartItem]) -> None:
        """Store a snapshot of `items`; an empty cart removes the record."""
        prefs = self.preferences.get()
        if prefs.mode is SyncMode.DISABLED:
            return

        store = self._store_for(prefs.mode)
        items = normalize_items(list(items))
        if not items:
            self._remove(store, StorageKeys.CART)
            return

        now = self.clock()
        created_at = now
        existing = self._read_record(store, clear_corrupted=False)
        if existing is not None and not (prefs.mode is SyncMode.SMART and self._is_expired(existing, prefs)):
            created_at = existing.created_at

        record = PersistenceRecord(
            items=items,
            created_at=created_at,
            last_access_at=now,
            session_id=self.session_id(),
            policy_snapshot=prefs,
        )
        self._write(store, record)

    def clear(self) -> None:
        """Remove the stored cart from both media."""
        self._remove(self.durable, StorageKeys.CART)
        self._remove(self.session, StorageKeys.CART)

    def age_info(self) -> Optional[CartAgeInfo]:
        """Age of the stored cart, or None when there is nothing stored."""
        prefs = self.preferences.get()
        if prefs.mode is SyncMode.DISABLED:
            return None

        record = self._read_record(self._store_for(prefs.mode), clear_corrupted=False)
        if record is None:
            return None

        hours_old = max(0.0, (self.clock() - record.created_at) / SECONDS_PER_HOUR)
        return CartAgeInfo(
            hours_old=round(hours_old, 1),
            is_stale=hours_old > self.stale_after_hours,
        )

    def clear_expired(self) -> bool:
        """Drop an expired smart-mode record without loading it."""
        prefs = self.preferences.get()
        if prefs.mode is not SyncMode.SMART:
            return False

        record = self._read_record(self.durable, clear_corrupted=True)
        if record is not None and self._is_expired(record, prefs):
            self.clear()
            return True
        return False

    def reset_all(self) -> None:
        """Forget cart, preferences and session id."""
        self.clear()
        self.preferences.reset()
        self._remove(self.session, StorageKeys.SESSION_ID)

    def session_id(self) -> str:
        """Random token scoped to the session store's lifetime."""
        session_id = self._read(self.session, StorageKeys.SESSION_ID)
        if not session_id:
            session_id = secrets.token_hex(12)
            try:
                self.session.set(StorageKeys.SESSION_ID, session_id)
            except Exception as e:
                logger.error(f"{ERROR_STORAGE_WRITE}: {e}")
        return session_id

    # =====================================================
    # INTERNALS
    # =====================================================
    def _store_for(self, mode: SyncMode) -> KeyValueStore:
        return self.session if mode is SyncMode.SESSION else self.durable

    def _is_expired(self, record: PersistenceRecord, prefs: SyncPreferences) -> bool:
        now = self.clock()
        expiry_seconds = prefs.expiry_hours * SECONDS_PER_HOUR
        return (now - record.created_at) > expiry_seconds or (now - record.last_access_at) > expiry_seconds

    def _read(self, store: KeyValueStore, key: str) -> Optional[str]:
        try:
            return store.get(key)
        except Exception as e:
            logger.error(f"{ERROR_STORAGE_READ}: {e}")
            return None

    def _read_record(self, store: KeyValueStore, clear_corrupted: bool) -> Optional[PersistenceRecord]:
        raw = self._read(store, StorageKeys.CART)
        if not raw:
            return None
        try:
            return PersistenceRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"{ERROR_CORRUPTED_RECORD}: {e}")
            if clear_corrupted:
                self._remove(store, StorageKeys.CART)
            return None

    def _write(self, store: KeyValueStore, record: PersistenceRecord) -> None:
        try:
            store.set(StorageKeys.CART, json.dumps(record.to_dict()))
        except Exception as e:
            logger.error(f"{ERROR_STORAGE_WRITE}: {e}")

    def _remove(self, store: KeyValueStore, key: str) -> None:
        try:
            store.remove(key)
        except Exception as e:
            logger.error(f"Failed to clear cart storage: {e}")
