"""Cart engine facade wiring replica, persistence, remote client and sync."""
from decimal import Decimal
from typing import List, Optional, Set

from cartsync.config import CART_STORAGE_NAMESPACE
from cartsync.db import is_redis_configured
from cartsync.logging import get_logger
from cartsync.money import to_float
from .models import CartAgeInfo, CartItem, SyncPreferences, SyncResult
from .persistence import PersistenceAdapter, PreferencesStore
from .remote import RemoteCartClient
from .replica import CartReplica
from .storage import KeyValueStore, MemoryStore, RedisStore
from .sync import SyncCoordinator

logger = get_logger(__name__)


class CartEngine:
    """
    The cart as seen by the presentation layer.

    Features:
    - Optimistic in-memory mutations, mirrored to local storage
    - Debounced whole-cart writes to the server
    - Startup reconciliation between local, stored and server carts
    - Clearing on checkout / sign-out according to user preferences
    """

    def __init__(
        self,
        remote: Optional[RemoteCartClient] = None,
        durable_store: Optional[KeyValueStore] = None,
        session_store: Optional[KeyValueStore] = None,
        persistence: Optional[PersistenceAdapter] = None,
        coordinator_options: Optional[dict] = None,
    ):
        if persistence is None:
            persistence = PersistenceAdapter(
                durable=durable_store if durable_store is not None else MemoryStore(),
                session=session_store if session_store is not None else MemoryStore(),
            )
        self.persistence = persistence
        self.preferences: PreferencesStore = persistence.preferences
        self.remote = remote or RemoteCartClient()
        self.replica = CartReplica(on_change=self.persistence.save)
        self.coordinator = SyncCoordinator(
            self.replica,
            self.remote,
            self.persistence,
            **(coordinator_options or {}),
        )
        self.replica.on_dirty = self.coordinator.mark_dirty

    # =====================================================
    # LIFECYCLE
    # =====================================================
    async def start(self) -> SyncResult:
        """Startup reconciliation."""
        self.persistence.clear_expired()
        return await self.coordinator.force_sync()

    async def close(self) -> None:
        await self.coordinator.close()

    async def checkout_completed(self) -> None:
        """Empty the cart after a successful checkout if the user wants that."""
        if self.preferences.get().clear_on_checkout:
            await self._clear_everywhere()

    async def signed_out(self) -> None:
        if self.preferences.get().clear_on_sign_out:
            await self._clear_everywhere()

    async def _clear_everywhere(self) -> None:
        self.replica.clear()
        self.persistence.clear()
        await self.coordinator.sync_with_server()

    # =====================================================
    # SYNC OPERATIONS
    # =====================================================
    async def force_sync(self) -> SyncResult:
        return await self.coordinator.force_sync()

    async def sync_with_server(self) -> bool:
        return await self.coordinator.sync_with_server()

    async def load_cart(self) -> List[CartItem]:
        return await self.coordinator.load_cart()

    # =====================================================
    # QUERIES
    # =====================================================
    @property
    def items(self) -> List[CartItem]:
        return self.replica.items

    @property
    def selected_ids(self) -> Set[str]:
        return self.replica.selected_ids

    @property
    def saved_for_later(self) -> List[CartItem]:
        return self.replica.saved_for_later

    @property
    def is_empty(self) -> bool:
        return self.replica.is_empty

    @property
    def is_loading(self) -> bool:
        return self.coordinator.is_syncing

    def total(self) -> Decimal:
        return self.replica.total()

    def count(self) -> int:
        return self.replica.count()

    def age_info(self) -> Optional[CartAgeInfo]:
        return self.persistence.age_info()

    def get_preferences(self) -> SyncPreferences:
        return self.preferences.get()

    def update_preferences(self, **changes) -> SyncPreferences:
        return self.preferences.update(**changes)

    def summary(self) -> dict:
        """Cart summary for display collaborators."""
        age = self.age_info()
        return {
            "is_empty": self.replica.is_empty,
            "line_count": len(self.replica.items),
            "total_items": self.replica.count(),
            "total": to_float(self.replica.total()),
            "selected_count": len(self.replica.selected_ids),
            "selected_total": to_float(self.replica.selected_total()),
            "saved_for_later_count": len(self.replica.saved_for_later),
            "hours_old": age.hours_old if age else None,
            "is_stale": age.is_stale if age else False,
            "is_loading": self.is_loading,
            "has_pending_write": self.coordinator.has_pending_write,
        }

    def debug_snapshot(self, label: str = "Cart") -> None:
        """Log the replica state at DEBUG level."""
        logger.debug(
            f"{label}: {len(self.replica.items)} lines, {self.replica.count()} units, "
            f"items={[(item.id, item.quantity) for item in self.replica.items]}"
        )

    # =====================================================
    # MUTATIONS (synchronous, never raise)
    # =====================================================
    def add_item(self, item: CartItem, quantity: int = 1) -> None:
        self.replica.add_item(item, quantity)

    def remove_item(self, item_id: str) -> None:
        self.replica.remove_item(item_id)

    def set_quantity(self, item_id: str, quantity: int) -> None:
        self.replica.set_quantity(item_id, quantity)

    def clear(self) -> None:
        self.replica.clear()

    def select(self, item_id: str) -> None:
        self.replica.select(item_id)

    def deselect(self, item_id: str) -> None:
        self.replica.deselect(item_id)

    def toggle_selection(self, item_id: str) -> None:
        self.replica.toggle_selection(item_id)

    def select_all(self) -> None:
        self.replica.select_all()

    def clear_selection(self) -> None:
        self.replica.clear_selection()

    def remove_selected(self) -> None:
        self.replica.remove_selected()

    def set_quantity_for_selected(self, quantity: int) -> None:
        self.replica.set_quantity_for_selected(quantity)

    def move_selected_to_saved_for_later(self) -> None:
        self.replica.move_selected_to_saved_for_later()

    def restore_from_saved_for_later(self, item_id: str) -> None:
        self.replica.restore_from_saved_for_later(item_id)

    def remove_saved_for_later(self, item_id: str) -> None:
        self.replica.remove_saved_for_later(item_id)

    def clear_saved_for_later(self) -> None:
        self.replica.clear_saved_for_later()


def create_cart_engine() -> CartEngine:
    """Build an engine from environment configuration."""
    if is_redis_configured():
        durable: KeyValueStore = RedisStore(namespace=CART_STORAGE_NAMESPACE)
    else:
        logger.warning("Upstash Redis not configured, local cart will not survive restarts")
        durable = MemoryStore()
    return CartEngine(durable_store=durable, session_store=MemoryStore())


# Singleton instance
_cart_engine: Optional[CartEngine] = None


def get_cart_engine() -> CartEngine:
    """Get CartEngine singleton."""
    global _cart_engine
    if _cart_engine is None:
        _cart_engine = create_cart_engine()
    return _cart_engine
