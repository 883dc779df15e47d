"""
In-memory cart replica.

All mutations are synchronous and total: bad input is logged and ignored,
never raised. Each mutation reports one dirty id per touched line to the
dirty listener (drives debounced remote writes) and one change notification
to the change listener (drives the local persistence mirror).
"""
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Set

from cartsync.logging import get_logger, safe_for_log
from .models import CartItem, normalize_items

logger = get_logger(__name__)

DirtyListener = Callable[[str], None]
ChangeListener = Callable[[List[CartItem]], None]


def _valid_quantity(quantity) -> bool:
    return isinstance(quantity, int) and not isinstance(quantity, bool)


class CartReplica:
    """Cart lines, selection set and the saved-for-later side list."""

    def __init__(
        self,
        on_dirty: Optional[DirtyListener] = None,
        on_change: Optional[ChangeListener] = None,
    ):
        self._items: List[CartItem] = []
        self._selected: Set[str] = set()
        self._saved_for_later: List[CartItem] = []
        self.on_dirty = on_dirty
        self.on_change = on_change
        # Bumped on every mutation; lets callers detect interleaved changes
        self.version = 0

    # =====================================================
    # QUERIES
    # =====================================================
    @property
    def items(self) -> List[CartItem]:
        return list(self._items)

    @property
    def selected_ids(self) -> Set[str]:
        return set(self._selected)

    @property
    def saved_for_later(self) -> List[CartItem]:
        return list(self._saved_for_later)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def get(self, item_id: str) -> Optional[CartItem]:
        return next((item for item in self._items if item.id == item_id), None)

    def total(self) -> Decimal:
        """Sum of line totals; saved-for-later lines are not in the cart."""
        return sum((item.total_price for item in self._items), Decimal("0.00"))

    def count(self) -> int:
        return sum(item.quantity for item in self._items)

    def selected_total(self) -> Decimal:
        return sum(
            (item.total_price for item in self._items if item.id in self._selected),
            Decimal("0.00"),
        )

    # =====================================================
    # ITEM MUTATIONS
    # =====================================================
    def add_item(self, item: CartItem, quantity: int = 1) -> None:
        """Add `quantity` units; an existing line is incremented."""
        if not isinstance(item, CartItem) or not _valid_quantity(quantity) or quantity <= 0:
            logger.warning(f"Ignoring add_item with invalid input (quantity={quantity!r})")
            return

        existing = self.get(item.id)
        if existing is not None:
            self._replace_line(existing.with_quantity(existing.quantity + quantity))
        else:
            self._items.append(item.with_quantity(quantity))

        self._commit([item.id])

    def remove_item(self, item_id: str) -> None:
        if self.get(item_id) is None:
            return
        self._items = [item for item in self._items if item.id != item_id]
        self._selected.discard(item_id)
        self._commit([item_id])

    def set_quantity(self, item_id: str, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        if not _valid_quantity(quantity):
            logger.warning(
                f"Ignoring set_quantity for {safe_for_log(item_id)}: {quantity!r}"
            )
            return

        existing = self.get(item_id)
        if existing is None:
            return

        if quantity <= 0:
            self.remove_item(item_id)
            return

        if existing.quantity == quantity:
            return
        self._replace_line(existing.with_quantity(quantity))
        self._commit([item_id])

    def clear(self) -> None:
        cleared = [item.id for item in self._items]
        self._items = []
        self._selected.clear()
        self._commit(cleared)

    def replace(self, items: Iterable[CartItem]) -> None:
        """
        Adopt a reconciled state.

        Mirrors to persistence but emits no dirty ids: the state came from
        (or is being pushed to) the server already.
        """
        self._items = [replace(item) for item in normalize_items(list(items))]
        current_ids = {item.id for item in self._items}
        self._selected &= current_ids
        self.version += 1
        self._notify_change()

    # =====================================================
    # SELECTION
    # =====================================================
    def select(self, item_id: str) -> None:
        if self.get(item_id) is not None:
            self._selected.add(item_id)

    def deselect(self, item_id: str) -> None:
        self._selected.discard(item_id)

    def toggle_selection(self, item_id: str) -> None:
        if item_id in self._selected:
            self.deselect(item_id)
        else:
            self.select(item_id)

    def select_all(self) -> None:
        self._selected = {item.id for item in self._items}

    def clear_selection(self) -> None:
        self._selected.clear()

    def remove_selected(self) -> None:
        removed = [item.id for item in self._items if item.id in self._selected]
        if not removed:
            return
        self._items = [item for item in self._items if item.id not in self._selected]
        self._selected.clear()
        self._commit(removed)

    def set_quantity_for_selected(self, quantity: int) -> None:
        if not _valid_quantity(quantity):
            logger.warning(f"Ignoring set_quantity_for_selected: {quantity!r}")
            return

        if quantity <= 0:
            self.remove_selected()
            return

        touched = []
        for index, item in enumerate(self._items):
            if item.id in self._selected and item.quantity != quantity:
                self._items[index] = item.with_quantity(quantity)
                touched.append(item.id)
        if touched:
            self._commit(touched)

    # =====================================================
    # SAVED FOR LATER
    # =====================================================
    def move_selected_to_saved_for_later(self) -> None:
        """Move selected lines out of the cart; they stay in memory only."""
        moving = [item for item in self._items if item.id in self._selected]
        if not moving:
            return

        for item in moving:
            saved = next((line for line in self._saved_for_later if line.id == item.id), None)
            if saved is None:
                self._saved_for_later.append(item)
            else:
                # Same line saved earlier absorbs the quantity
                self._saved_for_later = [
                    line.with_quantity(line.quantity + item.quantity) if line.id == item.id else line
                    for line in self._saved_for_later
                ]
        self._items = [item for item in self._items if item.id not in self._selected]
        self._selected.clear()
        self._commit([item.id for item in moving])

    def restore_from_saved_for_later(self, item_id: str) -> None:
        """Move a saved line back; an existing cart line absorbs its quantity."""
        saved = next((item for item in self._saved_for_later if item.id == item_id), None)
        if saved is None:
            return

        self._saved_for_later = [item for item in self._saved_for_later if item.id != item_id]
        existing = self.get(item_id)
        if existing is not None:
            self._replace_line(existing.with_quantity(existing.quantity + saved.quantity))
        else:
            self._items.append(saved)
        self._commit([item_id])

    def remove_saved_for_later(self, item_id: str) -> None:
        self._saved_for_later = [item for item in self._saved_for_later if item.id != item_id]

    def clear_saved_for_later(self) -> None:
        self._saved_for_later = []

    # =====================================================
    # INTERNALS
    # =====================================================
    def _replace_line(self, updated: CartItem) -> None:
        self._items = [updated if item.id == updated.id else item for item in self._items]

    def _commit(self, dirty_ids: List[str]) -> None:
        self.version += 1
        self._notify_change()
        if self.on_dirty is None:
            return
        for item_id in dirty_ids:
            try:
                self.on_dirty(item_id)
            except Exception as e:
                logger.error(f"Dirty listener failed for {safe_for_log(item_id)}: {e}")

    def _notify_change(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self.items)
        except Exception as e:
            logger.error(f"Change listener failed: {e}")
