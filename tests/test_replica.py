"""
Tests for the in-memory cart replica
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from cartsync.cart import CartReplica


@pytest.fixture
def listeners():
    return Mock(), Mock()


@pytest.fixture
def replica(listeners):
    on_dirty, on_change = listeners
    return CartReplica(on_dirty=on_dirty, on_change=on_change)


def dirty_ids(on_dirty):
    return [call.args[0] for call in on_dirty.call_args_list]


class TestItemMutations:
    """Tests for add/remove/set_quantity/clear."""

    def test_add_new_item(self, replica, make_item, listeners):
        """Adding stores the requested quantity and emits a dirty id."""
        on_dirty, on_change = listeners

        replica.add_item(make_item("A"), 2)

        assert [(item.id, item.quantity) for item in replica.items] == [("A", 2)]
        assert dirty_ids(on_dirty) == ["A"]
        on_change.assert_called_once()

    def test_add_existing_item_increments(self, replica, make_item):
        """Same id increments instead of duplicating."""
        replica.add_item(make_item("A"), 1)
        replica.add_item(make_item("A"), 3)

        assert len(replica.items) == 1
        assert replica.get("A").quantity == 4

    def test_variants_are_separate_lines(self, replica, make_item):
        """Different language of the same book is a different line."""
        replica.add_item(make_item("book", selected_language="en"))
        replica.add_item(make_item("book", selected_language="ro"))

        assert {item.id for item in replica.items} == {"book_en", "book_ro"}

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", None, True])
    def test_add_invalid_quantity_ignored(self, replica, make_item, listeners, quantity):
        """Invalid input never raises and changes nothing."""
        on_dirty, _ = listeners

        replica.add_item(make_item("A"), quantity)

        assert replica.items == []
        on_dirty.assert_not_called()

    def test_add_non_item_ignored(self, replica):
        """Garbage item is ignored."""
        replica.add_item({"product_id": "A"}, 1)

        assert replica.is_empty

    def test_remove_item(self, replica, make_item, listeners):
        """Removing drops the line and its selection."""
        on_dirty, _ = listeners
        replica.add_item(make_item("A"))
        replica.select("A")
        on_dirty.reset_mock()

        replica.remove_item("A")

        assert replica.is_empty
        assert replica.selected_ids == set()
        assert dirty_ids(on_dirty) == ["A"]

    def test_remove_unknown_is_noop(self, replica, listeners):
        """Unknown ids emit nothing."""
        on_dirty, on_change = listeners

        replica.remove_item("missing")

        on_dirty.assert_not_called()
        on_change.assert_not_called()

    def test_set_quantity(self, replica, make_item):
        """Quantity is replaced, not added."""
        replica.add_item(make_item("A"), 5)

        replica.set_quantity("A", 2)

        assert replica.get("A").quantity == 2

    def test_set_quantity_zero_removes(self, replica, make_item, listeners):
        """set_quantity(A, 0) on a cart with only A empties it."""
        on_dirty, _ = listeners
        replica.add_item(make_item("A"))
        on_dirty.reset_mock()

        replica.set_quantity("A", 0)

        assert replica.is_empty
        assert dirty_ids(on_dirty) == ["A"]

    def test_set_quantity_invalid_ignored(self, replica, make_item):
        """Non-integer quantity is ignored."""
        replica.add_item(make_item("A"), 2)

        replica.set_quantity("A", "three")

        assert replica.get("A").quantity == 2

    def test_clear_emits_each_line(self, replica, make_item, listeners):
        """Clearing reports every removed id."""
        on_dirty, _ = listeners
        replica.add_item(make_item("A"))
        replica.add_item(make_item("B"))
        on_dirty.reset_mock()

        replica.clear()

        assert replica.is_empty
        assert sorted(dirty_ids(on_dirty)) == ["A", "B"]

    def test_replace_emits_no_dirty_ids(self, replica, make_item, listeners):
        """Adopting a reconciled state does not trigger a write-back."""
        on_dirty, on_change = listeners

        replica.replace([make_item("A", 2), make_item("A", 3), make_item("B", 0)])

        assert [(item.id, item.quantity) for item in replica.items] == [("A", 3)]
        on_dirty.assert_not_called()
        on_change.assert_called_once()

    def test_listener_failure_does_not_raise(self, make_item):
        """A broken listener never breaks a mutation."""
        replica = CartReplica(on_dirty=Mock(side_effect=RuntimeError("boom")))

        replica.add_item(make_item("A"))

        assert replica.get("A") is not None


class TestDerivedQueries:
    """Tests for total() and count()."""

    def test_total_and_count(self, replica, make_item):
        replica.add_item(make_item("A", price="10.00"), 2)
        replica.add_item(make_item("B", price="2.50"), 3)

        assert replica.total() == Decimal("27.50")
        assert replica.count() == 5

    def test_saved_for_later_excluded_from_totals(self, replica, make_item):
        replica.add_item(make_item("A", price="10.00"), 1)
        replica.add_item(make_item("B", price="5.00"), 1)
        replica.select("B")
        replica.move_selected_to_saved_for_later()

        assert replica.total() == Decimal("10.00")
        assert replica.count() == 1

    def test_empty_cart(self, replica):
        assert replica.total() == Decimal("0")
        assert replica.count() == 0


class TestSelection:
    """Tests for selection-set operations."""

    def test_select_only_existing(self, replica, make_item):
        replica.add_item(make_item("A"))

        replica.select("A")
        replica.select("ghost")

        assert replica.selected_ids == {"A"}

    def test_toggle_and_deselect(self, replica, make_item):
        replica.add_item(make_item("A"))

        replica.toggle_selection("A")
        assert replica.selected_ids == {"A"}
        replica.toggle_selection("A")
        assert replica.selected_ids == set()

        replica.select("A")
        replica.deselect("A")
        assert replica.selected_ids == set()

    def test_select_all_and_clear(self, replica, make_item):
        replica.add_item(make_item("A"))
        replica.add_item(make_item("B"))

        replica.select_all()
        assert replica.selected_ids == {"A", "B"}

        replica.clear_selection()
        assert replica.selected_ids == set()

    def test_remove_selected_emits_per_item(self, replica, make_item, listeners):
        """Bulk removal emits one dirty id per line."""
        on_dirty, _ = listeners
        for product_id in ("A", "B", "C"):
            replica.add_item(make_item(product_id))
        replica.select("A")
        replica.select("C")
        on_dirty.reset_mock()

        replica.remove_selected()

        assert [item.id for item in replica.items] == ["B"]
        assert sorted(dirty_ids(on_dirty)) == ["A", "C"]
        assert replica.selected_ids == set()

    def test_set_quantity_for_selected(self, replica, make_item, listeners):
        on_dirty, _ = listeners
        replica.add_item(make_item("A"), 1)
        replica.add_item(make_item("B"), 1)
        replica.add_item(make_item("C"), 4)
        replica.select_all()
        replica.deselect("B")
        on_dirty.reset_mock()

        replica.set_quantity_for_selected(4)

        assert {item.id: item.quantity for item in replica.items} == {"A": 4, "B": 1, "C": 4}
        # C already had 4
        assert dirty_ids(on_dirty) == ["A"]

    def test_set_quantity_for_selected_zero_removes(self, replica, make_item):
        replica.add_item(make_item("A"))
        replica.add_item(make_item("B"))
        replica.select("A")

        replica.set_quantity_for_selected(0)

        assert [item.id for item in replica.items] == ["B"]

    def test_selected_total(self, replica, make_item):
        replica.add_item(make_item("A", price="3.00"), 2)
        replica.add_item(make_item("B", price="100.00"), 1)
        replica.select("A")

        assert replica.selected_total() == Decimal("6.00")


class TestSavedForLater:
    """Tests for the saved-for-later side list."""

    def test_move_and_restore(self, replica, make_item, listeners):
        on_dirty, _ = listeners
        replica.add_item(make_item("A"), 2)
        replica.add_item(make_item("B"), 1)
        replica.select("A")
        on_dirty.reset_mock()

        replica.move_selected_to_saved_for_later()

        assert [item.id for item in replica.items] == ["B"]
        assert [(item.id, item.quantity) for item in replica.saved_for_later] == [("A", 2)]
        assert replica.selected_ids == set()
        assert dirty_ids(on_dirty) == ["A"]

        replica.restore_from_saved_for_later("A")

        assert {item.id: item.quantity for item in replica.items} == {"A": 2, "B": 1}
        assert replica.saved_for_later == []

    def test_restore_merges_into_existing_line(self, replica, make_item):
        """Restoring never creates a duplicate id."""
        replica.add_item(make_item("A"), 2)
        replica.select("A")
        replica.move_selected_to_saved_for_later()
        replica.add_item(make_item("A"), 1)

        replica.restore_from_saved_for_later("A")

        assert [(item.id, item.quantity) for item in replica.items] == [("A", 3)]

    def test_restore_unknown_is_noop(self, replica, listeners):
        on_dirty, _ = listeners

        replica.restore_from_saved_for_later("ghost")

        on_dirty.assert_not_called()

    def test_saving_same_line_twice_keeps_quantity(self, replica, make_item):
        """A line already saved absorbs the quantity instead of losing it."""
        replica.add_item(make_item("A"), 2)
        replica.select("A")
        replica.move_selected_to_saved_for_later()
        replica.add_item(make_item("A"), 3)
        replica.select("A")
        replica.move_selected_to_saved_for_later()

        assert [(item.id, item.quantity) for item in replica.saved_for_later] == [("A", 5)]
        assert replica.is_empty

        replica.restore_from_saved_for_later("A")

        assert [(item.id, item.quantity) for item in replica.items] == [("A", 5)]

    def test_remove_and_clear_saved(self, replica, make_item):
        replica.add_item(make_item("A"))
        replica.add_item(make_item("B"))
        replica.select_all()
        replica.move_selected_to_saved_for_later()

        replica.remove_saved_for_later("A")
        assert [item.id for item in replica.saved_for_later] == ["B"]

        replica.clear_saved_for_later()
        assert replica.saved_for_later == []
