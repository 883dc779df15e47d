"""
Sync timing between the cart replica and the remote cart.

- debounce: mutations are coalesced; the whole replica is written once a
  quiet window passes without new dirty ids
- throttle: forced reconciliations run at most once per cool-down window
- mutual exclusion: one reconciliation at a time
"""
import asyncio
import time
from typing import Callable, Optional, Set

from cartsync.config import CART_DEBOUNCE_SECONDS, CART_THROTTLE_SECONDS
from cartsync.errors import ERROR_PUSH_LOCAL_FAILED, ERROR_PUSH_MERGED_FAILED, ERROR_PUSH_RESTORED_FAILED
from cartsync.logging import get_logger
from .merge import carts_match, merge
from .models import SyncResult
from .persistence import PersistenceAdapter
from .remote import RemoteCartClient
from .replica import CartReplica

logger = get_logger(__name__)


class SyncCoordinator:
    """Owns the debounce timer, the throttle timestamp and the in-flight flag."""

    def __init__(
        self,
        replica: CartReplica,
        remote: RemoteCartClient,
        persistence: Optional[PersistenceAdapter] = None,
        debounce_seconds: float = CART_DEBOUNCE_SECONDS,
        throttle_seconds: float = CART_THROTTLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.replica = replica
        self.remote = remote
        self.persistence = persistence
        self.debounce_seconds = debounce_seconds
        self.throttle_seconds = throttle_seconds
        self.clock = clock

        self._dirty: Set[str] = set()
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._write_task: Optional[asyncio.Task] = None
        self._write_tasks: Set[asyncio.Task] = set()
        self._last_forced_at: Optional[float] = None
        self._in_flight = False

    # =====================================================
    # STATE
    # =====================================================
    @property
    def is_syncing(self) -> bool:
        return self._in_flight

    @property
    def dirty_ids(self) -> Set[str]:
        return set(self._dirty)

    @property
    def has_pending_write(self) -> bool:
        write_running = any(not task.done() for task in self._write_tasks)
        return bool(self._dirty) or self._debounce_handle is not None or write_running

    # =====================================================
    # DEBOUNCED WRITES
    # =====================================================
    def mark_dirty(self, item_id: str) -> None:
        """Record a touched line and (re)start the quiet window."""
        self._dirty.add(item_id)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Written by the next sync_with_server/force_sync instead
            logger.debug("No running event loop, remote write stays pending")
            return

        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = loop.call_later(self.debounce_seconds, self._start_write)

    def _start_write(self) -> None:
        self._debounce_handle = None
        self._chain_write()

    def _chain_write(self) -> asyncio.Task:
        previous = self._write_task
        task = asyncio.get_running_loop().create_task(self._write_after(previous))
        self._write_task = task
        self._write_tasks.add(task)
        task.add_done_callback(self._write_tasks.discard)
        return task

    async def _write_after(self, previous: Optional[asyncio.Task]) -> bool:
        # Writes go out in order so an older snapshot never lands last.
        # asyncio.wait ignores how `previous` ended but still raises if this
        # task itself is cancelled.
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        return await self._flush()

    async def _flush(self) -> bool:
        dirty = set(self._dirty)
        self._dirty.clear()
        snapshot = self.replica.items

        try:
            ok = await self.remote.save_cart(snapshot)
        except asyncio.CancelledError:
            self._dirty |= dirty
            raise
        if ok:
            logger.info(f"Cart written to server ({len(snapshot)} lines, {len(dirty)} changed)")
        else:
            self._dirty |= dirty
            logger.warning("Debounced cart write failed, keeping local state as pending")
        return ok

    async def sync_with_server(self) -> bool:
        """Push the current replica now, skipping the quiet window."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

        return await self._chain_write()

    async def flush(self) -> Optional[bool]:
        """Write now if anything is pending; None when there was nothing to do."""
        if not self.has_pending_write:
            return None
        return await self.sync_with_server()

    # =====================================================
    # RECONCILIATION
    # =====================================================
    async def force_sync(self) -> SyncResult:
        """Full reconciliation; throttled and never run twice at once."""
        if self._in_flight:
            logger.debug("Reconciliation already in flight, skipping")
            return SyncResult(items=self.replica.items, skipped=True)

        now = self.clock()
        if self._last_forced_at is not None and now - self._last_forced_at < self.throttle_seconds:
            remaining_ms = (self.throttle_seconds - (now - self._last_forced_at)) * 1000
            logger.debug(f"Sync throttled, {remaining_ms:.0f}ms remaining")
            return SyncResult(items=self.replica.items, skipped=True)

        self._last_forced_at = now
        self._in_flight = True
        try:
            return await self._reconcile()
        except Exception as e:
            logger.error(f"Cart reconciliation failed, keeping client cart: {e}", exc_info=True)
            return SyncResult(items=self.replica.items, errors=[f"Sync error: {e}"])
        finally:
            self._in_flight = False

    async def _reconcile(self) -> SyncResult:
        # A failed fetch counts as an empty server, never as the last good read
        server_items = await self.remote.fetch_cart(use_cache=False, fallback=False)

        # No await between capturing local state and adopting the result
        local_items = self.replica.items
        result = SyncResult(items=local_items)

        if not server_items and local_items:
            logger.info("Server cart is empty but client has items, pushing client cart")
            version = self.replica.version
            if await self.remote.save_cart(local_items):
                self._mark_synced(version)
            else:
                logger.warning(f"{ERROR_PUSH_LOCAL_FAILED}, keeping client cart")
                result.errors.append(ERROR_PUSH_LOCAL_FAILED)
            result.items = self.replica.items
            return result

        if server_items and not local_items:
            logger.info(f"Client cart is empty, adopting server cart ({len(server_items)} lines)")
            self.replica.replace(server_items)
            result.items = self.replica.items
            result.had_changes = True
            return result

        if server_items and local_items:
            merged = merge(local_items, server_items)
            result.had_changes = not carts_match(merged, local_items)
            self.replica.replace(merged)
            version = self.replica.version
            logger.info(f"Merged client and server carts ({len(merged)} lines)")

            if await self.remote.save_cart(merged):
                self._mark_synced(version)
            else:
                logger.warning(f"{ERROR_PUSH_MERGED_FAILED}, keeping merged cart locally")
                result.errors.append(ERROR_PUSH_MERGED_FAILED)
            result.items = self.replica.items
            return result

        stored = self.persistence.load() if self.persistence is not None else []
        if not stored:
            logger.info("Client and server carts are empty, no local backup")
            return result

        logger.info(f"Both carts empty, restoring {len(stored)} lines from local storage")
        self.replica.replace(stored)
        version = self.replica.version
        result.items = self.replica.items
        result.had_changes = True
        if await self.remote.save_cart(stored):
            self._mark_synced(version)
        else:
            result.errors.append(ERROR_PUSH_RESTORED_FAILED)
        return result

    def _mark_synced(self, version: int) -> None:
        # Only if nothing changed while the push was on the wire
        if self.replica.version != version:
            return
        self._dirty.clear()
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    async def load_cart(self):
        """
        Fetch the server cart and adopt it when it has lines.

        Local changes still waiting for a write are merged over it instead of
        being replaced.
        """
        if self._in_flight:
            return self.replica.items

        self._in_flight = True
        try:
            server_items = await self.remote.fetch_cart()
            if not server_items:
                logger.info("Server cart is empty, keeping client cart")
            elif self.has_pending_write:
                self.replica.replace(merge(self.replica.items, server_items))
            else:
                self.replica.replace(server_items)
        finally:
            self._in_flight = False
        return self.replica.items

    # =====================================================
    # TEARDOWN
    # =====================================================
    async def close(self) -> None:
        """Cancel timers and any write still running."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

        tasks = [task for task in self._write_tasks if not task.done()]
        self._write_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
