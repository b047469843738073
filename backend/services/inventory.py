# backend/services/inventory.py
"""
Inventory service: holdings reads, manual add/remove, and the trade offer list.

Holdings reads always go to the store, so every committed change is visible to
the next read from any worker. HoldingsProjection is a small read-through cache
used only by the matching read path, where suggestions may be slightly stale.
Entries expire after a short TTL and are dropped early on local mutations.
"""
import threading
import time
from collections import OrderedDict
from typing import Optional

import structlog

from models.inventory import MAX_QUANTITY
from services.errors import InvalidQuantity
from stores.base import TradeStore

logger = structlog.get_logger(__name__)


class HoldingsProjection:
    """
    Per-user read-through cache of holdings with TTL.

    Uses LRU eviction when the cache size limit is reached.
    """

    def __init__(self, store: TradeStore, max_size: int = 1024, ttl_seconds: float = 5.0):
        self.store = store
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._cache: OrderedDict[str, tuple[dict[int, int], float]] = OrderedDict()
        self._generation = 0

    def get(self, user_id: str) -> dict[int, int]:
        with self._lock:
            generation = self._generation
            entry = self._cache.get(user_id)
            if entry is not None:
                holdings, expiry = entry
                if time.monotonic() <= expiry:
                    self._cache.move_to_end(user_id)
                    return dict(holdings)
                del self._cache[user_id]

        holdings = self.store.get_holdings(user_id)

        with self._lock:
            # Any invalidation that raced the read wins; don't cache stale data
            if self._generation == generation:
                self._cache.pop(user_id, None)
                if self._cache and len(self._cache) >= self.max_size:
                    self._cache.popitem(last=False)
                self._cache[user_id] = (dict(holdings), time.monotonic() + self.ttl_seconds)
        return holdings

    def invalidate(self, *user_ids: str) -> None:
        with self._lock:
            for user_id in user_ids:
                self._cache.pop(user_id, None)
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class InventoryService:
    """Owns user holdings and trade offers."""

    def __init__(self, store: TradeStore, projection: Optional[HoldingsProjection] = None):
        self.store = store
        self.projection = projection or HoldingsProjection(store)

    def get_holdings(self, user_id: str) -> dict[int, int]:
        return self.store.get_holdings(user_id)

    def cached_holdings(self, user_id: str) -> dict[int, int]:
        """Possibly stale holdings, for suggestions only."""
        return self.projection.get(user_id)

    def adjust(self, user_id: str, card_id: int, delta: int) -> int:
        """
        Add or remove copies of a card for a user.

        Args:
            user_id: Owner of the holdings
            card_id: Card to adjust
            delta: Positive to add, negative to remove; zero is rejected

        Returns:
            The new quantity (0 when the entry was removed)
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise InvalidQuantity("Adjustment must be a non-zero integer", delta=delta)
        if abs(delta) > MAX_QUANTITY:
            raise InvalidQuantity("Adjustment out of range", delta=delta)

        try:
            quantity = self.store.adjust(user_id, card_id, delta)
        except InvalidQuantity:
            logger.warning("inventory_adjust_rejected", user_id=user_id, card_id=card_id, delta=delta)
            raise

        self.projection.invalidate(user_id)
        logger.info(
            "inventory_adjusted",
            user_id=user_id,
            card_id=card_id,
            delta=delta,
            quantity=quantity,
        )
        return quantity

    def list_offers(self, user_id: str) -> set[int]:
        return self.store.list_offers(user_id)

    def set_offer(self, user_id: str, card_id: int, listed: bool) -> set[int]:
        """List or unlist a card as available for trade; returns the updated offer list."""
        self.store.set_offer(user_id, card_id, listed)
        logger.info("trade_offer_updated", user_id=user_id, card_id=card_id, listed=listed)
        return self.store.list_offers(user_id)
