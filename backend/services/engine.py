# backend/services/engine.py
from typing import Optional

from models.trade import ConfirmationMode
from services.inventory import HoldingsProjection, InventoryService
from services.ledger import TradeRequestLedger
from services.matching import MatchingService
from services.retry import RetryPolicy
from services.sessions import TradeSessionMachine
from services.transfer import TransferExecutor
from stores.base import TradeStore


class TradeEngine:
    """Wires the trade services over one store."""

    def __init__(
        self,
        store: TradeStore,
        mode: ConfirmationMode = ConfirmationMode.SINGLE,
        retry: Optional[RetryPolicy] = None,
    ):
        self.store = store
        self.retry = retry or RetryPolicy()
        self.projection = HoldingsProjection(store)

        self.inventory = InventoryService(store, self.projection)
        self.matching = MatchingService(self.inventory)
        self.transfers = TransferExecutor(store, self.projection, self.retry)
        self.ledger = TradeRequestLedger(store, self.retry)
        self.sessions = TradeSessionMachine(store, self.transfers, self.retry, mode)


def build_store(backend: str, url: Optional[str] = None, key: Optional[str] = None) -> TradeStore:
    """Create the configured store backend."""
    if backend == "memory":
        from stores.memory import MemoryStore
        return MemoryStore()

    if backend == "supabase":
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set for the supabase store")

        from supabase import create_client
        from stores.supabase_store import SupabaseStore
        return SupabaseStore(create_client(url, key))

    raise ValueError(f"Unknown store backend: {backend}")
