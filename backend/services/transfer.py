# backend/services/transfer.py
import structlog

from models.trade import TransferResult
from services.errors import InsufficientQuantity, SelfTrade
from services.inventory import HoldingsProjection
from services.retry import RetryPolicy
from stores.base import TradeStore

logger = structlog.get_logger(__name__)


class TransferExecutor:
    """
    The only path that moves a card between two users.

    The store applies the owner decrement and requester increment as one unit
    of work; session completion runs the same store transfer inside its own
    unit of work.
    """

    def __init__(self, store: TradeStore, projection: HoldingsProjection, retry: RetryPolicy):
        self.store = store
        self.projection = projection
        self.retry = retry

    def transfer(self, owner_id: str, requester_id: str, card_id: int) -> TransferResult:
        if owner_id == requester_id:
            raise SelfTrade("Cannot transfer a card to yourself", user_id=owner_id)

        try:
            result = self.retry.run(
                "transfer",
                lambda: self.store.transfer(owner_id, requester_id, card_id),
            )
        except InsufficientQuantity:
            logger.warning(
                "card_transfer_rejected",
                owner_id=owner_id,
                requester_id=requester_id,
                card_id=card_id,
            )
            raise

        self.settled(owner_id, requester_id, card_id)
        return result

    def settled(self, owner_id: str, requester_id: str, card_id: int) -> None:
        """Record that a transfer committed: refresh both users' projections."""
        self.projection.invalidate(owner_id, requester_id)
        logger.info(
            "card_transferred",
            owner_id=owner_id,
            requester_id=requester_id,
            card_id=card_id,
        )
