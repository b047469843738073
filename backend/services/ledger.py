# backend/services/ledger.py
"""
Trade request ledger.

Handles:
- Creating and withdrawing pending requests
- The owner's accept/refuse decision (accept opens a trade session)
- Listing incoming and outgoing requests
"""
from typing import Optional

import structlog

from models.trade import (
    RequestDirection,
    TradeDecision,
    TradeRequest,
    TradeRequestStatus,
    TradeSession,
)
from services.errors import AlreadyDecided, Forbidden, NotFound, SelfTrade
from services.retry import RetryPolicy
from stores.base import TradeStore

logger = structlog.get_logger(__name__)


class TradeRequestLedger:
    """Service for one-card trade requests between users."""

    def __init__(self, store: TradeStore, retry: RetryPolicy):
        self.store = store
        self.retry = retry

    def create_request(self, from_user_id: str, to_user_id: str, card_id: int) -> TradeRequest:
        """
        Ask another user for one copy of a card.

        Raises:
            SelfTrade: from_user_id and to_user_id are the same user
            DuplicateRequest: the same request is already pending
        """
        if from_user_id == to_user_id:
            raise SelfTrade("Cannot request a card from yourself", user_id=from_user_id)

        request = self.store.create_request(from_user_id, to_user_id, card_id)

        logger.info(
            "trade_request_created",
            request_id=request.id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            card_id=card_id,
        )
        return request

    def withdraw_request(self, from_user_id: str, to_user_id: str, card_id: int) -> TradeRequest:
        request = self.store.withdraw_request(from_user_id, to_user_id, card_id)

        if request is None:
            raise NotFound(
                "No pending request for this card",
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                card_id=card_id,
            )

        logger.info("trade_request_withdrawn", request_id=request.id)
        return request

    def get_request(self, request_id: int) -> TradeRequest:
        request = self.store.get_request(request_id)
        if request is None:
            raise NotFound("Trade request not found", request_id=request_id)
        return request

    def get_request_for(self, request_id: int, actor_id: str) -> TradeRequest:
        """Fetch a request visible to the actor (either party)."""
        request = self.get_request(request_id)
        if actor_id not in (request.from_user_id, request.to_user_id):
            raise Forbidden("Not a party to this trade request", request_id=request_id)
        return request

    def list_requests(
        self,
        user_id: str,
        direction: RequestDirection,
        status: Optional[TradeRequestStatus] = None,
    ) -> list[TradeRequest]:
        return self.store.list_requests(user_id, direction, status)

    def decide(
        self, request_id: int, actor_id: str, decision: TradeDecision
    ) -> tuple[TradeRequest, Optional[TradeSession]]:
        """
        Accept or refuse a pending request as its owner.

        Accepting flips the status and opens the trade session in one unit of
        work; a concurrent second decision sees AlreadyDecided.
        """
        request = self.get_request(request_id)

        if actor_id != request.to_user_id:
            logger.warning("trade_request_decide_forbidden", request_id=request_id, actor_id=actor_id)
            raise Forbidden("Only the card owner can decide this request", request_id=request_id)

        accept = decision == TradeDecision.ACCEPT
        try:
            request, session = self.retry.run(
                "decide_request",
                lambda: self.store.decide_request(request_id, accept),
            )
        except AlreadyDecided:
            logger.warning("trade_request_already_decided", request_id=request_id)
            raise

        logger.info(
            "trade_request_decided",
            request_id=request.id,
            status=request.status.value,
            session_id=session.id if session else None,
        )
        return request, session
