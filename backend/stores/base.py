# backend/stores/base.py
"""
Persistent store contract for the trade engine.

Each method is one atomic unit of work. Grouped operations (transfer,
decide_request, confirm_session) change several rows and must either apply
completely or not at all; concurrent callers on the same rows serialize.
"""
from abc import ABC, abstractmethod
from typing import Optional

from models.trade import (
    ParticipantRole,
    RequestDirection,
    TradeRequest,
    TradeRequestStatus,
    TradeSession,
    TradeSessionStatus,
    TransferResult,
)


class TradeStore(ABC):
    """Source of truth for holdings, offers, requests and sessions."""

    # ============== Inventory ==============

    @abstractmethod
    def get_holdings(self, user_id: str) -> dict[int, int]:
        """Return card_id -> quantity for every card the user holds (quantity >= 1)."""

    @abstractmethod
    def adjust(self, user_id: str, card_id: int, delta: int) -> int:
        """
        Apply quantity += delta and return the new quantity.

        Raises InvalidQuantity when the result would be negative. A result of
        zero removes the entry.
        """

    @abstractmethod
    def transfer(self, owner_id: str, requester_id: str, card_id: int) -> TransferResult:
        """
        Move one unit of card_id from owner to requester.

        Raises InsufficientQuantity, with neither side changed, when the owner
        holds none.
        """

    # ============== Offers ==============

    @abstractmethod
    def list_offers(self, user_id: str) -> set[int]:
        """Cards the user has marked as available for trade."""

    @abstractmethod
    def set_offer(self, user_id: str, card_id: int, listed: bool) -> None:
        """List or unlist a card. Idempotent in both directions."""

    # ============== Trade requests ==============

    @abstractmethod
    def create_request(self, from_user_id: str, to_user_id: str, card_id: int) -> TradeRequest:
        """Insert a pending request. Raises DuplicateRequest if one is already pending."""

    @abstractmethod
    def withdraw_request(self, from_user_id: str, to_user_id: str, card_id: int) -> Optional[TradeRequest]:
        """Delete the pending request for the triple, returning it, or None if absent."""

    @abstractmethod
    def get_request(self, request_id: int) -> Optional[TradeRequest]:
        ...

    @abstractmethod
    def list_requests(
        self,
        user_id: str,
        direction: RequestDirection,
        status: Optional[TradeRequestStatus] = None,
    ) -> list[TradeRequest]:
        ...

    @abstractmethod
    def decide_request(
        self, request_id: int, accept: bool
    ) -> tuple[TradeRequest, Optional[TradeSession]]:
        """
        Flip a pending request to accepted/refused.

        On accept the session is created in the same unit of work. Raises
        NotFound or AlreadyDecided.
        """

    # ============== Trade sessions ==============

    @abstractmethod
    def get_session(self, session_id: int) -> Optional[TradeSession]:
        ...

    @abstractmethod
    def list_sessions(
        self, user_id: str, status: Optional[TradeSessionStatus] = None
    ) -> list[TradeSession]:
        ...

    @abstractmethod
    def confirm_session(
        self, session_id: int, role: ParticipantRole, require_both: bool
    ) -> TradeSession:
        """
        Record a confirmation and complete the session when allowed.

        With require_both=False a single confirmation sets both flags. The
        session completes once both flags are set, and the transfer runs in
        the same unit of work. If the transfer fails nothing is changed.
        Raises NotFound, AlreadyCompleted or InsufficientQuantity.
        """
