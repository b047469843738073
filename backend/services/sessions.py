# backend/services/sessions.py
"""
Trade session state machine.

    waiting_real_life --confirm--> completed

completed is terminal. Completion and the card transfer commit together in
the store; a failed transfer leaves the session waiting.

In SINGLE confirmation mode one confirm by either party sets both flags and
completes the trade. MUTUAL mode sets only the actor's flag and completes on
the confirm that makes both true.
"""
from typing import Optional

import structlog

from models.trade import ConfirmationMode, TradeSession, TradeSessionStatus
from services.errors import AlreadyCompleted, Forbidden, InsufficientQuantity, NotFound
from services.retry import RetryPolicy
from services.transfer import TransferExecutor
from stores.base import TradeStore

logger = structlog.get_logger(__name__)


class TradeSessionMachine:
    """Drives sessions from acceptance through in-person confirmation."""

    def __init__(
        self,
        store: TradeStore,
        transfer: TransferExecutor,
        retry: RetryPolicy,
        mode: ConfirmationMode = ConfirmationMode.SINGLE,
    ):
        self.store = store
        self.transfer = transfer
        self.retry = retry
        self.mode = mode

    def get_session(self, session_id: int) -> TradeSession:
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFound("Trade session not found", session_id=session_id)
        return session

    def get_session_for(self, session_id: int, actor_id: str) -> TradeSession:
        session = self.get_session(session_id)
        if session.role_of(actor_id) is None:
            raise Forbidden("Not a party to this trade session", session_id=session_id)
        return session

    def list_sessions(
        self, user_id: str, status: Optional[TradeSessionStatus] = None
    ) -> list[TradeSession]:
        return self.store.list_sessions(user_id, status)

    def confirm(self, session_id: int, actor_id: str) -> TradeSession:
        """
        Confirm the in-person exchange happened.

        Raises:
            NotFound: no such session
            Forbidden: actor is neither requester nor owner
            AlreadyCompleted: the session already completed
            InsufficientQuantity: the owner no longer holds the card
        """
        session = self.get_session(session_id)

        role = session.role_of(actor_id)
        if role is None:
            logger.warning("trade_session_confirm_forbidden", session_id=session_id, actor_id=actor_id)
            raise Forbidden("Only trade participants can confirm", session_id=session_id)

        if session.is_completed:
            raise AlreadyCompleted("Trade session already completed", session_id=session_id)

        require_both = self.mode == ConfirmationMode.MUTUAL
        try:
            session = self.retry.run(
                "confirm_session",
                lambda: self.store.confirm_session(session_id, role, require_both),
            )
        except (AlreadyCompleted, InsufficientQuantity) as exc:
            logger.warning(
                "trade_session_confirm_failed",
                session_id=session_id,
                actor_id=actor_id,
                error=exc.code,
            )
            raise

        logger.info(
            "trade_session_confirmed",
            session_id=session.id,
            role=role.value,
            status=session.status.value,
        )

        if session.is_completed:
            self.transfer.settled(session.owner_id, session.requester_id, session.card_id)
        return session
