# backend/stores/memory.py
"""
In-process store for local development and tests.

A single re-entrant lock serializes every unit of work. Grouped operations
run inside _transaction(), which restores the pre-operation tables when the
body raises, so a failed transfer leaves no partial effect.
"""
import itertools
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog

from models.inventory import MAX_QUANTITY
from models.trade import (
    ParticipantRole,
    RequestDirection,
    TradeRequest,
    TradeRequestStatus,
    TradeSession,
    TradeSessionStatus,
    TransferResult,
)
from services.errors import (
    AlreadyCompleted,
    AlreadyDecided,
    DuplicateRequest,
    InsufficientQuantity,
    InvalidQuantity,
    NotFound,
)
from stores.base import TradeStore

logger = structlog.get_logger(__name__)


class MemoryStore(TradeStore):
    """Dict-backed TradeStore with lock-based atomic units of work."""

    def __init__(self):
        self._lock = threading.RLock()
        self._holdings: dict[tuple[str, int], int] = {}
        self._offers: set[tuple[str, int]] = set()
        self._requests: dict[int, TradeRequest] = {}
        self._sessions: dict[int, TradeSession] = {}
        self._request_ids = itertools.count(1)
        self._session_ids = itertools.count(1)

    @contextmanager
    def _transaction(self):
        with self._lock:
            # Records are frozen, so shallow copies are full snapshots
            snapshot = (
                dict(self._holdings),
                set(self._offers),
                dict(self._requests),
                dict(self._sessions),
            )
            try:
                yield
            except Exception as exc:
                self._holdings, self._offers, self._requests, self._sessions = snapshot
                logger.debug("memory_store_rollback", error=type(exc).__name__)
                raise

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    # ============== Inventory ==============

    def get_holdings(self, user_id: str) -> dict[int, int]:
        with self._lock:
            return {
                card_id: quantity
                for (owner, card_id), quantity in self._holdings.items()
                if owner == user_id and quantity > 0
            }

    def adjust(self, user_id: str, card_id: int, delta: int) -> int:
        with self._transaction():
            return self._apply_delta(user_id, card_id, delta)

    def _apply_delta(self, user_id: str, card_id: int, delta: int) -> int:
        key = (user_id, card_id)
        new_quantity = self._holdings.get(key, 0) + delta

        if new_quantity < 0:
            raise InvalidQuantity(
                "Cannot adjust to negative quantity",
                user_id=user_id,
                card_id=card_id,
                delta=delta,
            )
        if new_quantity > MAX_QUANTITY:
            raise InvalidQuantity("Quantity out of range", user_id=user_id, card_id=card_id)

        if new_quantity == 0:
            self._holdings.pop(key, None)
        else:
            self._holdings[key] = new_quantity
        return new_quantity

    def transfer(self, owner_id: str, requester_id: str, card_id: int) -> TransferResult:
        with self._transaction():
            return self._transfer_unit(owner_id, requester_id, card_id)

    def _transfer_unit(self, owner_id: str, requester_id: str, card_id: int) -> TransferResult:
        if self._holdings.get((owner_id, card_id), 0) < 1:
            raise InsufficientQuantity(
                "Owner no longer holds this card",
                owner_id=owner_id,
                card_id=card_id,
            )

        owner_quantity = self._apply_delta(owner_id, card_id, -1)
        requester_quantity = self._apply_delta(requester_id, card_id, 1)

        return TransferResult(
            card_id=card_id,
            owner_id=owner_id,
            owner_quantity=owner_quantity,
            requester_id=requester_id,
            requester_quantity=requester_quantity,
        )

    # ============== Offers ==============

    def list_offers(self, user_id: str) -> set[int]:
        with self._lock:
            return {card_id for owner, card_id in self._offers if owner == user_id}

    def set_offer(self, user_id: str, card_id: int, listed: bool) -> None:
        with self._lock:
            if listed:
                self._offers.add((user_id, card_id))
            else:
                self._offers.discard((user_id, card_id))

    # ============== Trade requests ==============

    def _find_pending(self, from_user_id: str, to_user_id: str, card_id: int) -> Optional[TradeRequest]:
        for request in self._requests.values():
            if (
                request.is_pending
                and request.from_user_id == from_user_id
                and request.to_user_id == to_user_id
                and request.card_id == card_id
            ):
                return request
        return None

    def create_request(self, from_user_id: str, to_user_id: str, card_id: int) -> TradeRequest:
        with self._transaction():
            if self._find_pending(from_user_id, to_user_id, card_id):
                raise DuplicateRequest(
                    "A pending request already exists for this card",
                    from_user_id=from_user_id,
                    to_user_id=to_user_id,
                    card_id=card_id,
                )

            request = TradeRequest(
                id=next(self._request_ids),
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                card_id=card_id,
                status=TradeRequestStatus.PENDING,
                created_at=self._now(),
            )
            self._requests[request.id] = request
            return request

    def withdraw_request(self, from_user_id: str, to_user_id: str, card_id: int) -> Optional[TradeRequest]:
        with self._transaction():
            request = self._find_pending(from_user_id, to_user_id, card_id)
            if request is None:
                return None
            del self._requests[request.id]
            return request

    def get_request(self, request_id: int) -> Optional[TradeRequest]:
        with self._lock:
            return self._requests.get(request_id)

    def list_requests(
        self,
        user_id: str,
        direction: RequestDirection,
        status: Optional[TradeRequestStatus] = None,
    ) -> list[TradeRequest]:
        with self._lock:
            requests = [
                request for request in self._requests.values()
                if (
                    request.to_user_id if direction == RequestDirection.INCOMING
                    else request.from_user_id
                ) == user_id
                and (status is None or request.status == status)
            ]
        return sorted(requests, key=lambda r: (r.created_at, r.id), reverse=True)

    def decide_request(
        self, request_id: int, accept: bool
    ) -> tuple[TradeRequest, Optional[TradeSession]]:
        with self._transaction():
            request = self._requests.get(request_id)
            if request is None:
                raise NotFound("Trade request not found", request_id=request_id)
            if not request.is_pending:
                raise AlreadyDecided(
                    f"Trade request already {request.status.value}",
                    request_id=request_id,
                )

            status = TradeRequestStatus.ACCEPTED if accept else TradeRequestStatus.REFUSED
            request = request.model_copy(update={"status": status})
            self._requests[request.id] = request

            session = None
            if accept:
                session = TradeSession(
                    id=next(self._session_ids),
                    trade_request_id=request.id,
                    requester_id=request.from_user_id,
                    owner_id=request.to_user_id,
                    card_id=request.card_id,
                    status=TradeSessionStatus.WAITING_REAL_LIFE,
                    created_at=self._now(),
                )
                self._sessions[session.id] = session

            return request, session

    # ============== Trade sessions ==============

    def get_session(self, session_id: int) -> Optional[TradeSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(
        self, user_id: str, status: Optional[TradeSessionStatus] = None
    ) -> list[TradeSession]:
        with self._lock:
            sessions = [
                session for session in self._sessions.values()
                if user_id in (session.requester_id, session.owner_id)
                and (status is None or session.status == status)
            ]
        return sorted(sessions, key=lambda s: (s.created_at, s.id), reverse=True)

    def confirm_session(
        self, session_id: int, role: ParticipantRole, require_both: bool
    ) -> TradeSession:
        with self._transaction():
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFound("Trade session not found", session_id=session_id)
            if session.is_completed:
                raise AlreadyCompleted("Trade session already completed", session_id=session_id)

            if require_both:
                by_requester = session.confirmed_by_requester or role == ParticipantRole.REQUESTER
                by_owner = session.confirmed_by_owner or role == ParticipantRole.OWNER
            else:
                by_requester = by_owner = True

            update = {
                "confirmed_by_requester": by_requester,
                "confirmed_by_owner": by_owner,
            }
            if by_requester and by_owner:
                self._transfer_unit(session.owner_id, session.requester_id, session.card_id)
                update["status"] = TradeSessionStatus.COMPLETED
                update["completed_at"] = self._now()

            session = session.model_copy(update=update)
            self._sessions[session.id] = session
            return session
