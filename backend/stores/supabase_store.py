# backend/stores/supabase_store.py
"""
Supabase-backed store.

Single-row reads and writes go through PostgREST table calls. Every grouped
operation is a Postgres function (supabase/migrations) invoked with
supabase.rpc(), so it runs as one database transaction. Functions signal
engine errors by raising with the engine error code as the message.
"""
from typing import Any, Optional
from uuid import UUID

import structlog
from postgrest.exceptions import APIError
from pydantic import BaseModel, ValidationError
from supabase import Client

from models.inventory import InventoryEntry, TradeOffer
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
    ERRORS_BY_CODE,
    DuplicateRequest,
    InvalidQuantity,
    NotFound,
    StoreDataError,
    TradeEngineError,
    TransientStoreError,
)
from stores.base import TradeStore

logger = structlog.get_logger(__name__)

UNIQUE_VIOLATION = "23505"
TRANSIENT_CODES = {"40001", "40P01"}  # serialization_failure, deadlock_detected
NUMERIC_OUT_OF_RANGE = "22003"
INVALID_TEXT_REPRESENTATION = "22P02"  # e.g. a user id that is not a uuid


def translate_api_error(exc: APIError) -> TradeEngineError:
    """Map a PostgREST error onto the engine error hierarchy."""
    if exc.code == UNIQUE_VIOLATION:
        return DuplicateRequest("A pending request already exists for this card")
    if exc.code in TRANSIENT_CODES:
        return TransientStoreError(exc.message or "Storage contention", pg_code=exc.code)
    if exc.code == NUMERIC_OUT_OF_RANGE:
        return InvalidQuantity("Quantity out of range", pg_code=exc.code)
    if exc.code == INVALID_TEXT_REPRESENTATION:
        return NotFound("Unknown user or record id", pg_code=exc.code)

    error_cls = ERRORS_BY_CODE.get(exc.message or "")
    if error_cls is not None:
        return error_cls(exc.details or exc.message)

    return StoreDataError(exc.message or "Unexpected storage error", pg_code=exc.code)


def _to_record(model: type[BaseModel], row: Any, table: str):
    """Validate a raw row into a typed record, failing fast on bad shapes."""
    try:
        return model.model_validate(row)
    except ValidationError as exc:
        raise StoreDataError(f"Malformed {table} row", table=table, errors=exc.errors()) from exc


class SupabaseStore(TradeStore):
    """TradeStore over a Supabase project."""

    def __init__(self, client: Client):
        self.client = client

    def _execute(self, query):
        try:
            return query.execute()
        except APIError as exc:
            error = translate_api_error(exc)
            logger.debug("supabase_error", pg_code=exc.code, error_code=error.code)
            raise error from exc

    def _rpc(self, function: str, params: dict[str, Any]):
        return self._execute(self.client.rpc(function, params)).data

    # ============== Inventory ==============

    def get_holdings(self, user_id: str) -> dict[int, int]:
        result = self._execute(
            self.client.table("user_cards")
            .select("user_id, card_id, quantity")
            .eq("user_id", user_id)
            .gt("quantity", 0)
        )

        entries = [_to_record(InventoryEntry, row, "user_cards") for row in result.data]
        return {entry.card_id: entry.quantity for entry in entries}

    def adjust(self, user_id: str, card_id: int, delta: int) -> int:
        data = self._rpc("adjust_user_card", {
            "p_user_id": user_id,
            "p_card_id": card_id,
            "p_delta": delta,
        })
        if not isinstance(data, int):
            raise StoreDataError("adjust_user_card returned no quantity", table="user_cards")
        return data

    def transfer(self, owner_id: str, requester_id: str, card_id: int) -> TransferResult:
        data = self._rpc("transfer_user_card", {
            "p_owner_id": owner_id,
            "p_requester_id": requester_id,
            "p_card_id": card_id,
        })
        return _to_record(TransferResult, data, "user_cards")

    # ============== Offers ==============

    def list_offers(self, user_id: str) -> set[int]:
        result = self._execute(
            self.client.table("trade_offers").select("user_id, card_id").eq("user_id", user_id)
        )
        return {_to_record(TradeOffer, row, "trade_offers").card_id for row in result.data}

    def set_offer(self, user_id: str, card_id: int, listed: bool) -> None:
        if listed:
            self._execute(
                self.client.table("trade_offers").upsert(
                    {"user_id": user_id, "card_id": card_id},
                    on_conflict="user_id,card_id",
                )
            )
        else:
            self._execute(
                self.client.table("trade_offers")
                .delete()
                .eq("user_id", user_id)
                .eq("card_id", card_id)
            )

    # ============== Trade requests ==============

    def create_request(self, from_user_id: str, to_user_id: str, card_id: int) -> TradeRequest:
        result = self._execute(
            self.client.table("trade_requests").insert({
                "from_user_id": from_user_id,
                "to_user_id": to_user_id,
                "card_id": card_id,
                "status": TradeRequestStatus.PENDING.value,
            })
        )

        if not result.data:
            raise StoreDataError("Failed to create trade request", table="trade_requests")

        return _to_record(TradeRequest, result.data[0], "trade_requests")

    def withdraw_request(self, from_user_id: str, to_user_id: str, card_id: int) -> Optional[TradeRequest]:
        result = self._execute(
            self.client.table("trade_requests")
            .delete()
            .eq("from_user_id", from_user_id)
            .eq("to_user_id", to_user_id)
            .eq("card_id", card_id)
            .eq("status", TradeRequestStatus.PENDING.value)
        )

        if not result.data:
            return None
        return _to_record(TradeRequest, result.data[0], "trade_requests")

    def get_request(self, request_id: int) -> Optional[TradeRequest]:
        result = self._execute(
            self.client.table("trade_requests").select("*").eq("id", request_id).limit(1)
        )

        if not result.data:
            return None
        return _to_record(TradeRequest, result.data[0], "trade_requests")

    def list_requests(
        self,
        user_id: str,
        direction: RequestDirection,
        status: Optional[TradeRequestStatus] = None,
    ) -> list[TradeRequest]:
        column = "to_user_id" if direction == RequestDirection.INCOMING else "from_user_id"
        query = self.client.table("trade_requests").select("*").eq(column, user_id)

        if status is not None:
            query = query.eq("status", status.value)

        result = self._execute(query.order("created_at", desc=True))
        return [_to_record(TradeRequest, row, "trade_requests") for row in result.data]

    def decide_request(
        self, request_id: int, accept: bool
    ) -> tuple[TradeRequest, Optional[TradeSession]]:
        data = self._rpc("decide_trade_request", {
            "p_request_id": request_id,
            "p_accept": accept,
        })

        if not isinstance(data, dict) or "request" not in data:
            raise StoreDataError("decide_trade_request returned no request", table="trade_requests")

        request = _to_record(TradeRequest, data["request"], "trade_requests")
        session = None
        if data.get("session") is not None:
            session = _to_record(TradeSession, data["session"], "trade_sessions")
        return request, session

    # ============== Trade sessions ==============

    def get_session(self, session_id: int) -> Optional[TradeSession]:
        result = self._execute(
            self.client.table("trade_sessions").select("*").eq("id", session_id).limit(1)
        )

        if not result.data:
            return None
        return _to_record(TradeSession, result.data[0], "trade_sessions")

    def list_sessions(
        self, user_id: str, status: Optional[TradeSessionStatus] = None
    ) -> list[TradeSession]:
        try:
            party = str(UUID(user_id))
        except ValueError:
            # Ids are uuid columns; anything else takes part in no session
            return []

        query = (
            self.client.table("trade_sessions")
            .select("*")
            .or_(f"requester_id.eq.{party},owner_id.eq.{party}")
        )

        if status is not None:
            query = query.eq("status", status.value)

        result = self._execute(query.order("created_at", desc=True))
        return [_to_record(TradeSession, row, "trade_sessions") for row in result.data]

    def confirm_session(
        self, session_id: int, role: ParticipantRole, require_both: bool
    ) -> TradeSession:
        data = self._rpc("confirm_trade_session", {
            "p_session_id": session_id,
            "p_role": role.value,
            "p_require_both": require_both,
        })
        return _to_record(TradeSession, data, "trade_sessions")
