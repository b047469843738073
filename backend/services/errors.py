# backend/services/errors.py
"""
Error hierarchy for the trade engine.

Every error carries a stable machine code, a category and the HTTP status the
API layer renders it with. Categories let a client tell apart:
- stale_action: the action is no longer valid (re-fetch and re-decide)
- concurrent_change: the other side's data changed underneath the action
- not_allowed: the actor may not perform the action
"""
from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """High-level error categories for client handling."""
    VALIDATION = "validation"
    NOT_ALLOWED = "not_allowed"
    STALE_ACTION = "stale_action"
    CONCURRENT_CHANGE = "concurrent_change"
    INFRASTRUCTURE = "infrastructure"


class TradeEngineError(Exception):
    """Base exception for all trade engine errors."""

    code = "trade_engine_error"
    category = ErrorCategory.INFRASTRUCTURE
    http_status = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> dict:
        """Convert to the API error body."""
        return {
            "detail": self.message,
            "code": self.code,
            "category": self.category.value,
        }


# ============== Caller errors ==============

class InvalidQuantity(TradeEngineError):
    """Adjustment is zero/malformed or would drive holdings negative."""
    code = "invalid_quantity"
    category = ErrorCategory.VALIDATION
    http_status = 400


class SelfTrade(TradeEngineError):
    code = "self_trade"
    category = ErrorCategory.NOT_ALLOWED
    http_status = 400


class Forbidden(TradeEngineError):
    """Actor is not a party to the request or session."""
    code = "forbidden"
    category = ErrorCategory.NOT_ALLOWED
    http_status = 403


# ============== Stale state ==============

class NotFound(TradeEngineError):
    code = "not_found"
    category = ErrorCategory.STALE_ACTION
    http_status = 404


class DuplicateRequest(TradeEngineError):
    code = "duplicate_request"
    category = ErrorCategory.STALE_ACTION
    http_status = 409


class AlreadyDecided(TradeEngineError):
    code = "already_decided"
    category = ErrorCategory.STALE_ACTION
    http_status = 409


class AlreadyCompleted(TradeEngineError):
    code = "already_completed"
    category = ErrorCategory.STALE_ACTION
    http_status = 409


class InsufficientQuantity(TradeEngineError):
    """Owner no longer holds the card at transfer time."""
    code = "insufficient_quantity"
    category = ErrorCategory.CONCURRENT_CHANGE
    http_status = 409


# ============== Store errors ==============

class TransientStoreError(TradeEngineError):
    """Storage contention during a grouped operation. Safe to retry."""
    code = "store_contention"
    category = ErrorCategory.INFRASTRUCTURE
    http_status = 503


class StoreDataError(TradeEngineError):
    """A stored row could not be translated into a typed record."""
    code = "store_data"
    category = ErrorCategory.INFRASTRUCTURE
    http_status = 500

    def __init__(self, message: str, table: Optional[str] = None, **details: Any):
        super().__init__(message, table=table, **details)
        self.table = table


ERRORS_BY_CODE: dict[str, type[TradeEngineError]] = {
    cls.code: cls
    for cls in (
        InvalidQuantity,
        SelfTrade,
        Forbidden,
        NotFound,
        DuplicateRequest,
        AlreadyDecided,
        AlreadyCompleted,
        InsufficientQuantity,
    )
}
