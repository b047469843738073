# backend/models/trade.py
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


# ============== Enums ==============

class TradeRequestStatus(str, Enum):
    """Trade request lifecycle states."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REFUSED = "refused"


class TradeSessionStatus(str, Enum):
    """Trade session lifecycle states."""
    WAITING_REAL_LIFE = "waiting_real_life"
    COMPLETED = "completed"


class TradeDecision(str, Enum):
    ACCEPT = "accept"
    REFUSE = "refuse"


class RequestDirection(str, Enum):
    """Which side of a request the listing user is on."""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class ParticipantRole(str, Enum):
    REQUESTER = "requester"
    OWNER = "owner"


class ConfirmationMode(str, Enum):
    """How many parties must confirm before a session completes."""
    SINGLE = "single"  # either party's confirm completes the trade
    MUTUAL = "mutual"  # each party confirms their own side


# ============== Records ==============

class TradeRequest(BaseModel):
    """from_user_id wants one unit of card_id that to_user_id owns."""
    id: int
    from_user_id: str
    to_user_id: str
    card_id: int = Field(gt=0)
    status: TradeRequestStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_pending(self) -> bool:
        return self.status == TradeRequestStatus.PENDING


class TradeSession(BaseModel):
    """In-person hand-off of one card unit from owner to requester."""
    id: int
    trade_request_id: int
    requester_id: str
    owner_id: str
    card_id: int = Field(gt=0)
    status: TradeSessionStatus
    confirmed_by_requester: bool = False
    confirmed_by_owner: bool = False
    created_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_completed(self) -> bool:
        return self.status == TradeSessionStatus.COMPLETED

    def role_of(self, user_id: str) -> Optional[ParticipantRole]:
        """Return the user's role in this session, or None if not a party."""
        if user_id == self.requester_id:
            return ParticipantRole.REQUESTER
        if user_id == self.owner_id:
            return ParticipantRole.OWNER
        return None


# ============== Create / Action Schemas ==============

class TradeRequestCreate(BaseModel):
    """Schema for asking another user for one of their cards."""
    to_user_id: str = Field(min_length=1, description="User who owns the card")
    card_id: int = Field(gt=0)


class TradeRequestDecide(BaseModel):
    """Schema for the owner's answer to a pending request."""
    decision: TradeDecision


# ============== Response Schemas ==============

class TradeDecisionResponse(BaseModel):
    request: TradeRequest
    session_id: Optional[int] = Field(
        default=None,
        description="Session created when the request was accepted"
    )


class TradeRequestListResponse(BaseModel):
    requests: list[TradeRequest]
    total: int


class TradeSessionListResponse(BaseModel):
    sessions: list[TradeSession]
    total: int


class TransferResult(BaseModel):
    """Quantities on both sides after a single-unit transfer."""
    card_id: int
    owner_id: str
    owner_quantity: int = Field(ge=0)
    requester_id: str
    requester_quantity: int = Field(ge=1)
