# backend/models/inventory.py
from pydantic import BaseModel, Field, ConfigDict, computed_field

# Quantities are stored as Postgres integer
MAX_QUANTITY = 2**31 - 1


# ============== Records ==============

class InventoryEntry(BaseModel):
    """One user's owned quantity of one card. Absent rows mean zero."""
    user_id: str
    card_id: int = Field(gt=0)
    quantity: int = Field(ge=1, description="Number of copies owned")

    model_config = ConfigDict(from_attributes=True, frozen=True)


class TradeOffer(BaseModel):
    """A card the user has marked as available for trade."""
    user_id: str
    card_id: int = Field(gt=0)

    model_config = ConfigDict(from_attributes=True, frozen=True)


# ============== Request Schemas ==============

class InventoryCardAdjust(BaseModel):
    """Schema for adjusting quantity (add/remove cards)."""
    adjustment: int = Field(description="Positive to add, negative to remove")


# ============== Response Schemas ==============

class HoldingResponse(BaseModel):
    card_id: int
    quantity: int


class HoldingsResponse(BaseModel):
    """A user's visible holdings."""
    user_id: str
    cards: list[HoldingResponse] = []

    @computed_field
    @property
    def total_cards(self) -> int:
        """Sum of all card quantities."""
        return sum(card.quantity for card in self.cards)


class InventoryAdjustResponse(BaseModel):
    user_id: str
    card_id: int
    quantity: int = Field(ge=0, description="Quantity after the adjustment, 0 when removed")


class TradeOffersResponse(BaseModel):
    user_id: str
    card_ids: list[int] = []


class TradePotentialResponse(BaseModel):
    """Cards worth trading between the caller and another user."""
    user_id: str
    other_user_id: str
    want_from_them: list[int] = Field(
        default=[],
        description="Duplicates the other user holds that the caller lacks"
    )
    can_offer: list[int] = Field(
        default=[],
        description="Duplicates the caller holds that the other user lacks"
    )
    requestable: list[int] = Field(
        default=[],
        description="want_from_them restricted to the other user's offer list"
    )
