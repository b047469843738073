# backend/services/matching.py
"""
Trade matching between two users' collections.

Only duplicates (quantity > 1) are surfaced, so a suggestion never asks
someone to give up their only copy. This is a suggestion layer over possibly
stale holdings; the transfer re-validates at commit time.
"""
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

import structlog

from services.inventory import InventoryService

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TradePotential:
    want_from_them: frozenset[int] = field(default_factory=frozenset)
    can_offer: frozenset[int] = field(default_factory=frozenset)
    requestable: frozenset[int] = field(default_factory=frozenset)


def _duplicates_missing_from(source: Mapping[int, int], target: Mapping[int, int]) -> frozenset[int]:
    return frozenset(
        card_id for card_id, quantity in source.items()
        if quantity > 1 and target.get(card_id, 0) <= 0
    )


def compute_trade_potential(
    my_holdings: Mapping[int, int],
    their_holdings: Mapping[int, int],
    their_offers: Optional[Iterable[int]] = None,
) -> TradePotential:
    """
    Compute which cards could change hands between two collections.

    Args:
        my_holdings: card_id -> quantity for the caller
        their_holdings: card_id -> quantity for the other user
        their_offers: Cards the other user listed for trade. When given,
            requestable is want_from_them restricted to these cards.

    Returns:
        TradePotential with want_from_them, can_offer and requestable sets
    """
    want_from_them = _duplicates_missing_from(their_holdings, my_holdings)
    can_offer = _duplicates_missing_from(my_holdings, their_holdings)

    if their_offers is None:
        requestable = want_from_them
    else:
        requestable = want_from_them & frozenset(their_offers)

    return TradePotential(
        want_from_them=want_from_them,
        can_offer=can_offer,
        requestable=requestable,
    )


class MatchingService:
    """Reads both users' holdings and computes their trade potential."""

    def __init__(self, inventory: InventoryService):
        self.inventory = inventory

    def potential_between(self, user_id: str, other_user_id: str) -> TradePotential:
        potential = compute_trade_potential(
            self.inventory.cached_holdings(user_id),
            self.inventory.cached_holdings(other_user_id),
            self.inventory.list_offers(other_user_id),
        )

        logger.debug(
            "trade_potential_computed",
            user_id=user_id,
            other_user_id=other_user_id,
            want_from_them=len(potential.want_from_them),
            can_offer=len(potential.can_offer),
            requestable=len(potential.requestable),
        )
        return potential
