"""Prize selection for a single scratch card play.

The selector is a pure function of the card snapshot it receives: it never
touches stock counters and never performs I/O. The ledger backend stays the
authority on stock and on whether a user has already played, so a drawn prize
is only provisional until the ledger accepts the submitted result.
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Protocol

from django.utils.translation import gettext_lazy as _

from .cards import Card, Prize

logger = logging.getLogger(__name__)

NO_PRIZES_CONFIGURED = "no_prizes_configured"
OUT_OF_STOCK = "out_of_stock"
INVALID_PROBABILITY_CONFIGURATION = "invalid_probability_configuration"
SELECTION_FAILED = "selection_failed"

PROBABILITY_TOLERANCE = 1e-9

_default_rng = random.SystemRandom()


class RandomSource(Protocol):
    def random(self) -> float:
        ...


@dataclass(frozen=True, slots=True)
class SelectionError:
    kind: str
    message: str

    def to_payload(self) -> dict[str, str]:
        return {"kind": self.kind, "message": str(self.message)}


@dataclass(frozen=True, slots=True)
class SelectionResult:
    success: bool
    prize: Prize | None = None
    error: SelectionError | None = None

    @classmethod
    def won(cls, prize: Prize) -> "SelectionResult":
        return cls(success=True, prize=prize)

    @classmethod
    def failed(cls, kind: str, message: str) -> "SelectionResult":
        return cls(success=False, error=SelectionError(kind=kind, message=message))

    def to_payload(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "prize": self.prize.to_payload()}
        return {"success": False, "error": self.error.to_payload()}


@dataclass(frozen=True, slots=True)
class StockEntry:
    prize: Prize
    remaining: int | None
    used: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "prize": self.prize.to_payload(),
            "remaining": self.remaining,
            "used": self.used,
            "unlimited": self.remaining is None,
        }


def eligible_prizes(card: Card) -> list[Prize]:
    """Return the prizes that still have stock, in the order they were listed."""
    return [prize for prize in card.prizes if prize.remaining > 0]


def select_prize(card: Card, rng: RandomSource | None = None) -> SelectionResult:
    """Draw one prize from the card, weighted by probability among in-stock prizes.

    Depleted prizes contribute no weight, so their share is spread
    proportionally over the prizes that remain. ``rng`` must expose
    ``random()`` returning a float in ``[0, 1)``; it is consulted exactly once.
    """

    if rng is None:
        rng = _default_rng
    try:
        if not card.prizes:
            return SelectionResult.failed(
                NO_PRIZES_CONFIGURED, _("This scratch card has no prizes configured.")
            )

        candidates = eligible_prizes(card)
        if not candidates:
            return SelectionResult.failed(
                OUT_OF_STOCK, _("Sorry, all prizes have been claimed.")
            )

        total_weight = sum(prize.probability for prize in candidates)
        if not total_weight > 0 or math.isinf(total_weight):
            return SelectionResult.failed(
                INVALID_PROBABILITY_CONFIGURATION,
                _("The prize probabilities for this scratch card are misconfigured."),
            )

        draw = rng.random() * total_weight
        cumulative = 0.0
        for prize in candidates:
            cumulative += prize.probability
            if draw <= cumulative:
                return SelectionResult.won(prize)

        # Float accumulation can fall just short of total_weight.
        return SelectionResult.won(candidates[-1])
    except Exception as exc:
        logger.exception("Prize selection failed for card %s: %s", getattr(card, "id", None), exc)
        return SelectionResult.failed(SELECTION_FAILED, str(exc) or _("Failed to select a prize."))


def compute_stock_view(card: Card) -> list[StockEntry]:
    """Report used and remaining units per prize for display; never used to gate play."""
    try:
        return [
            StockEntry(
                prize=prize,
                remaining=None if prize.is_unlimited else max(0, prize.quantity - prize.used_count),
                used=prize.used_count,
            )
            for prize in card.prizes
        ]
    except Exception as exc:
        logger.exception("Failed to compute stock view: %s", exc)
        return []


def probability_total(card: Card) -> float:
    return sum(prize.probability for prize in card.prizes)


def has_probability_warning(card: Card) -> bool:
    """True when the configured probabilities do not add up to 1. Advisory only."""
    return abs(probability_total(card) - 1.0) > PROBABILITY_TOLERANCE
