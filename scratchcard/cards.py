from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Generic, TypeVar

from django.utils.dateparse import parse_datetime

UNLIMITED_QUANTITY = -1

T = TypeVar("T")


class CardPayloadError(ValueError):
    """Raised when a ledger payload cannot be turned into a card record."""


def _ensure_object(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise CardPayloadError(f"Expected an object, got {type(payload).__name__}.")
    return payload


def _require(payload: dict[str, Any], key: str) -> Any:
    if key not in payload or payload[key] is None:
        raise CardPayloadError(f"Missing required field '{key}'.")
    return payload[key]


def _parse_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_datetime(str(value))
    except ValueError as exc:
        raise CardPayloadError(f"Invalid datetime value: {value!r}") from exc
    if parsed is None:
        raise CardPayloadError(f"Invalid datetime value: {value!r}")
    return parsed


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _same_awareness(value: datetime, reference: datetime) -> datetime:
    if value.tzinfo is None and reference.tzinfo is not None:
        return value.replace(tzinfo=reference.tzinfo)
    if value.tzinfo is not None and reference.tzinfo is None:
        return value.replace(tzinfo=None)
    return value


@dataclass(frozen=True, slots=True)
class User:
    id: str
    display_name: str | None = None
    is_admin: bool = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "User":
        payload = _ensure_object(payload)
        return cls(
            id=str(_require(payload, "id")),
            display_name=payload.get("display_name"),
            is_admin=payload.get("is_admin") is True,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "is_admin": self.is_admin,
        }


@dataclass(frozen=True, slots=True)
class ScratchResult:
    """One user's recorded play outcome against one card."""

    id: str
    user_id: str
    scratch_card_id: str
    prize_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ScratchResult":
        payload = _ensure_object(payload)
        user_id = payload.get("user_id")
        if user_id is None:
            # Ledger responses embed the user object rather than the bare id.
            user = payload.get("user") or {}
            user_id = user.get("id") if isinstance(user, dict) else None
        if user_id is None:
            raise CardPayloadError("Result is missing 'user_id'.")
        prize_id = payload.get("prize_id")
        return cls(
            id=str(_require(payload, "id")),
            user_id=str(user_id),
            scratch_card_id=str(payload.get("scratch_card_id") or ""),
            prize_id=str(prize_id) if prize_id is not None else None,
            created_at=_parse_datetime(payload.get("created_at")),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "scratch_card_id": self.scratch_card_id,
            "prize_id": self.prize_id,
            "created_at": _format_datetime(self.created_at),
        }


@dataclass(frozen=True, slots=True)
class Prize:
    """An awardable outcome with finite or unlimited stock and a selection weight."""

    id: str
    text: str
    quantity: int
    probability: float
    used_count: int = 0
    image: str | None = None

    @property
    def is_unlimited(self) -> bool:
        return self.quantity == UNLIMITED_QUANTITY

    @property
    def remaining(self) -> float:
        """Units left to award; ``math.inf`` for unlimited prizes. May be negative."""
        if self.is_unlimited:
            return float("inf")
        return self.quantity - self.used_count

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Prize":
        payload = _ensure_object(payload)
        quantity = payload.get("quantity")
        used_count = payload.get("used_count")
        try:
            if used_count is None:
                used_count = len(payload.get("results") or [])
            return cls(
                id=str(_require(payload, "id")),
                text=str(payload.get("text") or ""),
                quantity=UNLIMITED_QUANTITY if quantity is None else int(quantity),
                probability=float(_require(payload, "probability")),
                used_count=int(used_count),
                image=payload.get("image"),
            )
        except CardPayloadError:
            raise
        except (TypeError, ValueError) as exc:
            raise CardPayloadError(f"Invalid prize payload: {exc}") from exc

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "image": self.image,
            "quantity": self.quantity,
            "probability": self.probability,
            "used_count": self.used_count,
        }


@dataclass(frozen=True, slots=True)
class Card:
    """A scratch card campaign with its prize pool and recorded plays."""

    id: str
    name: str
    prizes: tuple[Prize, ...] = ()
    results: tuple[ScratchResult, ...] = ()
    start_time: datetime | None = None
    end_time: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Card":
        payload = _ensure_object(payload)
        prizes = payload.get("prizes")
        results = payload.get("results")
        if prizes is not None and not isinstance(prizes, list):
            raise CardPayloadError("'prizes' must be a list.")
        if results is not None and not isinstance(results, list):
            raise CardPayloadError("'results' must be a list.")
        return cls(
            id=str(_require(payload, "id")),
            name=str(payload.get("name") or ""),
            prizes=tuple(Prize.from_payload(item) for item in prizes or []),
            results=tuple(ScratchResult.from_payload(item) for item in results or []),
            start_time=_parse_datetime(payload.get("start_time")),
            end_time=_parse_datetime(payload.get("end_time")),
        )

    def is_active(self, at: datetime) -> bool:
        if self.start_time is not None and at < _same_awareness(self.start_time, at):
            return False
        if self.end_time is not None and at > _same_awareness(self.end_time, at):
            return False
        return True

    def has_played(self, user_id: str) -> bool:
        return any(result.user_id == user_id for result in self.results)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start_time": _format_datetime(self.start_time),
            "end_time": _format_datetime(self.end_time),
            "prizes": [prize.to_payload() for prize in self.prizes],
            "result_count": len(self.results),
        }


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20
    total_pages: int = 0

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], item_parser: Callable[[dict[str, Any]], T]
    ) -> "Page[T]":
        if not isinstance(payload, dict):
            raise CardPayloadError("Paginated response must be an object.")
        try:
            return cls(
                items=[item_parser(item) for item in payload.get("items") or []],
                total=int(payload.get("total", 0)),
                page=int(payload.get("page", 1)),
                page_size=int(payload.get("page_size", 20)),
                total_pages=int(payload.get("total_pages", 0)),
            )
        except CardPayloadError:
            raise
        except (TypeError, ValueError) as exc:
            raise CardPayloadError(f"Invalid pagination envelope: {exc}") from exc
