# pricewatch/models/tracked_product.py

"""Tracked product, price history and notification decision models."""

from dataclasses import dataclass, field
from typing import Any

THRESHOLD_REACHED = "threshold_reached"
PRICE_DROP = "price_drop"
NOTIFICATION_TYPES: frozenset[str] = frozenset({THRESHOLD_REACHED, PRICE_DROP})


@dataclass
class PriceHistoryEntry:
    """One observed price and the ISO-8601 time it was first seen."""

    price: str
    date: str

    def to_dict(self) -> dict[str, str]:
        return {"price": self.price, "date": self.date}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PriceHistoryEntry":
        return cls(price=str(raw.get("price", "")), date=str(raw.get("date", "")))


@dataclass
class TrackedProduct:
    """A product URL tracked by one owner.

    ``url`` is canonical and unique per ``owner_id``. ``id`` is ``None``
    until the store assigns one.
    """

    owner_id: str
    url: str
    price: str
    title: str
    image: str = ""
    id: int | None = None
    created_at: str = ""
    last_checked: str = ""
    price_history: list[PriceHistoryEntry] = field(
        default_factory=lambda: list[PriceHistoryEntry]()
    )
    threshold_price: float | None = None
    threshold_reached: bool = False
    has_notification: bool = False
    notification_type: str | None = None
    notification_message: str | None = None
    notification_timestamp: str | None = None

    def clear_notification(self) -> None:
        """Reset the transient notification fields."""
        self.has_notification = False
        self.notification_type = None
        self.notification_message = None
        self.notification_timestamp = None

    def to_dict(self) -> dict[str, object]:
        """Serialise to plain types for JSON output."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "url": self.url,
            "price": self.price,
            "title": self.title,
            "image": self.image,
            "created_at": self.created_at,
            "last_checked": self.last_checked,
            "price_history": [e.to_dict() for e in self.price_history],
            "threshold_price": self.threshold_price,
            "threshold_reached": self.threshold_reached,
            "has_notification": self.has_notification,
            "notification_type": self.notification_type,
            "notification_message": self.notification_message,
            "notification_timestamp": self.notification_timestamp,
        }


@dataclass(frozen=True)
class NotificationDecision:
    """Outcome of comparing a fresh price with the stored state.

    ``notification_type`` is ``None`` when nothing fires this cycle.
    """

    notification_type: str | None
    message: str | None
    history_appended: bool
    threshold_reached: bool

    @property
    def fired(self) -> bool:
        return self.notification_type is not None
