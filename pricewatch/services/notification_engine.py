# pricewatch/services/notification_engine.py

"""Price history bookkeeping and notification decisions for one refresh.

Nothing here does I/O. :func:`apply_refresh` mutates the product handed to
it and reports what fired; persisting the product and pushing the
notification are the caller's job.
"""

import logging
from dataclasses import replace
from datetime import datetime

from pricewatch.config.settings import Settings
from pricewatch.filters.price_parser import format_price, parse_price
from pricewatch.models.product_snapshot import ProductSnapshot
from pricewatch.models.tracked_product import (
    PRICE_DROP,
    THRESHOLD_REACHED,
    NotificationDecision,
    PriceHistoryEntry,
    TrackedProduct,
)

logger = logging.getLogger("pricewatch.notifications")


def coerce_threshold(value: object) -> float | None:
    """Return a usable numeric threshold, or ``None`` when absent/unparsable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        parsed = parse_price(str(value))
        if parsed is None:
            return None
        number = parsed
    return number if number > 0 else None


def previous_price(product: TrackedProduct) -> str:
    """Most recent history price, else the stored price."""
    if product.price_history:
        return product.price_history[-1].price
    return product.price


def append_history(
    history: list[PriceHistoryEntry],
    price: str,
    when: str,
    limit: int = Settings.HISTORY_LIMIT,
) -> bool:
    """Append *price* if it differs from the last entry; evict oldest past *limit*.

    Returns True when an entry was appended.
    """
    if history and history[-1].price == price:
        return False
    history.append(PriceHistoryEntry(price=price, date=when))
    overflow = len(history) - limit
    if overflow > 0:
        del history[:overflow]
    return True


def threshold_message(product: TrackedProduct, new_price: str) -> str:
    threshold = format_price(product.threshold_price or 0)
    return (
        f"{product.title} is now {new_price}, at or below "
        f"your target of {threshold}."
    )


def price_drop_message(
    product: TrackedProduct, old_price: str, new_price: str,
) -> str:
    return f"{product.title} dropped from {old_price} to {new_price}."


def decide(
    product: TrackedProduct, new_price: str,
) -> NotificationDecision:
    """Decide what fires for *new_price* without touching *product*.

    ``threshold_reached`` fires only on the not-reached to reached edge
    and outranks ``price_drop``; at most one type fires.
    """
    prev_price = previous_price(product)
    new_value = parse_price(new_price)
    threshold = coerce_threshold(product.threshold_price)

    reached = product.threshold_reached
    if threshold is not None and new_value is not None:
        reached = new_value <= threshold
    elif threshold is None:
        reached = False

    if reached and not product.threshold_reached:
        return NotificationDecision(
            notification_type=THRESHOLD_REACHED,
            message=threshold_message(product, new_price),
            history_appended=False,
            threshold_reached=True,
        )

    prev_value = parse_price(prev_price)
    if (
        prev_value is not None
        and new_value is not None
        and new_value < prev_value
    ):
        return NotificationDecision(
            notification_type=PRICE_DROP,
            message=price_drop_message(product, prev_price, new_price),
            history_appended=False,
            threshold_reached=reached,
        )

    return NotificationDecision(
        notification_type=None,
        message=None,
        history_appended=False,
        threshold_reached=reached,
    )


def apply_refresh(
    product: TrackedProduct,
    snapshot: ProductSnapshot,
    now: datetime | None = None,
) -> NotificationDecision:
    """Fold a fresh scrape into *product* and return what fired."""
    when = (now or datetime.now()).isoformat()
    new_price = snapshot.price

    if snapshot.title and snapshot.title != Settings.PLACEHOLDER_TITLE:
        product.title = snapshot.title
    if snapshot.image:
        product.image = snapshot.image

    decision = decide(product, new_price)
    appended = append_history(product.price_history, new_price, when)

    product.price = new_price
    product.last_checked = when
    product.threshold_reached = decision.threshold_reached

    if decision.fired:
        product.has_notification = True
        product.notification_type = decision.notification_type
        product.notification_message = decision.message
        product.notification_timestamp = when
        logger.info(
            "Product %s: %s (%s)",
            product.id,
            decision.notification_type,
            decision.message,
        )
    else:
        product.clear_notification()

    return replace(decision, history_appended=appended)
