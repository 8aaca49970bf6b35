# pricewatch/notify/notifier.py

"""Fan a product notification out to every device of its owner."""

import logging

from pricewatch.models.tracked_product import (
    THRESHOLD_REACHED,
    TrackedProduct,
)
from pricewatch.notify.push_sink import DELIVERED, INVALID_TOKEN, PushSink
from pricewatch.storage.product_store import ProductStore

logger = logging.getLogger("pricewatch.notifier")

_TITLES: dict[str, str] = {
    THRESHOLD_REACHED: "Target price reached",
}
_DEFAULT_TITLE = "Price drop"


class Notifier:
    """Sends push notifications and prunes tokens the sink rejects.

    Delivery is best-effort: failures are logged, never raised.
    """

    def __init__(
        self, store: ProductStore, sink: PushSink | None = None,
    ) -> None:
        self.store = store
        self.sink = sink

    def notify_product(self, product: TrackedProduct) -> int:
        """Push *product*'s pending notification. Returns deliveries."""
        if not product.has_notification or not product.notification_type:
            return 0
        if self.sink is None:
            logger.info(
                "No push sink configured, skipping push for product %s",
                product.id,
            )
            return 0

        title = _TITLES.get(product.notification_type, _DEFAULT_TITLE)
        body = product.notification_message or ""
        data = {
            "productId": str(product.id),
            "type": product.notification_type,
            "price": product.price,
            "url": product.url,
        }

        delivered = 0
        for token in self.store.get_device_tokens(product.owner_id):
            try:
                outcome = self.sink.send(token, title, body, data)
            except Exception as exc:
                logger.warning(
                    "Push to owner %s failed: %s",
                    product.owner_id,
                    exc,
                    exc_info=True,
                )
                continue
            if outcome == DELIVERED:
                delivered += 1
            elif outcome == INVALID_TOKEN:
                self.store.remove_device_token(product.owner_id, token)
        logger.info(
            "Product %s notification delivered to %d device(s)",
            product.id,
            delivered,
        )
        return delivered
