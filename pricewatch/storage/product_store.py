# pricewatch/storage/product_store.py

"""SQLite-backed store for tracked products and owner device tokens."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, cast

from pricewatch.config.settings import Settings
from pricewatch.models.tracked_product import (
    PriceHistoryEntry,
    TrackedProduct,
)

logger = logging.getLogger("pricewatch.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS tracked_products (
    id                     INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id               TEXT    NOT NULL,
    url                    TEXT    NOT NULL,
    title                  TEXT    NOT NULL,
    price                  TEXT    NOT NULL,
    image                  TEXT    NOT NULL DEFAULT '',
    created_at             TEXT    NOT NULL,
    last_checked           TEXT    NOT NULL,
    price_history          TEXT    NOT NULL DEFAULT '[]',
    threshold_price        REAL,
    threshold_reached      INTEGER NOT NULL DEFAULT 0,
    has_notification       INTEGER NOT NULL DEFAULT 0,
    notification_type      TEXT,
    notification_message   TEXT,
    notification_timestamp TEXT
);

CREATE INDEX IF NOT EXISTS idx_products_owner_url
    ON tracked_products(owner_id, url);

CREATE INDEX IF NOT EXISTS idx_products_url
    ON tracked_products(url);

CREATE TABLE IF NOT EXISTS device_tokens (
    owner_id   TEXT NOT NULL,
    token      TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (owner_id, token)
);
"""

_COLUMNS = (
    "id, owner_id, url, title, price, image, created_at, "
    "last_checked, price_history, threshold_price, "
    "threshold_reached, has_notification, notification_type, "
    "notification_message, notification_timestamp"
)


def _history_to_json(history: list[PriceHistoryEntry]) -> str:
    return json.dumps([e.to_dict() for e in history], ensure_ascii=False)


def _history_from_json(raw: str | None) -> list[PriceHistoryEntry]:
    if not raw:
        return []
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Corrupt price history JSON, treating as empty")
        return []
    if not isinstance(data, list):
        return []
    items = cast(list[object], data)
    return [
        PriceHistoryEntry.from_dict(cast(dict[str, Any], e))
        for e in items
        if isinstance(e, dict)
    ]


def _row_to_product(row: tuple[Any, ...]) -> TrackedProduct:
    return TrackedProduct(
        id=row[0],
        owner_id=row[1],
        url=row[2],
        title=row[3],
        price=row[4],
        image=row[5],
        created_at=row[6],
        last_checked=row[7],
        price_history=_history_from_json(row[8]),
        threshold_price=row[9],
        threshold_reached=bool(row[10]),
        has_notification=bool(row[11]),
        notification_type=row[12],
        notification_message=row[13],
        notification_timestamp=row[14],
    )


class ProductStore:
    """Document-style store of :class:`TrackedProduct` records.

    Lookups by owner and by (owner, canonical URL) are indexed. There is no
    uniqueness constraint on (owner, URL); duplicate detection is the
    caller's check-then-act.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("ProductStore opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Products ─────────────────────────────────────────

    def add(self, product: TrackedProduct) -> TrackedProduct:
        """Insert *product* and return it with its new ``id``."""
        now = datetime.now().isoformat()
        product.created_at = product.created_at or now
        product.last_checked = product.last_checked or now
        cur = self._conn.execute(
            "INSERT INTO tracked_products ("
            "owner_id, url, title, price, image, created_at, "
            "last_checked, price_history, threshold_price, "
            "threshold_reached, has_notification, notification_type, "
            "notification_message, notification_timestamp"
            ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                product.owner_id,
                product.url,
                product.title,
                product.price,
                product.image,
                product.created_at,
                product.last_checked,
                _history_to_json(product.price_history),
                product.threshold_price,
                int(product.threshold_reached),
                int(product.has_notification),
                product.notification_type,
                product.notification_message,
                product.notification_timestamp,
            ),
        )
        self._conn.commit()
        product.id = cur.lastrowid
        logger.info(
            "Stored product %s for owner %s: %s",
            product.id,
            product.owner_id,
            product.url,
        )
        return product

    def get(self, product_id: int) -> TrackedProduct | None:
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM tracked_products WHERE id = ?",
            (product_id,),
        ).fetchone()
        return _row_to_product(row) if row else None

    def update(self, product: TrackedProduct) -> None:
        """Persist every mutable field of an existing product."""
        if product.id is None:
            msg = "Cannot update a product without an id"
            raise ValueError(msg)
        self._conn.execute(
            "UPDATE tracked_products SET "
            "url = ?, title = ?, price = ?, image = ?, "
            "last_checked = ?, price_history = ?, "
            "threshold_price = ?, threshold_reached = ?, "
            "has_notification = ?, notification_type = ?, "
            "notification_message = ?, notification_timestamp = ? "
            "WHERE id = ?",
            (
                product.url,
                product.title,
                product.price,
                product.image,
                product.last_checked,
                _history_to_json(product.price_history),
                product.threshold_price,
                int(product.threshold_reached),
                int(product.has_notification),
                product.notification_type,
                product.notification_message,
                product.notification_timestamp,
                product.id,
            ),
        )
        self._conn.commit()

    def delete(self, product_id: int) -> bool:
        """Hard-delete a product. Returns True when a row was removed."""
        cur = self._conn.execute(
            "DELETE FROM tracked_products WHERE id = ?",
            (product_id,),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def find_by_owner(self, owner_id: str) -> list[TrackedProduct]:
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM tracked_products "
            "WHERE owner_id = ? ORDER BY created_at DESC, id DESC",
            (owner_id,),
        ).fetchall()
        return [_row_to_product(r) for r in rows]

    def find_by_owner_and_url(
        self, owner_id: str, url: str,
    ) -> TrackedProduct | None:
        row = self._conn.execute(
            f"SELECT {_COLUMNS} FROM tracked_products "
            "WHERE owner_id = ? AND url = ? LIMIT 1",
            (owner_id, url),
        ).fetchone()
        return _row_to_product(row) if row else None

    def all_products(self) -> list[TrackedProduct]:
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM tracked_products ORDER BY id",
        ).fetchall()
        return [_row_to_product(r) for r in rows]

    # ── Device tokens ────────────────────────────────────

    def add_device_token(self, owner_id: str, token: str) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO device_tokens "
            "(owner_id, token, created_at) VALUES (?, ?, ?)",
            (owner_id, token, datetime.now().isoformat()),
        )
        self._conn.commit()

    def get_device_tokens(self, owner_id: str) -> list[str]:
        rows = self._conn.execute(
            "SELECT token FROM device_tokens WHERE owner_id = ? "
            "ORDER BY created_at",
            (owner_id,),
        ).fetchall()
        return [r[0] for r in rows]

    def remove_device_token(self, owner_id: str, token: str) -> None:
        self._conn.execute(
            "DELETE FROM device_tokens WHERE owner_id = ? AND token = ?",
            (owner_id, token),
        )
        self._conn.commit()
        logger.info("Pruned device token for owner %s", owner_id)
