# tests/test_product_store.py

"""Tests for the SQLite product and device-token store."""

import tempfile
import unittest
from pathlib import Path

from pricewatch.models.tracked_product import (
    PRICE_DROP,
    PriceHistoryEntry,
    TrackedProduct,
)
from pricewatch.storage.product_store import ProductStore


def _product(
    owner_id: str = "owner-1",
    url: str = "https://www.amazon.in/dp/B0ABCDE123",
    price: str = "₹1,299",
) -> TrackedProduct:
    return TrackedProduct(
        owner_id=owner_id,
        url=url,
        price=price,
        title="Some Phone",
        image="https://m.media-amazon.com/images/I/71abc.jpg",
        price_history=[PriceHistoryEntry(price, "2026-02-01T00:00:00")],
    )


class TestProductStore(unittest.TestCase):
    """CRUD and lookups over a temporary database."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "nested" / "test.db"
        self.store = ProductStore(self.db_path)

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()

    def test_creates_parent_directory(self) -> None:
        self.assertTrue(self.db_path.exists())

    def test_add_assigns_id_and_timestamps(self) -> None:
        product = self.store.add(_product())
        self.assertIsNotNone(product.id)
        self.assertTrue(product.created_at)
        self.assertTrue(product.last_checked)

    def test_get_round_trips_all_fields(self) -> None:
        original = _product()
        original.threshold_price = 999.0
        original.threshold_reached = True
        original.has_notification = True
        original.notification_type = PRICE_DROP
        original.notification_message = "dropped"
        original.notification_timestamp = "2026-03-01T12:00:00"
        added = self.store.add(original)
        assert added.id is not None

        loaded = self.store.get(added.id)

        self.assertEqual(loaded, added)

    def test_get_missing_returns_none(self) -> None:
        self.assertIsNone(self.store.get(12345))

    def test_update_persists_changes(self) -> None:
        product = self.store.add(_product())
        assert product.id is not None
        product.price = "₹1,099"
        product.price_history.append(PriceHistoryEntry("₹1,099", "d2"))
        product.threshold_price = 1000.0
        self.store.update(product)

        loaded = self.store.get(product.id)
        assert loaded is not None
        self.assertEqual(loaded.price, "₹1,099")
        self.assertEqual(len(loaded.price_history), 2)
        self.assertEqual(loaded.threshold_price, 1000.0)

    def test_update_without_id_raises(self) -> None:
        with self.assertRaises(ValueError):
            self.store.update(_product())

    def test_delete(self) -> None:
        product = self.store.add(_product())
        assert product.id is not None
        self.assertTrue(self.store.delete(product.id))
        self.assertIsNone(self.store.get(product.id))
        self.assertFalse(self.store.delete(product.id))

    def test_find_by_owner_scoped(self) -> None:
        self.store.add(_product("owner-1"))
        self.store.add(
            _product("owner-1", "https://www.flipkart.com/x/p/itm1")
        )
        self.store.add(_product("owner-2"))

        self.assertEqual(len(self.store.find_by_owner("owner-1")), 2)
        self.assertEqual(len(self.store.find_by_owner("owner-2")), 1)
        self.assertEqual(self.store.find_by_owner("nobody"), [])

    def test_find_by_owner_and_url(self) -> None:
        added = self.store.add(_product("owner-1"))
        found = self.store.find_by_owner_and_url(
            "owner-1", "https://www.amazon.in/dp/B0ABCDE123"
        )
        assert found is not None
        self.assertEqual(found.id, added.id)
        self.assertIsNone(
            self.store.find_by_owner_and_url(
                "owner-2", "https://www.amazon.in/dp/B0ABCDE123"
            )
        )

    def test_all_products_ordered_by_id(self) -> None:
        first = self.store.add(_product("owner-1"))
        second = self.store.add(_product("owner-2"))
        self.assertEqual(
            [p.id for p in self.store.all_products()],
            [first.id, second.id],
        )

    def test_persists_across_connections(self) -> None:
        added = self.store.add(_product())
        assert added.id is not None
        self.store.close()
        self.store = ProductStore(self.db_path)
        self.assertIsNotNone(self.store.get(added.id))


class TestDeviceTokens(unittest.TestCase):
    """Device token registration and pruning."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = ProductStore(Path(self._tmp.name) / "test.db")

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()

    def test_register_is_idempotent(self) -> None:
        self.store.add_device_token("owner-1", "tok-a")
        self.store.add_device_token("owner-1", "tok-a")
        self.assertEqual(self.store.get_device_tokens("owner-1"), ["tok-a"])

    def test_tokens_scoped_by_owner(self) -> None:
        self.store.add_device_token("owner-1", "tok-a")
        self.store.add_device_token("owner-2", "tok-b")
        self.assertEqual(self.store.get_device_tokens("owner-2"), ["tok-b"])

    def test_remove_token(self) -> None:
        self.store.add_device_token("owner-1", "tok-a")
        self.store.add_device_token("owner-1", "tok-b")
        self.store.remove_device_token("owner-1", "tok-a")
        self.assertEqual(self.store.get_device_tokens("owner-1"), ["tok-b"])


if __name__ == "__main__":
    unittest.main()
