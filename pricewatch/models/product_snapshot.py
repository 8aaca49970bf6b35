# pricewatch/models/product_snapshot.py

"""Raw extraction result for a single product page."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ProductSnapshot:
    """Price, title and image scraped from one product page.

    ``price`` is the localized currency string as shown by the retailer
    (e.g. ``"₹1,299"``) and is never empty.
    """

    price: str
    title: str
    image: str = ""

    def to_dict(self) -> dict[str, str]:
        """Serialise for JSON output."""
        return {
            "price": self.price,
            "title": self.title,
            "image": self.image,
        }
