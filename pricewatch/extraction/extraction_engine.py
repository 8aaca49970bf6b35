# pricewatch/extraction/extraction_engine.py

"""Field extraction cascades for supported retailer product pages."""

import json
import logging
from collections.abc import Callable
from pathlib import Path

from bs4 import BeautifulSoup

from pricewatch.config.settings import Settings
from pricewatch.extraction import strategies
from pricewatch.extraction.image_candidates import pick_image
from pricewatch.extraction.strategies import ImageStrategy, TextStrategy
from pricewatch.filters.price_parser import format_price, parse_price
from pricewatch.models.product_snapshot import ProductSnapshot


def load_selectors(
    path: Path | None = None,
) -> dict[str, dict[str, list[str]]]:
    """Load per-retailer CSS selector lists from selectors.json."""
    with open(path or Settings.SELECTORS_PATH, encoding="utf-8") as f:
        data: dict[str, dict[str, list[str]]] = json.load(f)
    return data


def display_price(candidate: str | None) -> str | None:
    """Validate a price candidate and return its canonical display form.

    Every accepted candidate is re-rendered through :func:`format_price`,
    so ``"₹1,299.00"``, ``"Rs. 1,299"`` and ``"1,299."`` all become
    ``"₹1,299"`` whichever strategy found them. Anything that does not
    parse to a positive number is rejected.
    """
    if not candidate:
        return None
    text = strategies.clean_text(candidate)
    value = parse_price(text)
    if value is None or value <= 0:
        return None
    return format_price(value)


def valid_title(candidate: str | None) -> str | None:
    if not candidate:
        return None
    text = strategies.clean_text(candidate)
    if len(text) < 2:
        return None
    return text


class ExtractionEngine:
    """Run the ordered price / title / image cascades over a page.

    The first strategy that yields a valid value wins; later strategies
    are not consulted.
    """

    def __init__(
        self, selectors: dict[str, dict[str, list[str]]] | None = None,
    ) -> None:
        self.logger = logging.getLogger("pricewatch.extraction")
        self.selectors = (
            selectors if selectors is not None else load_selectors()
        )

    # ── Cascade construction ─────────────────────────────

    def _site_selectors(self, retailer: str, field: str) -> list[str]:
        return self.selectors.get(retailer, {}).get(field, [])

    def price_strategies(self, retailer: str) -> list[TextStrategy]:
        return [
            *(
                strategies.css_text(sel)
                for sel in self._site_selectors(retailer, "price")
            ),
            strategies.json_ld_price,
            strategies.script_price,
            strategies.text_price,
        ]

    def title_strategies(self, retailer: str) -> list[TextStrategy]:
        return [
            *(
                strategies.css_text(sel)
                for sel in self._site_selectors(retailer, "title")
            ),
            strategies.json_ld_title,
            strategies.og_title,
            strategies.document_title,
        ]

    def image_strategies(self, retailer: str) -> list[ImageStrategy]:
        return [
            *(
                strategies.css_images(sel)
                for sel in self._site_selectors(
                    retailer, "image_container"
                )
            ),
            strategies.json_ld_images,
            strategies.document_images,
            strategies.meta_images,
        ]

    # ── Cascade execution ────────────────────────────────

    def _first_text(
        self,
        soup: BeautifulSoup,
        cascade: list[TextStrategy],
        validate: Callable[[str | None], str | None],
        field: str,
    ) -> str | None:
        for strategy in cascade:
            try:
                value = validate(strategy(soup))
            except Exception as exc:
                self.logger.debug(
                    "%s strategy %s raised: %s",
                    field,
                    strategy.__name__,
                    exc,
                )
                continue
            if value:
                self.logger.debug(
                    "%s resolved by %s: %s",
                    field,
                    strategy.__name__,
                    value[:80],
                )
                return value
        return None

    def _first_image(
        self,
        soup: BeautifulSoup,
        cascade: list[ImageStrategy],
        origin: str,
    ) -> str | None:
        for strategy in cascade:
            try:
                image = pick_image(strategy(soup), origin)
            except Exception as exc:
                self.logger.debug(
                    "image strategy %s raised: %s",
                    strategy.__name__,
                    exc,
                )
                continue
            if image:
                self.logger.debug(
                    "image resolved by %s", strategy.__name__,
                )
                return image
        return None

    # ── Public API ───────────────────────────────────────

    def extract_price(
        self, soup: BeautifulSoup, retailer: str,
    ) -> str | None:
        return self._first_text(
            soup, self.price_strategies(retailer), display_price, "price"
        )

    def extract_title(
        self, soup: BeautifulSoup, retailer: str,
    ) -> str | None:
        return self._first_text(
            soup, self.title_strategies(retailer), valid_title, "title"
        )

    def extract_image(
        self, soup: BeautifulSoup, retailer: str,
    ) -> str | None:
        entry = Settings.retailer(retailer)
        origin = entry.origin if entry else ""
        return self._first_image(
            soup, self.image_strategies(retailer), origin
        )

    def extract(
        self, markup: str | BeautifulSoup, retailer: str | None,
    ) -> ProductSnapshot | None:
        """Extract a snapshot, or ``None`` when no price can be found.

        *markup* may be raw HTML or an already parsed document.
        """
        if retailer is None or Settings.retailer(retailer) is None:
            self.logger.info("Unsupported retailer, skipping extraction")
            return None
        soup = (
            markup
            if isinstance(markup, BeautifulSoup)
            else BeautifulSoup(markup or "", "lxml")
        )

        price = self.extract_price(soup, retailer)
        if not price:
            self.logger.warning(
                "[%s] Price not found after full cascade", retailer,
            )
            return None

        title = (
            self.extract_title(soup, retailer)
            or Settings.PLACEHOLDER_TITLE
        )
        image = self.extract_image(soup, retailer) or ""
        return ProductSnapshot(price=price, title=title, image=image)
