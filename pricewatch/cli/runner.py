# pricewatch/cli/runner.py

"""Headless CLI commands, all driven through the async PriceTracker."""

import json
import logging
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from rich.console import Console
from rich.table import Table

from pricewatch.errors import (
    DuplicateError,
    NotFoundError,
    PriceWatchError,
    ScrapeFailedError,
    ValidationError,
)
from pricewatch.models.tracked_product import TrackedProduct
from pricewatch.notify.notifier import Notifier
from pricewatch.notify.push_sink import FcmPushSink
from pricewatch.scrapers.product_scraper import ProductScraper
from pricewatch.services.price_tracker import PriceTracker
from pricewatch.storage.product_store import ProductStore

logger = logging.getLogger("pricewatch.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)

_EXIT_CODES: dict[type[PriceWatchError], int] = {
    ValidationError: 2,
    DuplicateError: 3,
    NotFoundError: 4,
    ScrapeFailedError: 5,
}


@asynccontextmanager
async def open_tracker(
    db_path: Path | None = None,
) -> AsyncIterator[PriceTracker]:
    """Build the tracker and its collaborators; close them on exit.

    Pending push notifications are delivered before the sink closes.
    """
    store = ProductStore(db_path)
    sink = FcmPushSink()
    scraper = ProductScraper()
    if not sink.configured:
        logger.info("FCM not configured, push notifications disabled")
    notifier = Notifier(store, sink if sink.configured else None)
    tracker = PriceTracker(scraper, store, notifier)
    try:
        yield tracker
    finally:
        await tracker.drain_notifications()
        scraper.resolver.close()
        sink.close()
        store.close()


async def _guarded(action: Callable[[], Awaitable[int]]) -> int:
    """Run a command, turning tracker errors into exit codes."""
    try:
        return await action()
    except PriceWatchError as exc:
        logger.warning("Command failed: %s", exc)
        _err.print(f"[red]{exc}[/red]")
        return _EXIT_CODES.get(type(exc), 1)


def _emit_json(payload: object) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _print_products(products: list[TrackedProduct]) -> None:
    """Render a Rich table of tracked products to stdout."""
    table = Table(
        title="Tracked Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("ID", style="dim", width=5)
    table.add_column("Title", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Target", justify="right")
    table.add_column("History", justify="right")
    table.add_column("Alert", style="magenta")
    table.add_column("Last checked", style="dim")

    for p in products:
        target = (
            f"₹{p.threshold_price:,.0f}"
            if p.threshold_price is not None
            else "—"
        )
        if p.threshold_reached:
            target += " ✓"
        alert = (p.notification_type or "") if p.has_notification else ""
        table.add_row(
            str(p.id),
            p.title[:50],
            p.price,
            target,
            str(len(p.price_history)),
            alert,
            p.last_checked[:19],
        )

    Console().print(table)


def _output_products(
    products: list[TrackedProduct], output_format: str,
) -> None:
    if output_format == "table":
        _print_products(products)
    else:
        _emit_json([p.to_dict() for p in products])


# ── Commands ─────────────────────────────────────────────


async def cli_scrape(url: str, output_format: str) -> int:
    """Scrape a single URL without tracking it."""
    async with open_tracker() as tracker:
        _err.print(f"[bold]Scraping:[/bold] {url}")
        snapshot = await tracker.scrape_product(url)
    if snapshot is None:
        _err.print("[yellow]Could not extract a price.[/yellow]")
        return 1
    if output_format == "table":
        table = Table(show_lines=True, title_style="bold cyan")
        table.add_column("Title", max_width=60)
        table.add_column("Price", justify="right", style="green")
        table.add_column("Image", overflow="fold", style="dim")
        table.add_row(snapshot.title, snapshot.price, snapshot.image)
        Console().print(table)
    else:
        _emit_json(snapshot.to_dict())
    return 0


async def cli_track(
    url: str,
    owner_id: str,
    threshold: str | None,
    output_format: str,
) -> int:
    async def action() -> int:
        async with open_tracker() as tracker:
            product = await tracker.track_product(url, owner_id, threshold)
        _err.print(
            f"[green]✓ Tracking #{product.id}: {product.title} "
            f"at {product.price}[/green]"
        )
        _output_products([product], output_format)
        return 0

    return await _guarded(action)


async def cli_refresh(
    product_id: int, owner_id: str, output_format: str,
) -> int:
    async def action() -> int:
        async with open_tracker() as tracker:
            product = await tracker.refresh_product(product_id, owner_id)
        if product.has_notification:
            _err.print(
                f"[bold green]{product.notification_type}: "
                f"{product.notification_message}[/bold green]"
            )
        _output_products([product], output_format)
        return 0

    return await _guarded(action)


async def cli_list(owner_id: str, output_format: str) -> int:
    async def action() -> int:
        async with open_tracker() as tracker:
            products = await tracker.list_products(owner_id)
        if not products:
            _err.print("[yellow]No tracked products.[/yellow]")
        _output_products(products, output_format)
        return 0

    return await _guarded(action)


async def cli_set_threshold(
    product_id: int, owner_id: str, value: str,
) -> int:
    async def action() -> int:
        async with open_tracker() as tracker:
            product = await tracker.set_threshold(
                product_id, owner_id, value
            )
        _err.print(
            f"[green]✓ Target for #{product.id} set to "
            f"₹{product.threshold_price:,.2f}[/green]"
        )
        return 0

    return await _guarded(action)


async def cli_remove_threshold(product_id: int, owner_id: str) -> int:
    async def action() -> int:
        async with open_tracker() as tracker:
            await tracker.remove_threshold(product_id, owner_id)
        _err.print(f"[green]✓ Target removed for #{product_id}[/green]")
        return 0

    return await _guarded(action)


async def cli_remove(
    product_id: int, owner_id: str, bought: bool = False,
) -> int:
    async def action() -> int:
        async with open_tracker() as tracker:
            if bought:
                await tracker.mark_as_bought(product_id, owner_id)
            else:
                await tracker.remove_product(product_id, owner_id)
        verb = "Marked as bought" if bought else "Removed"
        _err.print(f"[green]✓ {verb} #{product_id}[/green]")
        return 0

    return await _guarded(action)


async def cli_register_device(owner_id: str, token: str) -> int:
    async def action() -> int:
        async with open_tracker() as tracker:
            await tracker.register_device(owner_id, token)
        _err.print("[green]✓ Device registered[/green]")
        return 0

    return await _guarded(action)


async def cli_check_all() -> int:
    """Refresh every tracked product sequentially."""
    async with open_tracker() as tracker:
        _err.print("[bold]Checking all tracked products...[/bold]")
        report = await tracker.check_all_products()

    for error_msg in report.errors:
        _err.print(f"[red]Error: {error_msg}[/red]")
    _err.print(
        f"[green]✓ {report.checked} checked, {report.updated} updated, "
        f"{report.notified} notified, {report.failed} failed[/green]"
    )
    return 1 if report.failed and report.failed == report.checked else 0


async def run_health_check() -> int:
    """Run connectivity health check on all retailers."""
    from pricewatch.services.health_checker import HealthChecker

    _err.print("[bold]Running retailer health check...[/bold]")
    checker = HealthChecker()
    results = await checker.check_all()

    table = Table(
        title="Retailer Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Retailer", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    any_down = False
    for r in results:
        if r.status == "ok":
            status = "[green]✅ OK[/green]"
        elif r.status == "slow":
            status = "[yellow]⚠️  SLOW[/yellow]"
        elif r.status == "blocked":
            status = "[yellow]🛑 BLOCKED[/yellow]"
        else:
            status = "[red]❌ DOWN[/red]"
            any_down = True

        latency = (
            f"{r.latency_ms:.0f}ms"
            if r.latency_ms > 0
            else "—"
        )
        table.add_row(
            r.retailer_id, status, latency, r.message,
        )

    Console().print(table)
    return 1 if any_down else 0
