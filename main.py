# main.py

"""Entry point for the pricewatch price tracker CLI."""

import argparse
import asyncio
import logging
import sys

from pricewatch.config.logging_config import setup_logging
from pricewatch.config.settings import Settings

logger = logging.getLogger("pricewatch.main")


def _add_format(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )


def _add_owner(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--owner",
        required=True,
        help="Owner (user) id the product belongs to.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    retailers = ", ".join(r.label for r in Settings.SUPPORTED_RETAILERS)

    parser = argparse.ArgumentParser(
        prog="pricewatch",
        description="Amazon and Flipkart product price tracker.",
        epilog=f"Supported retailers: {retailers}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Echo INFO log records to stderr as well as the run log.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("scrape", help="Scrape a product page once.")
    p.add_argument("url")
    _add_format(p)

    p = sub.add_parser("track", help="Start tracking a product URL.")
    p.add_argument("url")
    _add_owner(p)
    p.add_argument(
        "-t",
        "--threshold",
        default=None,
        help="Optional target price (must be below the current price).",
    )
    _add_format(p)

    p = sub.add_parser("refresh", help="Re-check one tracked product.")
    p.add_argument("product_id", type=int)
    _add_owner(p)
    _add_format(p)

    p = sub.add_parser("list", help="List tracked products.")
    _add_owner(p)
    _add_format(p)

    p = sub.add_parser("set-threshold", help="Set a target price.")
    p.add_argument("product_id", type=int)
    p.add_argument("value")
    _add_owner(p)

    p = sub.add_parser("remove-threshold", help="Clear the target price.")
    p.add_argument("product_id", type=int)
    _add_owner(p)

    p = sub.add_parser("remove", help="Stop tracking a product.")
    p.add_argument("product_id", type=int)
    _add_owner(p)

    p = sub.add_parser("bought", help="Mark a product as bought.")
    p.add_argument("product_id", type=int)
    _add_owner(p)

    sub.add_parser("check-all", help="Refresh every tracked product.")

    p = sub.add_parser(
        "register-device", help="Register a push notification token."
    )
    p.add_argument("token")
    _add_owner(p)

    sub.add_parser(
        "health", help="Run a connectivity health check on all retailers."
    )
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    """Run the coroutine for the selected subcommand."""
    from pricewatch.cli import runner

    command = args.command
    if command == "scrape":
        coro = runner.cli_scrape(args.url, args.output_format)
    elif command == "track":
        coro = runner.cli_track(
            args.url, args.owner, args.threshold, args.output_format,
        )
    elif command == "refresh":
        coro = runner.cli_refresh(
            args.product_id, args.owner, args.output_format,
        )
    elif command == "list":
        coro = runner.cli_list(args.owner, args.output_format)
    elif command == "set-threshold":
        coro = runner.cli_set_threshold(
            args.product_id, args.owner, args.value,
        )
    elif command == "remove-threshold":
        coro = runner.cli_remove_threshold(args.product_id, args.owner)
    elif command == "remove":
        coro = runner.cli_remove(args.product_id, args.owner)
    elif command == "bought":
        coro = runner.cli_remove(args.product_id, args.owner, bought=True)
    elif command == "check-all":
        coro = runner.cli_check_all()
    elif command == "register-device":
        coro = runner.cli_register_device(args.owner, args.token)
    else:
        coro = runner.run_health_check()
    return asyncio.run(coro)


def main() -> None:
    """Parse arguments and run the selected command."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging(
        console_level=logging.INFO if args.verbose else logging.WARNING
    )
    logger.info("pricewatch starting, log file: %s", log_file)

    try:
        exit_code = _dispatch(args)
    except Exception:
        logger.critical("Fatal error during %s", args.command, exc_info=True)
        raise
    finally:
        logger.info("pricewatch shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
