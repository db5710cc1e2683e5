#!/usr/bin/env python3
"""Exchange Rates.

Resolves the base asset's exchange rate table from multiple price sources
and prints it, or a single currency.

Run with ``python -m exchange_rates.main``. See ``--help`` for configuration.
"""

import argparse
import asyncio
import locale
import logging
import os
import sys

from .src.BaseRateResolver import BaseRateResolver
from .src.ConversionChainResolver import ConversionChainResolver
from .src.ExchangeRate import ExchangeRate
from .src.RateCache import DEFAULT_REFRESH_INTERVAL, RateCache
from .src.RateMethod import FromSource, RateMethod, parse_method
from .src.SourceFetcher import HTTP_TIMEOUT, SourceFetcher
from .src.sources import (
    DEFAULT_BASE_SOURCES,
    DEFAULT_CONVERSION_SOURCES,
    SourceConfigError,
    get_available_sources,
    get_source,
    load_sources_file,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_source_list(value: str | None) -> list[str]:
    """Split a comma-separated source list.

    :param value: Comma-separated names, e.g. "bter,mintpal".
    :returns: Lowercased names with blanks removed.
    """
    if not value:
        return []
    return [s.strip().lower() for s in value.split(",") if s.strip()]


def format_rate(rate: ExchangeRate) -> str:
    """Format one table row for display."""
    return f"{rate.currency_code:<8} {rate.value:>24} {rate.source}"


async def run(cache: RateCache, currency: str | None) -> int:
    """Resolve and print rates.

    :param cache: Configured rate cache.
    :param currency: Currency to print, or None for the whole table.
    :returns: Process exit code.
    """
    try:
        if currency:
            rate = await cache.get_rate(currency)
            if rate is None:
                logger.error("No exchange rates available")
                return 1
            if rate.currency_code != currency:
                logger.warning(f"{currency} not available, showing {rate.currency_code}")
            print(format_rate(rate))
            return 0

        table = await cache.get_rates()
        if table is None:
            logger.error("No exchange rates available")
            return 1
        for rate in table.values():
            print(format_rate(rate))
        return 0
    finally:
        await SourceFetcher.close_shared_client()


def main() -> None:
    """Main entry point for the exchange rates CLI."""
    parser = argparse.ArgumentParser(
        description="Exchange Rates: multi-source rate table resolution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Built-in base-rate sources:
  {', '.join(DEFAULT_BASE_SOURCES)}
Built-in conversion sources:
  {', '.join(DEFAULT_CONVERSION_SOURCES)}

Rate methods:
  average | minimum | maximum      aggregate every base-rate source
  source:<name> | <name>           read one base-rate source (falls back to average)
  0..6                             stored preference index

Examples:
  # Whole table using the average of all base-rate sources
  python -m exchange_rates.main

  # Euro rate using a single exchange
  python -m exchange_rates.main --method source:bittrex --currency EUR

  # Extra sources from a JSON catalogue
  python -m exchange_rates.main --sources-file sources.json \\
      --conversion-sources mytable,bitcoincharts

Environment variables (CLI args take precedence):
  RATE_METHOD, BASE_SOURCES, CONVERSION_SOURCES, SOURCES_FILE,
  REFRESH_INTERVAL, HTTP_TIMEOUT, BRIDGE_CURRENCY, DEFAULT_CURRENCY
""",
    )

    parser.add_argument(
        "--method",
        type=str,
        help="Base rate method (default: average)",
        default=os.environ.get("RATE_METHOD") or "average",
    )

    parser.add_argument(
        "--base-sources",
        dest="base_sources",
        type=str,
        help="Comma-separated base-rate sources used for aggregation",
        default=os.environ.get("BASE_SOURCES") or ",".join(DEFAULT_BASE_SOURCES),
    )

    parser.add_argument(
        "--conversion-sources",
        dest="conversion_sources",
        type=str,
        help="Comma-separated conversion sources in fallback order",
        default=os.environ.get("CONVERSION_SOURCES")
        or ",".join(DEFAULT_CONVERSION_SOURCES),
    )

    parser.add_argument(
        "--sources-file",
        dest="sources_file",
        type=str,
        help="JSON catalogue of additional or overriding sources",
        default=os.environ.get("SOURCES_FILE"),
    )

    parser.add_argument(
        "--refresh-interval",
        dest="refresh_interval",
        type=float,
        help=f"Seconds a resolved table stays fresh (default: {DEFAULT_REFRESH_INTERVAL:.0f})",
        default=float(os.environ.get("REFRESH_INTERVAL") or DEFAULT_REFRESH_INTERVAL),
    )

    parser.add_argument(
        "--http-timeout",
        dest="http_timeout",
        type=float,
        help=f"Base HTTP timeout in seconds (default: {HTTP_TIMEOUT})",
        default=float(os.environ.get("HTTP_TIMEOUT") or HTTP_TIMEOUT),
    )

    parser.add_argument(
        "--bridge",
        type=str,
        help="Bridging currency code (default: BTC)",
        default=os.environ.get("BRIDGE_CURRENCY") or "BTC",
    )

    parser.add_argument(
        "--default-currency",
        dest="default_currency",
        type=str,
        help="Currency used when the requested one is missing (default: from locale)",
        default=os.environ.get("DEFAULT_CURRENCY"),
    )

    parser.add_argument(
        "--currency",
        type=str,
        help="Print only this currency instead of the whole table",
        default=None,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.refresh_interval <= 0:
        parser.error("--refresh-interval must be positive")

    if args.http_timeout <= 0:
        parser.error("--http-timeout must be positive")

    try:
        locale.setlocale(locale.LC_MONETARY, "")
    except locale.Error as e:
        logger.debug(f"Cannot apply monetary locale: {e}")

    if args.sources_file:
        try:
            load_sources_file(args.sources_file)
        except SourceConfigError as e:
            parser.error(str(e))

    try:
        method: RateMethod = parse_method(args.method)
    except ValueError as e:
        parser.error(str(e))

    base_names = parse_source_list(args.base_sources)
    conversion_names = parse_source_list(args.conversion_sources)

    if not conversion_names:
        parser.error("At least one conversion source must be specified")

    # Validate sources
    available = get_available_sources()
    invalid_sources = [s for s in base_names + conversion_names if s not in available]
    if isinstance(method, FromSource) and method.source not in available:
        invalid_sources.append(method.source)
    if invalid_sources:
        parser.error(
            f"Unknown sources: {invalid_sources}. Available: {', '.join(available)}"
        )

    base_sources = [get_source(name) for name in base_names]
    if isinstance(method, FromSource) and method.source not in base_names:
        base_sources.append(get_source(method.source))
    conversion_sources = [get_source(name) for name in conversion_names]

    # Log configuration
    logger.info("=" * 60)
    logger.info("Exchange Rates - Multi-Source Resolution")
    logger.info("=" * 60)
    logger.info(f"Method:             {method.label}")
    logger.info(f"Base Sources:       {', '.join(s.name for s in base_sources)}")
    logger.info(f"Conversion Sources: {', '.join(conversion_names)}")
    logger.info(f"Bridge Currency:    {args.bridge.upper()}")
    logger.info(f"Refresh Interval:   {args.refresh_interval:.0f}s")
    logger.info(f"HTTP Timeout:       {args.http_timeout}s")
    logger.info("=" * 60)

    fetcher = SourceFetcher(timeout=args.http_timeout)
    cache = RateCache(
        base_resolver=BaseRateResolver(fetcher, base_sources),
        chain_resolver=ConversionChainResolver(fetcher, bridge_currency=args.bridge),
        conversion_sources=conversion_sources,
        method_provider=lambda: method,
        refresh_interval=args.refresh_interval,
        default_currency=args.default_currency.upper() if args.default_currency else None,
    )

    try:
        exit_code = asyncio.run(run(cache, args.currency.upper() if args.currency else None))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        exit_code = 1
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
