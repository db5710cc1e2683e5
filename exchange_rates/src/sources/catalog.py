"""Built-in rate sources and JSON catalogue loading.

Base-rate sources quote the base asset (MZC) in the bridging currency (BTC)
and get twice the default timeout. Conversion sources publish a flat table
of fiat prices for one unit of the bridging currency.

A catalogue file is a JSON list of source objects:

.. code-block:: json

    [
        {"name": "mybook", "url": "https://example.com/ticker",
         "fields": ["last", "bid"], "shape": "nested", "path": ["result"],
         "timeout_factor": 2}
    ]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .base import (
    RateSource,
    ResponseShape,
    SourceConfigError,
    register_source,
)

logger = logging.getLogger(__name__)

# Base-rate sources are slower exchanges, allow them longer
BASE_RATE_TIMEOUT_FACTOR = 2.0

BTER = register_source(
    RateSource(
        name="bter",
        url="https://data.bter.com/api/1/ticker/mzc_btc",
        fields=("last", "avg"),
        shape=ResponseShape.FLAT,
        timeout_factor=BASE_RATE_TIMEOUT_FACTOR,
    )
)

MINTPAL = register_source(
    RateSource(
        name="mintpal",
        url="https://api.mintpal.com/v1/market/stats/MZC/BTC",
        fields=("last_price",),
        shape=ResponseShape.ARRAY,
        timeout_factor=BASE_RATE_TIMEOUT_FACTOR,
    )
)

CRYPTSY = register_source(
    RateSource(
        name="cryptsy",
        url="http://pubapi.cryptsy.com/api.php?method=singlemarketdata&marketid=164",
        fields=("lasttradeprice",),
        shape=ResponseShape.NESTED,
        path=("return", "markets", "MZC"),
        timeout_factor=BASE_RATE_TIMEOUT_FACTOR,
    )
)

BITTREX = register_source(
    RateSource(
        name="bittrex",
        url="https://bittrex.com/api/v1.1/public/getticker?market=BTC-MZC",
        fields=("Bid", "Last"),
        shape=ResponseShape.NESTED,
        path=("result",),
        timeout_factor=BASE_RATE_TIMEOUT_FACTOR,
    )
)

BITCOINAVERAGE = register_source(
    RateSource(
        name="bitcoinaverage",
        url="https://api.bitcoinaverage.com/ticker/all",
        fields=("24h_avg",),
    )
)

BITCOINCHARTS = register_source(
    RateSource(
        name="bitcoincharts",
        url="http://api.bitcoincharts.com/v1/weighted_prices.json",
        fields=("24h", "7d", "30d"),
    )
)

BLOCKCHAININFO = register_source(
    RateSource(
        name="blockchaininfo",
        url="https://blockchain.info/ticker",
        fields=("15m",),
    )
)

DEFAULT_BASE_SOURCES: tuple[str, ...] = ("bter", "mintpal", "cryptsy", "bittrex")
DEFAULT_CONVERSION_SOURCES: tuple[str, ...] = (
    "bitcoinaverage",
    "bitcoincharts",
    "blockchaininfo",
)


def source_from_dict(entry: dict[str, Any]) -> RateSource:
    """Build a descriptor from one catalogue entry.

    :param entry: Decoded JSON object.
    :returns: New RateSource (not registered).
    :raises SourceConfigError: If the entry is malformed.
    """
    if not isinstance(entry, dict):
        raise SourceConfigError(f"Catalogue entry must be an object, got {entry!r}")

    try:
        fields = entry["fields"]
        if isinstance(fields, str):
            fields = [fields]
        return RateSource(
            name=str(entry["name"]).strip().lower(),
            url=str(entry["url"]),
            fields=tuple(str(f) for f in fields),
            shape=ResponseShape(entry.get("shape", ResponseShape.FLAT.value)),
            path=tuple(str(p) for p in entry.get("path", ())),
            timeout_factor=float(entry.get("timeout_factor", 1.0)),
        )
    except KeyError as e:
        raise SourceConfigError(f"Catalogue entry missing key {e}: {entry!r}") from e
    except (TypeError, ValueError) as e:
        raise SourceConfigError(f"Invalid catalogue entry {entry!r}: {e}") from e


def load_sources_file(path: str | Path) -> list[RateSource]:
    """Load a JSON catalogue and register every source it describes.

    Entries whose name matches a built-in replace it.

    :param path: Path to the catalogue file.
    :returns: Registered descriptors in file order.
    :raises SourceConfigError: If the file cannot be read or parsed.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise SourceConfigError(f"Cannot read sources file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SourceConfigError(f"Sources file {path} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise SourceConfigError(f"Sources file {path} must contain a JSON list")

    sources = [register_source(source_from_dict(entry)) for entry in data]
    logger.info(f"Loaded {len(sources)} sources from {path}")
    return sources
