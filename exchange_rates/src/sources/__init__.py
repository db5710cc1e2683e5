"""Rate source descriptors for base-rate and conversion APIs.

Usage:
    from exchange_rates.src.sources import get_source, get_available_sources

    available = get_available_sources()
    # ['bitcoinaverage', 'bitcoincharts', 'bittrex', 'blockchaininfo', 'bter', 'cryptsy', 'mintpal']

    source = get_source("bitcoincharts")
    source.fields
    # ('24h', '7d', '30d')
"""

from .base import (
    SOURCE_REGISTRY,
    InvalidRateError,
    RateSource,
    ResponseShape,
    SourceConfigError,
    SourceError,
    SourceHTTPError,
    SourceNetworkError,
    SourceParseError,
    get_available_sources,
    get_source,
    register_source,
)

# Import the catalogue to trigger registration of the built-in sources
from .catalog import (
    DEFAULT_BASE_SOURCES,
    DEFAULT_CONVERSION_SOURCES,
    load_sources_file,
    source_from_dict,
)

__all__ = [
    # Descriptors
    "RateSource",
    "ResponseShape",
    # Errors
    "SourceError",
    "SourceConfigError",
    "SourceNetworkError",
    "SourceHTTPError",
    "SourceParseError",
    "InvalidRateError",
    # Registry functions
    "register_source",
    "get_source",
    "get_available_sources",
    "SOURCE_REGISTRY",
    # Catalogue
    "DEFAULT_BASE_SOURCES",
    "DEFAULT_CONVERSION_SOURCES",
    "load_sources_file",
    "source_from_dict",
]
