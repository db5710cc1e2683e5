"""
Exchange Rates - Multi-Source Rate Resolution Module

This module resolves a base asset's exchange rate table from independent APIs:
- BaseRateResolver: Base-to-bridge rate from one source or an aggregate of all
- PriceAggregator: Average/minimum/maximum over source readings
- ConversionChainResolver: Fallback chain over currency conversion tables
- RateCache: Time-gated, single-flight snapshot of the resolved table
- sources: Rate source descriptors and the built-in catalogue
"""

from .BaseRateResolver import BaseRateResolver
from .ConversionChainResolver import ConversionChainResolver
from .ExchangeRate import NUM_DECIMALS, RATE_SCALE, ExchangeRate, RateTable
from .PriceAggregator import AggregationResult, PriceAggregator
from .RateCache import CacheEntry, RateCache
from .RateMethod import (
    AggregationStrategy,
    Aggregated,
    FromSource,
    RateMethod,
    method_from_index,
    parse_method,
)
from .SourceFetcher import HTTP_TIMEOUT, SourceFetcher

__all__ = [
    "AggregationResult",
    "AggregationStrategy",
    "Aggregated",
    "BaseRateResolver",
    "CacheEntry",
    "ConversionChainResolver",
    "ExchangeRate",
    "FromSource",
    "HTTP_TIMEOUT",
    "NUM_DECIMALS",
    "PriceAggregator",
    "RATE_SCALE",
    "RateCache",
    "RateMethod",
    "RateTable",
    "SourceFetcher",
    "method_from_index",
    "parse_method",
]
