"""PriceAggregator: combines base-rate readings with an aggregation strategy.

Algorithm:
    1. Filter out None/zero/negative readings (failed sources)
    2. Return a failed result if no reading remains
    3. Reduce the remaining readings with the strategy
    4. Return a failed result if the reduction overflows the decimal context

AVERAGE divides in a decimal context of AVERAGE_PRECISION significant
digits rounding half up, so (a + b + c) / 3 is reproducible for any inputs.
MINIMUM and MAXIMUM are plain reductions and never round.

.. code-block:: python

    >>> aggregator = PriceAggregator(AggregationStrategy.AVERAGE)
    >>> result = aggregator.aggregate(
    ...     {"bter": Decimal("0.0001"), "mintpal": Decimal("0.0003"), "cryptsy": None}
    ... )
    >>> result.price
    Decimal('0.0002')
    >>> result.metadata["sources"]
    ['bter', 'mintpal']
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, DecimalException, localcontext
from typing import TypedDict

from .RateMethod import AggregationStrategy

# Significant digits kept when averaging.
AVERAGE_PRECISION = 34


class AggregationError(TypedDict, total=False):
    """Error information when aggregation fails.

    :ivar error: Error type identifier.
    :ivar available: Number of valid readings available.
    """

    error: str
    available: int


class AggregationMetadata(TypedDict, total=False):
    """Metadata about a successful aggregation.

    :ivar sources: Sources whose readings were used.
    :ivar count: Number of readings used.
    :ivar strategy: Strategy value applied.
    """

    sources: list[str]
    count: int
    strategy: str


@dataclass
class AggregationResult:
    """Result of rate aggregation.

    :ivar price: Aggregated rate, or None if aggregation failed.
    :ivar metadata: Additional information about the aggregation.
    """

    price: Decimal | None
    metadata: AggregationMetadata | AggregationError

    @property
    def success(self) -> bool:
        """Check if aggregation was successful."""
        return self.price is not None

    @property
    def error(self) -> str | None:
        """Get error type if aggregation failed."""
        if self.price is None:
            return self.metadata.get("error")
        return None


def average(values: list[Decimal]) -> Decimal:
    """Arithmetic mean under the documented rounding policy.

    :param values: Non-empty list of readings.
    :returns: sum / count at AVERAGE_PRECISION digits, rounded half up.
    """
    with localcontext() as ctx:
        ctx.prec = AVERAGE_PRECISION
        ctx.rounding = ROUND_HALF_UP
        return sum(values, Decimal(0)) / Decimal(len(values))


class PriceAggregator:
    """Reduces per-source readings to one rate.

    One valid reading is enough; only an all-failed round yields no rate.

    :ivar strategy: Strategy applied to the valid readings.
    """

    def __init__(self, strategy: AggregationStrategy) -> None:
        self.strategy = strategy

    def aggregate(self, prices: dict[str, Decimal | None]) -> AggregationResult:
        """Aggregate readings from several sources.

        :param prices: Dict mapping source name to reading (None if the fetch failed).
        :returns: AggregationResult with the rate, or None price with error info.
        """
        valid: dict[str, Decimal] = {
            k: v for k, v in prices.items() if v is not None and v > 0
        }

        if not valid:
            return AggregationResult(
                price=None,
                metadata={
                    "error": "insufficient_sources",
                    "available": len(valid),
                },
            )

        values = list(valid.values())
        if self.strategy is AggregationStrategy.AVERAGE:
            try:
                price = average(values)
            except DecimalException:
                return AggregationResult(
                    price=None,
                    metadata={"error": "out_of_range", "available": len(valid)},
                )
        elif self.strategy is AggregationStrategy.MINIMUM:
            price = min(values)
        else:
            price = max(values)

        return AggregationResult(
            price=price,
            metadata={
                "sources": list(valid.keys()),
                "count": len(valid),
                "strategy": self.strategy.value,
            },
        )
