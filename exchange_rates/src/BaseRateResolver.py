"""BaseRateResolver: value of the base asset in the bridging currency.

A single-source method performs one fetch against that source. An
aggregated method fetches every known base-rate source concurrently and
reduces the successful readings with the method's strategy.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from .PriceAggregator import PriceAggregator
from .RateMethod import AVERAGE, Aggregated, FromSource, RateMethod

if TYPE_CHECKING:
    from .SourceFetcher import SourceFetcher
    from .sources import RateSource

logger = logging.getLogger(__name__)


class BaseRateResolver:
    """Resolves the base-to-bridge rate from base-rate sources.

    :ivar fetcher: Fetcher used for every request.
    :ivar sources: Known base-rate sources by name, in configured order.
    """

    def __init__(self, fetcher: SourceFetcher, sources: list[RateSource]) -> None:
        """Initialize the resolver.

        :param fetcher: Fetcher used for every request.
        :param sources: Base-rate sources eligible for aggregation.
        """
        self.fetcher = fetcher
        self.sources: dict[str, RateSource] = {s.name: s for s in sources}

    async def resolve(self, method: RateMethod) -> Decimal | None:
        """Resolve the base rate with the given method.

        :param method: Single source or aggregation.
        :returns: Base rate, or None if the source failed or no source answered.
        """
        if isinstance(method, FromSource):
            source = self.sources.get(method.source)
            if source is None:
                logger.warning(
                    f"Unknown base-rate source '{method.source}'. "
                    f"Known: {list(self.sources)}"
                )
                return None
            return await self.fetcher.fetch_rate(source)

        return await self._aggregate(method)

    async def resolve_with_fallback(
        self, method: RateMethod
    ) -> tuple[Decimal, str] | None:
        """Resolve the base rate, falling back to AVERAGE if a single source fails.

        :param method: Preferred method.
        :returns: (rate, label of the method that produced it), or None.
        """
        rate = await self.resolve(method)
        if rate is not None:
            return rate, method.label

        if isinstance(method, FromSource):
            logger.warning(
                f"[{method.source}] Base rate unavailable, falling back to {AVERAGE.label}"
            )
            rate = await self.resolve(AVERAGE)
            if rate is not None:
                return rate, AVERAGE.label

        return None

    async def _aggregate(self, method: Aggregated) -> Decimal | None:
        """Fetch every known source concurrently and aggregate the readings.

        :param method: Aggregation method.
        :returns: Aggregated rate, or None if no source answered.
        """
        if not self.sources:
            logger.warning("No base-rate sources configured")
            return None

        names = list(self.sources)
        readings = await asyncio.gather(
            *(self.fetcher.fetch_rate(self.sources[name]) for name in names),
            return_exceptions=True,
        )

        prices: dict[str, Decimal | None] = {}
        for name, reading in zip(names, readings, strict=True):
            if isinstance(reading, BaseException):
                logger.warning(f"[{name}] Base rate fetch exception: {reading}")
                prices[name] = None
            else:
                prices[name] = reading

        result = PriceAggregator(method.strategy).aggregate(prices)
        if not result.success:
            logger.warning(
                f"{method.label} base rate failed: {result.error} "
                f"({result.metadata.get('available', 0)} of {len(names)} sources)"
            )
            return None

        logger.info(
            f"{method.label} base rate {result.price} from "
            f"{result.metadata['count']} sources: {result.metadata['sources']}"
        )
        return result.price
