"""ConversionChainResolver: strict fallback chain over conversion sources.

Sources are tried in order and the first one that yields at least one
currency wins. Later sources are never requested and tables are never
merged across sources.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from .ExchangeRate import ExchangeRate, RateTable, base_entry_code, to_fixed_point
from .sources import InvalidRateError

if TYPE_CHECKING:
    from .SourceFetcher import SourceFetcher
    from .sources import RateSource

logger = logging.getLogger(__name__)


class ConversionChainResolver:
    """Turns a base rate into a full currency table.

    :ivar fetcher: Fetcher used for every request.
    :ivar bridge_currency: Code of the bridging currency (e.g., "BTC").
    """

    def __init__(self, fetcher: SourceFetcher, bridge_currency: str = "BTC") -> None:
        self.fetcher = fetcher
        self.bridge_currency = bridge_currency.upper()

    async def resolve_table(
        self,
        base_rate: Decimal,
        label: str,
        sources: list[RateSource],
    ) -> RateTable | None:
        """Walk the chain until one source yields a table.

        :param base_rate: Value of one base asset in the bridging currency.
        :param label: Provenance of the base rate, stored on the base entry.
        :param sources: Conversion sources in priority order.
        :returns: Table including the synthetic base entry, or None if every
            source failed or was empty.
        """
        try:
            base_scaled = to_fixed_point(base_rate)
        except InvalidRateError as e:
            logger.warning(f"Base rate cannot be converted: {e}")
            return None
        if base_scaled <= 0:
            logger.warning(f"Base rate {base_rate} is not positive, cannot convert")
            return None

        for source in sources:
            rates = await self.fetcher.fetch_table(source, base_rate)
            if not rates:
                logger.info(f"[{source.name}] No usable rates, trying next source")
                continue

            base_code = base_entry_code(self.bridge_currency)
            rates[base_code] = ExchangeRate(base_code, base_scaled, label)
            return RateTable(rates.values())

        logger.warning(
            f"No conversion source produced rates: {[s.name for s in sources]}"
        )
        return None
