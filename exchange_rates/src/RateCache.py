"""RateCache: time-gated snapshot of the resolved rate table.

The cache holds one immutable :class:`CacheEntry` and swaps it wholesale
after each successful resolution, so readers never see a table paired with
the wrong timestamp. A failed refresh keeps the previous entry untouched;
because its timestamp is not advanced, the very next call retries.

Refreshes are single-flight. While one runs, callers that already have a
table get it immediately; callers with nothing cached wait for the running
attempt instead of starting their own.
"""

from __future__ import annotations

import asyncio
import locale
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from .ExchangeRate import ExchangeRate, RateTable
from .RateMethod import DEFAULT_METHOD, RateMethod

if TYPE_CHECKING:
    from .BaseRateResolver import BaseRateResolver
    from .ConversionChainResolver import ConversionChainResolver
    from .sources import RateSource

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 600.0  # 10 minutes
GLOBAL_DEFAULT_CURRENCY = "USD"


def locale_currency_code() -> str | None:
    """Currency code of the process's monetary locale, if one is set.

    :returns: ISO code such as "EUR", or None under the C locale.
    """
    code = locale.localeconv().get("int_curr_symbol", "")
    code = str(code).strip().upper()
    return code[:3] or None


@dataclass(frozen=True)
class CacheEntry:
    """A resolved table and the time its resolution started.

    :ivar table: Resolved rate table.
    :ivar last_updated: Clock reading when the resolution began.
    """

    table: RateTable
    last_updated: float


class RateCache:
    """Caches the full rate table for a fixed refresh interval.

    :ivar base_resolver: Resolves the base-to-bridge rate.
    :ivar chain_resolver: Turns the base rate into a currency table.
    :ivar conversion_sources: Conversion sources in priority order.
    :ivar refresh_interval: Seconds a table stays fresh.
    :ivar default_currency: Fallback code for lookups (locale-derived by default).
    """

    def __init__(
        self,
        base_resolver: BaseRateResolver,
        chain_resolver: ConversionChainResolver,
        conversion_sources: list[RateSource],
        method_provider: Callable[[], RateMethod] | None = None,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        default_currency: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        :param base_resolver: Resolves the base-to-bridge rate.
        :param chain_resolver: Turns the base rate into a currency table.
        :param conversion_sources: Conversion sources in priority order.
        :param method_provider: Returns the preferred method at each refresh
            (default: always AVERAGE).
        :param refresh_interval: Seconds a table stays fresh (default: 600).
        :param default_currency: Fallback code for lookups. None derives it
            from the monetary locale.
        :param clock: Time source in seconds.
        :raises ValueError: If refresh_interval is not positive.
        """
        if refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive")

        self.base_resolver = base_resolver
        self.chain_resolver = chain_resolver
        self.conversion_sources = list(conversion_sources)
        self.method_provider = method_provider or (lambda: DEFAULT_METHOD)
        self.refresh_interval = refresh_interval
        self.default_currency = default_currency or locale_currency_code()
        self._clock = clock
        self._entry: CacheEntry | None = None
        self._lock = asyncio.Lock()
        self._attempts = 0

    @property
    def entry(self) -> CacheEntry | None:
        """Current snapshot, or None if no resolution has succeeded yet."""
        return self._entry

    def is_stale(self) -> bool:
        """Check whether the next read triggers a refresh.

        :returns: True if nothing is cached or the entry is older than the interval.
        """
        entry = self._entry
        if entry is None:
            return True
        return self._clock() - entry.last_updated > self.refresh_interval

    def get_age(self) -> float | None:
        """Get the age of the cached table in seconds.

        :returns: Age in seconds, or None if the cache is empty.
        """
        entry = self._entry
        if entry is None:
            return None
        return self._clock() - entry.last_updated

    async def get_rates(self) -> RateTable | None:
        """Return the rate table, refreshing it first if stale.

        :returns: The freshest available table, or None if none was ever resolved.
        """
        entry = self._entry
        if entry is not None and not self.is_stale():
            return entry.table
        if entry is not None and self._lock.locked():
            return entry.table

        attempt = self._attempts
        async with self._lock:
            # Another caller attempted a refresh while we waited
            if self._attempts == attempt:
                await self._refresh()

        entry = self._entry
        return entry.table if entry is not None else None

    async def get_rate(self, currency_code: str | None = None) -> ExchangeRate | None:
        """Look up one rate.

        Falls back from the requested code to the default currency, then to
        GLOBAL_DEFAULT_CURRENCY.

        :param currency_code: Requested code, or None for the default.
        :returns: Matching rate, or None if no candidate is in the table.
        """
        table = await self.get_rates()
        if table is None:
            return None

        for code in (currency_code, self.default_currency, GLOBAL_DEFAULT_CURRENCY):
            if code and code in table:
                return table[code]
        return None

    async def refresh(self) -> RateTable | None:
        """Force a resolution regardless of freshness.

        :returns: The new table, or None if resolution failed.
        """
        async with self._lock:
            return await self._refresh()

    async def _refresh(self) -> RateTable | None:
        """Run one resolution attempt. Caller holds the lock."""
        try:
            return await self._resolve()
        finally:
            # Counts finished attempts so waiters can tell one completed
            self._attempts += 1

    async def _resolve(self) -> RateTable | None:
        """Resolve base rate then conversion table, and swap in the snapshot."""
        started = self._clock()
        method = self.method_provider()

        base = await self.base_resolver.resolve_with_fallback(method)
        if base is None:
            logger.warning("Base rate unavailable, keeping previous exchange rates")
            return None

        base_rate, label = base
        table = await self.chain_resolver.resolve_table(
            base_rate, label, self.conversion_sources
        )
        if table is None:
            logger.warning("Conversion chain failed, keeping previous exchange rates")
            return None

        self._entry = CacheEntry(table=table, last_updated=started)
        logger.info(f"Exchange rates updated: {len(table)} currencies via {label}")
        return table
