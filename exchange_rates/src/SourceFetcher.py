"""SourceFetcher: one HTTP round trip against a rate source.

A shared httpx.AsyncClient is used across fetches to avoid connection
overhead. Bodies are decoded with ``parse_float=Decimal`` so no reading
ever passes through a float.

Every error raised while talking to a source is a :class:`SourceError`.
``fetch_rate`` and ``fetch_table`` contain them: they log and return None,
so one failing source never aborts the caller's chain or aggregation.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable
from decimal import Decimal, DecimalException
from typing import Any, ClassVar

import httpx

from .ExchangeRate import ExchangeRate, to_fixed_point
from .sources import (
    InvalidRateError,
    RateSource,
    SourceError,
    SourceHTTPError,
    SourceNetworkError,
    SourceParseError,
)

logger = logging.getLogger(__name__)

# Connect/read timeout in seconds, multiplied by each source's timeout_factor.
HTTP_TIMEOUT = 5.0

# Keys in a conversion table that never name a currency.
NON_CURRENCY_KEYS = frozenset({"timestamp"})


def parse_rate(value: Any) -> Decimal:
    """Parse a JSON field as a finite decimal.

    :param value: Raw field value (string or number).
    :returns: Parsed decimal.
    :raises InvalidRateError: If the value is not a finite number.
    """
    if value is None or isinstance(value, bool):
        raise InvalidRateError(f"Not a number: {value!r}")
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (DecimalException, ValueError) as e:
        raise InvalidRateError(f"Not a number: {value!r}") from e
    if not rate.is_finite():
        raise InvalidRateError(f"Not a finite number: {value!r}")
    return rate


def first_positive_rate(
    obj: dict[str, Any],
    fields: Iterable[str],
    multiplier: Decimal = Decimal(1),
    label: str = "",
) -> Decimal | None:
    """Ordered search over candidate fields.

    Returns ``obj[field] * multiplier`` for the first field that is present
    and gives a strictly positive product. Fields that are missing, fail
    to parse, or overflow when multiplied are skipped.

    :param obj: Object holding the rate fields.
    :param fields: Field names in priority order.
    :param multiplier: Factor applied to the parsed value.
    :param label: Prefix for log messages.
    :returns: First positive product, or None if no field qualifies.
    """
    for name in fields:
        if name not in obj:
            continue
        try:
            value = parse_rate(obj[name])
            product = value * multiplier
        except InvalidRateError as e:
            logger.warning(f"[{label}] Skipping field '{name}': {e}")
            continue
        except DecimalException as e:
            logger.warning(
                f"[{label}] Skipping field '{name}': {value} * {multiplier} failed: {e!r}"
            )
            continue
        if product > 0:
            return product
        logger.debug(f"[{label}] Field '{name}' is not positive: {product}")
    return None


class SourceFetcher:
    """Performs GET requests against rate sources and extracts rates.

    :ivar timeout: Base timeout in seconds before each source's factor.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    def __init__(
        self,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fetcher.

        :param timeout: Base timeout in seconds (default: HTTP_TIMEOUT).
        :param client: Optional client to use instead of the shared one.
        """
        self.timeout = timeout or HTTP_TIMEOUT
        self._client = client

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.AsyncClient instance.
        """
        if cls._shared_client is None or cls._shared_client.is_closed:
            cls._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(HTTP_TIMEOUT),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return cls._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if cls._shared_client is not None and not cls._shared_client.is_closed:
            await cls._shared_client.aclose()
            cls._shared_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or self.get_shared_client()

    async def fetch_json(self, source: RateSource) -> Any:
        """GET the source's endpoint and decode its JSON body.

        :param source: Source to query.
        :returns: Decoded body, with every JSON number as Decimal or int.
        :raises SourceHTTPError: On any status other than 200.
        :raises SourceNetworkError: On network/timeout errors.
        :raises SourceParseError: If the body is not JSON.
        """
        timeout = self.timeout * source.timeout_factor
        try:
            response = await self.client.get(source.url, timeout=timeout)
        except httpx.TimeoutException as e:
            raise SourceNetworkError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise SourceNetworkError(f"Request failed: {e}") from e

        if response.status_code != httpx.codes.OK:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                source.url,
                response.status_code,
                response.text[:200],
            )
            raise SourceHTTPError(response.status_code, response.text[:200])

        try:
            return json.loads(response.text, parse_float=Decimal)
        except ValueError as e:
            raise SourceParseError(f"Malformed JSON from {source.url}: {e}") from e

    async def fetch_rate(self, source: RateSource) -> Decimal | None:
        """Fetch a single rate from a base-rate source.

        :param source: Base-rate source.
        :returns: First positive configured field, or None on failure.
        """
        start = time.monotonic()
        try:
            rate_obj = source.locate(await self.fetch_json(source))
        except SourceError as e:
            logger.warning(f"[{source.name}] Failed to fetch rate: {e}")
            return None

        rate = first_positive_rate(rate_obj, source.fields, label=source.name)
        if rate is None:
            logger.warning(
                f"[{source.name}] No positive value in fields {list(source.fields)}"
            )
            return None

        logger.info(
            f"[{source.name}] Fetched rate {rate} from {source.url}, "
            f"took {(time.monotonic() - start) * 1000:.0f} ms"
        )
        return rate

    async def fetch_table(
        self, source: RateSource, base_rate: Decimal
    ) -> dict[str, ExchangeRate] | None:
        """Fetch a conversion table and price every currency in base units.

        :param source: Conversion source publishing a flat currency table.
        :param base_rate: Value of one base asset in the bridging currency.
        :returns: Currency code to ExchangeRate (possibly empty), or None if
            the request or body failed.
        """
        start = time.monotonic()
        try:
            payload = await self.fetch_json(source)
            if not isinstance(payload, dict):
                raise SourceParseError("Conversion table is not a JSON object")
        except SourceError as e:
            logger.warning(f"[{source.name}] Failed to fetch exchange rates: {e}")
            return None

        host = httpx.URL(source.url).host
        rates: dict[str, ExchangeRate] = {}
        for code, entry in payload.items():
            if code in NON_CURRENCY_KEYS or not isinstance(entry, dict):
                continue
            value = first_positive_rate(
                entry, source.fields, multiplier=base_rate, label=f"{source.name}:{code}"
            )
            if value is None:
                continue
            try:
                scaled = to_fixed_point(value)
            except InvalidRateError as e:
                logger.warning(f"[{source.name}] Skipping {code}: {e}")
                continue
            if scaled <= 0:
                logger.debug(f"[{source.name}] Rate for {code} rounds to zero, skipping")
                continue
            rates[code] = ExchangeRate(code, scaled, host)

        logger.info(
            f"[{source.name}] Fetched {len(rates)} exchange rates from {source.url}, "
            f"took {(time.monotonic() - start) * 1000:.0f} ms"
        )
        return rates
