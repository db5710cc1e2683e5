"""Unit tests for SourceFetcher."""

from decimal import Decimal

import httpx
import pytest

from exchange_rates.src.ExchangeRate import ExchangeRate
from exchange_rates.src.SourceFetcher import (
    HTTP_TIMEOUT,
    SourceFetcher,
    first_positive_rate,
    parse_rate,
)
from exchange_rates.src.sources import (
    InvalidRateError,
    ResponseShape,
    SourceHTTPError,
    SourceNetworkError,
    SourceParseError,
)
from exchange_rates.tests.factories import base_source, conversion_source

D = Decimal


class TestParseRate:
    """Test parsing single field values."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("0.00012", D("0.00012")), (12, D(12)), (D("1.5"), D("1.5")), (" 3 ", D(3))],
    )
    def test_valid(self, raw: object, expected: Decimal) -> None:
        assert parse_rate(raw) == expected

    @pytest.mark.parametrize("raw", [None, True, "abc", "", "NaN", "Infinity", [1]])
    def test_invalid(self, raw: object) -> None:
        with pytest.raises(InvalidRateError):
            parse_rate(raw)


class TestFirstPositiveRate:
    """Test the ordered field search."""

    def test_first_present_field_wins(self) -> None:
        obj = {"24h": "100.0", "7d": "90.0"}
        assert first_positive_rate(obj, ("24h", "7d")) == D("100.0")

    def test_missing_fields_skipped(self) -> None:
        obj = {"30d": "80"}
        assert first_positive_rate(obj, ("24h", "7d", "30d")) == D("80")

    def test_unparsable_and_zero_skipped(self) -> None:
        obj = {"24h": "n/a", "7d": "0", "30d": "70"}
        assert first_positive_rate(obj, ("24h", "7d", "30d")) == D("70")

    def test_multiplier_applied(self) -> None:
        obj = {"24h": D("100.0")}
        assert first_positive_rate(obj, ("24h",), multiplier=D("0.5")) == D("50")

    def test_none_when_no_field_qualifies(self) -> None:
        assert first_positive_rate({"24h": "-1"}, ("24h", "7d")) is None

    def test_overflowing_product_skipped(self) -> None:
        """A product beyond the decimal exponent range moves on to the next field."""
        obj = {"24h": "9e999999", "7d": "2"}
        assert first_positive_rate(obj, ("24h", "7d"), multiplier=D("10")) == D("20")


class TestFetchJson:
    """Test the raw request layer."""

    @pytest.mark.asyncio
    async def test_decodes_numbers_as_decimal(self, fake_api, fetcher) -> None:
        source = base_source("a")
        fake_api.add(source.url, '{"last": 0.1}')
        payload = await fetcher.fetch_json(source)
        assert payload == {"last": D("0.1")}
        assert isinstance(payload["last"], Decimal)

    @pytest.mark.asyncio
    async def test_http_error(self, fake_api, fetcher) -> None:
        source = base_source("a")
        fake_api.add(source.url, "maintenance", status_code=503)
        with pytest.raises(SourceHTTPError) as exc_info:
            await fetcher.fetch_json(source)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_non_200_success_status_rejected(self, fake_api, fetcher) -> None:
        """Only 200 is accepted, other 2xx codes are failures."""
        source = base_source("a")
        fake_api.add(source.url, {"last": "0.5"}, status_code=202)
        with pytest.raises(SourceHTTPError) as exc_info:
            await fetcher.fetch_json(source)
        assert exc_info.value.status_code == 202

    @pytest.mark.asyncio
    async def test_connection_error(self, fetcher) -> None:
        with pytest.raises(SourceNetworkError, match="Request failed"):
            await fetcher.fetch_json(base_source("unreachable"))

    @pytest.mark.asyncio
    async def test_timeout(self, fake_api, fetcher) -> None:
        source = base_source("slow")
        fake_api.timeout(source.url)
        with pytest.raises(SourceNetworkError, match="Request timeout"):
            await fetcher.fetch_json(source)

    @pytest.mark.asyncio
    async def test_malformed_json(self, fake_api, fetcher) -> None:
        source = base_source("a")
        fake_api.add(source.url, "<html>")
        with pytest.raises(SourceParseError, match="Malformed JSON"):
            await fetcher.fetch_json(source)

    @pytest.mark.asyncio
    async def test_timeout_scaled_by_source_factor(self) -> None:
        """Each request should use the base timeout times the source factor."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.extensions["timeout"])
            return httpx.Response(200, text='{"last": "1"}')

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        fetcher = SourceFetcher(client=client)
        await fetcher.fetch_json(base_source("a", timeout_factor=2.0))

        assert fetcher.timeout == HTTP_TIMEOUT
        assert seen["connect"] == HTTP_TIMEOUT * 2
        assert seen["read"] == HTTP_TIMEOUT * 2


class TestFetchRate:
    """Test base-rate extraction."""

    @pytest.mark.asyncio
    async def test_flat(self, fake_api, fetcher) -> None:
        source = base_source("bter", fields=("last", "avg"))
        fake_api.add(source.url, {"result": "true", "last": "0.00012", "avg": "0.0002"})
        assert await fetcher.fetch_rate(source) == D("0.00012")

    @pytest.mark.asyncio
    async def test_falls_through_to_next_field(self, fake_api, fetcher) -> None:
        source = base_source("bter", fields=("last", "avg"))
        fake_api.add(source.url, {"last": "0", "avg": "0.0002"})
        assert await fetcher.fetch_rate(source) == D("0.0002")

    @pytest.mark.asyncio
    async def test_array(self, fake_api, fetcher) -> None:
        source = base_source("mintpal", fields=("last_price",), shape=ResponseShape.ARRAY)
        fake_api.add(source.url, [{"last_price": "0.00013"}, {"last_price": "9"}])
        assert await fetcher.fetch_rate(source) == D("0.00013")

    @pytest.mark.asyncio
    async def test_nested(self, fake_api, fetcher) -> None:
        source = base_source(
            "bittrex", fields=("Bid",), shape=ResponseShape.NESTED, path=("result",)
        )
        fake_api.add(source.url, '{"success": true, "result": {"Bid": 0.00011}}')
        assert await fetcher.fetch_rate(source) == D("0.00011")

    @pytest.mark.asyncio
    async def test_missing_path_is_failure(self, fake_api, fetcher) -> None:
        source = base_source(
            "bittrex", fields=("Bid",), shape=ResponseShape.NESTED, path=("result",)
        )
        fake_api.add(source.url, {"success": False, "message": "INVALID_MARKET"})
        assert await fetcher.fetch_rate(source) is None

    @pytest.mark.asyncio
    async def test_no_valid_field_is_failure(self, fake_api, fetcher) -> None:
        source = base_source("a")
        fake_api.add(source.url, {"other": "1"})
        assert await fetcher.fetch_rate(source) is None

    @pytest.mark.asyncio
    async def test_http_failure_contained(self, fake_api, fetcher) -> None:
        source = base_source("a")
        fake_api.add(source.url, "", status_code=500)
        assert await fetcher.fetch_rate(source) is None

    @pytest.mark.asyncio
    async def test_accepted_status_is_failure(self, fake_api, fetcher) -> None:
        source = base_source("a")
        fake_api.add(source.url, {"last": "0.5"}, status_code=202)
        assert await fetcher.fetch_rate(source) is None


class TestFetchTable:
    """Test conversion table extraction."""

    @pytest.mark.asyncio
    async def test_scales_by_base_rate(self, fake_api, fetcher) -> None:
        """EUR '24h'=100.0 with base 0.5 should be 50.0 in fixed point."""
        source = conversion_source("charts", fields=("24h", "7d", "30d"))
        fake_api.add(source.url, '{"EUR": {"24h": "100.0"}, "timestamp": 1400000000}')

        rates = await fetcher.fetch_table(source, D("0.5"))

        assert rates == {"EUR": ExchangeRate("EUR", 5_000_000_000, "charts.test")}

    @pytest.mark.asyncio
    async def test_bad_entries_skipped(self, fake_api, fetcher) -> None:
        source = conversion_source("charts", fields=("24h", "7d"))
        fake_api.add(
            source.url,
            {
                "USD": {"24h": "bad", "7d": "600"},
                "EUR": {"24h": "0"},
                "GBP": "not an object",
                "JPY": {"24h": "60000"},
            },
        )

        rates = await fetcher.fetch_table(source, D("0.0001"))

        assert set(rates) == {"USD", "JPY"}
        assert rates["USD"].rate == 6_000_000
        assert rates["JPY"].rate == 600_000_000

    @pytest.mark.asyncio
    async def test_rates_rounded_half_up(self, fake_api, fetcher) -> None:
        source = conversion_source("charts")
        fake_api.add(source.url, {"USD": {"24h": "1.5"}})
        rates = await fetcher.fetch_table(source, D("0.00000001"))
        assert rates["USD"].rate == 2

    @pytest.mark.asyncio
    async def test_rates_rounding_to_zero_skipped(self, fake_api, fetcher) -> None:
        source = conversion_source("charts")
        fake_api.add(source.url, {"USD": {"24h": "0.4"}})
        assert await fetcher.fetch_table(source, D("0.00000001")) == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("huge", ["1e30", "1e999999"])
    async def test_out_of_range_entry_skipped(self, fake_api, fetcher, huge: str) -> None:
        """One unrepresentable currency should not abort the rest of the table."""
        source = conversion_source("charts")
        fake_api.add(source.url, {"EUR": {"24h": "100"}, "XXX": {"24h": huge}})

        rates = await fetcher.fetch_table(source, D("0.5"))

        assert rates == {"EUR": ExchangeRate("EUR", 5_000_000_000, "charts.test")}

    @pytest.mark.asyncio
    async def test_not_an_object(self, fake_api, fetcher) -> None:
        source = conversion_source("charts")
        fake_api.add(source.url, [1, 2, 3])
        assert await fetcher.fetch_table(source, D("1")) is None

    @pytest.mark.asyncio
    async def test_network_failure(self, fetcher) -> None:
        assert await fetcher.fetch_table(conversion_source("down"), D("1")) is None


class TestSharedClient:
    """Test the shared client lifecycle."""

    @pytest.mark.asyncio
    async def test_shared_client_reused_and_closed(self) -> None:
        fetcher = SourceFetcher()
        client = fetcher.client
        assert client is SourceFetcher.get_shared_client()

        await SourceFetcher.close_shared_client()
        assert client.is_closed
        assert SourceFetcher.get_shared_client() is not client
        await SourceFetcher.close_shared_client()
