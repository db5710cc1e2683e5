"""ExchangeRate and RateTable: fixed-point rate values.

Rates are stored as integers scaled by ``10**NUM_DECIMALS`` so that values
never drift through float arithmetic. Every decimal-to-fixed-point
conversion in the package goes through :func:`to_fixed_point`, which rounds
half up.

.. code-block:: python

    >>> to_fixed_point(Decimal("50"))
    5000000000
    >>> from_fixed_point(5000000000)
    Decimal('50.00000000')
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, DecimalException

from .sources import InvalidRateError

# Number of fractional digits kept in a fixed-point rate.
NUM_DECIMALS = 8
RATE_SCALE = 10**NUM_DECIMALS

# Marks the synthetic entry holding the base asset's bridge rate, e.g. "#BTC".
BASE_CODE_PREFIX = "#"


def to_fixed_point(value: Decimal) -> int:
    """Scale a decimal rate to an integer with NUM_DECIMALS fractional digits.

    :param value: Decimal rate.
    :returns: Scaled integer, rounded half up.
    :raises InvalidRateError: If the value cannot be represented, e.g. it
        has more digits than the decimal context holds.
    """
    try:
        scaled = value.scaleb(NUM_DECIMALS).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except DecimalException as e:
        raise InvalidRateError(f"Rate out of range: {value}") from e
    return int(scaled)


def from_fixed_point(rate: int) -> Decimal:
    """Convert a scaled integer back to a decimal rate.

    :param rate: Fixed-point rate.
    :returns: Decimal with exactly NUM_DECIMALS fractional digits.
    """
    return Decimal(rate).scaleb(-NUM_DECIMALS).quantize(Decimal(1).scaleb(-NUM_DECIMALS))


def base_entry_code(bridge_currency: str) -> str:
    """Return the table key of the synthetic base-asset entry.

    :param bridge_currency: Bridging currency code (e.g., "BTC").
    :returns: Prefixed code (e.g., "#BTC").
    """
    return f"{BASE_CODE_PREFIX}{bridge_currency.upper()}"


@dataclass(frozen=True)
class ExchangeRate:
    """A single resolved rate.

    :ivar currency_code: Currency the rate is quoted in.
    :ivar rate: Value of one base asset unit, scaled by RATE_SCALE.
    :ivar source: Provenance label (source host or method name).
    """

    currency_code: str
    rate: int
    source: str

    def __post_init__(self) -> None:
        if self.rate <= 0:
            raise ValueError(
                f"Rate for {self.currency_code} must be positive, got {self.rate}"
            )

    @property
    def value(self) -> Decimal:
        """The rate as a decimal."""
        return from_fixed_point(self.rate)

    def __str__(self) -> str:
        return f"ExchangeRate[{self.currency_code}:{self.value}]"


class RateTable(Mapping[str, ExchangeRate]):
    """Read-only mapping of currency code to ExchangeRate, ordered by code.

    .. code-block:: python

        >>> table = RateTable([ExchangeRate("USD", 1, "x"), ExchangeRate("EUR", 2, "x")])
        >>> list(table)
        ['EUR', 'USD']
    """

    def __init__(self, rates: Iterable[ExchangeRate] = ()) -> None:
        by_code = {rate.currency_code: rate for rate in rates}
        self._rates: dict[str, ExchangeRate] = {
            code: by_code[code] for code in sorted(by_code)
        }

    def __getitem__(self, code: str) -> ExchangeRate:
        return self._rates[code]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rates)

    def __len__(self) -> int:
        return len(self._rates)

    def __repr__(self) -> str:
        return f"RateTable({list(self._rates.values())!r})"
