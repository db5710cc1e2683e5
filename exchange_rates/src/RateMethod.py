"""RateMethod: how the base asset's bridge rate is obtained.

A method is either an aggregation over every known base-rate source or a
single named source. Persisted preferences store an integer index; the
mapping from index to method is explicit in :data:`METHOD_INDEX` rather
than derived from declaration order.

.. code-block:: python

    >>> method_from_index(1)
    Aggregated(strategy=<AggregationStrategy.MINIMUM: 'minimum'>)
    >>> parse_method("source:bter")
    FromSource(source='bter')
    >>> parse_method("max").label
    'Maximum'
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class AggregationStrategy(Enum):
    """How several source readings are combined into one value."""

    AVERAGE = "average"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"


@dataclass(frozen=True)
class Aggregated:
    """Combine readings from every known source with a strategy."""

    strategy: AggregationStrategy

    @property
    def label(self) -> str:
        return self.strategy.value.capitalize()


@dataclass(frozen=True)
class FromSource:
    """Read the rate from a single named source."""

    source: str

    @property
    def label(self) -> str:
        return self.source


RateMethod = Union[Aggregated, FromSource]

AVERAGE = Aggregated(AggregationStrategy.AVERAGE)
MINIMUM = Aggregated(AggregationStrategy.MINIMUM)
MAXIMUM = Aggregated(AggregationStrategy.MAXIMUM)

DEFAULT_METHOD: RateMethod = AVERAGE

# Preference index -> method. Indices are persisted, never renumber them.
METHOD_INDEX: dict[int, RateMethod] = {
    0: AVERAGE,
    1: MINIMUM,
    2: MAXIMUM,
    3: FromSource("bter"),
    4: FromSource("mintpal"),
    5: FromSource("cryptsy"),
    6: FromSource("bittrex"),
}

_STRATEGY_ALIASES: dict[str, Aggregated] = {
    "avg": AVERAGE,
    "average": AVERAGE,
    "min": MINIMUM,
    "minimum": MINIMUM,
    "max": MAXIMUM,
    "maximum": MAXIMUM,
}


def method_from_index(index: int) -> RateMethod:
    """Map a persisted preference index to its method.

    :param index: Preference index.
    :returns: The corresponding method.
    :raises ValueError: If the index is not mapped.
    """
    try:
        return METHOD_INDEX[index]
    except KeyError:
        raise ValueError(
            f"Unknown rate method index {index}. Known: {sorted(METHOD_INDEX)}"
        ) from None


def parse_method(value: str) -> RateMethod:
    """Parse a method from configuration text.

    Accepts a preference index ("0"), a strategy name ("average", "min",
    ...), "source:<name>", or a bare source name.

    :param value: Configuration text.
    :returns: Parsed method.
    :raises ValueError: If the text is empty or the index is unknown.
    """
    text = value.strip().lower()
    if not text:
        raise ValueError("Rate method must not be empty")
    if text.isdigit():
        return method_from_index(int(text))
    if text in _STRATEGY_ALIASES:
        return _STRATEGY_ALIASES[text]
    if text.startswith("source:"):
        text = text[len("source:"):].strip()
        if not text:
            raise ValueError("Source method needs a source name, e.g. 'source:bter'")
    return FromSource(text)
