"""Rate source descriptors, response shapes and the shared error hierarchy.

A rate source is pure data: where to GET, which fields to probe (in order)
and how to find the object that holds those fields inside the JSON body.
All network work lives in :mod:`exchange_rates.src.SourceFetcher`.

.. code-block:: python

    MINTPAL = register_source(
        RateSource(
            name="mintpal",
            url="https://api.mintpal.com/v1/market/stats/MZC/BTC",
            fields=("last_price",),
            shape=ResponseShape.ARRAY,
        )
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Base exception for rate source errors."""

    pass


class SourceConfigError(SourceError):
    """Raised when a source descriptor or catalogue entry is invalid."""

    pass


class SourceNetworkError(SourceError):
    """Raised on connect/read timeouts and transport failures."""

    pass


class SourceHTTPError(SourceError):
    """Raised when a source answers with a non-success status.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class SourceParseError(SourceError):
    """Raised when a response body is not JSON or lacks the expected keys."""

    pass


class InvalidRateError(SourceError):
    """Raised when a rate field is non-numeric or not strictly positive."""

    pass


class ResponseShape(Enum):
    """Where the object holding the rate fields sits in a response body."""

    FLAT = "flat"
    ARRAY = "array"
    NESTED = "nested"


@dataclass(frozen=True)
class RateSource:
    """Immutable descriptor of one external price API.

    :ivar name: Unique identifier, also used in config and logs.
    :ivar url: Endpoint queried with a plain GET.
    :ivar fields: Field names probed in priority order.
    :ivar shape: Selector used to locate the rate object.
    :ivar path: Key path to the rate object for NESTED responses.
    :ivar timeout_factor: Multiple of the base HTTP timeout for this source.
    """

    name: str
    url: str
    fields: tuple[str, ...]
    shape: ResponseShape = ResponseShape.FLAT
    path: tuple[str, ...] = field(default_factory=tuple)
    timeout_factor: float = 1.0

    def __post_init__(self) -> None:
        if not self.name:
            raise SourceConfigError("Rate source must define a name")
        if not self.url:
            raise SourceConfigError(f"Rate source '{self.name}' must define a url")
        if not self.fields:
            raise SourceConfigError(
                f"Rate source '{self.name}' must define at least one field"
            )
        if self.shape is ResponseShape.NESTED and not self.path:
            raise SourceConfigError(
                f"Rate source '{self.name}' has a nested shape but no path"
            )
        if self.timeout_factor <= 0:
            raise SourceConfigError(
                f"Rate source '{self.name}' timeout_factor must be positive"
            )

    def locate(self, payload: Any) -> dict[str, Any]:
        """Select the sub-object holding the rate fields.

        :param payload: Decoded JSON body.
        :returns: The object whose keys are the configured fields.
        :raises SourceParseError: If the payload does not have this source's shape.
        """
        if self.shape is ResponseShape.ARRAY:
            if not isinstance(payload, list) or not payload:
                raise SourceParseError(f"[{self.name}] Expected a non-empty array")
            payload = payload[0]
        elif self.shape is ResponseShape.NESTED:
            for key in self.path:
                if not isinstance(payload, dict) or key not in payload:
                    raise SourceParseError(
                        f"[{self.name}] Missing key '{key}' in path {'.'.join(self.path)}"
                    )
                payload = payload[key]

        if not isinstance(payload, dict):
            raise SourceParseError(f"[{self.name}] Rate object is not a JSON object")
        return payload


# Registry of known sources, populated by the catalogue and by config files
SOURCE_REGISTRY: dict[str, RateSource] = {}


def register_source(source: RateSource) -> RateSource:
    """Register a source descriptor, replacing any earlier one with the same name.

    :param source: Descriptor to register.
    :returns: The registered descriptor (unchanged).
    """
    if source.name in SOURCE_REGISTRY:
        logger.debug(f"Replacing registered source '{source.name}'")
    SOURCE_REGISTRY[source.name] = source
    return source


def get_source(name: str) -> RateSource:
    """Get a registered source by name.

    :param name: Source name (e.g., "bter", "bitcoincharts").
    :returns: Source descriptor.
    :raises SourceConfigError: If the source name is unknown.
    """
    if name not in SOURCE_REGISTRY:
        available = ", ".join(sorted(SOURCE_REGISTRY.keys()))
        raise SourceConfigError(f"Unknown source '{name}'. Available: {available}")
    return SOURCE_REGISTRY[name]


def get_available_sources() -> list[str]:
    """Get list of registered source names.

    :returns: Sorted list of registered source names.
    """
    return sorted(SOURCE_REGISTRY.keys())
