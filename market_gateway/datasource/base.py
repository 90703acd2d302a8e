"""
Base data source interface.
"""

import math
from abc import ABC
from datetime import datetime, timezone
from typing import Any, Mapping

from market_gateway.services.client import ProviderClient
from market_gateway.services.errors import InvalidResponseError


def iso_from_millis(value: int | float) -> str:
    """Epoch milliseconds to an ISO-8601 UTC timestamp (``...Z``)."""
    return (
        datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class BaseDataSource(ABC):
    """
    Abstract base class for all provider data sources.

    All data sources should:
    - Use a ProviderClient for HTTP requests (retry, timeout, credentials)
    - Raise InvalidResponseError when the expected envelope is missing
    - Return Pydantic models shaped independently of the provider
    - Never touch the cache
    """

    def __init__(self, client: ProviderClient):
        self.client = client

    @property
    def service_id(self) -> str:
        return self.client.service_id

    @property
    def name(self) -> str:
        return self.client.config.name

    def is_configured(self) -> bool:
        return self.client.config.is_configured()

    def detect_error(self, payload: Any) -> None:
        """Raise a ServiceError if the payload embeds a provider error."""
        return None

    async def _get(self, path: str = "", params: dict[str, Any] | None = None) -> Any:
        return await self.client.request(path, params, check=self.detect_error)

    def _invalid(self, detail: str) -> InvalidResponseError:
        return InvalidResponseError(
            f"Invalid response format from {self.name}: {detail}",
            service_id=self.service_id,
        )

    def _require(self, data: Any, key: str) -> Any:
        """Return data[key], failing closed when the field is absent."""
        if not isinstance(data, Mapping) or data.get(key) is None:
            raise self._invalid(f"missing '{key}'")
        return data[key]

    def _require_list(self, data: Any, key: str | None = None) -> list[Any]:
        value = data if key is None else self._require(data, key)
        if not isinstance(value, list):
            raise self._invalid(f"expected a list{f' for {key!r}' if key else ''}")
        return value

    def _require_mapping(self, data: Any, key: str | None = None) -> Mapping[str, Any]:
        value = data if key is None else self._require(data, key)
        if not isinstance(value, Mapping):
            raise self._invalid(f"expected an object{f' for {key!r}' if key else ''}")
        return value

    def _float(self, data: Mapping[str, Any], key: str) -> float:
        """Parse a numeric field that may be encoded as a string or percentage."""
        value = self._require(data, key)
        if isinstance(value, str):
            value = value.strip().rstrip("%")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise self._invalid(f"'{key}' is not a number") from None
        if math.isnan(number):
            raise self._invalid(f"'{key}' is not a number")
        return number

    def _int(self, data: Mapping[str, Any], key: str) -> int:
        return int(self._float(data, key))
