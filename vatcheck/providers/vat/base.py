"""Shared plumbing for the httpx-based VAT registry adapters.

Handles the optional injected ``httpx.AsyncClient`` (shared connection pool
in production, ``MockTransport`` in tests), owned-client cleanup and the
log-then-wrap step every adapter performs before raising
:class:`~vatcheck.utils.errors.ApiUnavailableError`.
"""

from __future__ import annotations

from typing import Any

import httpx
import pydantic
import structlog

from vatcheck.interfaces.vat_provider import IVatProvider
from vatcheck.models.verification import VerificationResult
from vatcheck.utils.errors import ApiUnavailableError, ProviderResponseError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_TIMEOUT = 15.0
_CONNECT_TIMEOUT = 5.0
_USER_AGENT = "vatcheck/0.1.0"


def build_http_client(timeout: float = DEFAULT_TIMEOUT, **kwargs: Any) -> httpx.AsyncClient:
    """Create an ``AsyncClient`` with the adapters' default timeouts and headers."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=min(_CONNECT_TIMEOUT, timeout)),
        headers={"User-Agent": _USER_AGENT, "Accept": "application/json, text/xml"},
        **kwargs,
    )


class HttpVatProvider(IVatProvider):
    """Base class for adapters that talk to their registry over HTTP."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        # Created lazily so that constructing a provider never touches the network stack.
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self) -> httpx.AsyncClient:
        return build_http_client(self._timeout)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # -- Error helpers ---------------------------------------------------------

    def _unavailable(
        self,
        cause: BaseException,
        vat_number: str,
        country_code: str,
    ) -> ApiUnavailableError:
        """Log *cause* and wrap it; callers ``raise ... from cause``."""
        logger.warning(
            "vat_provider_error",
            provider=self.get_provider_name(),
            country=country_code,
            vat=vat_number,
            error_type=type(cause).__name__,
            error=str(cause),
        )
        return ApiUnavailableError(self.get_provider_name(), cause)

    def _response_error(self, message: str) -> ProviderResponseError:
        return ProviderResponseError(message, api_source=self.get_provider_name())

    @staticmethod
    def _json_body(response: httpx.Response) -> Any | None:
        """Decode a JSON body, or return ``None`` when it is not JSON."""
        try:
            return response.json()
        except ValueError:
            return None

    def _build_result(self, queried_vat: str, queried_country: str, **fields: Any) -> VerificationResult:
        """Build the provider's result, treating an ill-typed payload as an outage.

        *queried_vat* and *queried_country* only feed the log line; the
        result's own fields come from *fields*.
        """
        try:
            return VerificationResult(api_source=self.get_provider_name(), **fields)
        except pydantic.ValidationError as exc:
            raise self._unavailable(exc, queried_vat, queried_country) from exc
