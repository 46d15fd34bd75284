"""vatlayer.com provider (paid; 100 queries per month on the free plan)."""

from __future__ import annotations

import httpx

from vatcheck.models.verification import VerificationResult
from vatcheck.providers.vat.base import DEFAULT_TIMEOUT, HttpVatProvider
from vatcheck.utils.errors import ConfigurationError
from vatcheck.utils.vat_normalizer import clean_text

# The free plan only serves plain HTTP.
_BASE_URL = "http://apilayer.net/api"


class VatlayerProvider(HttpVatProvider):
    """VAT verification via the vatlayer ``validate`` endpoint.

    vatlayer signals its own problems (bad key, quota exhausted) with an
    ``{"success": false, "error": {...}}`` body on HTTP 200; those are
    raised as unavailability so the next provider is tried.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = _BASE_URL,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self._api_key = api_key or None
        self._base_url = base_url.rstrip("/")

    async def verify(self, vat_number: str, country_code: str) -> VerificationResult:
        country_code = country_code.upper()
        if not self.is_available():
            raise self._unavailable(
                ConfigurationError("API key not configured", api_source=self.get_provider_name()),
                vat_number,
                country_code,
            )

        params = {
            "access_key": self._api_key,
            "vat_number": f"{country_code}{vat_number}",
        }
        try:
            response = await self.client.get(f"{self._base_url}/validate", params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise self._unavailable(exc, vat_number, country_code) from exc

        data = self._json_body(response)
        if not isinstance(data, dict):
            cause = self._response_error("Invalid response format")
            raise self._unavailable(cause, vat_number, country_code)

        if data.get("error"):
            error = data["error"]
            info = (error.get("info") or error.get("type")) if isinstance(error, dict) else str(error)
            cause = self._response_error(info or "API error")
            raise self._unavailable(cause, vat_number, country_code)

        return self._build_result(
            vat_number,
            country_code,
            valid=data.get("valid") is True,
            name=clean_text(data.get("company_name")),
            address=clean_text(data.get("company_address")),
            request_date=None,
            # vatlayer echoes the number without its prefix in "vat_number".
            vat_number=data.get("vat_number") or vat_number,
            country_code=data.get("country_code") or country_code,
        )

    def get_provider_name(self) -> str:
        return "VATLAYER"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def is_free(self) -> bool:
        return False
