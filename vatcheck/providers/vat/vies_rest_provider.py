"""VIES REST provider (unofficial JSON front-end of VIES, free).

The REST endpoint is undocumented but stable.  It always answers with an
``isValid`` flag, and uses ``userError`` to say *why*: ``INVALID`` /
``INVALID_INPUT`` describe the number, while values such as
``MS_UNAVAILABLE`` mean the member-state registry was not consulted at all
and ``isValid: false`` must not be trusted.
"""

from __future__ import annotations

import httpx

from vatcheck.models.verification import VerificationResult
from vatcheck.providers.vat.base import DEFAULT_TIMEOUT, HttpVatProvider
from vatcheck.utils.vat_normalizer import clean_text

_BASE_URL = "https://ec.europa.eu/taxation_customs/vies/rest-api"

_OPERATIONAL_ERRORS = frozenset(
    {
        "MS_UNAVAILABLE",
        "MS_MAX_CONCURRENT_REQ",
        "GLOBAL_MAX_CONCURRENT_REQ",
        "SERVICE_UNAVAILABLE",
        "SERVER_BUSY",
        "TIMEOUT",
        "IP_BLOCKED",
        "VAT_BLOCKED",
    }
)


class ViesRestProvider(HttpVatProvider):
    """VAT verification against the VIES REST API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = _BASE_URL,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self._base_url = base_url.rstrip("/")

    async def verify(self, vat_number: str, country_code: str) -> VerificationResult:
        country_code = country_code.upper()
        url = f"{self._base_url}/ms/{country_code}/vat/{vat_number}"

        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise self._unavailable(exc, vat_number, country_code) from exc

        data = self._json_body(response)
        if not isinstance(data, dict) or "isValid" not in data:
            cause = self._response_error("Invalid response format")
            raise self._unavailable(cause, vat_number, country_code)

        user_error = str(data.get("userError") or "").upper()
        if user_error in _OPERATIONAL_ERRORS:
            cause = self._response_error(f"VIES reported {user_error}")
            raise self._unavailable(cause, vat_number, country_code)

        return self._build_result(
            vat_number,
            country_code,
            valid=data.get("isValid") is True,
            name=clean_text(data.get("name")),
            address=clean_text(data.get("address")),
            request_date=data.get("requestDate"),
            vat_number=data.get("vatNumber") or vat_number,
            country_code=data.get("countryCode") or country_code,
        )

    def get_provider_name(self) -> str:
        return "VIES_REST"

    def is_available(self) -> bool:
        return True

    def is_free(self) -> bool:
        return True
