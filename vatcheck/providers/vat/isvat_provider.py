"""isvat.eu provider (free, limited to 100 queries per month).

isvat.eu proxies VIES and adds its own cache.  Its payloads need some
massaging:

* ``name`` and ``address`` arrive as single-element indexed containers
  (``{"0": "ACME LTD"}``) and are unwrapped to plain strings;
* an unknown number is a ``404`` whose JSON body still carries
  ``{"valid": false}``, which is an answer, not an outage;
* invalid input or backend trouble is a ``5xx`` with ``ReturnCode`` fields.
"""

from __future__ import annotations

import httpx

from vatcheck.models.verification import VerificationResult
from vatcheck.providers.vat.base import DEFAULT_TIMEOUT, HttpVatProvider
from vatcheck.utils.vat_normalizer import clean_text

_BASE_URL = "https://www.isvat.eu"


class IsvatProvider(HttpVatProvider):
    """VAT verification via isvat.eu.

    Parameters
    ----------
    use_live:
        Query the ``/live/`` endpoint, which bypasses isvat's own cache and
        asks VIES directly.  The default endpoint may answer from a cache
        that is up to a few days old.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        use_live: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = _BASE_URL,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self._use_live = use_live
        self._base_url = base_url.rstrip("/")

    def build_url(self, vat_number: str, country_code: str) -> str:
        prefix = "/live" if self._use_live else ""
        return f"{self._base_url}{prefix}/{country_code}/{vat_number}"

    async def verify(self, vat_number: str, country_code: str) -> VerificationResult:
        country_code = country_code.upper()
        try:
            response = await self.client.get(self.build_url(vat_number, country_code))
        except httpx.HTTPError as exc:
            raise self._unavailable(exc, vat_number, country_code) from exc

        data = self._json_body(response)

        if response.status_code == 404:
            if isinstance(data, dict) and data.get("valid") is False:
                return self._build_result(
                    vat_number,
                    country_code,
                    valid=False,
                    vat_number=vat_number,
                    country_code=country_code,
                )
            cause = self._response_error("HTTP 404 without a verification body")
            raise self._unavailable(cause, vat_number, country_code)

        if response.status_code >= 400:
            detail = ""
            if isinstance(data, dict) and data.get("ReturnText"):
                detail = f" ({data.get('ReturnCode')}: {data.get('ReturnText')})"
            cause = self._response_error(f"HTTP {response.status_code}{detail}")
            raise self._unavailable(cause, vat_number, country_code)

        if not isinstance(data, dict):
            cause = self._response_error("Invalid response format")
            raise self._unavailable(cause, vat_number, country_code)

        return self._build_result(
            vat_number,
            country_code,
            valid=data.get("valid") is True,
            name=clean_text(data.get("name")),
            address=clean_text(data.get("address")),
            request_date=None,
            vat_number=data.get("vatNumber") or vat_number,
            country_code=data.get("countryCode") or country_code,
        )

    def get_provider_name(self) -> str:
        return "ISVAT"

    def is_available(self) -> bool:
        return True

    def is_free(self) -> bool:
        return True
