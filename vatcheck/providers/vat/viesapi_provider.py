"""viesapi.eu provider (paid; free test plan).

viesapi.eu answers errors with ``{"error": {"code": N, "description": ...}}``
and a matching HTTP status.  Two codes describe the VAT number itself and
are turned into ``valid=False`` results:

* ``22``  -- the number is not registered in VIES;
* ``205`` -- the number has an invalid format.

Every other code (``35`` no access, ``106`` wrong account type, quota
errors...) is an account or service problem and is raised.
"""

from __future__ import annotations

from typing import Any

import httpx

from vatcheck.models.verification import VerificationResult
from vatcheck.providers.vat.base import DEFAULT_TIMEOUT, HttpVatProvider
from vatcheck.utils.errors import ConfigurationError
from vatcheck.utils.vat_normalizer import clean_text

_BASE_URL = "https://viesapi.eu/api"
_INVALID_VAT_CODES = frozenset({22, 205})


class ViesApiProvider(HttpVatProvider):
    """VAT verification via viesapi.eu.

    Parameters
    ----------
    api_key:
        Account key; also part of the request path.  Required.
    api_secret:
        Account secret.  When set, sent with the key as HTTP basic auth.
    ip:
        Optional client IP forwarded as ``X-Forwarded-For`` / ``X-Real-IP``
        for accounts whitelisted by IP.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        ip: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = _BASE_URL,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self._api_key = api_key or None
        self._api_secret = api_secret or None
        self._ip = ip or None
        self._base_url = base_url.rstrip("/")

    def _request_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if self._ip:
            options["headers"] = {"X-Forwarded-For": self._ip, "X-Real-IP": self._ip}
        if self._api_secret:
            options["auth"] = httpx.BasicAuth(self._api_key or "", self._api_secret)
        return options

    async def verify(self, vat_number: str, country_code: str) -> VerificationResult:
        country_code = country_code.upper()
        if not self.is_available():
            raise self._unavailable(
                ConfigurationError("API key not configured", api_source=self.get_provider_name()),
                vat_number,
                country_code,
            )

        url = f"{self._base_url}/check/{self._api_key}/{country_code}/{vat_number}"
        try:
            response = await self.client.get(url, **self._request_options())
        except httpx.HTTPError as exc:
            raise self._unavailable(exc, vat_number, country_code) from exc

        data = self._json_body(response)
        error = data.get("error") if isinstance(data, dict) else None

        if isinstance(error, dict):
            code = error.get("code")
            if code in _INVALID_VAT_CODES:
                return self._build_result(
                    vat_number,
                    country_code,
                    valid=False,
                    vat_number=vat_number,
                    country_code=country_code,
                )
            cause = self._response_error(f"Error {code}: {error.get('description') or 'API error'}")
            raise self._unavailable(cause, vat_number, country_code)

        if response.status_code >= 400:
            cause = self._response_error(f"HTTP {response.status_code}")
            raise self._unavailable(cause, vat_number, country_code)

        if not isinstance(data, dict):
            cause = self._response_error("Invalid response format")
            raise self._unavailable(cause, vat_number, country_code)

        return self._build_result(
            vat_number,
            country_code,
            valid=data.get("valid") is True,
            name=clean_text(data.get("traderName") or data.get("name")),
            address=clean_text(data.get("traderAddress") or data.get("address")),
            request_date=data.get("date") or data.get("requestDate"),
            vat_number=data.get("vatNumber") or vat_number,
            country_code=data.get("countryCode") or country_code,
        )

    def get_provider_name(self) -> str:
        return "VIESAPI"

    def is_available(self) -> bool:
        return bool(self._api_key)

    def is_free(self) -> bool:
        return False
