"""VIES SOAP provider (official European Commission service, free).

Calls the ``checkVat`` operation of the VIES web service.  VIES reports
a malformed number as the ``INVALID_INPUT`` fault, which is an answer
("this VAT is invalid") rather than an outage; every other fault
(``MS_UNAVAILABLE``, ``TIMEOUT``, ``SERVER_BUSY``...) means the member
state backend could not be reached and the manager should fall back.
"""

from __future__ import annotations

from xml.etree.ElementTree import ParseError

import httpx

from vatcheck.models.verification import VerificationResult
from vatcheck.providers.vat.base import DEFAULT_TIMEOUT, HttpVatProvider
from vatcheck.utils.soap import (
    SOAP_HEADERS,
    build_envelope,
    element,
    extract_fault,
    find_text,
    parse_xml,
)
from vatcheck.utils.vat_normalizer import clean_text

_LIVE_URL = "https://ec.europa.eu/taxation_customs/vies/services/checkVatService"
_TEST_URL = "https://ec.europa.eu/taxation_customs/vies/services/checkVatTestService"
_TYPES_NS = "urn:ec.europa.eu:taxud:vies:services:checkVat:types"

# Faults that classify the VAT number itself rather than the service.
_INVALID_VAT_FAULTS = frozenset({"INVALID_INPUT"})


class ViesSoapProvider(HttpVatProvider):
    """VAT verification against the official VIES SOAP endpoint.

    Parameters
    ----------
    test_mode:
        Use the VIES test service, which answers deterministically for the
        documented test numbers.
    """

    def __init__(
        self,
        test_mode: bool = False,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self._test_mode = test_mode

    @property
    def endpoint(self) -> str:
        return _TEST_URL if self._test_mode else _LIVE_URL

    def _build_request(self, vat_number: str, country_code: str) -> str:
        body = (
            "<urn:checkVat>"
            + element("urn:countryCode", country_code)
            + element("urn:vatNumber", vat_number)
            + "</urn:checkVat>"
        )
        return build_envelope(body, {"urn": _TYPES_NS})

    async def verify(self, vat_number: str, country_code: str) -> VerificationResult:
        country_code = country_code.upper()
        try:
            response = await self.client.post(
                self.endpoint,
                content=self._build_request(vat_number, country_code),
                headers=SOAP_HEADERS,
            )
        except httpx.HTTPError as exc:
            raise self._unavailable(exc, vat_number, country_code) from exc

        # VIES reports faults as HTTP 500 with a SOAP body, so parse first.
        try:
            root = parse_xml(response.content)
        except ParseError as exc:
            raise self._unavailable(exc, vat_number, country_code) from exc

        fault = extract_fault(root)
        if fault is not None:
            if fault.message.strip().upper() in _INVALID_VAT_FAULTS:
                return self._build_result(
                    vat_number,
                    country_code,
                    valid=False,
                    vat_number=vat_number,
                    country_code=country_code,
                )
            cause = self._response_error(f"SOAP fault {fault.code}: {fault.message}")
            raise self._unavailable(cause, vat_number, country_code)

        if response.status_code >= 400:
            cause = self._response_error(f"HTTP {response.status_code} without SOAP fault")
            raise self._unavailable(cause, vat_number, country_code)

        valid_text = find_text(root, "valid")
        if valid_text is None:
            cause = self._response_error("Invalid response format: missing <valid>")
            raise self._unavailable(cause, vat_number, country_code)

        return self._build_result(
            vat_number,
            country_code,
            valid=valid_text.lower() == "true",
            name=clean_text(find_text(root, "name")),
            address=clean_text(find_text(root, "address")),
            request_date=find_text(root, "requestDate") or None,
            vat_number=find_text(root, "vatNumber") or vat_number,
            country_code=find_text(root, "countryCode") or country_code,
        )

    def get_provider_name(self) -> str:
        return "VIES_SOAP"

    def is_available(self) -> bool:
        """The envelope is built in-process; no extra runtime capability is needed."""
        return True

    def is_free(self) -> bool:
        return True
