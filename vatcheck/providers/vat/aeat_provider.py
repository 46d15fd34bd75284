"""AEAT (Spanish tax agency) NIF verification provider.

Free, official, and restricted to Spanish numbers.  The ``VNifV2`` service
requires a client certificate issued by a Spanish CA, either as a PEM
certificate plus private key or as a single file holding both: a PKCS#12
store (``.p12``/``.pfx``, the format AEAT certificates are usually issued
in) or a PEM bundle.
The service does not return addresses.
"""

from __future__ import annotations

import os
import ssl
import tempfile
from xml.etree.ElementTree import ParseError

import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from vatcheck.models.verification import VerificationResult
from vatcheck.providers.vat.base import DEFAULT_TIMEOUT, HttpVatProvider, build_http_client
from vatcheck.utils.errors import ConfigurationError
from vatcheck.utils.soap import (
    SOAP_HEADERS,
    build_envelope,
    element,
    extract_fault,
    find_all,
    find_text,
    parse_xml,
)
from vatcheck.utils.vat_normalizer import clean_text

DEFAULT_ENDPOINT = "https://www1.agenciatributaria.gob.es/wlpl/BURT-JDIT/ws/VNifV2SOAP"
_REQUEST_NS = (
    "http://www2.agenciatributaria.gob.es/static_files/common/internet/dep/"
    "aplicaciones/es/aeat/burt/jdit/ws/VNifV2Ent.xsd"
)
_IDENTIFIED = "IDENTIFICADO"
_PKCS12_SUFFIXES = (".p12", ".pfx")


class AeatProvider(HttpVatProvider):
    """VAT (NIF) verification against the AEAT ``VNifV2`` SOAP service.

    Parameters
    ----------
    cert_path, key_path:
        PEM client certificate and its private key.
    combined_cert_path:
        PKCS#12 store (``.p12``/``.pfx``) or PEM bundle holding both
        certificate and key.  Takes precedence over the separate pair.
    endpoint:
        Service URL; defaults to the production endpoint.
    passphrase:
        Password of the private key or PKCS#12 store, if it is encrypted.
    """

    def __init__(
        self,
        cert_path: str | None = None,
        key_path: str | None = None,
        combined_cert_path: str | None = None,
        endpoint: str | None = None,
        passphrase: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self._cert_path = cert_path or None
        self._key_path = key_path or None
        self._combined_cert_path = combined_cert_path or None
        self._endpoint = endpoint or DEFAULT_ENDPOINT
        self._passphrase = passphrase or None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _has_combined_cert(self) -> bool:
        return bool(self._combined_cert_path) and os.path.isfile(self._combined_cert_path)

    def _has_cert_pair(self) -> bool:
        return (
            bool(self._cert_path)
            and bool(self._key_path)
            and os.path.isfile(self._cert_path)
            and os.path.isfile(self._key_path)
        )

    def _ssl_context(self) -> ssl.SSLContext:
        ctx = ssl.create_default_context()
        if self._has_combined_cert() and self._combined_cert_path.lower().endswith(_PKCS12_SUFFIXES):
            self._load_pkcs12(ctx, self._combined_cert_path)
        elif self._has_combined_cert():
            ctx.load_cert_chain(self._combined_cert_path, password=self._passphrase)
        else:
            ctx.load_cert_chain(self._cert_path, self._key_path, password=self._passphrase)
        return ctx

    def _load_pkcs12(self, ctx: ssl.SSLContext, path: str) -> None:
        """Load the key and certificates of a PKCS#12 store into *ctx*.

        Raises
        ------
        ConfigurationError
            If the store cannot be decrypted or lacks a key or certificate.
        """
        with open(path, "rb") as fh:
            data = fh.read()
        password = self._passphrase.encode() if self._passphrase else None
        try:
            key, cert, extra_certs = pkcs12.load_key_and_certificates(data, password)
        except ValueError as exc:
            raise ConfigurationError(
                f"Cannot read PKCS#12 certificate: {exc}", api_source=self.get_provider_name()
            ) from exc
        if key is None or cert is None:
            raise ConfigurationError(
                "PKCS#12 certificate holds no private key or certificate",
                api_source=self.get_provider_name(),
            )

        pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        for certificate in [cert, *(extra_certs or [])]:
            pem += certificate.public_bytes(serialization.Encoding.PEM)

        # load_cert_chain only reads from disk; the bundle lives in a private
        # temporary directory for the duration of the call.
        with tempfile.TemporaryDirectory() as tmp_dir:
            bundle = os.path.join(tmp_dir, "client.pem")
            with open(bundle, "wb") as fh:
                fh.write(pem)
            ctx.load_cert_chain(bundle)

    def _create_client(self) -> httpx.AsyncClient:
        return build_http_client(self._timeout, verify=self._ssl_context())

    def _build_request(self, vat_number: str, name: str = "") -> str:
        body = (
            "<vnif:VNifV2Ent><vnif:Contribuyente>"
            + element("vnif:Nif", vat_number)
            + element("vnif:Nombre", name)
            + "</vnif:Contribuyente></vnif:VNifV2Ent>"
        )
        return build_envelope(body, {"vnif": _REQUEST_NS})

    async def verify(self, vat_number: str, country_code: str) -> VerificationResult:
        country_code = country_code.upper()
        if country_code != "ES":
            cause = ConfigurationError(
                "AEAT only supports Spanish NIF", api_source=self.get_provider_name()
            )
            raise self._unavailable(cause, vat_number, country_code)

        if not self.is_available():
            cause = ConfigurationError(
                "AEAT certificate not configured", api_source=self.get_provider_name()
            )
            raise self._unavailable(cause, vat_number, country_code)

        try:
            response = await self.client.post(
                self._endpoint,
                content=self._build_request(vat_number),
                headers=SOAP_HEADERS,
            )
        except (httpx.HTTPError, ssl.SSLError, OSError, ConfigurationError) as exc:
            raise self._unavailable(exc, vat_number, country_code) from exc

        try:
            root = parse_xml(response.content)
        except ParseError as exc:
            raise self._unavailable(exc, vat_number, country_code) from exc

        fault = extract_fault(root)
        if fault is not None:
            cause = self._response_error(f"SOAP fault {fault.code}: {fault.message}")
            raise self._unavailable(cause, vat_number, country_code)

        if response.status_code >= 400:
            cause = self._response_error(f"HTTP {response.status_code} without SOAP fault")
            raise self._unavailable(cause, vat_number, country_code)

        taxpayers = find_all(root, "Contribuyente")
        if not taxpayers:
            cause = self._response_error("Invalid response format: missing <Contribuyente>")
            raise self._unavailable(cause, vat_number, country_code)

        # Only one NIF is sent per request; the first entry is its answer.
        taxpayer = taxpayers[0]
        return self._build_result(
            vat_number,
            country_code,
            valid=find_text(taxpayer, "Resultado") == _IDENTIFIED,
            name=clean_text(find_text(taxpayer, "Nombre")),
            address=None,
            request_date=None,
            vat_number=find_text(taxpayer, "Nif") or vat_number,
            country_code="ES",
        )

    def get_provider_name(self) -> str:
        return "AEAT"

    def is_available(self) -> bool:
        """True when a usable certificate is present on disk."""
        return self._has_combined_cert() or self._has_cert_pair()

    def is_free(self) -> bool:
        return True
