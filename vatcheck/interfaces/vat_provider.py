"""Abstract base class for VAT registry providers.

Defines the contract every registry adapter (VIES SOAP/REST, AEAT, isvat,
vatlayer, viesapi) implements.  The provider manager holds adapters only
through this interface, so registries can be added, removed or reordered
without touching the fallback logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from vatcheck.models.verification import VerificationResult


class IVatProvider(ABC):
    """Contract for services that can verify a VAT number.

    The one rule every implementation must get right: a registry answer
    that says "this VAT number does not exist / is malformed" is a
    *successful* verification with ``valid=False``.  Only failures to get a
    trustworthy answer (network errors, unexpected payloads, backend
    outages, bad credentials) are raised, and they are raised as
    :class:`~vatcheck.utils.errors.ApiUnavailableError` so the manager can
    fall back to the next provider.
    """

    @abstractmethod
    async def verify(self, vat_number: str, country_code: str) -> VerificationResult:
        """Verify *vat_number* (without country prefix) for *country_code*.

        Parameters
        ----------
        vat_number:
            The VAT number without its country prefix, e.g. ``"B12345678"``.
        country_code:
            ISO-3166 alpha-2 country code, e.g. ``"ES"``.

        Returns
        -------
        VerificationResult
            The normalized answer, with ``api_source`` set to this
            provider's name.

        Raises
        ------
        vatcheck.utils.errors.ApiUnavailableError
            If the registry could not produce a trustworthy answer.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the stable identifier of this provider (e.g. ``"VIES_SOAP"``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and usable.

        This is a configuration check only (credentials present, certificate
        on disk) and must never perform network I/O.
        """

    @abstractmethod
    def is_free(self) -> bool:
        """Return ``True`` if the registry can be queried without a paid plan."""

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources owned by the provider."""
