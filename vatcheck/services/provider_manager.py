"""VAT provider registry with an ordered fallback chain.

Holds every configured registry adapter under a short key (``vies_soap``,
``isvat``...) and an ordered list of keys to try.  :meth:`VatProviderManager.verify`
walks that order and returns the first answer it gets.

Fallback rules
--------------
* Keys in the order that were never registered are skipped silently.
* Providers reporting ``is_available() == False`` are skipped without a call.
* :class:`~vatcheck.utils.errors.ApiUnavailableError` moves on to the next
  provider.  Any other exception is a bug and propagates immediately.
* ``valid=False`` is an answer.  It is returned as-is and never triggers a
  fallback.

Each provider is tried at most once per call; there is no retry or backoff.
"""

from __future__ import annotations

from vatcheck.interfaces.vat_provider import IVatProvider
from vatcheck.models.verification import VerificationResult
from vatcheck.utils.errors import ApiUnavailableError, VatVerificationError
from vatcheck.utils.logging import get_logger

DEFAULT_PROVIDER_ORDER: tuple[str, ...] = ("vies_soap", "vies_rest", "isvat")


class VatProviderManager:
    """Registry of VAT providers plus the order in which they are tried."""

    def __init__(self, provider_order: list[str] | None = None) -> None:
        self._providers: dict[str, IVatProvider] = {}
        self._order: list[str] = list(provider_order or DEFAULT_PROVIDER_ORDER)
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str, provider: IVatProvider) -> VatProviderManager:
        """Register *provider* under *name*, replacing any previous one."""
        self._providers[name] = provider
        return self

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify(self, vat_number: str, country_code: str) -> VerificationResult:
        """Verify a VAT number using the first provider that can answer.

        Parameters
        ----------
        vat_number:
            VAT number without the country prefix.
        country_code:
            ISO 3166-1 alpha-2 country code.

        Returns
        -------
        VerificationResult
            The answer of the first provider that did not fail.

        Raises
        ------
        ApiUnavailableError
            The error of the last provider tried when all of them failed,
            or one with source ``UNKNOWN`` when no provider was attempted.
        """
        last_error: ApiUnavailableError | None = None

        for key in list(self._order):
            provider = self._providers.get(key)
            if provider is None:
                continue

            if not provider.is_available():
                self._logger.debug("vat_provider_unavailable", provider=key)
                continue

            try:
                result = await provider.verify(vat_number, country_code)
            except ApiUnavailableError as exc:
                self._logger.warning(
                    "vat_provider_failed",
                    provider=key,
                    country=country_code,
                    error=exc.detail,
                )
                last_error = exc
                continue

            self._logger.info(
                "vat_provider_answered",
                provider=key,
                country=country_code,
                valid=result.valid,
            )
            return result

        if last_error is not None:
            raise last_error
        raise ApiUnavailableError("UNKNOWN", VatVerificationError("All providers failed"))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_provider(self, name: str) -> IVatProvider | None:
        return self._providers.get(name)

    def get_providers(self) -> dict[str, IVatProvider]:
        """Return a copy of the registry, in registration order."""
        return dict(self._providers)

    def get_free_providers(self) -> dict[str, IVatProvider]:
        return {name: p for name, p in self._providers.items() if p.is_free()}

    def get_paid_providers(self) -> dict[str, IVatProvider]:
        return {name: p for name, p in self._providers.items() if not p.is_free()}

    def get_provider_order(self) -> list[str]:
        return list(self._order)

    def set_provider_order(self, order: list[str]) -> VatProviderManager:
        """Replace the fallback order; applies from the next :meth:`verify` call."""
        self._order = list(order)
        return self

    def get_available_providers(self) -> list[str]:
        """Return the names of registered providers that are currently available."""
        return [name for name, p in self._providers.items() if p.is_available()]

    async def aclose(self) -> None:
        """Close the HTTP clients owned by the registered providers."""
        for provider in self._providers.values():
            await provider.aclose()
