"""Custom exception hierarchy for vatcheck.

All application exceptions inherit from :class:`VatVerificationError`, which
carries a machine-readable ``error_code`` and an optional ``api_source`` so
error handlers can identify which registry (e.g. "VIES_SOAP", "AEAT")
caused the failure.

    VatVerificationError   (base -- catch-all for any verification error)
    +-- ApiUnavailableError  (one registry could not produce a result)
    +-- ProviderResponseError (a registry answered with an error or junk)
    +-- ConfigurationError   (startup / invalid settings)

``ApiUnavailableError`` is the signal the provider manager uses to fall
back to the next provider in the configured order.  It is only fatal once
every provider has been tried.
"""

from __future__ import annotations


class VatVerificationError(Exception):
    """Base exception for all VAT verification errors.

    Every subclass carries a human-readable ``message``, an ``error_code``
    and an optional ``api_source`` identifying the registry that triggered
    the error.  ``__str__`` prefixes the source in brackets for log output,
    e.g. ``[VIES_REST] API 'VIES_REST' is currently unavailable``.
    """

    def __init__(
        self,
        message: str = "VAT verification failed",
        error_code: str = "UNKNOWN",
        api_source: str | None = None,
    ) -> None:
        self._message = message
        self._error_code = error_code
        self._api_source = api_source
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def error_code(self) -> str:
        return self._error_code

    @property
    def api_source(self) -> str | None:
        return self._api_source

    def __str__(self) -> str:
        if self._api_source:
            return f"[{self._api_source}] {self._message}"
        return self._message


class ApiUnavailableError(VatVerificationError):
    """Raised when a single registry cannot produce a verification result.

    Covers network failures, malformed payloads, authentication problems
    and backend-side operational errors.  A well-formed "this VAT number is
    invalid" answer is *not* an error; providers return it as a result.

    Parameters
    ----------
    api_source:
        Identifier of the provider that failed (``"UNKNOWN"`` when no
        provider could be attempted at all).
    cause:
        The lower-level exception.  Providers also chain it with
        ``raise ... from cause`` so tracebacks keep the full history.
    """

    status_code = 503

    def __init__(self, api_source: str, cause: BaseException | None = None) -> None:
        super().__init__(
            message=f"API '{api_source}' is currently unavailable",
            error_code="API_UNAVAILABLE",
            api_source=api_source,
        )
        self._cause = cause

    @property
    def cause(self) -> BaseException | None:
        return self._cause

    @property
    def detail(self) -> str:
        """Best human-readable reason: the cause's message when there is one."""
        if self._cause is not None and str(self._cause):
            return str(self._cause)
        return self.message


class ProviderResponseError(VatVerificationError):
    """A registry answered, but with an error or a payload we cannot use.

    Used as the ``cause`` of an :class:`ApiUnavailableError` when there is
    no lower-level exception to chain (SOAP faults, ``{"error": ...}``
    bodies, missing fields).
    """

    def __init__(self, message: str = "Unexpected provider response", api_source: str | None = None) -> None:
        super().__init__(message=message, error_code="PROVIDER_ERROR", api_source=api_source)


class ConfigurationError(VatVerificationError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        api_source: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            api_source=api_source,
        )
