"""Utility modules for vatcheck.

- **errors** -- Exception hierarchy rooted at VatVerificationError;
  ApiUnavailableError drives provider fallback.
- **logging** -- structlog setup writing to stderr, console output in
  development and JSON in production.
- **vat_normalizer** -- VAT/country code normalization and cleanup of the
  name/address fields registries send back.
- **soap** (not re-exported here) -- envelope building and namespace-agnostic
  XML lookups shared by the VIES SOAP and AEAT adapters.
"""

from vatcheck.utils.errors import (
    ApiUnavailableError,
    ConfigurationError,
    ProviderResponseError,
    VatVerificationError,
)
from vatcheck.utils.logging import configure_from_settings, configure_logging, get_logger
from vatcheck.utils.vat_normalizer import (
    clean_text,
    normalize_code,
    split_vat_code,
    strip_country_prefix,
    unwrap_indexed,
)

__all__ = [
    "ApiUnavailableError",
    "ConfigurationError",
    "ProviderResponseError",
    "VatVerificationError",
    "clean_text",
    "configure_from_settings",
    "configure_logging",
    "get_logger",
    "normalize_code",
    "split_vat_code",
    "strip_country_prefix",
    "unwrap_indexed",
]
