"""Business-logic services.

- **provider_manager** -- ordered registry of VAT providers with fallback.
- **verification_service** -- fast cache, durable store and provider chain
  combined behind a single ``verify_vat_number`` call.
"""

from vatcheck.services.provider_manager import DEFAULT_PROVIDER_ORDER, VatProviderManager
from vatcheck.services.verification_service import (
    CacheConfig,
    VatVerificationService,
    cache_key,
)

__all__ = [
    "DEFAULT_PROVIDER_ORDER",
    "CacheConfig",
    "VatProviderManager",
    "VatVerificationService",
    "cache_key",
]
