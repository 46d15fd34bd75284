"""Pydantic data models for vatcheck.

Every model is frozen; see :mod:`vatcheck.models.verification` for the
lifecycle from query to service response.
"""

from vatcheck.models.verification import (
    CachedEntry,
    CacheStatus,
    PersistedRecord,
    ServiceResponse,
    VerificationQuery,
    VerificationResult,
)

__all__ = [
    "CacheStatus",
    "CachedEntry",
    "PersistedRecord",
    "ServiceResponse",
    "VerificationQuery",
    "VerificationResult",
]
