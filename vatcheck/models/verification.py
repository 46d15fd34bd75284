"""VAT verification data models.

Defines the Pydantic v2 models that travel through the verification flow:

    1. A caller asks about a VAT number            -> VerificationQuery
    2. A registry answers through its adapter      -> VerificationResult
    3. The answer is kept in the fast cache         -> CachedEntry
       and in the durable store                     -> PersistedRecord
    4. The service replies to the caller            -> ServiceResponse

All models are frozen; "updating" a cached or persisted verification means
building a new instance and overwriting the old one under the same key.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from vatcheck.utils.vat_normalizer import normalize_code


class CacheStatus(str, Enum):
    """Why a response was (or was not) served without calling a registry."""

    FRESH = "fresh"  # first-ever verification for this key
    CACHED = "cached"  # served from the fast cache or a fresh durable record
    REFRESHED = "refreshed"  # a stale durable record existed and was re-verified


class VerificationQuery(BaseModel):
    """A normalized request: VAT number without prefix plus ISO alpha-2 country."""

    model_config = ConfigDict(frozen=True)

    vat_number: str
    country_code: str

    @classmethod
    def normalized(cls, vat_number: str, country_code: str) -> VerificationQuery:
        """Build a query from raw user input (trimmed, upper-cased)."""
        return cls(
            vat_number=normalize_code(vat_number),
            country_code=normalize_code(country_code),
        )

    @property
    def vat_code(self) -> str:
        """Country code and VAT number concatenated, e.g. ``"ESB12345678"``."""
        return f"{self.country_code}{self.vat_number}"


class VerificationResult(BaseModel):
    """The normalized answer every provider must produce.

    ``valid`` is strictly boolean and ``api_source`` is always populated,
    whichever registry produced the result.
    """

    model_config = ConfigDict(frozen=True)

    valid: bool = Field(strict=True)
    name: str | None = None
    address: str | None = None
    # ISO-8601 date as supplied by the registry; most registries omit it.
    request_date: str | None = None
    vat_number: str
    country_code: str
    api_source: str = Field(min_length=1)


class CachedEntry(VerificationResult):
    """A verification result as stored in the fast cache."""

    cached_at: int
    raw_response_data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(
        cls,
        result: VerificationResult,
        raw_response_data: dict[str, Any] | None = None,
        cached_at: int | None = None,
    ) -> CachedEntry:
        return cls(
            **result.model_dump(),
            cached_at=int(time.time()) if cached_at is None else cached_at,
            raw_response_data=raw_response_data or result.model_dump(),
        )

    def to_result(self) -> VerificationResult:
        return VerificationResult(
            **self.model_dump(exclude={"cached_at", "raw_response_data"})
        )

    def is_stale(self, ttl_seconds: int, now: int | None = None) -> bool:
        """Return ``True`` once more than *ttl_seconds* have passed since caching."""
        current = int(time.time()) if now is None else now
        return current - self.cached_at > ttl_seconds


class PersistedRecord(BaseModel):
    """One durable verification per ``(vat_code, country_code)``.

    Expiry is derived from ``verified_at`` and a TTL supplied by the caller;
    it is never stored as a flag.
    """

    model_config = ConfigDict(frozen=True)

    vat_code: str
    country_code: str
    is_valid: bool
    company_name: str | None = None
    company_address: str | None = None
    api_source: str = "UNKNOWN"
    verified_at: datetime | None = None
    response_data: dict[str, Any] | None = None

    @classmethod
    def from_result(
        cls,
        query: VerificationQuery,
        result: VerificationResult,
        verified_at: datetime | None = None,
    ) -> PersistedRecord:
        return cls(
            vat_code=query.vat_code,
            country_code=query.country_code,
            is_valid=result.valid,
            company_name=result.name,
            company_address=result.address,
            api_source=result.api_source,
            verified_at=verified_at or datetime.now(tz=timezone.utc),  # noqa: UP017
            response_data=result.model_dump(),
        )

    def is_expired(self, ttl_seconds: int, now: datetime | None = None) -> bool:
        """Return ``True`` when the record is older than *ttl_seconds*."""
        if self.verified_at is None:
            return True
        verified_at = self.verified_at
        if verified_at.tzinfo is None:
            verified_at = verified_at.replace(tzinfo=timezone.utc)  # noqa: UP017
        current = now or datetime.now(tz=timezone.utc)  # noqa: UP017
        return current > verified_at + timedelta(seconds=ttl_seconds)

    def to_result(self, query: VerificationQuery) -> VerificationResult:
        """Rebuild the provider-shaped result this record was created from."""
        return VerificationResult(
            valid=self.is_valid,
            name=self.company_name,
            address=self.company_address,
            request_date=self.verified_at.isoformat() if self.verified_at else None,
            vat_number=query.vat_number,
            country_code=query.country_code,
            api_source=self.api_source or "UNKNOWN",
        )


class ServiceResponse(BaseModel):
    """What :class:`~vatcheck.services.verification_service.VatVerificationService` returns."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    vat_code: str
    country_code: str
    company_name: str | None = None
    company_address: str | None = None
    api_source: str
    cache_status: CacheStatus
    request_date: str | None = None
    raw_response_data: dict[str, Any] = Field(default_factory=dict)

    # Kept for callers written against the old boolean flag.
    @computed_field  # type: ignore[prop-decorator]
    @property
    def cached(self) -> bool:
        return self.cache_status is CacheStatus.CACHED

    @classmethod
    def from_result(
        cls,
        query: VerificationQuery,
        result: VerificationResult,
        cache_status: CacheStatus,
        raw_response_data: dict[str, Any] | None = None,
    ) -> ServiceResponse:
        return cls(
            is_valid=result.valid,
            vat_code=query.vat_code,
            country_code=query.country_code,
            company_name=result.name,
            company_address=result.address,
            api_source=result.api_source,
            cache_status=cache_status,
            request_date=result.request_date,
            raw_response_data=raw_response_data or result.model_dump(),
        )
