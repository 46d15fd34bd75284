"""Cache-and-persist orchestration around the provider fallback chain.

Lookup order for every request:

    1. Fast cache (in-memory by default), keyed by an md5 of the VAT code.
    2. Durable store, one record per ``(vat_code, country_code)``.
    3. The registries, through :class:`VatProviderManager`.

A fresh durable record is written back into the fast cache; a registry
answer is written into both.  Both layers share a single TTL, read from a
mutable :class:`CacheConfig` on every call so it can be changed at runtime.

Cache and store trouble never fails a verification that otherwise succeeded:
read errors count as misses and write errors are logged and dropped.
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from vatcheck.interfaces.cache_provider import ICacheProvider
from vatcheck.interfaces.verification_store import IVerificationStore
from vatcheck.models.verification import (
    CachedEntry,
    CacheStatus,
    PersistedRecord,
    ServiceResponse,
    VerificationQuery,
    VerificationResult,
)
from vatcheck.services.provider_manager import VatProviderManager
from vatcheck.utils.errors import ApiUnavailableError
from vatcheck.utils.logging import get_logger

CACHE_KEY_PREFIX = "vatcheck:vat:"
DEFAULT_CACHE_TTL = 86400


@dataclass
class CacheConfig:
    """Runtime cache settings shared by the fast cache and the durable store."""

    enabled: bool = True
    ttl_seconds: int = DEFAULT_CACHE_TTL


def cache_key(vat_code: str) -> str:
    """Fast-cache key for a full VAT code such as ``"ESB12345678"``."""
    return CACHE_KEY_PREFIX + hashlib.md5(vat_code.encode("utf-8")).hexdigest()  # noqa: S324


class VatVerificationService:
    """Verify VAT numbers with caching, persistence and provider fallback.

    Parameters
    ----------
    provider_manager:
        The fallback chain used when neither cache layer can answer.
    cache:
        Fast key-value cache.  ``None`` disables the fast layer only.
    store:
        Durable store.  ``None`` disables persistence only.
    cache_config:
        Shared TTL and on/off switch.  The instance is kept, not copied, so
        mutations by the owner are seen on the next call.
    log_verifications:
        Emit one ``vat_verified`` info event per answered request.
    clock:
        Returns the current UNIX time; replaceable in tests.
    """

    def __init__(
        self,
        provider_manager: VatProviderManager,
        cache: ICacheProvider | None = None,
        store: IVerificationStore | None = None,
        cache_config: CacheConfig | None = None,
        log_verifications: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._provider_manager = provider_manager
        self._cache = cache
        self._store = store
        self._cache_config = cache_config if cache_config is not None else CacheConfig()
        self._log_verifications = log_verifications
        self._clock = clock
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Runtime configuration
    # ------------------------------------------------------------------

    @property
    def provider_manager(self) -> VatProviderManager:
        return self._provider_manager

    @property
    def store(self) -> IVerificationStore | None:
        return self._store

    @property
    def cache_config(self) -> CacheConfig:
        return self._cache_config

    @property
    def cache_ttl(self) -> int:
        return self._cache_config.ttl_seconds

    @cache_ttl.setter
    def cache_ttl(self, value: int) -> None:
        self._cache_config.ttl_seconds = value

    @property
    def cache_enabled(self) -> bool:
        return self._cache_config.enabled

    @cache_enabled.setter
    def cache_enabled(self, value: bool) -> None:
        self._cache_config.enabled = value

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def verify_vat_number(self, vat_number: str, country_code: str) -> ServiceResponse:
        """Verify *vat_number* in *country_code*.

        Parameters
        ----------
        vat_number:
            VAT number without the country prefix.  Whitespace and case are
            normalized.
        country_code:
            ISO 3166-1 alpha-2 code, normalized the same way.

        Returns
        -------
        ServiceResponse
            With ``cache_status`` ``cached`` when either cache layer
            answered, ``refreshed`` when a stale durable record was
            re-verified, and ``fresh`` otherwise.

        Raises
        ------
        ApiUnavailableError
            When every provider failed.  Nothing is cached in that case.
        """
        query = VerificationQuery.normalized(vat_number, country_code)

        if not self._cache_config.enabled:
            result = await self._call_providers(query)
            return self._respond(query, result, CacheStatus.FRESH)

        ttl = self._cache_config.ttl_seconds
        key = cache_key(query.vat_code)

        entry = await self._read_cache(key, query)
        if entry is not None and not entry.is_stale(ttl, now=int(self._clock())):
            self._logger.debug("verification_cache_hit", vat_code=query.vat_code, cached_at=entry.cached_at)
            return self._respond(query, entry.to_result(), CacheStatus.CACHED, entry.raw_response_data)

        record = await self._read_store(query)
        if record is not None and not record.is_expired(ttl, now=self._now()):
            self._logger.debug("verification_store_hit", vat_code=query.vat_code)
            result = record.to_result(query)
            raw = record.response_data or result.model_dump()
            await self._write_cache(key, query, result, raw)
            return self._respond(query, result, CacheStatus.CACHED, raw)

        result = await self._call_providers(query)
        await self._write_store(query, result)
        await self._write_cache(key, query, result, result.model_dump())

        status = CacheStatus.REFRESHED if record is not None else CacheStatus.FRESH
        return self._respond(query, result, status)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)  # noqa: UP017

    async def _call_providers(self, query: VerificationQuery) -> VerificationResult:
        try:
            return await self._provider_manager.verify(query.vat_number, query.country_code)
        except ApiUnavailableError as exc:
            self._logger.error(
                "vat_verification_failed",
                vat_code=query.vat_code,
                api_source=exc.api_source,
                error=exc.detail,
            )
            raise

    async def _read_cache(self, key: str, query: VerificationQuery) -> CachedEntry | None:
        if self._cache is None:
            return None
        try:
            payload = await self._cache.get(key)
            if payload is None:
                return None
            if isinstance(payload, CachedEntry):
                return payload
            return CachedEntry.model_validate(payload)
        except Exception as exc:
            self._logger.warning("verification_cache_read_failed", vat_code=query.vat_code, error=str(exc))
            return None

    async def _write_cache(
        self,
        key: str,
        query: VerificationQuery,
        result: VerificationResult,
        raw: dict[str, Any],
    ) -> None:
        if self._cache is None:
            return
        entry = CachedEntry.from_result(result, raw_response_data=raw, cached_at=int(self._clock()))
        try:
            await self._cache.set(key, entry.model_dump(), ttl=self._cache_config.ttl_seconds)
        except Exception as exc:
            self._logger.warning("verification_cache_write_failed", vat_code=query.vat_code, error=str(exc))

    async def _read_store(self, query: VerificationQuery) -> PersistedRecord | None:
        if self._store is None:
            return None
        try:
            return await self._store.find_by_vat_code_and_country(query.vat_code, query.country_code)
        except Exception as exc:
            self._logger.warning("verification_store_read_failed", vat_code=query.vat_code, error=str(exc))
            return None

    async def _write_store(self, query: VerificationQuery, result: VerificationResult) -> None:
        if self._store is None:
            return
        record = PersistedRecord.from_result(query, result, verified_at=self._now())
        try:
            await self._store.save(record)
        except Exception as exc:
            self._logger.warning("verification_persist_failed", vat_code=query.vat_code, error=str(exc))

    def _respond(
        self,
        query: VerificationQuery,
        result: VerificationResult,
        status: CacheStatus,
        raw: dict[str, Any] | None = None,
    ) -> ServiceResponse:
        if self._log_verifications:
            self._logger.info(
                "vat_verified",
                vat_code=query.vat_code,
                valid=result.valid,
                api_source=result.api_source,
                cache_status=status.value,
            )
        return ServiceResponse.from_result(query, result, status, raw)
