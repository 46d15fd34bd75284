"""Unit tests for VatVerificationService (fast cache -> store -> providers)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from vatcheck.interfaces.cache_provider import ICacheProvider
from vatcheck.interfaces.verification_store import IVerificationStore
from vatcheck.models.verification import CachedEntry, CacheStatus, VerificationResult
from vatcheck.providers.cache.memory_cache import MemoryCacheProvider
from vatcheck.providers.store.sqlite_verification_store import SQLiteVerificationStore
from vatcheck.providers.vat.isvat_provider import IsvatProvider
from vatcheck.services.provider_manager import VatProviderManager
from vatcheck.services.verification_service import CacheConfig, VatVerificationService, cache_key
from vatcheck.utils.errors import ApiUnavailableError

_DAY = 86400
# 2025-11-15T10:00:00Z
_NOW = 1763200800.0


class _Clock:
    """Settable replacement for ``time.time``."""

    def __init__(self, now: float = _NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _manager(result: VerificationResult | None = None, error: BaseException | None = None) -> MagicMock:
    manager = MagicMock(spec=VatProviderManager)
    manager.verify = AsyncMock(return_value=result, side_effect=error)
    return manager


def _mock_store(record=None) -> MagicMock:
    store = MagicMock(spec=IVerificationStore)
    store.find_by_vat_code_and_country = AsyncMock(return_value=record)
    store.save = AsyncMock(side_effect=lambda rec: rec)
    return store


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def cache() -> MemoryCacheProvider:
    return MemoryCacheProvider(max_size=100, ttl=_DAY)


# ======================================================================
# Cache keys
# ======================================================================


class TestCacheKey:
    def test_key_is_prefixed_md5(self) -> None:
        # md5("ESB12345678")
        key = cache_key("ESB12345678")
        assert key.startswith("vatcheck:vat:")
        assert len(key) == len("vatcheck:vat:") + 32

    def test_key_is_deterministic(self) -> None:
        assert cache_key("ESB12345678") == cache_key("ESB12345678")
        assert cache_key("ESB12345678") != cache_key("ESB12345679")


# ======================================================================
# Lookup order
# ======================================================================


class TestVerifyVatNumber:
    @pytest.mark.asyncio
    async def test_fresh_then_cached(self, sample_result, cache, clock) -> None:
        manager = _manager(sample_result)
        store = _mock_store()
        service = VatVerificationService(manager, cache=cache, store=store, clock=clock)

        first = await service.verify_vat_number("B12345678", "ES")
        second = await service.verify_vat_number("B12345678", "ES")

        assert first.cache_status is CacheStatus.FRESH
        assert first.cached is False
        assert second.cache_status is CacheStatus.CACHED
        assert second.cached is True
        assert second.company_name == sample_result.name
        assert second.api_source == "VIES_SOAP"
        manager.verify.assert_awaited_once()
        store.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fast_cache_hit_touches_neither_store_nor_providers(self, sample_result, cache, clock) -> None:
        entry = CachedEntry.from_result(sample_result, cached_at=int(clock()))
        await cache.set(cache_key("ESB12345678"), entry.model_dump())
        manager = _manager(sample_result)
        store = _mock_store()
        service = VatVerificationService(manager, cache=cache, store=store, clock=clock)

        response = await service.verify_vat_number("B12345678", "ES")

        assert response.cache_status is CacheStatus.CACHED
        manager.verify.assert_not_awaited()
        store.find_by_vat_code_and_country.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fresh_store_record_is_promoted_to_fast_cache(self, make_record, cache, clock) -> None:
        store = _mock_store(make_record(verified_at=clock() - 60))
        manager = _manager()
        service = VatVerificationService(manager, cache=cache, store=store, clock=clock)

        first = await service.verify_vat_number("B12345678", "ES")
        second = await service.verify_vat_number("B12345678", "ES")

        assert first.cache_status is CacheStatus.CACHED
        assert second.cache_status is CacheStatus.CACHED
        assert await cache.exists(cache_key("ESB12345678"))
        store.find_by_vat_code_and_country.assert_awaited_once_with("ESB12345678", "ES")
        manager.verify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_store_record_is_refreshed(self, make_record, sample_result, cache, clock) -> None:
        store = _mock_store(make_record(verified_at=clock() - 2 * _DAY))
        manager = _manager(sample_result)
        service = VatVerificationService(
            manager, cache=cache, store=store, cache_config=CacheConfig(ttl_seconds=_DAY), clock=clock
        )

        response = await service.verify_vat_number("B12345678", "ES")

        assert response.cache_status is CacheStatus.REFRESHED
        manager.verify.assert_awaited_once_with("B12345678", "ES")
        saved = store.save.await_args.args[0]
        assert saved.vat_code == "ESB12345678"
        assert saved.verified_at.timestamp() == clock()

    @pytest.mark.asyncio
    async def test_inputs_are_normalized(self, sample_result, cache, clock) -> None:
        manager = _manager(sample_result)
        service = VatVerificationService(manager, cache=cache, clock=clock)

        response = await service.verify_vat_number(" b12345678 ", "es")

        manager.verify.assert_awaited_once_with("B12345678", "ES")
        assert response.vat_code == "ESB12345678"
        assert response.country_code == "ES"
        assert await cache.exists(cache_key("ESB12345678"))

    @pytest.mark.asyncio
    async def test_invalid_results_are_cached_too(self, cache, clock) -> None:
        invalid = VerificationResult(valid=False, vat_number="00000000X", country_code="ES", api_source="VIES_REST")
        manager = _manager(invalid)
        service = VatVerificationService(manager, cache=cache, clock=clock)

        await service.verify_vat_number("00000000X", "ES")
        response = await service.verify_vat_number("00000000X", "ES")

        assert response.is_valid is False
        assert response.cache_status is CacheStatus.CACHED
        manager.verify.assert_awaited_once()


# ======================================================================
# Cache configuration
# ======================================================================


class TestCacheConfiguration:
    @pytest.mark.asyncio
    async def test_disabled_cache_always_calls_providers_and_writes_nothing(self, sample_result, clock) -> None:
        manager = _manager(sample_result)
        cache = MagicMock(spec=ICacheProvider)
        cache.get = AsyncMock(return_value=None)
        cache.set = AsyncMock()
        store = _mock_store()
        service = VatVerificationService(
            manager, cache=cache, store=store, cache_config=CacheConfig(enabled=False), clock=clock
        )

        first = await service.verify_vat_number("B12345678", "ES")
        second = await service.verify_vat_number("B12345678", "ES")

        assert first.cache_status is CacheStatus.FRESH
        assert second.cache_status is CacheStatus.FRESH
        assert manager.verify.await_count == 2
        cache.get.assert_not_awaited()
        cache.set.assert_not_awaited()
        store.find_by_vat_code_and_country.assert_not_awaited()
        store.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ttl_change_applies_to_existing_entries(self, sample_result, cache, clock) -> None:
        config = CacheConfig(ttl_seconds=_DAY)
        manager = _manager(sample_result)
        service = VatVerificationService(manager, cache=cache, cache_config=config, clock=clock)

        await service.verify_vat_number("B12345678", "ES")
        clock.advance(100)
        assert (await service.verify_vat_number("B12345678", "ES")).cache_status is CacheStatus.CACHED

        # The owner mutates the shared config; the service must not hold a copy.
        config.ttl_seconds = 50
        response = await service.verify_vat_number("B12345678", "ES")

        assert response.cache_status is CacheStatus.FRESH
        assert manager.verify.await_count == 2

    def test_runtime_setters_update_shared_config(self, sample_result) -> None:
        config = CacheConfig()
        service = VatVerificationService(_manager(sample_result), cache_config=config)

        service.cache_ttl = 120
        service.cache_enabled = False

        assert config.ttl_seconds == 120
        assert config.enabled is False
        assert service.cache_ttl == 120
        assert service.cache_enabled is False

    @pytest.mark.asyncio
    async def test_entry_exactly_at_ttl_is_still_fresh(self, sample_result, cache, clock) -> None:
        manager = _manager(sample_result)
        service = VatVerificationService(manager, cache=cache, cache_config=CacheConfig(ttl_seconds=60), clock=clock)

        await service.verify_vat_number("B12345678", "ES")
        clock.advance(60)
        response = await service.verify_vat_number("B12345678", "ES")

        assert response.cache_status is CacheStatus.CACHED


# ======================================================================
# Failure handling
# ======================================================================


class TestFailureHandling:
    @pytest.mark.asyncio
    async def test_total_failure_propagates_and_writes_nothing(self, cache, clock) -> None:
        error = ApiUnavailableError("ISVAT", RuntimeError("down"))
        manager = _manager(error=error)
        store = _mock_store()
        service = VatVerificationService(manager, cache=cache, store=store, clock=clock)

        with pytest.raises(ApiUnavailableError) as exc_info:
            await service.verify_vat_number("B12345678", "ES")

        assert exc_info.value is error
        assert await cache.exists(cache_key("ESB12345678")) is False
        store.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_write_failure_is_swallowed(self, sample_result, cache, clock) -> None:
        store = _mock_store()
        store.save = AsyncMock(side_effect=RuntimeError("disk full"))
        service = VatVerificationService(_manager(sample_result), cache=cache, store=store, clock=clock)

        response = await service.verify_vat_number("B12345678", "ES")

        assert response.is_valid is True
        assert response.cache_status is CacheStatus.FRESH
        assert await cache.exists(cache_key("ESB12345678"))

    @pytest.mark.asyncio
    async def test_store_read_failure_counts_as_no_record(self, sample_result, cache, clock) -> None:
        store = _mock_store()
        store.find_by_vat_code_and_country = AsyncMock(side_effect=RuntimeError("locked"))
        manager = _manager(sample_result)
        service = VatVerificationService(manager, cache=cache, store=store, clock=clock)

        response = await service.verify_vat_number("B12345678", "ES")

        assert response.cache_status is CacheStatus.FRESH
        manager.verify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_swallowed(self, sample_result, clock) -> None:
        cache = MagicMock(spec=ICacheProvider)
        cache.get = AsyncMock(return_value=None)
        cache.set = AsyncMock(side_effect=ConnectionError("redis gone"))
        service = VatVerificationService(_manager(sample_result), cache=cache, clock=clock)

        response = await service.verify_vat_number("B12345678", "ES")

        assert response.cache_status is CacheStatus.FRESH
        cache.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_works_without_cache_or_store(self, sample_result) -> None:
        service = VatVerificationService(_manager(sample_result))
        response = await service.verify_vat_number("B12345678", "ES")
        assert response.cache_status is CacheStatus.FRESH


# ======================================================================
# With the real SQLite store
# ======================================================================


class TestWithSQLiteStore:
    @pytest.mark.asyncio
    async def test_record_survives_a_new_fast_cache(self, tmp_path, sample_result, clock) -> None:
        store = SQLiteVerificationStore(tmp_path / "vat.db")
        await store.initialize()
        manager = _manager(sample_result)

        first_service = VatVerificationService(manager, cache=MemoryCacheProvider(), store=store, clock=clock)
        first = await first_service.verify_vat_number("B12345678", "ES")

        # A new process: empty fast cache, same database.
        second_service = VatVerificationService(manager, cache=MemoryCacheProvider(), store=store, clock=clock)
        second = await second_service.verify_vat_number("B12345678", "ES")

        assert first.cache_status is CacheStatus.FRESH
        assert second.cache_status is CacheStatus.CACHED
        assert second.company_name == sample_result.name
        manager.verify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expired_record_is_overwritten_in_place(self, tmp_path, sample_result, clock) -> None:
        store = SQLiteVerificationStore(tmp_path / "vat.db")
        await store.initialize()
        manager = _manager(sample_result)
        service = VatVerificationService(
            manager, cache=None, store=store, cache_config=CacheConfig(ttl_seconds=_DAY), clock=clock
        )

        await service.verify_vat_number("B12345678", "ES")
        clock.advance(2 * _DAY)
        response = await service.verify_vat_number("B12345678", "ES")

        assert response.cache_status is CacheStatus.REFRESHED
        record = await store.find_by_vat_code_and_country("ESB12345678", "ES")
        assert record is not None
        assert record.verified_at.timestamp() == clock()


# ======================================================================
# Real provider chain
# ======================================================================


class TestWithProviderChain:
    @pytest.mark.asyncio
    async def test_not_found_answer_is_fresh_final_and_cached(
        self, tmp_path, cache, clock, http_client_factory, make_provider
    ) -> None:
        requests: list[httpx.Request] = []

        def isvat_not_found(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(404, json={"valid": False})

        fallback = make_provider(
            "VIES_REST",
            result=VerificationResult(valid=True, vat_number="00000000X", country_code="ES", api_source="VIES_REST"),
        )
        manager = (
            VatProviderManager(["isvat", "vies_rest"])
            .register("isvat", IsvatProvider(http_client=http_client_factory(isvat_not_found)))
            .register("vies_rest", fallback)
        )
        store = SQLiteVerificationStore(tmp_path / "vat.db")
        await store.initialize()
        service = VatVerificationService(manager, cache=cache, store=store, clock=clock)

        first = await service.verify_vat_number("00000000X", "ES")

        assert first.cache_status is CacheStatus.FRESH
        assert first.is_valid is False
        assert first.api_source == "ISVAT"
        fallback.verify.assert_not_awaited()
        assert await cache.exists(cache_key("ES00000000X"))
        record = await store.find_by_vat_code_and_country("ES00000000X", "ES")
        assert record is not None
        assert record.is_valid is False

        second = await service.verify_vat_number("00000000X", "ES")

        assert second.cache_status is CacheStatus.CACHED
        assert second.is_valid is False
        assert len(requests) == 1
