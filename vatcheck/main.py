"""vatcheck composition root.

Wires the VAT providers, the fast cache, the durable store and the
verification service together from :class:`~vatcheck.config.settings.Settings`.
Components never read settings themselves; everything they need is passed
explicitly from here.

Typical use::

    service = build_service(load_settings())
    await service.store.initialize()
    response = await service.verify_vat_number("B12345678", "ES")
"""

from __future__ import annotations

import os

import httpx

from vatcheck.config.loader import load_settings
from vatcheck.config.settings import Settings
from vatcheck.interfaces.cache_provider import ICacheProvider
from vatcheck.interfaces.verification_store import IVerificationStore
from vatcheck.models.verification import ServiceResponse
from vatcheck.providers.cache.memory_cache import MemoryCacheProvider
from vatcheck.providers.store.sqlite_verification_store import SQLiteVerificationStore
from vatcheck.providers.vat.aeat_provider import AeatProvider
from vatcheck.providers.vat.isvat_provider import IsvatProvider
from vatcheck.providers.vat.vatlayer_provider import VatlayerProvider
from vatcheck.providers.vat.vies_rest_provider import ViesRestProvider
from vatcheck.providers.vat.vies_soap_provider import ViesSoapProvider
from vatcheck.providers.vat.viesapi_provider import ViesApiProvider
from vatcheck.services.provider_manager import VatProviderManager
from vatcheck.services.verification_service import CacheConfig, VatVerificationService
from vatcheck.utils.errors import ConfigurationError
from vatcheck.utils.logging import get_logger

_logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _aeat_certificate_present(app_settings: Settings) -> bool:
    if app_settings.aeat_combined_cert_path and os.path.isfile(app_settings.aeat_combined_cert_path):
        return True
    return bool(
        app_settings.aeat_cert_path
        and app_settings.aeat_key_path
        and os.path.isfile(app_settings.aeat_cert_path)
        and os.path.isfile(app_settings.aeat_key_path)
    )


def build_provider_manager(
    app_settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> VatProviderManager:
    """Register every usable provider and apply the configured order.

    The free VIES/isvat adapters are always registered.  AEAT is registered
    only when its certificate files exist, and the paid adapters only when
    an API key is configured.  *http_client* is shared by every adapter
    except AEAT, which needs its own client for the TLS certificate.

    Raises:
        ConfigurationError: If the configured provider order is empty.
    """
    order = app_settings.get_providers_order()
    if not order:
        raise ConfigurationError("PROVIDERS_ORDER must name at least one provider")

    timeout = app_settings.api_timeout
    manager = VatProviderManager(provider_order=order)

    manager.register(
        "vies_soap",
        ViesSoapProvider(test_mode=app_settings.vies_test_mode, http_client=http_client, timeout=timeout),
    )
    manager.register("vies_rest", ViesRestProvider(http_client=http_client, timeout=timeout))
    manager.register(
        "isvat",
        IsvatProvider(http_client=http_client, use_live=app_settings.isvat_use_live, timeout=timeout),
    )

    if _aeat_certificate_present(app_settings):
        manager.register(
            "aeat",
            AeatProvider(
                cert_path=app_settings.aeat_cert_path,
                key_path=app_settings.aeat_key_path,
                combined_cert_path=app_settings.aeat_combined_cert_path,
                endpoint=app_settings.aeat_endpoint,
                passphrase=app_settings.aeat_passphrase,
                timeout=timeout,
            ),
        )

    if app_settings.vatlayer_api_key:
        manager.register(
            "vatlayer",
            VatlayerProvider(http_client=http_client, api_key=app_settings.vatlayer_api_key, timeout=timeout),
        )

    if app_settings.viesapi_api_key:
        manager.register(
            "viesapi",
            ViesApiProvider(
                http_client=http_client,
                api_key=app_settings.viesapi_api_key,
                api_secret=app_settings.viesapi_api_secret,
                ip=app_settings.viesapi_ip,
                timeout=timeout,
            ),
        )

    unknown = [name for name in order if manager.get_provider(name) is None]
    _logger.info(
        "vat_providers_registered",
        registered=sorted(manager.get_providers()),
        order=order,
        not_registered=unknown,
    )
    return manager


# ---------------------------------------------------------------------------
# Service assembly
# ---------------------------------------------------------------------------


def build_service(
    app_settings: Settings | None = None,
    *,
    store: IVerificationStore | None = None,
    cache: ICacheProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> VatVerificationService:
    """Assemble a :class:`VatVerificationService` from settings.

    Without an injected *store*, a :class:`SQLiteVerificationStore` at
    ``database_path`` is used; callers still need to ``await
    service.store.initialize()`` before the first verification.
    """
    app_settings = app_settings or load_settings()

    return VatVerificationService(
        provider_manager=build_provider_manager(app_settings, http_client=http_client),
        cache=cache or MemoryCacheProvider(max_size=app_settings.cache_max_size, ttl=app_settings.cache_ttl),
        store=store or SQLiteVerificationStore(app_settings.database_path),
        cache_config=CacheConfig(enabled=app_settings.cache_enabled, ttl_seconds=app_settings.cache_ttl),
        log_verifications=app_settings.log_verifications,
    )


async def verify_vat_number(
    vat_number: str,
    country_code: str,
    app_settings: Settings | None = None,
) -> ServiceResponse:
    """One-shot verification: build, initialize, verify, then close clients."""
    service = build_service(app_settings)
    try:
        if service.store is not None:
            await service.store.initialize()
        return await service.verify_vat_number(vat_number, country_code)
    finally:
        await service.provider_manager.aclose()
