"""Application settings loaded from environment variables via pydantic-settings.

Values come from, in priority order:

    1. Environment variables, e.g. ``CACHE_TTL=3600``.
    2. The ``.env`` file in the working directory.
    3. ``config/config.yaml`` when loaded through
       :func:`vatcheck.config.loader.load_settings`.
    4. The defaults below.

An empty string means "not configured": paid providers without a key and
AEAT without certificate material are left out of the registry by
:mod:`vatcheck.main`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

AEAT_DEFAULT_ENDPOINT = "https://www1.agenciatributaria.gob.es/wlpl/BURT-JDIT/ws/VNifV2SOAP"


class Settings(BaseSettings):
    """vatcheck settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Cache ===
    cache_enabled: bool = True
    cache_ttl: int = 86400  # seconds, shared by the fast cache and the store
    cache_max_size: int = 1000

    # === Providers ===
    api_timeout: float = 15.0
    # Comma-separated registry keys, tried left to right.
    providers_order: str = "vies_soap,vies_rest,isvat"
    vies_test_mode: bool = False
    isvat_use_live: bool = False
    vatlayer_api_key: str = ""
    viesapi_api_key: str = ""
    viesapi_api_secret: str = ""
    viesapi_ip: str = ""

    # === AEAT (Spain) ===
    aeat_cert_path: str = ""
    aeat_key_path: str = ""
    aeat_combined_cert_path: str = ""  # .p12/.pfx store or PEM bundle with certificate and key
    aeat_passphrase: str = ""
    aeat_endpoint: str = AEAT_DEFAULT_ENDPOINT

    # === Persistence ===
    database_path: str = "data/vat_verifications.db"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
    log_verifications: bool = True

    def get_providers_order(self) -> list[str]:
        """Return the provider order as a list of lower-cased keys."""
        return [name.strip().lower() for name in self.providers_order.split(",") if name.strip()]
