"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

    1. config/config.yaml  -- static defaults checked into the repo
    2. .env file           -- local developer overrides (not committed)
    3. Environment vars    -- set at deploy time

The YAML file is nested by concern::

    cache:
      enabled: true
      ttl: 86400
    providers:
      order: [vies_soap, vies_rest, isvat]
      vatlayer:
        api_key: ""

and is flattened onto the :class:`Settings` field names through
``_YAML_FIELDS`` before the environment is applied on top.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from vatcheck.config.settings import Settings
from vatcheck.utils.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/config.yaml"

# Dotted YAML path -> Settings field.
_YAML_FIELDS: dict[str, str] = {
    "cache.enabled": "cache_enabled",
    "cache.ttl": "cache_ttl",
    "cache.max_size": "cache_max_size",
    "api.timeout": "api_timeout",
    "providers.order": "providers_order",
    "providers.vies.test_mode": "vies_test_mode",
    "providers.isvat.use_live": "isvat_use_live",
    "providers.vatlayer.api_key": "vatlayer_api_key",
    "providers.viesapi.api_key": "viesapi_api_key",
    "providers.viesapi.api_secret": "viesapi_api_secret",
    "providers.viesapi.ip": "viesapi_ip",
    "providers.aeat.cert_path": "aeat_cert_path",
    "providers.aeat.key_path": "aeat_key_path",
    "providers.aeat.combined_cert_path": "aeat_combined_cert_path",
    "providers.aeat.passphrase": "aeat_passphrase",
    "providers.aeat.endpoint": "aeat_endpoint",
    "database.path": "database_path",
    "logging.level": "log_level",
    "logging.log_verifications": "log_verifications",
    "app.env": "app_env",
}


def read_yaml_config(path: str | Path = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Read the YAML file at *path*; a missing file yields an empty dict."""
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    return data


def load_settings(path: str | Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Build :class:`Settings` from the YAML file, then the environment.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings where every field set through the environment (or ``.env``)
        wins over the YAML value, and YAML wins over the defaults.
    """
    yaml_values = _flatten(read_yaml_config(path))
    env_settings = Settings()
    env_values = env_settings.model_dump(include=env_settings.model_fields_set)

    merged = {**yaml_values, **env_values}
    return Settings(**merged)


def _flatten(config: dict[str, Any]) -> dict[str, Any]:
    """Map the nested YAML document onto Settings field names."""
    values: dict[str, Any] = {}
    for dotted, field in _YAML_FIELDS.items():
        node: Any = config
        for part in dotted.split("."):
            if not isinstance(node, dict) or part not in node:
                break
            node = node[part]
        else:
            if node is None:
                continue
            if field == "providers_order" and isinstance(node, list):
                node = ",".join(str(name) for name in node)
            values[field] = node
    return values
