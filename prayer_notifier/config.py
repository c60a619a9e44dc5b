"""Prayer Notifier — Configuration Loader.

Loads and validates application configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} syntax, with
${VAR_NAME:-default} for optional values such as push credentials.
Uses Python dataclasses for type-safe configuration access.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from prayer_notifier.errors import ConfigError
from prayer_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?}")

_TRUE_STRINGS = {"1", "true", "yes", "on"}


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for the AlAdhan prayer-time service."""

    base_url: str
    timeout_seconds: float
    monthly_timeout_seconds: float
    default_method: int
    reference_latitude: float
    reference_longitude: float
    local_timezone: str


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for the prayer-data TTL cache."""

    ttl_hours: float


@dataclass(frozen=True)
class FcmConfig:
    """Configuration for push channel A (Firebase Cloud Messaging)."""

    enabled: bool
    project_id: str
    credentials_path: str
    timeout_seconds: float
    failure_threshold: int
    cooldown_seconds: float
    skip_when_open: bool = False


@dataclass(frozen=True)
class ApnsConfig:
    """Configuration for push channel B (Apple Push Notification service)."""

    enabled: bool
    key_path: str
    key_id: str
    team_id: str
    bundle_id: str
    production: bool
    timeout_seconds: float
    failure_threshold: int
    cooldown_seconds: float
    skip_when_open: bool = False


@dataclass(frozen=True)
class DispatchConfig:
    """Configuration for bulk dispatch pacing."""

    bulk_concurrency: int
    bulk_rate_per_second: float


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    provider: ProviderConfig
    cache: CacheConfig
    fcm: FcmConfig
    apns: ApnsConfig
    dispatch: DispatchConfig
    log_level: str


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all placeholders replaced.

    Raises:
        ConfigError: If a referenced variable without a default is not set.
    """
    if isinstance(value, str):
        def _replace(match: re.Match[str]) -> str:
            var_name, default = match.group(1), match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            raise ConfigError(
                f"Environment variable '${{{var_name}}}' is required but not set. "
                f"Add it to your .env file or export it in your shell."
            )
        return ENV_VAR_PATTERN.sub(_replace, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ConfigError: If the file is empty.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ConfigError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Raises:
        ConfigError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ConfigError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


def _validate_values(data: dict[str, Any], required: list[str], section: str) -> None:
    """Like _validate_keys, but empty strings count as missing.

    Raises:
        ConfigError: If any required value is missing or empty.
    """
    missing = [key for key in required if not str(data.get(key) or "").strip()]
    if missing:
        raise ConfigError(
            f"'{section}' is enabled but these values are empty: {', '.join(missing)}"
        )


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_provider_config(data: dict[str, Any]) -> ProviderConfig:
    _validate_keys(data, ["base_url", "timeout_seconds", "default_method"], "provider")

    return ProviderConfig(
        base_url=str(data["base_url"]).rstrip("/"),
        timeout_seconds=float(data["timeout_seconds"]),
        monthly_timeout_seconds=float(
            data.get("monthly_timeout_seconds", data["timeout_seconds"])
        ),
        default_method=int(data["default_method"]),
        reference_latitude=float(data.get("reference_latitude", 51.5074)),
        reference_longitude=float(data.get("reference_longitude", -0.1278)),
        local_timezone=data.get("local_timezone", "UTC"),
    )


def _build_cache_config(data: dict[str, Any]) -> CacheConfig:
    ttl_hours = float(data.get("ttl_hours", 24))
    if ttl_hours <= 0:
        raise ConfigError(f"cache.ttl_hours must be positive, got {ttl_hours}")
    return CacheConfig(ttl_hours=ttl_hours)


def _build_fcm_config(data: dict[str, Any]) -> FcmConfig:
    """Build an FcmConfig from the 'fcm' section.

    A channel that is enabled must name its project and credentials.
    """
    enabled = _as_bool(data.get("enabled", False))
    if enabled:
        _validate_values(data, ["project_id", "credentials_path"], "fcm")

    return FcmConfig(
        enabled=enabled,
        project_id=str(data.get("project_id", "")),
        credentials_path=str(data.get("credentials_path", "")),
        timeout_seconds=float(data.get("timeout_seconds", 10)),
        failure_threshold=int(data.get("failure_threshold", 5)),
        cooldown_seconds=float(data.get("cooldown_seconds", 300)),
        skip_when_open=_as_bool(data.get("skip_when_open", False)),
    )


def _build_apns_config(data: dict[str, Any]) -> ApnsConfig:
    """Build an ApnsConfig from the 'apns' section."""
    enabled = _as_bool(data.get("enabled", False))
    if enabled:
        _validate_values(data, ["key_path", "key_id", "team_id", "bundle_id"], "apns")

    return ApnsConfig(
        enabled=enabled,
        key_path=str(data.get("key_path", "")),
        key_id=str(data.get("key_id", "")),
        team_id=str(data.get("team_id", "")),
        bundle_id=str(data.get("bundle_id", "")),
        production=_as_bool(data.get("production", False)),
        timeout_seconds=float(data.get("timeout_seconds", 10)),
        failure_threshold=int(data.get("failure_threshold", 5)),
        cooldown_seconds=float(data.get("cooldown_seconds", 300)),
        skip_when_open=_as_bool(data.get("skip_when_open", False)),
    )


def _build_dispatch_config(data: dict[str, Any]) -> DispatchConfig:
    concurrency = int(data.get("bulk_concurrency", 1))
    if concurrency < 1:
        raise ConfigError(f"dispatch.bulk_concurrency must be >= 1, got {concurrency}")
    return DispatchConfig(
        bulk_concurrency=concurrency,
        bulk_rate_per_second=float(data.get("bulk_rate_per_second", 0)),
    )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Loads settings.yaml, resolves environment variables, validates all
    required fields, and returns a typed AppConfig instance.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to .env file. Defaults to project root .env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ConfigError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings = _resolve_env_vars(_load_yaml(settings_path or SETTINGS_PATH))

    _validate_keys(settings, ["provider", "logging"], "settings")

    config = AppConfig(
        provider=_build_provider_config(settings["provider"]),
        cache=_build_cache_config(settings.get("cache") or {}),
        fcm=_build_fcm_config(settings.get("fcm") or {}),
        apns=_build_apns_config(settings.get("apns") or {}),
        dispatch=_build_dispatch_config(settings.get("dispatch") or {}),
        log_level=str(settings["logging"].get("level", "INFO")).upper(),
    )

    logger.info("Configuration loaded successfully")
    logger.debug("Prayer-time service: %s", config.provider.base_url)
    logger.debug(
        "Channels: fcm=%s apns=%s", config.fcm.enabled, config.apns.enabled,
    )

    return config
