"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from reflowlogs.models.config import APIConfig, LogConfig, ReflowConfig

_TRUTHY = frozenset({"1", "t", "true", "yes", "on", "enabled"})
_FALSY = frozenset({"0", "f", "false", "no", "off", "disabled"})
_LOG_LEVELS = frozenset({"debug", "info", "warning", "error"})


class ConfigError(Exception):
    """Raised when a required setting is missing or malformed."""


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_bool(key: str, default: bool, notes: list[str]) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in _TRUTHY:
        return True
    if val in _FALSY:
        return False
    notes.append(f"{key}={raw!r} is not a boolean; using default {str(default).lower()}")
    return default


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    if value.lower() not in _LOG_LEVELS:
        raise ConfigError(f"Invalid log level: {value}. Must be one of {sorted(_LOG_LEVELS)}")
    return value.lower()


def load_config() -> ReflowConfig:
    """Load configuration from the process environment.

    Unparseable booleans fall back to their default; the reason is kept in
    ``load_warnings`` so it can be logged once logging is configured.
    """
    notes: list[str] = []
    debug = _env_bool("DEBUG", False, notes)
    level = "debug" if debug else _validate_log_level(_env("LOG_LEVEL", "info"))
    return ReflowConfig(
        namespace=_env("NAMESPACE", ""),
        ingress_namespace=_env("INGRESS_NAMESPACE", "ingress-nginx"),
        label_selector=_env("LABEL_SELECTOR", "app.kubernetes.io/name=ingress-nginx"),
        default_log_format=_env_bool("DEFAULT_LOG_FORMAT", True, notes),
        kubeconfig=_env("KUBECONFIG", ""),
        debug=debug,
        stop_stream_on_delete=_env_bool("STOP_STREAM_ON_DELETE", False, notes),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True, notes),
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(level=level),
        load_warnings=notes,
    )


def validate_config(config: ReflowConfig) -> None:
    """Ensure every required setting is present."""
    if not config.namespace:
        raise ConfigError("NAMESPACE is required but not set")
    if not config.ingress_namespace:
        raise ConfigError("INGRESS_NAMESPACE is required but not set")
    if not config.label_selector:
        raise ConfigError("LABEL_SELECTOR is required but not set")
