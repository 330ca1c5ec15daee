"""Frozen dataclasses for configuration, YAML loader with env-var interpolation and overrides."""

from __future__ import annotations

import os
import re
import typing
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml

from .exceptions import ConfigurationError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

DEFAULT_INSTANCE_STATES = "pending,running,rebooting"
DEFAULT_API_URL = "https://127.0.0.1:8080"

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def _interpolate_env(value: str, environ: Mapping[str, str]) -> str:
    """Replace ${ENV_VAR} placeholders with environment variable values."""

    def _replace(match: re.Match) -> str:
        env_key = match.group(1)
        env_val = environ.get(env_key)
        if env_val is None:
            raise ConfigurationError(f"Environment variable '{env_key}' is not set")
        return env_val

    return _ENV_PATTERN.sub(_replace, value)


def _walk_and_interpolate(obj: Any, environ: Mapping[str, str]) -> Any:
    """Recursively interpolate env vars in strings throughout a nested structure."""
    if isinstance(obj, str):
        return _interpolate_env(obj, environ)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v, environ) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(v, environ) for v in obj]
    return obj


@dataclass(frozen=True)
class EC2Config:
    instance_states: str | list[str] = DEFAULT_INSTANCE_STATES
    instance_regions: str | list[str] = ""  # empty = enumerate every region
    instance_tags: str | list[str] | dict[str, str] = ""
    credential_profile: str = ""  # empty = default boto3 credential chain
    default_region: str = ""  # describe_regions only; empty = boto3 session region, then us-east-1
    connect_timeout: int = 10
    read_timeout: int = 30
    max_attempts: int = 3


@dataclass(frozen=True)
class RegistryConfig:
    api_urls: list[str] = field(default_factory=lambda: [DEFAULT_API_URL])
    namespace: str = "default"
    access_token: str = ""
    api_key: str = ""
    username: str = ""
    password: str = ""
    trusted_ca_file: str = ""
    insecure_skip_tls_verify: bool = False
    timeout: int = 10


@dataclass(frozen=True)
class WorkersConfig:
    max_regions: int = 1  # 1 = process regions sequentially


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"  # "json" or "text"


@dataclass(frozen=True)
class AppConfig:
    ec2: EC2Config = field(default_factory=EC2Config)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    workers: WorkersConfig = field(default_factory=WorkersConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Environment variables understood by the original Sensu plugin, mapped to config paths.
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "EC2_INSTANCE_STATES": ("ec2", "instance_states"),
    "EC2_INSTANCE_REGIONS": ("ec2", "instance_regions"),
    "EC2_INSTANCE_TAGS": ("ec2", "instance_tags"),
    "SENSU_NAMESPACE": ("registry", "namespace"),
    "SENSU_API_URL": ("registry", "api_urls"),
    "SENSU_ACCESS_TOKEN": ("registry", "access_token"),
    "SENSU_API_KEY": ("registry", "api_key"),
    "SENSU_USERNAME": ("registry", "username"),
    "SENSU_PASSWORD": ("registry", "password"),
    "SENSU_TRUSTED_CA_FILE": ("registry", "trusted_ca_file"),
    "SENSU_INSECURE_SKIP_TLS_VERIFY": ("registry", "insecure_skip_tls_verify"),
}


def _coerce_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got '{value}'")


def _coerce_url_list(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]


def _build_nested(cls: type, data: dict[str, Any]) -> Any:
    """Construct a frozen dataclass, recursively building nested dataclass fields."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"Section for {cls.__name__} must be a mapping")
    hints = typing.get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        ft = hints[f.name]
        if is_dataclass(ft):
            kwargs[f.name] = _build_nested(ft, value or {})
        elif ft is bool:
            kwargs[f.name] = _coerce_bool(value, f.name)
        elif f.name == "api_urls":
            kwargs[f.name] = _coerce_url_list(value)
        elif ft is int:
            try:
                kwargs[f.name] = int(value)
            except (TypeError, ValueError):
                raise ConfigurationError(f"{f.name} must be an integer, got '{value}'") from None
        else:
            kwargs[f.name] = value
    return cls(**kwargs)


def _deep_merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Merge overlay into a copy of base; None values in overlay are ignored."""
    merged = dict(base)
    for key, value in overlay.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            base_value = merged.get(key)
            merged[key] = _deep_merge(base_value if isinstance(base_value, dict) else {}, value)
        else:
            merged[key] = value
    return merged


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect configuration overrides from the plugin's environment variables."""
    result: dict[str, dict[str, Any]] = {}
    for env_key, (section, name) in ENV_OVERRIDES.items():
        value = environ.get(env_key)
        if value is not None:
            result.setdefault(section, {})[name] = value
    return result


def _read_yaml(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration file must be a YAML mapping")
    return raw


def load_config(
    path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load and validate configuration.

    Layers, lowest precedence first: dataclass defaults, the optional YAML
    file, plugin environment variables, then explicit overrides (CLI flags).
    """
    environ = os.environ if environ is None else environ

    raw: dict[str, Any] = {}
    if path is not None:
        raw = _walk_and_interpolate(_read_yaml(path), environ)
    raw = _deep_merge(raw, env_overrides(environ))
    if overrides:
        raw = _deep_merge(raw, overrides)

    config = _build_nested(AppConfig, raw)
    _validate(config)
    return config


def _validate(config: AppConfig) -> None:
    """Validate configuration values that do not depend on discovery criteria."""
    registry = config.registry

    if not registry.api_urls:
        raise ConfigurationError("At least one Sensu API URL is required")

    for url in registry.api_urls:
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ConfigurationError(f"Invalid Sensu API URL '{url}': expected http(s)://host[:port]")
        try:
            parts.port
        except ValueError as exc:
            raise ConfigurationError(f"Invalid Sensu API URL '{url}': {exc}") from None

    if not registry.namespace:
        raise ConfigurationError("registry.namespace must not be empty")

    if registry.timeout <= 0:
        raise ConfigurationError("registry.timeout must be > 0")

    if registry.trusted_ca_file and not Path(registry.trusted_ca_file).is_file():
        raise ConfigurationError(f"Trusted CA file not found: {registry.trusted_ca_file}")

    if config.ec2.connect_timeout <= 0 or config.ec2.read_timeout <= 0:
        raise ConfigurationError("ec2.connect_timeout and ec2.read_timeout must be > 0")

    if config.ec2.max_attempts < 1:
        raise ConfigurationError("ec2.max_attempts must be >= 1")

    if config.workers.max_regions < 1:
        raise ConfigurationError("workers.max_regions must be >= 1")

    if config.logging.format not in ("json", "text"):
        raise ConfigurationError("logging.format must be 'json' or 'text'")
