"""Configuration loader for herd."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path("~/.config/herd/config.yaml").expanduser()

RESOLVER_BACKENDS = ("dig", "getaddrinfo")


@dataclass
class Defaults:
    """Connection settings shared by every session."""

    user: str | None = None  # None means the invoking login
    port: int = 22
    ssh_key: Path | None = field(
        default_factory=lambda: Path("~/.ssh/id_rsa").expanduser()
    )
    known_hosts: Path | None = None
    term_type: str = "xterm"
    connect_timeout: float = 10


@dataclass
class ResolverConfig:
    """How cluster hostnames are expanded into addresses."""

    backend: str = "dig"
    command: str = "dig"
    timeout: float = 5


@dataclass
class Config:
    """Main configuration for herd."""

    defaults: Defaults = field(default_factory=Defaults)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    terminate_grace: float = 5
    log_level: str = "WARNING"
    log_file: Path | None = None
    source_path: Path | None = None  # Path to the file this was loaded from


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    With no path, the per-user file is read when it exists and the built-in
    defaults are used otherwise.
    """
    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return Config()
        config_path = DEFAULT_CONFIG_PATH

    config_path = Path(config_path).expanduser().resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration must be a mapping")

    config = _parse_config(raw)
    config.source_path = config_path
    return config


def _optional_path(value: Any) -> Path | None:
    if value in (None, ""):
        return None
    return Path(str(value)).expanduser()


def _positive(raw: dict[str, Any], key: str, default: float, section: str) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"'{section}{key}' must be a positive number, got {value!r}")
    return value


def _parse_defaults(raw: dict[str, Any]) -> Defaults:
    """Parse the defaults section."""
    defaults_raw = raw.get("defaults") or {}
    port = defaults_raw.get("port", 22)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ValueError(f"'defaults.port' must be a TCP port, got {port!r}")

    ssh_key = Defaults().ssh_key
    if "ssh_key" in defaults_raw:
        ssh_key = _optional_path(defaults_raw["ssh_key"])

    return Defaults(
        user=defaults_raw.get("user") or None,
        port=port,
        ssh_key=ssh_key,
        known_hosts=_optional_path(defaults_raw.get("known_hosts")),
        term_type=defaults_raw.get("term_type", "xterm"),
        connect_timeout=_positive(defaults_raw, "connect_timeout", 10, "defaults."),
    )


def _parse_resolver(raw: dict[str, Any]) -> ResolverConfig:
    """Parse the resolver section."""
    resolver_raw = raw.get("resolver") or {}
    backend = resolver_raw.get("backend", "dig")
    if backend not in RESOLVER_BACKENDS:
        raise ValueError(
            f"'resolver.backend' must be one of {', '.join(RESOLVER_BACKENDS)}, "
            f"got {backend!r}"
        )
    return ResolverConfig(
        backend=backend,
        command=resolver_raw.get("command", "dig"),
        timeout=_positive(resolver_raw, "timeout", 5, "resolver."),
    )


def _parse_config(raw: dict[str, Any]) -> Config:
    """Parse raw YAML data into Config object."""
    return Config(
        defaults=_parse_defaults(raw),
        resolver=_parse_resolver(raw),
        terminate_grace=_positive(raw, "terminate_grace", 5, ""),
        log_level=str(raw.get("log_level", "WARNING")).upper(),
        log_file=_optional_path(raw.get("log_file")),
    )
