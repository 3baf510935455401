"""Config loading for sbgateway.

Reads ``.sbgateway/config.yaml`` (or ``~/.sbgateway/config.yaml``).
Raises SystemExit on parse errors, missing ``version`` field or invalid values.
If no config file is found, returns default values.

Config search order:
  1. ``config_path`` argument (``--config`` flag or tests)
  2. SBGATEWAY_CONFIG environment variable (if set)
  3. ``.sbgateway/config.yaml`` (working directory, for development)
  4. ``~/.sbgateway/config.yaml`` (home directory, for deployments)

Environment variable overrides (applied after the file):
  SBGATEWAY_API_KEY — upstream API key
  SBGATEWAY_ADDR    — listen address, ``host:port``
  SBGATEWAY_DB      — classifier database path

Command-line flags (see run.py) are applied last via ``Config.with_overrides``.

The Config object is frozen: it is built once at startup and shared read-only
by every request.

Example::

    version: 1
    upstream:
      api_key: "AIza..."
    server:
      host: 127.0.0.1
      port: 8080
    threat_lists:
      - {threat_type: MALWARE, platform_type: ANY_PLATFORM, threat_entry_type: URL}
"""

from __future__ import annotations

import dataclasses
import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml

from sbgateway.classifier.protocol import ThreatDescriptor
from sbgateway.constants import (
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CLIENT_ID,
    DEFAULT_CLIENT_VERSION,
    DEFAULT_LOOKUP_TIMEOUT_S,
    DEFAULT_NEGATIVE_CACHE_TTL_S,
    DEFAULT_SERVER_ADDR,
    DEFAULT_UPSTREAM_BASE_URL,
    UPSTREAM_TIMEOUT_S,
)
from sbgateway.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1
SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".sbgateway/config.yaml",
    os.path.expanduser("~/.sbgateway/config.yaml"),
]

ENV_CONFIG = "SBGATEWAY_CONFIG"
ENV_API_KEY = "SBGATEWAY_API_KEY"
ENV_ADDR = "SBGATEWAY_ADDR"
ENV_DB = "SBGATEWAY_DB"


def _config_error(msg: str) -> NoReturn:
    print(f"CONFIG ERROR: {msg}", file=sys.stderr)
    raise SystemExit(1)


def parse_address(addr: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address.

    An empty host (``":8080"``) means all interfaces. IPv6 hosts may be
    bracketed (``"[::1]:8080"``).

    Raises:
        ValueError: No port, or the port is not an integer in 1-65535.
    """
    host, sep, port_str = addr.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address {addr!r}")
    host = host.strip("[]") or "0.0.0.0"
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in address {addr!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in address {addr!r}")
    return host, port


_DEFAULT_HOST, _DEFAULT_PORT = parse_address(DEFAULT_SERVER_ADDR)


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UpstreamConfig:
    """Upstream Safe Browsing API settings used by the classifier."""

    api_key: str = ""
    base_url: str = DEFAULT_UPSTREAM_BASE_URL
    client_id: str = DEFAULT_CLIENT_ID
    client_version: str = DEFAULT_CLIENT_VERSION
    timeout_s: float = UPSTREAM_TIMEOUT_S


@dataclass(frozen=True)
class ServerConfig:
    """Listen address."""

    host: str = _DEFAULT_HOST
    port: int = _DEFAULT_PORT

    @property
    def addr(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class CacheConfig:
    """Classifier result cache."""

    negative_ttl_s: float = DEFAULT_NEGATIVE_CACHE_TTL_S
    max_entries: int = DEFAULT_CACHE_MAX_ENTRIES


@dataclass(frozen=True)
class Config:
    """Root configuration object.

    All fields have safe defaults except ``upstream.api_key``, which must be
    supplied (file, SBGATEWAY_API_KEY or ``-apikey``) before serving.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    threat_lists: tuple[ThreatDescriptor, ...] = ()  # empty → DEFAULT_THREAT_LISTS
    db_path: Optional[str] = None
    lookup_timeout_s: float = DEFAULT_LOOKUP_TIMEOUT_S
    path: Optional[str] = None  # Path of the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are ignored.

        Raises:
            SystemExit(1): On invalid threat_lists entries or numeric values.
        """
        upstream_raw = _section(raw, "upstream")
        upstream = UpstreamConfig(
            api_key=str(upstream_raw.get("api_key", "") or ""),
            base_url=upstream_raw.get("base_url", DEFAULT_UPSTREAM_BASE_URL),
            client_id=upstream_raw.get("client_id", DEFAULT_CLIENT_ID),
            client_version=str(upstream_raw.get("client_version", DEFAULT_CLIENT_VERSION)),
            timeout_s=_positive_number(upstream_raw, "timeout_s", UPSTREAM_TIMEOUT_S, "upstream"),
        )

        server_raw = _section(raw, "server")
        port = server_raw.get("port", _DEFAULT_PORT)
        if not isinstance(port, int) or not 0 < port < 65536:
            _config_error(f"Invalid server.port: {port!r}. Expected an integer in 1-65535.")
        server = ServerConfig(host=server_raw.get("host", _DEFAULT_HOST), port=port)

        cache_raw = _section(raw, "cache")
        cache = CacheConfig(
            negative_ttl_s=_number(cache_raw, "negative_ttl_s", DEFAULT_NEGATIVE_CACHE_TTL_S, "cache"),
            max_entries=int(_number(cache_raw, "max_entries", DEFAULT_CACHE_MAX_ENTRIES, "cache")),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            upstream=upstream,
            server=server,
            cache=cache,
            threat_lists=_parse_threat_lists(raw.get("threat_lists") or []),
            db_path=raw.get("db_path"),
            lookup_timeout_s=_positive_number(raw, "lookup_timeout_s", DEFAULT_LOOKUP_TIMEOUT_S, ""),
            path=path,
        )

    def with_overrides(
        self,
        *,
        api_key: Optional[str] = None,
        addr: Optional[str] = None,
        db_path: Optional[str] = None,
    ) -> "Config":
        """Return a copy with the given non-empty values replaced.

        Raises:
            SystemExit(1): ``addr`` is not a valid ``host:port``.
        """
        config = self
        if api_key:
            config = dataclasses.replace(
                config, upstream=dataclasses.replace(config.upstream, api_key=api_key)
            )
        if addr:
            try:
                host, port = parse_address(addr)
            except ValueError as exc:
                _config_error(f"Invalid listen address: {exc}")
            config = dataclasses.replace(config, server=ServerConfig(host=host, port=port))
        if db_path:
            config = dataclasses.replace(config, db_path=db_path)
        return config


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        _config_error(f"'{name}' must be a mapping, got {type(value).__name__}.")
    return value


def _number(raw: dict, key: str, default: float, section: str) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        name = f"{section}.{key}" if section else key
        _config_error(f"Invalid {name}: {value!r}. Expected a number.")
    return value


def _positive_number(raw: dict, key: str, default: float, section: str) -> float:
    value = _number(raw, key, default, section)
    if value <= 0:
        name = f"{section}.{key}" if section else key
        _config_error(f"Invalid {name}: {value!r}. Expected a positive number.")
    return value


def _parse_threat_lists(raw_lists: Any) -> tuple[ThreatDescriptor, ...]:
    if not isinstance(raw_lists, list):
        _config_error("'threat_lists' must be a list of descriptors.")
    descriptors: list[ThreatDescriptor] = []
    for index, entry in enumerate(raw_lists):
        if not isinstance(entry, dict):
            _config_error(f"threat_lists[{index}] must be a mapping.")
        try:
            descriptor = ThreatDescriptor.from_names(
                entry.get("threat_type", ""),
                entry.get("platform_type", ""),
                entry.get("threat_entry_type", "URL"),
            )
        except ValueError as exc:
            _config_error(f"threat_lists[{index}]: {exc}")
        descriptors.append(descriptor)
    return tuple(descriptors)


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate sbgateway configuration.

    If no file is found at any search path, returns default Config (not an
    error). If a file is found but invalid, writes the error to stderr and
    raises SystemExit(1). Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field,
                       unsupported version or invalid values.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get(ENV_CONFIG)
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found, using defaults", searched=search_paths)
        return _apply_env_overrides(Config.defaults())

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"Failed to parse {found_path}: {exc}\n"
            "sbgateway refuses to start with an invalid config."
        )
    except OSError as exc:
        _config_error(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _config_error(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = _apply_env_overrides(Config.from_dict(raw, path=found_path))

    if config.server.host == "0.0.0.0":
        logger.warning(
            "sbgateway is configured to listen on all interfaces; "
            "it does not authenticate clients, so restrict access at the network level."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        threat_lists=len(config.threat_lists),
        addr=config.server.addr,
    )
    return config


def _apply_env_overrides(config: Config) -> Config:
    """Apply SBGATEWAY_API_KEY / SBGATEWAY_ADDR / SBGATEWAY_DB.

    Raises:
        SystemExit(1): SBGATEWAY_ADDR is not a valid ``host:port``.
    """
    return config.with_overrides(
        api_key=os.environ.get(ENV_API_KEY),
        addr=os.environ.get(ENV_ADDR),
        db_path=os.environ.get(ENV_DB),
    )


def require_api_key(config: Config) -> None:
    """Refuse to start without an upstream API key.

    Raises:
        SystemExit(1): ``config.upstream.api_key`` is empty.
    """
    if not config.upstream.api_key:
        print(
            "No API key specified. Use -apikey, SBGATEWAY_API_KEY or upstream.api_key.",
            file=sys.stderr,
        )
        raise SystemExit(1)
