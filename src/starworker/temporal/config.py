"""
Temporal Worker Configuration for starworker

All configuration loaded from environment variables or a YAML file.
The location selects the transport: grpc://host:port (plaintext) or
grpcs://host:port (TLS).
"""

import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import urlsplit

import yaml
from dotenv import load_dotenv

from ..workflow.errors import ConfigurationError
from ..workflow.options import ActivityOptions


SCHEMES = {"grpc": False, "grpcs": True}
DEFAULT_PORT = 7233


@dataclass(frozen=True)
class Location:
    """Parsed engine location."""

    scheme: str
    host: str
    port: int
    tls: bool

    @property
    def target(self) -> str:
        """host:port address handed to the Temporal client."""
        return f"{self.host}:{self.port}"


def parse_location(location: str) -> Location:
    """
    Parse and validate a worker location.

    Raises:
        ConfigurationError: unknown scheme, missing host or bad port
    """
    parts = urlsplit(location or "")
    scheme = parts.scheme.lower()
    if scheme not in SCHEMES:
        raise ConfigurationError(
            f"unsupported transport scheme {parts.scheme!r} in {location!r} (expected grpc or grpcs)"
        )
    try:
        port = parts.port or DEFAULT_PORT
    except ValueError as e:
        raise ConfigurationError(f"invalid port in {location!r}: {e}") from e
    if not parts.hostname:
        raise ConfigurationError(f"location {location!r} has no host")
    return Location(scheme=scheme, host=parts.hostname, port=port, tls=SCHEMES[scheme])


@dataclass(frozen=True)
class WorkerConfig:
    """Temporal connection and worker configuration."""

    # Connection
    location: str = f"grpc://localhost:{DEFAULT_PORT}"
    domain: str = "default"
    task_list: str = "starworker"

    # Activity defaults (seconds)
    activity_start_to_close_timeout: int = 300  # 5 min per activity
    activity_heartbeat_timeout: int = 0  # 0 disables heartbeats
    max_concurrent_activities: int = 100

    # Plugins enabled on this worker (empty = all bundled plugins)
    plugins: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def parsed_location(self) -> Location:
        return parse_location(self.location)

    @property
    def target(self) -> str:
        """Temporal server address."""
        return self.parsed_location.target

    def activity_options(self) -> ActivityOptions:
        """Default options for activities started by workflows on this worker."""
        heartbeat = self.activity_heartbeat_timeout
        return ActivityOptions(
            start_to_close_timeout=timedelta(seconds=self.activity_start_to_close_timeout),
            heartbeat_timeout=timedelta(seconds=heartbeat) if heartbeat > 0 else None,
        )

    @classmethod
    def from_env(cls) -> "WorkerConfig":
        """Load configuration from environment variables (and a .env file)."""
        load_dotenv()
        plugins = os.getenv("STARWORKER_PLUGINS", "")
        return cls(
            location=os.getenv("STARWORKER_LOCATION", f"grpc://localhost:{DEFAULT_PORT}"),
            domain=os.getenv("STARWORKER_DOMAIN", "default"),
            task_list=os.getenv("STARWORKER_TASK_LIST", "starworker"),
            activity_start_to_close_timeout=int(os.getenv("STARWORKER_ACTIVITY_TIMEOUT", "300")),
            activity_heartbeat_timeout=int(os.getenv("STARWORKER_HEARTBEAT_TIMEOUT", "0")),
            max_concurrent_activities=int(os.getenv("STARWORKER_MAX_CONCURRENT_ACTIVITIES", "100")),
            plugins=tuple(p.strip() for p in plugins.split(",") if p.strip()),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "WorkerConfig":
        """Load configuration from a YAML file (unknown keys are rejected)."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"cannot read config {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkerConfig":
        if not isinstance(data, dict):
            raise ConfigurationError("config must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown config keys: {', '.join(unknown)}")
        values = dict(data)
        if "plugins" in values:
            values["plugins"] = tuple(values["plugins"] or ())
        return cls(**values)

    def validate(self) -> "WorkerConfig":
        """Fail fast on an unusable configuration."""
        parse_location(self.location)
        if not self.domain:
            raise ConfigurationError("domain must not be empty")
        if not self.task_list:
            raise ConfigurationError("task_list must not be empty")
        if self.activity_start_to_close_timeout <= 0:
            raise ConfigurationError("activity_start_to_close_timeout must be positive")
        if self.activity_heartbeat_timeout < 0:
            raise ConfigurationError("activity_heartbeat_timeout must not be negative")
        return self


def load_config(path: Optional[Union[str, Path]] = None) -> WorkerConfig:
    """Config from STARWORKER_CONFIG / path if given, else from the environment."""
    load_dotenv()
    path = path or os.getenv("STARWORKER_CONFIG")
    config = WorkerConfig.from_file(path) if path else WorkerConfig.from_env()
    return config.validate()
