"""Loading of the service configuration file."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml


class ConfigError(ValueError):
    """Raised when a configuration document is malformed."""


def _as_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{what} must be an integer, got {value!r}")
    return value


def _as_str(value: Any, what: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigError(f"{what} must be a string, got {value!r}")
    return str(value)


def _as_mapping(value: Any, what: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise ConfigError(f"{what} must be a mapping, got {type(value).__name__}")
    return value


@dataclass
class Service:
    """A named service and the port it listens on."""

    name: str
    port: int = 0


@dataclass
class HealthCheckConfig:
    """Health check settings; durations are kept as written, e.g. ``"5s"``."""

    enabled: bool = False
    interval: str = ""
    timeout: str = ""
    unhealthy_after: int = 0


def _service_from_dict(data: Any) -> Service:
    item = _as_mapping(data, "service")
    name = item.get("name")
    port = item.get("port")
    return Service(
        name="" if name is None else _as_str(name, "service name"),
        port=0 if port is None else _as_int(port, "service port"),
    )


def _health_check_from_dict(data: Any) -> HealthCheckConfig:
    item = _as_mapping(data, "health_check")
    enabled = item.get("enabled", False)
    if not isinstance(enabled, bool):
        raise ConfigError(f"health_check.enabled must be a boolean, got {enabled!r}")
    interval = item.get("interval")
    timeout = item.get("timeout")
    unhealthy_after = item.get("unhealthy_after")
    return HealthCheckConfig(
        enabled=enabled,
        interval="" if interval is None else _as_str(interval, "health_check.interval"),
        timeout="" if timeout is None else _as_str(timeout, "health_check.timeout"),
        unhealthy_after=(
            0
            if unhealthy_after is None
            else _as_int(unhealthy_after, "health_check.unhealthy_after")
        ),
    )


@dataclass
class Config:
    """The whole configuration: services and optional health checks."""

    services: list[Service] = field(default_factory=list)
    health_check: Optional[HealthCheckConfig] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """Build a configuration from a parsed YAML document."""
        if data is None:
            return cls()
        doc = _as_mapping(data, "configuration")
        raw_services = doc.get("services")
        if raw_services is None:
            raw_services = []
        if not isinstance(raw_services, list):
            raise ConfigError("services must be a list")
        raw_hc = doc.get("health_check")
        return cls(
            services=[_service_from_dict(item) for item in raw_services],
            health_check=None if raw_hc is None else _health_check_from_dict(raw_hc),
        )

    def find_service(self, name: str) -> Optional[Service]:
        """Return the first service with the given name, or None."""
        return next((svc for svc in self.services if svc.name == name), None)


def load_config(path: Union[str, Path]) -> Config:
    """Read and parse a configuration file.

    Raises OSError if the file cannot be read and ConfigError if it is not
    a valid configuration.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    return Config.from_dict(data)