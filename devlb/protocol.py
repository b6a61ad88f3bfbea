"""Messages exchanged with the daemon over its control socket."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class ProtocolError(ValueError):
    """Raised when a message does not have the expected shape."""


class Action(str, Enum):
    """Request actions understood by the daemon."""

    ROUTE = "route"
    UNROUTE = "unroute"
    STATUS = "status"
    STOP = "stop"
    REGISTER = "register"
    UNREGISTER = "unregister"
    SWITCH = "switch"
    ALLOCATE = "allocate"


def _mapping(data: Any, kind: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise ProtocolError(f"{kind} must be a JSON object, got {type(data).__name__}")
    return data


def _int(data: Mapping, key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError(f"{key} must be an integer, got {value!r}")
    return value


def _str(data: Mapping, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ProtocolError(f"{key} must be a string, got {value!r}")
    return value


def _bool(data: Mapping, key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ProtocolError(f"{key} must be a boolean, got {value!r}")
    return value


@dataclass
class Request:
    """A request: an action and an optional JSON payload."""

    action: Union[Action, str]
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        action = self.action.value if isinstance(self.action, Action) else self.action
        out: dict[str, Any] = {"action": action}
        if self.data is not None:
            out["data"] = self.data
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "Request":
        doc = _mapping(data, "request")
        raw = _str(doc, "action")
        try:
            action: Union[Action, str] = Action(raw)
        except ValueError:
            action = raw
        return cls(action=action, data=doc.get("data"))


@dataclass
class Response:
    """A reply: success flag, optional payload and error text."""

    success: bool
    data: Any = None
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        if self.error:
            out["error"] = self.error
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "Response":
        doc = _mapping(data, "response")
        return cls(success=_bool(doc, "success"), data=doc.get("data"), error=_str(doc, "error"))


@dataclass
class RouteRequest:
    service: str
    port: int
    label: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"service": self.service, "port": self.port}
        if self.label:
            out["label"] = self.label
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "RouteRequest":
        doc = _mapping(data, "route request")
        return cls(service=_str(doc, "service"), port=_int(doc, "port"), label=_str(doc, "label"))


@dataclass
class UnrouteRequest:
    service: str

    def to_dict(self) -> dict[str, Any]:
        return {"service": self.service}

    @classmethod
    def from_dict(cls, data: Any) -> "UnrouteRequest":
        return cls(service=_str(_mapping(data, "unroute request"), "service"))


@dataclass
class BackendInfo:
    """Status of one backend behind a listen port."""

    port: int
    label: str = ""
    active: bool = False
    pid: int = 0
    healthy: Optional[bool] = None
    last_error: str = ""
    total_conns: int = 0
    active_conns: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    log_file: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"port": self.port, "label": self.label, "active": self.active}
        if self.pid:
            out["pid"] = self.pid
        if self.healthy is not None:
            out["healthy"] = self.healthy
        optional = {
            "last_error": self.last_error,
            "total_conns": self.total_conns,
            "active_conns": self.active_conns,
            "bytes_in": self.bytes_in,
            "bytes_out": self.bytes_out,
            "log_file": self.log_file,
        }
        out.update((key, value) for key, value in optional.items() if value)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "BackendInfo":
        doc = _mapping(data, "backend info")
        healthy = doc.get("healthy")
        if healthy is not None and not isinstance(healthy, bool):
            raise ProtocolError(f"healthy must be a boolean, got {healthy!r}")
        return cls(
            port=_int(doc, "port"),
            label=_str(doc, "label"),
            active=_bool(doc, "active"),
            pid=_int(doc, "pid"),
            healthy=healthy,
            last_error=_str(doc, "last_error"),
            total_conns=_int(doc, "total_conns"),
            active_conns=_int(doc, "active_conns"),
            bytes_in=_int(doc, "bytes_in"),
            bytes_out=_int(doc, "bytes_out"),
            log_file=_str(doc, "log_file"),
        )


@dataclass
class StatusEntry:
    """Status of one listen port."""

    listen_port: int
    status: str
    service: str = ""
    backend_port: int = 0
    label: str = ""
    active_conns: int = 0
    backends: list[BackendInfo] = field(default_factory=list)
    blocked_by: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.service:
            out["service"] = self.service
        out["listen_port"] = self.listen_port
        if self.backend_port:
            out["backend_port"] = self.backend_port
        if self.label:
            out["label"] = self.label
        out["status"] = self.status
        out["active_conns"] = self.active_conns
        if self.backends:
            out["backends"] = [b.to_dict() for b in self.backends]
        if self.blocked_by:
            out["blocked_by"] = self.blocked_by
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "StatusEntry":
        doc = _mapping(data, "status entry")
        raw_backends = doc.get("backends") or []
        if not isinstance(raw_backends, list):
            raise ProtocolError("backends must be a list")
        return cls(
            listen_port=_int(doc, "listen_port"),
            status=_str(doc, "status"),
            service=_str(doc, "service"),
            backend_port=_int(doc, "backend_port"),
            label=_str(doc, "label"),
            active_conns=_int(doc, "active_conns"),
            backends=[BackendInfo.from_dict(b) for b in raw_backends],
            blocked_by=_str(doc, "blocked_by"),
        )


@dataclass
class StatusResponse:
    entries: list[StatusEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"entries": [e.to_dict() for e in self.entries]}

    @classmethod
    def from_dict(cls, data: Any) -> "StatusResponse":
        raw = _mapping(data, "status response").get("entries") or []
        if not isinstance(raw, list):
            raise ProtocolError("entries must be a list")
        return cls(entries=[StatusEntry.from_dict(e) for e in raw])


@dataclass
class RegisterRequest:
    listen_port: int
    backend_port: int
    label: str = ""
    pid: int = 0
    log_file: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "listen_port": self.listen_port,
            "backend_port": self.backend_port,
            "label": self.label,
        }
        if self.pid:
            out["pid"] = self.pid
        if self.log_file:
            out["log_file"] = self.log_file
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "RegisterRequest":
        doc = _mapping(data, "register request")
        return cls(
            listen_port=_int(doc, "listen_port"),
            backend_port=_int(doc, "backend_port"),
            label=_str(doc, "label"),
            pid=_int(doc, "pid"),
            log_file=_str(doc, "log_file"),
        )


@dataclass
class UnregisterRequest:
    listen_port: int
    backend_port: int

    def to_dict(self) -> dict[str, Any]:
        return {"listen_port": self.listen_port, "backend_port": self.backend_port}

    @classmethod
    def from_dict(cls, data: Any) -> "UnregisterRequest":
        doc = _mapping(data, "unregister request")
        return cls(listen_port=_int(doc, "listen_port"), backend_port=_int(doc, "backend_port"))


@dataclass
class SwitchRequest:
    """Switch request; a listen port of 0 means every port."""

    label: str
    listen_port: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.listen_port:
            out["listen_port"] = self.listen_port
        out["label"] = self.label
        return out

    @classmethod
    def from_dict(cls, data: Any) -> "SwitchRequest":
        doc = _mapping(data, "switch request")
        return cls(label=_str(doc, "label"), listen_port=_int(doc, "listen_port"))


@dataclass
class AllocateRequest:
    listen_port: int

    def to_dict(self) -> dict[str, Any]:
        return {"listen_port": self.listen_port}

    @classmethod
    def from_dict(cls, data: Any) -> "AllocateRequest":
        return cls(listen_port=_int(_mapping(data, "allocate request"), "listen_port"))


@dataclass
class AllocateResponse:
    backend_port: int

    def to_dict(self) -> dict[str, Any]:
        return {"backend_port": self.backend_port}

    @classmethod
    def from_dict(cls, data: Any) -> "AllocateResponse":
        return cls(backend_port=_int(_mapping(data, "allocate response"), "backend_port"))