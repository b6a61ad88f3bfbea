"""Persistent routing state kept in ``state.yaml``."""

from __future__ import annotations

import logging
import os
import socket
import threading
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional, Union

import yaml

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "state.yaml"


class BackendNotFoundError(LookupError):
    """Raised when no backend carries the requested label."""


@dataclass
class BackendEntry:
    """A backend registered for a listen port."""

    backend_port: int
    label: str = ""
    active: bool = False
    pid: int = 0
    log_file: str = ""


@dataclass
class RouteEntry:
    """A single route by service name."""

    backend_port: int
    label: str = ""
    active: bool = False


def _route_to_dict(route: RouteEntry) -> dict[str, Any]:
    out: dict[str, Any] = {"backend_port": route.backend_port}
    if route.label:
        out["label"] = route.label
    out["active"] = route.active
    return out


def _route_from_dict(data: Any) -> RouteEntry:
    if not isinstance(data, Mapping):
        raise ValueError(f"route entry must be a mapping, got {data!r}")
    return RouteEntry(
        backend_port=int(data.get("backend_port", 0)),
        label=str(data.get("label") or ""),
        active=bool(data.get("active", False)),
    )


def _backend_to_dict(entry: BackendEntry) -> dict[str, Any]:
    out: dict[str, Any] = {"backend_port": entry.backend_port}
    if entry.label:
        out["label"] = entry.label
    out["active"] = entry.active
    if entry.pid:
        out["pid"] = entry.pid
    if entry.log_file:
        out["log_file"] = entry.log_file
    return out


def _backend_from_dict(data: Any) -> BackendEntry:
    if not isinstance(data, Mapping):
        raise ValueError(f"backend entry must be a mapping, got {data!r}")
    return BackendEntry(
        backend_port=int(data.get("backend_port", 0)),
        label=str(data.get("label") or ""),
        active=bool(data.get("active", False)),
        pid=int(data.get("pid") or 0),
        log_file=str(data.get("log_file") or ""),
    )


def is_process_alive(pid: int) -> bool:
    """Return True if a process with this PID exists and can be signalled."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True


class StateManager:
    """Thread-safe holder of routes and backends, persisted as YAML."""

    def __init__(self, data_dir: Union[str, Path]) -> None:
        directory = Path(data_dir)
        directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._file_path = directory / STATE_FILE_NAME
        self._routes: dict[str, RouteEntry] = {}
        self._backends: dict[int, list[BackendEntry]] = {}
        try:
            self._load()
        except FileNotFoundError:
            pass

    def _load(self) -> None:
        text = self._file_path.read_text(encoding="utf-8")
        data = yaml.safe_load(text)
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValueError(f"state file {self._file_path} is not a mapping")
        routes = {
            str(name): _route_from_dict(entry)
            for name, entry in (data.get("routes") or {}).items()
        }
        backends = {
            int(port): [_backend_from_dict(entry) for entry in entries or []]
            for port, entries in (data.get("backends") or {}).items()
        }
        self._routes = routes
        self._backends = backends

    @property
    def file_path(self) -> Path:
        """Path of the state file."""
        return self._file_path

    def save(self) -> None:
        """Write the current state to disk."""
        with self._lock:
            doc: dict[str, Any] = {}
            if self._routes:
                doc["routes"] = {
                    name: _route_to_dict(self._routes[name]) for name in sorted(self._routes)
                }
            if self._backends:
                doc["backends"] = {
                    port: [_backend_to_dict(b) for b in self._backends[port]]
                    for port in sorted(self._backends)
                }
            text = yaml.safe_dump(doc, sort_keys=False, allow_unicode=True)
        self._file_path.write_text(text, encoding="utf-8")

    # Routes keyed by service name.

    def set_route(self, name: str, backend_port: int, label: str) -> None:
        with self._lock:
            self._routes[name] = RouteEntry(backend_port=backend_port, label=label, active=True)

    def get_route(self, name: str) -> Optional[RouteEntry]:
        with self._lock:
            route = self._routes.get(name)
            return None if route is None else replace(route)

    def delete_route(self, name: str) -> None:
        with self._lock:
            self._routes.pop(name, None)

    def get_all_routes(self) -> dict[str, RouteEntry]:
        with self._lock:
            return {name: replace(route) for name, route in self._routes.items()}

    # Backends keyed by listen port.

    def add_backend(
        self, listen_port: int, backend_port: int, label: str, pid: int, log_file: str
    ) -> None:
        """Register a backend; the first one for a port becomes active."""
        with self._lock:
            backends = self._backends.setdefault(listen_port, [])
            if any(b.backend_port == backend_port for b in backends):
                return
            backends.append(
                BackendEntry(
                    backend_port=backend_port,
                    label=label,
                    active=not backends,
                    pid=pid,
                    log_file=log_file,
                )
            )

    def remove_backend(self, listen_port: int, backend_port: int) -> None:
        """Remove a backend, promoting the next one if the active one went away."""
        with self._lock:
            backends = self._backends.get(listen_port, [])
            victim = next((b for b in backends if b.backend_port == backend_port), None)
            if victim is None:
                return
            backends.remove(victim)
            if not backends:
                self._backends.pop(listen_port, None)
            elif victim.active:
                backends[0].active = True

    def switch_active(self, listen_port: int, label: str) -> None:
        """Make the backend with this label the active one for the port."""
        with self._lock:
            backends = self._backends.get(listen_port, [])
            if not any(b.label == label for b in backends):
                raise BackendNotFoundError(
                    f"backend with label {label!r} not found for port {listen_port}"
                )
            for b in backends:
                b.active = b.label == label

    def get_backends(self, listen_port: int) -> list[BackendEntry]:
        with self._lock:
            return [replace(b) for b in self._backends.get(listen_port, [])]

    def get_all_backends(self) -> dict[int, list[BackendEntry]]:
        with self._lock:
            return {
                port: [replace(b) for b in backends]
                for port, backends in self._backends.items()
            }

    def clean_stale_pids(self) -> int:
        """Drop backends whose process has exited; return how many were dropped."""
        removed = 0
        with self._lock:
            for listen_port in list(self._backends):
                live = []
                for b in self._backends[listen_port]:
                    if b.pid > 0 and not is_process_alive(b.pid):
                        removed += 1
                        logger.info(
                            "removing stale backend listen_port=%d backend_port=%d pid=%d",
                            listen_port,
                            b.backend_port,
                            b.pid,
                        )
                    else:
                        live.append(b)
                if not live:
                    del self._backends[listen_port]
                    continue
                self._backends[listen_port] = live
                if not any(b.active for b in live):
                    live[0].active = True
        return removed

    def allocate_port(self) -> int:
        """Find a free local TCP port by briefly binding to port 0."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            return sock.getsockname()[1]