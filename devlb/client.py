"""Client for the daemon's control socket."""

from __future__ import annotations

import json
import socket
from pathlib import Path
from typing import Any, Optional, Union

from .protocol import (
    Action,
    AllocateRequest,
    AllocateResponse,
    ProtocolError,
    RegisterRequest,
    Request,
    Response,
    RouteRequest,
    StatusResponse,
    SwitchRequest,
    UnregisterRequest,
    UnrouteRequest,
)

NOT_RUNNING_MESSAGE = "daemon not running. Start with: devlb start"


class DaemonError(RuntimeError):
    """Raised when the daemon rejects a request or replies with garbage."""


class DaemonNotRunningError(DaemonError):
    """Raised when nothing is listening on the control socket."""

    def __init__(self, message: str = NOT_RUNNING_MESSAGE) -> None:
        super().__init__(message)


class DaemonClient:
    """Sends one JSON request per connection and reads one JSON reply."""

    def __init__(self, socket_path: Union[str, Path]) -> None:
        self.socket_path = str(socket_path)

    def _connect(self) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self.socket_path)
        except OSError:
            sock.close()
            raise
        return sock

    def is_running(self) -> bool:
        """Return True if the daemon accepts connections."""
        try:
            sock = self._connect()
        except OSError:
            return False
        sock.close()
        return True

    def _send(self, request: Request) -> Response:
        try:
            sock = self._connect()
        except OSError as exc:
            raise DaemonNotRunningError() from exc
        with sock, sock.makefile("rwb") as stream:
            stream.write(json.dumps(request.to_dict()).encode("utf-8") + b"\n")
            stream.flush()
            line = stream.readline()
        if not line.strip():
            raise DaemonError("empty response from daemon")
        try:
            return Response.from_dict(json.loads(line))
        except (ValueError, ProtocolError) as exc:
            raise DaemonError(f"malformed response from daemon: {exc}") from exc

    def _call(self, action: Action, payload: Optional[dict[str, Any]] = None) -> Response:
        response = self._send(Request(action=action, data=payload))
        if not response.success:
            raise DaemonError(response.error)
        return response

    def route(self, service: str, port: int, label: str) -> None:
        """Point a configured service at a backend port."""
        self._call(Action.ROUTE, RouteRequest(service=service, port=port, label=label).to_dict())

    def unroute(self, service: str) -> None:
        """Clear the backend of a configured service."""
        self._call(Action.UNROUTE, UnrouteRequest(service=service).to_dict())

    def status(self) -> StatusResponse:
        """Fetch the routing table."""
        response = self._call(Action.STATUS)
        try:
            return StatusResponse.from_dict(response.data)
        except ProtocolError as exc:
            raise DaemonError(f"malformed status response: {exc}") from exc

    def register(
        self, listen_port: int, backend_port: int, label: str, pid: int, log_file: str
    ) -> None:
        """Register a backend for a listen port."""
        request = RegisterRequest(
            listen_port=listen_port,
            backend_port=backend_port,
            label=label,
            pid=pid,
            log_file=log_file,
        )
        self._call(Action.REGISTER, request.to_dict())

    def unregister(self, listen_port: int, backend_port: int) -> None:
        """Remove a backend from a listen port."""
        request = UnregisterRequest(listen_port=listen_port, backend_port=backend_port)
        self._call(Action.UNREGISTER, request.to_dict())

    def switch(self, listen_port: int, label: str) -> None:
        """Make the backend with this label active; port 0 means every port."""
        self._call(Action.SWITCH, SwitchRequest(label=label, listen_port=listen_port).to_dict())

    def allocate(self, listen_port: int) -> int:
        """Ask the daemon for a free backend port."""
        response = self._call(Action.ALLOCATE, AllocateRequest(listen_port=listen_port).to_dict())
        try:
            return AllocateResponse.from_dict(response.data).backend_port
        except ProtocolError as exc:
            raise DaemonError(f"malformed allocate response: {exc}") from exc

    def stop(self) -> None:
        """Ask the daemon to shut down."""
        self._call(Action.STOP)