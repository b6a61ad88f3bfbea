"""Parsing of port and switch arguments given on the command line."""

from __future__ import annotations

import re
from collections.abc import Sequence

_INT_RE = re.compile(r"[+-]?[0-9]+")


def _to_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(text)
    return int(text)


def parse_switch_args(args: Sequence[str]) -> tuple[int, str]:
    """Parse ``[port] <label>``; a missing port is returned as 0."""
    if len(args) == 1:
        return 0, args[0]
    if len(args) == 2:
        try:
            port = _to_int(args[0])
        except ValueError:
            raise ValueError(f"invalid port: {args[0]}") from None
        return port, args[1]
    raise ValueError(f"expected 1 or 2 arguments, got {len(args)}")


def parse_exec_port_args(arg: str) -> tuple[list[int], dict[int, int]]:
    """Parse comma-separated ``<port>`` or ``<port>:<backend-port>`` specs.

    Returns the listen ports in order and the explicit backend overrides.
    """
    if arg == "":
        raise ValueError("empty port argument")

    listen_ports: list[int] = []
    backend_ports: dict[int, int] = {}
    for spec in arg.split(","):
        parts = spec.split(":")
        if len(parts) > 2:
            raise ValueError(
                f"invalid port spec: {spec} (expected <port> or <port>:<backend-port>)"
            )
        try:
            listen = _to_int(parts[0])
        except ValueError:
            raise ValueError(f"invalid listen port: {parts[0]}") from None
        if len(parts) == 2:
            try:
                backend_ports[listen] = _to_int(parts[1])
            except ValueError:
                raise ValueError(f"invalid backend port: {parts[1]}") from None
        listen_ports.append(listen)
    return listen_ports, backend_ports