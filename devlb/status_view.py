"""Text rendering of the daemon's routing table."""

from __future__ import annotations

from collections.abc import Sequence

from .protocol import BackendInfo, StatusEntry, StatusResponse

COLUMN_PADDING = 2

_HEADER = ["PORT", "BACKEND", "LABEL", "STATUS", "CONNS"]
_VERBOSE_HEADER = _HEADER + ["TOTAL", "BYTES_IN", "BYTES_OUT"]


def format_bytes(b: int) -> str:
    """Format a byte count with a binary unit suffix: B, K, M or G."""
    if b >= 1 << 30:
        return f"{b / (1 << 30):.1f}G"
    if b >= 1 << 20:
        return f"{b / (1 << 20):.1f}M"
    if b >= 1 << 10:
        return f"{b / (1 << 10):.1f}K"
    return f"{b}B"


def _align(rows: Sequence[Sequence[str]], padding: int = COLUMN_PADDING) -> str:
    """Left-align cells in columns; the last cell of a row is not padded."""
    widths: dict[int, int] = {}
    for row in rows:
        for index, cell in enumerate(row[:-1]):
            widths[index] = max(widths.get(index, 0), len(cell))
    lines = []
    for row in rows:
        if not row:
            lines.append("")
            continue
        padded = "".join(
            cell.ljust(widths[index] + padding) for index, cell in enumerate(row[:-1])
        )
        lines.append(padded + row[-1])
    return "".join(line + "\n" for line in lines)


def _blocked_row(entry: StatusEntry, listen: str, verbose: bool) -> list[str]:
    cell = f"✗ blocked ({entry.blocked_by or 'unknown'})"
    row = [listen, "-", "-", cell, "-"]
    if verbose:
        row += ["-", "-", "-"]
    return row


def _backend_row(
    entry: StatusEntry, backend: BackendInfo, listen: str, verbose: bool
) -> list[str]:
    icon, text = ("●", "active") if backend.active else ("○", "standby")
    if backend.healthy is False:
        icon, text = "✗", "unhealthy"
    row = [listen, f":{backend.port}", backend.label or "-", f"{icon} {text}"]
    if verbose:
        row += [
            str(backend.active_conns),
            str(backend.total_conns),
            format_bytes(backend.bytes_in),
            format_bytes(backend.bytes_out),
        ]
    else:
        row.append(str(entry.active_conns))
    return row


def _plain_row(entry: StatusEntry, listen: str, verbose: bool) -> list[str]:
    routed = entry.backend_port > 0
    backend = f":{entry.backend_port}" if routed else "-"
    icon, text = ("●", "active") if routed else ("○", "idle")
    row = [listen, backend, entry.label or "-", f"{icon} {text}", str(entry.active_conns)]
    if verbose:
        row += ["-", "-", "-"]
    return row


def render_status(status: StatusResponse, verbose: bool = False) -> str:
    """Render the routing table as aligned text, one line per backend."""
    rows: list[list[str]] = [list(_VERBOSE_HEADER if verbose else _HEADER)]
    for entry in status.entries:
        listen = f":{entry.listen_port}"
        if entry.status == "blocked":
            rows.append(_blocked_row(entry, listen, verbose))
        elif entry.backends:
            rows.extend(_backend_row(entry, b, listen, verbose) for b in entry.backends)
        else:
            rows.append(_plain_row(entry, listen, verbose))
    return _align(rows)