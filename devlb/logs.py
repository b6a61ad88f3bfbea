"""Reading and following log files of backends started through exec."""

from __future__ import annotations

import json
import sys
import threading
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .protocol import StatusResponse

POLL_INTERVAL = 0.2
READ_CHUNK = 4096


class NoLogsError(LookupError):
    """Raised when no backend matching the filters has a log file."""


@dataclass(frozen=True)
class LogTarget:
    """A backend label and the log file its output goes to."""

    label: str
    log_file: str


def collect_log_targets(
    status: StatusResponse, label: str = "", port: int = 0
) -> list[LogTarget]:
    """Pick the log files of backends, filtered by label and listen port.

    Each log file appears once. Raises NoLogsError if nothing matches.
    """
    targets: list[LogTarget] = []
    seen: set[str] = set()
    for entry in status.entries:
        if port > 0 and entry.listen_port != port:
            continue
        for backend in entry.backends:
            if not backend.log_file or (label and backend.label != label):
                continue
            if backend.log_file in seen:
                continue
            seen.add(backend.log_file)
            targets.append(LogTarget(label=backend.label, log_file=backend.log_file))

    if not targets:
        if label:
            raise NoLogsError(f"no logs found for label {json.dumps(label)}")
        raise NoLogsError("no backends with log files found")
    return targets


def _decode_line(raw: bytes) -> str:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")


def tail_lines(path: Union[str, Path], n: int) -> list[str]:
    """Return the last ``n`` lines of a file, without line endings."""
    if n <= 0:
        with open(path, "rb"):
            return []
    with open(path, "rb") as handle:
        return [_decode_line(raw) for raw in deque(handle, maxlen=n)]


def format_line(label: str, line: str, multi: bool) -> str:
    """Prefix a line with its label when several logs are shown together."""
    return f"[{label}] {line}" if multi else line


def _print_lines(label: str, lines: Iterable[str], multi: bool, lock: threading.Lock) -> None:
    with lock:
        for line in lines:
            print(format_line(label, line, multi), flush=True)


def show_snapshot(targets: Sequence[LogTarget], lines: int, multi: bool) -> None:
    """Print the last ``lines`` lines of every target's log."""
    for target in targets:
        try:
            tail = tail_lines(target.log_file, lines)
        except OSError as exc:
            print(f"warning: cannot read {target.log_file}: {exc}", file=sys.stderr)
            continue
        for line in tail:
            print(format_line(target.label, line, multi))


def _follow_one(
    target: LogTarget,
    initial_lines: int,
    multi: bool,
    stop_event: threading.Event,
    lock: threading.Lock,
) -> None:
    try:
        handle = open(target.log_file, "rb")
    except OSError as exc:
        print(f"warning: cannot open {target.log_file}: {exc}", file=sys.stderr)
        return

    with handle:
        try:
            initial = tail_lines(target.log_file, initial_lines)
        except OSError:
            initial = []
        _print_lines(target.label, initial, multi, lock)

        offset = handle.seek(0, 2)
        partial = b""
        while not stop_event.is_set():
            try:
                handle.seek(offset)
                chunk = handle.read(READ_CHUNK)
            except OSError:
                return
            if chunk:
                offset += len(chunk)
                *complete, partial = (partial + chunk).split(b"\n")
                _print_lines(
                    target.label,
                    (raw.decode("utf-8", errors="replace") for raw in complete),
                    multi,
                    lock,
                )
                continue
            if stop_event.wait(POLL_INTERVAL):
                return


def follow_logs(
    targets: Sequence[LogTarget],
    initial_lines: int,
    multi: bool,
    stop_event: Optional[threading.Event] = None,
) -> None:
    """Follow every target's log, like ``tail -f``, until ``stop_event`` is set.

    Without an event, follows until interrupted with Ctrl-C.
    """
    event = stop_event if stop_event is not None else threading.Event()
    lock = threading.Lock()
    threads = [
        threading.Thread(
            target=_follow_one,
            args=(target, initial_lines, multi, event, lock),
            name=f"follow-{target.label}",
            daemon=True,
        )
        for target in targets
    ]
    for thread in threads:
        thread.start()
    try:
        while not event.wait(POLL_INTERVAL):
            pass
    except KeyboardInterrupt:
        event.set()
    for thread in threads:
        thread.join()