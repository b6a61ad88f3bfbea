"""Command line interface for controlling the devlb daemon."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Optional

from .client import DaemonClient, DaemonError, DaemonNotRunningError
from .logs import collect_log_targets, follow_logs, show_snapshot
from .portspec import parse_switch_args
from .status_view import render_status

VERSION = "dev"
OUTPUT_FORMATS = ("text", "json")
STOP_POLL_ATTEMPTS = 30
STOP_POLL_INTERVAL = 0.1

CONFIG_TEMPLATE = """services:
  - name: api
    port: 3000
  - name: auth
    port: 8995
  # Add more services as needed
"""

_INT_RE = re.compile(r"[+-]?[0-9]+")


class CliError(Exception):
    """Raised when a command cannot complete; its text is shown to the user."""


def is_json(output_format: str) -> bool:
    """Return True if the output format asks for JSON."""
    return output_format == "json"


def print_json(value: Any) -> None:
    """Print a value as JSON indented by two spaces.

    Objects with ``to_dict`` keep their field order; plain mappings are
    printed with sorted keys.
    """
    if hasattr(value, "to_dict"):
        text = json.dumps(value.to_dict(), indent=2, ensure_ascii=False)
    else:
        text = json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)
    print(text)


def validate_output_format(output_format: str) -> str:
    """Return the format if it is known, else raise ValueError."""
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(
            f"invalid output format {json.dumps(output_format)}: must be text or json"
        )
    return output_format


def get_config_dir() -> Path:
    """Directory holding configuration, state and the control socket."""
    return Path.home() / ".devlb"


def get_socket_path() -> Path:
    return get_config_dir() / "run" / "daemon.sock"


def get_config_path() -> Path:
    return get_config_dir() / "devlb.yaml"


def _atoi(text: str, what: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise CliError(f"invalid {what}: {text}")
    return int(text)


def _running_client() -> DaemonClient:
    client = DaemonClient(get_socket_path())
    if not client.is_running():
        raise DaemonNotRunningError()
    return client


def _cmd_init(args: argparse.Namespace) -> int:
    path = get_config_path()
    get_config_dir().mkdir(parents=True, exist_ok=True)
    if path.exists():
        if is_json(args.output):
            print_json({"config_path": str(path), "already_exists": True})
            return 0
        raise CliError(f"config file already exists: {path}")
    path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    if is_json(args.output):
        print_json({"config_path": str(path)})
    else:
        print(f"Config file created: {path}")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    status = _running_client().status()
    if is_json(args.output):
        print_json(status)
    else:
        sys.stdout.write(render_status(status, args.verbose))
    return 0


def _cmd_stop(args: argparse.Namespace) -> int:
    client = DaemonClient(get_socket_path())
    if not client.is_running():
        if is_json(args.output):
            print_json({"stopped": False, "already_stopped": True})
        else:
            print("Daemon is not running")
        return 0

    client.stop()
    for _ in range(STOP_POLL_ATTEMPTS):
        if not client.is_running():
            if is_json(args.output):
                print_json({"stopped": True})
            else:
                print("Daemon stopped")
            return 0
        time.sleep(STOP_POLL_INTERVAL)

    message = "daemon did not stop in time"
    if is_json(args.output):
        print_json({"stopped": False, "error": message})
    raise CliError(message)


def _cmd_switch(args: argparse.Namespace) -> int:
    client = _running_client()
    listen_port, label = parse_switch_args(args.args)
    client.switch(listen_port, label)
    if is_json(args.output):
        print_json({"listen_port": listen_port, "label": label})
    elif listen_port > 0:
        print(f"Switched :{listen_port} → {label}")
    else:
        print(f"Switched all ports → {label}")
    return 0


def _cmd_unroute(args: argparse.Namespace) -> int:
    listen_port = _atoi(args.port, "listen port")
    backend_port = _atoi(args.backend_port, "backend port")
    client = _running_client()
    client.unregister(listen_port, backend_port)
    if is_json(args.output):
        print_json({"listen_port": listen_port, "backend_port": backend_port})
    else:
        print(f"Unrouted :{listen_port} → :{backend_port}")
    return 0


def _cmd_logs(args: argparse.Namespace) -> int:
    status = _running_client().status()
    targets = collect_log_targets(status, label=args.label, port=args.port)
    multi = len(targets) > 1
    if args.follow:
        follow_logs(targets, args.lines, multi)
    else:
        show_snapshot(targets, args.lines, multi)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="devlb",
        description="devlb is a local TCP reverse proxy for routing traffic "
        "between multiple worktrees.",
    )
    parser.add_argument("-o", "--output", default="text", help="Output format: text, json")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s version {VERSION}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-o", "--output", default=argparse.SUPPRESS, help="Output format: text, json"
    )
    common.add_argument(
        "--debug", action="store_true", default=argparse.SUPPRESS, help="Enable debug logging"
    )

    commands = parser.add_subparsers(dest="command", metavar="<command>")

    init = commands.add_parser(
        "init", parents=[common], help="Generate devlb.yaml configuration template"
    )
    init.set_defaults(handler=_cmd_init)

    status = commands.add_parser("status", parents=[common], help="Show routing table")
    status.add_argument(
        "-v", "--verbose", action="store_true",
        help="Show detailed metrics (total conns, bytes in/out)",
    )
    status.set_defaults(handler=_cmd_status)

    stop = commands.add_parser("stop", parents=[common], help="Stop the devlb daemon")
    stop.set_defaults(handler=_cmd_stop)

    switch = commands.add_parser(
        "switch", parents=[common], help="Switch active backend by label",
        description="Switch the active backend to the one matching the given label. "
        "With one argument, switches all ports. With two arguments, switches only "
        "the specified listen port.",
    )
    switch.add_argument("args", nargs="+", metavar="[port] label")
    switch.set_defaults(handler=_cmd_switch)

    unroute = commands.add_parser("unroute", parents=[common], help="Remove a backend route")
    unroute.add_argument("port")
    unroute.add_argument("backend_port", metavar="backend-port")
    unroute.set_defaults(handler=_cmd_unroute)

    logs = commands.add_parser(
        "logs", parents=[common], help="Show logs from exec-started backend processes"
    )
    logs.add_argument("label", nargs="?", default="")
    logs.add_argument(
        "-f", "--follow", action="store_true", help="Follow log output (like tail -f)"
    )
    logs.add_argument("-n", "--lines", type=int, default=50, help="Number of lines to show")
    logs.add_argument("--port", type=int, default=0, help="Filter by listen port")
    logs.set_defaults(handler=_cmd_logs)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line; return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0
    try:
        validate_output_format(args.output)
        if args.debug:
            logging.basicConfig(level=logging.DEBUG)
        return handler(args)
    except (CliError, DaemonError, ValueError, LookupError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1