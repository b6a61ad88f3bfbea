# devlb

devlb is the control side of a local TCP reverse proxy for development.
The idea: several checkouts (worktrees) of one project run side by side,
each on its own backend port, while one well-known listen port (say `:3000`)
forwards traffic to whichever backend is active. Backends are told apart by
a label, usually the branch name.

This package contains:

- `devlb.cli` – the `devlb` command, which talks to a running daemon over a
  Unix socket
- `devlb.client` – `DaemonClient`, the socket client used by the command
- `devlb.protocol` – the JSON request and response messages (`Action`,
  `Request`, `Response`, `StatusResponse`, `RegisterRequest`, ...)
- `devlb.config` – loading of `devlb.yaml` (`load_config`, `Config`,
  `Service`, `HealthCheckConfig`)
- `devlb.state` – `StateManager`, which keeps routes and backends in
  `state.yaml`
- `devlb.watcher` – `diff_configs` and `ConfigWatcher`, which polls the
  configuration file and reports changes
- `devlb.portspec` – parsing of `[port] <label>` and
  `<port>[:<backend>][,...]` arguments
- `devlb.logs` – reading and following the log files of backends
- `devlb.status_view` – text rendering of the routing table

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Files

Everything lives under `~/.devlb`:

- `~/.devlb/devlb.yaml` – service configuration
- `~/.devlb/state.yaml` – routing state written by `StateManager`
- `~/.devlb/run/daemon.sock` – the daemon's control socket

`devlb init` writes this template (and refuses to overwrite an existing
file):

```yaml
services:
  - name: api
    port: 3000
  - name: auth
    port: 8995
  # Add more services as needed
```

The configuration may also hold a `health_check` section, which
`load_config` reads into `HealthCheckConfig`:

```yaml
health_check:
  enabled: true
  interval: 5s
  timeout: 1s
  unhealthy_after: 3
```

## Commands

Every command accepts `-o/--output text|json` and `--debug`. Any other
output format is rejected. On failure the command prints `Error: ...` to
standard error and exits with status 1.

```
devlb init                          # create ~/.devlb/devlb.yaml
devlb status [-v]                   # show the routing table
devlb switch [port] <label>         # make the backend with <label> active
devlb unroute <port> <backend-port> # remove a backend from a listen port
devlb logs [label] [-f] [-n N] [--port P]
devlb stop                          # ask the daemon to stop
devlb --version
```

- `devlb switch feat-login` switches every listen port that has a backend
  labelled `feat-login`; `devlb switch 3000 feat-login` switches only `:3000`.
- `devlb status -v` adds total connections and bytes in/out per backend.
  Backends are shown as active, standby or unhealthy.
- `devlb logs` prints the last 50 lines (`-n`) of each backend's log file,
  prefixed with `[label]` when more than one log is shown; `-f` keeps
  following them until Ctrl-C. A label argument or `--port` narrows the
  choice.
- `devlb stop` waits up to about three seconds for the daemon to go away.

With `-o json` each command prints an indented JSON object instead of text.

## Library use

```python
from devlb.cli import get_socket_path
from devlb.client import DaemonClient
from devlb.status_view import render_status

client = DaemonClient(get_socket_path())
if client.is_running():
    print(render_status(client.status(), verbose=True), end="")
```

`DaemonClient` raises `DaemonNotRunningError` when nothing listens on the
socket and `DaemonError` when the daemon rejects a request. It also offers
`route`, `unroute`, `register`, `unregister`, `allocate` and `switch`.

```python
from devlb.portspec import parse_exec_port_args

parse_exec_port_args("3000:3001,8995")
# ([3000, 8995], {3000: 3001})
```

## What this package does not do

This package is a client and a set of building blocks. It does not contain
the daemon: nothing here listens on the proxy ports, forwards connections,
runs health checks or serves the control socket. A daemon speaking the
protocol in `devlb.protocol` must already be running for `status`, `switch`,
`unroute`, `logs` and `stop` to work. There are likewise no commands to start
the daemon, to register a backend by hand, or to run a program with its
listen ports swapped for backend ports.