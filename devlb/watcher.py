"""Detection of changes to the configuration file."""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from .config import Config, ConfigError, Service, load_config

logger = logging.getLogger(__name__)

OnChange = Callable[[Optional[Config], Config], None]


@dataclass
class ServiceChange:
    """A service whose port changed."""

    name: str
    old_port: int
    new_port: int


@dataclass
class ConfigDiff:
    """Services added, removed and changed between two configurations."""

    added: list[Service] = field(default_factory=list)
    removed: list[Service] = field(default_factory=list)
    changed: list[ServiceChange] = field(default_factory=list)


def diff_configs(old: Config, new: Config) -> ConfigDiff:
    """Compare two configurations by service name."""
    old_by_name = {svc.name: svc for svc in old.services}
    new_names = {svc.name for svc in new.services}
    diff = ConfigDiff()

    for svc in new.services:
        previous = old_by_name.get(svc.name)
        if previous is None:
            diff.added.append(svc)
        elif previous.port != svc.port:
            diff.changed.append(ServiceChange(svc.name, previous.port, svc.port))

    diff.removed = [svc for svc in old.services if svc.name not in new_names]
    return diff


class ConfigWatcher:
    """Polls a config file and calls ``on_change(old, new)`` when it changes.

    ``interval`` is the polling period in seconds.
    """

    def __init__(self, path: Union[str, Path], interval: float, on_change: OnChange) -> None:
        self._path = Path(path)
        self._interval = interval
        self._on_change = on_change
        self._last_hash: bytes = b""
        self._last_cfg: Optional[Config] = None
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Record the current file contents and begin polling in the background."""
        try:
            data = self._path.read_bytes()
        except OSError as exc:
            logger.error("config watcher: failed to read initial config %s: %s", self._path, exc)
            return
        self._last_hash = hashlib.sha256(data).digest()
        try:
            self._last_cfg = load_config(self._path)
        except (OSError, ConfigError):
            self._last_cfg = None
        self._thread = threading.Thread(target=self._loop, name="config-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop polling; calling it again does nothing."""
        if self._done.is_set():
            return
        self._done.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def __enter__(self) -> "ConfigWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _loop(self) -> None:
        while not self._done.wait(self._interval):
            self._check()

    def _check(self) -> None:
        try:
            data = self._path.read_bytes()
        except OSError:
            return
        digest = hashlib.sha256(data).digest()
        if digest == self._last_hash:
            return
        try:
            new_cfg = load_config(self._path)
        except (OSError, ConfigError) as exc:
            logger.warning(
                "config watcher: failed to parse updated config %s: %s", self._path, exc
            )
            return
        old_cfg = self._last_cfg
        self._last_hash = digest
        self._last_cfg = new_cfg
        logger.info("config watcher: config change detected in %s", self._path)
        self._on_change(old_cfg, new_cfg)