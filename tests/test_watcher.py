import os
import queue
import time

from devlb.config import Config, Service
from devlb.watcher import ConfigDiff, ConfigWatcher, ServiceChange, diff_configs


def test_diff_no_change():
    old = Config(services=[Service("api", 8080)])
    new = Config(services=[Service("api", 8080)])
    assert diff_configs(old, new) == ConfigDiff()


def test_diff_add_service():
    old = Config(services=[Service("api", 8080)])
    new = Config(services=[Service("api", 8080), Service("auth", 9090)])
    diff = diff_configs(old, new)
    assert [s.name for s in diff.added] == ["auth"]


def test_diff_remove_service():
    old = Config(services=[Service("api", 8080), Service("auth", 9090)])
    new = Config(services=[Service("api", 8080)])
    diff = diff_configs(old, new)
    assert [s.name for s in diff.removed] == ["auth"]


def test_diff_change_port():
    old = Config(services=[Service("api", 8080)])
    new = Config(services=[Service("api", 9090)])
    diff = diff_configs(old, new)
    assert diff.changed == [ServiceChange("api", 8080, 9090)]


def test_diff_mixed():
    old = Config(services=[Service("api", 8080), Service("old-svc", 7070)])
    new = Config(services=[Service("api", 9090), Service("new-svc", 6060)])
    diff = diff_configs(old, new)
    assert len(diff.added) == 1
    assert len(diff.removed) == 1
    assert len(diff.changed) == 1


def _atomic_write(path, text):
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(text)
    os.replace(tmp, path)


def test_watcher_detects_change(tmp_path):
    cfg_path = tmp_path / "devlb.yaml"
    cfg_path.write_text("services:\n  - name: api\n    port: 8080\n")

    diffs = queue.Queue()
    watcher = ConfigWatcher(cfg_path, 0.1, lambda old, new: diffs.put(diff_configs(old, new)))
    watcher.start()
    try:
        time.sleep(0.2)
        _atomic_write(
            cfg_path,
            "services:\n  - name: api\n    port: 8080\n  - name: auth\n    port: 9090\n",
        )
        diff = diffs.get(timeout=2)
    finally:
        watcher.stop()

    assert [s.name for s in diff.added] == ["auth"]


def test_watcher_no_change_no_callback(tmp_path):
    cfg_path = tmp_path / "devlb.yaml"
    cfg_path.write_text("services:\n  - name: api\n    port: 8080\n")

    calls = []
    watcher = ConfigWatcher(cfg_path, 0.1, lambda old, new: calls.append(new))
    watcher.start()
    time.sleep(0.5)
    watcher.stop()

    assert calls == []


def test_watcher_ignores_unparseable_update(tmp_path):
    cfg_path = tmp_path / "devlb.yaml"
    cfg_path.write_text("services:\n  - name: api\n    port: 8080\n")

    calls = []
    with ConfigWatcher(cfg_path, 0.05, lambda old, new: calls.append(new)):
        _atomic_write(cfg_path, "services: 42\n")
        time.sleep(0.3)

    assert calls == []


def test_stopped_watcher_does_not_call_back(tmp_path):
    cfg_path = tmp_path / "devlb.yaml"
    cfg_path.write_text("services:\n  - name: api\n    port: 8080\n")

    calls = []
    watcher = ConfigWatcher(cfg_path, 0.05, lambda old, new: calls.append(new))
    watcher.start()
    watcher.stop()
    watcher.stop()
    _atomic_write(cfg_path, "services:\n  - name: web\n    port: 1\n")
    time.sleep(0.3)

    assert calls == []