import os

import pytest
import yaml

from devlb.state import BackendNotFoundError, StateManager, is_process_alive

DEAD_PID = 99999999


@pytest.fixture
def sm(tmp_path):
    return StateManager(tmp_path)


def test_new_state_manager_is_empty(sm):
    assert sm.get_all_routes() == {}
    assert sm.get_all_backends() == {}


def test_creates_missing_data_dir(tmp_path):
    target = tmp_path / "a" / "b"
    StateManager(target)
    assert target.is_dir()


def test_set_and_get_route(sm):
    sm.set_route("api", 13000, "feat-x")
    r = sm.get_route("api")
    assert r is not None
    assert r.backend_port == 13000
    assert r.label == "feat-x"
    assert r.active is True


def test_delete_route(sm):
    sm.set_route("api", 13000, "feat-x")
    sm.delete_route("api")
    assert sm.get_route("api") is None


def test_get_all_routes(sm):
    sm.set_route("api", 13000, "feat-x")
    sm.set_route("auth", 18995, "feat-x")
    assert set(sm.get_all_routes()) == {"api", "auth"}


def test_get_all_routes_returns_copies(sm):
    sm.set_route("api", 13000, "feat-x")
    sm.get_all_routes()["api"].backend_port = 1
    assert sm.get_route("api").backend_port == 13000


def test_save_and_load(tmp_path):
    sm = StateManager(tmp_path)
    sm.set_route("api", 13000, "feat-x")
    sm.set_route("auth", 18995, "feat-y")
    sm.save()

    sm2 = StateManager(tmp_path)
    r = sm2.get_route("api")
    assert r.backend_port == 13000
    assert r.label == "feat-x"
    assert sm2.get_route("auth").backend_port == 18995


def test_state_file_path(tmp_path):
    sm = StateManager(tmp_path)
    assert sm.file_path == tmp_path / "state.yaml"


def test_add_backend(sm):
    sm.add_backend(3000, 3001, "worktree-a", 12345, "")
    backends = sm.get_backends(3000)
    assert len(backends) == 1
    b = backends[0]
    assert b.active is True
    assert b.backend_port == 3001
    assert b.label == "worktree-a"
    assert b.pid == 12345


def test_add_duplicate_backend_is_ignored(sm):
    sm.add_backend(3000, 3001, "a", 0, "")
    sm.add_backend(3000, 3001, "b", 0, "")
    backends = sm.get_backends(3000)
    assert [b.label for b in backends] == ["a"]


def test_add_multiple_backends(sm):
    sm.add_backend(3000, 3001, "a", 0, "")
    sm.add_backend(3000, 3002, "b", 0, "")
    backends = sm.get_backends(3000)
    assert len(backends) == 2
    assert backends[0].active is True
    assert backends[1].active is False


def test_remove_backend(sm):
    sm.add_backend(3000, 3001, "a", 0, "")
    sm.add_backend(3000, 3002, "b", 0, "")
    sm.remove_backend(3000, 3001)
    backends = sm.get_backends(3000)
    assert [b.backend_port for b in backends] == [3002]


def test_remove_active_promotes(sm):
    sm.add_backend(3000, 3001, "a", 0, "")
    sm.add_backend(3000, 3002, "b", 0, "")
    sm.remove_backend(3000, 3001)
    backends = sm.get_backends(3000)
    assert len(backends) == 1
    assert backends[0].active is True


def test_remove_last_backend_drops_port(sm):
    sm.add_backend(3000, 3001, "a", 0, "")
    sm.remove_backend(3000, 3001)
    assert 3000 not in sm.get_all_backends()


def test_switch_active(sm):
    sm.add_backend(3000, 3001, "a", 0, "")
    sm.add_backend(3000, 3002, "b", 0, "")
    sm.switch_active(3000, "b")
    backends = sm.get_backends(3000)
    assert backends[0].active is False
    assert backends[1].active is True


def test_switch_active_unknown_label(sm):
    sm.add_backend(3000, 3001, "a", 0, "")
    with pytest.raises(BackendNotFoundError):
        sm.switch_active(3000, "nonexistent")


def test_get_all_backends(sm):
    sm.add_backend(3000, 3001, "a", 0, "")
    sm.add_backend(8995, 8996, "a", 0, "")
    all_backends = sm.get_all_backends()
    assert len(all_backends) == 2
    assert len(all_backends[3000]) == 1
    assert len(all_backends[8995]) == 1


def test_backends_save_and_load(tmp_path):
    sm = StateManager(tmp_path)
    sm.add_backend(3000, 3001, "worktree-a", 12345, "")
    sm.add_backend(3000, 3002, "worktree-b", 12346, "/tmp/b.log")
    sm.save()

    backends = StateManager(tmp_path).get_backends(3000)
    assert len(backends) == 2
    assert backends[0].backend_port == 3001
    assert backends[0].label == "worktree-a"
    assert backends[0].active is True
    assert backends[1].active is False
    assert backends[1].log_file == "/tmp/b.log"


def test_saved_file_omits_empty_fields(tmp_path):
    sm = StateManager(tmp_path)
    sm.add_backend(3000, 3001, "", 0, "")
    sm.save()
    doc = yaml.safe_load((tmp_path / "state.yaml").read_text())
    assert doc == {"backends": {3000: [{"backend_port": 3001, "active": True}]}}


def test_allocate_port(sm):
    port1 = sm.allocate_port()
    port2 = sm.allocate_port()
    assert port1 > 0
    assert port2 > 0


def test_clean_stale_pids(sm):
    sm.add_backend(3000, 3001, "stale", DEAD_PID, "")
    assert sm.clean_stale_pids() == 1
    assert sm.get_backends(3000) == []


def test_clean_stale_pids_keeps_live(sm):
    sm.add_backend(3000, 3001, "live", os.getpid(), "")
    assert sm.clean_stale_pids() == 0
    assert len(sm.get_backends(3000)) == 1


def test_clean_stale_pids_zero_pid_kept(sm):
    sm.add_backend(3000, 3001, "manual", 0, "")
    assert sm.clean_stale_pids() == 0
    assert len(sm.get_backends(3000)) == 1


def test_clean_stale_pids_promotes_active(sm):
    sm.add_backend(3000, 3001, "stale-active", DEAD_PID, "")
    sm.add_backend(3000, 3002, "manual", 0, "")
    assert sm.clean_stale_pids() == 1
    backends = sm.get_backends(3000)
    assert len(backends) == 1
    assert backends[0].active is True
    assert backends[0].label == "manual"


def test_is_process_alive():
    assert is_process_alive(os.getpid()) is True
    assert is_process_alive(DEAD_PID) is False
    assert is_process_alive(0) is False