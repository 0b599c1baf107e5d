import json
import threading

from vrf_vrrp.config import PublishedState
from vrf_vrrp.store import LOCK_PATH, STATE_PATH, VrrpStateStore


def seed(backend, states):
    backend.data[STATE_PATH] = json.dumps(states).encode()


def document(backend):
    return json.loads(backend.data[STATE_PATH])


def test_delete_interface_state_keeps_other_interfaces(backend):
    seed(backend, {"eth0": {"state": "master", "changed_at": 1}, "eth1": {"state": "backup", "changed_at": 2}})
    store = VrrpStateStore(backend.connect)

    assert store.delete_interface_state("eth0") is True

    assert document(backend) == {"eth1": {"state": "backup", "changed_at": 2}}
    assert store.read_states() == {"eth1": PublishedState("backup", 2)}


def test_deleting_last_interface_removes_key(backend):
    seed(backend, {"eth0": {"state": "master", "changed_at": 1}})
    store = VrrpStateStore(backend.connect)

    store.delete_interface_state("eth0")

    assert STATE_PATH not in backend.data


def test_absent_document_is_treated_as_empty(backend):
    store = VrrpStateStore(backend.connect)

    assert store.delete_interface_state("eth0") is True
    assert STATE_PATH not in backend.data


def test_unknown_interface_is_noop(backend):
    seed(backend, {"eth1": {"state": "backup", "changed_at": 2}})
    store = VrrpStateStore(backend.connect)

    store.delete_interface_state("eth0")

    assert document(backend) == {"eth1": {"state": "backup", "changed_at": 2}}


def test_lock_wraps_read_modify_write(backend):
    store = VrrpStateStore(backend.connect)

    store.delete_interface_state("eth0")

    assert backend.events == [("lock", LOCK_PATH), ("unlock", LOCK_PATH)]


def test_lock_released_when_write_fails(backend):
    seed(backend, {"eth0": {}, "eth1": {}})
    backend.fail_on.add("put")
    store = VrrpStateStore(backend.connect)

    assert store.delete_interface_state("eth0") is False

    assert backend.events == [("lock", LOCK_PATH), ("unlock", LOCK_PATH)]
    assert backend.path_lock(LOCK_PATH).acquire(blocking=False)


def test_corrupt_document_is_left_untouched(backend):
    backend.data[STATE_PATH] = b"{not json"
    store = VrrpStateStore(backend.connect)

    assert store.delete_interface_state("eth0") is False
    assert backend.data[STATE_PATH] == b"{not json"


def test_connection_failure_is_reported(backend):
    backend.fail_on.add("connect")
    store = VrrpStateStore(backend.connect)

    assert store.delete_interface_state("eth0") is False
    assert backend.events == []


def test_concurrent_deletes_do_not_lose_updates(backend):
    backend.read_delay = 0.05
    seed(
        backend,
        {
            "eth0": {"state": "master", "changed_at": 1},
            "eth1": {"state": "backup", "changed_at": 2},
            "eth2": {"state": "backup", "changed_at": 3},
        },
    )
    store = VrrpStateStore(backend.connect)

    threads = [
        threading.Thread(target=store.delete_interface_state, args=(name,))
        for name in ("eth0", "eth1")
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert document(backend) == {"eth2": {"state": "backup", "changed_at": 3}}


def test_delete_all_removes_document(backend):
    seed(backend, {"eth0": {"state": "master", "changed_at": 1}})
    store = VrrpStateStore(backend.connect)

    assert store.delete_all() is True
    assert STATE_PATH not in backend.data


def test_read_states_returns_empty_when_store_fails(backend):
    seed(backend, {"eth0": {"state": "master", "changed_at": 1}})
    backend.fail_on.add("get")
    store = VrrpStateStore(backend.connect)

    assert store.read_states() == {}
