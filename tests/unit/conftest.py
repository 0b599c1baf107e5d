import itertools
import threading
import time
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import pytest

from vrf_vrrp.exceptions import StoreError
from vrf_vrrp.keepalived import KeepalivedRenderer
from vrf_vrrp.process import ProcessSupervisor
from vrf_vrrp.store import CoordinationStore


class MemoryBackend:
    """Shared key-value space standing in for an etcd cluster."""

    def __init__(self, read_delay: float = 0.0):
        self.data: Dict[str, bytes] = {}
        self.read_delay = read_delay
        self.fail_on: set = set()
        self.events: List[Tuple[str, str]] = []
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._leases = itertools.count(1)

    def connect(self) -> "MemoryConnection":
        if "connect" in self.fail_on:
            raise StoreError("connection refused")
        return MemoryConnection(self)

    def path_lock(self, path: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(path, threading.Lock())

    def next_lease(self) -> int:
        with self._guard:
            return next(self._leases)


class MemoryConnection(CoordinationStore):
    def __init__(self, backend: MemoryBackend):
        self.backend = backend
        self.closed = False

    def _check(self, op: str) -> None:
        if op in self.backend.fail_on:
            raise StoreError(f"{op} failed")

    def lock(self, path: str, token: str, blocking: bool = True) -> int:
        self._check("lock")
        if not self.backend.path_lock(path).acquire(blocking):
            raise StoreError("lock busy")
        self.backend.events.append(("lock", path))
        return self.backend.next_lease()

    def unlock(self, path: str, lease_id: int) -> None:
        self.backend.events.append(("unlock", path))
        self.backend.path_lock(path).release()

    def get(self, path: str) -> Optional[bytes]:
        self._check("get")
        value = self.backend.data.get(path)
        if self.backend.read_delay:
            time.sleep(self.backend.read_delay)
        return value

    def get_prefix(self, prefix: str) -> Iterator[Tuple[str, bytes]]:
        self._check("get_prefix")
        for key, value in sorted(self.backend.data.items()):
            if key.startswith(prefix):
                yield key, value

    def put(self, path: str, value: str) -> None:
        self._check("put")
        self.backend.data[path] = value.encode()

    def delete(self, path: str) -> bool:
        self._check("delete")
        return self.backend.data.pop(path, None) is not None

    def close(self) -> None:
        self.closed = True


class FakePopen:
    _pids = itertools.count(1000)

    def __init__(self, command):
        self.command = command
        self.pid = next(self._pids)
        self.returncode = None
        self.terminated = False

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True
        self.returncode = -15

    def kill(self):
        self.returncode = -9

    def wait(self, timeout=None):
        return self.returncode

    def exit(self, code=0):
        self.returncode = code


class Spawner:
    """Record spawned commands; optionally fail for given binaries/interfaces."""

    def __init__(self):
        self.spawned: List[FakePopen] = []
        self.fail_for: set = set()

    def __call__(self, command):
        if any(marker in " ".join(command) for marker in self.fail_for):
            raise OSError("exec format error")
        popen = FakePopen(command)
        self.spawned.append(popen)
        return popen


class RecordingStateStore:
    def __init__(self):
        self.deleted: List[str] = []
        self.deleted_all = 0

    def delete_interface_state(self, ifname: str) -> bool:
        self.deleted.append(ifname)
        return True

    def delete_all(self) -> bool:
        self.deleted_all += 1
        return True


class RecordingExecutor:
    def __init__(self):
        self.lines: List[str] = []

    def exec_line(self, line: str) -> None:
        self.lines.append(line)

    def commit(self) -> None:
        self.lines.append("commit")


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def spawner() -> Spawner:
    return Spawner()


@pytest.fixture
def supervisor() -> ProcessSupervisor:
    return ProcessSupervisor()


@pytest.fixture
def state_store() -> RecordingStateStore:
    return RecordingStateStore()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def renderer(tmp_path: Path) -> KeepalivedRenderer:
    return KeepalivedRenderer(
        config_dir=tmp_path / "etc",
        run_dir=tmp_path / "run",
        script_dir=tmp_path / "bin",
    )
