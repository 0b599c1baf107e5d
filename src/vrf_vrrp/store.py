"""Locked access to the VRRP state document in the coordination store.

All nodes publish per-interface VRRP state into a single JSON document
(``interface -> {"state", "changed_at"}``) stored at :data:`STATE_PATH`.
Every read-modify-write of that document happens while holding the
lease-backed lock at :data:`LOCK_PATH`, so concurrent writers on different
nodes serialize instead of overwriting each other's changes.  An empty
document is represented by deleting the key.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional, Tuple

from .config import PublishedState
from .exceptions import StoreError

LOG = logging.getLogger(__name__)

DEFAULT_ENDPOINTS = ("http://127.0.0.1:2379",)
DIAL_TIMEOUT = 3.0
STATE_PATH = "/state/services/port/vrrp"
LOCK_PATH = "/local/vrrp/state/lock"


class CoordinationStore(ABC):
    """Connection to a cluster-wide, lockable key-value store.

    Implementations raise :class:`~vrf_vrrp.exceptions.StoreError` for every
    failure.
    """

    @abstractmethod
    def lock(self, path: str, token: str, blocking: bool = True) -> int:
        """Acquire the lock at ``path`` and return the backing lease id."""

    @abstractmethod
    def unlock(self, path: str, lease_id: int) -> None:
        """Release a lock previously returned by :meth:`lock`."""

    @abstractmethod
    def get(self, path: str) -> Optional[bytes]:
        """Return the value stored at ``path`` or ``None`` when absent."""

    @abstractmethod
    def get_prefix(self, prefix: str) -> Iterator[Tuple[str, bytes]]:
        """Yield ``(key, value)`` for every key starting with ``prefix``."""

    @abstractmethod
    def put(self, path: str, value: str) -> None:
        """Store ``value`` at ``path``."""

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Delete ``path``; return whether a key was removed."""

    @abstractmethod
    def close(self) -> None:
        """Close the underlying connection."""

    def __enter__(self) -> "CoordinationStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


Connector = Callable[[], CoordinationStore]


def connect_etcd(
    endpoints=DEFAULT_ENDPOINTS,
    dial_timeout: float = DIAL_TIMEOUT,
    lock_ttl: int = 10,
) -> CoordinationStore:
    """Open an etcd-backed :class:`CoordinationStore`."""

    from .etcd import EtcdCoordinationStore

    return EtcdCoordinationStore.connect(endpoints, dial_timeout=dial_timeout, lock_ttl=lock_ttl)


@contextmanager
def locked(conn: CoordinationStore, path: str, token: str) -> Iterator[int]:
    """Hold the lock at ``path`` for the duration of the block."""

    lease_id = conn.lock(path, token, blocking=True)
    try:
        yield lease_id
    finally:
        try:
            conn.unlock(path, lease_id)
        except StoreError as exc:
            # The lock lease still expires after its TTL.
            LOG.warning("failed to release lock %s: %s", path, exc)


def _decode_states(raw: Optional[bytes]) -> Dict[str, dict]:
    if raw is None:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise StoreError(f"invalid VRRP state document: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StoreError("VRRP state document must be a mapping")
    return data


class VrrpStateStore:
    """Read-modify-write helper for the published VRRP state document."""

    def __init__(
        self,
        connect: Connector = connect_etcd,
        *,
        state_path: str = STATE_PATH,
        lock_path: str = LOCK_PATH,
    ) -> None:
        self._connect = connect
        self.state_path = state_path
        self.lock_path = lock_path

    def delete_interface_state(self, ifname: str) -> bool:
        """Remove ``ifname`` from the state document.

        Returns ``False`` when the store could not be updated; the failure is
        logged and not retried.
        """

        try:
            with self._connect() as conn:
                with locked(conn, self.lock_path, ifname + uuid.uuid4().hex):
                    states = _decode_states(conn.get(self.state_path))
                    states.pop(ifname, None)
                    if states:
                        conn.put(self.state_path, json.dumps(states))
                    else:
                        conn.delete(self.state_path)
        except StoreError as exc:
            LOG.error("failed to delete VRRP state for %s: %s", ifname, exc)
            return False

        LOG.debug("Deleted VRRP state for %s", ifname)
        return True

    def delete_all(self) -> bool:
        """Drop the whole state document."""

        try:
            with self._connect() as conn:
                with locked(conn, self.lock_path, "all" + uuid.uuid4().hex):
                    conn.delete(self.state_path)
        except StoreError as exc:
            LOG.error("failed to delete VRRP state document: %s", exc)
            return False
        return True

    def read_states(self) -> Dict[str, PublishedState]:
        """Return the published states; empty when the store is unreachable."""

        try:
            with self._connect() as conn:
                states = _decode_states(conn.get(self.state_path))
        except StoreError as exc:
            LOG.error("failed to read VRRP state document: %s", exc)
            return {}
        return {name: PublishedState.from_dict(record) for name, record in states.items()}
