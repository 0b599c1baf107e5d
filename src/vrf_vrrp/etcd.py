"""etcd v3 implementation of :class:`~vrf_vrrp.store.CoordinationStore`."""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import etcd3
import grpc
from etcd3 import exceptions as etcd_exceptions

from .exceptions import StoreError
from .store import CoordinationStore, DIAL_TIMEOUT

LOG = logging.getLogger(__name__)

# etcd3 only translates a handful of gRPC status codes; the rest (NOT_FOUND
# for an expired lease, PERMISSION_DENIED, ...) surface as raw RpcErrors.
CLIENT_ERRORS = (etcd_exceptions.Etcd3Exception, grpc.RpcError)


def parse_endpoint(raw: str) -> Tuple[str, int]:
    """Split ``http://host:port`` (or ``host:port``) into host and port."""

    raw = raw.strip()
    if not raw:
        raise ValueError("empty etcd endpoint")
    if "://" not in raw:
        raw = f"http://{raw}"
    parts = urlsplit(raw)
    if not parts.hostname:
        raise ValueError(f"invalid etcd endpoint: {raw!r}")
    return parts.hostname, parts.port or 2379


def _next_revision(responses: List) -> Optional[int]:
    for kvs in responses:
        for _value, meta in kvs:
            return meta.mod_revision + 1
    return None


class EtcdCoordinationStore(CoordinationStore):
    """Coordination store backed by an ``etcd3`` client.

    Locks are plain keys attached to a lease: a transaction creates the key
    only when it does not exist yet, and revoking the lease releases it.
    Every attempt runs on a freshly granted lease, so the lock always holds a
    full ``lock_ttl`` from the moment it is acquired.
    """

    def __init__(self, client: "etcd3.Etcd3Client", lock_ttl: int = 10) -> None:
        self._client = client
        self._lock_ttl = lock_ttl

    @classmethod
    def connect(
        cls,
        endpoints: Sequence[str],
        *,
        dial_timeout: float = DIAL_TIMEOUT,
        lock_ttl: int = 10,
    ) -> "EtcdCoordinationStore":
        if not endpoints:
            raise StoreError("no etcd endpoints configured")
        host, port = parse_endpoint(endpoints[0])
        try:
            client = etcd3.client(host=host, port=port, timeout=dial_timeout)
            client.status()
        except CLIENT_ERRORS as exc:
            raise StoreError(f"cannot connect to etcd at {host}:{port}: {exc}") from exc
        return cls(client, lock_ttl=lock_ttl)

    def lock(self, path: str, token: str, blocking: bool = True) -> int:
        client = self._client
        try:
            while True:
                lease = client.lease(self._lock_ttl)
                acquired, responses = client.transaction(
                    compare=[client.transactions.create(path) == 0],
                    success=[client.transactions.put(path, token, lease)],
                    failure=[client.transactions.get(path)],
                )
                if acquired:
                    LOG.debug("Acquired lock %s (lease %s)", path, lease.id)
                    return lease.id
                lease.revoke()
                if not blocking:
                    raise StoreError(f"lock {path} is held by another owner")
                self._wait_for_release(path, _next_revision(responses))
        except CLIENT_ERRORS as exc:
            raise StoreError(f"failed to acquire lock {path}: {exc}") from exc

    def _wait_for_release(self, path: str, start_revision: Optional[int]) -> None:
        # Watching from the holder's revision catches a release that happened
        # between the failed transaction and the watch being set up.
        kwargs = {}
        if start_revision is not None:
            kwargs["start_revision"] = start_revision
        try:
            self._client.watch_once(path, timeout=self._lock_ttl, **kwargs)
        except etcd_exceptions.WatchTimedOut:
            LOG.debug("Still waiting for lock %s", path)

    def unlock(self, path: str, lease_id: int) -> None:
        try:
            self._client.revoke_lease(lease_id)
        except CLIENT_ERRORS as exc:
            raise StoreError(f"failed to release lock {path}: {exc}") from exc
        LOG.debug("Released lock %s (lease %s)", path, lease_id)

    def get(self, path: str) -> Optional[bytes]:
        try:
            value, _meta = self._client.get(path)
        except CLIENT_ERRORS as exc:
            raise StoreError(f"get {path} failed: {exc}") from exc
        return value

    def get_prefix(self, prefix: str) -> Iterator[Tuple[str, bytes]]:
        try:
            items = list(self._client.get_prefix(prefix))
        except CLIENT_ERRORS as exc:
            raise StoreError(f"get_prefix {prefix} failed: {exc}") from exc
        for value, meta in items:
            yield meta.key.decode("utf-8"), value

    def put(self, path: str, value: str) -> None:
        try:
            self._client.put(path, value)
        except CLIENT_ERRORS as exc:
            raise StoreError(f"put {path} failed: {exc}") from exc

    def delete(self, path: str) -> bool:
        try:
            return bool(self._client.delete(path))
        except CLIENT_ERRORS as exc:
            raise StoreError(f"delete {path} failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()
