"""Coordination-store watcher for cluster-wide VRF configuration."""

from __future__ import annotations

import json
import logging
from threading import Event, Thread
from typing import Dict, List, Optional

from vrf_vrrp.config import VirtualRouterDefinition, parse_definitions
from vrf_vrrp.exceptions import DecodeError, StoreError
from vrf_vrrp.store import Connector
from vrf_vrrp.sync import CliSyncTranslator

LOG = logging.getLogger(__name__)

DEFAULT_PREFIX = "/config/vrfs/"


def _vrf_id(key: str, prefix: str) -> Optional[int]:
    suffix = key[len(prefix):].strip("/")
    try:
        return int(suffix)
    except ValueError:
        return None


def _decode_vrf(raw: bytes) -> List[VirtualRouterDefinition]:
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise DecodeError(f"invalid VRF JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError("VRF document must be a mapping")
    return parse_definitions(payload.get("vrrp"))


class ClusterVrfWatcher(Thread):
    """Poll VRF documents under ``prefix`` and sync their VRRP section.

    Each key is ``<prefix><vrf id>`` holding a JSON document with a ``vrrp``
    list.  Changed VRFs are pushed through
    :meth:`~vrf_vrrp.sync.CliSyncTranslator.sync_from_cluster`; VRFs whose key
    disappears are removed with :meth:`~vrf_vrrp.sync.CliSyncTranslator.delete_vrf`.
    """

    def __init__(
        self,
        translator: CliSyncTranslator,
        connect: Connector,
        *,
        prefix: str = DEFAULT_PREFIX,
        interval: float,
        stop_event: Event,
    ) -> None:
        super().__init__(daemon=True)
        self._translator = translator
        self._connect = connect
        self._prefix = prefix
        self._interval = interval
        self._stop_event = stop_event
        self._state: Dict[int, List[VirtualRouterDefinition]] = {}

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("cluster watcher encountered an error")
            self._stop_event.wait(self._interval)

    def poll(self) -> None:
        try:
            with self._connect() as conn:
                items = list(conn.get_prefix(self._prefix))
        except StoreError as exc:
            LOG.warning("failed to read VRF configuration from %s: %s", self._prefix, exc)
            return

        desired: Dict[int, List[VirtualRouterDefinition]] = {}
        for key, raw in items:
            vrf_id = _vrf_id(key, self._prefix)
            if vrf_id is None:
                LOG.debug("ignoring key %s", key)
                continue
            try:
                desired[vrf_id] = _decode_vrf(raw)
            except DecodeError as exc:
                LOG.warning("invalid VRF document at %s: %s", key, exc)
                if vrf_id in self._state:
                    desired[vrf_id] = self._state[vrf_id]

        for vrf_id, definitions in sorted(desired.items()):
            if self._state.get(vrf_id) != definitions:
                self._translator.sync_from_cluster(vrf_id, definitions)

        for vrf_id in sorted(set(self._state) - set(desired)):
            self._translator.delete_vrf(vrf_id)

        self._state = desired
