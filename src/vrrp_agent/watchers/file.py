"""File-based VRRP configuration watcher."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Event, Thread
from typing import Dict, List

from vrf_vrrp.config import VirtualRouterDefinition, parse_definitions
from vrf_vrrp.exceptions import DecodeError
from vrrp_cli import ConfigTree

LOG = logging.getLogger(__name__)


def _extract_state(payload: dict) -> Dict[str, List[VirtualRouterDefinition]]:
    if not isinstance(payload, dict):
        raise DecodeError("VRRP file must contain a mapping")
    vrfs = payload.get("vrfs")
    if vrfs is None:
        raise DecodeError("VRRP file missing 'vrfs' key")
    if not isinstance(vrfs, dict):
        raise DecodeError("'vrfs' must map VRF names to virtual router lists")
    return {str(vrf): parse_definitions(routers) for vrf, routers in vrfs.items()}


class FileVrrpWatcher(Thread):
    """Poll a JSON file and commit changed VRF configuration locally."""

    def __init__(
        self,
        tree: ConfigTree,
        path: Path,
        interval: float,
        stop_event: Event,
    ) -> None:
        super().__init__(daemon=True)
        self._tree = tree
        self._path = Path(path)
        self._interval = interval
        self._stop_event = stop_event
        self._state: Dict[str, List[VirtualRouterDefinition]] = {}

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("file watcher encountered an error")
            self._stop_event.wait(self._interval)

    def poll(self) -> None:
        if not self._path.exists():
            LOG.debug("VRRP file %s does not exist yet", self._path)
            return

        try:
            payload = json.loads(self._path.read_text())
        except json.JSONDecodeError as exc:
            LOG.warning("failed to parse VRRP file %s: %s", self._path, exc)
            return

        try:
            desired = _extract_state(payload)
        except DecodeError as exc:
            LOG.warning("invalid VRRP file %s: %s", self._path, exc)
            return

        changed = False
        for vrf, definitions in desired.items():
            if self._state.get(vrf) != definitions:
                LOG.debug("VRF %s updated with %d virtual routers", vrf, len(definitions))
                self._tree.load_vrf(vrf, definitions)
                changed = True

        for vrf in set(self._state) - set(desired):
            LOG.debug("VRF %s removed", vrf)
            self._tree.load_vrf(vrf, [])
            changed = True

        if changed:
            self._tree.commit()
        self._state = desired
