"""VRRP reconciliation driver.

The driver owns the keepalived instances of every VRF.  Each time the VRRP
configuration of a VRF is committed, all of its instances are torn down
(process stopped, published state retracted) and a fresh instance is started
for every virtual router in the new configuration.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from .config import Instance, VirtualRouterDefinition, decode_definitions
from .exceptions import DecodeError, ProcessError, RenderError
from .keepalived import KeepalivedRenderer
from .netif import local_cidr_lookup
from .process import Process, ProcessSupervisor, Spawner, keepalived_process
from .registry import InstanceRegistry
from .store import VrrpStateStore

LOG = logging.getLogger(__name__)


class VrrpDriver:
    """Reconcile per-VRF VRRP definitions against keepalived processes."""

    def __init__(
        self,
        renderer: KeepalivedRenderer,
        supervisor: ProcessSupervisor,
        state_store: VrrpStateStore,
        registry: Optional[InstanceRegistry] = None,
        *,
        cidr_lookup: Callable[[str], str] = local_cidr_lookup,
        binary: str = "keepalived",
        start_timer: float = 10,
        spawn: Optional[Spawner] = None,
    ) -> None:
        self._renderer = renderer
        self._supervisor = supervisor
        self._state_store = state_store
        self.registry = registry if registry is not None else InstanceRegistry()
        self._cidr_lookup = cidr_lookup
        self._binary = binary
        self._start_timer = start_timer
        self._spawn = spawn

    # ------------------------------------------------------------------
    # Commit hook
    # ------------------------------------------------------------------
    def json_config(self, path: Sequence[str], text: str) -> Optional[List[Instance]]:
        """Apply a committed ``vrf name <vrf> vrrp`` subtree.

        ``path`` is the configuration path of the subtree and ``text`` its JSON
        encoding.  Returns the new instances, or ``None`` when nothing was
        applied.  A document that fails to decode leaves the VRF untouched.
        """

        if len(path) < 3:
            LOG.warning("VRRP config path too short: %s", list(path))
            return None
        vrf = path[2]

        try:
            definitions = decode_definitions(text)
        except DecodeError as exc:
            LOG.error("Ignoring VRRP config for %s: %s", vrf, exc)
            return None

        return self.reconcile(vrf, definitions)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    def reconcile(
        self, vrf: str, definitions: Sequence[VirtualRouterDefinition]
    ) -> List[Instance]:
        self.teardown(vrf)
        if not definitions:
            LOG.info("VRRP disabled for %s", vrf)
            return []

        for vrrp in definitions:
            instance = Instance(interface=vrrp.interface, vrid=vrrp.vrid)
            self.registry.append(vrf, instance)
            instance.process = self._start(vrrp, vrf)

        instances = self.registry.get(vrf)
        LOG.info(
            "Reconciled %s: %d/%d VRRP instances running",
            vrf,
            sum(1 for i in instances if i.process is not None),
            len(instances),
        )
        return instances

    def teardown(self, vrf: str) -> None:
        """Stop every instance of ``vrf`` and retract its published state."""

        for instance in self.registry.get(vrf):
            LOG.debug("Clearing existing VRRP instance %s in %s", instance, vrf)
            self._stop(instance)
            self._state_store.delete_interface_state(instance.interface)
        self.registry.replace(vrf, [])

    def stop_all(self) -> None:
        for vrf, instances in self.registry.items():
            for instance in instances:
                self._stop(instance)
            LOG.debug("Stopped VRRP instances of %s", vrf)
        self.registry.clear()
        self._state_store.delete_all()

    def instances(self, vrf: str) -> List[Instance]:
        return self.registry.get(vrf)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def display_name(self, vrrp: VirtualRouterDefinition) -> str:
        return f"vrrp{vrrp.vrid}-{vrrp.interface}-{self._cidr_lookup(vrrp.interface)}"

    def _start(self, vrrp: VirtualRouterDefinition, vrf: str) -> Optional[Process]:
        name = self.display_name(vrrp)
        try:
            result = self._renderer.render(vrrp, vrf, name)
        except RenderError as exc:
            LOG.error("Skipping VRRP instance %s: %s", name, exc)
            return None

        process = keepalived_process(
            result.config_path,
            result.pid_path,
            result.vrrp_pid_path,
            vrf,
            binary=self._binary,
            start_timer=self._start_timer,
            spawn=self._spawn,
        )
        try:
            return self._supervisor.register(process)
        except ProcessError as exc:
            LOG.error("Failed to start VRRP instance %s: %s", name, exc)
            return None

    def _stop(self, instance: Instance) -> None:
        if instance.process is not None:
            self._supervisor.unregister(instance.process)
            instance.process = None
