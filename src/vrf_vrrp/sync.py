"""Mirror cluster-observed VRRP configuration into the local configuration tree.

VRRP configuration published in the coordination store is not applied to the
daemons directly.  Instead it is translated into ``set``/``delete`` lines for
the local configuration tree and committed; the commit then drives
:meth:`vrf_vrrp.driver.VrrpDriver.json_config` like any local change.  This
keeps the locally committed configuration authoritative.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from .config import MASTER, VirtualRouterDefinition, vrf_name
from .process import ProcessSupervisor
from .registry import InstanceRegistry
from .store import VrrpStateStore

LOG = logging.getLogger(__name__)


class CommandExecutor(ABC):
    """Line-oriented access to the local configuration tree."""

    @abstractmethod
    def exec_line(self, line: str) -> None:
        """Apply a single ``set``/``delete`` configuration line."""

    @abstractmethod
    def commit(self) -> None:
        """Commit all lines applied since the previous commit."""


def vrrp_line(op: str, vrf_id: int, vrid: int, *words: object) -> str:
    prefix = f"{op} vrf name {vrf_name(vrf_id)} vrrp {vrid}"
    return " ".join([prefix, *(str(w) for w in words)])


def definition_lines(vrf_id: int, vrrp: VirtualRouterDefinition) -> List[str]:
    """Return the ``set`` lines describing ``vrrp``."""

    vrid = vrrp.vrid
    lines = [vrrp_line("set", vrf_id, vrid)]
    if vrrp.interface:
        lines.append(vrrp_line("set", vrf_id, vrid, "interface", vrrp.interface))
    if vrrp.advertisement_interval:
        lines.append(
            vrrp_line("set", vrf_id, vrid, "advertisement-interval", vrrp.advertisement_interval)
        )
    if vrrp.preempt:
        lines.append(vrrp_line("set", vrf_id, vrid, "preempt"))
    if vrrp.priority:
        lines.append(vrrp_line("set", vrf_id, vrid, "priority", vrrp.priority))
    state = MASTER if vrrp.state == MASTER else "backup"
    lines.append(vrrp_line("set", vrf_id, vrid, "state", state))
    if vrrp.virtual_address:
        lines.append(vrrp_line("set", vrf_id, vrid, "virtual-address", vrrp.virtual_address))
    for peer in vrrp.unicast_peers:
        lines.append(vrrp_line("set", vrf_id, vrid, "unicast-peer", peer.address))
    return lines


class CliSyncTranslator:
    """Translate cluster VRRP configuration into local CLI commits."""

    def __init__(
        self,
        executor: CommandExecutor,
        registry: InstanceRegistry,
        supervisor: ProcessSupervisor,
        state_store: VrrpStateStore,
    ) -> None:
        self._executor = executor
        self._registry = registry
        self._supervisor = supervisor
        self._state_store = state_store

    def sync_from_cluster(
        self, vrf_id: int, definitions: Sequence[VirtualRouterDefinition]
    ) -> List[str]:
        """Replace the VRRP configuration of ``vrf<vrf_id>`` and commit.

        Returns the configuration lines that were applied.
        """

        lines = [
            vrrp_line("delete", vrf_id, instance.vrid)
            for instance in self._registry.get(vrf_name(vrf_id))
        ]
        for vrrp in definitions:
            lines.extend(definition_lines(vrf_id, vrrp))

        for line in lines:
            self._executor.exec_line(line)
        self._executor.commit()
        LOG.info("Synchronized %d VRRP routers into %s", len(definitions), vrf_name(vrf_id))
        return lines

    def delete_vrf(self, vrf_id: int) -> None:
        """Remove every VRRP router of ``vrf<vrf_id>``."""

        vrf = vrf_name(vrf_id)
        LOG.info("Deleting VRRP configuration of %s", vrf)
        for instance in self._registry.get(vrf):
            try:
                if instance.process is not None:
                    self._supervisor.unregister(instance.process)
                    instance.process = None
                self._executor.exec_line(vrrp_line("delete", vrf_id, instance.vrid))
                self._executor.commit()
                self._state_store.delete_interface_state(instance.interface)
            except Exception:
                LOG.exception("failed to remove VRRP router %d from %s", instance.vrid, vrf)
        self._registry.replace(vrf, [])
