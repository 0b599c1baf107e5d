"""In-memory configuration tree for ``vrf name <vrf> vrrp`` commands."""

from __future__ import annotations

import json
import logging
import shlex
from threading import RLock
from typing import Callable, Dict, List, Optional, Sequence

from vrf_vrrp.config import VirtualRouterDefinition
from vrf_vrrp.sync import CommandExecutor

LOG = logging.getLogger(__name__)

CommitHandler = Callable[[List[str], str], object]

_VALUE_FIELDS = {
    "interface": str,
    "advertisement-interval": int,
    "priority": int,
    "state": str,
    "virtual-address": str,
}


class CommandError(ValueError):
    """A configuration line could not be parsed or applied."""


def _new_router(vrid: int) -> dict:
    return {"vrid": vrid, "unicast-peer": []}


class ConfigTree(CommandExecutor):
    """Hold VRRP configuration per VRF and hand changes to ``on_commit``.

    ``on_commit`` receives the configuration path of the VRF's VRRP subtree
    (``["vrf", "name", <vrf>, "vrrp"]``) and the subtree encoded as a JSON
    list, once per VRF touched since the previous commit.
    """

    def __init__(self, on_commit: CommitHandler) -> None:
        self._on_commit = on_commit
        self._vrfs: Dict[str, Dict[int, dict]] = {}
        self._dirty: List[str] = []
        # Re-entrant: a commit handler may itself apply lines and commit.
        self._lock = RLock()

    # ------------------------------------------------------------------
    # CommandExecutor
    # ------------------------------------------------------------------
    def exec_line(self, line: str) -> None:
        words = shlex.split(line)
        if len(words) < 6 or words[1:3] != ["vrf", "name"] or words[4] != "vrrp":
            raise CommandError(f"unsupported command: {line!r}")

        op, vrf = words[0], words[3]
        try:
            vrid = int(words[5])
        except ValueError as exc:
            raise CommandError(f"invalid vrrp id in {line!r}") from exc
        field = words[6] if len(words) > 6 else None
        value = words[7] if len(words) > 7 else None

        with self._lock:
            if op == "set":
                self._set(vrf, vrid, field, value, line)
            elif op == "delete":
                self._delete(vrf, vrid, field, value)
            else:
                raise CommandError(f"unknown operation '{op}' in {line!r}")
            if vrf not in self._dirty:
                self._dirty.append(vrf)

    def commit(self) -> None:
        with self._lock:
            dirty, self._dirty = self._dirty, []
            for vrf in dirty:
                LOG.debug("Committing VRRP configuration of %s", vrf)
                self._on_commit(["vrf", "name", vrf, "vrrp"], self.to_json(vrf))

    # ------------------------------------------------------------------
    # Bulk helpers
    # ------------------------------------------------------------------
    def load_vrf(self, vrf: str, definitions: Sequence[VirtualRouterDefinition]) -> None:
        """Replace the VRRP subtree of ``vrf`` with ``definitions``."""

        with self._lock:
            self._vrfs[vrf] = {vrrp.vrid: vrrp.to_dict() for vrrp in definitions}
            if vrf not in self._dirty:
                self._dirty.append(vrf)

    def routers(self, vrf: str) -> List[dict]:
        with self._lock:
            return [dict(r) for _, r in sorted(self._vrfs.get(vrf, {}).items())]

    def to_json(self, vrf: str) -> str:
        return json.dumps(self.routers(vrf))

    def show(self, vrf: str) -> List[str]:
        """Return the ``set`` lines that recreate the VRRP subtree of ``vrf``."""

        lines = []
        for router in self.routers(vrf):
            base = f"set vrf name {vrf} vrrp {router['vrid']}"
            lines.append(base)
            for name in ("interface", "advertisement-interval", "priority", "state", "virtual-address"):
                if router.get(name):
                    lines.append(f"{base} {name} {router[name]}")
            if router.get("preempt"):
                lines.append(f"{base} preempt")
            for peer in router.get("unicast-peer", []):
                lines.append(f"{base} unicast-peer {peer['address']}")
        return lines

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _set(self, vrf: str, vrid: int, field: Optional[str], value: Optional[str], line: str) -> None:
        router = self._vrfs.setdefault(vrf, {}).setdefault(vrid, _new_router(vrid))
        if field is None:
            return
        if field == "preempt":
            router["preempt"] = True
        elif field == "unicast-peer":
            if value is None:
                raise CommandError(f"missing peer address in {line!r}")
            if all(p["address"] != value for p in router["unicast-peer"]):
                router["unicast-peer"].append({"address": value})
        elif field in _VALUE_FIELDS:
            if value is None:
                raise CommandError(f"missing value in {line!r}")
            try:
                router[field] = _VALUE_FIELDS[field](value)
            except ValueError as exc:
                raise CommandError(f"invalid {field} in {line!r}") from exc
        else:
            raise CommandError(f"unknown vrrp field '{field}' in {line!r}")

    def _delete(self, vrf: str, vrid: int, field: Optional[str], value: Optional[str]) -> None:
        routers = self._vrfs.get(vrf, {})
        if field is None:
            routers.pop(vrid, None)
            return
        router = routers.get(vrid)
        if router is None:
            return
        if field == "unicast-peer" and value is not None:
            router["unicast-peer"] = [p for p in router["unicast-peer"] if p["address"] != value]
        elif field == "unicast-peer":
            router["unicast-peer"] = []
        else:
            router.pop(field, None)
