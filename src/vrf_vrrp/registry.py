"""Per-VRF table of deployed VRRP instances."""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from .config import Instance


class InstanceRegistry:
    """Map VRF names to the instances currently deployed for them.

    There is no internal locking: each VRF slot is owned by whichever
    reconciliation is running for that VRF and callers serialize commits per
    VRF.  Different VRFs never share a slot.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, List[Instance]] = {}

    def get(self, vrf: str) -> List[Instance]:
        return list(self._instances.get(vrf, ()))

    def replace(self, vrf: str, instances: Iterable[Instance]) -> None:
        self._instances[vrf] = list(instances)

    def append(self, vrf: str, instance: Instance) -> None:
        self._instances.setdefault(vrf, []).append(instance)

    def clear(self) -> None:
        self._instances = {}

    def vrfs(self) -> List[str]:
        return list(self._instances)

    def items(self) -> List[Tuple[str, List[Instance]]]:
        return [(vrf, list(instances)) for vrf, instances in self._instances.items()]
