"""Data structures for VRRP virtual routers and their runtime instances.

Desired-state documents arrive as JSON produced by the configuration tree
(``vrf name <vrf> vrrp ...``).  Key matching is intentionally loose: keys are
compared case-insensitively with ``-`` and ``_`` stripped, so both
``advertisement-interval`` and ``AdvertisementInterval`` resolve to the same
field.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .exceptions import DecodeError

if TYPE_CHECKING:  # pragma: no cover
    from .process import Process


MASTER = "master"
BACKUP = "backup"

DEFAULT_ADVERTISEMENT_INTERVAL = 10


@dataclass(frozen=True)
class UnicastPeer:
    """A unicast VRRP peer address."""

    address: str


@dataclass(frozen=True)
class VirtualRouterDefinition:
    """Desired configuration of one VRRP virtual router inside a VRF.

    Attributes
    ----------
    vrid:
        Virtual router identifier, unique within the VRF (0-255).
    interface:
        Interface the virtual address is bound to.
    priority:
        Advertised VRRP priority.  ``0`` means "not set".
    advertisement_interval:
        Advertisement interval in seconds.  ``0`` falls back to
        :data:`DEFAULT_ADVERTISEMENT_INTERVAL` when rendered.
    preempt:
        Whether a higher priority router may preempt the current master.
    state:
        Initial role, ``master`` or ``backup``.
    virtual_address:
        The shared virtual IP address.
    unicast_peers:
        Peers to which advertisements are unicast, in order.
    """

    vrid: int
    interface: str = ""
    priority: int = 0
    advertisement_interval: int = 0
    preempt: bool = False
    state: str = BACKUP
    virtual_address: str = ""
    unicast_peers: Tuple[UnicastPeer, ...] = ()

    @property
    def is_master(self) -> bool:
        return self.state == MASTER

    @property
    def effective_interval(self) -> int:
        return self.advertisement_interval or DEFAULT_ADVERTISEMENT_INTERVAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vrid": self.vrid,
            "interface": self.interface,
            "priority": self.priority,
            "advertisement-interval": self.advertisement_interval,
            "preempt": self.preempt,
            "state": self.state,
            "virtual-address": self.virtual_address,
            "unicast-peer": [{"address": p.address} for p in self.unicast_peers],
        }


@dataclass
class Instance:
    """A virtual router as currently deployed for a VRF.

    ``process`` is ``None`` once the daemon has been torn down or when it
    could not be rendered or started in the first place.
    """

    interface: str
    vrid: int
    process: Optional["Process"] = None


@dataclass(frozen=True)
class PublishedState:
    """Per-interface VRRP state record published in the coordination store."""

    state: str
    changed_at: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PublishedState":
        return cls(state=str(data.get("state", "")), changed_at=int(data.get("changed_at", 0)))

    def to_dict(self) -> Dict[str, Any]:
        return {"state": self.state, "changed_at": self.changed_at}


def vrf_name(vrf_id: int) -> str:
    return f"vrf{vrf_id}"


def _normalise_key(key: str) -> str:
    return key.replace("-", "").replace("_", "").lower()


_FIELD_ALIASES = {
    "vrid": "vrid",
    "virtualrouterid": "vrid",
    "interface": "interface",
    "priority": "priority",
    "advertisementinterval": "advertisement_interval",
    "preempt": "preempt",
    "state": "state",
    "role": "state",
    "virtualaddress": "virtual_address",
    "unicastpeer": "unicast_peers",
    "unicastpeerlist": "unicast_peers",
}


def _as_int(name: str, value: Any, *, minimum: int = 0, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise DecodeError(f"'{name}' must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"'{name}' must be an integer, got {value!r}") from exc
    if number < minimum or (maximum is not None and number > maximum):
        raise DecodeError(f"'{name}' out of range: {number}")
    return number


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value is None:
        return False
    raise DecodeError(f"'{name}' must be a boolean, got {value!r}")


def _parse_peers(value: Any) -> Tuple[UnicastPeer, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise DecodeError("unicast peer list must be a list")
    peers: List[UnicastPeer] = []
    for entry in value:
        if isinstance(entry, str):
            peers.append(UnicastPeer(entry))
        elif isinstance(entry, dict):
            address = {_normalise_key(k): v for k, v in entry.items()}.get("address")
            if not address:
                raise DecodeError(f"unicast peer missing address: {entry!r}")
            peers.append(UnicastPeer(str(address)))
        else:
            raise DecodeError(f"unsupported unicast peer entry: {entry!r}")
    return tuple(peers)


def _parse_definition(entry: Any) -> VirtualRouterDefinition:
    if not isinstance(entry, dict):
        raise DecodeError(f"virtual router entry must be a mapping, got {entry!r}")

    fields: Dict[str, Any] = {}
    for key, value in entry.items():
        name = _FIELD_ALIASES.get(_normalise_key(str(key)))
        if name is not None:
            fields[name] = value

    if "vrid" not in fields:
        raise DecodeError(f"virtual router entry missing 'vrid': {entry!r}")

    return VirtualRouterDefinition(
        vrid=_as_int("vrid", fields["vrid"], maximum=255),
        interface=str(fields.get("interface") or ""),
        priority=_as_int("priority", fields.get("priority") or 0, maximum=255),
        advertisement_interval=_as_int(
            "advertisement-interval", fields.get("advertisement_interval") or 0
        ),
        preempt=_as_bool("preempt", fields.get("preempt")),
        state=str(fields.get("state") or BACKUP).lower(),
        virtual_address=str(fields.get("virtual_address") or ""),
        unicast_peers=_parse_peers(fields.get("unicast_peers")),
    )


def parse_definitions(data: Any) -> List[VirtualRouterDefinition]:
    """Convert already-decoded JSON data into definitions."""

    if data is None:
        return []
    if not isinstance(data, list):
        raise DecodeError("VRRP configuration must be a list of virtual routers")
    return [_parse_definition(entry) for entry in data]


def decode_definitions(text: str) -> List[VirtualRouterDefinition]:
    """Decode a JSON desired-state document into definitions."""

    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"invalid VRRP JSON: {exc}") from exc
    return parse_definitions(data)


def encode_definitions(definitions: Sequence[VirtualRouterDefinition]) -> str:
    return json.dumps([d.to_dict() for d in definitions])

