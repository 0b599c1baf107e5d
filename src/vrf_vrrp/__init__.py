"""Per-VRF VRRP instance management.

This package reconciles the VRRP virtual routers configured for each VRF of a
multi-tenant router against running ``keepalived`` daemons, and keeps the
cluster-wide VRRP state document in etcd consistent while instances come and
go.  It is organised around a few small pieces:

* :mod:`vrf_vrrp.config` decodes the desired-state documents committed for a
  VRF into :class:`~vrf_vrrp.config.VirtualRouterDefinition` objects;
* :class:`~vrf_vrrp.keepalived.KeepalivedRenderer` materialises one keepalived
  configuration file (and notify-script link) per virtual router;
* :class:`~vrf_vrrp.process.ProcessSupervisor` starts, stops and restarts the
  daemons inside the VRF network namespace;
* :class:`~vrf_vrrp.store.VrrpStateStore` retracts per-interface state from the
  shared document while holding a lease-backed etcd lock;
* :class:`~vrf_vrrp.driver.VrrpDriver` ties these together on every commit;
* :class:`~vrf_vrrp.sync.CliSyncTranslator` turns configuration observed in the
  cluster store into local CLI commits.

Everything that touches the operating system or the network is injectable, so
unit tests run without keepalived, netlink or an etcd cluster.
"""

from .driver import VrrpDriver  # noqa: F401
from .registry import InstanceRegistry  # noqa: F401
from .sync import CliSyncTranslator  # noqa: F401

__all__ = ["CliSyncTranslator", "InstanceRegistry", "VrrpDriver"]
