"""Local interface address lookup via netlink."""

from __future__ import annotations

import ipaddress
import logging
import socket

import pyroute2

LOG = logging.getLogger(__name__)


def local_cidr_lookup(ifname: str) -> str:
    """Return the IPv4 network configured on ``ifname`` (e.g. ``10.0.0.0/24``).

    An empty string is returned when the interface has no IPv4 address or
    cannot be queried.
    """

    try:
        with pyroute2.IPRoute() as ipr:
            addresses = ipr.get_addr(family=socket.AF_INET, label=ifname)
    except (OSError, pyroute2.NetlinkError) as exc:
        LOG.debug("Could not look up addresses on %s: %s", ifname, exc)
        return ""

    for addr in addresses:
        address = addr.get_attr("IFA_ADDRESS")
        if not address:
            continue
        network = ipaddress.ip_interface(f"{address}/{addr['prefixlen']}").network
        return str(network)

    LOG.debug("Interface %s has no IPv4 address", ifname)
    return ""
