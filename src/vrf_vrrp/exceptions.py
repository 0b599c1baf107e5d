"""Error taxonomy shared by the VRRP reconciliation components."""

from __future__ import annotations


class VrrpError(Exception):
    """Base class for every error raised by :mod:`vrf_vrrp`."""


class DecodeError(VrrpError):
    """The desired-state document could not be decoded."""


class RenderError(VrrpError):
    """Rendering the keepalived configuration artifact failed."""


class ProcessError(VrrpError):
    """A daemon process could not be spawned."""


class StoreError(VrrpError):
    """A coordination store call (connect, lock, read or write) failed."""
