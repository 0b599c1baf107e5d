"""Minimal configuration-tree integration for the VRRP driver.

The full router configuration subsystem parses, validates and persists the
entire configuration tree.  For the purposes of this repository we implement a
lightweight subset: a tree holding only the ``vrf name <vrf> vrrp`` subtrees,
driven by the same ``set``/``delete`` lines and ``commit`` call, so the cluster
sync path can be exercised end-to-end in tests and on a standalone node.
"""

from .tree import CommandError, ConfigTree  # noqa: F401

__all__ = ["CommandError", "ConfigTree"]
