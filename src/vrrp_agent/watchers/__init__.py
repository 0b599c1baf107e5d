"""Watcher implementations used by the VRRP agent."""

from .cluster import ClusterVrfWatcher  # noqa: F401
from .file import FileVrrpWatcher  # noqa: F401

__all__ = ["ClusterVrfWatcher", "FileVrrpWatcher"]
