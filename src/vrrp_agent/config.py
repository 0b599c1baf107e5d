"""YAML configuration loader for the VRRP agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

import yaml

from vrf_vrrp.store import DEFAULT_ENDPOINTS, DIAL_TIMEOUT, LOCK_PATH, STATE_PATH


@dataclass
class KeepalivedConfig:
    binary: str = "keepalived"
    config_dir: Path = Path("/etc/keepalived")
    run_dir: Path = Path("/var/run")
    script_dir: Path = Path("/usr/bin")
    start_timer: float = 10.0
    monitor_interval: float = 1.0


@dataclass
class StoreConfig:
    endpoints: Sequence[str] = DEFAULT_ENDPOINTS
    dial_timeout: float = DIAL_TIMEOUT
    lock_ttl: int = 10
    state_path: str = STATE_PATH
    lock_path: str = LOCK_PATH


@dataclass
class WatcherConfig:
    type: str
    path: Path
    interval: float = 5.0
    options: dict = field(default_factory=dict)


@dataclass
class AgentConfig:
    keepalived: KeepalivedConfig = field(default_factory=KeepalivedConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    watchers: Sequence[WatcherConfig] = field(default_factory=list)


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _parse_keepalived(section: dict) -> KeepalivedConfig:
    defaults = KeepalivedConfig()
    return KeepalivedConfig(
        binary=str(section.get("binary", defaults.binary)),
        config_dir=Path(section.get("config_dir", defaults.config_dir)),
        run_dir=Path(section.get("run_dir", defaults.run_dir)),
        script_dir=Path(section.get("script_dir", defaults.script_dir)),
        start_timer=float(section.get("start_timer", defaults.start_timer)),
        monitor_interval=float(section.get("monitor_interval", defaults.monitor_interval)),
    )


def _parse_store(section: dict) -> StoreConfig:
    endpoints = section.get("endpoints", list(DEFAULT_ENDPOINTS))
    if isinstance(endpoints, str):
        endpoints = [e for e in endpoints.split(",") if e]
    if not isinstance(endpoints, list) or not endpoints:
        raise ValueError("'store.endpoints' must be a non-empty list")

    return StoreConfig(
        endpoints=[str(e) for e in endpoints],
        dial_timeout=float(section.get("dial_timeout", DIAL_TIMEOUT)),
        lock_ttl=int(section.get("lock_ttl", 10)),
        state_path=str(section.get("state_path", STATE_PATH)),
        lock_path=str(section.get("lock_path", LOCK_PATH)),
    )


def _parse_watchers(entries: Iterable[dict]) -> List[WatcherConfig]:
    watchers: List[WatcherConfig] = []
    for entry in entries:
        options = entry.get("options", {})
        if not isinstance(options, dict):
            raise ValueError("watcher 'options' must be a mapping if provided")
        watchers.append(
            WatcherConfig(
                type=str(entry["type"]),
                path=Path(entry.get("path", ".")),
                interval=float(entry.get("interval", entry.get("poll_interval", 5.0))),
                options=options,
            )
        )
    return watchers


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    watchers_section = data.get("watchers", [])
    if not isinstance(watchers_section, list):
        raise ValueError("'watchers' section must be a list")

    return AgentConfig(
        keepalived=_parse_keepalived(_section(data, "keepalived")),
        store=_parse_store(_section(data, "store")),
        watchers=_parse_watchers(watchers_section),
    )
