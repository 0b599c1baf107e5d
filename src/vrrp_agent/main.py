"""Entry point for the standalone VRRP agent."""

from __future__ import annotations

import argparse
import functools
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path
from threading import Event, Thread
from typing import List, Optional

from vrf_vrrp import CliSyncTranslator, InstanceRegistry, VrrpDriver
from vrf_vrrp.keepalived import KeepalivedRenderer
from vrf_vrrp.process import ProcessMonitor, ProcessSupervisor
from vrf_vrrp.store import Connector, VrrpStateStore, connect_etcd
from vrrp_cli import ConfigTree

from .config import AgentConfig, WatcherConfig, load_config
from .watchers import ClusterVrfWatcher, FileVrrpWatcher
from .watchers.cluster import DEFAULT_PREFIX

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


@dataclass
class Agent:
    """Wired components of a running agent."""

    supervisor: ProcessSupervisor
    driver: VrrpDriver
    tree: ConfigTree
    translator: CliSyncTranslator
    connect: Connector


def build_agent(config: AgentConfig, connect: Optional[Connector] = None) -> Agent:
    if connect is None:
        connect = functools.partial(
            connect_etcd,
            config.store.endpoints,
            dial_timeout=config.store.dial_timeout,
            lock_ttl=config.store.lock_ttl,
        )

    supervisor = ProcessSupervisor()
    state_store = VrrpStateStore(
        connect,
        state_path=config.store.state_path,
        lock_path=config.store.lock_path,
    )
    registry = InstanceRegistry()
    renderer = KeepalivedRenderer(
        config_dir=config.keepalived.config_dir,
        run_dir=config.keepalived.run_dir,
        script_dir=config.keepalived.script_dir,
    )
    driver = VrrpDriver(
        renderer,
        supervisor,
        state_store,
        registry,
        binary=config.keepalived.binary,
        start_timer=config.keepalived.start_timer,
    )
    tree = ConfigTree(driver.json_config)
    translator = CliSyncTranslator(tree, registry, supervisor, state_store)
    return Agent(supervisor, driver, tree, translator, connect)


def build_watcher(agent: Agent, watcher_cfg: WatcherConfig, stop_event: Event) -> Thread:
    if watcher_cfg.type == "file":
        return FileVrrpWatcher(
            tree=agent.tree,
            path=watcher_cfg.path,
            interval=watcher_cfg.interval,
            stop_event=stop_event,
        )
    if watcher_cfg.type == "cluster":
        return ClusterVrfWatcher(
            agent.translator,
            agent.connect,
            prefix=str(watcher_cfg.options.get("prefix", DEFAULT_PREFIX)),
            interval=float(watcher_cfg.options.get("interval", watcher_cfg.interval)),
            stop_event=stop_event,
        )
    raise ValueError(f"unsupported watcher type '{watcher_cfg.type}'")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the VRRP agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/vrrp-agent/vrrp.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    agent = build_agent(config)

    stop_event = Event()
    monitor = ProcessMonitor(agent.supervisor, config.keepalived.monitor_interval, stop_event)
    monitor.start()

    watchers: List[Thread] = []
    for watcher_cfg in config.watchers:
        watcher = build_watcher(agent, watcher_cfg, stop_event)
        # Perform an initial poll so we react immediately
        try:
            watcher.poll()  # type: ignore[attr-defined]
        except Exception:  # pragma: no cover - logged inside watcher
            LOG.exception("initial poll failed for watcher %s", watcher_cfg.type)
        watcher.start()
        watchers.append(watcher)

    if not watchers:
        LOG.warning("no watchers configured; agent will idle")

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    for watcher in watchers:
        watcher.join()
    monitor.join()

    agent.driver.stop_all()
    LOG.info("VRRP agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
