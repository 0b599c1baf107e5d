"""Process supervision for keepalived daemons.

Every virtual router runs its own keepalived in the foreground (``-D -n``)
inside the network namespace of its VRF.  :class:`ProcessSupervisor` keeps
track of the registered handles and restarts daemons that exit unexpectedly
once their ``start_timer`` has elapsed.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Callable, Dict, List, Optional

from .exceptions import ProcessError

LOG = logging.getLogger(__name__)

Spawner = Callable[[List[str]], "subprocess.Popen[bytes]"]


def _default_spawn(command: List[str]) -> "subprocess.Popen[bytes]":
    return subprocess.Popen(
        command,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


class Process:
    """Handle for one external daemon process."""

    def __init__(
        self,
        binary: str,
        *args: str,
        vrf: Optional[str] = None,
        start_timer: float = 10,
        kill_pid_file: Optional[Path] = None,
        pid_files: tuple = (),
        spawn: Optional[Spawner] = None,
        stop_timeout: float = 5.0,
    ) -> None:
        self.binary = binary
        self.args = list(args)
        self.vrf = vrf
        self.start_timer = start_timer
        self.kill_pid_file = Path(kill_pid_file) if kill_pid_file else None
        self.pid_files = tuple(Path(p) for p in pid_files)
        self._spawn = spawn or _default_spawn
        self._stop_timeout = stop_timeout
        self._popen: Optional["subprocess.Popen[bytes]"] = None
        self.exited_at: Optional[float] = None

    def __repr__(self) -> str:
        return f"Process({self.binary!r}, vrf={self.vrf!r}, pid={self.pid})"

    def command(self) -> List[str]:
        command = [self.binary, *self.args]
        if self.vrf:
            command = ["ip", "netns", "exec", self.vrf, *command]
        return command

    @property
    def pid(self) -> Optional[int]:
        return self._popen.pid if self._popen is not None else None

    @property
    def running(self) -> bool:
        return self._popen is not None and self._popen.poll() is None

    def start(self) -> None:
        command = self.command()
        LOG.debug("Executing: %s", " ".join(command))
        try:
            self._popen = self._spawn(command)
        except OSError as exc:
            raise ProcessError(f"failed to spawn {self.binary}: {exc}") from exc
        self.exited_at = None

    def stop(self) -> None:
        """Terminate the daemon.  Safe to call on a stopped process."""

        popen, self._popen = self._popen, None
        if popen is not None and popen.poll() is None:
            popen.terminate()
            try:
                popen.wait(timeout=self._stop_timeout)
            except subprocess.TimeoutExpired:
                LOG.warning("%s did not exit after SIGTERM, killing", self)
                popen.kill()
                popen.wait()
        self._kill_pid_file()
        for path in self.pid_files:
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    def _kill_pid_file(self) -> None:
        # keepalived forks a VRRP child which records its own PID.
        if self.kill_pid_file is None:
            return
        try:
            pid = int(self.kill_pid_file.read_text().strip())
        except (FileNotFoundError, ValueError):
            return
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            pass
        except PermissionError as exc:
            LOG.warning("cannot signal pid %d from %s: %s", pid, self.kill_pid_file, exc)


class ProcessSupervisor:
    """Registry of running daemons with timer-based restart."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._processes: Dict[int, Process] = {}
        self._lock = Lock()

    def register(self, process: Process) -> Process:
        process.start()
        with self._lock:
            self._processes[id(process)] = process
        LOG.info("Started %s", process)
        return process

    def unregister(self, process: Optional[Process]) -> None:
        if process is None:
            return
        with self._lock:
            self._processes.pop(id(process), None)
        process.stop()
        LOG.info("Stopped %s", process)

    def processes(self) -> List[Process]:
        with self._lock:
            return list(self._processes.values())

    def check(self) -> None:
        """Restart registered processes that exited more than ``start_timer`` ago."""

        now = self._clock()
        for process in self.processes():
            if process.running:
                continue
            if process.exited_at is None:
                LOG.warning("%s exited, restarting in %ss", process, process.start_timer)
                process.exited_at = now
                continue
            if now - process.exited_at < process.start_timer:
                continue
            # unregister() pops under the same lock, so a handle removed
            # while it was being polled is never respawned.
            with self._lock:
                if id(process) not in self._processes:
                    continue
                try:
                    process.start()
                except ProcessError:
                    LOG.exception("failed to restart %s", process)
                    process.exited_at = now

    def stop_all(self) -> None:
        for process in self.processes():
            self.unregister(process)


class ProcessMonitor(Thread):
    """Periodically run :meth:`ProcessSupervisor.check`."""

    def __init__(self, supervisor: ProcessSupervisor, interval: float, stop_event: Event) -> None:
        super().__init__(daemon=True)
        self._supervisor = supervisor
        self._interval = interval
        self._stop_event = stop_event

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._supervisor.check()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("process monitor encountered an error")
            self._stop_event.wait(self._interval)


def keepalived_process(
    config: Path,
    pid: Path,
    vrrp_pid: Path,
    vrf: str,
    *,
    binary: str = "keepalived",
    start_timer: float = 10,
    spawn: Optional[Spawner] = None,
) -> Process:
    """Build the keepalived handle for one virtual router."""

    return Process(
        binary,
        "--vrrp",
        "-D",
        "-n",
        "-f",
        str(config),
        "-p",
        str(pid),
        "-r",
        str(vrrp_pid),
        vrf=vrf,
        start_timer=start_timer,
        kill_pid_file=vrrp_pid,
        pid_files=(pid, vrrp_pid),
        spawn=spawn,
    )
