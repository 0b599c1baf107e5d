import os
import signal
from pathlib import Path

import pytest

from vrf_vrrp.exceptions import ProcessError
from vrf_vrrp.process import Process, ProcessSupervisor, keepalived_process


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_keepalived_command_runs_in_vrf_namespace(spawner, tmp_path: Path):
    proc = keepalived_process(
        tmp_path / "k.conf", tmp_path / "k.pid", tmp_path / "kv.pid", "vrf1", spawn=spawner
    )

    assert proc.command() == [
        "ip", "netns", "exec", "vrf1",
        "keepalived", "--vrrp", "-D", "-n",
        "-f", str(tmp_path / "k.conf"),
        "-p", str(tmp_path / "k.pid"),
        "-r", str(tmp_path / "kv.pid"),
    ]
    assert proc.kill_pid_file == tmp_path / "kv.pid"
    assert proc.start_timer == 10


def test_supervisor_register_and_unregister(spawner, supervisor):
    proc = Process("keepalived", "-n", spawn=spawner)

    supervisor.register(proc)
    assert proc.running
    assert supervisor.processes() == [proc]

    supervisor.unregister(proc)
    assert not proc.running
    assert spawner.spawned[0].terminated
    assert supervisor.processes() == []


def test_stop_is_idempotent(spawner, supervisor):
    proc = Process("keepalived", spawn=spawner)
    supervisor.register(proc)

    supervisor.unregister(proc)
    supervisor.unregister(proc)
    supervisor.unregister(None)

    assert len(spawner.spawned) == 1


def test_spawn_failure_is_not_tracked(spawner, supervisor):
    spawner.fail_for.add("keepalived")
    proc = Process("keepalived", spawn=spawner)

    with pytest.raises(ProcessError):
        supervisor.register(proc)

    assert supervisor.processes() == []


def test_stop_signals_pid_file_and_removes_pid_files(spawner, monkeypatch, tmp_path: Path):
    vrrp_pid = tmp_path / "kv.pid"
    main_pid = tmp_path / "k.pid"
    vrrp_pid.write_text("4242\n")
    main_pid.write_text("4241\n")
    killed = []
    monkeypatch.setattr(os, "kill", lambda pid, sig: killed.append((pid, sig)))

    proc = keepalived_process(tmp_path / "k.conf", main_pid, vrrp_pid, "vrf1", spawn=spawner)
    proc.start()
    proc.stop()

    assert killed == [(4242, signal.SIGTERM)]
    assert not vrrp_pid.exists()
    assert not main_pid.exists()


def test_check_restarts_exited_process_after_timer(spawner):
    clock = FakeClock()
    supervisor = ProcessSupervisor(clock=clock)
    proc = Process("keepalived", start_timer=10, spawn=spawner)
    supervisor.register(proc)

    spawner.spawned[0].exit(1)
    supervisor.check()
    assert len(spawner.spawned) == 1

    clock.now = 5
    supervisor.check()
    assert len(spawner.spawned) == 1

    clock.now = 11
    supervisor.check()
    assert len(spawner.spawned) == 2
    assert proc.running


def test_check_does_not_restart_process_unregistered_during_poll(spawner):
    clock = FakeClock()
    supervisor = ProcessSupervisor(clock=clock)
    proc = Process("keepalived", start_timer=10, spawn=spawner)
    supervisor.register(proc)
    popen = spawner.spawned[0]
    popen.exit(1)
    supervisor.check()

    # The commit path tears the instance down while the monitor polls it.
    calls = []

    def poll():
        if not calls:
            calls.append("poll")
            supervisor.unregister(proc)
        return popen.returncode

    popen.poll = poll
    clock.now = 20
    supervisor.check()

    assert supervisor.processes() == []
    assert len(spawner.spawned) == 1
    assert not proc.running
