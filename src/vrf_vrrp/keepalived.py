"""keepalived configuration rendering for VRRP virtual routers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import jinja2

from .config import VirtualRouterDefinition
from .exceptions import RenderError

LOG = logging.getLogger(__name__)


KEEPALIVED_TEMPLATE = """\
# Do not edit!
# This file is automatically generated by vrrp-agent.
#
vrrp_script bgp_track {
    script {{ track_script }}
    interval 1
    fall 3
    rise 3
{% if vrrp.preempt %}
    weight 50
{% endif %}
}

vrrp_instance {{ name }} {
    notify {{ notify_script }}
    state {{ "MASTER" if vrrp.is_master else "BACKUP" }}
    interface {{ vrf }}
    virtual_router_id {{ vrrp.vrid }}
    priority {{ vrrp.priority }}
    advert_int {{ vrrp.effective_interval }}
    use_vmac
    vmac_xmit_base
{% if not vrrp.preempt %}
    nopreempt
{% endif %}
    unicast_peer {
{% for peer in vrrp.unicast_peers %}
        {{ peer.address }}
{% endfor %}
    }
    virtual_ipaddress {
        {{ vrrp.virtual_address }} dev {{ vrrp.interface }}
    }
    track_script {
        bgp_track
    }
    track_interface {
        {{ vrrp.interface }}
    }
}
"""


@dataclass
class RenderResult:
    """Artifacts produced for one virtual router."""

    config_text: str
    config_path: Path
    pid_path: Path
    vrrp_pid_path: Path
    notify_script: Path


class KeepalivedRenderer:
    """Render keepalived configuration files and notify-script links.

    Parameters
    ----------
    config_dir:
        Where ``keepalived-<interface>.conf`` files are written.
    run_dir:
        Directory holding the daemon PID files.
    script_dir:
        Directory containing the shared ``keepalived_<state>.sh`` notify
        scripts and ``keepalived_track.sh``.  Per-VRF links are created here.
    """

    def __init__(
        self,
        config_dir: Path = Path("/etc/keepalived"),
        run_dir: Path = Path("/var/run"),
        script_dir: Path = Path("/usr/bin"),
    ) -> None:
        self._config_dir = Path(config_dir)
        self._run_dir = Path(run_dir)
        self._script_dir = Path(script_dir)
        self._template = jinja2.Environment(
            loader=jinja2.BaseLoader(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=jinja2.StrictUndefined,
        ).from_string(KEEPALIVED_TEMPLATE)

    def config_path(self, interface: str) -> Path:
        return self._config_dir / f"keepalived-{interface}.conf"

    def pid_path(self, interface: str) -> Path:
        return self._run_dir / f"keepalived-{interface}.pid"

    def vrrp_pid_path(self, interface: str) -> Path:
        return self._run_dir / f"keepalived_vrrp-{interface}.pid"

    def notify_script(self, state: str, vrf: str) -> Path:
        return self._script_dir / f"keepalived_{state}_{vrf}.sh"

    def render_text(self, vrrp: VirtualRouterDefinition, vrf: str, name: str) -> str:
        try:
            return self._template.render(
                vrrp=vrrp,
                vrf=vrf,
                name=name,
                notify_script=self.notify_script(vrrp.state, vrf),
                track_script=self._script_dir / "keepalived_track.sh",
            )
        except jinja2.TemplateError as exc:
            raise RenderError(f"failed to render keepalived config for {name}: {exc}") from exc

    def render(self, vrrp: VirtualRouterDefinition, vrf: str, name: str) -> RenderResult:
        if not vrrp.interface:
            raise RenderError(f"virtual router {vrrp.vrid} in {vrf} has no interface")

        text = self.render_text(vrrp, vrf, name)
        config_path = self.config_path(vrrp.interface)
        notify_script = self.notify_script(vrrp.state, vrf)
        try:
            self._link_notify_script(vrrp.state, notify_script)
            config_path.parent.mkdir(parents=True, exist_ok=True)
            config_path.write_text(text)
        except OSError as exc:
            raise RenderError(f"failed to write keepalived config {config_path}: {exc}") from exc

        LOG.debug("Rendered keepalived config for %s to %s", name, config_path)
        return RenderResult(
            config_text=text,
            config_path=config_path,
            pid_path=self.pid_path(vrrp.interface),
            vrrp_pid_path=self.vrrp_pid_path(vrrp.interface),
            notify_script=notify_script,
        )

    def _link_notify_script(self, state: str, link: Path) -> None:
        target = self._script_dir / f"keepalived_{state}.sh"
        link.parent.mkdir(parents=True, exist_ok=True)
        # Replace any prior link for this (state, vrf) pair.
        if link.is_symlink() or link.exists():
            link.unlink()
        os.symlink(target, link)
