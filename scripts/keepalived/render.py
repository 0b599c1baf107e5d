#!/usr/bin/env python3
"""Render keepalived configuration for VRRP definitions without starting daemons."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

REPO_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from vrf_vrrp.config import parse_definitions  # noqa: E402
from vrf_vrrp.exceptions import VrrpError  # noqa: E402
from vrf_vrrp.keepalived import KeepalivedRenderer  # noqa: E402


LOG = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--definitions",
        type=Path,
        default=Path("deploy/vrrp/vrrp.json"),
        help="Path to a JSON file of the form {\"vrfs\": {\"vrf1\": [...]}}",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("deploy/keepalived"),
        help="Directory where keepalived-<interface>.conf files will be written",
    )
    parser.add_argument(
        "--script-dir",
        type=Path,
        default=None,
        help="Directory for notify-script links (defaults to <output-dir>/scripts)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def load_definitions(path: Path) -> Dict[str, Any]:
    with path.open() as fh:
        return json.load(fh)


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    renderer = KeepalivedRenderer(
        config_dir=args.output_dir,
        run_dir=args.output_dir / "run",
        script_dir=args.script_dir or args.output_dir / "scripts",
    )

    failures = 0
    for vrf, routers in load_definitions(args.definitions).get("vrfs", {}).items():
        try:
            definitions = parse_definitions(routers)
        except VrrpError as exc:
            LOG.error("Invalid definitions for %s: %s", vrf, exc)
            failures += 1
            continue
        if not definitions:
            LOG.warning("VRF %s has no virtual routers defined", vrf)
        for vrrp in definitions:
            name = f"vrrp{vrrp.vrid}-{vrrp.interface}"
            try:
                result = renderer.render(vrrp, vrf, name)
            except VrrpError as exc:
                LOG.error("Failed to render %s in %s: %s", name, vrf, exc)
                failures += 1
                continue
            LOG.info("Rendered %s to %s", name, result.config_path)

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
