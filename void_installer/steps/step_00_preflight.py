from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

from ..config import Firmware, InstallConfig
from ..errors import PreconditionError
from ..lib.block import require_block_device
from ..lib.firmware import detect_firmware
from ..lib.tools import ensure_tools, required_tools
from ..pipeline import InstallContext
from ..state_store import record_decision

logger = logging.getLogger(__name__)

ZONEINFO = "/usr/share/zoneinfo"


def check_host(*, dry_run: bool = False) -> Firmware:
    """Root and firmware checks, done before any question is asked."""

    firmware = detect_firmware()
    if os.geteuid() != 0:
        if not dry_run:
            raise PreconditionError("Run as root.")
        logger.warning("Not running as root (dry run)")
    return firmware


def check_target(cfg: InstallConfig, *, dry_run: bool = False, zoneinfo: str = ZONEINFO) -> None:
    """Checks on the collected answers that need the live system."""

    tz = Path(zoneinfo) / cfg.timezone
    if not cfg.timezone or not tz.is_file():
        raise PreconditionError(f"Invalid timezone: {cfg.timezone!r} (no {tz})")

    if cfg.firmware is Firmware.UEFI and detect_firmware() is not Firmware.UEFI:
        msg = "UEFI firmware not detected; boot the live system in UEFI mode or choose bios."
        if not dry_run:
            raise PreconditionError(msg)
        logger.warning(msg)

    try:
        require_block_device(cfg.disk)
    except PreconditionError:
        if not dry_run:
            raise
        logger.warning("Block device not found: %s (dry run)", cfg.disk)


class PreflightStep:
    step_id = "00_preflight"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = ctx.config
        check_target(cfg, dry_run=ctx.dry_run)

        tools = required_tools(cfg)
        installed = ensure_tools(tools, dry_run=ctx.dry_run)
        record_decision(state, "tools_installed", installed)

        logger.info("Preflight passed (disk=%s firmware=%s)", cfg.disk, cfg.firmware.value)
        return state
