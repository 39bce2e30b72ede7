from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..config import Encryption, Firmware, InstallConfig, PrivEsc
from ..lib.snapshots import snapshot_kind, snapshot_packages
from ..lib.storage import FILESYSTEMS
from ..lib.xbps import bootstrap_install, copy_host_keys
from ..pipeline import InstallContext
from ..state_store import record_decision

logger = logging.getLogger(__name__)

BASE_PACKAGES = ("base-system",)


def support_packages(cfg: InstallConfig) -> List[str]:
    """Everything beyond base-system the selected stack needs to boot and run."""

    pkgs: List[str] = list(FILESYSTEMS[cfg.filesystem].packages)
    pkgs += ["dracut", "limine", "chrony"]
    if cfg.firmware is Firmware.UEFI:
        pkgs.append("efibootmgr")
    if cfg.encryption is Encryption.LUKS:
        pkgs.append("cryptsetup")
    if cfg.lvm:
        pkgs.append("lvm2")
    pkgs.append("opendoas" if cfg.privesc is PrivEsc.DOAS else "sudo")
    pkgs += snapshot_packages(snapshot_kind(cfg))
    if cfg.zram:
        pkgs.append("zramen")
    return list(dict.fromkeys(pkgs))


class BootstrapStep:
    step_id = "30_bootstrap"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = ctx.config
        target_root = ctx.target_root

        copy_host_keys(target_root, dry_run=ctx.dry_run)

        common = dict(target_root=target_root, repository=cfg.repository, arch=cfg.arch, dry_run=ctx.dry_run)
        bootstrap_install(packages=BASE_PACKAGES, **common)

        extra = support_packages(cfg)
        bootstrap_install(packages=extra, **common)

        record_decision(state, "support_packages", extra)
        logger.info("Base system installed at %s (%s)", target_root, cfg.arch)
        return state
