from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import Firmware
from ..errors import InstallerError
from ..lib.bootloader import (
    SNAPSHOT_MARKER,
    LimineConfig,
    build_entries,
    discover_kernels,
    discover_snapshots,
    install_kernel_hook,
    install_limine_bios,
    install_limine_uefi,
    write_limine_config,
)
from ..lib.cmdline import build_cmdline
from ..lib.files import target_path
from ..lib.snapshots import SNAPSHOT_DIR
from ..pipeline import InstallContext
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class BootloaderStep:
    step_id = "50_bootloader"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = ctx.config
        plan = ctx.storage
        root = ctx.target_root

        def cmdline_for(snapshot: Optional[str]) -> str:
            return build_cmdline(
                root_uuid=ctx.root_uuid,
                filesystem=cfg.filesystem,
                encryption=cfg.encryption,
                luks_uuid=ctx.luks_uuid,
                volume_group=cfg.volume_group if cfg.lvm else None,
                zswap=cfg.zswap,
                root_subvolume=f"@{SNAPSHOT_DIR}/{snapshot}" if snapshot else None,
            )

        kernels = discover_kernels(str(target_path(root, "/boot")))
        if not kernels:
            if not ctx.dry_run:
                raise InstallerError(f"No kernel/initramfs pair found in {root}/boot")
            logger.warning("No kernels in %s/boot (dry run); writing an empty menu", root)

        # The daily job adds snapshots later and reruns the kernel hook, which
        # rebuilds the menu with them.
        bootable_snapshots = cfg.snapshots and plan.fs.bootable_snapshots
        snapshots: List[str] = []
        if bootable_snapshots:
            snapshots = discover_snapshots(str(target_path(root, SNAPSHOT_DIR)))

        entries = build_entries(kernels, cmdline_for, snapshots=snapshots)
        write_limine_config(root, LimineConfig(entries=tuple(entries)), dry_run=ctx.dry_run)

        if cfg.firmware is Firmware.UEFI:
            install_limine_uefi(
                target_root=root,
                disk=cfg.disk,
                esp_number=ctx.partitions.esp_number,
                dry_run=ctx.dry_run,
            )
        else:
            install_limine_bios(target_root=root, disk=cfg.disk, dry_run=ctx.dry_run)

        cmdline = cmdline_for(None)
        install_kernel_hook(
            root,
            cmdline,
            snapshot_cmdline=cmdline_for(SNAPSHOT_MARKER) if bootable_snapshots else "",
            dry_run=ctx.dry_run,
        )

        record_decision(state, "root_uuid", ctx.root_uuid)
        record_decision(state, "cmdline", cmdline)
        record_decision(state, "kernels", [k.version for k in kernels])
        logger.info("Bootloader configured (firmware=%s, %d entries)", cfg.firmware.value, len(entries))
        return state
