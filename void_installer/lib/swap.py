from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import InstallConfig
from .block import get_uuid
from .command import run_cmd
from .fstab import FstabEntry
from .storage import StoragePlan

logger = logging.getLogger(__name__)

SWAPFILE = "/swapfile"


@dataclass(frozen=True)
class SwapPlan:
    kind: str  # lv|file|none
    size: str
    device: Optional[str] = None
    reason: str = ""


def plan_swap(cfg: InstallConfig, storage: StoragePlan) -> SwapPlan:
    if not cfg.swap:
        return SwapPlan(kind="none", size="")
    if storage.swap_device:
        return SwapPlan(kind="lv", size=cfg.swap_size, device=storage.swap_device)
    if not storage.fs.supports_swapfile:
        return SwapPlan(kind="none", size="", reason=f"{storage.fs.kind.value} does not support a swap file")
    return SwapPlan(kind="file", size=cfg.swap_size, device=SWAPFILE)


def setup_swap(plan: SwapPlan, target_root: str, *, dry_run: bool = False) -> Optional[FstabEntry]:
    """Create the swap area; returns its fstab entry (None when skipped)."""

    if plan.kind == "none":
        if plan.reason:
            logger.warning("Swap skipped: %s", plan.reason)
        return None

    if plan.kind == "lv":
        dev = str(plan.device)
        run_cmd(["mkswap", "-L", "swap", dev], dry_run=dry_run)
        uuid = get_uuid(dev, dry_run=dry_run)
        return FstabEntry(spec=f"UUID={uuid}", mountpoint="none", fstype="swap", options="defaults")

    path = f"{target_root}{SWAPFILE}"
    run_cmd(["fallocate", "-l", plan.size, path], dry_run=dry_run)
    run_cmd(["chmod", "600", path], dry_run=dry_run)
    run_cmd(["mkswap", path], dry_run=dry_run)
    return FstabEntry(spec=SWAPFILE, mountpoint="none", fstype="swap", options="defaults")
