from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..lib.block import get_uuid
from ..lib.files import write_file
from ..lib.fstab import FstabEntry, render_fstab
from ..lib.storage import StoragePlan
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


def fstab_entries(
    plan: StoragePlan,
    *,
    root_uuid: str,
    esp_uuid: str,
    home_uuid: str | None = None,
) -> List[FstabEntry]:
    """Persistent mounts for the storage plan, root first; swap is added by the caller."""

    fs = plan.fs
    # No subvol= for /: rootflags on the kernel command line picks it, so a
    # snapshot boot entry is not remounted back onto @.
    entries = [
        FstabEntry(spec=f"UUID={root_uuid}", mountpoint="/", fstype=fs.fstype, options=fs.mount_options, passno=fs.passno),
        FstabEntry(spec=f"UUID={esp_uuid}", mountpoint="/boot", fstype="vfat", options="defaults,umask=0077", passno=2),
    ]

    home_sub = fs.subvolume_for("/home")
    if home_sub:
        entries.append(
            FstabEntry(
                spec=f"UUID={root_uuid}",
                mountpoint="/home",
                fstype=fs.fstype,
                options=f"{fs.mount_options},subvol={home_sub}",
            )
        )
    elif home_uuid:
        entries.append(
            FstabEntry(spec=f"UUID={home_uuid}", mountpoint="/home", fstype=fs.fstype, options=fs.mount_options, passno=2)
        )
    return entries


class FstabStep:
    step_id = "70_fstab"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        plan = ctx.storage
        dry_run = ctx.dry_run

        home_dev = plan.device_for("/home")
        entries = fstab_entries(
            plan,
            root_uuid=ctx.root_uuid,
            esp_uuid=get_uuid(plan.esp_part, dry_run=dry_run),
            home_uuid=get_uuid(home_dev, dry_run=dry_run) if home_dev else None,
        )

        swap = ((state.get("execution") or {}).get("decisions") or {}).get("swap")
        if swap:
            entries.append(FstabEntry(**swap))

        write_file(ctx.target_root, "/etc/fstab", render_fstab(entries), dry_run=dry_run)
        logger.info("Wrote fstab (%d entries)", len(entries))
        return state
