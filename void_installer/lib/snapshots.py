from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..config import Filesystem, InstallConfig

logger = logging.getLogger(__name__)

KEEP_DAILY = 7
KEEP_WEEKLY = 4
KEEP_MONTHLY = 12
SNAPSHOT_DIR = "/.snapshots"
# Kernel post-install hook that rebuilds the Limine menu.
MENU_HOOK = "/etc/kernel.d/post-install/60-limine"


class SnapshotKind(str, Enum):
    BTRFS = "btrfs"
    BCACHEFS = "bcachefs"
    LVM = "lvm"
    TIMESHIFT = "timeshift"


@dataclass(frozen=True)
class GeneratedFile:
    path: str
    contents: str
    mode: int = 0o644


def snapshot_kind(cfg: InstallConfig) -> Optional[SnapshotKind]:
    """Which snapshot mechanism fits the storage selection.

    Copy-on-write filesystems snapshot themselves; ext4/xfs use LVM
    snapshots when a volume group exists and timeshift otherwise.
    """

    if not cfg.snapshots:
        return None
    if cfg.filesystem is Filesystem.BTRFS:
        return SnapshotKind.BTRFS
    if cfg.filesystem is Filesystem.BCACHEFS:
        return SnapshotKind.BCACHEFS
    if cfg.lvm:
        return SnapshotKind.LVM
    return SnapshotKind.TIMESHIFT


def snapshot_packages(kind: Optional[SnapshotKind]) -> Tuple[str, ...]:
    if kind is None:
        return ()
    if kind is SnapshotKind.TIMESHIFT:
        return ("cronie", "timeshift")
    return ("cronie",)


def _cow_rotation_script(tool: str, *, refresh_menu: bool = False) -> str:
    script = f"""#!/bin/sh
# Daily snapshot of / into {SNAPSHOT_DIR}; keeps the {KEEP_DAILY} newest.
set -eu
DIR="${{SNAPSHOT_DIR:-{SNAPSHOT_DIR}}}"
KEEP={KEEP_DAILY}

mkdir -p "$DIR"
{tool} subvolume snapshot / "$DIR/root-$(date +%Y-%m-%d_%H%M)"

ls -1d "$DIR"/root-* 2>/dev/null | sort -r | tail -n +$((KEEP + 1)) | while read -r old; do
\t{tool} subvolume delete "$old"
done
"""
    if refresh_menu:
        script += f"""
# Regenerate the boot menu so it lists exactly the snapshots kept.
HOOK="${{MENU_HOOK:-{MENU_HOOK}}}"
if [ -x "$HOOK" ]; then
\t"$HOOK"
fi
"""
    return script


def render_btrfs_job() -> str:
    # Writable snapshots: the boot menu offers each one as a bootable root.
    return _cow_rotation_script("btrfs", refresh_menu=True)


def render_bcachefs_job() -> str:
    return _cow_rotation_script("bcachefs")


def render_bcachefs_helper() -> str:
    return f"""#!/bin/sh
# Usage: bcachefs-snapshot [name]
set -eu
SNAP="${{1:-snap-$(date +%Y%m%d-%H%M%S)}}"
mkdir -p {SNAPSHOT_DIR}
bcachefs subvolume snapshot / "{SNAPSHOT_DIR}/$SNAP"
echo "Created snapshot: {SNAPSHOT_DIR}/$SNAP"
"""


def render_lvm_job(volume_group: str, size: str, lv: str = "root") -> str:
    return f"""#!/bin/sh
# Daily LVM snapshot of {volume_group}/{lv}; keeps the {KEEP_DAILY} newest.
set -eu
VG={volume_group}
LV={lv}
SIZE={size}
KEEP={KEEP_DAILY}

lvcreate -s -L "$SIZE" -n "$LV-snap-$(date +%Y%m%d%H%M)" "$VG/$LV"

lvs --noheadings -o lv_name "$VG" | awk '{{print $1}}' | grep "^$LV-snap-" | sort -r | tail -n +$((KEEP + 1)) | while read -r old; do
\tlvremove -f "$VG/$old"
done
"""


def render_timeshift_json(root_uuid: str) -> str:
    # timeshift stores every value as a string
    cfg = {
        "backup_device_uuid": root_uuid,
        "parent_device_uuid": "",
        "do_first_run": "false",
        "btrfs_mode": "false",
        "include_btrfs_home_for_backup": "false",
        "include_btrfs_home_for_restore": "false",
        "stop_cron_emails": "true",
        "schedule_monthly": "true",
        "schedule_weekly": "true",
        "schedule_daily": "true",
        "schedule_hourly": "false",
        "schedule_boot": "false",
        "count_monthly": str(KEEP_MONTHLY),
        "count_weekly": str(KEEP_WEEKLY),
        "count_daily": str(KEEP_DAILY),
        "count_hourly": "6",
        "count_boot": "5",
        "exclude": ["/home/**", "/root/**"],
        "exclude-apps": [],
    }
    return json.dumps(cfg, indent=2) + "\n"


def render_timeshift_job() -> str:
    return """#!/bin/sh
# Let timeshift create/prune the scheduled daily, weekly and monthly snapshots.
exec timeshift --check --scripted
"""


def snapshot_files(kind: SnapshotKind, cfg: InstallConfig, *, root_uuid: str = "") -> Tuple[GeneratedFile, ...]:
    if kind is SnapshotKind.BTRFS:
        return (GeneratedFile("/etc/cron.daily/btrfs-snapshot", render_btrfs_job(), 0o755),)
    if kind is SnapshotKind.BCACHEFS:
        return (
            GeneratedFile("/etc/cron.daily/bcachefs-snapshot", render_bcachefs_job(), 0o755),
            GeneratedFile("/usr/local/sbin/bcachefs-snapshot", render_bcachefs_helper(), 0o755),
        )
    if kind is SnapshotKind.LVM:
        return (
            GeneratedFile(
                "/etc/cron.daily/lvm-snapshot",
                render_lvm_job(cfg.volume_group, cfg.snapshot_size),
                0o755,
            ),
        )
    return (
        GeneratedFile("/etc/timeshift/timeshift.json", render_timeshift_json(root_uuid)),
        GeneratedFile("/etc/cron.daily/timeshift-snapshot", render_timeshift_job(), 0o755),
    )
