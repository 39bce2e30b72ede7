from __future__ import annotations

import logging
import shutil
from typing import Callable, Dict, List, Optional, Sequence

from ..config import Encryption, Filesystem, Firmware, InstallConfig
from ..errors import ToolMissingError
from .xbps import host_install

logger = logging.getLogger(__name__)

# command -> Void package that ships it
TOOL_PACKAGES: Dict[str, str] = {
    "sgdisk": "gptfdisk",
    "partprobe": "parted",
    "wipefs": "util-linux",
    "blkid": "util-linux",
    "lsblk": "util-linux",
    "mkfs.vfat": "dosfstools",
    "mkfs.ext4": "e2fsprogs",
    "mkfs.xfs": "xfsprogs",
    "mkfs.btrfs": "btrfs-progs",
    "btrfs": "btrfs-progs",
    "bcachefs": "bcachefs-tools",
    "cryptsetup": "cryptsetup",
    "pvcreate": "lvm2",
    "vgcreate": "lvm2",
    "lvcreate": "lvm2",
    "vgchange": "lvm2",
    "xbps-install": "xbps",
    "xchroot": "xtools",
    "efibootmgr": "efibootmgr",
}

BASE_TOOLS = ("sgdisk", "partprobe", "wipefs", "blkid", "mkfs.vfat", "xbps-install")

_FS_TOOLS = {
    Filesystem.EXT4: ("mkfs.ext4",),
    Filesystem.XFS: ("mkfs.xfs",),
    Filesystem.BTRFS: ("mkfs.btrfs", "btrfs"),
    Filesystem.BCACHEFS: ("bcachefs",),
}


def required_tools(cfg: InstallConfig) -> List[str]:
    tools = list(BASE_TOOLS)
    tools += _FS_TOOLS[cfg.filesystem]
    if cfg.encryption is Encryption.LUKS:
        tools.append("cryptsetup")
    if cfg.lvm:
        tools += ["pvcreate", "vgcreate", "lvcreate", "vgchange"]
    if cfg.firmware is Firmware.UEFI:
        tools.append("efibootmgr")
    return tools


def missing_tools(names: Sequence[str], which: Callable[[str], Optional[str]] = shutil.which) -> List[str]:
    return [n for n in names if which(n) is None]


def ensure_tools(
    names: Sequence[str],
    *,
    which: Callable[[str], Optional[str]] = shutil.which,
    dry_run: bool = False,
) -> List[str]:
    """Make sure every command exists, installing packages for missing ones.

    Returns the list of packages installed (empty when nothing was missing).
    The check is repeated exactly once after installing.
    """

    missing = missing_tools(names, which)
    if not missing:
        logger.info("All required tools present (%d checked)", len(names))
        return []

    packages: List[str] = []
    for cmd in missing:
        pkg = TOOL_PACKAGES.get(cmd)
        if pkg is None:
            logger.warning("Unknown tool mapping for %s; attempting install of %s", cmd, cmd)
            pkg = cmd
        if pkg not in packages:
            packages.append(pkg)

    logger.info("Missing tools %s; installing %s", ", ".join(missing), ", ".join(packages))
    host_install(packages, dry_run=dry_run)

    if dry_run:
        return packages

    still_missing = missing_tools(missing, which)
    if still_missing:
        raise ToolMissingError(still_missing)
    return packages
