from __future__ import annotations

import logging
import os
import re
import stat

from ..config import Filesystem
from ..errors import CommandError, PreconditionError
from .command import run_cmd

logger = logging.getLogger(__name__)

DRY_RUN_UUID = "00000000-0000-0000-0000-000000000000"

_BCACHEFS_UUID_RE = re.compile(r"^\s*(?:external\s+)?uuid:\s*([0-9a-f-]{36})", re.IGNORECASE | re.MULTILINE)


def partition_path(disk: str, n: int) -> str:
    """Return the device node of partition n on disk.

    nvme/mmcblk/loop names end in a digit and take a `p` infix
    (/dev/nvme0n1 -> /dev/nvme0n1p2); sdX/vdX append the number.
    """

    if disk[-1:].isdigit():
        return f"{disk}p{n}"
    return f"{disk}{n}"


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def require_block_device(path: str) -> None:
    if not is_block_device(path):
        raise PreconditionError(f"Block device not found: {path}")


def get_uuid(dev: str, *, dry_run: bool = False) -> str:
    """Return filesystem (or LUKS container) UUID for a block device."""

    r = run_cmd(["blkid", "-s", "UUID", "-o", "value", dev], dry_run=dry_run)
    if dry_run:
        return DRY_RUN_UUID
    uuid = (r.stdout or "").strip()
    if not uuid:
        raise CommandError(r.argv, r.returncode, f"Unable to determine UUID for {dev}")
    return uuid


def get_bcachefs_uuid(dev: str, *, dry_run: bool = False) -> str:
    """External UUID from the bcachefs superblock.

    Older blkid builds do not know bcachefs, so ask the filesystem tool.
    """

    r = run_cmd(["bcachefs", "show-super", dev], dry_run=dry_run)
    m = _BCACHEFS_UUID_RE.search(r.stdout or "")
    if m:
        return m.group(1)
    if dry_run:
        return DRY_RUN_UUID
    raise CommandError(r.argv, r.returncode, f"Could not extract bcachefs UUID from {dev}")


def filesystem_uuid(dev: str, filesystem: Filesystem, *, dry_run: bool = False) -> str:
    if filesystem is Filesystem.BCACHEFS:
        return get_bcachefs_uuid(dev, dry_run=dry_run)
    return get_uuid(dev, dry_run=dry_run)
