from __future__ import annotations

import logging
from typing import Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

PSEUDO_FILESYSTEMS = ("proc", "sys", "dev")


def chroot_cmd(
    target_root: str,
    argv: Sequence[str],
    *,
    check: bool = True,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command inside target root."""

    return run_cmd(["chroot", target_root, *argv], check=check, input_text=input_text, dry_run=dry_run)


def bind_pseudo_filesystem(target_root: str, name: str, *, dry_run: bool = False) -> str:
    """Recursively bind /<name> into the target and mark it rslave.

    rslave keeps unmount events in the target from propagating back to the
    host, so `umount -R` on the target never touches the live system.
    """

    dst = f"{target_root}/{name}"
    run_cmd(["mkdir", "-p", dst], dry_run=dry_run)
    run_cmd(["mount", "--rbind", f"/{name}", dst], dry_run=dry_run)
    run_cmd(["mount", "--make-rslave", dst], dry_run=dry_run)
    return dst
