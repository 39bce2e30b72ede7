from __future__ import annotations

import glob
import logging
from pathlib import Path
from typing import List, Sequence

from .chroot import chroot_cmd
from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

HOST_KEYS_DIR = "/var/db/xbps/keys"


def host_install(packages: Sequence[str], *, dry_run: bool = False) -> None:
    """Install packages into the running live system."""
    if not packages:
        return
    run_cmd(["xbps-install", "-Sy", *packages], dry_run=dry_run)


def copy_host_keys(target_root: str, *, dry_run: bool = False) -> None:
    """Trust the same repository keys as the live system."""

    keys = sorted(glob.glob(f"{HOST_KEYS_DIR}/*"))
    dst = f"{target_root}{HOST_KEYS_DIR}"
    run_cmd(["mkdir", "-p", dst], dry_run=dry_run)
    if not keys:
        logger.warning("No xbps keys in %s; the first sync will ask to import them", HOST_KEYS_DIR)
        return
    run_cmd(["cp", *keys, dst], dry_run=dry_run)


def bootstrap_install(
    *,
    target_root: str,
    repository: str,
    arch: str,
    packages: Sequence[str],
    dry_run: bool = False,
) -> None:
    """Install packages into target_root from the host's xbps."""

    if not packages:
        return
    run_cmd(
        ["xbps-install", "-S", "-y", "-r", target_root, "-R", repository, *packages],
        env={"XBPS_ARCH": arch},
        dry_run=dry_run,
    )


def xbps_sync_update(target_root: str, *, dry_run: bool = False) -> None:
    # xbps has to update itself before anything else when it is outdated.
    chroot_cmd(target_root, ["xbps-install", "-Syu", "xbps"], dry_run=dry_run)
    chroot_cmd(target_root, ["xbps-install", "-Syu"], dry_run=dry_run)


def xbps_install(target_root: str, packages: Sequence[str], *, dry_run: bool = False) -> None:
    if not packages:
        return
    chroot_cmd(target_root, ["xbps-install", "-Sy", *packages], dry_run=dry_run)


def xbps_reconfigure(target_root: str, package: str | None = None, *, dry_run: bool = False) -> None:
    """Re-run package configure hooks; no package means all (-a)."""
    argv = ["xbps-reconfigure", "-f"]
    argv += [package] if package else ["-a"]
    chroot_cmd(target_root, argv, dry_run=dry_run)


def strip_version(pkgver: str) -> str:
    """`linux6.6-6.6.52_1` -> `linux6.6`."""
    name, sep, _version = pkgver.rpartition("-")
    return name if sep else pkgver


def manual_packages(*, dry_run: bool = False) -> List[str]:
    """Names of packages installed explicitly (not as dependencies)."""

    r: CmdResult = run_cmd(["xbps-query", "-m"], dry_run=dry_run)
    names: List[str] = []
    for line in (r.stdout or "").splitlines():
        token = line.strip().split()[0] if line.strip() else ""
        if token:
            names.append(strip_version(token))
    return names


def write_package_list(path: str, names: Sequence[str]) -> None:
    Path(path).write_text("".join(f"{n}\n" for n in names), encoding="utf-8")
