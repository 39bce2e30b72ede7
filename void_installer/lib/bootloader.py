from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .chroot import chroot_cmd
from .command import run_cmd
from .files import write_file
from .snapshots import MENU_HOOK, SNAPSHOT_DIR

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Void Linux"
LIMINE_CONF = "limine.conf"
EFI_FALLBACK = "EFI/BOOT/BOOTX64.EFI"
# Package layouts differ between limine releases; first hit wins.
LIMINE_EFI_CANDIDATES = ("usr/share/limine/BOOTX64.EFI", "usr/share/limine/EFI/BOOT/BOOTX64.EFI")
LIMINE_BIOS_SYS = "usr/share/limine/limine-bios.sys"
KERNEL_HOOK = MENU_HOOK.lstrip("/")
HOOK_DEFAULTS = "etc/default/limine"
# Stands in for the snapshot name in SNAPSHOT_CMDLINE.
SNAPSHOT_MARKER = "@SNAPSHOT@"

_KERNEL_RE = re.compile(r"^vmlinuz-(?P<version>.+)$")


@dataclass(frozen=True)
class KernelImage:
    version: str
    kernel: str  # file name relative to the boot partition
    initramfs: str


@dataclass(frozen=True)
class BootEntry:
    title: str
    kernel_path: str
    initramfs_path: str
    cmdline: str
    protocol: str = "linux"


@dataclass(frozen=True)
class LimineConfig:
    entries: Tuple[BootEntry, ...]
    timeout: int = 5
    default_entry: int = 1


def _version_key(version: str) -> Tuple:
    return tuple(int(p) if p.isdigit() else p for p in re.split(r"(\d+)", version) if p)


def discover_kernels(boot_dir: str) -> List[KernelImage]:
    """Pair every vmlinuz-<ver> with initramfs-<ver>.img, newest first."""

    boot = Path(boot_dir)
    found: List[KernelImage] = []
    for k in boot.glob("vmlinuz-*"):
        m = _KERNEL_RE.match(k.name)
        if not m:
            continue
        version = m.group("version")
        initramfs = boot / f"initramfs-{version}.img"
        if not initramfs.exists():
            logger.warning("Skipping kernel %s: no %s", k.name, initramfs.name)
            continue
        found.append(KernelImage(version=version, kernel=k.name, initramfs=initramfs.name))
    found.sort(key=lambda ki: _version_key(ki.version), reverse=True)
    return found


def discover_snapshots(snapshot_dir: str) -> List[str]:
    d = Path(snapshot_dir)
    if not d.is_dir():
        return []
    return sorted((p.name for p in d.iterdir() if p.is_dir()), reverse=True)


def build_entries(
    kernels: Sequence[KernelImage],
    cmdline_for: Callable[[Optional[str]], str],
    *,
    snapshots: Sequence[str] = (),
    title: str = DEFAULT_TITLE,
) -> List[BootEntry]:
    """One entry per kernel, then one per kernel x snapshot.

    cmdline_for(None) is the normal command line; cmdline_for(name) the one
    that boots snapshot `name`.
    """

    entries: List[BootEntry] = []
    for k in kernels:
        entries.append(
            BootEntry(
                title=f"{title} ({k.version})",
                kernel_path=f"boot():/{k.kernel}",
                initramfs_path=f"boot():/{k.initramfs}",
                cmdline=cmdline_for(None),
            )
        )
    for snap in snapshots:
        for k in kernels:
            entries.append(
                BootEntry(
                    title=f"{title} ({k.version}, snapshot {snap})",
                    kernel_path=f"boot():/{k.kernel}",
                    initramfs_path=f"boot():/{k.initramfs}",
                    cmdline=cmdline_for(snap),
                )
            )
    return entries


def render_limine_config(cfg: LimineConfig) -> str:
    """limine.conf syntax (Limine 8+): `key: value` options, `/Title` entries."""

    lines = [f"timeout: {cfg.timeout}", f"default_entry: {cfg.default_entry}", ""]
    for e in cfg.entries:
        lines += [
            f"/{e.title}",
            f"    protocol: {e.protocol}",
            f"    path: {e.kernel_path}",
            f"    module_path: {e.initramfs_path}",
            f"    cmdline: {e.cmdline}",
            "",
        ]
    return "\n".join(lines) + "\n"


def render_hook_defaults(
    cmdline: str,
    *,
    snapshot_cmdline: str = "",
    snapshot_dir: str = SNAPSHOT_DIR,
    timeout: int = 5,
    title: str = DEFAULT_TITLE,
) -> str:
    """/etc/default/limine, sourced by the kernel hook.

    snapshot_cmdline carries SNAPSHOT_MARKER where the snapshot name goes;
    empty means no snapshot entries.
    """

    return (
        f"TIMEOUT={timeout}\n"
        f'TITLE="{title}"\n'
        f'CMDLINE="{cmdline}"\n'
        f'SNAPSHOT_CMDLINE="{snapshot_cmdline}"\n'
        f"SNAPSHOT_DIR={snapshot_dir}\n"
    )


def render_kernel_hook() -> str:
    """Shell hook run by xbps after every kernel package install.

    Rebuilds /boot/limine.conf from the kernels present, using the command
    line saved in /etc/default/limine, plus one entry per kernel x snapshot
    when SNAPSHOT_CMDLINE is set. The btrfs snapshot job runs it too.
    """

    return f"""#!/bin/sh
# Rebuild the Limine menu from the kernels in /boot and the snapshots present.
# xbps passes the package name and kernel version; both are ignored.
set -eu

BOOT_DIR="${{BOOT_DIR:-/boot}}"
TIMEOUT=5
TITLE="{DEFAULT_TITLE}"
CMDLINE=""
SNAPSHOT_CMDLINE=""
SNAPSHOT_DIR={SNAPSHOT_DIR}
DEFAULTS="${{LIMINE_DEFAULTS:-/{HOOK_DEFAULTS}}}"
[ -r "$DEFAULTS" ] && . "$DEFAULTS"
[ -n "$CMDLINE" ] || {{ echo "60-limine: CMDLINE unset in $DEFAULTS" >&2; exit 0; }}

CFG="$BOOT_DIR/{LIMINE_CONF}"
body=$(mktemp)
trap 'rm -f "$body"' EXIT

entry() {{
\tprintf '/%s\\n    protocol: linux\\n    path: boot():/vmlinuz-%s\\n    module_path: boot():/initramfs-%s.img\\n    cmdline: %s\\n\\n' \\
\t\t"$1" "$2" "$2" "$3" >> "$body"
}}

versions=""
for k in $(ls -1 "$BOOT_DIR"/vmlinuz-* 2>/dev/null | sort -rV); do
\tver="${{k##*/vmlinuz-}}"
\t[ -f "$BOOT_DIR/initramfs-$ver.img" ] || continue
\tversions="$versions $ver"
\tentry "$TITLE ($ver)" "$ver" "$CMDLINE"
done

if [ -n "$SNAPSHOT_CMDLINE" ] && [ -d "$SNAPSHOT_DIR" ]; then
\tfor snap in $(ls -1 "$SNAPSHOT_DIR" | sort -r); do
\t\t[ -d "$SNAPSHOT_DIR/$snap" ] || continue
\t\tsnap_cmdline="${{SNAPSHOT_CMDLINE%%{SNAPSHOT_MARKER}*}}$snap${{SNAPSHOT_CMDLINE#*{SNAPSHOT_MARKER}}}"
\t\tfor ver in $versions; do
\t\t\tentry "$TITLE ($ver, snapshot $snap)" "$ver" "$snap_cmdline"
\t\tdone
\tdone
fi

[ -s "$body" ] || exit 0
{{ printf 'timeout: %s\\ndefault_entry: 1\\n\\n' "$TIMEOUT"; cat "$body"; }} > "$CFG.new"
mv "$CFG.new" "$CFG"
"""


def write_limine_config(target_root: str, cfg: LimineConfig, *, dry_run: bool = False) -> Path:
    """The ESP is mounted at /boot, so this is the root of the FAT partition."""

    path = write_file(target_root, f"/boot/{LIMINE_CONF}", render_limine_config(cfg), dry_run=dry_run)
    logger.info("Wrote Limine config with %d entries: %s", len(cfg.entries), str(path))
    return path


def install_kernel_hook(
    target_root: str,
    cmdline: str,
    *,
    snapshot_cmdline: str = "",
    dry_run: bool = False,
) -> None:
    defaults = render_hook_defaults(cmdline, snapshot_cmdline=snapshot_cmdline)
    write_file(target_root, HOOK_DEFAULTS, defaults, dry_run=dry_run)
    write_file(target_root, KERNEL_HOOK, render_kernel_hook(), mode=0o755, dry_run=dry_run)


def install_limine_uefi(
    *,
    target_root: str,
    disk: str,
    esp_number: int,
    dry_run: bool = False,
) -> None:
    """Copy Limine to the removable-media fallback path and register it.

    Firmware registration is best-effort: most firmwares boot
    EFI/BOOT/BOOTX64.EFI on their own.
    """

    root = Path(target_root)
    src = next((root / c for c in LIMINE_EFI_CANDIDATES if (root / c).exists()), None)
    dst = root / "boot" / EFI_FALLBACK
    if src is None:
        if not dry_run:
            raise FileNotFoundError(f"Limine BOOTX64.EFI not found under {root}/usr/share/limine")
        logger.info("Would copy Limine EFI binary to %s", str(dst))
    elif dry_run:
        logger.info("Would copy %s -> %s", str(src), str(dst))
    else:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)

    r = run_cmd(
        [
            "efibootmgr",
            "--create",
            "--disk",
            disk,
            "--part",
            str(esp_number),
            "--label",
            DEFAULT_TITLE,
            "--loader",
            "\\" + EFI_FALLBACK.replace("/", "\\"),
        ],
        check=False,
        dry_run=dry_run,
    )
    if r.returncode != 0:
        logger.warning("efibootmgr failed (%s); relying on the fallback path %s", r.returncode, EFI_FALLBACK)
    logger.info("Limine UEFI installed")


def install_limine_bios(*, target_root: str, disk: str, dry_run: bool = False) -> None:
    root = Path(target_root)
    src = root / LIMINE_BIOS_SYS
    dst = root / "boot/limine/limine-bios.sys"
    if dry_run:
        logger.info("Would copy %s -> %s", str(src), str(dst))
    else:
        if not src.exists():
            raise FileNotFoundError(str(src))
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)

    chroot_cmd(target_root, ["limine", "bios-install", disk], dry_run=dry_run)
    logger.info("Limine BIOS installed to %s", disk)
