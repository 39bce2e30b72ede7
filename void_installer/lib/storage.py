from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..config import Encryption, Filesystem, InstallConfig
from .chroot import PSEUDO_FILESYSTEMS, bind_pseudo_filesystem
from .command import run_cmd
from .mounts import MountStack

logger = logging.getLogger(__name__)

LUKS_NAME = "cryptroot"


@dataclass(frozen=True)
class FilesystemSpec:
    kind: Filesystem
    mkfs: Tuple[str, ...]  # argv prefix; the label and device follow
    fstype: str
    mount_options: str
    packages: Tuple[str, ...]
    dracut_module: Optional[str]
    passno: int
    # (subvolume, mountpoint) pairs created right after formatting
    subvolumes: Tuple[Tuple[str, str], ...] = ()
    supports_swapfile: bool = False
    bootable_snapshots: bool = False
    label_max: int = 16

    def mkfs_argv(self, device: str, label: str, *, native_encryption: bool = False) -> List[str]:
        argv = [*self.mkfs, label[: self.label_max]]
        if native_encryption:
            argv.append("--encrypted")
        argv.append(device)
        return argv

    def subvolume_for(self, mountpoint: str) -> Optional[str]:
        for name, mp in self.subvolumes:
            if mp == mountpoint:
                return name
        return None


FILESYSTEMS: Dict[Filesystem, FilesystemSpec] = {
    Filesystem.EXT4: FilesystemSpec(
        kind=Filesystem.EXT4,
        mkfs=("mkfs.ext4", "-F", "-L"),
        fstype="ext4",
        mount_options="defaults,noatime",
        packages=("e2fsprogs",),
        dracut_module=None,
        passno=1,
        supports_swapfile=True,
    ),
    Filesystem.XFS: FilesystemSpec(
        kind=Filesystem.XFS,
        mkfs=("mkfs.xfs", "-f", "-L"),
        fstype="xfs",
        mount_options="defaults,noatime",
        packages=("xfsprogs",),
        dracut_module=None,
        passno=1,
        supports_swapfile=True,
        label_max=12,
    ),
    Filesystem.BTRFS: FilesystemSpec(
        kind=Filesystem.BTRFS,
        mkfs=("mkfs.btrfs", "-f", "-L"),
        fstype="btrfs",
        mount_options="noatime,compress=zstd,space_cache=v2",
        packages=("btrfs-progs",),
        dracut_module="btrfs",
        passno=0,
        subvolumes=(("@", "/"), ("@home", "/home")),
        bootable_snapshots=True,
        label_max=255,
    ),
    Filesystem.BCACHEFS: FilesystemSpec(
        kind=Filesystem.BCACHEFS,
        mkfs=("bcachefs", "format", "--compression=zstd", "--metadata_checksum=crc32c", "--label"),
        fstype="bcachefs",
        mount_options="defaults,noatime",
        packages=("bcachefs-tools",),
        dracut_module="bcachefs",
        passno=0,
        label_max=32,
    ),
}


@dataclass(frozen=True)
class LuksLayer:
    device: str
    name: str = LUKS_NAME

    @property
    def output(self) -> str:
        return f"/dev/mapper/{self.name}"


@dataclass(frozen=True)
class LogicalVolume:
    name: str
    size: str  # "4G" (absolute) or "100%FREE" (extent percentage)

    def size_args(self) -> List[str]:
        if "%" in self.size:
            return ["-l", self.size]
        return ["-L", self.size]


@dataclass(frozen=True)
class LvmLayer:
    pv: str
    vg: str
    volumes: Tuple[LogicalVolume, ...]

    def lv_path(self, name: str) -> str:
        return f"/dev/{self.vg}/{name}"


@dataclass(frozen=True)
class Volume:
    device: str
    mountpoint: str


@dataclass(frozen=True)
class StoragePlan:
    """Storage layers for one install, in their only legal order.

    Built exclusively by plan_storage(); each layer sits on the device the
    previous layer exposes: partition -> LUKS mapper -> LVM LVs -> filesystems.
    """

    fs: FilesystemSpec
    encryption: Encryption
    data_part: str
    esp_part: str
    label: str
    luks: Optional[LuksLayer]
    lvm: Optional[LvmLayer]
    volumes: Tuple[Volume, ...]
    swap_device: Optional[str]

    @property
    def layers(self) -> Tuple[str, ...]:
        out = []
        if self.luks:
            out.append("luks")
        if self.lvm:
            out.append("lvm")
        out.append(self.fs.kind.value)
        return tuple(out)

    @property
    def root_device(self) -> str:
        return self.volumes[0].device

    def device_for(self, mountpoint: str) -> Optional[str]:
        for v in self.volumes:
            if v.mountpoint == mountpoint:
                return v.device
        return None

    @property
    def has_home(self) -> bool:
        return self.device_for("/home") is not None or self.fs.subvolume_for("/home") is not None


def plan_storage(cfg: InstallConfig, data_part: str, esp_part: str) -> StoragePlan:
    fs = FILESYSTEMS[cfg.filesystem]

    luks: Optional[LuksLayer] = None
    device = data_part
    if cfg.encryption is Encryption.LUKS:
        luks = LuksLayer(device=device)
        device = luks.output

    lvm: Optional[LvmLayer] = None
    swap_device: Optional[str] = None
    if cfg.lvm:
        rest = "90%FREE" if cfg.snapshots else "100%FREE"
        lvs: List[LogicalVolume] = []
        if cfg.swap:
            lvs.append(LogicalVolume("swap", cfg.swap_size))
        if cfg.home_volume:
            lvs.append(LogicalVolume("root", cfg.root_size))
            lvs.append(LogicalVolume("home", rest))
        else:
            lvs.append(LogicalVolume("root", rest))
        lvm = LvmLayer(pv=device, vg=cfg.volume_group, volumes=tuple(lvs))
        volumes = [Volume(lvm.lv_path("root"), "/")]
        if cfg.home_volume:
            volumes.append(Volume(lvm.lv_path("home"), "/home"))
        if cfg.swap:
            swap_device = lvm.lv_path("swap")
    else:
        volumes = [Volume(device, "/")]

    return StoragePlan(
        fs=fs,
        encryption=cfg.encryption,
        data_part=data_part,
        esp_part=esp_part,
        label=cfg.fs_label,
        luks=luks,
        lvm=lvm,
        volumes=tuple(volumes),
        swap_device=swap_device,
    )


def _open_luks(layer: LuksLayer, passphrase: str, mounts: MountStack, *, dry_run: bool) -> None:
    logger.info("Creating LUKS2 container on %s", layer.device)
    run_cmd(
        ["cryptsetup", "-q", "luksFormat", "--type", "luks2", "--key-file=-", layer.device],
        input_text=passphrase,
        dry_run=dry_run,
    )
    run_cmd(
        ["cryptsetup", "open", "--allow-discards", "--key-file=-", layer.device, layer.name],
        input_text=passphrase,
        dry_run=dry_run,
    )
    mounts.luks_opened(layer.name)


def _create_lvm(layer: LvmLayer, mounts: MountStack, *, dry_run: bool) -> None:
    logger.info("Creating volume group %s on %s", layer.vg, layer.pv)
    run_cmd(["pvcreate", "-ff", "-y", layer.pv], dry_run=dry_run)
    run_cmd(["vgcreate", layer.vg, layer.pv], dry_run=dry_run)
    mounts.vg_activated(layer.vg)
    for lv in layer.volumes:
        run_cmd(["lvcreate", "-y", "-n", lv.name, *lv.size_args(), layer.vg], dry_run=dry_run)


def _format(plan: StoragePlan, passphrase: str, target_root: str, *, dry_run: bool) -> None:
    native = plan.encryption is Encryption.NATIVE
    for vol in plan.volumes:
        label = plan.label if vol.mountpoint == "/" else f"{plan.label}-home"
        run_cmd(
            plan.fs.mkfs_argv(vol.device, label, native_encryption=native),
            input_text=f"{passphrase}\n{passphrase}\n" if native else None,
            dry_run=dry_run,
        )

    if native:
        run_cmd(
            ["bcachefs", "unlock", "-k", "session", plan.root_device],
            input_text=f"{passphrase}\n",
            dry_run=dry_run,
        )

    if plan.fs.subvolumes:
        root = plan.root_device
        run_cmd(["mkdir", "-p", target_root], dry_run=dry_run)
        run_cmd(["mount", "-t", plan.fs.fstype, root, target_root], dry_run=dry_run)
        try:
            for name, _mp in plan.fs.subvolumes:
                run_cmd(["btrfs", "subvolume", "create", f"{target_root}/{name}"], dry_run=dry_run)
        finally:
            run_cmd(["umount", target_root], dry_run=dry_run)


def _mount_options(fs: FilesystemSpec, mountpoint: str) -> str:
    sub = fs.subvolume_for(mountpoint)
    if sub:
        return f"{fs.mount_options},subvol={sub}"
    return fs.mount_options


def mount_target(plan: StoragePlan, target_root: str, mounts: MountStack) -> None:
    """Mount root, then /boot (the ESP), then /home, then the pseudo filesystems."""

    fs = plan.fs
    mounts.mount(plan.root_device, target_root, fstype=fs.fstype, options=_mount_options(fs, "/"))
    mounts.mount(plan.esp_part, f"{target_root}/boot", fstype="vfat")

    home_dev = plan.device_for("/home")
    if home_dev:
        mounts.mount(home_dev, f"{target_root}/home", fstype=fs.fstype, options=fs.mount_options)
    elif fs.subvolume_for("/home"):
        mounts.mount(plan.root_device, f"{target_root}/home", fstype=fs.fstype, options=_mount_options(fs, "/home"))

    for name in PSEUDO_FILESYSTEMS:
        dst = bind_pseudo_filesystem(target_root, name, dry_run=mounts.dry_run)
        mounts.adopt_mount(dst, recursive=True)


def build_storage(
    plan: StoragePlan,
    *,
    passphrase: str,
    target_root: str,
    mounts: MountStack,
) -> None:
    """Apply the plan's layers in order and mount the result under target_root."""

    dry_run = mounts.dry_run
    logger.info("Building storage stack: %s", " -> ".join(plan.layers))

    if plan.luks:
        _open_luks(plan.luks, passphrase, mounts, dry_run=dry_run)
    if plan.lvm:
        _create_lvm(plan.lvm, mounts, dry_run=dry_run)

    _format(plan, passphrase, target_root, dry_run=dry_run)
    mount_target(plan, target_root, mounts)
