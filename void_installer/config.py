from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

import yaml

from .errors import PreconditionError

DEFAULT_REPOSITORY = "https://repo-default.voidlinux.org/current"
SECRET_FIELDS = ("user_password", "root_password", "passphrase")


class Firmware(str, Enum):
    UEFI = "uefi"
    BIOS = "bios"


class Filesystem(str, Enum):
    EXT4 = "ext4"
    XFS = "xfs"
    BTRFS = "btrfs"
    BCACHEFS = "bcachefs"


class Encryption(str, Enum):
    NONE = "none"
    LUKS = "luks"
    # bcachefs' own encryption; no dm-crypt layer.
    NATIVE = "native"


class Kernel(str, Enum):
    MAINLINE = "mainline"
    LTS = "lts"
    BOTH = "both"

    @property
    def packages(self) -> Tuple[str, ...]:
        if self is Kernel.MAINLINE:
            return ("linux", "linux-headers")
        if self is Kernel.LTS:
            return ("linux-lts", "linux-lts-headers")
        return ("linux", "linux-headers", "linux-lts", "linux-lts-headers")


class Gpu(str, Enum):
    NONE = "none"
    INTEL = "intel"
    AMD = "amd"
    NVIDIA = "nvidia"


class PrivEsc(str, Enum):
    SUDO = "sudo"
    DOAS = "doas"


@dataclass(frozen=True)
class InstallConfig:
    """Every answer the installer needs, collected once before anything runs."""

    disk: str
    firmware: Firmware = Firmware.UEFI
    esp_size_mib: int = 512
    hostname: str = "voidbox"
    timezone: str = "Europe/Paris"
    locale: str = "en_US.UTF-8"
    extra_locales: Tuple[str, ...] = ()
    keymap: str = "us"
    arch: str = "x86_64"
    repository: str = DEFAULT_REPOSITORY
    username: str = ""
    user_password: str = ""
    root_password: str = ""
    filesystem: Filesystem = Filesystem.EXT4
    encryption: Encryption = Encryption.NONE
    passphrase: str = ""
    lvm: bool = False
    volume_group: str = "voidvg"
    root_size: str = "40G"
    separate_home: bool = True
    swap: bool = False
    swap_size: str = "4G"
    zswap: bool = False
    zram: bool = False
    zram_percent: int = 50
    snapshots: bool = False
    snapshot_size: str = "5G"
    kernel: Kernel = Kernel.MAINLINE
    gpu: Gpu = Gpu.NONE
    privesc: PrivEsc = PrivEsc.SUDO
    fs_label: str = "voidroot"
    target_root: str = "/mnt"

    @property
    def encrypted(self) -> bool:
        return self.encryption is not Encryption.NONE

    @property
    def luks(self) -> bool:
        return self.encryption is Encryption.LUKS

    @property
    def home_volume(self) -> bool:
        """A dedicated home LV only exists for ext4/xfs over LVM."""
        return self.lvm and self.separate_home and self.filesystem in (Filesystem.EXT4, Filesystem.XFS)

    def redacted(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if f.name in SECRET_FIELDS:
                value = "***" if value else ""
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            out[f.name] = value
        return out


_ENUM_FIELDS = {
    "firmware": Firmware,
    "filesystem": Filesystem,
    "encryption": Encryption,
    "kernel": Kernel,
    "gpu": Gpu,
    "privesc": PrivEsc,
}
_INT_FIELDS = {"esp_size_mib", "zram_percent"}
_BOOL_FIELDS = {"lvm", "separate_home", "swap", "zswap", "zram", "snapshots"}


def coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in {"y", "yes", "true", "1", "on"}:
        return True
    if s in {"n", "no", "false", "0", "off", ""}:
        return False
    raise PreconditionError(f"{key}: expected yes/no, got {value!r}")


def config_from_mapping(raw: Mapping[str, Any]) -> InstallConfig:
    """Build an InstallConfig from plain values (YAML answers or prompts)."""

    known = {f.name for f in dataclasses.fields(InstallConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise PreconditionError(f"Unknown configuration keys: {', '.join(unknown)}")
    if not raw.get("disk"):
        raise PreconditionError("disk is required")

    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if key in _ENUM_FIELDS:
            enum_cls = _ENUM_FIELDS[key]
            if isinstance(value, enum_cls):
                values[key] = value
                continue
            try:
                values[key] = enum_cls(str(value).strip().lower())
            except ValueError:
                choices = ", ".join(e.value for e in enum_cls)
                raise PreconditionError(f"{key}: {value!r} is not one of {choices}") from None
        elif key in _INT_FIELDS:
            try:
                values[key] = int(value)
            except (TypeError, ValueError):
                raise PreconditionError(f"{key}: expected an integer, got {value!r}") from None
        elif key in _BOOL_FIELDS:
            values[key] = coerce_bool(key, value)
        elif key == "extra_locales":
            if isinstance(value, str):
                value = value.split()
            values[key] = tuple(str(v).strip() for v in value if str(v).strip())
        else:
            values[key] = str(value).strip()

    return InstallConfig(**values)


def validate_config(cfg: InstallConfig) -> InstallConfig:
    """Reject combinations the storage builder cannot represent."""

    if not cfg.hostname:
        raise PreconditionError("hostname must not be empty")
    if cfg.esp_size_mib < 100:
        raise PreconditionError(f"ESP size must be at least 100 MiB, got {cfg.esp_size_mib}")
    if not 0 <= cfg.zram_percent <= 100:
        raise PreconditionError(f"zram percentage must be within 0-100, got {cfg.zram_percent}")
    if cfg.encryption is Encryption.NATIVE:
        if cfg.filesystem is not Filesystem.BCACHEFS:
            raise PreconditionError("native encryption is only available with bcachefs")
        if cfg.lvm:
            raise PreconditionError("native bcachefs encryption cannot sit on top of LVM; use luks")
    if cfg.encrypted and not cfg.passphrase:
        raise PreconditionError("Passphrase cannot be empty.")
    if cfg.username and not cfg.user_password:
        raise PreconditionError(f"No password given for user {cfg.username!r}")
    if not cfg.root_password:
        raise PreconditionError("Root password cannot be empty.")
    return cfg


def load_answers(path: str) -> Dict[str, Any]:
    """Load a YAML answers file (same keys as InstallConfig)."""

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise PreconditionError("answers file must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise PreconditionError(f"{path} must contain a mapping/object")
    return raw
