from __future__ import annotations

from pathlib import Path

from ..config import Firmware


def detect_firmware(sysfs: str = "/sys") -> Firmware:
    """Detect firmware type for the *currently running* environment.

    The live system's boot mode decides what the target can boot with:
    efivars are only writable when the ISO itself came up under UEFI.
    """

    if (Path(sysfs) / "firmware/efi").exists():
        return Firmware.UEFI
    return Firmware.BIOS
