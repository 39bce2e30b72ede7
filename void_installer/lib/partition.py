from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config import Firmware
from .block import partition_path
from .command import run_cmd

logger = logging.getLogger(__name__)

BIOS_BOOT_SIZE_MIB = 1


@dataclass(frozen=True)
class Partition:
    number: int
    start: str
    size: str  # sgdisk end spec: "+512MiB" or "0" for the rest of the disk
    typecode: str
    name: str
    role: str  # bios_boot|esp|data


@dataclass(frozen=True)
class PartitionPlan:
    disk: str
    firmware: Firmware
    partitions: Tuple[Partition, ...]

    def path(self, role: str) -> Optional[str]:
        for p in self.partitions:
            if p.role == role:
                return partition_path(self.disk, p.number)
        return None

    @property
    def esp_part(self) -> str:
        return self.path("esp")  # type: ignore[return-value]

    @property
    def data_part(self) -> str:
        return self.path("data")  # type: ignore[return-value]

    @property
    def esp_number(self) -> int:
        return next(p.number for p in self.partitions if p.role == "esp")


def plan_partitions(disk: str, firmware: Firmware, esp_size_mib: int = 512) -> PartitionPlan:
    """GPT layout for the target disk.

    Layout:
    - UEFI: 1 ESP (FAT32), 2 data
    - BIOS: 1 BIOS boot stub for Limine stage 2, 2 FAT boot partition, 3 data

    The first partition starts at sector 2048 so everything is 1 MiB aligned.
    """

    parts = []
    n = 1
    if firmware is Firmware.BIOS:
        parts.append(Partition(n, "0", f"+{BIOS_BOOT_SIZE_MIB}MiB", "ef02", "BIOS boot", "bios_boot"))
        n += 1
        esp_start = "0"
    else:
        esp_start = "2048"
    parts.append(Partition(n, esp_start, f"+{esp_size_mib}MiB", "ef00", "EFI System", "esp"))
    n += 1
    parts.append(Partition(n, "0", "0", "8300", "Void root", "data"))
    return PartitionPlan(disk=disk, firmware=firmware, partitions=tuple(parts))


def apply_partition_plan(plan: PartitionPlan, *, dry_run: bool = False) -> None:
    """Wipe the disk, create the plan's partitions and format the ESP."""

    disk = plan.disk
    logger.info("Partitioning disk=%s firmware=%s", disk, plan.firmware.value)

    # Wipe + GPT
    run_cmd(["wipefs", "-a", disk], dry_run=dry_run)
    run_cmd(["sgdisk", "--zap-all", disk], dry_run=dry_run)

    for p in plan.partitions:
        run_cmd(
            [
                "sgdisk",
                f"--new={p.number}:{p.start}:{p.size}",
                f"--typecode={p.number}:{p.typecode}",
                f"--change-name={p.number}:{p.name}",
                disk,
            ],
            dry_run=dry_run,
        )

    # Inform kernel
    run_cmd(["partprobe", disk], dry_run=dry_run)

    run_cmd(["mkfs.vfat", "-F", "32", "-n", "EFI", plan.esp_part], dry_run=dry_run)
