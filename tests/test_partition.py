from void_installer.config import Firmware
from void_installer.lib.partition import apply_partition_plan, plan_partitions


def test_uefi_plan_on_sata_disk():
    plan = plan_partitions("/dev/sda", Firmware.UEFI)

    assert [p.role for p in plan.partitions] == ["esp", "data"]
    assert plan.esp_part == "/dev/sda1"
    assert plan.data_part == "/dev/sda2"
    assert plan.esp_number == 1
    assert plan.partitions[0].size == "+512MiB"
    assert plan.partitions[0].typecode == "ef00"


def test_uefi_plan_on_nvme_disk():
    plan = plan_partitions("/dev/nvme0n1", Firmware.UEFI, esp_size_mib=1024)

    assert plan.esp_part == "/dev/nvme0n1p1"
    assert plan.data_part == "/dev/nvme0n1p2"
    assert plan.partitions[0].size == "+1024MiB"


def test_bios_plan_adds_bios_boot_partition():
    plan = plan_partitions("/dev/vda", Firmware.BIOS)

    assert [p.role for p in plan.partitions] == ["bios_boot", "esp", "data"]
    assert plan.partitions[0].typecode == "ef02"
    assert plan.esp_part == "/dev/vda2"
    assert plan.data_part == "/dev/vda3"
    assert plan.esp_number == 2


def test_apply_partition_plan_command_sequence(fake_run):
    plan = plan_partitions("/dev/sda", Firmware.UEFI)

    apply_partition_plan(plan)

    assert fake_run.calls == [
        ["wipefs", "-a", "/dev/sda"],
        ["sgdisk", "--zap-all", "/dev/sda"],
        ["sgdisk", "--new=1:2048:+512MiB", "--typecode=1:ef00", "--change-name=1:EFI System", "/dev/sda"],
        ["sgdisk", "--new=2:0:0", "--typecode=2:8300", "--change-name=2:Void root", "/dev/sda"],
        ["partprobe", "/dev/sda"],
        ["mkfs.vfat", "-F", "32", "-n", "EFI", "/dev/sda1"],
    ]
