import pytest

from void_installer.config import Filesystem
from void_installer.errors import CommandError, PreconditionError
from void_installer.lib import block


@pytest.mark.parametrize(
    "disk,n,expected",
    [
        ("/dev/sda", 1, "/dev/sda1"),
        ("/dev/vdb", 3, "/dev/vdb3"),
        ("/dev/nvme0n1", 2, "/dev/nvme0n1p2"),
        ("/dev/mmcblk0", 1, "/dev/mmcblk0p1"),
        ("/dev/loop7", 2, "/dev/loop7p2"),
    ],
)
def test_partition_path_inserts_p_after_digit(disk, n, expected):
    assert block.partition_path(disk, n) == expected


def test_get_uuid_reads_blkid_value(fake_run):
    fake_run.stdout[("blkid",)] = "1234-ABCD\n"

    assert block.get_uuid("/dev/sda1") == "1234-ABCD"
    assert fake_run.calls == [["blkid", "-s", "UUID", "-o", "value", "/dev/sda1"]]


def test_get_uuid_empty_output_is_an_error(fake_run):
    with pytest.raises(CommandError):
        block.get_uuid("/dev/sda1")


def test_get_uuid_dry_run_returns_placeholder(fake_run):
    assert block.get_uuid("/dev/sda1", dry_run=True) == block.DRY_RUN_UUID


def test_bcachefs_uuid_from_show_super(fake_run):
    fake_run.stdout[("bcachefs", "show-super")] = (
        "Device:                                     (unknown device)\n"
        "External UUID:                              6f1b8c3e-58a2-4f6e-9d1c-2a7b3c4d5e6f\n"
        "Internal UUID:                              0a0b0c0d-0000-1111-2222-333344445555\n"
    )

    uuid = block.filesystem_uuid("/dev/sda2", Filesystem.BCACHEFS)

    assert uuid == "6f1b8c3e-58a2-4f6e-9d1c-2a7b3c4d5e6f"
    assert fake_run.calls == [["bcachefs", "show-super", "/dev/sda2"]]


def test_bcachefs_uuid_missing_raises(fake_run):
    fake_run.stdout[("bcachefs", "show-super")] = "garbage\n"
    with pytest.raises(CommandError):
        block.get_bcachefs_uuid("/dev/sda2")


def test_require_block_device_rejects_regular_file(tmp_path):
    f = tmp_path / "disk.img"
    f.write_bytes(b"")
    with pytest.raises(PreconditionError):
        block.require_block_device(str(f))
