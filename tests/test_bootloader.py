import os
import shutil
import subprocess

import pytest

from void_installer.lib import bootloader
from void_installer.lib.bootloader import (
    SNAPSHOT_MARKER,
    LimineConfig,
    build_entries,
    discover_kernels,
    discover_snapshots,
    render_hook_defaults,
    render_kernel_hook,
    render_limine_config,
)

needs_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")


def _boot(tmp_path, versions, orphan=()):
    boot = tmp_path / "boot"
    boot.mkdir()
    for v in versions:
        (boot / f"vmlinuz-{v}").write_bytes(b"")
        (boot / f"initramfs-{v}.img").write_bytes(b"")
    for v in orphan:
        (boot / f"vmlinuz-{v}").write_bytes(b"")
    return boot


def _cmdline(snap):
    return f"root=UUID=u snap={snap}" if snap else "root=UUID=u"


def test_discover_kernels_newest_first_and_skips_orphans(tmp_path):
    boot = _boot(tmp_path, ["6.6.52_1", "6.12.3_1", "6.6.9_1"], orphan=["6.13.0_1"])

    kernels = discover_kernels(str(boot))

    assert [k.version for k in kernels] == ["6.12.3_1", "6.6.52_1", "6.6.9_1"]
    assert kernels[0].initramfs == "initramfs-6.12.3_1.img"


def test_one_entry_per_kernel(tmp_path):
    kernels = discover_kernels(str(_boot(tmp_path, ["6.6.52_1", "6.12.3_1"])))

    entries = build_entries(kernels, _cmdline)

    assert [e.title for e in entries] == ["Void Linux (6.12.3_1)", "Void Linux (6.6.52_1)"]
    assert entries[0].kernel_path == "boot():/vmlinuz-6.12.3_1"
    assert entries[0].initramfs_path == "boot():/initramfs-6.12.3_1.img"
    assert all(e.cmdline == "root=UUID=u" for e in entries)


def test_snapshot_entries_follow_plain_entries(tmp_path):
    kernels = discover_kernels(str(_boot(tmp_path, ["6.6.52_1", "6.12.3_1"])))

    entries = build_entries(kernels, _cmdline, snapshots=["root-2", "root-1"])

    assert len(entries) == 2 + 2 * 2
    assert [e.cmdline for e in entries[:2]] == ["root=UUID=u"] * 2
    assert entries[2].title == "Void Linux (6.12.3_1, snapshot root-2)"
    assert entries[2].cmdline == "root=UUID=u snap=root-2"


def test_discover_snapshots_missing_dir(tmp_path):
    assert discover_snapshots(str(tmp_path / "none")) == []
    (tmp_path / "s" / "a").mkdir(parents=True)
    (tmp_path / "s" / "b").mkdir()
    assert discover_snapshots(str(tmp_path / "s")) == ["b", "a"]


def test_render_limine_config(tmp_path):
    kernels = discover_kernels(str(_boot(tmp_path, ["6.12.3_1"])))
    text = render_limine_config(LimineConfig(entries=tuple(build_entries(kernels, _cmdline))))

    assert text.startswith("timeout: 5\ndefault_entry: 1\n\n")
    assert "/Void Linux (6.12.3_1)\n" in text
    assert "    protocol: linux\n" in text
    assert "    path: boot():/vmlinuz-6.12.3_1\n" in text
    assert "    module_path: boot():/initramfs-6.12.3_1.img\n" in text
    assert "    cmdline: root=UUID=u\n" in text
    assert "TIMEOUT=" not in text


def test_install_kernel_hook_writes_executable(tmp_path):
    bootloader.install_kernel_hook(str(tmp_path), "root=UUID=u rw")

    hook = tmp_path / bootloader.KERNEL_HOOK
    assert hook.stat().st_mode & 0o111
    assert hook.read_text().startswith("#!/bin/sh\n")
    defaults = (tmp_path / bootloader.HOOK_DEFAULTS).read_text()
    assert 'CMDLINE="root=UUID=u rw"' in defaults
    assert 'SNAPSHOT_CMDLINE=""' in defaults


def _btrfs_cmdline(snap):
    return f"root=UUID=u rootflags=subvol={'@/.snapshots/' + snap if snap else '@'} rw"


def _run_hook(tmp_path, boot, defaults):
    hook = tmp_path / "60-limine"
    hook.write_text(render_kernel_hook())
    defaults_file = tmp_path / "limine-defaults"
    defaults_file.write_text(defaults)
    subprocess.run(
        ["sh", str(hook), "linux6.12", "6.12.3_1"],
        env={**os.environ, "BOOT_DIR": str(boot), "LIMINE_DEFAULTS": str(defaults_file)},
        check=True,
    )
    return (boot / "limine.conf").read_text()


@needs_sh
def test_kernel_hook_adds_snapshot_entries(tmp_path):
    boot = _boot(tmp_path, ["6.6.52_1", "6.12.3_1"])
    snaps = tmp_path / "snapshots"
    (snaps / "root-2026-10-16_0000").mkdir(parents=True)
    (snaps / "root-2026-10-17_0000").mkdir()
    defaults = render_hook_defaults(
        _btrfs_cmdline(None),
        snapshot_cmdline=_btrfs_cmdline(SNAPSHOT_MARKER),
        snapshot_dir=str(snaps),
    )

    text = _run_hook(tmp_path, boot, defaults)

    assert "/Void Linux (6.12.3_1, snapshot root-2026-10-17_0000)\n" in text
    assert "    cmdline: root=UUID=u rootflags=subvol=@/.snapshots/root-2026-10-17_0000 rw\n" in text
    # same menu the installer writes for the same kernels and snapshots
    entries = build_entries(
        discover_kernels(str(boot)),
        _btrfs_cmdline,
        snapshots=discover_snapshots(str(snaps)),
    )
    assert text == render_limine_config(LimineConfig(entries=tuple(entries)))


@needs_sh
def test_kernel_hook_without_snapshot_cmdline_lists_kernels_only(tmp_path):
    boot = _boot(tmp_path, ["6.12.3_1"])
    snaps = tmp_path / "snapshots"
    (snaps / "root-2026-10-17_0000").mkdir(parents=True)

    text = _run_hook(tmp_path, boot, render_hook_defaults("root=UUID=u rw", snapshot_dir=str(snaps)))

    assert text == "timeout: 5\ndefault_entry: 1\n\n" + (
        "/Void Linux (6.12.3_1)\n"
        "    protocol: linux\n"
        "    path: boot():/vmlinuz-6.12.3_1\n"
        "    module_path: boot():/initramfs-6.12.3_1.img\n"
        "    cmdline: root=UUID=u rw\n\n"
    )


def test_install_limine_uefi_copies_fallback(tmp_path, fake_run):
    src = tmp_path / "usr/share/limine/BOOTX64.EFI"
    src.parent.mkdir(parents=True)
    src.write_bytes(b"EFI")
    fake_run.returncodes[("efibootmgr",)] = 1

    bootloader.install_limine_uefi(target_root=str(tmp_path), disk="/dev/sda", esp_number=1)

    assert (tmp_path / "boot/EFI/BOOT/BOOTX64.EFI").read_bytes() == b"EFI"
    efi = fake_run.calls[fake_run.index(["efibootmgr"])]
    assert efi[efi.index("--part") + 1] == "1"
    assert efi[-1] == "\\EFI\\BOOT\\BOOTX64.EFI"


def test_install_limine_uefi_requires_binary(tmp_path, fake_run):
    with pytest.raises(FileNotFoundError):
        bootloader.install_limine_uefi(target_root=str(tmp_path), disk="/dev/sda", esp_number=1)


def test_install_limine_bios(tmp_path, fake_run):
    src = tmp_path / bootloader.LIMINE_BIOS_SYS
    src.parent.mkdir(parents=True)
    src.write_bytes(b"SYS")

    bootloader.install_limine_bios(target_root=str(tmp_path), disk="/dev/vda")

    assert (tmp_path / "boot/limine/limine-bios.sys").exists()
    assert fake_run.calls == [["chroot", str(tmp_path), "limine", "bios-install", "/dev/vda"]]
