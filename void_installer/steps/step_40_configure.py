from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from ..config import Encryption, Gpu, InstallConfig, PrivEsc
from ..lib import sysconfig
from ..lib.chroot import chroot_cmd
from ..lib.command import run_cmd
from ..lib.files import write_file
from ..lib.runit import enable_services
from ..lib.snapshots import snapshot_kind
from ..lib.storage import FILESYSTEMS
from ..lib.xbps import xbps_install, xbps_reconfigure, xbps_sync_update
from ..pipeline import InstallContext
from ..state_store import record_decision

logger = logging.getLogger(__name__)

GPU_PACKAGES: Dict[Gpu, Tuple[str, ...]] = {
    Gpu.NONE: (),
    Gpu.INTEL: ("mesa-dri", "vulkan-loader", "mesa-vulkan-intel", "intel-video-accel"),
    Gpu.AMD: ("mesa-dri", "vulkan-loader", "mesa-vulkan-radeon", "xf86-video-amdgpu"),
    # proprietary; needs void-repo-nonfree
    Gpu.NVIDIA: ("nvidia", "nvidia-libs"),
}

DRACUT_CONF = "/etc/dracut.conf.d/10-void-installer.conf"


def repo_packages(arch: str) -> List[str]:
    pkgs = ["void-repo-nonfree"]
    # multilib only exists for glibc x86_64
    if arch == "x86_64":
        pkgs += ["void-repo-multilib", "void-repo-multilib-nonfree"]
    return pkgs


def dracut_modules(cfg: InstallConfig) -> List[str]:
    mods: List[str] = []
    if cfg.encryption is Encryption.LUKS:
        mods.append("crypt")
    if cfg.lvm:
        mods.append("lvm")
    fs_mod = FILESYSTEMS[cfg.filesystem].dracut_module
    if fs_mod:
        mods.append(fs_mod)
    return mods


def services_for(cfg: InstallConfig) -> List[str]:
    svcs = list(sysconfig.BASE_SERVICES)
    if snapshot_kind(cfg) is not None:
        svcs.append("cronie")
    return svcs


def password_lines(cfg: InstallConfig) -> str:
    lines = [f"root:{cfg.root_password}"]
    if cfg.username:
        lines.append(f"{cfg.username}:{cfg.user_password}")
    return "\n".join(lines) + "\n"


class ConfigureStep:
    step_id = "40_configure"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = ctx.config
        root = ctx.target_root
        dry_run = ctx.dry_run

        run_cmd(["cp", "-L", "/etc/resolv.conf", f"{root}/etc/resolv.conf"], dry_run=dry_run)

        xbps_sync_update(root, dry_run=dry_run)
        xbps_install(root, repo_packages(cfg.arch), dry_run=dry_run)
        chroot_cmd(root, ["xbps-install", "-S"], dry_run=dry_run)

        # Written before the kernel goes in so its initramfs already has the modules.
        write_file(root, DRACUT_CONF, sysconfig.render_dracut_conf(dracut_modules(cfg)), dry_run=dry_run)

        xbps_install(root, cfg.kernel.packages, dry_run=dry_run)
        xbps_install(root, GPU_PACKAGES[cfg.gpu], dry_run=dry_run)

        chroot_cmd(root, ["ln", "-sf", f"/usr/share/zoneinfo/{cfg.timezone}", "/etc/localtime"], dry_run=dry_run)
        write_file(root, "/etc/rc.conf", sysconfig.render_rc_conf(cfg.timezone, cfg.keymap), dry_run=dry_run)

        write_file(root, "/etc/locale.conf", sysconfig.render_locale_conf(cfg.locale), dry_run=dry_run)
        if not cfg.arch.endswith("-musl"):
            locales = [cfg.locale, *cfg.extra_locales]
            write_file(root, "/etc/default/libc-locales", sysconfig.render_libc_locales(locales), dry_run=dry_run)
            xbps_reconfigure(root, "glibc-locales", dry_run=dry_run)

        write_file(root, "/etc/hostname", sysconfig.render_hostname(cfg.hostname), dry_run=dry_run)
        write_file(root, "/etc/hosts", sysconfig.render_hosts(cfg.hostname), dry_run=dry_run)

        path, contents, mode = sysconfig.privesc_files(cfg.privesc)
        write_file(root, path, contents, mode=mode, dry_run=dry_run)
        if cfg.privesc is PrivEsc.SUDO:
            chroot_cmd(root, ["visudo", "-cf", path], dry_run=dry_run)

        if cfg.username:
            chroot_cmd(
                root,
                ["useradd", "-m", "-G", ",".join(sysconfig.USER_GROUPS), "-s", "/bin/bash", cfg.username],
                dry_run=dry_run,
            )
        chroot_cmd(root, ["chpasswd"], input_text=password_lines(cfg), dry_run=dry_run)

        services = services_for(cfg)
        enable_services(root, services, dry_run=dry_run)

        # Regenerates every initramfs with the dracut fragment above.
        xbps_reconfigure(root, dry_run=dry_run)

        record_decision(state, "kernel_packages", list(cfg.kernel.packages))
        record_decision(state, "gpu_packages", list(GPU_PACKAGES[cfg.gpu]))
        record_decision(state, "services", services)
        logger.info("Configured hostname=%s user=%s privesc=%s", cfg.hostname, cfg.username or "-", cfg.privesc.value)
        return state
