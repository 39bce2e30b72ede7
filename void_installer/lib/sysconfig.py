"""Renderers for the small configuration files written into the new root."""

from __future__ import annotations

from typing import Iterable, Sequence

from ..config import PrivEsc

USER_GROUPS = ("wheel", "audio", "video", "input", "storage", "network", "kvm", "optical", "plugdev")
BASE_SERVICES = ("dhcpcd", "sshd", "chronyd", "dbus")
PRIV_GROUP = "wheel"


def render_hostname(hostname: str) -> str:
    return hostname + "\n"


def render_hosts(hostname: str) -> str:
    return "\n".join(
        [
            "127.0.0.1\tlocalhost",
            f"127.0.1.1\t{hostname}.localdomain\t{hostname}",
            "",
            "# IPv6",
            "::1\tlocalhost ip6-localhost ip6-loopback",
            "ff02::1\tip6-allnodes",
            "ff02::2\tip6-allrouters",
            "",
        ]
    )


def render_rc_conf(timezone: str, keymap: str) -> str:
    return "\n".join(
        [
            f'TIMEZONE="{timezone}"',
            'HARDWARECLOCK="UTC"',
            f'KEYMAP="{keymap}"',
            "",
        ]
    )


def render_libc_locales(locales: Sequence[str]) -> str:
    # glibc-locales expects "<name> <charset>"
    out = []
    for loc in locales:
        charset = loc.split(".", 1)[1] if "." in loc else "ISO-8859-1"
        out.append(f"{loc} {charset}")
    return "\n".join(out) + "\n"


def render_locale_conf(locale: str) -> str:
    return f"LANG={locale}\nLC_COLLATE=C\n"


def render_sudoers() -> str:
    # Only the privileged group may escalate; everything else falls through to deny.
    return f"%{PRIV_GROUP} ALL=(ALL:ALL) ALL\n"


def render_doas_conf() -> str:
    return f"permit persist :{PRIV_GROUP}\n"


def privesc_files(privesc: PrivEsc) -> tuple[str, str, int]:
    """(path, contents, mode) of the privilege escalation rule file."""

    if privesc is PrivEsc.DOAS:
        return "/etc/doas.conf", render_doas_conf(), 0o400
    return f"/etc/sudoers.d/{PRIV_GROUP}", render_sudoers(), 0o440


def render_dracut_conf(modules: Iterable[str]) -> str:
    mods = " ".join(dict.fromkeys(modules))
    lines = ['hostonly="yes"', 'compress="zstd"']
    if mods:
        lines.append(f'add_dracutmodules+=" {mods} "')
    return "\n".join(lines) + "\n"


def render_zramen_conf(percent: int, algo: str = "zstd") -> str:
    return f"devices=1\nalgo={algo}\npercentage={percent}\n"
