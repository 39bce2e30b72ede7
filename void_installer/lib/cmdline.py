from __future__ import annotations

from typing import List, Optional

from ..config import Encryption, Filesystem

BASE_TOKENS = ("rw", "quiet", "loglevel=4")
ZSWAP_TOKENS = ("zswap.enabled=1", "zswap.compressor=zstd", "zswap.max_pool_percent=20")


def build_cmdline(
    *,
    root_uuid: str,
    filesystem: Filesystem,
    encryption: Encryption = Encryption.NONE,
    luks_uuid: Optional[str] = None,
    volume_group: Optional[str] = None,
    zswap: bool = False,
    root_subvolume: Optional[str] = None,
) -> str:
    """Assemble the kernel command line.

    root= comes first; rootfstype/rootflags only make sense after it.
    root_subvolume overrides the btrfs default `@` (snapshot boot entries).
    """

    if not root_uuid:
        raise ValueError("root_uuid is required")

    tokens: List[str] = [f"root=UUID={root_uuid}"]

    if filesystem is Filesystem.BCACHEFS:
        tokens.append("rootfstype=bcachefs")
    elif filesystem is Filesystem.BTRFS:
        tokens.append(f"rootflags=subvol={root_subvolume or '@'}")

    if encryption is Encryption.LUKS:
        if not luks_uuid:
            raise ValueError("luks_uuid is required when the root is LUKS encrypted")
        tokens.append(f"rd.luks.uuid={luks_uuid}")

    if volume_group:
        tokens.append(f"rd.lvm.vg={volume_group}")

    tokens.extend(BASE_TOKENS)

    if zswap:
        tokens.extend(ZSWAP_TOKENS)

    return " ".join(tokens)
