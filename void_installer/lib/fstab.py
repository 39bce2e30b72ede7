from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    mountpoint: str
    fstype: str
    options: str = "defaults"
    dump: int = 0
    passno: int = 0

    @property
    def is_swap(self) -> bool:
        return self.fstype == "swap"


def render_fstab(entries: Iterable[FstabEntry]) -> str:
    lines = ["# <file system> <dir> <type> <options> <dump> <pass>"]
    for e in entries:
        lines.append(f"{e.spec}\t{e.mountpoint}\t{e.fstype}\t{e.options}\t{e.dump}\t{e.passno}")
    return "\n".join(lines) + "\n"
