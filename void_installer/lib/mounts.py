from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import List, Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)


class MountStack:
    """Mounts and device activations owned by one install run.

    Every acquisition registers its release; close() runs them in reverse
    order. Used as a context manager around the whole pipeline so an early
    failure still unmounts the target and closes the encrypted container.
    Releases are best-effort: a failing umount is logged, not raised.
    """

    def __init__(self, *, dry_run: bool = False):
        self.dry_run = dry_run
        self._stack = ExitStack()
        self.mounted: List[str] = []

    def __enter__(self) -> "MountStack":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _release(self, argv: Sequence[str]) -> None:
        r = run_cmd(argv, check=False, dry_run=self.dry_run)
        if r.returncode != 0:
            logger.warning("Release failed (%s): %s", r.returncode, " ".join(argv))

    def mount(self, source: str, target: str, *, fstype: str | None = None, options: str | None = None) -> str:
        argv = ["mount"]
        if fstype:
            argv += ["-t", fstype]
        if options:
            argv += ["-o", options]
        run_cmd(["mkdir", "-p", target], dry_run=self.dry_run)
        run_cmd([*argv, source, target], dry_run=self.dry_run)
        self.mounted.append(target)
        self._stack.callback(self._release, ["umount", target])
        return target

    def adopt_mount(self, target: str, *, recursive: bool = False) -> None:
        """Register a mount made elsewhere (e.g. an rbind) for release."""
        argv = ["umount", "-R", target] if recursive else ["umount", target]
        self.mounted.append(target)
        self._stack.callback(self._release, argv)

    def luks_opened(self, name: str) -> None:
        self._stack.callback(self._release, ["cryptsetup", "close", name])

    def vg_activated(self, vg: str) -> None:
        self._stack.callback(self._release, ["vgchange", "-an", vg])

    def close(self) -> None:
        if self.mounted:
            logger.info("Releasing %d mount(s) and activations", len(self.mounted))
        self._stack.close()
        self.mounted.clear()
