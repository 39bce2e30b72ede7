from __future__ import annotations

import logging
from typing import Sequence

from .chroot import chroot_cmd

logger = logging.getLogger(__name__)

# /var/service points at runsvdir/current, which only exists once runit runs;
# inside the chroot we link into the default runlevel directly.
RUNSVDIR = "/etc/runit/runsvdir/default"


def enable_services(target_root: str, services: Sequence[str], *, dry_run: bool = False) -> None:
    for svc in dict.fromkeys(services):
        chroot_cmd(target_root, ["ln", "-sf", f"/etc/sv/{svc}", f"{RUNSVDIR}/{svc}"], dry_run=dry_run)
    logger.info("Enabled services: %s", ", ".join(dict.fromkeys(services)))
