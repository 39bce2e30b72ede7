from __future__ import annotations

import logging
from typing import Any, Dict

from ..config import Encryption
from ..lib.command import run_cmd
from ..logging_utils import success
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class FinalizeStep:
    step_id = "90_finalize"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = ctx.config
        logger.info("Finalize summary: %s", (state.get("execution") or {}).get("decisions") or {})

        run_cmd(["sync"], dry_run=ctx.dry_run)
        # Pseudo filesystems, home, boot, root, then VG and LUKS, in that order.
        ctx.mounts.close()

        success(logger, "Installation complete.")
        logger.info("Next: reboot and pick '%s' in Limine.", "Void Linux")
        if cfg.encryption is not Encryption.NONE:
            logger.info("The disk passphrase will be asked for during boot.")
        if cfg.snapshots:
            logger.info("Snapshots are taken daily by cron; see /etc/cron.daily.")
        return state
