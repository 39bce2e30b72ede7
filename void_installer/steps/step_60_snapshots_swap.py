from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict

from ..lib import sysconfig
from ..lib.files import write_file
from ..lib.runit import enable_services
from ..lib.snapshots import snapshot_files, snapshot_kind
from ..lib.swap import plan_swap, setup_swap
from ..pipeline import InstallContext
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class SnapshotSwapStep:
    step_id = "60_snapshots_swap"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = ctx.config
        root = ctx.target_root
        dry_run = ctx.dry_run

        kind = snapshot_kind(cfg)
        if kind is not None:
            for f in snapshot_files(kind, cfg, root_uuid=ctx.root_uuid):
                write_file(root, f.path, f.contents, mode=f.mode, dry_run=dry_run)
            logger.info("Daily %s snapshots configured", kind.value)
        record_decision(state, "snapshots", kind.value if kind else None)

        swap = plan_swap(cfg, ctx.storage)
        entry = setup_swap(swap, root, dry_run=dry_run)
        record_decision(state, "swap", dataclasses.asdict(entry) if entry else None)

        if cfg.zram:
            write_file(root, "/etc/zramen.conf", sysconfig.render_zramen_conf(cfg.zram_percent), dry_run=dry_run)
            enable_services(root, ["zramen"], dry_run=dry_run)
            logger.info("zram swap configured (%d%% of RAM)", cfg.zram_percent)

        return state
