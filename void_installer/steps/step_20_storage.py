from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.storage import build_storage
from ..pipeline import InstallContext
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class StorageStep:
    step_id = "20_storage"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        plan = ctx.storage
        build_storage(
            plan,
            passphrase=ctx.config.passphrase,
            target_root=ctx.target_root,
            mounts=ctx.mounts,
        )

        record_decision(state, "storage_layers", list(plan.layers))
        record_decision(state, "root_device", plan.root_device)
        record_decision(state, "mounts", list(ctx.mounts.mounted))
        logger.info("Storage ready: root=%s mounted at %s", plan.root_device, ctx.target_root)
        return state
