from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.partition import apply_partition_plan
from ..pipeline import InstallContext
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class PartitionStep:
    step_id = "10_partition"

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        plan = ctx.partitions
        apply_partition_plan(plan, dry_run=ctx.dry_run)

        record_decision(
            state,
            "partitions",
            {p.role: plan.path(p.role) for p in plan.partitions},
        )
        logger.info("Partitioned %s (esp=%s data=%s)", plan.disk, plan.esp_part, plan.data_part)
        return state
