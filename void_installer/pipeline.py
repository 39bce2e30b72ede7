from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .config import InstallConfig
from .errors import InstallerError, StepFailed
from .lib.block import filesystem_uuid, get_uuid
from .lib.mounts import MountStack
from .lib.partition import PartitionPlan, plan_partitions
from .lib.storage import StoragePlan, plan_storage
from .state_store import mark_step_completed

logger = logging.getLogger(__name__)


@dataclass
class InstallContext:
    """What every step receives: the frozen answers plus the run's resources."""

    config: InstallConfig
    mounts: MountStack
    dry_run: bool = False

    @property
    def target_root(self) -> str:
        return self.config.target_root

    @cached_property
    def partitions(self) -> PartitionPlan:
        cfg = self.config
        return plan_partitions(cfg.disk, cfg.firmware, cfg.esp_size_mib)

    @cached_property
    def storage(self) -> StoragePlan:
        return plan_storage(self.config, self.partitions.data_part, self.partitions.esp_part)

    @cached_property
    def root_uuid(self) -> str:
        return filesystem_uuid(self.storage.root_device, self.config.filesystem, dry_run=self.dry_run)

    @cached_property
    def luks_uuid(self) -> Optional[str]:
        if self.storage.luks is None:
            return None
        return get_uuid(self.storage.luks.device, dry_run=self.dry_run)


class Step(Protocol):
    """A single step of the install."""

    step_id: str

    def run(self, ctx: InstallContext, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str] = field(default_factory=list)


def run_pipeline(
    *,
    ctx: InstallContext,
    state: Dict[str, Any],
    steps: Sequence[Step],
    stop_after: Optional[str] = None,
) -> PipelineResult:
    """Run steps strictly in order; the first exception aborts the run.

    execution.current_step keeps the id of the step that was running, so the
    caller can name it when reporting a failure.
    """

    ran: List[str] = []

    for step in steps:
        state.setdefault("execution", {})["current_step"] = step.step_id
        logger.info("Running step %s", step.step_id)
        try:
            state = step.run(ctx, state)
        except (InstallerError, OSError) as e:
            if isinstance(e, StepFailed):
                raise
            raise StepFailed(step.step_id, e) from e
        mark_step_completed(state, step.step_id)
        ran.append(step.step_id)

        if stop_after is not None and step.step_id == stop_after:
            logger.info("Stopping after %s", stop_after)
            break

    state.setdefault("execution", {})["current_step"] = None
    return PipelineResult(state=state, ran_steps=ran)
