from .step_00_preflight import PreflightStep
from .step_10_partition import PartitionStep
from .step_20_storage import StorageStep
from .step_30_bootstrap import BootstrapStep
from .step_40_configure import ConfigureStep
from .step_50_bootloader import BootloaderStep
from .step_60_snapshots_swap import SnapshotSwapStep
from .step_70_fstab import FstabStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "PreflightStep",
    "PartitionStep",
    "StorageStep",
    "BootstrapStep",
    "ConfigureStep",
    "BootloaderStep",
    "SnapshotSwapStep",
    "FstabStep",
    "FinalizeStep",
]
