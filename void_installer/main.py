from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, List, Optional

from .config import config_from_mapping, load_answers, validate_config
from .errors import InstallerError, StepFailed
from .lib.mounts import MountStack
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import InstallContext, Step, run_pipeline
from .prompts import collect_answers, confirm_destructive
from .state_store import new_state, save_state_with_fallback
from .steps import (
    BootloaderStep,
    BootstrapStep,
    ConfigureStep,
    FinalizeStep,
    FstabStep,
    PartitionStep,
    PreflightStep,
    SnapshotSwapStep,
    StorageStep,
)
from .steps.step_00_preflight import check_host, check_target

logger = logging.getLogger(__name__)


DEFAULT_STATE_PATH = "/var/log/void-installer-state.json"


def build_steps() -> List[Step]:
    return [
        PreflightStep(),
        PartitionStep(),
        StorageStep(),
        BootstrapStep(),
        ConfigureStep(),
        BootloaderStep(),
        SnapshotSwapStep(),
        FstabStep(),
        FinalizeStep(),
    ]


def _print_summary(summary: Dict[str, Any]) -> None:
    logger.info("Installation summary:")
    for key, value in summary.items():
        logger.info("  %-14s %s", key, value)


def run(
    *,
    config_path: Optional[str] = None,
    state_path: str = DEFAULT_STATE_PATH,
    dry_run: bool = False,
    stop_after: Optional[str] = None,
) -> Dict[str, Any]:
    """Collect answers, confirm, then run every step against the target disk."""

    firmware = check_host(dry_run=dry_run)

    preset = load_answers(config_path) if config_path else {}
    answers = collect_answers(preset, interactive=config_path is None, defaults={"firmware": firmware.value})
    cfg = validate_config(config_from_mapping(answers))
    check_target(cfg, dry_run=dry_run)

    summary = cfg.redacted()
    _print_summary(summary)
    if dry_run:
        logger.warning("Dry run: commands are logged, not executed")
    elif not confirm_destructive(cfg.disk):
        raise InstallerError("Aborted by user.")

    state = new_state(summary)
    state["execution"]["dry_run"] = dry_run

    try:
        with MountStack(dry_run=dry_run) as mounts:
            ctx = InstallContext(config=cfg, mounts=mounts, dry_run=dry_run)
            result = run_pipeline(ctx=ctx, state=state, steps=build_steps(), stop_after=stop_after)
        state = result.state
        state["execution"]["ran_steps"] = result.ran_steps
        return state
    except (InstallerError, OSError) as e:
        state["execution"].setdefault("errors", []).append(
            {
                "step": state["execution"].get("current_step"),
                "error": str(e),
            }
        )
        raise
    finally:
        save_state_with_fallback(state_path, state)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="void-installer", description="Install Void Linux with Limine onto a whole disk.")
    p.add_argument("--config", default=None, help="YAML answers file (keys as in InstallConfig)")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path of the install record (json|yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to installer log")
    p.add_argument("--dry-run", action="store_true", help="Log every command without running it")
    p.add_argument("--stop-after", default=None, help="Stop after step_id (e.g. 30_bootstrap)")
    p.add_argument("-v", "--verbose", action="store_true", help="Show DEBUG output on the console")

    args = p.parse_args(argv)

    actual_log_path = configure_logging(
        log_path=args.log,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    logger.debug("Log file: %s", actual_log_path)

    try:
        run(
            config_path=args.config,
            state_path=args.state,
            dry_run=args.dry_run,
            stop_after=args.stop_after,
        )
    except KeyboardInterrupt:
        logger.error("Interrupted.")
        return 130
    except StepFailed as e:
        logger.error("Step %s failed: %s", e.step_id, e.cause)
        logger.debug("Traceback", exc_info=True)
        return 1
    except (InstallerError, OSError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
