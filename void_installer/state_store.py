from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def save_state(path: str, state: Dict[str, Any]) -> None:
    """Write the install record (decisions, steps, errors; never secrets)."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(state, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    logger.debug("Saved install record to %s", path)


def save_state_with_fallback(path: str, state: Dict[str, Any]) -> Optional[str]:
    """save_state() that never raises.

    An unwritable path (e.g. /var/log on a non-root dry run) falls back to
    the working directory. Returns the path written, or None.
    """

    try:
        save_state(path, state)
        return path
    except OSError as e:
        fallback = str(Path.cwd() / Path(path).name)
        logger.warning("Cannot write install record %s (%s); using %s", path, e, fallback)

    try:
        save_state(fallback, state)
    except OSError as e:
        logger.warning("Install record not saved: %s", e)
        return None
    return fallback


def new_state(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fresh record for one run; config must already be redacted."""

    return {
        "version": 1,
        "config": dict(config),
        "execution": {
            "current_step": None,
            "completed_steps": [],
            "decisions": {},
            "errors": [],
        },
    }


def record_decision(state: Dict[str, Any], key: str, value: Any) -> None:
    state.setdefault("execution", {}).setdefault("decisions", {})[key] = value


def mark_step_completed(state: Dict[str, Any], step_id: str) -> None:
    exe = state.setdefault("execution", {})
    completed = exe.setdefault("completed_steps", [])
    if step_id not in completed:
        completed.append(step_id)
