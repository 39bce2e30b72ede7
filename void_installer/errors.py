from __future__ import annotations

import shlex
from typing import Sequence


class InstallerError(RuntimeError):
    """Base class for every fatal installer error."""


class PreconditionError(InstallerError):
    """Environment or input is not acceptable (not root, bad device, ...)."""


class ToolMissingError(InstallerError):
    """A required command is missing (not on PATH, or still absent after installing its package)."""

    def __init__(self, missing: Sequence[str], reason: str = "unavailable after install attempt"):
        self.missing = list(missing)
        super().__init__(f"Required tools {reason}: {', '.join(self.missing)}")


class CommandError(InstallerError):
    """An external command exited non-zero."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        msg = f"Command failed ({returncode}): {shlex.join(self.argv)}"
        if stderr:
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)


class StepFailed(InstallerError):
    """Raised by the pipeline; names the step that was running."""

    def __init__(self, step_id: str, cause: BaseException):
        self.step_id = step_id
        self.cause = cause
        super().__init__(f"Step {step_id} failed: {cause}")
