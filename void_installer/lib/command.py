from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..errors import CommandError, ToolMissingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def describe(argv: Sequence[str], env: Mapping[str, str] | None = None) -> str:
    """Shell-style rendering, with env overrides first (`XBPS_ARCH=... xbps-install ...`)."""

    prefix = [f"{k}={shlex.quote(v)}" for k, v in (env or {}).items()]
    return " ".join(prefix + [shlex.quote(a) for a in argv])


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run one external command; every installer action goes through here.

    - The command line is logged at INFO, prefixed with DRY-RUN when it is
      not executed. input_text (passphrases, chpasswd lines) is never logged.
    - stdout/stderr are captured and go to the DEBUG log.
    - A missing executable raises ToolMissingError; a non-zero exit raises
      CommandError unless check=False.
    """

    argv_list = list(argv)
    shown = describe(argv_list, env)

    if dry_run:
        logger.info("DRY-RUN %s", shown)
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")
    logger.info("CMD %s", shown)

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            capture_output=True,
            cwd=cwd,
            env={**os.environ, **(env or {})},
        )
    except FileNotFoundError as e:
        raise ToolMissingError([argv_list[0]], "not found on PATH") from e

    for stream, text in (("STDOUT", p.stdout), ("STDERR", p.stderr)):
        if text:
            logger.debug("%s %s", stream, text.strip())

    if check and p.returncode != 0:
        raise CommandError(argv_list, p.returncode, p.stderr)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)
