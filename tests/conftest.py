from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from void_installer import pkglist
from void_installer.lib import block, bootloader, chroot, mounts, partition, storage, swap, xbps
from void_installer.lib.command import CmdResult
from void_installer.steps import step_40_configure, step_90_finalize

# Every module that imported run_cmd by name.
_RUN_CMD_MODULES = (
    block,
    bootloader,
    chroot,
    mounts,
    partition,
    storage,
    swap,
    xbps,
    pkglist,
    step_40_configure,
    step_90_finalize,
)


class FakeRunner:
    """Records argv lists instead of running anything."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self.stdout: Dict[Tuple[str, ...], str] = {}
        self.returncodes: Dict[Tuple[str, ...], int] = {}

    def _lookup(self, table, argv, default):
        for prefix, value in table.items():
            if tuple(argv[: len(prefix)]) == prefix:
                return value
        return default

    def __call__(self, argv: Sequence[str], *, check=True, env=None, cwd=None, input_text=None, dry_run=False):
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append(input_text)
        return CmdResult(
            argv=argv,
            returncode=self._lookup(self.returncodes, argv, 0),
            stdout=self._lookup(self.stdout, argv, ""),
            stderr="",
        )

    def commands(self) -> List[str]:
        return [" ".join(c) for c in self.calls]

    def index(self, prefix: Sequence[str]) -> int:
        for i, c in enumerate(self.calls):
            if c[: len(prefix)] == list(prefix):
                return i
        raise AssertionError(f"no call starting with {list(prefix)}")


@pytest.fixture
def fake_run(monkeypatch):
    runner = FakeRunner()
    for mod in _RUN_CMD_MODULES:
        monkeypatch.setattr(mod, "run_cmd", runner)
    return runner
