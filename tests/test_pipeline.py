import json

import pytest
import yaml

from void_installer.config import config_from_mapping
from void_installer.errors import CommandError, StepFailed
from void_installer.lib.mounts import MountStack
from void_installer.pipeline import InstallContext, run_pipeline
from void_installer.state_store import new_state, record_decision, save_state


class _Step:
    def __init__(self, step_id, fail=None):
        self.step_id = step_id
        self.fail = fail
        self.ran = False

    def run(self, ctx, state):
        self.ran = True
        if self.fail:
            raise self.fail
        record_decision(state, self.step_id, True)
        return state


def _ctx():
    return InstallContext(config=config_from_mapping({"disk": "/dev/nvme0n1"}), mounts=MountStack(dry_run=True))


def test_runs_in_order_and_marks_completed():
    steps = [_Step("00_a"), _Step("10_b")]
    result = run_pipeline(ctx=_ctx(), state=new_state({}), steps=steps)

    assert result.ran_steps == ["00_a", "10_b"]
    assert result.state["execution"]["completed_steps"] == ["00_a", "10_b"]
    assert result.state["execution"]["current_step"] is None


def test_stop_after():
    steps = [_Step("00_a"), _Step("10_b"), _Step("20_c")]
    result = run_pipeline(ctx=_ctx(), state=new_state({}), steps=steps, stop_after="10_b")

    assert result.ran_steps == ["00_a", "10_b"]
    assert not steps[2].ran


def test_failure_names_the_step_and_stops():
    state = new_state({})
    steps = [_Step("00_a"), _Step("10_b", fail=CommandError(["sgdisk"], 2)), _Step("20_c")]

    with pytest.raises(StepFailed) as exc:
        run_pipeline(ctx=_ctx(), state=state, steps=steps)

    assert exc.value.step_id == "10_b"
    assert isinstance(exc.value.cause, CommandError)
    assert state["execution"]["current_step"] == "10_b"
    assert state["execution"]["completed_steps"] == ["00_a"]
    assert not steps[2].ran


def test_context_derives_plans_from_config():
    ctx = _ctx()
    assert ctx.partitions.data_part == "/dev/nvme0n1p2"
    assert ctx.storage.root_device == "/dev/nvme0n1p2"
    assert ctx.luks_uuid is None


@pytest.mark.parametrize("name,loader", [("state.json", json.loads), ("state.yaml", yaml.safe_load)])
def test_save_state_formats(tmp_path, name, loader):
    state = new_state({"disk": "/dev/sda", "root_password": "***"})
    record_decision(state, "swap", None)
    path = tmp_path / "sub" / name

    save_state(str(path), state)

    data = loader(path.read_text())
    assert data["config"]["disk"] == "/dev/sda"
    assert data["execution"]["decisions"] == {"swap": None}
