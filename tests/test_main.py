import json

import pytest

from void_installer import main as main_mod
from void_installer.config import Firmware
from void_installer.errors import CommandError
from void_installer.steps import step_00_preflight, step_10_partition


@pytest.fixture
def answers(tmp_path):
    p = tmp_path / "answers.yaml"
    p.write_text(
        "\n".join(
            [
                "disk: /dev/sda",
                f"target_root: {tmp_path / 'target'}",
                "root_password: toor",
                "username: alice",
                "user_password: pw",
                "swap: true",
                "snapshots: true",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return p


@pytest.fixture
def live_system(monkeypatch):
    monkeypatch.setattr(main_mod, "check_host", lambda dry_run=False: Firmware.UEFI)
    monkeypatch.setattr(main_mod, "check_target", lambda cfg, dry_run=False: None)
    monkeypatch.setattr(step_00_preflight, "check_target", lambda cfg, dry_run=False: None)


def _argv(tmp_path, answers, *extra):
    return [
        "--config",
        str(answers),
        "--state",
        str(tmp_path / "state.json"),
        "--log",
        str(tmp_path / "install.log"),
        *extra,
    ]


def test_dry_run_walks_every_step(tmp_path, answers, live_system, fake_run):
    rc = main_mod.main(_argv(tmp_path, answers, "--dry-run"))

    assert rc == 0
    state = json.loads((tmp_path / "state.json").read_text())
    assert state["execution"]["completed_steps"] == [s.step_id for s in main_mod.build_steps()]
    assert state["config"]["root_password"] == "***"
    assert state["execution"]["decisions"]["snapshots"] == "timeshift"
    assert state["execution"]["decisions"]["swap"]["spec"] == "/swapfile"

    cmds = fake_run.commands()
    assert "sgdisk --zap-all /dev/sda" in cmds
    assert cmds.index("sgdisk --zap-all /dev/sda") < cmds.index("mkfs.ext4 -F -L voidroot /dev/sda2")
    assert any(c.startswith("efibootmgr --create --disk /dev/sda --part 1") for c in cmds)
    # chpasswd gets the passwords on stdin only
    assert not any("toor" in c for c in cmds)
    assert "root:toor\nalice:pw\n" in fake_run.inputs
    assert cmds[-1] == f"umount {tmp_path / 'target'}"


def test_stop_after(tmp_path, answers, live_system, fake_run):
    rc = main_mod.main(_argv(tmp_path, answers, "--dry-run", "--stop-after", "10_partition"))

    assert rc == 0
    state = json.loads((tmp_path / "state.json").read_text())
    assert state["execution"]["completed_steps"] == ["00_preflight", "10_partition"]


def test_failed_step_exits_1_and_is_recorded(tmp_path, answers, live_system, fake_run, monkeypatch):
    def boom(plan, dry_run=False):
        raise CommandError(["sgdisk", "--zap-all", plan.disk], 4, "device busy")

    monkeypatch.setattr(step_10_partition, "apply_partition_plan", boom)

    rc = main_mod.main(_argv(tmp_path, answers, "--dry-run"))

    assert rc == 1
    state = json.loads((tmp_path / "state.json").read_text())
    assert state["execution"]["errors"][0]["step"] == "10_partition"
    assert "device busy" in state["execution"]["errors"][0]["error"]


def test_refused_confirmation_touches_nothing(tmp_path, answers, live_system, fake_run, monkeypatch):
    monkeypatch.setattr(main_mod, "confirm_destructive", lambda disk: False)

    rc = main_mod.main(_argv(tmp_path, answers))

    assert rc == 1
    assert fake_run.calls == []
    assert not (tmp_path / "state.json").exists()


@pytest.fixture
def unwritable_state(tmp_path, monkeypatch):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return blocker / "state.json", workdir / "state.json"


def _argv_state(tmp_path, answers, state_path, *extra):
    return ["--config", str(answers), "--state", str(state_path), "--log", str(tmp_path / "install.log"), *extra]


def test_unwritable_record_path_does_not_fail_the_install(tmp_path, answers, live_system, fake_run, unwritable_state):
    requested, fallback = unwritable_state

    rc = main_mod.main(_argv_state(tmp_path, answers, requested, "--dry-run"))

    assert rc == 0
    state = json.loads(fallback.read_text())
    assert state["execution"]["completed_steps"][-1] == "90_finalize"


def test_unwritable_record_path_keeps_the_step_failure(
    tmp_path, answers, live_system, fake_run, unwritable_state, monkeypatch, caplog
):
    requested, fallback = unwritable_state

    def boom(plan, dry_run=False):
        raise CommandError(["sgdisk", "--zap-all", plan.disk], 4, "device busy")

    monkeypatch.setattr(step_10_partition, "apply_partition_plan", boom)

    rc = main_mod.main(_argv_state(tmp_path, answers, requested, "--dry-run"))

    assert rc == 1
    assert "Step 10_partition failed" in caplog.text
    assert json.loads(fallback.read_text())["execution"]["errors"][0]["step"] == "10_partition"
