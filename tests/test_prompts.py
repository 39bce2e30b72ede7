import pytest

from void_installer.config import config_from_mapping
from void_installer.errors import PreconditionError
from void_installer.prompts import ask_password, collect_answers, confirm_destructive


def _feed(replies):
    it = iter(replies)
    return lambda prompt: next(it)


def test_interactive_defaults_on_empty_replies():
    answers = collect_answers(
        input_fn=lambda prompt: "/dev/sda" if prompt.startswith("Target disk") else "",
        getpass_fn=lambda prompt: "pw",
        defaults={"firmware": "bios"},
    )
    cfg = config_from_mapping(answers)

    assert cfg.disk == "/dev/sda"
    assert cfg.firmware.value == "bios"
    assert cfg.hostname == "voidbox"
    assert cfg.root_password == "pw"
    assert cfg.passphrase == ""
    assert "user_password" not in answers


def test_conditional_questions_follow_answers():
    asked = []

    def input_fn(prompt):
        asked.append(prompt)
        if prompt.startswith("Target disk"):
            return "/dev/vda"
        if prompt.startswith("Disk encryption"):
            return "luks"
        if prompt.startswith("Use LVM"):
            return "y"
        return ""

    answers = collect_answers(input_fn=input_fn, getpass_fn=lambda prompt: "pw")

    assert answers["encryption"] == "luks"
    assert answers["passphrase"] == "pw"
    assert answers["lvm"] is True
    assert any(p.startswith("Separate /home") for p in asked)
    assert not any(p.startswith("Swap size") for p in asked)


def test_preset_skips_questions_and_only_secrets_are_asked():
    preset = {"disk": "/dev/sda", "username": "alice", "encryption": "luks"}
    secrets = []

    answers = collect_answers(
        preset,
        interactive=False,
        input_fn=lambda prompt: pytest.fail(f"unexpected prompt {prompt}"),
        getpass_fn=lambda prompt: secrets.append(prompt) or "s3cret",
    )

    assert answers["user_password"] == "s3cret"
    assert answers["root_password"] == "s3cret"
    assert answers["passphrase"] == "s3cret"
    assert "hostname" not in answers


def test_password_mismatch():
    with pytest.raises(PreconditionError):
        ask_password("Root password", getpass_fn=_feed(["a", "b"]))


def test_confirmation_needs_literal_yes():
    assert confirm_destructive("/dev/sda", input_fn=lambda p: "YES")
    assert not confirm_destructive("/dev/sda", input_fn=lambda p: "yes")
    assert not confirm_destructive("/dev/sda", input_fn=lambda p: "")


def test_interactive_asks_layout_and_mirror_details():
    replies = {
        "Target disk": "/dev/vda",
        "EFI system partition size": "1024",
        "Architecture": "x86_64-musl",
        "Repository mirror": "https://mirrors.example.org/voidlinux/current",
        "Filesystem label": "tank",
    }

    def input_fn(prompt):
        return next((v for k, v in replies.items() if prompt.startswith(k)), "")

    cfg = config_from_mapping(collect_answers(input_fn=input_fn, getpass_fn=lambda prompt: "pw"))

    assert cfg.esp_size_mib == 1024
    assert cfg.arch == "x86_64-musl"
    assert cfg.repository == "https://mirrors.example.org/voidlinux/current"
    assert cfg.fs_label == "tank"
