from __future__ import annotations

import dataclasses
import getpass
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from .config import Encryption, Filesystem, Firmware, Gpu, InstallConfig, Kernel, PrivEsc, coerce_bool
from .errors import PreconditionError

logger = logging.getLogger(__name__)

InputFn = Callable[[str], str]

_DEFAULTS: Dict[str, Any] = {
    f.name: f.default for f in dataclasses.fields(InstallConfig) if f.default is not dataclasses.MISSING
}


def _value(answers: Mapping[str, Any], key: str) -> Any:
    return answers.get(key, _DEFAULTS.get(key))


def _is(answers: Mapping[str, Any], key: str) -> bool:
    return coerce_bool(key, _value(answers, key))


def _enum(answers: Mapping[str, Any], key: str) -> str:
    value = _value(answers, key)
    return str(getattr(value, "value", value)).lower()


@dataclass(frozen=True)
class Question:
    key: str
    prompt: str
    kind: str = "text"  # text|bool|choice|password
    choices: Tuple[str, ...] = ()
    when: Optional[Callable[[Mapping[str, Any]], bool]] = None


def _values(enum_cls) -> Tuple[str, ...]:
    return tuple(e.value for e in enum_cls)


QUESTIONS: Tuple[Question, ...] = (
    Question("disk", "Target disk (e.g. /dev/sda, /dev/nvme0n1)"),
    Question("firmware", "Firmware", "choice", _values(Firmware)),
    Question("esp_size_mib", "EFI system partition size in MiB"),
    Question("hostname", "Hostname"),
    Question("timezone", "Timezone (e.g. Europe/Paris)"),
    Question("locale", "Locale"),
    Question("keymap", "Console keymap"),
    Question("arch", "Architecture (x86_64, x86_64-musl, aarch64, ...)"),
    Question("repository", "Repository mirror"),
    Question("username", "Username (empty for none)"),
    Question("user_password", "Password for the user", "password", when=lambda a: bool(_value(a, "username"))),
    Question("root_password", "Root password", "password"),
    Question("filesystem", "Root filesystem", "choice", _values(Filesystem)),
    Question("fs_label", "Filesystem label"),
    Question("encryption", "Disk encryption", "choice", _values(Encryption)),
    Question("passphrase", "Disk passphrase", "password", when=lambda a: _enum(a, "encryption") != "none"),
    Question("lvm", "Use LVM?", "bool", when=lambda a: _enum(a, "encryption") != "native"),
    Question(
        "separate_home",
        "Separate /home logical volume?",
        "bool",
        when=lambda a: _is(a, "lvm") and _enum(a, "filesystem") in ("ext4", "xfs"),
    ),
    Question("root_size", "Size of the root volume", when=lambda a: _is(a, "lvm") and _is(a, "separate_home")),
    Question("swap", "Create swap?", "bool"),
    Question("swap_size", "Swap size", when=lambda a: _is(a, "swap")),
    Question("zswap", "Enable zswap?", "bool"),
    Question("zram", "Enable zram swap?", "bool"),
    Question("zram_percent", "zram size in percent of RAM", when=lambda a: _is(a, "zram")),
    Question("snapshots", "Daily snapshots?", "bool"),
    Question("kernel", "Kernel", "choice", _values(Kernel)),
    Question("gpu", "GPU drivers", "choice", _values(Gpu)),
    Question("privesc", "Privilege escalation tool", "choice", _values(PrivEsc)),
)


def ask(prompt: str, default: Any = None, *, input_fn: InputFn = input) -> str:
    suffix = f" [{default}]" if default not in (None, "") else ""
    reply = input_fn(f"{prompt}{suffix}: ").strip()
    if not reply and default is not None:
        return str(default)
    return reply


def ask_bool(prompt: str, default: bool = False, *, input_fn: InputFn = input) -> bool:
    hint = "Y/n" if default else "y/N"
    while True:
        reply = input_fn(f"{prompt} [{hint}]: ").strip()
        if not reply:
            return default
        try:
            return coerce_bool(prompt, reply)
        except PreconditionError:
            print("Please answer y or n.")


def ask_choice(prompt: str, choices: Sequence[str], default: str, *, input_fn: InputFn = input) -> str:
    while True:
        reply = input_fn(f"{prompt} ({'/'.join(choices)}) [{default}]: ").strip().lower()
        if not reply:
            return default
        if reply in choices:
            return reply
        print(f"Choose one of: {', '.join(choices)}")


def ask_password(prompt: str, *, getpass_fn: InputFn = getpass.getpass) -> str:
    first = getpass_fn(f"{prompt}: ")
    second = getpass_fn("Confirm: ")
    if first != second:
        raise PreconditionError(f"{prompt}: entries do not match")
    return first


def collect_answers(
    preset: Optional[Mapping[str, Any]] = None,
    *,
    interactive: bool = True,
    input_fn: InputFn = input,
    getpass_fn: InputFn = getpass.getpass,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Fill in every answer not already in preset.

    With interactive=False only secrets are asked for; everything else keeps
    its InstallConfig default. `defaults` overrides those defaults for the
    prompts (e.g. the detected firmware).
    """

    answers: Dict[str, Any] = dict(preset or {})
    seeded = {**_DEFAULTS, **(defaults or {})}

    for q in QUESTIONS:
        if q.key in answers:
            continue
        if q.when is not None and not q.when(answers):
            continue

        default = seeded.get(q.key)
        if q.kind == "password":
            answers[q.key] = ask_password(q.prompt, getpass_fn=getpass_fn)
        elif not interactive:
            if defaults and q.key in defaults:
                answers[q.key] = defaults[q.key]
        elif q.kind == "bool":
            answers[q.key] = ask_bool(q.prompt, bool(default), input_fn=input_fn)
        elif q.kind == "choice":
            answers[q.key] = ask_choice(q.prompt, q.choices, _enum(seeded, q.key), input_fn=input_fn)
        else:
            answers[q.key] = ask(q.prompt, default, input_fn=input_fn)

    # Only meaningful when a username was given.
    if not answers.get("username"):
        answers.pop("user_password", None)
    return answers


def confirm_destructive(disk: str, *, input_fn: InputFn = input) -> bool:
    """Nothing is written before this returns True."""

    logger.warning("ALL DATA ON %s WILL BE DESTROYED.", disk)
    return input_fn("Type YES to continue: ").strip() == "YES"
