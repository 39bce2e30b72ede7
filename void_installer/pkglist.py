from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .errors import InstallerError
from .lib.command import run_cmd
from .lib.xbps import host_install, manual_packages, write_package_list
from .logging_utils import configure_logging, success

logger = logging.getLogger(__name__)

DEFAULT_LIST = "my-packages.txt"
RESTORE_PREREQS = ("xtools", "void-repo-nonfree", "void-repo-multilib", "void-repo-multilib-nonfree")


def read_package_list(path: str) -> List[str]:
    """One package per line; blank lines and # comments are ignored."""

    names: List[str] = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            names.append(line)
    return names


def list_packages(output: str, *, dry_run: bool = False) -> List[str]:
    names = manual_packages(dry_run=dry_run)
    write_package_list(output, names)
    success(logger, "Saved %d packages to %s", len(names), output)
    return names


def restore_packages(input_path: str, *, dry_run: bool = False) -> List[str]:
    names = read_package_list(input_path)

    host_install(RESTORE_PREREQS, dry_run=dry_run)
    run_cmd(["xbps-install", "-Syu"], dry_run=dry_run)
    if names:
        run_cmd(["xbps-install", "-y", *names], dry_run=dry_run)
    else:
        logger.warning("%s lists no packages", input_path)

    success(logger, "Restored %d packages", len(names))
    return names


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="void-pkglist", description="Save or restore manually installed xbps packages.")
    p.add_argument("--dry-run", action="store_true", help="Log commands without running them")
    p.add_argument("--log", default="void-pkglist.log", help="Path to log file")
    sub = p.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="Write manually installed package names to a file")
    p_list.add_argument("-o", "--output", default=DEFAULT_LIST)

    p_restore = sub.add_parser("restore", help="Install every package named in a file")
    p_restore.add_argument("-i", "--input", default=DEFAULT_LIST)

    args = p.parse_args(argv)
    configure_logging(log_path=args.log)

    try:
        if args.command == "list":
            list_packages(args.output, dry_run=args.dry_run)
        else:
            restore_packages(args.input, dry_run=args.dry_run)
    except (InstallerError, OSError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
