#!/usr/bin/env python3
"""
Upgrade everything installed through the package managers on this machine.

Every known manager that applies to this platform and is on PATH runs in a
fixed order (winget, choco, scoop, brew, apt, dnf, pacman, flatpak, snap).

Examples:
  python -m homescripts.system.package_update
  python -m homescripts.system.package_update --skip-choco --skip-snap
  python -m homescripts.system.package_update --only brew --dry-run
  python -m homescripts.system.package_update --list
"""
import sys
import time
import shlex
import logging
import argparse
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple

from homescripts import __version__
from homescripts.utils.cli import run_script
from homescripts.utils.common import print_section, print_table
from homescripts.utils.errors import ScriptError
from homescripts.utils.logs import setup_logging
from homescripts.utils.process import stream, which
from homescripts.utils.system import detect_platform, is_admin, sudo_prefix, WINDOWS, MACOS, LINUX, WSL

SCRIPT_NAME = "package_update"

OK = "ok"
FAILED = "failed"
SKIPPED = "skipped"
NOT_FOUND = "not found"
DRY_RUN = "dry run"


@dataclass(frozen=True)
class PackageManager:
    name: str
    executable: str
    platforms: Tuple[str, ...]
    commands: Tuple[Tuple[str, ...], ...]
    needs_root: bool = False


MANAGERS: List[PackageManager] = [
    PackageManager("winget", "winget", (WINDOWS,), (
        ("upgrade", "--all", "--silent", "--include-unknown",
         "--accept-package-agreements", "--accept-source-agreements"),
    )),
    PackageManager("choco", "choco", (WINDOWS,), (
        ("upgrade", "all", "-y", "--no-progress"),
    ), needs_root=True),
    PackageManager("scoop", "scoop", (WINDOWS,), (
        ("update",),
        ("update", "*"),
    )),
    PackageManager("brew", "brew", (MACOS, LINUX), (
        ("update",),
        ("upgrade",),
        ("cleanup",),
    )),
    PackageManager("apt", "apt-get", (LINUX, WSL), (
        ("update",),
        ("upgrade", "-y"),
        ("autoremove", "-y"),
    ), needs_root=True),
    PackageManager("dnf", "dnf", (LINUX, WSL), (
        ("upgrade", "--refresh", "-y"),
    ), needs_root=True),
    PackageManager("pacman", "pacman", (LINUX, WSL), (
        ("-Syu", "--noconfirm"),
    ), needs_root=True),
    PackageManager("flatpak", "flatpak", (LINUX,), (
        ("update", "-y", "--noninteractive"),
    )),
    PackageManager("snap", "snap", (LINUX,), (
        ("refresh",),
    ), needs_root=True),
]

MANAGERS_BY_NAME: Dict[str, PackageManager] = {m.name: m for m in MANAGERS}


def plan_updates(
    platform_name: str,
    skip: Set[str],
    only: Optional[Set[str]] = None,
    find: Optional[Callable[[str], Optional[str]]] = None,
) -> List[Tuple[PackageManager, Optional[str], str]]:
    """
    (manager, resolved executable, status) for every manager of this platform.

    status is "" for managers that will run, otherwise why they will not.
    """
    find = find or which
    plan = []
    for manager in MANAGERS:
        if platform_name not in manager.platforms:
            continue
        path = find(manager.executable)
        if manager.name in skip or (only is not None and manager.name not in only):
            plan.append((manager, path, SKIPPED))
        elif not path:
            plan.append((manager, None, NOT_FOUND))
        else:
            plan.append((manager, path, ""))
    return plan


def build_commands(manager: PackageManager, executable: str, platform_name: str) -> List[List[str]]:
    prefix: List[str] = []
    if manager.needs_root and platform_name != WINDOWS:
        prefix = sudo_prefix()
    return [prefix + [executable] + list(args) for args in manager.commands]


def update_manager(manager: PackageManager, executable: str, platform_name: str, dry_run: bool = False) -> str:
    print_section(f"{manager.name}")
    if manager.needs_root and platform_name == WINDOWS and not is_admin():
        logging.warning("%s usually needs an elevated prompt; it may fail", manager.name)

    for cmd in build_commands(manager, executable, platform_name):
        if dry_run:
            print(f"DRY RUN: {shlex.join(cmd)}")
            continue
        logging.info("$ %s", shlex.join(cmd))
        rc = stream(cmd, prefix=f"[{manager.name}] ")
        if rc != 0:
            logging.error("%s exited with status %d", manager.name, rc)
            return FAILED
    return DRY_RUN if dry_run else OK


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Upgrade all packages with every available package manager")
    for manager in MANAGERS:
        p.add_argument(f"--skip-{manager.name}", action="append_const", const=manager.name,
                       dest="skip", help=f"Skip {manager.name}")
    p.add_argument("--only", help="Comma-separated managers to run (e.g. winget,choco)")
    p.add_argument("--list", action="store_true", help="Show detected managers and exit")
    p.add_argument("--dry-run", "-n", action="store_true", help="Print commands without running them")
    p.add_argument("--log-file", help="Log file path")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def parse_only(value: Optional[str]) -> Optional[Set[str]]:
    if not value:
        return None
    names = {v.strip().lower() for v in value.split(",") if v.strip()}
    unknown = names - set(MANAGERS_BY_NAME)
    if unknown:
        raise ScriptError(f"Unknown package manager(s): {', '.join(sorted(unknown))}")
    return names


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(SCRIPT_NAME, args.log_file, args.verbose)
    platform_name = detect_platform()
    plan = plan_updates(platform_name, set(args.skip or []), parse_only(args.only))

    if args.list:
        rows = [(m.name, status or "available", path or "-") for m, path, status in plan]
        print_table(rows, ("Manager", "Status", "Path"), max_width=70)
        return 0

    if not any(status == "" for _, _, status in plan):
        logging.warning("No package managers to run on %s", platform_name)
        return 0

    started = time.time()
    results: List[Tuple[str, str]] = []
    for manager, path, status in plan:
        if status:
            results.append((manager.name, status))
            continue
        results.append((manager.name, update_manager(manager, path, platform_name, args.dry_run)))

    minutes, seconds = divmod(int(time.time() - started), 60)
    print_section("Summary")
    print_table(results, ("Manager", "Result"))
    print(f"\nDuration: {minutes}m {seconds}s")

    failed = [name for name, result in results if result == FAILED]
    if failed:
        logging.error("Failed: %s", ", ".join(failed))
        return 1
    return 0


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
