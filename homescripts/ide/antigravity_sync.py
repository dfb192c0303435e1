#!/usr/bin/env python3
"""
Back up and restore Antigravity IDE settings across Windows, macOS, Linux and WSL.

Backup copies settings.json, keybindings.json, snippets/, the global rules
folder (~/.gemini) and GEMINI.md into a backup folder and exports the list of
installed extensions. Restore copies them back and reinstalls the extensions
that are missing. The backup folder can live inside a git repository, in which
case a backup can be pushed and a restore can pull first.

On WSL the settings and extensions belong to the Windows install of the IDE,
so they resolve through %APPDATA% and wslpath. The rules folder stays at the
WSL ~/.gemini, which is where agents running inside WSL read it. Set RulesPath
to /mnt/c/Users/<name>/.gemini to sync the Windows copy instead.

Config (~/.homescripts/antigravity_sync.json):
  {
    "DefaultBackupPath": "~/Private/Configs/Antigravity",
    "CliCommand": "antigravity",
    "GitSync": "ask"
  }

Usage:
  python -m homescripts.ide.antigravity_sync
  python -m homescripts.ide.antigravity_sync --action backup --yes
  python -m homescripts.ide.antigravity_sync --action restore --backup-dir D:/Sync/Antigravity
"""
import os
import sys
import logging
import argparse
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from homescripts import __version__
from homescripts.utils.cli import run_script
from homescripts.utils.common import (
    normalize_path, prompt_text, prompt_yes_no, dedupe, copy_file_if_exists,
    mirror_tree, print_section,
)
from homescripts.utils.config import ConfigManager, expand
from homescripts.utils.errors import ScriptError, CommandError
from homescripts.utils.logs import setup_logging
from homescripts.utils.menu import select_option
from homescripts.utils.process import run, run_checked, which
from homescripts.utils.system import detect_platform, WINDOWS, MACOS, LINUX, WSL

SCRIPT_NAME = "antigravity_sync"

ACTIONS = ["Backup", "Restore"]
GIT_SYNC_MODES = ("ask", "always", "never")

SETTINGS_FILES = ("settings.json", "keybindings.json")
SETTINGS_DIRS = ("snippets",)
RULES_BACKUP_NAME = ".gemini"
RULES_FILE = "GEMINI.md"

EXTENSION_FILES = {
    LINUX: "extensions_linux.txt",
    MACOS: "extensions.txt",
    WINDOWS: "extensions_windows.txt",
    WSL: "extensions_wsl.txt",
}


@dataclass
class SyncConfig:
    """Configuration for the settings sync"""
    default_backup_path: str
    cli_command: str = "antigravity"
    settings_path: Optional[str] = None
    rules_path: str = "~/.gemini"
    git_sync: str = "ask"


@dataclass
class SyncPaths:
    """Where the IDE keeps its files on this machine"""
    platform: str
    settings_dir: Path
    rules_dir: Path
    extensions_name: str


# ------------------ Paths ------------------

def windows_appdata_from_wsl() -> Path:
    """Resolve the Windows user's %APPDATA% as a WSL path"""
    raw = run_checked(["cmd.exe", "/c", "echo %APPDATA%"]).strip()
    if not raw or "%APPDATA%" in raw:
        raise ScriptError("Could not read %APPDATA% from Windows (is cmd.exe reachable from WSL?)")
    return Path(run_checked(["wslpath", "-u", raw]).strip())


def default_settings_dir(platform_name: str, home: Optional[Path] = None) -> Path:
    home = home or Path.home()
    if platform_name == MACOS:
        return home / "Library" / "Application Support" / "Antigravity" / "User"
    if platform_name == WINDOWS:
        appdata = os.environ.get("APPDATA") or str(home / "AppData" / "Roaming")
        return Path(appdata) / "Antigravity" / "User"
    if platform_name == WSL:
        return windows_appdata_from_wsl() / "Antigravity" / "User"
    return home / ".config" / "Antigravity" / "User"


def resolve_paths(config: SyncConfig, platform_name: Optional[str] = None) -> SyncPaths:
    platform_name = platform_name or detect_platform()
    if config.settings_path:
        settings_dir = Path(expand(config.settings_path))
    else:
        settings_dir = default_settings_dir(platform_name)
    return SyncPaths(
        platform=platform_name,
        settings_dir=settings_dir,
        rules_dir=Path(expand(config.rules_path)),
        extensions_name=EXTENSION_FILES.get(platform_name, EXTENSION_FILES[LINUX]),
    )


# ------------------ Extension lists ------------------

def normalize_extensions(lines: Iterable[str]) -> List[str]:
    """Clean an extension list: strip CRs, drop blanks, dedupe ignoring case, sort"""
    cleaned = []
    for line in lines:
        ext = line.replace("\r", "").strip()
        if not ext or ext.startswith("#"):
            continue
        cleaned.append(ext)
    unique = dedupe(cleaned, key=str.lower)
    return sorted(unique, key=str.lower)


def read_extension_file(path: Path) -> List[str]:
    with open(path, "r", encoding="utf-8-sig", errors="replace") as f:
        return normalize_extensions(f)


def write_extension_file(path: Path, extensions: List[str]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        for ext in extensions:
            f.write(ext + "\n")


def load_backup_extensions(backup_dir: Path, extensions_name: str) -> Tuple[List[str], List[Path]]:
    """
    Extensions to restore and the files they came from.

    The list for this platform wins; without one, every extensions*.txt in
    the backup is merged.
    """
    own = backup_dir / extensions_name
    if own.is_file():
        return read_extension_file(own), [own]

    sources = sorted(backup_dir.glob("extensions*.txt"))
    merged: List[str] = []
    for path in sources:
        merged.extend(read_extension_file(path))
    return normalize_extensions(merged), sources


def missing_extensions(wanted: List[str], installed: List[str]) -> List[str]:
    have = {ext.lower() for ext in installed}
    return [ext for ext in wanted if ext.lower() not in have]


# ------------------ Git helpers ------------------

def find_repo_root(path: Path) -> Optional[Path]:
    """Root of the git repository containing path, if any"""
    if not path.exists():
        return None
    rc, out, _ = run(["git", "-C", str(path), "rev-parse", "--show-toplevel"])
    if rc != 0 or not out.strip():
        return None
    return Path(out.strip())


def git_pull(target_dir: Path) -> bool:
    logging.info("Checking for remote updates in %s...", target_dir)
    repo_root = find_repo_root(target_dir)
    if not repo_root:
        logging.warning("Backup directory is not inside a git repository.")
        return False
    try:
        run_checked(["git", "-C", str(repo_root), "pull"])
    except CommandError as e:
        logging.error("git pull failed: %s", e)
        return False
    return True


def git_push(target_dir: Path, message: Optional[str] = None) -> bool:
    logging.info("Syncing backup to remote...")
    repo_root = find_repo_root(target_dir)
    if not repo_root:
        logging.warning("Backup directory is not inside a git repository.")
        return False
    message = message or f"Auto-backup Antigravity settings: {datetime.now():%Y-%m-%d %H:%M:%S}"
    git = ["git", "-C", str(repo_root)]
    try:
        run_checked(git + ["add", "."])
        if not run_checked(git + ["status", "--porcelain"]).strip():
            logging.info("Nothing to commit; backup already matches the repository.")
        else:
            run_checked(git + ["commit", "-m", message])
        run_checked(git + ["push"])
    except CommandError as e:
        logging.error("git sync failed: %s", e)
        return False
    return True


# ------------------ Sync ------------------

class AntigravitySync:
    """Backup and restore for one machine and one backup folder"""

    def __init__(self, config: SyncConfig, paths: SyncPaths, backup_dir: Path, assume_yes: bool = False):
        self.config = config
        self.paths = paths
        self.backup_dir = backup_dir
        self.assume_yes = assume_yes

    @property
    def extensions_file(self) -> Path:
        return self.backup_dir / self.paths.extensions_name

    def cli(self) -> str:
        # On Windows the launcher is a .cmd shim; which() resolves it through PATHEXT
        return which(self.config.cli_command) or self.config.cli_command

    def list_installed(self) -> List[str]:
        return normalize_extensions(run_checked([self.cli(), "--list-extensions"]).splitlines())

    # ---- Backup ----

    def backup(self) -> int:
        """Copy everything into the backup folder. Returns the number of warnings."""
        warnings = 0
        logging.info("Starting Backup...")
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        settings_dir = self.paths.settings_dir
        if settings_dir.is_dir():
            for name in SETTINGS_FILES:
                if copy_file_if_exists(settings_dir / name, self.backup_dir):
                    logging.info("  - %s backed up.", name)
            for name in SETTINGS_DIRS:
                if mirror_tree(settings_dir / name, self.backup_dir / name):
                    logging.info("  - %s/ backed up.", name)
        else:
            logging.warning("  - Settings folder not found at %s", settings_dir)
            warnings += 1

        rules_dir = self.paths.rules_dir
        if mirror_tree(rules_dir, self.backup_dir / RULES_BACKUP_NAME):
            logging.info("  - Global rules (%s) backed up.", rules_dir.name)
        if copy_file_if_exists(rules_dir / RULES_FILE, self.backup_dir):
            logging.info("  - %s backed up.", RULES_FILE)

        if not self.export_extensions():
            warnings += 1

        logging.info("Backup complete to %s.", self.backup_dir)
        return warnings

    def export_extensions(self) -> bool:
        logging.info("Exporting extension list...")
        try:
            extensions = self.list_installed()
        except ScriptError as e:
            logging.warning("  - Failed to export extensions: %s", e)
            return False
        write_extension_file(self.extensions_file, extensions)
        logging.info("  - %d extensions exported to %s", len(extensions), self.extensions_file)
        return True

    # ---- Restore ----

    def restore(self, all_extensions: bool = False) -> int:
        """Copy everything back. Returns the number of failed extension installs."""
        logging.info("Starting Restore...")
        settings_dir = self.paths.settings_dir

        for name in SETTINGS_FILES:
            if copy_file_if_exists(self.backup_dir / name, settings_dir):
                logging.info("  - Restored %s", name)
            else:
                logging.info("  - Skipping %s (not found in backup)", name)

        for name in SETTINGS_DIRS:
            if mirror_tree(self.backup_dir / name, settings_dir / name):
                logging.info("  - Restored %s/", name)

        rules_dir = self.paths.rules_dir
        if mirror_tree(self.backup_dir / RULES_BACKUP_NAME, rules_dir):
            logging.info("  - Restored %s rules", rules_dir.name)
        else:
            logging.info("  - Skipping %s rules (not found in backup)", rules_dir.name)

        if copy_file_if_exists(self.backup_dir / RULES_FILE, rules_dir):
            logging.info("  - Restored %s", RULES_FILE)

        failures = self.restore_extensions(all_extensions)
        logging.info("Restore complete.")
        return failures

    def restore_extensions(self, all_extensions: bool = False) -> int:
        wanted, sources = load_backup_extensions(self.backup_dir, self.paths.extensions_name)
        if not sources:
            logging.info("No extension list in backup; skipping extensions.")
            return 0

        names = ", ".join(p.name for p in sources)
        if all_extensions:
            todo = wanted
        else:
            try:
                installed = self.list_installed()
            except ScriptError as e:
                logging.warning("Could not list installed extensions (%s); reinstalling all.", e)
                installed = []
            todo = missing_extensions(wanted, installed)

        if not todo:
            logging.info("All %d extensions from %s are already installed.", len(wanted), names)
            return 0

        if not prompt_yes_no(f"Found {names}. Install {len(todo)} extension(s)?", assume_yes=self.assume_yes):
            return 0

        logging.info("Installing/updating extensions...")
        failures = 0
        for ext in todo:
            logging.info("  Installing: %s", ext)
            rc, _, err = run([self.cli(), "--install-extension", ext, "--force"])
            if rc != 0:
                failures += 1
                lines = (err or "").strip().splitlines()
                logging.warning("  Failed: %s (%s)", ext, lines[-1] if lines else f"exit {rc}")
        if failures:
            logging.warning("%d of %d extensions failed to install.", failures, len(todo))
        return failures


# ------------------ Main ------------------

def should_git_sync(config: SyncConfig, prompt: str, no_git: bool, assume_yes: bool) -> bool:
    mode = (config.git_sync or "ask").lower()
    if no_git or mode == "never":
        return False
    if mode == "always":
        return True
    return prompt_yes_no(prompt, assume_yes=assume_yes)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Back up or restore Antigravity IDE settings")
    p.add_argument("--action", choices=["backup", "restore"], help="Skip the menu and run this action")
    p.add_argument("--backup-dir", help="Backup folder (default: DefaultBackupPath from config)")
    p.add_argument("--yes", "-y", action="store_true", help="Answer yes to every question")
    p.add_argument("--no-git", action="store_true", help="Never pull/push the backup repository")
    p.add_argument("--all-extensions", action="store_true", help="Reinstall every extension, not only missing ones")
    p.add_argument("--config", help="Config file path")
    p.add_argument("--init-config", action="store_true", help="Write a template config file and exit")
    p.add_argument("--log-file", help="Log file path")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    manager = ConfigManager(SCRIPT_NAME, args.config)

    if args.init_config:
        path = manager.write_template(SyncConfig(default_backup_path="~/Backups/Antigravity"))
        print(f"✓ Wrote {path}")
        return 0

    config = manager.load(SyncConfig)
    if config.git_sync.lower() not in GIT_SYNC_MODES:
        raise ScriptError(f"GitSync must be one of {', '.join(GIT_SYNC_MODES)}")
    setup_logging(SCRIPT_NAME, args.log_file, args.verbose)

    if args.action:
        action = args.action
    else:
        action = ACTIONS[select_option("Select Action", ACTIONS)].lower()

    if args.backup_dir:
        backup_dir = normalize_path(args.backup_dir)
    elif args.yes:
        backup_dir = normalize_path(config.default_backup_path)
    else:
        answer = prompt_text("Enter the full path for the backup folder", default=expand(config.default_backup_path))
        backup_dir = normalize_path(answer)

    paths = resolve_paths(config)
    print_section(f"Antigravity {action.capitalize()} ({paths.platform})")
    logging.info("Settings folder: %s", paths.settings_dir)
    logging.info("Backup folder:   %s", backup_dir)

    sync = AntigravitySync(config, paths, backup_dir, assume_yes=args.yes)

    if action == "backup":
        sync.backup()
        if should_git_sync(config, "Push changes to Git?", args.no_git, args.yes):
            if not git_push(backup_dir):
                return 1
        return 0

    if not backup_dir.is_dir():
        logging.error("Backup folder not found: %s", backup_dir)
        return 1
    if should_git_sync(config, "Pull latest settings from Git?", args.no_git, args.yes):
        git_pull(backup_dir)
    failures = sync.restore(all_extensions=args.all_extensions)
    return 1 if failures else 0


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
