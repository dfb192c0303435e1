#!/usr/bin/env python3
"""
Back up a Plex Media Server data folder with minimal downtime.

Steps:
  1. Elevate (UAC on Windows, sudo elsewhere)
  2. Stop the Plex service
  3. Copy the data folder to a scratch disk (Cache/Logs/... excluded)
  4. Export the Plex registry key (Windows)
  5. Compress with 7-Zip in the background; the service is restarted as soon
     as compression starts, and the archive size is polled for progress
  6. Move the archive and the run log to the destination
  7. Delete the scratch copy
  8. Keep only the newest RetentionCount archives

Whatever fails after step 2, the service is started again before exiting.

Config (~/.homescripts/plex_backup.json):
  {
    "DataPath": "%LOCALAPPDATA%/Plex Media Server",
    "ScratchPath": "D:/Scratch",
    "DestinationPath": "//nas/backups/plex",
    "RetentionCount": 5
  }
"""
import os
import sys
import time
import shutil
import logging
import argparse
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from homescripts import __version__
from homescripts.utils.cli import run_script
from homescripts.utils.common import (
    timestamp, parse_timestamp, directory_size, format_size, print_section,
)
from homescripts.utils.config import ConfigManager, expand
from homescripts.utils.errors import ScriptError, CommandError
from homescripts.utils.logs import setup_logging, add_file_handler, remove_handler
from homescripts.utils.process import run, run_checked, need
from homescripts.utils.system import detect_platform, is_admin, relaunch_elevated, WINDOWS, LINUX, WSL

SCRIPT_NAME = "plex_backup"

DEFAULT_EXCLUDES = ["Cache", "Crash Reports", "Diagnostics", "Logs", "Updates"]
DEFAULT_SERVICES = {WINDOWS: "PlexService", LINUX: "plexmediaserver", WSL: "plexmediaserver"}
REGISTRY_FILE = "PlexRegistry.reg"

POLL_EVERY_SEC = 2
# 7-Zip: 0 = ok, 1 = warning (e.g. a file could not be opened), >= 2 = fatal
SEVEN_ZIP_WARNING = 1


@dataclass
class BackupConfig:
    """Configuration for the Plex backup"""
    data_path: str
    scratch_path: str
    destination_path: str
    service_name: Optional[str] = None
    retention_count: int = 5
    seven_zip_path: str = "7z"
    compression_level: int = 5
    exclude_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    registry_key: str = r"HKCU\Software\Plex, Inc.\Plex Media Server"
    archive_prefix: str = "PlexBackup"


class ServiceController:
    """Stops and starts the media server service"""

    def __init__(self, name: str, platform_name: str):
        if platform_name not in (WINDOWS, LINUX, WSL):
            raise ScriptError(f"Service control is not supported on {platform_name}; use --skip-service")
        self.name = name
        self.platform = platform_name
        self.stopped = False

    def command(self, verb: str) -> List[str]:
        if self.platform == WINDOWS:
            # net waits until the service has actually changed state
            return ["net", verb, self.name]
        return ["systemctl", verb, self.name]

    def stop(self):
        logging.info("Stopping service %s ...", self.name)
        run_checked(self.command("stop"))
        self.stopped = True

    def start(self):
        logging.info("Starting service %s ...", self.name)
        run_checked(self.command("start"))
        self.stopped = False


def top_level_ignore(root: Path, names: List[str]):
    """copytree ignore callback that skips the given folder names only directly under root"""
    skip = {n.lower() for n in names}
    root_str = os.path.normcase(os.path.normpath(str(root)))

    def _ignore(directory, entries):
        if os.path.normcase(os.path.normpath(directory)) != root_str:
            return []
        return [e for e in entries if e.lower() in skip]

    return _ignore


def archive_sort_key(path: Path, prefix: str) -> datetime:
    stamp = parse_timestamp(path.stem[len(prefix) + 1:])
    return stamp or datetime.fromtimestamp(path.stat().st_mtime)


def apply_retention(destination: Path, prefix: str, keep: int) -> List[Path]:
    """
    Delete all but the newest `keep` archives (and their logs).

    keep <= 0 disables retention. Returns the deleted archives.
    """
    if keep <= 0:
        return []
    archives = sorted(
        destination.glob(f"{prefix}_*.7z"),
        key=lambda p: archive_sort_key(p, prefix),
        reverse=True,
    )
    deleted = []
    for old in archives[keep:]:
        logging.info("Retention: deleting %s", old.name)
        old.unlink()
        log = old.with_suffix(".log")
        if log.exists():
            log.unlink()
        deleted.append(old)
    return deleted


class PlexBackup:
    """One backup run"""

    def __init__(
        self,
        config: BackupConfig,
        service: Optional[ServiceController],
        platform_name: str,
        skip_registry: bool = False,
        now: Optional[datetime] = None,
    ):
        self.config = config
        self.service = service
        self.platform = platform_name
        self.skip_registry = skip_registry

        self.name = f"{config.archive_prefix}_{timestamp(now)}"
        self.data_dir = Path(expand(config.data_path))
        self.scratch_root = Path(expand(config.scratch_path))
        self.destination = Path(expand(config.destination_path))
        self.staging_dir = self.scratch_root / self.name
        self.archive_path = self.scratch_root / f"{self.name}.7z"
        self.log_path = self.scratch_root / f"{self.name}.log"

    def plan(self) -> List[str]:
        steps = []
        if self.service:
            steps.append(f"Stop service {self.service.name}")
        steps.append(f"Copy {self.data_dir} -> {self.staging_dir} (excluding {', '.join(self.config.exclude_dirs)})")
        if self.platform == WINDOWS and not self.skip_registry:
            steps.append(f"Export registry key {self.config.registry_key}")
        steps.append(f"Compress to {self.archive_path} (service restarted meanwhile)")
        steps.append(f"Move archive and log to {self.destination}")
        steps.append(f"Delete {self.staging_dir}")
        steps.append(f"Keep newest {self.config.retention_count} archives in {self.destination}")
        return steps

    # ---- Steps ----

    def stage_data(self):
        if not self.data_dir.is_dir():
            raise ScriptError(f"Plex data folder not found: {self.data_dir}")
        logging.info("Copying %s -> %s", self.data_dir, self.staging_dir)
        try:
            shutil.copytree(
                self.data_dir,
                self.staging_dir,
                ignore=top_level_ignore(self.data_dir, self.config.exclude_dirs),
            )
        except shutil.Error as e:
            # copytree collects per-file failures and raises them at the end
            failures = e.args[0] if e.args and isinstance(e.args[0], list) else []
            for src, _dst, why in failures[:20]:
                logging.warning("  Could not copy %s: %s", src, why)
            logging.warning("%d file(s) could not be copied; continuing", len(failures))
        logging.info("Staged %s", format_size(directory_size(self.staging_dir)))

    def export_registry(self):
        if self.platform != WINDOWS or self.skip_registry:
            logging.debug("Registry export skipped")
            return
        dest = self.staging_dir / REGISTRY_FILE
        logging.info("Exporting registry key %s", self.config.registry_key)
        rc, out, err = run(["reg", "export", self.config.registry_key, str(dest), "/y"])
        if rc != 0:
            logging.warning("Registry export failed: %s", (err or out).strip())

    def restart_service(self):
        if not (self.service and self.service.stopped):
            return
        try:
            self.service.start()
            logging.info("Service restarted; downtime over while compression continues")
        except CommandError as e:
            logging.error("Could not restart service: %s", e)

    def compress(self):
        seven_zip = need(self.config.seven_zip_path)
        cmd = [
            seven_zip, "a", "-t7z", f"-mx={self.config.compression_level}",
            "-bso0", "-bsp0", str(self.archive_path), "*",
        ]
        total = directory_size(self.staging_dir)
        logging.info("Compressing %s with 7-Zip ...", format_size(total))

        with ThreadPoolExecutor(max_workers=1) as ex:
            future = ex.submit(run, cmd, str(self.staging_dir))
            self.restart_service()

            # Compressed size never reaches the staged size, so this is only an approximation
            with tqdm(total=total, unit="B", unit_scale=True, unit_divisor=1024, desc="Compressing") as bar:
                while not future.done():
                    time.sleep(POLL_EVERY_SEC)
                    if self.archive_path.exists():
                        size = min(self.archive_path.stat().st_size, total)
                        bar.update(size - bar.n)
                bar.update(total - bar.n)

            rc, out, err = future.result()

        if rc > SEVEN_ZIP_WARNING:
            raise CommandError(cmd, rc, err or out)
        if rc == SEVEN_ZIP_WARNING:
            logging.warning("7-Zip finished with warnings: %s", (err or out).strip())
        logging.info("Archive size: %s", format_size(self.archive_path.stat().st_size))

    def deliver(self) -> Path:
        self.destination.mkdir(parents=True, exist_ok=True)
        final = self.destination / self.archive_path.name
        logging.info("Moving archive to %s", final)
        shutil.move(str(self.archive_path), str(final))
        return final

    def remove_staging(self):
        if self.staging_dir.exists():
            logging.info("Deleting scratch copy %s", self.staging_dir)
            shutil.rmtree(self.staging_dir, ignore_errors=False)

    def move_log(self):
        if not self.log_path.exists():
            return
        self.destination.mkdir(parents=True, exist_ok=True)
        shutil.move(str(self.log_path), str(self.destination / self.log_path.name))

    # ---- Run ----

    def run(self) -> Path:
        """Run every step. Returns the archive's final path."""
        self.scratch_root.mkdir(parents=True, exist_ok=True)
        handler = add_file_handler(self.log_path)
        started = time.time()
        try:
            try:
                if self.service:
                    self.service.stop()
                self.stage_data()
                self.export_registry()
                self.compress()
            finally:
                if self.service and self.service.stopped:
                    logging.warning("Restarting %s before exiting", self.service.name)
                    self.restart_service()

            final = self.deliver()
            self.remove_staging()
            apply_retention(self.destination, self.config.archive_prefix, self.config.retention_count)
            minutes, seconds = divmod(int(time.time() - started), 60)
            logging.info("Backup complete: %s (%dm %ds)", final, minutes, seconds)
            return final
        finally:
            remove_handler(handler)
            self.move_log()


# ------------------ Main ------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Back up the Plex Media Server data folder")
    p.add_argument("--config", help="Config file path")
    p.add_argument("--init-config", action="store_true", help="Write a template config file and exit")
    p.add_argument("--retention", type=int, help="Override RetentionCount")
    p.add_argument("--skip-service", action="store_true", help="Do not stop/start the Plex service")
    p.add_argument("--skip-registry", action="store_true", help="Do not export the registry key")
    p.add_argument("--no-elevate", action="store_true", help="Do not request administrator rights")
    p.add_argument("--dry-run", "-n", action="store_true", help="Show the plan and exit")
    p.add_argument("--log-file", help="Log file path")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def template_config(platform_name: str) -> BackupConfig:
    if platform_name == WINDOWS:
        data = "%LOCALAPPDATA%/Plex Media Server"
    else:
        data = "/var/lib/plexmediaserver/Library/Application Support/Plex Media Server"
    return BackupConfig(
        data_path=data,
        scratch_path="~/plex-scratch",
        destination_path="~/Backups/Plex",
        service_name=DEFAULT_SERVICES.get(platform_name),
    )


def relaunch_argv(args: argparse.Namespace, manager: ConfigManager) -> List[str]:
    """
    Arguments for the elevated copy of this script.

    sudo resets the environment and HOME, and an elevated Windows process
    starts in System32, so the config and log paths are passed as absolute
    paths.
    """
    argv = ["-m", "homescripts.media.plex_backup", "--config", str(manager.config_file.resolve())]
    if args.retention is not None:
        argv += ["--retention", str(args.retention)]
    if args.skip_service:
        argv.append("--skip-service")
    if args.skip_registry:
        argv.append("--skip-registry")
    if args.log_file:
        argv += ["--log-file", str(Path(args.log_file).expanduser().resolve())]
    if args.verbose:
        argv.append("--verbose")
    return argv


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    platform_name = detect_platform()
    manager = ConfigManager(SCRIPT_NAME, args.config)

    if args.init_config:
        path = manager.write_template(template_config(platform_name))
        print(f"✓ Wrote {path}")
        return 0

    config = manager.load(BackupConfig)
    if args.retention is not None:
        config.retention_count = args.retention

    needs_admin = not args.skip_service or (platform_name == WINDOWS and not args.skip_registry)
    if needs_admin and not args.dry_run and not args.no_elevate and not is_admin():
        launched = relaunch_elevated(relaunch_argv(args, manager))
        return 0 if launched > 32 else 1

    setup_logging(SCRIPT_NAME, args.log_file, args.verbose)

    service = None
    if not args.skip_service:
        name = config.service_name or DEFAULT_SERVICES.get(platform_name)
        if not name:
            raise ScriptError("ServiceName is not set for this platform; set it or use --skip-service")
        service = ServiceController(name, platform_name)

    backup = PlexBackup(config, service, platform_name, skip_registry=args.skip_registry)

    print_section("Plex Backup")
    for i, step in enumerate(backup.plan(), 1):
        print(f"  {i}. {step}")
    print("=" * 60)
    if args.dry_run:
        print("\nDRY RUN: nothing was changed.")
        return 0

    try:
        backup.run()
    except (ScriptError, OSError) as e:
        logging.error("Backup failed: %s", e)
        return 1
    return 0


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
