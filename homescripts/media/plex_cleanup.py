#!/usr/bin/env python3
"""
Plex Media Server housekeeping.

- Empties the trash of every library section
- Cleans unused bundles
- Optimizes the database
- Deletes transcoder/photo cache files older than CacheMaxAgeDays

Each step is independent: a failure is logged and the next step still runs.

Config (~/.homescripts/plex_cleanup.json):
  {
    "ServerUrl": "http://127.0.0.1:32400",
    "Token": "YOUR_PLEX_TOKEN",
    "DataPath": "%LOCALAPPDATA%/Plex Media Server",
    "CacheMaxAgeDays": 30
  }
"""
import os
import sys
import time
import logging
import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from homescripts import __version__
from homescripts.utils import http
from homescripts.utils.cli import run_script
from homescripts.utils.common import format_size, print_section
from homescripts.utils.config import ConfigManager, expand
from homescripts.utils.errors import ScriptError
from homescripts.utils.logs import setup_logging

SCRIPT_NAME = "plex_cleanup"


@dataclass
class CleanupConfig:
    """Configuration for Plex cleanup"""
    token: str
    server_url: str = "http://127.0.0.1:32400"
    data_path: Optional[str] = None
    cache_max_age_days: int = 30
    cache_dirs: List[str] = field(default_factory=lambda: ["Cache/PhotoTranscoder", "Cache/Transcode"])
    empty_trash: bool = True
    clean_bundles: bool = True
    optimize_database: bool = True


class PlexClient:
    """Minimal Plex HTTP API client"""

    def __init__(self, server_url: str, token: str, session: Optional[requests.Session] = None):
        self.base = server_url.rstrip("/")
        self.session = session or requests.Session()
        self.headers = {"X-Plex-Token": token, "Accept": "application/json"}

    def _call(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        r = http.request(method, f"{self.base}{path}", session=self.session, headers=self.headers, params=params)
        if r.status_code == 401:
            raise ScriptError("Plex rejected the token (401)")
        if r.status_code >= 400:
            raise ScriptError(f"{method} {path} failed ({r.status_code}): {r.text[:200]}")
        return r

    def sections(self) -> List[Tuple[str, str]]:
        """(key, title) of each library section"""
        data = self._call("GET", "/library/sections").json()
        directories = data.get("MediaContainer", {}).get("Directory", [])
        return [(str(d.get("key")), d.get("title", "")) for d in directories]

    def empty_trash(self, section_key: str):
        self._call("PUT", f"/library/sections/{section_key}/emptyTrash")

    def clean_bundles(self):
        self._call("PUT", "/library/clean/bundles")

    def optimize(self):
        self._call("PUT", "/library/optimize", params={"async": 1})


def purge_old_files(root: Path, max_age_days: int, dry_run: bool = False,
                    now: Optional[float] = None) -> Tuple[int, int]:
    """
    Delete files under root not modified for max_age_days.

    Returns (files, bytes) removed (or that would be removed on a dry run).
    """
    if not root.is_dir():
        return 0, 0
    cutoff = (now if now is not None else time.time()) - max_age_days * 86400
    count = 0
    freed = 0
    for dirpath, _dirs, files in os.walk(root):
        for name in files:
            path = Path(dirpath) / name
            try:
                st = path.stat()
            except OSError:
                continue
            if st.st_mtime >= cutoff:
                continue
            if not dry_run:
                try:
                    path.unlink()
                except OSError as e:
                    logging.warning("  Could not delete %s: %s", path, e)
                    continue
            count += 1
            freed += st.st_size
    return count, freed


class PlexCleanup:
    """Runs the cleanup steps and counts failures"""

    def __init__(self, config: CleanupConfig, client: PlexClient, dry_run: bool = False):
        self.config = config
        self.client = client
        self.dry_run = dry_run
        self.failed: List[str] = []

    def step(self, label: str, func, *args):
        logging.info("%s ...", label)
        if self.dry_run:
            logging.info("  (dry run) skipped")
            return
        try:
            func(*args)
            logging.info("  done")
        except (ScriptError, requests.RequestException, ValueError) as e:
            logging.error("  %s failed: %s", label, e)
            self.failed.append(label)

    def run_api_steps(self):
        if self.config.empty_trash:
            try:
                sections = self.client.sections()
            except (ScriptError, requests.RequestException, ValueError) as e:
                logging.error("Could not list library sections: %s", e)
                self.failed.append("List sections")
                sections = []
            for key, title in sections:
                self.step(f"Empty trash: {title}", self.client.empty_trash, key)
        if self.config.clean_bundles:
            self.step("Clean bundles", self.client.clean_bundles)
        if self.config.optimize_database:
            self.step("Optimize database", self.client.optimize)

    def run_cache_purge(self):
        if not self.config.data_path:
            logging.info("DataPath not set; skipping cache purge")
            return
        data_dir = Path(expand(self.config.data_path))
        total_files = 0
        total_bytes = 0
        for rel in self.config.cache_dirs:
            root = data_dir / rel
            files, freed = purge_old_files(root, self.config.cache_max_age_days, dry_run=self.dry_run)
            if files:
                logging.info("  %s: %d file(s), %s", rel, files, format_size(freed))
            total_files += files
            total_bytes += freed
        verb = "Would free" if self.dry_run else "Freed"
        logging.info("%s %s in %d cache file(s) older than %d days",
                     verb, format_size(total_bytes), total_files, self.config.cache_max_age_days)

    def run(self, skip_api: bool = False) -> bool:
        if not skip_api:
            self.run_api_steps()
        self.run_cache_purge()
        return not self.failed


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Plex Media Server cleanup")
    p.add_argument("--config", help="Config file path")
    p.add_argument("--init-config", action="store_true", help="Write a template config file and exit")
    p.add_argument("--max-age", type=int, help="Override CacheMaxAgeDays")
    p.add_argument("--skip-api", action="store_true", help="Only purge cache files")
    p.add_argument("--dry-run", "-n", action="store_true", help="Report without changing anything")
    p.add_argument("--log-file", help="Log file path")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    manager = ConfigManager(SCRIPT_NAME, args.config)

    if args.init_config:
        path = manager.write_template(CleanupConfig(token="YOUR_PLEX_TOKEN"))
        print(f"✓ Wrote {path}")
        return 0

    config = manager.load(CleanupConfig)
    if args.max_age is not None:
        config.cache_max_age_days = args.max_age
    setup_logging(SCRIPT_NAME, args.log_file, args.verbose)

    print_section("Plex Cleanup")
    print(f"  Server:     {config.server_url}")
    print(f"  Cache age:  {config.cache_max_age_days} days")
    if args.dry_run:
        print("  Mode:       DRY RUN")
    print("=" * 60)

    cleanup = PlexCleanup(config, PlexClient(config.server_url, config.token), dry_run=args.dry_run)
    if not cleanup.run(skip_api=args.skip_api):
        logging.error("Failed steps: %s", ", ".join(cleanup.failed))
        return 1
    logging.info("Cleanup complete.")
    return 0


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
