#!/usr/bin/env python3
"""
Home Scripts - Unified CLI for the personal automation scripts.

Each command forwards its remaining arguments to the script's own parser,
so `homescripts plex-backup --dry-run` is the same as
`python -m homescripts.media.plex_backup --dry-run`.
"""
import sys
import argparse
import importlib
from typing import List, Optional

from homescripts import __version__
from homescripts.utils.cli import run_script
from homescripts.utils.common import print_section, print_table
from homescripts.utils.config import ConfigManager

# command -> (module, help)
COMMANDS = {
    "ide-sync": ("homescripts.ide.antigravity_sync", "Back up or restore Antigravity IDE settings"),
    "plex-backup": ("homescripts.media.plex_backup", "Back up the Plex Media Server data folder"),
    "plex-cleanup": ("homescripts.media.plex_cleanup", "Plex maintenance and cache cleanup"),
    "update-packages": ("homescripts.system.package_update", "Upgrade packages with every package manager"),
    "list-apps": ("homescripts.system.list_apps", "List installed applications"),
    "ddns-update": ("homescripts.network.ddns_update", "Update Cloudflare DNS with the public IP"),
    "convert": ("homescripts.media.convert", "Convert media files with ffmpeg presets"),
    "download": ("homescripts.media.download", "Download media with yt-dlp"),
}

# Commands whose script can write a template config with --init-config
CONFIGURABLE = {
    "ide-sync": "antigravity_sync",
    "plex-backup": "plex_backup",
    "plex-cleanup": "plex_cleanup",
    "ddns-update": "ddns_update",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="homescripts",
        description="Home Scripts - Unified CLI for personal automation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ide-sync --action backup --yes     # Back up IDE settings
  %(prog)s plex-backup --dry-run               # Show the backup plan
  %(prog)s update-packages --skip-snap         # Upgrade everything but snaps
  %(prog)s config --init ddns-update           # Write a template config
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, (_, help_text) in COMMANDS.items():
        subparsers.add_parser(name, help=help_text, add_help=False)

    config_parser = subparsers.add_parser("config", help="Show config files or write a template")
    config_parser.add_argument("--init", choices=sorted(CONFIGURABLE), metavar="COMMAND",
                               help=f"Write a template config for one of: {', '.join(sorted(CONFIGURABLE))}")
    return parser


def load_command(name: str):
    module_name, _ = COMMANDS[name]
    return importlib.import_module(module_name).main


def show_config() -> int:
    print_section("Config")
    print(f"  Directory: {ConfigManager.config_dir()}")
    rows = []
    for command, script in sorted(CONFIGURABLE.items()):
        path = ConfigManager(script).config_file
        rows.append((command, "present" if path.exists() else "missing", str(path)))
    print()
    print_table(rows, ("Command", "Status", "File"), max_width=70)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args, rest = parser.parse_known_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "config":
        if rest:
            parser.error(f"unrecognized arguments: {' '.join(rest)}")
        if args.init:
            return load_command(args.init)(["--init-config"])
        return show_config()

    return load_command(args.command)(rest)


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
