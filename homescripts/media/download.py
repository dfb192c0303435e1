#!/usr/bin/env python3
"""
Download media with yt-dlp, optionally converting each file afterwards.

Config (~/.homescripts/download.json, optional):
  {
    "DownloadPath": "~/Downloads/Media",
    "Format": "bv*+ba/b",
    "ArchiveFile": "~/.homescripts/download-archive.txt"
  }

Examples:
  python -m homescripts.media.download https://example.com/watch?v=abc
  python -m homescripts.media.download --audio-only --batch-file urls.txt
  python -m homescripts.media.download URL --convert hevc
"""
import sys
import logging
import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from homescripts import __version__
from homescripts.media.convert import PRESETS, convert_paths
from homescripts.utils.cli import run_script
from homescripts.utils.common import dedupe, normalize_path, print_section
from homescripts.utils.config import ConfigManager, expand
from homescripts.utils.errors import ScriptError
from homescripts.utils.logs import setup_logging
from homescripts.utils.process import need, stream

SCRIPT_NAME = "download"

FILEPATH_MARKER = "FILE:"


@dataclass
class DownloadConfig:
    """Configuration for downloads"""
    download_path: str = "~/Downloads"
    format: str = "bv*+ba/b"
    output_template: str = "%(title)s [%(id)s].%(ext)s"
    archive_file: Optional[str] = None
    audio_format: str = "mp3"


def read_batch_file(path: Path) -> List[str]:
    """URLs from a text file; blank lines and # comments are ignored"""
    urls = []
    with open(path, "r", encoding="utf-8-sig") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            urls.append(line)
    return dedupe(urls)


def build_command(config: DownloadConfig, urls: List[str], output_dir: Path,
                  audio_only: bool = False) -> List[str]:
    cmd = [
        "yt-dlp",
        "--no-progress",
        "-o", str(output_dir / config.output_template),
        # One line per finished file so conversions can pick them up
        "--print", f"after_move:{FILEPATH_MARKER}%(filepath)s",
        "--no-simulate",
        "--no-quiet",
    ]
    if audio_only:
        cmd.extend(["-x", "--audio-format", config.audio_format])
    else:
        cmd.extend(["-f", config.format])
    if config.archive_file:
        cmd.extend(["--download-archive", expand(config.archive_file)])
    cmd.append("--")
    cmd.extend(urls)
    return cmd


def downloaded_path(line: str) -> Optional[Path]:
    """The file named by a FILE: line of yt-dlp output, else None"""
    line = line.strip()
    if not line.startswith(FILEPATH_MARKER):
        return None
    return Path(line[len(FILEPATH_MARKER):])


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Download media with yt-dlp")
    p.add_argument("urls", nargs="*", help="URLs to download")
    p.add_argument("--batch-file", "-a", help="File with one URL per line")
    p.add_argument("--output", "-o", help="Output directory (default: DownloadPath)")
    p.add_argument("--audio-only", "-x", action="store_true", help="Extract audio only")
    p.add_argument("--convert", choices=sorted(PRESETS), help="Convert each downloaded file with this preset")
    p.add_argument("--config", help="Config file path")
    p.add_argument("--log-file", help="Log file path")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def load_config(config_path: Optional[str]) -> DownloadConfig:
    manager = ConfigManager(SCRIPT_NAME, config_path)
    if manager.config_file.exists():
        return manager.load(DownloadConfig)
    if config_path:
        raise ScriptError(f"Config file not found: {manager.config_file}")
    return DownloadConfig()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(SCRIPT_NAME, args.log_file, args.verbose)
    config = load_config(args.config)

    urls = list(args.urls)
    if args.batch_file:
        urls.extend(read_batch_file(normalize_path(args.batch_file)))
    urls = dedupe(urls)
    if not urls:
        raise ScriptError("No URLs given (pass URLs or --batch-file)")

    need("yt-dlp")
    if args.convert:
        need("ffmpeg")
    output_dir = normalize_path(args.output or config.download_path)
    output_dir.mkdir(parents=True, exist_ok=True)

    print_section("Download")
    print(f"  URLs:    {len(urls)}")
    print(f"  Output:  {output_dir}")
    print(f"  Mode:    {'audio only' if args.audio_only else config.format}")
    if args.convert:
        print(f"  Convert: {args.convert}")
    print("=" * 60)

    files: List[Path] = []

    def on_line(line: str):
        path = downloaded_path(line)
        if path and path not in files:
            logging.info("Downloaded %s", path.name)
            files.append(path)

    rc = stream(build_command(config, urls, output_dir, audio_only=args.audio_only),
                prefix="[yt-dlp] ", on_line=on_line)
    if rc != 0:
        logging.error("yt-dlp exited with status %d", rc)

    if args.convert and files:
        _, _, failed = convert_paths(PRESETS[args.convert], files, output_dir=output_dir)
        if failed:
            return 1
    return 1 if rc != 0 else 0


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
