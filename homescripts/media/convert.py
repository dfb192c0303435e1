#!/usr/bin/env python3
"""
One-shot ffmpeg conversions with fixed presets.

Presets:
  mp4          H.264 + AAC, web-friendly (faststart)
  hevc         x265, tagged hvc1 so Apple players accept it, audio copied
  mp3          audio only, VBR ~190 kbps
  normalize    EBU R128 loudness normalization, video copied
  deinterlace  yadif (field rate), H.264
  gif          12 fps, 480 px wide

Examples:
  python -m homescripts.media.convert mp4 ./clip.mkv
  python -m homescripts.media.convert mp3 ./Videos --recursive --output ./Audio
  python -m homescripts.media.convert normalize ./talk.mp4 --dry-run
"""
import sys
import math
import shlex
import logging
import argparse
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from homescripts import __version__
from homescripts.utils.cli import run_script
from homescripts.utils.common import normalize_path, print_section
from homescripts.utils.errors import ScriptError
from homescripts.utils.logs import setup_logging
from homescripts.utils.process import run, need

SCRIPT_NAME = "convert"

VIDEO_EXTS = ['.mov', '.mp4', '.avi', '.mkv', '.m4v', '.wmv', '.mpg', '.mpeg', '.ts', '.webm', '.flv']
AUDIO_EXTS = ['.wav', '.mp3', '.m4a', '.aac', '.flac', '.ogg', '.opus', '.wma']


@dataclass(frozen=True)
class Preset:
    name: str
    args: Tuple[str, ...]
    extension: Optional[str]        # None keeps the input's extension
    description: str
    audio_input: bool = False       # accepts audio-only inputs


PRESETS: Dict[str, Preset] = {p.name: p for p in [
    Preset("mp4", (
        "-map", "0:v:0", "-map", "0:a?",
        "-c:v", "libx264", "-preset", "slow", "-crf", "20", "-pix_fmt", "yuv420p",
        "-c:a", "aac", "-b:a", "192k", "-movflags", "+faststart",
    ), ".mp4", "H.264/AAC MP4"),
    Preset("hevc", (
        "-map", "0:v:0", "-map", "0:a?",
        "-c:v", "libx265", "-preset", "medium", "-crf", "24", "-tag:v", "hvc1",
        "-c:a", "copy",
    ), ".mp4", "H.265 MP4, audio copied"),
    Preset("mp3", (
        "-vn", "-c:a", "libmp3lame", "-q:a", "2",
    ), ".mp3", "Audio only MP3", audio_input=True),
    Preset("normalize", (
        "-af", "loudnorm=I=-16:TP=-1.5:LRA=11",
        "-c:v", "copy",
    ), None, "Loudness-normalized audio, video copied", audio_input=True),
    Preset("deinterlace", (
        "-vf", "yadif=mode=1",
        "-c:v", "libx264", "-crf", "18", "-preset", "slow",
        "-c:a", "copy",
    ), ".mp4", "Deinterlaced H.264"),
    Preset("gif", (
        "-vf", "fps=12,scale=480:-1:flags=lanczos",
        "-loop", "0", "-an",
    ), ".gif", "Animated GIF"),
]}


def find_inputs(path: Path, preset: Preset, recursive: bool = False) -> List[Path]:
    """Media files to convert: the file itself, or matching files in a directory"""
    if path.is_file():
        return [path]
    exts = set(VIDEO_EXTS)
    if preset.audio_input:
        exts.update(AUDIO_EXTS)
    candidates = path.rglob("*") if recursive else path.glob("*")
    files = [
        f for f in candidates
        if f.is_file() and f.suffix.lower() in exts and not f.name.startswith(".")
    ]
    return sorted(files)


def output_path_for(src: Path, preset: Preset, output_dir: Optional[Path] = None) -> Path:
    """Where a converted file goes; never the input itself"""
    ext = preset.extension or src.suffix
    dest_dir = output_dir or src.parent
    dest = dest_dir / f"{src.stem}{ext}"
    if dest.resolve() == src.resolve():
        dest = dest_dir / f"{src.stem}_{preset.name}{ext}"
    return dest


def build_command(preset: Preset, src: Path, dest: Path, overwrite: bool = False,
                  progress: bool = False) -> List[str]:
    cmd = ["ffmpeg", "-hide_banner", "-loglevel", "error", "-y" if overwrite else "-n", "-i", str(src)]
    cmd.extend(preset.args)
    if progress:
        cmd.extend(["-progress", "pipe:1", "-nostats"])
    cmd.append(str(dest))
    return cmd


def ffprobe_duration(path: Path) -> Optional[float]:
    rc, out, _ = run(["ffprobe", "-v", "error", "-show_entries", "format=duration",
                      "-of", "default=noprint_wrappers=1:nokey=1", str(path)])
    if rc != 0:
        return None
    try:
        d = float(out.strip())
    except ValueError:
        return None
    if not math.isfinite(d) or d <= 0:
        return None
    return d


def parse_progress_seconds(line: str) -> Optional[float]:
    """Seconds encoded so far from an ffmpeg -progress line (out_time_us / out_time_ms)"""
    key, _, value = line.strip().partition("=")
    if key in ("out_time_us", "out_time_ms"):
        # out_time_ms is also in microseconds
        try:
            return int(value) / 1_000_000
        except ValueError:
            return None
    return None


def convert_file(preset: Preset, src: Path, dest: Path, overwrite: bool = False) -> bool:
    """Run ffmpeg for one file with a per-file progress bar"""
    dest.parent.mkdir(parents=True, exist_ok=True)
    duration = ffprobe_duration(src)
    cmd = build_command(preset, src, dest, overwrite=overwrite, progress=True)
    logging.debug("$ %s", shlex.join(cmd))

    proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                            text=True, encoding="utf-8", errors="replace")
    assert proc.stdout is not None
    with tqdm(total=round(duration, 1) if duration else None, unit="s", desc=src.name, leave=False) as bar:
        for line in proc.stdout:
            seconds = parse_progress_seconds(line)
            if seconds is not None and duration:
                bar.update(round(min(seconds, duration), 1) - bar.n)
    err = proc.stderr.read() if proc.stderr else ""
    rc = proc.wait()
    if rc != 0:
        logging.error("  ERROR: %s: %s", src.name, err.strip())
        # Partial output
        if dest.exists():
            dest.unlink()
        return False
    return True


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Convert media files with a fixed ffmpeg preset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Presets:\n" + "\n".join(f"  {p.name:12} {p.description}" for p in PRESETS.values()),
    )
    p.add_argument("preset", choices=sorted(PRESETS), help="Conversion preset")
    p.add_argument("inputs", nargs="+", help="Input file(s) or directory(ies)")
    p.add_argument("--output", "-o", help="Output directory (default: beside each input)")
    p.add_argument("--recursive", "-r", action="store_true", help="Search directories recursively")
    p.add_argument("--force", "-f", action="store_true", help="Overwrite existing outputs")
    p.add_argument("--dry-run", "-n", action="store_true", help="Print ffmpeg commands only")
    p.add_argument("--log-file", help="Log file path")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def convert_paths(preset: Preset, paths: List[Path], output_dir: Optional[Path] = None,
                  recursive: bool = False, force: bool = False, dry_run: bool = False) -> Tuple[int, int, int]:
    """Convert every input. Returns (successful, skipped, failed)."""
    jobs: List[Tuple[Path, Path]] = []
    for path in paths:
        if not path.exists():
            raise ScriptError(f"Input not found: {path}")
        for src in find_inputs(path, preset, recursive):
            jobs.append((src, output_path_for(src, preset, output_dir)))

    if not jobs:
        logging.warning("No media files found.")
        return 0, 0, 0

    successful = skipped = failed = 0
    for i, (src, dest) in enumerate(jobs, 1):
        if dest.exists() and not force:
            logging.info("[%d/%d] Skipping %s (exists)", i, len(jobs), dest.name)
            skipped += 1
            continue
        if dry_run:
            print(shlex.join(build_command(preset, src, dest, overwrite=force)))
            continue
        logging.info("[%d/%d] %s -> %s", i, len(jobs), src.name, dest.name)
        if convert_file(preset, src, dest, overwrite=force):
            successful += 1
        else:
            failed += 1
    return successful, skipped, failed


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(SCRIPT_NAME, args.log_file, args.verbose)
    preset = PRESETS[args.preset]
    if not args.dry_run:
        need("ffmpeg")
        need("ffprobe")

    output_dir = normalize_path(args.output) if args.output else None
    successful, skipped, failed = convert_paths(
        preset,
        [normalize_path(p) for p in args.inputs],
        output_dir=output_dir,
        recursive=args.recursive,
        force=args.force,
        dry_run=args.dry_run,
    )

    if args.dry_run:
        return 0
    print_section("Summary")
    print(f"  Successful: {successful}")
    print(f"  Skipped:    {skipped}")
    if failed:
        print(f"  Failed:     {failed}")
    print("=" * 60)
    return 1 if failed else 0


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
