#!/usr/bin/env python3
"""
Subprocess helpers for the external tools the scripts drive.
"""
import logging
import shutil
import subprocess
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import CommandError, ToolMissingError

INSTALL_HINTS = {
    "ffmpeg": "Install it (e.g., brew install ffmpeg, winget install ffmpeg).",
    "ffprobe": "It ships with ffmpeg.",
    "7z": "Install 7-Zip (e.g., winget install 7zip.7zip, apt install p7zip-full).",
    "yt-dlp": "Install it (e.g., pip install yt-dlp).",
    "git": "Install git from https://git-scm.com/.",
}


def which(tool: str) -> Optional[str]:
    """Full path of a tool on PATH, or None"""
    return shutil.which(tool)


def need(tool: str) -> str:
    """Return the tool path or raise with an install hint"""
    path = which(tool)
    if not path:
        hint = INSTALL_HINTS.get(tool, "")
        raise ToolMissingError(f"{tool} not found on PATH. {hint}".strip())
    return path


def run(cmd: Sequence[str], cwd: Optional[str] = None, timeout: Optional[float] = None) -> Tuple[int, str, str]:
    """Run a command and capture its output. Never raises on non-zero exit."""
    logging.debug("$ %s", " ".join(str(c) for c in cmd))
    try:
        p = subprocess.run(
            [str(c) for c in cmd],
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError:
        return 127, "", f"{cmd[0]}: command not found"
    return p.returncode, p.stdout, p.stderr


def run_checked(cmd: Sequence[str], cwd: Optional[str] = None) -> str:
    """Run a command, returning stdout; raise CommandError on failure"""
    rc, out, err = run(cmd, cwd=cwd)
    if rc != 0:
        raise CommandError(list(cmd), rc, err or out)
    return out


def stream(cmd: Sequence[str], cwd: Optional[str] = None, prefix: str = "",
           on_line: Optional[Callable[[str], None]] = None) -> int:
    """
    Run a command, logging each output line as it arrives. Returns the exit code.

    on_line, when given, also receives every non-empty line.
    """
    args: List[str] = [str(c) for c in cmd]
    logging.debug("$ %s", " ".join(args))
    try:
        proc = subprocess.Popen(
            args,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError:
        logging.error("%s: command not found", args[0])
        return 127

    assert proc.stdout is not None
    with proc.stdout:
        for line in proc.stdout:
            line = line.rstrip()
            if line:
                logging.info("%s%s", prefix, line)
                if on_line:
                    on_line(line)
    return proc.wait()
