#!/usr/bin/env python3
"""
Platform detection and privilege elevation.
"""
import os
import sys
import logging
import platform
import subprocess
from pathlib import Path
from typing import List, Optional

WINDOWS = "windows"
MACOS = "macos"
LINUX = "linux"
WSL = "wsl"


def detect_platform(system: Optional[str] = None, proc_version: Optional[str] = None) -> str:
    """Return one of windows, macos, linux or wsl"""
    system = (system or platform.system()).lower()
    if system == "windows":
        return WINDOWS
    if system == "darwin":
        return MACOS
    if system == "linux":
        if os.environ.get("WSL_DISTRO_NAME"):
            return WSL
        if proc_version is None:
            try:
                proc_version = Path("/proc/version").read_text(encoding="utf-8", errors="replace")
            except OSError:
                proc_version = ""
        if "microsoft" in proc_version.lower():
            return WSL
        return LINUX
    return system


def is_admin() -> bool:
    """True when running as root / an elevated Windows administrator"""
    if os.name == "nt":
        import ctypes
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0


def relaunch_elevated(argv: Optional[List[str]] = None) -> int:
    """
    Start this script again with elevated rights.

    On Windows this asks UAC through ShellExecute "runas" and returns the
    ShellExecute result (> 32 means the elevated copy was launched). On POSIX
    the current process is replaced with `sudo` and this never returns.
    """
    argv = list(argv if argv is not None else sys.argv)
    if os.name == "nt":
        import ctypes
        params = subprocess.list2cmdline(argv)
        logging.info("Requesting administrator rights ...")
        return int(ctypes.windll.shell32.ShellExecuteW(None, "runas", sys.executable, params, None, 1))

    logging.info("Re-running with sudo ...")
    os.execvp("sudo", ["sudo", sys.executable] + argv)
    return 0  # unreachable


def sudo_prefix() -> List[str]:
    """['sudo'] when a POSIX command needs root and we are not root"""
    if os.name == "nt" or is_admin():
        return []
    return ["sudo"]
