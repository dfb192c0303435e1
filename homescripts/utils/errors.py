#!/usr/bin/env python3
"""
Exceptions shared by the scripts.
"""
from typing import List, Optional


class ScriptError(RuntimeError):
    """Base class for failures a script reports and exits on"""


class ConfigError(ScriptError):
    """Missing or invalid configuration"""


class ToolMissingError(ScriptError):
    """An external tool is not on PATH"""


class CommandError(ScriptError):
    """An external command exited with a non-zero status"""

    def __init__(self, cmd: List[str], returncode: int, stderr: Optional[str] = None):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        msg = f"{self.cmd[0]} exited with status {returncode}"
        if self.stderr:
            msg += f": {self.stderr.splitlines()[-1]}"
        super().__init__(msg)
