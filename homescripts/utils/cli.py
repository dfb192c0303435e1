#!/usr/bin/env python3
"""
Entry-point wrapper shared by every script.
"""
import sys
import logging
from typing import Callable, List, Optional

from .errors import ScriptError


def run_script(main: Callable[[Optional[List[str]]], int], argv: Optional[List[str]] = None) -> int:
    """Call a script's main() and turn interrupts and script errors into exit codes"""
    try:
        return main(argv) or 0
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        return 1
    except ScriptError as e:
        logging.debug("Script error", exc_info=True)
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1
