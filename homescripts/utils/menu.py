#!/usr/bin/env python3
"""
Interactive single-selection menu driven by the arrow keys.

Up/Down (or k/j) move the highlight, wrapping at both ends; Enter selects.
When stdin is not a terminal the numbered prompt_choice() is used instead.
"""
import os
import sys
import select
from typing import Callable, List, Optional, TextIO

from .common import prompt_choice

KEY_UP = "up"
KEY_DOWN = "down"
KEY_ENTER = "enter"

GREEN = "\033[32m"
RESET = "\033[0m"
CLEAR = "\033[2J\033[H"
HIDE_CURSOR = "\033[?25l"
SHOW_CURSOR = "\033[?25h"

ESCAPE_TIMEOUT = 0.1


def next_index(selected: int, key: Optional[str], count: int) -> int:
    """Highlight position after a key press"""
    if key == KEY_UP:
        return (selected - 1 + count) % count
    if key == KEY_DOWN:
        return (selected + 1) % count
    return selected


def render_menu(title: str, options: List[str], selected: int) -> str:
    lines = [f"=== {title} ==="]
    for i, option in enumerate(options):
        if i == selected:
            lines.append(f"{GREEN} > {option}{RESET}")
        else:
            lines.append(f"   {option}")
    return "\n".join(lines) + "\n"


def _read_key_windows() -> Optional[str]:
    import msvcrt
    ch = msvcrt.getwch()
    if ch in ("\x00", "\xe0"):
        code = msvcrt.getwch()
        return {"H": KEY_UP, "P": KEY_DOWN}.get(code)
    if ch == "\x03":
        raise KeyboardInterrupt
    if ch in ("\r", "\n"):
        return KEY_ENTER
    return {"k": KEY_UP, "j": KEY_DOWN}.get(ch)


def read_escape_sequence(fd: int, timeout: float = ESCAPE_TIMEOUT) -> Optional[str]:
    """Key for the bytes after ESC, or None for a lone ESC or an unknown sequence"""
    ready, _, _ = select.select([fd], [], [], timeout)
    if not ready:
        return None
    # Arrow keys arrive as ESC [ A / ESC [ B (or ESC O A in app mode)
    seq = os.read(fd, 2).decode(errors="ignore")
    return {"[A": KEY_UP, "[B": KEY_DOWN, "OA": KEY_UP, "OB": KEY_DOWN}.get(seq)


def _read_key_posix() -> Optional[str]:
    import termios
    import tty
    fd = sys.stdin.fileno()
    old = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        ch = os.read(fd, 1).decode(errors="ignore")
        if ch == "\x1b":
            return read_escape_sequence(fd)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old)
    if ch == "\x03":
        raise KeyboardInterrupt
    if ch in ("\r", "\n"):
        return KEY_ENTER
    return {"k": KEY_UP, "j": KEY_DOWN}.get(ch)


def read_key() -> Optional[str]:
    """Block for one key press and return KEY_UP/KEY_DOWN/KEY_ENTER or None"""
    if os.name == "nt":
        return _read_key_windows()
    return _read_key_posix()


def select_option(
    title: str,
    options: List[str],
    key_reader: Optional[Callable[[], Optional[str]]] = None,
    out: Optional[TextIO] = None,
) -> int:
    """Show the menu and return the zero-based index of the chosen option"""
    if not options:
        raise ValueError("select_option needs at least one option")

    if key_reader is None:
        if not sys.stdin.isatty():
            choice = prompt_choice(title, options, default=options[0])
            return options.index(choice)
        key_reader = read_key

    out = out or sys.stdout
    selected = 0
    out.write(HIDE_CURSOR)
    try:
        while True:
            out.write(CLEAR + render_menu(title, options, selected))
            out.flush()
            key = key_reader()
            if key == KEY_ENTER:
                return selected
            selected = next_index(selected, key, len(options))
    finally:
        out.write(SHOW_CURSOR)
        out.flush()
