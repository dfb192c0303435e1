#!/usr/bin/env python3
"""
Common utilities for the home scripts.
"""
import os
import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar, Union

T = TypeVar("T")

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def normalize_path(path: Union[str, Path]) -> Path:
    """Normalize a path, handling drag-and-drop formats"""
    if isinstance(path, str):
        path = path.strip()
        # Handle backslash-escaped spaces (Finder → Terminal)
        path = path.replace('\\ ', ' ')
        # Handle quoted paths
        if len(path) > 1 and ((path.startswith('"') and path.endswith('"')) or
                              (path.startswith("'") and path.endswith("'"))):
            path = path[1:-1]
        path = os.path.expandvars(path)
        # Remove trailing slashes
        if len(path) > 1 and path.endswith('/'):
            path = path[:-1]

    return Path(path).expanduser().resolve()


def prompt_text(prompt: str, default: Optional[str] = None) -> str:
    """Prompt for free text; an empty answer returns the default"""
    if default:
        print(f"{prompt} (default: {default}):")
    else:
        print(f"{prompt}:")
    answer = input().strip()
    return answer or (default or "")


def prompt_choice(prompt: str, choices: List[str], default: Optional[str] = None) -> str:
    """Prompt user to choose from a list of options"""
    print(f"\n{prompt}")
    for i, choice in enumerate(choices, 1):
        marker = " (default)" if choice == default else ""
        print(f"  {i}. {choice}{marker}")

    while True:
        user_input = input("Enter choice: ").strip()

        if not user_input and default:
            return default

        try:
            idx = int(user_input) - 1
            if 0 <= idx < len(choices):
                return choices[idx]
        except ValueError:
            pass

        # Try direct match
        if user_input in choices:
            return user_input

        print(f"Invalid choice. Please enter 1-{len(choices)} or the option name.")


def prompt_yes_no(prompt: str, default: bool = False, assume_yes: bool = False) -> bool:
    """Ask a y/n question. Only an answer starting with y/Y counts as yes."""
    if assume_yes:
        return True
    hint = "Y/n" if default else "y/n"
    answer = input(f"{prompt} ({hint}): ").strip()
    if not answer:
        return default
    return answer[0] in ("y", "Y")


def dedupe(seq: Iterable[T], key: Optional[Callable[[T], Any]] = None) -> List[T]:
    """De-duplicate while preserving order"""
    seen = set()
    out: List[T] = []
    for item in seq:
        k = key(item) if key else item
        if k in seen:
            continue
        seen.add(k)
        out.append(item)
    return out


def format_size(num_bytes: float) -> str:
    """Format bytes to a human-readable string"""
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(num_bytes) < 1024:
            if unit == "B":
                return f"{int(num_bytes)} B"
            return f"{num_bytes:.1f} {unit}"
        num_bytes /= 1024
    return f"{num_bytes:.1f} PB"


def directory_size(path: Path) -> int:
    """Total size in bytes of the regular files under path"""
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except OSError:
                continue
    return total


def timestamp(when: Optional[datetime] = None) -> str:
    """Filesystem-safe timestamp used in archive and log names"""
    return (when or datetime.now()).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> Optional[datetime]:
    try:
        return datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def copy_file_if_exists(src: Path, dest_dir: Path) -> bool:
    """Copy src into dest_dir when src is a file. Returns whether it copied."""
    if not src.is_file():
        return False
    dest_dir.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dest_dir / src.name)
    return True


def mirror_tree(src: Path, dest: Path, ignore: Optional[Callable] = None) -> bool:
    """Copy a directory over dest, keeping files already in dest"""
    if not src.is_dir():
        return False
    shutil.copytree(src, dest, dirs_exist_ok=True, ignore=ignore)
    return True


def print_section(title: str, width: int = 60):
    """Print a formatted section header"""
    print("\n" + "=" * width)
    if title:
        print(title)
        print("=" * width)
    else:
        print("=" * width)


def print_table(rows: List[Tuple[str, ...]], headers: Tuple[str, ...], max_width: int = 48):
    """Print rows as left-aligned columns"""
    def clip(value: str) -> str:
        value = str(value)
        return value if len(value) <= max_width else value[:max_width - 1] + "…"

    clipped = [tuple(clip(c) for c in row) for row in rows]
    widths = [len(h) for h in headers]
    for row in clipped:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    print("  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)).rstrip())
    print("  ".join("-" * w for w in widths))
    for row in clipped:
        print("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())


def save_json(data: Any, path: Path, indent: int = 2):
    """Save data as JSON file"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=False)
