#!/usr/bin/env python3
"""
List installed applications.

Sources:
  Windows  registry Uninstall keys (HKLM, HKLM WOW6432Node, HKCU)
  macOS    /Applications bundles, Homebrew
  Linux    dpkg, rpm, flatpak, snap

Examples:
  python -m homescripts.system.list_apps
  python -m homescripts.system.list_apps --search python --source dpkg
  python -m homescripts.system.list_apps --csv apps.csv --json apps.json
"""
import csv
import sys
import logging
import argparse
import plistlib
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from homescripts import __version__
from homescripts.utils.cli import run_script
from homescripts.utils.common import dedupe, normalize_path, print_table, save_json
from homescripts.utils.logs import setup_logging
from homescripts.utils.process import run, which
from homescripts.utils.system import detect_platform, WINDOWS, MACOS, LINUX, WSL

SCRIPT_NAME = "list_apps"

UNINSTALL_KEYS = [
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"),
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall"),
    ("HKEY_CURRENT_USER", r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"),
]


@dataclass
class InstalledApp:
    name: str
    version: str = ""
    publisher: str = ""
    source: str = ""
    install_date: str = ""      # YYYY-MM-DD or ""


def parse_install_date(value) -> str:
    """Normalize the date formats package tools report to YYYY-MM-DD"""
    if value is None:
        return ""
    if isinstance(value, float):
        value = int(value)
    text = str(value).strip()
    if not text:
        return ""
    # Registry InstallDate is YYYYMMDD, as a string or a DWORD
    if text.isdigit() and len(text) == 8:
        try:
            return datetime.strptime(text, "%Y%m%d").strftime("%Y-%m-%d")
        except ValueError:
            return ""
    if text.isdigit():
        seconds = int(text)
        if seconds <= 0:
            return ""
        try:
            return datetime.fromtimestamp(seconds).strftime("%Y-%m-%d")
        except (ValueError, OverflowError, OSError):
            return ""
    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%SZ", "%m/%d/%Y"):
        try:
            return datetime.strptime(text, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return ""


# ------------------ Parsers ------------------

def parse_tab_separated(output: str, source: str, date_column: Optional[int] = None) -> List[InstalledApp]:
    """name<TAB>version<TAB>publisher[<TAB>date] lines, as printed by dpkg-query/rpm"""
    apps = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        parts += [""] * (4 - len(parts))
        date = parse_install_date(parts[date_column]) if date_column is not None else ""
        apps.append(InstalledApp(parts[0].strip(), parts[1].strip(), parts[2].strip(), source, date))
    return apps


def parse_dpkg_output(output: str) -> List[InstalledApp]:
    # Format: ${Package}\t${Version}\t${Maintainer}\t${db:Status-Abbrev}
    apps = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) >= 4 and not parts[3].startswith("ii"):
            continue
        apps.extend(parse_tab_separated("\t".join(parts[:3]), "dpkg"))
    return apps


def parse_rpm_output(output: str) -> List[InstalledApp]:
    apps = parse_tab_separated(output, "rpm", date_column=3)
    for app in apps:
        if app.publisher == "(none)":
            app.publisher = ""
    return apps


def parse_flatpak_output(output: str) -> List[InstalledApp]:
    # flatpak list --app --columns=name,version,origin
    return parse_tab_separated(output, "flatpak")


def parse_snap_output(output: str) -> List[InstalledApp]:
    """`snap list` table: Name Version Rev Tracking Publisher Notes"""
    apps = []
    lines = output.splitlines()
    for line in lines[1:]:
        cols = line.split()
        if len(cols) < 2:
            continue
        publisher = cols[4].rstrip("*✓") if len(cols) > 4 else ""
        apps.append(InstalledApp(cols[0], cols[1], publisher, "snap"))
    return apps


def parse_brew_output(output: str) -> List[InstalledApp]:
    """`brew list --versions`: name followed by one or more versions"""
    apps = []
    for line in output.splitlines():
        cols = line.split()
        if not cols:
            continue
        apps.append(InstalledApp(cols[0], cols[-1] if len(cols) > 1 else "", "", "brew"))
    return apps


def read_app_bundle(bundle: Path) -> Optional[InstalledApp]:
    info = bundle / "Contents" / "Info.plist"
    if not info.is_file():
        return None
    try:
        with open(info, "rb") as f:
            plist = plistlib.load(f)
    except (plistlib.InvalidFileException, OSError, ValueError):
        logging.debug("Unreadable Info.plist in %s", bundle)
        return None
    name = plist.get("CFBundleDisplayName") or plist.get("CFBundleName") or bundle.stem
    version = plist.get("CFBundleShortVersionString") or plist.get("CFBundleVersion") or ""
    identifier = plist.get("CFBundleIdentifier") or ""
    # com.vendor.app -> vendor
    publisher = identifier.split(".")[1] if identifier.count(".") >= 2 else ""
    return InstalledApp(str(name), str(version), publisher, "app bundle",
                        parse_install_date(bundle.stat().st_mtime))


# ------------------ Collectors ------------------

def collect_windows_registry() -> List[InstalledApp]:
    import winreg
    apps = []
    for hive_name, key_path in UNINSTALL_KEYS:
        hive = getattr(winreg, hive_name)
        try:
            root = winreg.OpenKey(hive, key_path)
        except OSError:
            continue
        with root:
            for i in range(winreg.QueryInfoKey(root)[0]):
                try:
                    with winreg.OpenKey(root, winreg.EnumKey(root, i)) as sub:
                        values = {}
                        for field in ("DisplayName", "DisplayVersion", "Publisher", "InstallDate", "SystemComponent"):
                            try:
                                values[field] = winreg.QueryValueEx(sub, field)[0]
                            except OSError:
                                values[field] = None
                except OSError:
                    continue
                if not values["DisplayName"] or values["SystemComponent"] == 1:
                    continue
                apps.append(InstalledApp(
                    str(values["DisplayName"]).strip(),
                    str(values["DisplayVersion"] or "").strip(),
                    str(values["Publisher"] or "").strip(),
                    "registry",
                    parse_install_date(values["InstallDate"]),
                ))
    return apps


def collect_app_bundles(roots: Iterable[Path] = (Path("/Applications"), Path.home() / "Applications")) -> List[InstalledApp]:
    apps = []
    for root in roots:
        if not root.is_dir():
            continue
        for bundle in sorted(root.glob("*.app")):
            app = read_app_bundle(bundle)
            if app:
                apps.append(app)
    return apps


def _from_command(cmd: List[str], parser: Callable[[str], List[InstalledApp]]) -> List[InstalledApp]:
    if not which(cmd[0]):
        return []
    rc, out, err = run(cmd)
    if rc != 0:
        logging.warning("%s failed: %s", cmd[0], err.strip())
        return []
    return parser(out)


def collect_brew() -> List[InstalledApp]:
    return _from_command(["brew", "list", "--versions"], parse_brew_output)


def collect_dpkg() -> List[InstalledApp]:
    return _from_command(
        ["dpkg-query", "-W", "-f", "${Package}\t${Version}\t${Maintainer}\t${db:Status-Abbrev}\n"],
        parse_dpkg_output,
    )


def collect_rpm() -> List[InstalledApp]:
    return _from_command(
        ["rpm", "-qa", "--queryformat", "%{NAME}\t%{VERSION}-%{RELEASE}\t%{VENDOR}\t%{INSTALLTIME}\n"],
        parse_rpm_output,
    )


def collect_flatpak() -> List[InstalledApp]:
    return _from_command(["flatpak", "list", "--app", "--columns=name,version,origin"], parse_flatpak_output)


def collect_snap() -> List[InstalledApp]:
    return _from_command(["snap", "list"], parse_snap_output)


COLLECTORS: Dict[str, Dict[str, Callable[[], List[InstalledApp]]]] = {
    WINDOWS: {"registry": collect_windows_registry},
    MACOS: {"app bundle": collect_app_bundles, "brew": collect_brew},
    LINUX: {"dpkg": collect_dpkg, "rpm": collect_rpm, "flatpak": collect_flatpak,
            "snap": collect_snap, "brew": collect_brew},
    WSL: {"dpkg": collect_dpkg, "rpm": collect_rpm},
}


def collect_apps(platform_name: str, sources: Optional[List[str]] = None) -> List[InstalledApp]:
    apps: List[InstalledApp] = []
    for source, collector in COLLECTORS.get(platform_name, {}).items():
        if sources and source not in sources:
            continue
        found = collector()
        logging.debug("%s: %d apps", source, len(found))
        apps.extend(found)
    return finalize(apps)


def finalize(apps: List[InstalledApp]) -> List[InstalledApp]:
    """Dedupe by (name, version, source) and sort by name"""
    unique = dedupe(apps, key=lambda a: (a.name.lower(), a.version, a.source))
    return sorted(unique, key=lambda a: (a.name.lower(), a.source))


def filter_apps(apps: List[InstalledApp], search: Optional[str]) -> List[InstalledApp]:
    if not search:
        return apps
    needle = search.lower()
    return [a for a in apps if needle in a.name.lower() or needle in a.publisher.lower()]


def export_csv(apps: List[InstalledApp], path: Path):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=["name", "version", "publisher", "source", "install_date"])
        writer.writeheader()
        for app in apps:
            writer.writerow(asdict(app))


def export_json(apps: List[InstalledApp], path: Path):
    save_json([asdict(a) for a in apps], path)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="List installed applications")
    p.add_argument("--search", "-s", help="Only apps whose name or publisher contains this text")
    p.add_argument("--source", action="append", help="Only this source (repeatable), e.g. registry, dpkg")
    p.add_argument("--csv", help="Export to CSV file")
    p.add_argument("--json", help="Export to JSON file")
    p.add_argument("--quiet", "-q", action="store_true", help="Do not print the table")
    p.add_argument("--log-file", help="Log file path")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(SCRIPT_NAME, args.log_file, args.verbose)
    platform_name = detect_platform()

    apps = filter_apps(collect_apps(platform_name, args.source), args.search)

    if not args.quiet:
        rows = [(a.name, a.version, a.publisher, a.source, a.install_date) for a in apps]
        print_table(rows, ("Name", "Version", "Publisher", "Source", "Installed"))
        print(f"\n{len(apps)} application(s)")

    if args.csv:
        path = normalize_path(args.csv)
        export_csv(apps, path)
        logging.info("Wrote %s", path)
    if args.json:
        path = normalize_path(args.json)
        export_json(apps, path)
        logging.info("Wrote %s", path)
    return 0


def cli():
    sys.exit(run_script(main))


if __name__ == "__main__":
    cli()
