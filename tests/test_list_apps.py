import csv
import json
import plistlib
from datetime import datetime

import pytest

from homescripts.system import list_apps as la
from homescripts.system.list_apps import (
    InstalledApp, export_csv, export_json, filter_apps, finalize, parse_brew_output,
    parse_dpkg_output, parse_flatpak_output, parse_install_date, parse_rpm_output,
    parse_snap_output, read_app_bundle,
)
from homescripts.utils.system import LINUX


@pytest.mark.parametrize("value,expected", [
    (None, ""),
    ("", ""),
    ("20230415", "2023-04-15"),
    ("2023-04-15", "2023-04-15"),
    ("04/15/2023", "2023-04-15"),
    ("garbage", ""),
    (0, ""),
    (20230115, "2023-01-15"),
    ("99999999999999", ""),
    (-5, ""),
])
def test_parse_install_date(value, expected):
    assert parse_install_date(value) == expected


def test_parse_install_date_epoch():
    stamp = datetime(2023, 4, 15, 12, 0, 0).timestamp()
    assert parse_install_date(int(stamp)) == "2023-04-15"
    assert parse_install_date(str(int(stamp))) == "2023-04-15"


def test_parse_dpkg_output_keeps_installed_only():
    output = (
        "bash\t5.2-1\tUbuntu Developers\tii \n"
        "oldpkg\t1.0\tSomeone\trc \n"
        "\n"
    )
    assert parse_dpkg_output(output) == [InstalledApp("bash", "5.2-1", "Ubuntu Developers", "dpkg")]


def test_parse_rpm_output():
    stamp = int(datetime(2022, 1, 2, 12, 0, 0).timestamp())
    apps = parse_rpm_output(f"bash\t5.1.8-6.el9\t(none)\t{stamp}\n")
    assert apps == [InstalledApp("bash", "5.1.8-6.el9", "", "rpm", "2022-01-02")]


def test_parse_flatpak_output():
    apps = parse_flatpak_output("Firefox\t120.0\tflathub\nGIMP\t2.10\tflathub\n")
    assert [(a.name, a.version, a.publisher, a.source) for a in apps] == [
        ("Firefox", "120.0", "flathub", "flatpak"),
        ("GIMP", "2.10", "flathub", "flatpak"),
    ]


def test_parse_snap_output():
    output = (
        "Name    Version   Rev    Tracking       Publisher   Notes\n"
        "core22  20230801  864    latest/stable  canonical✓  base\n"
        "vlc     3.0.18    3078   latest/stable  videolan*   -\n"
    )
    apps = parse_snap_output(output)
    assert [(a.name, a.version, a.publisher) for a in apps] == [
        ("core22", "20230801", "canonical"),
        ("vlc", "3.0.18", "videolan"),
    ]


def test_parse_brew_output_uses_last_version():
    apps = parse_brew_output("git 2.42.0\npython@3.11 3.11.5 3.11.6\nlonely\n")
    assert [(a.name, a.version) for a in apps] == [("git", "2.42.0"), ("python@3.11", "3.11.6"), ("lonely", "")]


def test_read_app_bundle(tmp_path):
    bundle = tmp_path / "Visual Tool.app"
    (bundle / "Contents").mkdir(parents=True)
    with open(bundle / "Contents" / "Info.plist", "wb") as f:
        plistlib.dump({
            "CFBundleName": "Visual Tool",
            "CFBundleShortVersionString": "1.2.3",
            "CFBundleIdentifier": "com.acme.visualtool",
        }, f)
    app = read_app_bundle(bundle)
    assert (app.name, app.version, app.publisher, app.source) == ("Visual Tool", "1.2.3", "acme", "app bundle")
    assert read_app_bundle(tmp_path / "Broken.app") is None


def test_finalize_dedupes_and_sorts():
    apps = [
        InstalledApp("zsh", "5.9", source="dpkg"),
        InstalledApp("Bash", "5.2", source="dpkg"),
        InstalledApp("bash", "5.2", source="dpkg"),
        InstalledApp("bash", "5.2", source="brew"),
    ]
    result = finalize(apps)
    assert [(a.name, a.source) for a in result] == [("bash", "brew"), ("Bash", "dpkg"), ("zsh", "dpkg")]


def test_filter_apps_matches_name_or_publisher():
    apps = [InstalledApp("Firefox", publisher="Mozilla"), InstalledApp("Thunderbird", publisher="Mozilla"),
            InstalledApp("VLC", publisher="VideoLAN")]
    assert [a.name for a in filter_apps(apps, "mozilla")] == ["Firefox", "Thunderbird"]
    assert [a.name for a in filter_apps(apps, "vlc")] == ["VLC"]
    assert filter_apps(apps, None) == apps


def test_exports(tmp_path):
    apps = [InstalledApp("bash", "5.2", "GNU", "dpkg", "2023-01-01")]
    export_csv(apps, tmp_path / "out" / "apps.csv")
    export_json(apps, tmp_path / "out" / "apps.json")

    with open(tmp_path / "out" / "apps.csv", newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows == [{"name": "bash", "version": "5.2", "publisher": "GNU", "source": "dpkg",
                     "install_date": "2023-01-01"}]
    assert json.loads((tmp_path / "out" / "apps.json").read_text())[0]["publisher"] == "GNU"


def test_collect_skips_missing_tools(monkeypatch):
    monkeypatch.setattr(la, "which", lambda tool: "/usr/bin/dpkg-query" if tool == "dpkg-query" else None)
    monkeypatch.setattr(la, "run", lambda cmd, cwd=None, timeout=None: (0, "bash\t5.2\tGNU\tii \n", ""))
    apps = la.collect_apps(LINUX)
    assert [(a.name, a.source) for a in apps] == [("bash", "dpkg")]


def test_collect_only_requested_source(monkeypatch):
    monkeypatch.setattr(la, "which", lambda tool: "/usr/bin/" + tool)
    monkeypatch.setattr(la, "run", lambda cmd, cwd=None, timeout=None: (0, "firefox\t1\tflathub\n", ""))
    apps = la.collect_apps(LINUX, sources=["flatpak"])
    assert [a.source for a in apps] == ["flatpak"]


def test_main_exports(tmp_path, monkeypatch, capsys, no_logging_setup):
    monkeypatch.setattr(la, "detect_platform", lambda: LINUX)
    monkeypatch.setattr(la, "collect_apps", lambda platform_name, sources=None: [
        InstalledApp("bash", "5.2", "GNU", "dpkg"), InstalledApp("vlc", "3.0", "VideoLAN", "snap"),
    ])
    out_json = tmp_path / "apps.json"
    assert la.main(["--search", "vlc", "--json", str(out_json)]) == 0
    assert [a["name"] for a in json.loads(out_json.read_text())] == ["vlc"]
    assert "1 application(s)" in capsys.readouterr().out
