import pytest

from homescripts.system import package_update as pu
from homescripts.system.package_update import (
    MANAGERS_BY_NAME, build_commands, parse_only, plan_updates, update_manager,
    DRY_RUN, FAILED, NOT_FOUND, SKIPPED,
)
from homescripts.utils.errors import ScriptError
from homescripts.utils.system import LINUX, MACOS, WINDOWS


def finder(*available):
    return lambda exe: f"/usr/bin/{exe}" if exe in available else None


def statuses(plan):
    return [(m.name, status) for m, _, status in plan]


def test_plan_follows_fixed_order_and_platform():
    plan = plan_updates(WINDOWS, set(), find=finder("winget", "scoop"))
    assert statuses(plan) == [("winget", ""), ("choco", NOT_FOUND), ("scoop", "")]

    plan = plan_updates(MACOS, set(), find=finder("brew"))
    assert statuses(plan) == [("brew", "")]


def test_plan_skip_and_only():
    find = finder("apt-get", "flatpak", "snap")
    plan = plan_updates(LINUX, {"snap"}, find=find)
    assert ("snap", SKIPPED) in statuses(plan)
    assert ("apt", "") in statuses(plan)

    plan = plan_updates(LINUX, set(), only={"flatpak"}, find=find)
    runnable = [name for name, status in statuses(plan) if status == ""]
    assert runnable == ["flatpak"]


def test_parse_only():
    assert parse_only(None) is None
    assert parse_only("Winget, choco") == {"winget", "choco"}
    with pytest.raises(ScriptError, match="yum"):
        parse_only("apt,yum")


def test_build_commands_adds_sudo(monkeypatch):
    monkeypatch.setattr(pu, "sudo_prefix", lambda: ["sudo"])
    apt = MANAGERS_BY_NAME["apt"]
    assert build_commands(apt, "/usr/bin/apt-get", LINUX) == [
        ["sudo", "/usr/bin/apt-get", "update"],
        ["sudo", "/usr/bin/apt-get", "upgrade", "-y"],
        ["sudo", "/usr/bin/apt-get", "autoremove", "-y"],
    ]
    brew = MANAGERS_BY_NAME["brew"]
    assert build_commands(brew, "brew", MACOS)[0] == ["brew", "update"]
    choco = MANAGERS_BY_NAME["choco"]
    assert build_commands(choco, "choco.exe", WINDOWS) == [["choco.exe", "upgrade", "all", "-y", "--no-progress"]]


def test_update_manager_stops_on_failure(monkeypatch):
    calls = []

    def fake_stream(cmd, cwd=None, prefix=""):
        calls.append(cmd)
        return 0 if len(calls) == 1 else 100

    monkeypatch.setattr(pu, "stream", fake_stream)
    monkeypatch.setattr(pu, "sudo_prefix", lambda: [])
    assert update_manager(MANAGERS_BY_NAME["apt"], "apt-get", LINUX) == FAILED
    assert len(calls) == 2


def test_update_manager_dry_run(monkeypatch, capsys):
    monkeypatch.setattr(pu, "stream", lambda *a, **k: pytest.fail("ran a command"))
    assert update_manager(MANAGERS_BY_NAME["brew"], "brew", MACOS, dry_run=True) == DRY_RUN
    assert "DRY RUN: brew upgrade" in capsys.readouterr().out


def test_main_summary(monkeypatch, capsys, no_logging_setup):
    monkeypatch.setattr(pu, "detect_platform", lambda: MACOS)
    monkeypatch.setattr(pu, "which", finder("brew"))
    monkeypatch.setattr(pu, "stream", lambda cmd, cwd=None, prefix="": 0)
    assert pu.main([]) == 0
    assert "brew" in capsys.readouterr().out

    monkeypatch.setattr(pu, "stream", lambda cmd, cwd=None, prefix="": 1)
    assert pu.main([]) == 1


def test_main_skip_flag(monkeypatch, no_logging_setup):
    monkeypatch.setattr(pu, "detect_platform", lambda: MACOS)
    monkeypatch.setattr(pu, "which", finder("brew"))
    monkeypatch.setattr(pu, "stream", lambda *a, **k: pytest.fail("ran a command"))
    assert pu.main(["--skip-brew"]) == 0


def test_main_list(monkeypatch, capsys, no_logging_setup):
    monkeypatch.setattr(pu, "detect_platform", lambda: WINDOWS)
    monkeypatch.setattr(pu, "which", finder("winget"))
    assert pu.main(["--list"]) == 0
    out = capsys.readouterr().out
    assert "available" in out
    assert "not found" in out
