import json

import pytest

from homescripts import __version__, toolkit


def test_routes_remaining_arguments(monkeypatch):
    seen = []
    monkeypatch.setattr(toolkit, "load_command", lambda name: lambda argv: seen.append((name, argv)) or 0)

    assert toolkit.main(["plex-backup", "--dry-run", "--retention", "3"]) == 0
    assert toolkit.main(["download", "https://a", "-x"]) == 0
    assert seen == [
        ("plex-backup", ["--dry-run", "--retention", "3"]),
        ("download", ["https://a", "-x"]),
    ]


def test_every_command_has_a_main():
    for name in toolkit.COMMANDS:
        assert callable(toolkit.load_command(name))


def test_no_command_prints_help(capsys):
    assert toolkit.main([]) == 0
    assert "ide-sync" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        toolkit.main(["--version"])
    assert exc.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_config_lists_files(config_dir, capsys):
    config_dir.mkdir()
    (config_dir / "plex_backup.json").write_text("{}")
    assert toolkit.main(["config"]) == 0
    out = capsys.readouterr().out
    assert str(config_dir) in out
    assert "present" in out
    assert "missing" in out


def test_config_init(config_dir):
    assert toolkit.main(["config", "--init", "plex-cleanup"]) == 0
    data = json.loads((config_dir / "plex_cleanup.json").read_text())
    assert data["Token"] == "YOUR_PLEX_TOKEN"


def test_config_init_unknown_command():
    with pytest.raises(SystemExit):
        toolkit.main(["config", "--init", "convert"])
