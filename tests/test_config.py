import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from homescripts.utils.config import (
    ConfigManager, from_dict, to_dict, to_snake_case, to_pascal_case, expand,
)
from homescripts.utils.errors import ConfigError


@dataclass
class SampleConfig:
    default_backup_path: str
    cli_command: str = "antigravity"
    retention_count: int = 5
    exclude_dirs: List[str] = field(default_factory=list)
    service_name: Optional[str] = None


@pytest.mark.parametrize("raw,expected", [
    ("DefaultBackupPath", "default_backup_path"),
    ("default_backup_path", "default_backup_path"),
    ("CLICommand", "cli_command"),
    ("Retention-Count", "retention_count"),
])
def test_to_snake_case(raw, expected):
    assert to_snake_case(raw) == expected


def test_to_pascal_case():
    assert to_pascal_case("default_backup_path") == "DefaultBackupPath"


def test_from_dict_accepts_both_spellings():
    config = from_dict(SampleConfig, {"DefaultBackupPath": "/b", "retention_count": 3})
    assert config.default_backup_path == "/b"
    assert config.retention_count == 3
    assert config.cli_command == "antigravity"


def test_from_dict_warns_on_unknown_key(caplog):
    with caplog.at_level(logging.WARNING):
        from_dict(SampleConfig, {"DefaultBackupPath": "/b", "Colour": "blue"}, source="x.json")
    assert "ignoring unknown key 'Colour'" in caplog.text


def test_from_dict_missing_required_key():
    with pytest.raises(ConfigError, match="DefaultBackupPath"):
        from_dict(SampleConfig, {"CliCommand": "code"})


def test_from_dict_rejects_non_object():
    with pytest.raises(ConfigError):
        from_dict(SampleConfig, ["not", "a", "dict"])


def test_to_dict_uses_pascal_case():
    data = to_dict(SampleConfig(default_backup_path="/b"))
    assert data["DefaultBackupPath"] == "/b"
    assert data["ExcludeDirs"] == []


def test_expand(monkeypatch, tmp_path):
    monkeypatch.setenv("HS_BACKUPS", str(tmp_path))
    assert expand("$HS_BACKUPS/plex") == f"{tmp_path}/plex"


def test_manager_uses_config_dir(config_dir):
    manager = ConfigManager("antigravity_sync")
    assert manager.config_file == config_dir / "antigravity_sync.json"


def test_manager_load(config_dir):
    config_dir.mkdir()
    (config_dir / "sample.json").write_text(
        "\ufeff" + json.dumps({"DefaultBackupPath": "~/b", "ExcludeDirs": ["Cache"]}),
        encoding="utf-8",
    )
    config = ConfigManager("sample").load(SampleConfig)
    assert config.default_backup_path == "~/b"
    assert config.exclude_dirs == ["Cache"]


def test_manager_load_missing_file():
    with pytest.raises(ConfigError, match="Config file not found"):
        ConfigManager("nothing").load(SampleConfig)


def test_manager_load_bad_json(config_dir):
    config_dir.mkdir()
    (config_dir / "broken.json").write_text("{not json")
    with pytest.raises(ConfigError, match="Could not parse"):
        ConfigManager("broken").load(SampleConfig)


def test_write_template(config_dir):
    manager = ConfigManager("sample")
    path = manager.write_template(SampleConfig(default_backup_path="~/b"))
    assert json.loads(path.read_text())["DefaultBackupPath"] == "~/b"

    with pytest.raises(ConfigError, match="already exists"):
        manager.write_template(SampleConfig(default_backup_path="~/c"))
    manager.write_template(SampleConfig(default_backup_path="~/c"), overwrite=True)
    assert manager.load(SampleConfig).default_backup_path == "~/c"


def test_explicit_config_path(tmp_path):
    path = tmp_path / "elsewhere.json"
    manager = ConfigManager("sample", path)
    assert manager.config_file == path
