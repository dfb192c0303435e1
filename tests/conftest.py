import importlib

import pytest

SCRIPT_MODULES = [
    "homescripts.ide.antigravity_sync",
    "homescripts.media.plex_backup",
    "homescripts.media.plex_cleanup",
    "homescripts.media.convert",
    "homescripts.media.download",
    "homescripts.system.package_update",
    "homescripts.system.list_apps",
    "homescripts.network.ddns_update",
]


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    """Point every ConfigManager at a throwaway config directory"""
    path = tmp_path / "config"
    monkeypatch.setenv("HOMESCRIPTS_CONFIG_DIR", str(path))
    return path


@pytest.fixture
def no_logging_setup(monkeypatch):
    """Keep main() from reconfiguring the root logger (and pytest's log capture)"""
    for name in SCRIPT_MODULES:
        module = importlib.import_module(name)
        monkeypatch.setattr(module, "setup_logging", lambda *a, **k: None)
