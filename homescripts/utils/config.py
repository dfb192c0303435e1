#!/usr/bin/env python3
"""
Per-script JSON configuration.

Each script keeps a small flat JSON file in the config directory
(~/.homescripts by default, or $HOMESCRIPTS_CONFIG_DIR). Keys may be written
in PascalCase ("DefaultBackupPath") or snake_case ("default_backup_path");
both load into the script's dataclass.
"""
import os
import re
import json
import logging
from dataclasses import fields, is_dataclass, asdict, MISSING
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

from .errors import ConfigError

T = TypeVar("T")

CONFIG_DIR_ENV = "HOMESCRIPTS_CONFIG_DIR"


def to_snake_case(key: str) -> str:
    """DefaultBackupPath -> default_backup_path"""
    key = key.strip().replace("-", "_").replace(" ", "_")
    key = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", key)
    key = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", key)
    return key.lower()


def to_pascal_case(key: str) -> str:
    """default_backup_path -> DefaultBackupPath"""
    return "".join(part.capitalize() for part in key.split("_"))


def expand(value: str) -> str:
    """Expand ~ and environment variables in a config path"""
    return os.path.expanduser(os.path.expandvars(value))


def from_dict(cls: Type[T], data: Dict[str, Any], source: str = "config") -> T:
    """Build a config dataclass from raw JSON data"""
    if not is_dataclass(cls):
        raise TypeError(f"{cls!r} is not a dataclass")
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: top level must be a JSON object")

    known = {f.name: f for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for raw_key, value in data.items():
        key = to_snake_case(raw_key)
        if key not in known:
            logging.warning("%s: ignoring unknown key %r", source, raw_key)
            continue
        kwargs[key] = value

    for name, f in known.items():
        if name in kwargs:
            continue
        if f.default is MISSING and f.default_factory is MISSING:
            raise ConfigError(f"{source}: missing required key {to_pascal_case(name)!r}")

    return cls(**kwargs)


def to_dict(config: Any) -> Dict[str, Any]:
    """Convert a config dataclass back to PascalCase JSON data"""
    return {to_pascal_case(k): v for k, v in asdict(config).items()}


class ConfigManager:
    """Locates, loads and templates the JSON config of one script"""

    def __init__(self, name: str, config_path: Optional[os.PathLike] = None):
        self.name = name
        if config_path:
            self.config_file = Path(config_path).expanduser()
        else:
            self.config_file = self.config_dir() / f"{name}.json"

    @staticmethod
    def config_dir() -> Path:
        override = os.environ.get(CONFIG_DIR_ENV)
        if override:
            return Path(override).expanduser()
        return Path.home() / ".homescripts"

    def load(self, cls: Type[T]) -> T:
        """Load configuration from file"""
        if not self.config_file.exists():
            raise ConfigError(
                f"Config file not found: {self.config_file}\n"
                f"Create it with --init-config and fill in the required keys."
            )
        try:
            with open(self.config_file, "r", encoding="utf-8-sig") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Could not parse {self.config_file}: {e}") from e

        config = from_dict(cls, data, source=self.config_file.name)
        logging.debug("Loaded config from %s", self.config_file)
        return config

    def write_template(self, template: Any, overwrite: bool = False) -> Path:
        """Write a starting config file the user can edit"""
        if self.config_file.exists() and not overwrite:
            raise ConfigError(f"Config file already exists: {self.config_file}")
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(to_dict(template), f, indent=2)
            f.write("\n")
        # Configs may hold API tokens
        self.config_file.chmod(0o600)
        return self.config_file
