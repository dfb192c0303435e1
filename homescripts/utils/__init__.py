"""
Home Scripts Utilities

Shared prompts, menu, configuration, logging and subprocess helpers.
"""
from .config import ConfigManager, from_dict, to_dict
from .errors import ScriptError, ConfigError, CommandError, ToolMissingError
from .menu import select_option
from .common import (
    normalize_path,
    prompt_text,
    prompt_choice,
    prompt_yes_no,
    dedupe,
    format_size,
    directory_size,
    timestamp,
    copy_file_if_exists,
    mirror_tree,
    print_section,
    print_table,
    save_json,
)

__all__ = [
    'ConfigManager',
    'from_dict',
    'to_dict',
    'ScriptError',
    'ConfigError',
    'CommandError',
    'ToolMissingError',
    'select_option',
    'normalize_path',
    'prompt_text',
    'prompt_choice',
    'prompt_yes_no',
    'dedupe',
    'format_size',
    'directory_size',
    'timestamp',
    'copy_file_if_exists',
    'mirror_tree',
    'print_section',
    'print_table',
    'save_json',
]
