"""
Formatter style configuration.

A style file is a YAML mapping whose keys are PrintConfig fields:

    indent_is_tab: false
    indent_size: 4
    spaces_around_operators: true
    newlines_after_functions: true
    max_line_length: 100
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict

import yaml


class ConfigError(Exception):
    """Raised when a style file is malformed."""


@dataclass(frozen=True)
class PrintConfig:
    indent_is_tab: bool = True
    indent_size: int = 2
    spaces_around_operators: bool = True
    newlines_after_functions: bool = True
    max_line_length: int = 80  # 0 disables wrapping

    def indent(self, level: int) -> str:
        if self.indent_is_tab:
            return "\t" * level
        return " " * (level * self.indent_size)

    def indent_width(self, level: int) -> int:
        """Visible width of an indent, counting a tab as indent_size columns."""
        return level * self.indent_size


def config_from_dict(data: Dict[str, Any], base: PrintConfig = None) -> PrintConfig:
    """Build a PrintConfig from a mapping, validating keys and value types."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Style must be a mapping, got {type(data).__name__}")

    known = {f.name: f for f in fields(PrintConfig)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ConfigError(f"Unknown style option(s): {', '.join(unknown)}")

    for key, value in data.items():
        expected_type = bool if known[key].type in (bool, 'bool') else int
        # bool is a subclass of int, so integer options reject it explicitly
        if expected_type is int and (isinstance(value, bool) or not isinstance(value, int)):
            raise ConfigError(f"Style option '{key}' must be an integer, got {value!r}")
        if expected_type is bool and not isinstance(value, bool):
            raise ConfigError(f"Style option '{key}' must be true or false, got {value!r}")
        if expected_type is int and value < 0:
            raise ConfigError(f"Style option '{key}' must not be negative, got {value}")

    return replace(base or PrintConfig(), **data)


def load_print_config(path) -> PrintConfig:
    """Load a style file (YAML)."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Style file not found: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    return config_from_dict(data)
