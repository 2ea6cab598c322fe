"""
Declarative description of a theme package's directory structure.

The importer and the parser never hard-code subdirectory names; they read them
from a ThemeLayout so alternate theme schemas can be plugged in from a YAML or
JSON file.
"""

import json
import yaml
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, validator

from .errors import ConfigParseError


MANIFEST_CATEGORIES = ("layouts", "templates", "sections", "snippets", "assets")


def _check_relative(value: str) -> str:
    path = PurePosixPath(value)
    if not value or path.is_absolute() or ".." in path.parts:
        raise ValueError(f"must be a relative path inside the theme: {value!r}")
    return path.as_posix()


class ThemeLayout(BaseModel):
    """Where each part of a theme lives, relative to the theme root"""

    categories: Dict[str, str] = Field(
        default_factory=lambda: {
            "layouts": "layout",
            "templates": "templates",
            "sections": "sections",
            "snippets": "snippets",
            "assets": "assets",
        },
        description="Manifest field -> subdirectory"
    )
    required_files: Tuple[str, ...] = Field(
        ("layout/theme.liquid", "config/settings_schema.json"),
        description="Files a package must contain to be installable"
    )
    schema_file: str = Field("config/settings_schema.json")
    data_file: str = Field("config/settings_data.json")
    stamp_file: str = Field("manifest.json")

    @validator("categories")
    def check_categories(cls, v):
        unknown = sorted(set(v) - set(MANIFEST_CATEGORIES))
        if unknown:
            raise ValueError(f"unknown categories: {', '.join(unknown)}")
        return {name: _check_relative(subdir) for name, subdir in v.items()}

    @validator("required_files", each_item=True)
    def check_required_files(cls, v):
        return _check_relative(v)

    @validator("schema_file", "data_file", "stamp_file")
    def check_files(cls, v):
        return _check_relative(v)

    def subdirectory(self, category: str) -> Optional[str]:
        return self.categories.get(category)


DEFAULT_LAYOUT = ThemeLayout()


def load_layout(path: Path) -> ThemeLayout:
    """Load a ThemeLayout from a .yaml/.yml or .json file"""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data: Any = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigParseError(path.name, str(e)) from e

    if not isinstance(data, dict):
        raise ConfigParseError(path.name, "expected a mapping at the top level")

    try:
        return ThemeLayout(**data)
    except ValueError as e:
        raise ConfigParseError(path.name, str(e)) from e
