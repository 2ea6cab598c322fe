"""
Theme manifest parser.
Reads an extracted theme directory and describes its contents. Never writes.
"""

import json
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from .errors import ConfigParseError
from .layout import DEFAULT_LAYOUT, MANIFEST_CATEGORIES, ThemeLayout
from .models import SettingsData, SettingsGroup, ThemeManifest
from ..core.logging_config import get_theme_logger

logger = get_theme_logger(__name__)


class ThemeParser:
    """Builds ThemeManifest objects for a given layout"""

    def __init__(self, layout: ThemeLayout = DEFAULT_LAYOUT):
        self.layout = layout

    def parse(self, theme_dir: Union[str, Path], theme_id: str) -> ThemeManifest:
        """
        Describe the theme rooted at theme_dir.

        Category listings contain the immediate entries of each category
        subdirectory as POSIX paths relative to the theme root
        (e.g. "sections/header.json"), sorted by name so repeated parses of
        an unchanged directory are equal regardless of filesystem listing
        order. A missing category directory gives an empty list, a missing
        settings file gives an empty object.

        Raises:
            ConfigParseError: a settings file is not valid JSON or has the wrong shape
        """
        theme_dir = Path(theme_dir)
        listings = {
            category: self._list_category(theme_dir, self.layout.subdirectory(category))
            for category in MANIFEST_CATEGORIES
        }

        settings_schema = self._load_json(theme_dir, self.layout.schema_file)
        settings_data = self._load_json(theme_dir, self.layout.data_file)
        _check_settings_schema(self.layout.schema_file, settings_schema)
        _check_settings_data(self.layout.data_file, settings_data)

        logger.debug(
            f"Parsed theme {theme_id}: "
            + ", ".join(f"{len(files)} {category}" for category, files in listings.items()),
            theme_id=theme_id,
        )

        return ThemeManifest(
            theme_id=theme_id,
            settings_schema=settings_schema,
            settings_data=settings_data,
            **listings,
        )

    def _list_category(self, theme_dir: Path, subdir: Optional[str]) -> List[str]:
        if subdir is None:
            return []
        try:
            names = sorted(entry.name for entry in (theme_dir / subdir).iterdir())
        except (FileNotFoundError, NotADirectoryError):
            return []
        prefix = PurePosixPath(subdir)
        return [(prefix / name).as_posix() for name in names]

    def _load_json(self, theme_dir: Path, relative: str) -> Any:
        try:
            with open(theme_dir / relative, 'r', encoding='utf-8-sig') as f:
                return json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            raise ConfigParseError(relative, str(e)) from e
        except UnicodeDecodeError as e:
            raise ConfigParseError(relative, f"not UTF-8 text: {e}") from e
        except OSError as e:
            raise ConfigParseError(relative, f"cannot read file: {e}") from e


def _check_settings_schema(file: str, data: Any):
    """settings_schema.json is a list of setting groups; objects are kept as opaque legacy schemas"""
    if isinstance(data, dict):
        return
    if not isinstance(data, list):
        raise ConfigParseError(file, "expected a list of setting groups or an object")
    for index, group in enumerate(data):
        if not isinstance(group, dict):
            raise ConfigParseError(file, f"group {index} is not an object")
        try:
            SettingsGroup(**group)
        except ValidationError as e:
            raise ConfigParseError(file, f"group {index}: {_first_error(e)}") from e


def _check_settings_data(file: str, data: Any):
    if not isinstance(data, dict):
        raise ConfigParseError(file, "expected an object")
    try:
        SettingsData(**data)
    except ValidationError as e:
        raise ConfigParseError(file, _first_error(e)) from e


def _first_error(error: ValidationError) -> str:
    first: Dict[str, Any] = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def parse(theme_dir: Union[str, Path], theme_id: str) -> ThemeManifest:
    """Parse a theme directory with the default layout."""
    return ThemeParser().parse(theme_dir, theme_id)
