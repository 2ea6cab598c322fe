"""
Theme package system for storefront tenants.
Imports uploaded theme archives and describes their contents.
"""

from .errors import (
    ThemeError,
    ArchiveExtractionError,
    StorageError,
    MissingRequiredFile,
    ConfigParseError,
    ThemeNotFoundError,
    InvalidIdentifierError,
)
from .layout import ThemeLayout, DEFAULT_LAYOUT, load_layout
from .models import ThemeManifest, InstalledTheme, ThemeStamp, ThemeUploadResult
from .importer import ThemeImporter, ExtractionLimits, extract
from .parser import ThemeParser, parse
from .store import ThemeStore

__all__ = [
    "ThemeError",
    "ArchiveExtractionError",
    "StorageError",
    "MissingRequiredFile",
    "ConfigParseError",
    "ThemeNotFoundError",
    "InvalidIdentifierError",
    "ThemeLayout",
    "DEFAULT_LAYOUT",
    "load_layout",
    "ThemeManifest",
    "InstalledTheme",
    "ThemeStamp",
    "ThemeUploadResult",
    "ThemeImporter",
    "ExtractionLimits",
    "extract",
    "ThemeParser",
    "parse",
    "ThemeStore",
]
