"""
Exceptions raised by the theme importer, parser and store.
"""


class ThemeError(Exception):
    """Base class for theme package failures"""


class ArchiveExtractionError(ThemeError):
    """The uploaded package is unreadable, corrupt or unsafe to extract"""


class StorageError(ThemeError):
    """The theme directory could not be created or written"""


class MissingRequiredFile(ThemeError):
    """A file every theme must ship is absent after extraction"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Missing required theme file: {path}")


class ConfigParseError(ThemeError):
    """A settings document is not valid JSON or has the wrong shape"""

    def __init__(self, file: str, message: str):
        self.file = file
        self.message = message
        super().__init__(f"Invalid theme config {file}: {message}")


class ThemeNotFoundError(ThemeError):
    def __init__(self, theme_id: str):
        self.theme_id = theme_id
        super().__init__(f"Theme {theme_id} not found")


class InvalidIdentifierError(ThemeError, ValueError):
    def __init__(self, value: str, kind: str = "identifier"):
        self.value = value
        self.kind = kind
        super().__init__(f"Invalid {kind}: {value!r}")
