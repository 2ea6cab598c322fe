"""
Tenant theme store.
Installs, lists and removes the themes of one tenant below <themes_root>/<tenant_id>.
"""

import re
import json
import shutil
import tempfile
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from .errors import (
    ConfigParseError,
    InvalidIdentifierError,
    StorageError,
    ThemeNotFoundError,
)
from .importer import ExtractionLimits, ThemeImporter
from .layout import DEFAULT_LAYOUT, ThemeLayout, load_layout
from .models import InstalledTheme, ThemeStamp, ThemeUploadResult
from .parser import ThemeParser
from ..core.config import settings
from ..core.logging_config import get_theme_logger

logger = get_theme_logger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")
_COPY_BUFFER = 64 * 1024

_import_locks: Dict[Tuple[str, str], List] = {}
_import_locks_guard = threading.Lock()


def validate_identifier(value: str, kind: str = "identifier") -> str:
    """Accept only values that are safe to use as a single directory name"""
    if not isinstance(value, str) or not _IDENTIFIER_RE.match(value):
        raise InvalidIdentifierError(value, kind)
    return value


@contextmanager
def _import_lock(tenant_id: str, theme_id: str):
    """Serialise work on one theme; the registry entry lives only while it is held or awaited"""
    key = (tenant_id, theme_id)
    with _import_locks_guard:
        entry = _import_locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _import_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _import_locks[key]


class ThemeStore:
    """Themes installed for a single tenant"""

    def __init__(
        self,
        tenant_id: str,
        themes_root: Optional[Path] = None,
        layout: ThemeLayout = DEFAULT_LAYOUT,
        limits: Optional[ExtractionLimits] = None,
    ):
        self.tenant_id = validate_identifier(tenant_id, "tenant id")
        self.root = Path(themes_root or settings.THEMES_ROOT) / tenant_id
        self.layout = layout
        self.importer = ThemeImporter(layout, limits)
        self.parser = ThemeParser(layout)

    @classmethod
    def for_tenant(cls, tenant_id: str) -> "ThemeStore":
        """Store configured from application settings"""
        layout = load_layout(settings.THEME_LAYOUT_FILE) if settings.THEME_LAYOUT_FILE else DEFAULT_LAYOUT
        return cls(tenant_id, settings.THEMES_ROOT, layout)

    def theme_dir(self, theme_id: str) -> Path:
        return self.root / validate_identifier(theme_id, "theme id")

    def install(
        self,
        package: Union[bytes, BinaryIO],
        name: Optional[str] = None,
        theme_id: Optional[str] = None,
    ) -> ThemeUploadResult:
        """
        Install an uploaded theme package.

        The package is spooled to a temporary file inside the tenant root,
        extracted and stamped; the temporary file is always removed.
        """
        theme_id = validate_identifier(theme_id or str(uuid.uuid4()), "theme id")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create tenant theme root {self.root}: {e}") from e

        with _import_lock(self.tenant_id, theme_id):
            with logger.with_context(tenant=self.tenant_id, theme_id=theme_id, operation="install") as log:
                tmp_path = self._spool(package)
                try:
                    theme_dir = self.importer.extract(tmp_path, theme_id, self.root, name=name)
                finally:
                    tmp_path.unlink(missing_ok=True)
                log.info(f"Installed theme {name or theme_id}", theme_name=name)

        return ThemeUploadResult(theme_id=theme_id, theme_dir=str(theme_dir))

    def _spool(self, package: Union[bytes, BinaryIO]) -> Path:
        try:
            with tempfile.NamedTemporaryFile(
                "wb", dir=self.root, prefix=".upload-", suffix=".zip", delete=False
            ) as tmp:
                if isinstance(package, (bytes, bytearray)):
                    tmp.write(package)
                else:
                    shutil.copyfileobj(package, tmp, _COPY_BUFFER)
                return Path(tmp.name)
        except OSError as e:
            raise StorageError(f"Cannot store uploaded package: {e}") from e

    def read_stamp(self, theme_id: str) -> Optional[ThemeStamp]:
        """Return the install stamp, or None if the directory is not an installed theme"""
        stamp_path = self.theme_dir(theme_id) / self.layout.stamp_file
        try:
            with open(stamp_path, 'r', encoding='utf-8') as f:
                return ThemeStamp(**json.load(f))
        except (FileNotFoundError, NotADirectoryError):
            return None
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning(f"Ignoring theme {theme_id} with unreadable stamp: {e}", tenant_id=self.tenant_id)
            return None

    def get_manifest(self, theme_id: str) -> Optional[InstalledTheme]:
        """
        Full manifest of an installed theme, or None when it is not installed.

        Raises:
            ConfigParseError: a settings file of the theme is malformed
        """
        stamp = self.read_stamp(theme_id)
        if stamp is None:
            return None
        manifest = self.parser.parse(self.theme_dir(theme_id), theme_id)
        return InstalledTheme(
            **manifest.model_dump(),
            name=stamp.name,
            extracted_at=stamp.extracted_at,
        )

    def list_themes(self) -> List[InstalledTheme]:
        """All installed themes of the tenant, oldest first"""
        try:
            entries = sorted(path.name for path in self.root.iterdir() if path.is_dir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Cannot list themes in {self.root}: {e}") from e

        themes: List[InstalledTheme] = []
        for entry in entries:
            if not _IDENTIFIER_RE.match(entry):
                continue
            try:
                manifest = self.get_manifest(entry)
            except ConfigParseError as e:
                logger.warning(f"Skipping theme {entry}: {e}", tenant_id=self.tenant_id)
                continue
            if manifest is not None:
                themes.append(manifest)
        return sorted(themes, key=lambda theme: theme.extracted_at)

    def delete(self, theme_id: str):
        theme_dir = self.theme_dir(theme_id)
        with _import_lock(self.tenant_id, theme_id):
            if not theme_dir.is_dir():
                raise ThemeNotFoundError(theme_id)
            try:
                shutil.rmtree(theme_dir)
            except OSError as e:
                raise StorageError(f"Cannot delete theme {theme_id}: {e}") from e
        logger.info(f"Deleted theme {theme_id}", tenant_id=self.tenant_id, theme_id=theme_id)

    def asset_path(self, theme_id: str, asset: str) -> Path:
        """
        Resolve a file inside the theme's assets directory.

        Raises:
            ThemeNotFoundError: the theme is not installed or the asset does not exist
        """
        if self.read_stamp(theme_id) is None:
            raise ThemeNotFoundError(theme_id)
        assets_dir = (self.theme_dir(theme_id) / self.layout.categories.get("assets", "assets")).resolve()
        candidate = (assets_dir / asset).resolve()
        try:
            candidate.relative_to(assets_dir)
        except ValueError:
            raise ThemeNotFoundError(f"{theme_id}/{asset}") from None
        if not candidate.is_file():
            raise ThemeNotFoundError(f"{theme_id}/{asset}") from None
        return candidate
