"""
Theme package importer.
Unpacks an uploaded theme archive into <destination_root>/<theme_id>, checks the
result is a well-formed theme and stamps it as installed.
"""

import os
import re
import json
import shutil
import stat
import zipfile
import uuid
import zlib
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from .errors import ArchiveExtractionError, MissingRequiredFile, StorageError, ThemeError
from .layout import DEFAULT_LAYOUT, ThemeLayout
from .models import ThemeStamp, utc_timestamp
from ..core.config import settings
from ..core.logging_config import get_theme_logger

logger = get_theme_logger(__name__)

_CHUNK_SIZE = 64 * 1024
_MB = 1024 * 1024
_DRIVE_RE = re.compile(r"^[A-Za-z]:")
_IGNORED_TOP_LEVEL = {"__MACOSX"}


class ExtractionLimits(BaseModel):
    """Upper bounds applied while unpacking an archive"""

    max_members: int = Field(2000, gt=0)
    max_member_bytes: int = Field(20 * _MB, gt=0)
    max_total_bytes: int = Field(200 * _MB, gt=0)

    @classmethod
    def from_settings(cls) -> "ExtractionLimits":
        return cls(
            max_members=settings.MAX_ARCHIVE_MEMBERS,
            max_member_bytes=settings.MAX_MEMBER_SIZE_MB * _MB,
            max_total_bytes=settings.MAX_EXTRACTED_SIZE_MB * _MB,
        )


class ThemeImporter:
    """Extracts theme archives and validates the extracted tree"""

    def __init__(self, layout: ThemeLayout = DEFAULT_LAYOUT, limits: Optional[ExtractionLimits] = None):
        self.layout = layout
        self.limits = limits or ExtractionLimits.from_settings()

    def extract(
        self,
        package_path: Union[str, Path],
        theme_id: str,
        destination_root: Optional[Union[str, Path]] = None,
        name: Optional[str] = None,
    ) -> Path:
        """
        Extract a theme archive and return the theme directory.

        The archive is unpacked, checked and stamped in a staging directory
        next to the theme directory, which then replaces any previous install
        of the same id. On failure the staging directory is removed and a
        previous install is left as it was.

        Raises:
            ArchiveExtractionError: the archive is unreadable, corrupt or unsafe
            StorageError: the theme directory cannot be written
            MissingRequiredFile: a required file is absent after extraction
        """
        package_path = Path(package_path)
        root = Path(destination_root) if destination_root is not None else settings.THEMES_ROOT
        theme_dir = root / theme_id
        staging_dir = root / f".staging-{theme_id}-{uuid.uuid4().hex}"

        with logger.with_context(theme_id=theme_id, operation="extract") as log:
            log.info(f"Extracting theme package {package_path.name} into {theme_dir}")

            try:
                staging_dir.mkdir(parents=True)
            except OSError as e:
                raise StorageError(f"Cannot create theme directory {theme_dir}: {e}") from e

            try:
                file_count, total_bytes = self._extract_archive(package_path, staging_dir)
                self._validate(staging_dir)
                self._write_stamp(staging_dir, ThemeStamp(
                    theme_id=theme_id,
                    extracted_at=utc_timestamp(),
                    name=name,
                ))
                self._replace(staging_dir, theme_dir)
            except ThemeError as e:
                log.warning(f"Theme import failed: {e}", theme_error=type(e).__name__)
                self._discard(staging_dir)
                raise

            log.info(
                f"Extracted {file_count} files ({total_bytes} bytes)",
                archive_files=file_count,
                archive_bytes=total_bytes,
            )
            return theme_dir

    def _extract_archive(self, package_path: Path, theme_dir: Path) -> Tuple[int, int]:
        try:
            archive = zipfile.ZipFile(package_path)
        except zipfile.BadZipFile as e:
            raise ArchiveExtractionError(f"{package_path.name} is not a valid zip archive: {e}") from e
        except OSError as e:
            raise ArchiveExtractionError(f"Cannot read theme package {package_path}: {e}") from e

        with archive:
            members = [info for info in archive.infolist() if not _is_ignored(info)]
            if len(members) > self.limits.max_members:
                raise ArchiveExtractionError(
                    f"Archive has {len(members)} entries, limit is {self.limits.max_members}"
                )

            prefix = self._wrapper_prefix(members)
            base = theme_dir.resolve()
            file_count = 0
            total_bytes = 0

            for info in members:
                parts = _member_parts(info.filename)[len(prefix):]
                if not parts:
                    continue
                if _is_symlink(info):
                    raise ArchiveExtractionError(f"Archive entry {info.filename} is a symbolic link")

                target = base.joinpath(*parts)
                if not _is_within(target, base):
                    raise ArchiveExtractionError(f"Archive entry {info.filename} escapes the theme directory")

                if info.is_dir():
                    _make_dirs(target)
                    continue

                if info.file_size > self.limits.max_member_bytes:
                    raise ArchiveExtractionError(
                        f"Archive entry {info.filename} exceeds {self.limits.max_member_bytes} bytes"
                    )
                _make_dirs(target.parent)
                total_bytes += self._copy_member(archive, info, target, total_bytes)
                file_count += 1

        return file_count, total_bytes

    def _copy_member(self, archive: zipfile.ZipFile, info: zipfile.ZipInfo, target: Path, total_so_far: int) -> int:
        """Stream one member to disk, counting the bytes actually inflated"""
        written = 0
        try:
            with archive.open(info) as src:
                try:
                    dst = open(target, "wb")
                except OSError as e:
                    raise StorageError(f"Cannot write {target}: {e}") from e
                with dst:
                    while True:
                        chunk = src.read(_CHUNK_SIZE)
                        if not chunk:
                            break
                        written += len(chunk)
                        if written > self.limits.max_member_bytes:
                            raise ArchiveExtractionError(
                                f"Archive entry {info.filename} inflates beyond {self.limits.max_member_bytes} bytes"
                            )
                        if total_so_far + written > self.limits.max_total_bytes:
                            raise ArchiveExtractionError(
                                f"Archive inflates beyond {self.limits.max_total_bytes} bytes"
                            )
                        try:
                            dst.write(chunk)
                        except OSError as e:
                            raise StorageError(f"Cannot write {target}: {e}") from e
        except (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError, NotImplementedError) as e:
            # RuntimeError: encrypted entry, NotImplementedError: unsupported compression
            raise ArchiveExtractionError(f"Cannot extract {info.filename}: {e}") from e
        return written

    def _wrapper_prefix(self, members: List[zipfile.ZipInfo]) -> Tuple[str, ...]:
        """Return the single top-level folder wrapping the whole theme, if any"""
        known = {PurePosixPath(p).parts[0] for p in self._layout_paths()}
        tops = set()
        for info in members:
            parts = _member_parts(info.filename)
            if not parts:
                continue
            if len(parts) == 1 and not info.is_dir():
                return ()
            tops.add(parts[0])
        if len(tops) != 1:
            return ()
        top = tops.pop()
        if top in known:
            return ()
        return (top,)

    def _layout_paths(self) -> List[str]:
        return [
            *self.layout.categories.values(),
            *self.layout.required_files,
            self.layout.schema_file,
            self.layout.data_file,
        ]

    def _validate(self, theme_dir: Path):
        for relative in self.layout.required_files:
            if not (theme_dir / relative).is_file():
                raise MissingRequiredFile(relative)

    def _write_stamp(self, theme_dir: Path, stamp: ThemeStamp):
        stamp_path = theme_dir / self.layout.stamp_file
        tmp_path = stamp_path.with_name(stamp_path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(stamp.model_dump(by_alias=True, exclude_none=True), f, indent=2)
            os.replace(tmp_path, stamp_path)
        except OSError as e:
            raise StorageError(f"Cannot write theme stamp {stamp_path}: {e}") from e

    def _replace(self, staging_dir: Path, theme_dir: Path):
        """Move the staged theme into place, retiring any previous install"""
        retired_dir = None
        try:
            if theme_dir.exists():
                retired_dir = theme_dir.with_name(f".retired-{theme_dir.name}-{uuid.uuid4().hex}")
                os.replace(theme_dir, retired_dir)
            os.replace(staging_dir, theme_dir)
        except OSError as e:
            if retired_dir is not None and not theme_dir.exists():
                self._restore(retired_dir, theme_dir)
            raise StorageError(f"Cannot install theme directory {theme_dir}: {e}") from e
        if retired_dir is not None:
            self._discard(retired_dir)

    def _restore(self, retired_dir: Path, theme_dir: Path):
        try:
            os.replace(retired_dir, theme_dir)
        except OSError as e:
            logger.error(f"Could not restore previous theme directory {theme_dir}: {e}")

    def _discard(self, theme_dir: Path):
        try:
            shutil.rmtree(theme_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove theme directory {theme_dir}: {e}")


def _member_parts(filename: str) -> Tuple[str, ...]:
    """Split an archive member name into safe path segments"""
    name = filename.replace("\\", "/")
    if name.startswith("/") or _DRIVE_RE.match(name):
        raise ArchiveExtractionError(f"Archive entry {filename} has an absolute path")
    parts = tuple(part for part in PurePosixPath(name).parts if part not in ("", "."))
    if ".." in parts:
        raise ArchiveExtractionError(f"Archive entry {filename} escapes the theme directory")
    return parts


def _is_ignored(info: zipfile.ZipInfo) -> bool:
    parts = _member_parts(info.filename)
    return bool(parts) and parts[0] in _IGNORED_TOP_LEVEL


def _is_symlink(info: zipfile.ZipInfo) -> bool:
    return stat.S_ISLNK(info.external_attr >> 16)


def _is_within(target: Path, base: Path) -> bool:
    try:
        target.resolve().relative_to(base)
    except ValueError:
        return False
    return True


def _make_dirs(path: Path):
    try:
        path.mkdir(parents=True, exist_ok=True)
    except FileExistsError as e:
        raise ArchiveExtractionError(f"Archive entry {path.name} is both a file and a directory") from e
    except OSError as e:
        raise StorageError(f"Cannot create directory {path}: {e}") from e


def extract(
    package_path: Union[str, Path],
    theme_id: str,
    destination_root: Optional[Union[str, Path]] = None,
) -> Path:
    """Extract a theme package with the default layout and configured limits."""
    return ThemeImporter().extract(package_path, theme_id, destination_root)
