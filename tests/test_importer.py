import io
import json
import stat
import zipfile
import pytest

from storethemes.themes import (
    ArchiveExtractionError,
    ExtractionLimits,
    MissingRequiredFile,
    StorageError,
    ThemeImporter,
    ThemeLayout,
    extract,
    parse,
)

from conftest import build_zip, theme_files


class TestExtract:
    """Extracting well-formed packages"""

    def test_extracts_required_files(self, make_package, tmp_path):
        theme_dir = extract(make_package(), "dawn", tmp_path / "themes")

        assert theme_dir == tmp_path / "themes" / "dawn"
        assert (theme_dir / "layout" / "theme.liquid").is_file()
        assert (theme_dir / "config" / "settings_schema.json").is_file()
        assert (theme_dir / "sections" / "header.json").is_file()

    def test_writes_stamp(self, make_package, tmp_path):
        theme_dir = extract(make_package(), "dawn", tmp_path / "themes")

        stamp = json.loads((theme_dir / "manifest.json").read_text())
        assert stamp["themeId"] == "dawn"
        assert stamp["extractedAt"].endswith("+00:00")
        assert "name" not in stamp

    def test_stamp_records_name(self, make_package, tmp_path):
        importer = ThemeImporter()
        theme_dir = importer.extract(make_package(), "dawn", tmp_path, name="Dawn")

        stamp = json.loads((theme_dir / "manifest.json").read_text())
        assert stamp["name"] == "Dawn"

    def test_defaults_to_configured_root(self, make_package, themes_root):
        theme_dir = extract(make_package(), "dawn")

        assert theme_dir == themes_root / "dawn"
        assert (theme_dir / "manifest.json").is_file()

    def test_unwraps_single_top_level_folder(self, make_package, tmp_path):
        theme_dir = extract(make_package(prefix="dawn-main/"), "dawn", tmp_path)

        assert (theme_dir / "layout" / "theme.liquid").is_file()
        assert not (theme_dir / "dawn-main").exists()

    def test_ignores_macos_metadata(self, tmp_path):
        files = theme_files(extra={"__MACOSX/._theme.liquid": "junk"})
        package = tmp_path / "mac.zip"
        package.write_bytes(build_zip(files))

        theme_dir = extract(package, "dawn", tmp_path / "themes")

        assert not (theme_dir / "__MACOSX").exists()

    def test_reimport_overwrites_existing_theme(self, make_package, tmp_path):
        root = tmp_path / "themes"
        extract(make_package(), "dawn", root)
        files = theme_files(extra={"snippets/badge.liquid": "badge"})
        theme_dir = extract(make_package(files), "dawn", root)

        assert (theme_dir / "snippets" / "badge.liquid").is_file()
        assert (theme_dir / "manifest.json").is_file()

    def test_reimport_drops_removed_files(self, make_package, tmp_path):
        root = tmp_path / "themes"
        extract(make_package(), "dawn", root)
        theme_dir = extract(make_package(theme_files(without=("snippets/price.liquid",))), "dawn", root)

        assert not (theme_dir / "snippets" / "price.liquid").exists()
        assert parse(theme_dir, "dawn").snippets == []
        assert [p.name for p in root.iterdir()] == ["dawn"]

    @pytest.mark.parametrize("theme_id", ["dawn", "Dawn-2", "a1b2c3", "9f1c2d3e-aaaa-4bbb-8ccc-123456789abc"])
    def test_parse_returns_extracted_theme_id(self, make_package, tmp_path, theme_id):
        theme_dir = extract(make_package(), theme_id, tmp_path)

        assert parse(theme_dir, theme_id).theme_id == theme_id


class TestValidation:
    """Packages that are not installable themes"""

    def test_missing_settings_schema(self, make_package, tmp_path):
        package = make_package(theme_files(without=("config/settings_schema.json",)))

        with pytest.raises(MissingRequiredFile) as exc_info:
            extract(package, "broken", tmp_path)

        assert exc_info.value.path == "config/settings_schema.json"
        assert "config/settings_schema.json" in str(exc_info.value)
        assert not (tmp_path / "broken").exists()

    def test_missing_layout(self, make_package, tmp_path):
        package = make_package(theme_files(without=("layout/theme.liquid",)))

        with pytest.raises(MissingRequiredFile) as exc_info:
            extract(package, "broken", tmp_path)

        assert exc_info.value.path == "layout/theme.liquid"

    def test_custom_layout_required_files(self, make_package, tmp_path):
        layout = ThemeLayout(required_files=("layout/theme.liquid", "templates/cart.json"))
        importer = ThemeImporter(layout)

        with pytest.raises(MissingRequiredFile) as exc_info:
            importer.extract(make_package(), "dawn", tmp_path)

        assert exc_info.value.path == "templates/cart.json"

    def test_reimport_missing_required_file(self, make_package, tmp_path):
        extract(make_package(), "dawn", tmp_path)
        package = make_package(theme_files(without=("layout/theme.liquid",)))

        with pytest.raises(MissingRequiredFile) as exc_info:
            extract(package, "dawn", tmp_path)

        assert exc_info.value.path == "layout/theme.liquid"

    def test_failed_reimport_keeps_previous_install(self, make_package, tmp_path):
        extract(make_package(), "dawn", tmp_path)
        stamp = (tmp_path / "dawn" / "manifest.json").read_text()

        with pytest.raises(MissingRequiredFile):
            extract(make_package(theme_files(without=("layout/theme.liquid",))), "dawn", tmp_path)

        assert (tmp_path / "dawn" / "manifest.json").read_text() == stamp
        assert (tmp_path / "dawn" / "layout" / "theme.liquid").is_file()
        assert sorted(p.name for p in tmp_path.iterdir() if p.is_dir()) == ["dawn"]


class TestArchiveErrors:
    """Unreadable and unsafe archives"""

    def test_corrupt_archive(self, tmp_path):
        package = tmp_path / "corrupt.zip"
        package.write_bytes(b"this is not a zip file")

        with pytest.raises(ArchiveExtractionError):
            extract(package, "dawn", tmp_path / "themes")

        assert not (tmp_path / "themes" / "dawn").exists()

    def test_missing_archive(self, tmp_path):
        with pytest.raises(ArchiveExtractionError):
            extract(tmp_path / "nope.zip", "dawn", tmp_path / "themes")

    def test_rejects_path_traversal(self, tmp_path):
        files = theme_files(extra={"../escaped.txt": "gotcha"})
        package = tmp_path / "traversal.zip"
        package.write_bytes(build_zip(files))

        with pytest.raises(ArchiveExtractionError):
            extract(package, "dawn", tmp_path / "themes")

        assert not (tmp_path / "themes" / "escaped.txt").exists()
        assert not (tmp_path / "themes" / "dawn").exists()

    def test_rejects_symlinks(self, tmp_path):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            for name, content in theme_files().items():
                archive.writestr(name, content)
            link = zipfile.ZipInfo("assets/passwd")
            link.external_attr = (stat.S_IFLNK | 0o777) << 16
            archive.writestr(link, "/etc/passwd")
        package = tmp_path / "symlink.zip"
        package.write_bytes(buffer.getvalue())

        with pytest.raises(ArchiveExtractionError, match="symbolic link"):
            extract(package, "dawn", tmp_path / "themes")

    def test_member_size_limit(self, make_package, tmp_path):
        files = theme_files(extra={"assets/huge.bin": b"\0" * 4096})
        importer = ThemeImporter(limits=ExtractionLimits(max_member_bytes=1024))

        with pytest.raises(ArchiveExtractionError):
            importer.extract(make_package(files), "dawn", tmp_path / "themes")

        assert not (tmp_path / "themes" / "dawn").exists()

    def test_total_size_limit(self, make_package, tmp_path):
        files = theme_files(extra={
            "assets/a.bin": b"\0" * 800,
            "assets/b.bin": b"\0" * 800,
        })
        importer = ThemeImporter(limits=ExtractionLimits(max_member_bytes=1024, max_total_bytes=1200))

        with pytest.raises(ArchiveExtractionError, match="inflates beyond"):
            importer.extract(make_package(files), "dawn", tmp_path / "themes")

    def test_member_count_limit(self, make_package, tmp_path):
        importer = ThemeImporter(limits=ExtractionLimits(max_members=3))

        with pytest.raises(ArchiveExtractionError, match="entries"):
            importer.extract(make_package(), "dawn", tmp_path / "themes")


class TestStorageErrors:

    def test_destination_not_a_directory(self, make_package, tmp_path):
        blocker = tmp_path / "themes"
        blocker.write_text("not a directory")

        with pytest.raises(StorageError):
            extract(make_package(), "dawn", blocker)
