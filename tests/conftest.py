"""
Test configuration and fixtures.
Theme packages are built on the fly with zipfile inside pytest's tmp_path.
"""

import io
import json
import logging
import zipfile
import pytest
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

from storethemes.core.config import settings


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


SETTINGS_SCHEMA = [
    {
        "name": "theme_info",
        "theme_name": "Dawn",
        "theme_version": "1.0.0"
    },
    {
        "name": "Colors",
        "settings": [
            {"type": "header", "content": "Palette"},
            {"type": "color", "id": "colors_accent_1", "label": "Accent 1", "default": "#121212"}
        ]
    }
]

SETTINGS_DATA = {
    "current": {"colors_accent_1": "#334fb4"},
    "presets": {"Default": {"colors_accent_1": "#121212"}}
}


def theme_files(without: Tuple[str, ...] = (), extra: Optional[Dict[str, Union[str, bytes]]] = None) -> Dict[str, Union[str, bytes]]:
    """A minimal but complete theme"""
    files: Dict[str, Union[str, bytes]] = {
        "layout/theme.liquid": "<html>{{ content_for_layout }}</html>",
        "templates/index.json": json.dumps({"sections": {}, "order": []}),
        "templates/product.json": json.dumps({"sections": {}, "order": []}),
        "sections/header.json": "{}",
        "sections/footer.json": "{}",
        "snippets/price.liquid": "{{ product.price | money }}",
        "assets/base.css": "body { margin: 0; }",
        "config/settings_schema.json": json.dumps(SETTINGS_SCHEMA),
        "config/settings_data.json": json.dumps(SETTINGS_DATA),
    }
    for name in without:
        files.pop(name, None)
    files.update(extra or {})
    return files


def build_zip(files: Dict[str, Union[str, bytes]], prefix: str = "") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(prefix + name, content)
    return buffer.getvalue()


@pytest.fixture
def make_package(tmp_path: Path) -> Callable[..., Path]:
    """Write a theme zip to disk and return its path"""
    counter = {"n": 0}

    def _make(files: Optional[Dict[str, Union[str, bytes]]] = None, prefix: str = "") -> Path:
        counter["n"] += 1
        path = tmp_path / f"package-{counter['n']}.zip"
        path.write_bytes(build_zip(theme_files() if files is None else files, prefix))
        return path

    return _make


@pytest.fixture
def themes_root(tmp_path: Path, monkeypatch) -> Path:
    """Point the configured themes root at a temporary directory"""
    root = tmp_path / "themes"
    monkeypatch.setattr(settings, "THEMES_ROOT", root)
    return root


@pytest.fixture
def theme_dir(tmp_path: Path) -> Callable[[Dict[str, Union[str, bytes]]], Path]:
    """Lay out an already-extracted theme directory"""

    def _make(files: Dict[str, Union[str, bytes]]) -> Path:
        root = tmp_path / "extracted"
        for name, content in files.items():
            target = root / name
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        root.mkdir(exist_ok=True)
        return root

    return _make
