"""
Theme package models for the storefront theme service.
"""

from datetime import datetime, timezone
from typing import Dict, Optional, List, Any, Union
from pydantic import BaseModel, Field


class SettingDefinition(BaseModel):
    """A single editable setting inside a settings_schema.json group"""

    type: str = Field(..., description="Input type (color, text, range, header...)")
    id: Optional[str] = Field(None, description="Setting key, absent for headers/paragraphs")
    label: Optional[Union[str, Dict[str, str]]] = Field(None, description="Label or translations")
    default: Optional[Any] = Field(None, description="Default value")

    class Config:
        extra = "allow"


class SettingsGroup(BaseModel):
    """A named group of settings as shown in the theme editor"""

    name: Union[str, Dict[str, str]] = Field(..., description="Group name or translations")
    settings: List[SettingDefinition] = Field(default_factory=list)

    class Config:
        extra = "allow"


class SettingsData(BaseModel):
    """Current values of a theme's settings (settings_data.json)"""

    current: Optional[Union[str, Dict[str, Any]]] = Field(
        None, description="Active values, or the name of the active preset"
    )
    presets: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    class Config:
        extra = "allow"


class ThemeStamp(BaseModel):
    """Bookkeeping record written next to an extracted theme"""

    theme_id: str = Field(..., alias="themeId")
    extracted_at: str = Field(..., alias="extractedAt", description="ISO-8601 UTC timestamp")
    name: Optional[str] = Field(None, description="Display name given at upload")

    class Config:
        populate_by_name = True


class ThemeManifest(BaseModel):
    """Structured description of an extracted theme directory"""

    theme_id: str = Field(..., alias="themeId")
    layouts: List[str] = Field(default_factory=list)
    templates: List[str] = Field(default_factory=list)
    sections: List[str] = Field(default_factory=list)
    snippets: List[str] = Field(default_factory=list)
    assets: List[str] = Field(default_factory=list)
    settings_schema: Union[List[Dict[str, Any]], Dict[str, Any]] = Field(
        default_factory=dict, alias="settingsSchema"
    )
    settings_data: Dict[str, Any] = Field(default_factory=dict, alias="settingsData")

    class Config:
        populate_by_name = True
        frozen = True


class InstalledTheme(ThemeManifest):
    """Manifest of a theme installed for a tenant, merged with its stamp"""

    name: Optional[str] = None
    extracted_at: str = Field(..., alias="extractedAt")


class ThemeUploadResult(BaseModel):
    """Returned once a package has become an installed theme"""

    theme_id: str = Field(..., alias="themeId")
    theme_dir: str = Field(..., alias="themeDir")

    class Config:
        populate_by_name = True


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")
