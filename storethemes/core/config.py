from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import validator


class Settings(BaseSettings):
    PROJECT_NAME: str = "StoreThemes"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    # Theme storage
    # Every tenant gets its own directory below this root: <THEMES_ROOT>/<tenant_id>/<theme_id>
    THEMES_ROOT: Path = Path("./storage/themes")
    THEME_LAYOUT_FILE: Optional[Path] = None
    DEFAULT_TENANT_ID: str = "default"

    # Upload and archive limits
    MAX_UPLOAD_SIZE_MB: int = 50
    MAX_ARCHIVE_MEMBERS: int = 2000
    MAX_MEMBER_SIZE_MB: int = 20
    MAX_EXTRACTED_SIZE_MB: int = 200

    # Logging
    LOG_LEVEL: str = "INFO"
    GELF_ENABLED: bool = False
    GRAYLOG_HOST: str = "graylog"
    GRAYLOG_PORT: int = 12201

    @validator('THEMES_ROOT', pre=True, always=True)
    def resolve_themes_root(cls, v):
        """Resolve the themes root once so every caller sees the same absolute path"""
        if v is None or v == "":
            v = "./storage/themes"
        return Path(v).expanduser().resolve()

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
