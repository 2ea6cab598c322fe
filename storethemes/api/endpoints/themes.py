"""
Theme API endpoints.
"""

import mimetypes
from typing import List
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, JSONResponse

from ...auth.dependencies import get_theme_store
from ...core.config import settings
from ...core.logging_config import get_theme_logger
from ...themes.errors import (
    ArchiveExtractionError,
    ConfigParseError,
    InvalidIdentifierError,
    MissingRequiredFile,
    StorageError,
    ThemeNotFoundError,
)
from ...themes.models import InstalledTheme, ThemeUploadResult
from ...themes.store import ThemeStore

logger = get_theme_logger(__name__)
router = APIRouter()


def _upload_size(upload: UploadFile) -> int:
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


@router.post("/", response_model=ThemeUploadResult, status_code=status.HTTP_201_CREATED)
async def upload_theme(
    theme_file: UploadFile = File(...),
    theme_name: str = Form(...),
    store: ThemeStore = Depends(get_theme_store)
) -> ThemeUploadResult:
    """
    Upload a theme package (zip) and install it for the tenant.
    """
    if not theme_name.strip():
        raise HTTPException(status_code=400, detail="Theme name is required")

    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if _upload_size(theme_file) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Theme package too large. Maximum size: {settings.MAX_UPLOAD_SIZE_MB}MB"
        )

    try:
        result = await run_in_threadpool(store.install, theme_file.file, theme_name.strip())
    except MissingRequiredFile as e:
        raise HTTPException(status_code=400, detail=f"Missing required theme file: {e.path}")
    except ArchiveExtractionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        logger.exception(f"Theme upload failed for {theme_file.filename}: {e}")
        raise HTTPException(status_code=500, detail="Failed to store theme")
    finally:
        await theme_file.close()

    logger.info(f"Theme {theme_name} uploaded as {result.theme_id}")
    return result


@router.get("/", response_model=List[InstalledTheme])
async def list_themes(
    store: ThemeStore = Depends(get_theme_store)
) -> List[InstalledTheme]:
    """
    List all themes installed for the tenant.
    """
    try:
        return await run_in_threadpool(store.list_themes)
    except StorageError as e:
        logger.exception(f"Listing themes failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to list themes")


@router.get("/{theme_id}", response_model=InstalledTheme)
async def get_theme(
    theme_id: str,
    store: ThemeStore = Depends(get_theme_store)
) -> InstalledTheme:
    """
    Get the manifest of an installed theme.
    """
    try:
        manifest = await run_in_threadpool(store.get_manifest, theme_id)
    except InvalidIdentifierError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigParseError as e:
        raise HTTPException(status_code=422, detail=f"Invalid theme config {e.file}: {e.message}")

    if manifest is None:
        raise HTTPException(status_code=404, detail=f"Theme {theme_id} not found")
    return manifest


@router.delete("/{theme_id}")
async def delete_theme(
    theme_id: str,
    store: ThemeStore = Depends(get_theme_store)
) -> JSONResponse:
    """
    Delete an installed theme.
    """
    try:
        await run_in_threadpool(store.delete, theme_id)
    except InvalidIdentifierError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ThemeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Theme {theme_id} not found")
    except StorageError as e:
        logger.exception(f"Deleting theme {theme_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete theme")

    return JSONResponse(
        content={
            "status": "success",
            "message": f"Theme {theme_id} deleted",
            "theme_id": theme_id
        }
    )


@router.get("/{theme_id}/assets/{asset_path:path}")
async def get_theme_asset(
    theme_id: str,
    asset_path: str,
    store: ThemeStore = Depends(get_theme_store)
) -> FileResponse:
    """
    Serve a file from a theme's assets directory.
    """
    try:
        path = await run_in_threadpool(store.asset_path, theme_id, asset_path)
    except InvalidIdentifierError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ThemeNotFoundError:
        raise HTTPException(status_code=404, detail=f"Asset {asset_path} not found")

    content_type, _ = mimetypes.guess_type(path.name)
    return FileResponse(path, media_type=content_type or "application/octet-stream")
