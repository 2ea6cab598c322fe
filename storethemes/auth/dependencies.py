"""
Request dependencies for API endpoints.
"""

from fastapi import Depends, HTTPException, Request

from ..core.config import settings
from ..core.logging_config import set_theme_context
from ..themes.errors import InvalidIdentifierError
from ..themes.store import ThemeStore, validate_identifier


async def get_current_tenant(request: Request) -> str:
    """
    Extract tenant ID from request.

    Tries multiple sources:
    1. X-Tenant-Id header
    2. DEFAULT_TENANT_ID setting
    """
    tenant_id = request.headers.get("X-Tenant-Id") or settings.DEFAULT_TENANT_ID
    try:
        validate_identifier(tenant_id, "tenant id")
    except InvalidIdentifierError as e:
        raise HTTPException(status_code=400, detail=str(e))

    set_theme_context(tenant=tenant_id)
    return tenant_id


async def get_theme_store(tenant_id: str = Depends(get_current_tenant)) -> ThemeStore:
    """Theme store of the requesting tenant"""
    return ThemeStore.for_tenant(tenant_id)
