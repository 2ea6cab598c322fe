from fastapi import APIRouter

from .endpoints import themes

api_router = APIRouter()

api_router.include_router(themes.router, prefix="/themes", tags=["themes"])
