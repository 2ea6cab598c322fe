from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.logging_config import setup_logging, get_theme_logger
from .api.api import api_router

logger = get_theme_logger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# Set up CORS - development configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000"
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {
        "message": "Welcome to StoreThemes API",
        "version": settings.VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": settings.VERSION
    }


@app.on_event("startup")
async def startup_event():
    setup_logging(
        level=settings.LOG_LEVEL,
        gelf_enabled=settings.GELF_ENABLED,
        graylog_host=settings.GRAYLOG_HOST,
        graylog_port=settings.GRAYLOG_PORT,
        container_name=settings.PROJECT_NAME.lower()
    )
    settings.THEMES_ROOT.mkdir(parents=True, exist_ok=True)
    logger.info(f"Theme storage root: {settings.THEMES_ROOT}")


app.include_router(api_router, prefix=settings.API_V1_STR)
