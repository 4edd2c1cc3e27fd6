"""
Image Region Extractor - FastAPI entry point

Run with ``python main.py`` or ``uvicorn main:app``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.exceptions import register_exception_handlers
from api.routers import extraction, system
from config import Settings, get_settings
from core.constants import SystemConstants
from services.providers import OpenAIVisionProvider, VisionCompletionProvider

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.system.log_level),
    format=SystemConstants.LOG_FORMAT,
)
logger = logging.getLogger(__name__)

# Request-level chatter from the OpenAI client
for noisy in ("httpx", "openai"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


def create_completion_provider(config: Settings) -> Optional[VisionCompletionProvider]:
    """OpenAI provider when the oracle is enabled and has an API key, else None."""
    oracle = config.oracle
    if not oracle.is_configured:
        logger.info("Vision completion provider disabled (no API key configured)")
        return None

    logger.info(f"Vision completion provider: {oracle.model}")
    return OpenAIVisionProvider(
        api_key=oracle.api_key,
        model=oracle.model,
        base_url=oracle.base_url,
        timeout_seconds=oracle.timeout_seconds,
        max_tokens=oracle.max_tokens,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build providers on startup and close their clients on shutdown."""
    logger.info(
        f"Starting {SystemConstants.APP_NAME} {SystemConstants.APP_VERSION} "
        f"(environment={settings.environment}, debug={settings.system.debug})"
    )

    completion_provider = create_completion_provider(settings)

    # Routers read everything through app.state (see api.dependencies)
    app.state.completion_provider = completion_provider
    app.state.cloud_analyzer = None
    app.state.extraction_settings = settings.extraction
    app.state.config = settings.to_dict()
    app.state.debug = settings.system.debug

    yield

    client = getattr(completion_provider, "client", None)
    if client is not None:
        await client.close()
    logger.info(f"{SystemConstants.APP_NAME} stopped")


app = FastAPI(
    title=SystemConstants.APP_NAME,
    description="Detects and crops visual regions (images, icons, cards, sections) from screenshots",
    version=SystemConstants.APP_VERSION,
    lifespan=lifespan,
)

if settings.api.cors_enabled:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_exception_handlers(app)

app.include_router(extraction.router, prefix="/api/extraction", tags=["Extraction"])
app.include_router(system.router, prefix="/api/system", tags=["System"])


@app.get("/")
async def root():
    """Service banner with the top-level route map."""
    return {
        "name": SystemConstants.APP_NAME,
        "version": SystemConstants.APP_VERSION,
        "status": "running",
        "endpoints": {
            "extraction": "/api/extraction",
            "system": "/api/system",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health_check():
    """Liveness plus which external providers are wired."""
    state = app.state
    return {
        "status": "healthy",
        "services": {
            "completion_provider": getattr(state, "completion_provider", None) is not None,
            "cloud_analyzer": getattr(state, "cloud_analyzer", None) is not None,
        },
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.system.debug,
        log_level=settings.system.log_level.lower(),
    )
