"""
System API Router - Status and configuration
"""

import logging
import time
from datetime import datetime

import psutil
from fastapi import APIRouter, Depends, Request

from api.dependencies import Providers, get_providers
from api.exceptions import safe_endpoint
from api.models import SystemStatus
from core.constants import SystemConstants
from core.enums import ExtractionMode

logger = logging.getLogger(__name__)

router = APIRouter()

# Track start time
START_TIME = time.time()


@router.get("/status")
@safe_endpoint
async def get_status(providers: Providers = Depends(get_providers)) -> SystemStatus:
    """Get system status"""
    memory_info = psutil.Process().memory_info()
    virtual_memory = psutil.virtual_memory()

    return SystemStatus(
        status="healthy",
        version=SystemConstants.APP_VERSION,
        uptime=time.time() - START_TIME,
        memory_usage={
            "process_mb": memory_info.rss / 1024 / 1024,
            "system_percent": virtual_memory.percent,
            "available_mb": virtual_memory.available / 1024 / 1024,
        },
        providers=providers.status(),
        modes=[mode.value for mode in ExtractionMode],
    )


@router.post("/debug/{enable}")
@safe_endpoint
async def set_debug_mode(enable: bool, request: Request) -> dict:
    """Switch root logging between DEBUG and INFO."""
    logging.getLogger().setLevel(logging.DEBUG if enable else logging.INFO)
    request.app.state.debug = enable
    logger.info(f"Debug logging {'enabled' if enable else 'disabled'}")
    return {"debug": enable}


@router.get("/config")
@safe_endpoint
async def get_config(request: Request) -> dict:
    """Get current configuration (secrets omitted)"""
    return request.app.state.config


@router.get("/health")
async def health_check() -> dict:
    """Simple health check"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}
