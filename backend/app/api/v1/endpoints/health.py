"""
Health Check Endpoint
Liveness for container health checks and monitoring
"""
from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns:
        Dict with status and timestamp
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "voice-campaign-orchestrator"
    }


@router.get("/", status_code=status.HTTP_200_OK)
async def root() -> Dict[str, str]:
    return {
        "message": "Voice Campaign Orchestrator API",
        "version": "1.0.0",
        "docs": "/docs"
    }
