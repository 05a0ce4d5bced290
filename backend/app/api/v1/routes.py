"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from app.api.v1.endpoints import (
    appointments,
    campaigns,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(campaigns.router)
api_router.include_router(webhooks.router)
api_router.include_router(appointments.router)
