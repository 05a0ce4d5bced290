"""
API Dependencies
Shared dependencies for authentication, Supabase access, and service wiring
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status, Header
from supabase import create_client, Client
from pydantic import BaseModel
from dotenv import load_dotenv

from app.core.config import get_settings
from app.infrastructure.storage.supabase_appointment_repository import (
    SupabaseAppointmentRepository,
    SupabaseIntegrationRepository,
)
from app.infrastructure.storage.supabase_campaign_repository import (
    SupabaseCallRepository,
    SupabaseCampaignRepository,
)
from app.services.campaign_dispatcher import CampaignDispatcher
from app.services.event_reconciler import EventReconciler
from app.services.meeting_service import MeetingService
from app.services.reassignment_service import ReassignmentOrchestrator
from app.services.whatsapp_service import WhatsAppNotificationService

load_dotenv()

logger = logging.getLogger(__name__)


class CurrentUser(BaseModel):
    """Current authenticated user model"""
    id: str
    email: Optional[str] = None
    organization_id: Optional[str] = None


def get_supabase() -> Client:
    """
    Get Supabase client with validation.

    Raises:
        RuntimeError: If Supabase URL or SERVICE_KEY is not configured
    """
    settings = get_settings()

    if not settings.supabase_url:
        raise RuntimeError(
            "SUPABASE_URL is not configured. "
            "Set SUPABASE_URL environment variable."
        )
    if not settings.supabase_service_key:
        raise RuntimeError(
            "SUPABASE_SERVICE_KEY is not configured. "
            "Set SUPABASE_SERVICE_KEY environment variable."
        )

    return create_client(settings.supabase_url, settings.supabase_service_key)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    supabase: Client = Depends(get_supabase)
) -> CurrentUser:
    """
    Dependency to get the current authenticated user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, malformed or rejected
    """
    if not authorization:
        raise _unauthorized("Authorization header missing")

    # Extract token from "Bearer <token>"
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _unauthorized("Invalid authorization header format. Use: Bearer <token>")

    try:
        user_response = supabase.auth.get_user(parts[1])
    except Exception as e:
        raise _unauthorized(f"Token validation failed: {str(e)}")

    if not user_response or not user_response.user:
        raise _unauthorized("Invalid or expired token")

    auth_user = user_response.user
    return CurrentUser(id=str(auth_user.id), email=auth_user.email)


async def require_org_member(
    current_user: CurrentUser = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
) -> CurrentUser:
    """
    Dependency to require membership of an organization.

    Raises:
        HTTPException: 401 if the user belongs to no organization
    """
    response = supabase.table("organization_members").select(
        "organization_id"
    ).eq("user_id", current_user.id).limit(1).execute()

    if not response.data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not in organization"
        )

    current_user.organization_id = response.data[0]["organization_id"]
    return current_user


# ============================================================================
# SERVICES
# ============================================================================

def get_whatsapp_service(
    supabase: Client = Depends(get_supabase)
) -> WhatsAppNotificationService:
    return WhatsAppNotificationService(SupabaseIntegrationRepository(supabase))


def get_campaign_dispatcher(
    supabase: Client = Depends(get_supabase)
) -> CampaignDispatcher:
    return CampaignDispatcher(
        campaigns=SupabaseCampaignRepository(supabase),
        calls=SupabaseCallRepository(supabase),
        integrations=SupabaseIntegrationRepository(supabase)
    )


def get_event_reconciler(
    supabase: Client = Depends(get_supabase),
    notifications: WhatsAppNotificationService = Depends(get_whatsapp_service)
) -> EventReconciler:
    return EventReconciler(
        campaigns=SupabaseCampaignRepository(supabase),
        calls=SupabaseCallRepository(supabase),
        notifications=notifications
    )


def get_reassignment_orchestrator(
    supabase: Client = Depends(get_supabase),
    notifications: WhatsAppNotificationService = Depends(get_whatsapp_service)
) -> ReassignmentOrchestrator:
    return ReassignmentOrchestrator(
        appointments=SupabaseAppointmentRepository(supabase),
        meetings=MeetingService(SupabaseIntegrationRepository(supabase)),
        notifications=notifications
    )
