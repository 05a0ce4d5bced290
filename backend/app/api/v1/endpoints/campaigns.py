"""
Voice Campaigns API
Starts and stops outbound voice campaigns on the call-center provider
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel

from app.api.v1.dependencies import CurrentUser, get_campaign_dispatcher, get_current_user
from app.domain.exceptions import OrchestratorError
from app.services.campaign_dispatcher import CampaignDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/voice-campaigns", tags=["voice-campaigns"])


class CampaignStartRequest(BaseModel):
    """Request body for starting a campaign"""
    scheduled_at: Optional[datetime] = None  # Defaults to the campaign's own schedule, else now + delay


@router.post("/{campaign_id}/start")
async def start_campaign(
    campaign_id: str,
    body: Optional[CampaignStartRequest] = Body(None),
    current_user: CurrentUser = Depends(get_current_user),
    dispatcher: CampaignDispatcher = Depends(get_campaign_dispatcher)
):
    """
    Dispatch all pending calls of a campaign as one batch.

    - Builds the contact manifest and creates the batch
    - Schedules it (scheduled_at, campaign schedule, or shortly from now)
    - Marks the campaign running and its calls queued
    """
    try:
        logger.info(f"User {current_user.id} starting campaign {campaign_id}")
        return await dispatcher.start(
            campaign_id,
            scheduled_at=body.scheduled_at if body else None
        )
    except HTTPException:
        raise
    except OrchestratorError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)
    except Exception as e:
        logger.error(f"Error starting campaign {campaign_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{campaign_id}/stop")
async def stop_campaign(
    campaign_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    dispatcher: CampaignDispatcher = Depends(get_campaign_dispatcher)
):
    """Stop the provider batch, pause the campaign and cancel undialled calls."""
    try:
        logger.info(f"User {current_user.id} stopping campaign {campaign_id}")
        return await dispatcher.stop(campaign_id)
    except HTTPException:
        raise
    except OrchestratorError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)
    except Exception as e:
        logger.error(f"Error stopping campaign {campaign_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
