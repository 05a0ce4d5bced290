"""
Webhooks API Endpoints
Handles incoming webhooks from the call-center provider (Bolna)

One endpoint receives both mid-call tool calls and post-call execution
reports; the reconciler tells them apart.
"""
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.v1.dependencies import get_event_reconciler
from app.domain.exceptions import OrchestratorError
from app.services.event_reconciler import EventReconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/bolna")
async def bolna_webhook(
    request: Request,
    reconciler: EventReconciler = Depends(get_event_reconciler)
):
    """
    Handle Bolna tool calls and post-call reports.

    Redeliveries are safe: counters only move on a call's first terminal
    transition.
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    try:
        return await reconciler.handle(payload)
    except HTTPException:
        raise
    except OrchestratorError as e:
        logger.warning(f"Bolna webhook rejected: {e.message}")
        raise HTTPException(status_code=e.http_status, detail=e.message)
    except Exception as e:
        logger.error(f"Error processing Bolna webhook: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
