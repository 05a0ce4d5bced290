"""
Appointments API
Reassigns booked 1:1 calls between closers
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.v1.dependencies import CurrentUser, get_reassignment_orchestrator, require_org_member
from app.domain.exceptions import OrchestratorError
from app.domain.models.appointment import ReassignmentRequest
from app.services.reassignment_service import ReassignmentOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("/reassign")
async def reassign_appointment(
    body: ReassignmentRequest,
    current_user: CurrentUser = Depends(require_org_member),
    orchestrator: ReassignmentOrchestrator = Depends(get_reassignment_orchestrator)
):
    """
    Move an appointment to another closer and/or slot.

    Meeting provisioning and the WhatsApp confirmation are best-effort and
    reported in the response; only the appointment update can fail the call.
    """
    try:
        logger.info(
            f"User {current_user.id} reassigning appointment {body.appointment_id} "
            f"to closer {body.new_closer_id}"
        )
        return await orchestrator.reassign(body)
    except HTTPException:
        raise
    except OrchestratorError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)
    except Exception as e:
        logger.error(f"Error reassigning appointment: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
