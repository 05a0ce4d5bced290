"""
Reassignment Orchestrator
Moves a booked 1:1 appointment to another closer and/or another slot.

Only the appointment write is a hard step. Cancelling the old meeting,
provisioning a new one, mirroring onto the lead and the WhatsApp
confirmation all degrade to warnings folded into the response.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.domain.exceptions import (
    AppointmentNotFoundError,
    CloserNotFoundError,
    MeetingProviderError,
    PersistenceError,
)
from app.domain.interfaces.appointment_repository import AppointmentRepository
from app.domain.models.appointment import Appointment, MeetingResult, ReassignmentRequest
from app.domain.models.integration import MeetingProviderKind
from app.domain.models.lead import CloserProfile
from app.services.meeting_service import MeetingService
from app.services.whatsapp_service import WhatsAppNotificationService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

SUCCESS_MESSAGE = "Call reassigned successfully"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReassignmentOrchestrator:
    """Closer/slot reassignment for call_appointments."""

    def __init__(
        self,
        appointments: AppointmentRepository,
        meetings: MeetingService,
        notifications: WhatsAppNotificationService,
        clock: Optional[Clock] = None
    ):
        self.appointments = appointments
        self.meetings = meetings
        self.notifications = notifications
        self._clock = clock or utc_now

    def _load(self, request: ReassignmentRequest) -> tuple:
        appointment = self.appointments.get_appointment(request.appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(request.appointment_id)
        if appointment.lead is None:
            raise AppointmentNotFoundError(
                request.appointment_id, message="Lead not found for this appointment"
            )

        new_closer = self.appointments.get_profile(request.new_closer_id)
        if new_closer is None:
            raise CloserNotFoundError(request.new_closer_id)
        return appointment, new_closer

    async def _cancel_previous(self, appointment: Appointment) -> Dict[str, bool]:
        """Cancel the old closer's scheduling-link booking, if there is one."""
        cancellation = {"attempted": False, "cancelled": False}
        if not appointment.closer_id or not appointment.calendly_event_uri:
            return cancellation

        try:
            previous = self.meetings.get_closer_provider(
                appointment.closer_id, appointment.organization_id
            )
        except MeetingProviderError as e:
            logger.warning(f"Previous closer provider unavailable: {e.message}")
            return cancellation

        if previous is None or previous.kind != MeetingProviderKind.CALENDLY:
            return cancellation

        cancellation["attempted"] = True
        try:
            cancellation["cancelled"] = await previous.provider.cancel_meeting(
                appointment.calendly_event_uri
            )
        except MeetingProviderError as e:
            logger.warning(f"Failed to cancel previous Calendly event: {e.message}")
        return cancellation

    async def _provision(
        self,
        appointment: Appointment,
        new_closer: CloserProfile,
        request: ReassignmentRequest
    ) -> tuple:
        """Returns (kind, MeetingResult or None, error or None)."""
        try:
            resolved = self.meetings.get_closer_provider(new_closer.id, appointment.organization_id)
        except MeetingProviderError as e:
            logger.error(f"Meeting provider for {new_closer.full_name} unavailable: {e.message}")
            return None, None, e.message

        if resolved is None:
            logger.info(f"New closer {new_closer.full_name} has no meeting integration")
            return None, None, None

        try:
            result = await resolved.provider.provision_meeting(
                lead=appointment.lead,
                closer=new_closer,
                scheduled_date=request.new_date,
                scheduled_time=request.new_time
            )
        except MeetingProviderError as e:
            logger.error(f"{resolved.kind.value} provisioning failed: {e.message}")
            return resolved.kind, None, e.message
        except Exception as e:
            logger.error(f"{resolved.kind.value} provisioning failed: {e}", exc_info=True)
            return resolved.kind, None, str(e)
        return resolved.kind, result, None

    def _appointment_update(
        self,
        appointment: Appointment,
        request: ReassignmentRequest,
        date_time_changed: bool,
        meeting: Optional[MeetingResult]
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "closer_id": request.new_closer_id,
            "previous_closer_id": appointment.closer_id,
            "was_rescheduled": True,
        }

        if meeting and meeting.join_url:
            fields["zoom_link"] = meeting.join_url
        if meeting and meeting.event_uri:
            fields["calendly_event_uri"] = meeting.event_uri
        else:
            fields["calendly_event_uri"] = None
            fields["calendly_invitee_uri"] = None

        if date_time_changed:
            fields.update({
                "previous_scheduled_date": appointment.scheduled_date,
                "previous_scheduled_time": appointment.scheduled_time,
                "scheduled_date": request.new_date,
                "scheduled_time": request.new_time_with_seconds,
                "rescheduled_at": self._clock(),
                "status": "scheduled",
            })
        return fields

    async def _confirm(
        self,
        appointment: Appointment,
        request: ReassignmentRequest,
        date_time_changed: bool,
        meeting_link: Optional[str]
    ) -> Dict[str, Any]:
        # skipped means the slot did not move; other reasons go in error
        whatsapp: Dict[str, Any] = {"sent": False, "skipped": not date_time_changed, "error": None}
        lead = appointment.lead

        if not date_time_changed:
            logger.info("Date/time unchanged, skipping WhatsApp confirmation")
            return whatsapp
        if not lead.phone:
            logger.warning(f"Lead {lead.id} has no phone number, WhatsApp confirmation not sent")
            whatsapp["error"] = "Lead has no phone number"
            return whatsapp
        if self.notifications.resolve_credentials(appointment.organization_id) is None:
            logger.warning("No messaging credentials, WhatsApp confirmation not sent")
            whatsapp["error"] = "Messaging not configured"
            return whatsapp

        result = await self.notifications.send_booking_confirmation(
            organization_id=appointment.organization_id,
            to_number=lead.phone,
            contact_name=lead.contact_name or "",
            scheduled_date=request.new_date,
            scheduled_time=request.new_time,
            meeting_link=meeting_link
        )
        whatsapp["sent"] = result.success
        whatsapp["error"] = result.error
        return whatsapp

    async def reassign(self, request: ReassignmentRequest) -> Dict[str, Any]:
        """
        Reassign an appointment.

        Raises:
            AppointmentNotFoundError: Unknown appointment, or no lead on it
            CloserNotFoundError: Unknown new closer
            PersistenceError: The appointment update failed
        """
        appointment, new_closer = self._load(request)
        previous_closer = appointment.closer

        date_time_changed = not appointment.is_same_slot(request.new_date, request.new_time)
        logger.info(
            f"Reassigning appointment {appointment.id} to {new_closer.full_name}, "
            f"date_time_changed={date_time_changed}"
        )

        cancellation = await self._cancel_previous(appointment)
        kind, meeting, meeting_error = await self._provision(appointment, new_closer, request)

        fields = self._appointment_update(appointment, request, date_time_changed, meeting)
        try:
            self.appointments.update_appointment(appointment.id, fields)
        except PersistenceError as e:
            logger.error(f"Error updating appointment {appointment.id}: {e.details}")
            raise
        except Exception as e:
            logger.error(f"Error updating appointment {appointment.id}: {e}", exc_info=True)
            raise PersistenceError("Failed to update appointment", details=str(e)) from e

        try:
            self.appointments.update_lead(appointment.lead.id, {
                "previous_assigned_to": appointment.lead.assigned_to,
                "assigned_to": request.new_closer_id,
            })
        except Exception as e:
            logger.error(f"Error updating lead assignment {appointment.lead.id}: {e}")

        meeting_link = meeting.join_url if meeting else None
        whatsapp = await self._confirm(appointment, request, date_time_changed, meeting_link)

        return {
            "success": True,
            "message": SUCCESS_MESSAGE,
            "dateTimeChanged": date_time_changed,
            "newCloser": new_closer.full_name,
            "previousCloser": previous_closer.full_name if previous_closer else None,
            "newZoomLink": meeting_link,
            "integrationType": kind.value if kind else None,
            "meetingError": meeting_error,
            "cancellation": cancellation,
            "whatsapp": whatsapp,
        }
