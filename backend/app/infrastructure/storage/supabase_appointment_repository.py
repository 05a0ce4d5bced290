"""
Supabase Appointment Repository
call_appointments, leads, profiles and integration lookups.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from supabase import Client

from app.domain.exceptions import PersistenceError
from app.domain.interfaces.appointment_repository import (
    AppointmentRepository,
    IntegrationRepository,
)
from app.domain.models.appointment import Appointment
from app.domain.models.integration import CloserBinding, Integration
from app.domain.models.lead import CloserProfile

logger = logging.getLogger(__name__)

APPOINTMENT_SELECT = (
    "*, "
    "lead:leads(id, contact_name, email, phone, country, assigned_to, previous_assigned_to), "
    "closer:profiles!call_appointments_closer_id_fkey(id, full_name, email)"
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseAppointmentRepository(AppointmentRepository):

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        response = self.supabase.table("call_appointments").select(
            APPOINTMENT_SELECT
        ).eq("id", appointment_id).limit(1).execute()
        if not response.data:
            return None
        return Appointment.model_validate(response.data[0])

    def get_profile(self, user_id: str) -> Optional[CloserProfile]:
        response = self.supabase.table("profiles").select(
            "id, full_name, email"
        ).eq("id", user_id).limit(1).execute()
        if not response.data:
            return None
        return CloserProfile.model_validate(response.data[0])

    def update_appointment(self, appointment_id: str, fields: Dict[str, Any]) -> None:
        payload = {**fields, "updated_at": _now_iso()}
        try:
            self.supabase.table("call_appointments").update(payload).eq(
                "id", appointment_id
            ).execute()
        except Exception as e:
            raise PersistenceError("Failed to update appointment", details=str(e)) from e

    def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        payload = {**fields, "updated_at": _now_iso()}
        try:
            self.supabase.table("leads").update(payload).eq("id", lead_id).execute()
        except Exception as e:
            raise PersistenceError("Failed to update lead", details=str(e)) from e


class SupabaseIntegrationRepository(IntegrationRepository):

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_active_integration(
        self,
        organization_id: str,
        integration_type: str
    ) -> Optional[Integration]:
        response = self.supabase.table("organization_integrations").select("*").eq(
            "organization_id", organization_id
        ).eq("integration_type", integration_type).eq("is_active", True).limit(1).execute()
        if not response.data:
            return None
        return Integration.model_validate(response.data[0])

    def get_closer_binding(
        self,
        closer_id: str,
        organization_id: Optional[str] = None
    ) -> CloserBinding:
        query = self.supabase.table("closer_integrations").select(
            "integration_id"
        ).eq("closer_id", closer_id)
        if organization_id:
            query = query.eq("organization_id", organization_id)
        response = query.limit(1).execute()

        if not response.data:
            return CloserBinding(closer_id=closer_id)

        integration_id = response.data[0]["integration_id"]
        integration_response = self.supabase.table("organization_integrations").select(
            "*"
        ).eq("id", integration_id).eq("is_active", True).limit(1).execute()

        if not integration_response.data:
            logger.warning(
                f"Closer {closer_id[:8]}... bound to inactive or missing integration {integration_id}"
            )
            return CloserBinding(closer_id=closer_id)

        return CloserBinding(
            closer_id=closer_id,
            integration=Integration.model_validate(integration_response.data[0])
        )
