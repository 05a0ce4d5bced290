"""
Supabase Campaign Repository
voice_campaigns / voice_campaign_calls access through PostgREST.

Counter and cost updates go through database functions so concurrent
webhooks never lose an increment.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client

from app.domain.exceptions import PersistenceError
from app.domain.interfaces.campaign_repository import CallRepository, CampaignRepository
from app.domain.models.call import (
    ACTIVE_STATUSES,
    CallDetails,
    CallRecord,
    CallStatus,
    TerminalTransition,
)
from app.domain.models.campaign import Campaign, CampaignCounter, CampaignStatus

logger = logging.getLogger(__name__)

CAMPAIGNS_TABLE = "voice_campaigns"
CALLS_TABLE = "voice_campaign_calls"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _serialize(fields: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Enum):
            value = value.value
        out[key] = value
    return out


def _status_values(statuses: Iterable[CallStatus]) -> List[str]:
    return [s.value for s in statuses]


class SupabaseCampaignRepository(CampaignRepository):
    """voice_campaigns backed by Supabase"""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        response = self.supabase.table(CAMPAIGNS_TABLE).select("*").eq(
            "id", campaign_id
        ).limit(1).execute()
        if not response.data:
            return None
        return Campaign.model_validate(response.data[0])

    def find_campaign_by_batch(self, batch_id: str) -> Optional[Campaign]:
        response = self.supabase.table(CAMPAIGNS_TABLE).select("*").eq(
            "bolna_batch_id", batch_id
        ).limit(1).execute()
        if not response.data:
            return None
        return Campaign.model_validate(response.data[0])

    def update_campaign(self, campaign_id: str, fields: Dict[str, Any]) -> None:
        payload = _serialize({**fields, "updated_at": _now_iso()})
        try:
            self.supabase.table(CAMPAIGNS_TABLE).update(payload).eq("id", campaign_id).execute()
        except Exception as e:
            raise PersistenceError(f"Failed to update campaign {campaign_id}", details=str(e)) from e

    def complete_campaign(self, campaign_id: str, completed_at: datetime) -> bool:
        response = self.supabase.table(CAMPAIGNS_TABLE).update({
            "status": CampaignStatus.COMPLETED.value,
            "completed_at": completed_at.isoformat(),
            "updated_at": _now_iso(),
        }).eq("id", campaign_id).neq("status", CampaignStatus.COMPLETED.value).execute()
        return bool(response.data)

    def increment_counter(self, campaign_id: str, counter: CampaignCounter) -> None:
        self.supabase.rpc("increment_campaign_counter", {
            "p_campaign_id": campaign_id,
            "p_field": counter.value,
        }).execute()

    def add_cost(self, campaign_id: str, cost: float) -> None:
        self.supabase.rpc("add_campaign_cost", {
            "p_campaign_id": campaign_id,
            "p_cost": cost,
        }).execute()

    def get_workshop_group_link(self, workshop_id: str) -> Optional[str]:
        response = self.supabase.table("workshops").select(
            "whatsapp_group_link"
        ).eq("id", workshop_id).limit(1).execute()
        if not response.data:
            return None
        return response.data[0].get("whatsapp_group_link") or None


class SupabaseCallRepository(CallRepository):
    """voice_campaign_calls backed by Supabase"""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _first(self, response) -> Optional[CallRecord]:
        if not response.data:
            return None
        return CallRecord.model_validate(response.data[0])

    def get_call(self, call_id: str) -> Optional[CallRecord]:
        response = self.supabase.table(CALLS_TABLE).select("*").eq("id", call_id).limit(1).execute()
        return self._first(response)

    def find_call_by_execution(self, execution_id: str) -> Optional[CallRecord]:
        response = self.supabase.table(CALLS_TABLE).select("*").eq(
            "bolna_call_id", execution_id
        ).limit(1).execute()
        return self._first(response)

    def find_latest_call_by_phone(
        self,
        phone: str,
        campaign_id: Optional[str] = None
    ) -> Optional[CallRecord]:
        query = self.supabase.table(CALLS_TABLE).select("*").eq("contact_phone", phone)
        if campaign_id:
            query = query.eq("campaign_id", campaign_id)
        response = query.order("updated_at", desc=True).limit(1).execute()
        return self._first(response)

    def list_calls(self, campaign_id: str, statuses: Iterable[CallStatus]) -> List[CallRecord]:
        response = self.supabase.table(CALLS_TABLE).select("*").eq(
            "campaign_id", campaign_id
        ).in_("status", _status_values(statuses)).order("created_at").execute()
        return [CallRecord.model_validate(row) for row in response.data or []]

    def list_stale_calls(
        self,
        campaign_id: str,
        statuses: Iterable[CallStatus],
        created_before: datetime
    ) -> List[CallRecord]:
        response = self.supabase.table(CALLS_TABLE).select("*").eq(
            "campaign_id", campaign_id
        ).in_("status", _status_values(statuses)).lt(
            "created_at", created_before.isoformat()
        ).execute()
        return [CallRecord.model_validate(row) for row in response.data or []]

    def count_calls(self, campaign_id: str, statuses: Iterable[CallStatus]) -> int:
        response = self.supabase.table(CALLS_TABLE).select(
            "id", count="exact"
        ).eq("campaign_id", campaign_id).in_("status", _status_values(statuses)).execute()
        if response.count is not None:
            return response.count
        return len(response.data or [])

    def bulk_update_status(
        self,
        campaign_id: str,
        from_statuses: Iterable[CallStatus],
        to_status: CallStatus
    ) -> int:
        try:
            response = self.supabase.table(CALLS_TABLE).update({
                "status": to_status.value,
                "updated_at": _now_iso(),
            }).eq("campaign_id", campaign_id).in_(
                "status", _status_values(from_statuses)
            ).execute()
        except Exception as e:
            raise PersistenceError(
                f"Failed to move calls of campaign {campaign_id} to {to_status.value}",
                details=str(e)
            ) from e
        return len(response.data or [])

    def update_call(self, call_id: str, fields: Dict[str, Any]) -> None:
        payload = _serialize({**fields, "updated_at": _now_iso()})
        self.supabase.table(CALLS_TABLE).update(payload).eq("id", call_id).execute()

    def update_call_if_active(self, call_id: str, fields: Dict[str, Any]) -> bool:
        payload = _serialize({**fields, "updated_at": _now_iso()})
        response = self.supabase.table(CALLS_TABLE).update(payload).eq(
            "id", call_id
        ).in_("status", _status_values(ACTIVE_STATUSES)).execute()
        return bool(response.data)

    def transition_call_to_terminal(
        self,
        call_id: str,
        status: CallStatus,
        outcome: Optional[str] = None,
        details: Optional[CallDetails] = None,
        ended_at: Optional[datetime] = None
    ) -> TerminalTransition:
        details = details or CallDetails()
        params = {
            "p_call_id": call_id,
            "p_status": status.value,
            "p_outcome": outcome,
            "p_bolna_call_id": details.bolna_call_id,
            "p_duration": details.call_duration_seconds,
            "p_cost": details.call_cost,
            "p_transcript": details.transcript,
            "p_recording_url": details.recording_url,
            "p_extracted_data": details.extracted_data,
            "p_reschedule_day": details.reschedule_day,
        }
        if ended_at is not None:
            params["p_ended_at"] = ended_at.isoformat()

        try:
            response = self.supabase.rpc("transition_call_to_terminal", params).execute()
        except Exception as e:
            raise PersistenceError(
                f"Terminal transition failed for call {call_id}", details=str(e)
            ) from e

        rows = response.data or []
        if not rows:
            # No such call; nothing transitioned
            return TerminalTransition(was_first_transition=False)
        return TerminalTransition.model_validate(rows[0])
