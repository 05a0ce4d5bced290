"""
Call Domain Models
"""
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum

from app.domain.models.campaign import CampaignCounter


class CallStatus(str, Enum):
    """Call status, mirroring the call-center provider's vocabulary"""
    PENDING = "pending"
    QUEUED = "queued"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BUSY = "busy"
    NO_ANSWER = "no-answer"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def from_provider(cls, raw: Optional[str]) -> "CallStatus":
        """Map a provider status string; anything unrecognised counts as completed."""
        if raw in PROVIDER_STATUS_MAP:
            return PROVIDER_STATUS_MAP[raw]
        return cls.COMPLETED


TERMINAL_STATUSES = frozenset({
    CallStatus.COMPLETED,
    CallStatus.BUSY,
    CallStatus.NO_ANSWER,
    CallStatus.FAILED,
    CallStatus.CANCELLED,
})

# Calls in these states keep a campaign running
ACTIVE_STATUSES = frozenset({
    CallStatus.PENDING,
    CallStatus.QUEUED,
    CallStatus.RINGING,
    CallStatus.IN_PROGRESS,
})

PROVIDER_STATUS_MAP: Dict[str, CallStatus] = {
    "queued": CallStatus.QUEUED,
    "ringing": CallStatus.RINGING,
    "in-progress": CallStatus.IN_PROGRESS,
    "completed": CallStatus.COMPLETED,
    "busy": CallStatus.BUSY,
    "no-answer": CallStatus.NO_ANSWER,
    "failed": CallStatus.FAILED,
    "cancelled": CallStatus.CANCELLED,
}


class CallOutcome(str, Enum):
    """Business result of a call"""
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    NOT_INTERESTED = "not_interested"
    ANGRY = "angry"
    NO_RESPONSE = "no_response"
    NO_ANSWER = "no_answer"
    INVALID_NUMBER = "invalid_number"


# Outcome -> counter for provider-reported finalization
OUTCOME_COUNTERS: Dict[str, CampaignCounter] = {
    CallOutcome.CONFIRMED.value: CampaignCounter.CALLS_CONFIRMED,
    CallOutcome.RESCHEDULED.value: CampaignCounter.CALLS_RESCHEDULED,
    CallOutcome.NOT_INTERESTED.value: CampaignCounter.CALLS_NOT_INTERESTED,
    CallOutcome.ANGRY.value: CampaignCounter.CALLS_NOT_INTERESTED,
    CallOutcome.NO_RESPONSE.value: CampaignCounter.CALLS_NO_ANSWER,
    CallOutcome.NO_ANSWER.value: CampaignCounter.CALLS_NO_ANSWER,
}

# Outcomes the live agent may report through mark_attendance
ATTENDANCE_COUNTERS: Dict[str, CampaignCounter] = {
    CallOutcome.CONFIRMED.value: CampaignCounter.CALLS_CONFIRMED,
    CallOutcome.NOT_INTERESTED.value: CampaignCounter.CALLS_NOT_INTERESTED,
    CallOutcome.ANGRY.value: CampaignCounter.CALLS_NOT_INTERESTED,
}


class CallRecord(BaseModel):
    """One outbound call inside a campaign"""
    model_config = ConfigDict(extra="ignore")

    id: str
    campaign_id: str
    contact_name: Optional[str] = None
    contact_phone: str
    status: CallStatus = CallStatus.PENDING
    outcome: Optional[str] = None  # Written once, see transition_call_to_terminal
    bolna_call_id: Optional[str] = None  # External execution id
    call_duration_seconds: Optional[float] = None
    call_cost: Optional[float] = None
    transcript: Optional[str] = None
    recording_url: Optional[str] = None
    extracted_data: Optional[Dict[str, Any]] = None
    reschedule_day: Optional[str] = None
    in_whatsapp_group: Optional[bool] = None
    whatsapp_link_sent: Optional[bool] = None
    call_ended_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class CallDetails(BaseModel):
    """Provider-reported details persisted alongside a terminal transition"""
    bolna_call_id: Optional[str] = None
    call_duration_seconds: Optional[float] = None
    call_cost: Optional[float] = None
    transcript: Optional[str] = None
    recording_url: Optional[str] = None
    extracted_data: Optional[Dict[str, Any]] = None
    reschedule_day: Optional[str] = None


class TerminalTransition(BaseModel):
    """Result of the guarded terminal transition"""
    was_first_transition: bool
    outcome_was_set: bool = False
    outcome: Optional[str] = None
