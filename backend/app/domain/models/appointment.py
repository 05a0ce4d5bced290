"""
Appointment Domain Models
1:1 sales calls booked between a lead and a closer.
"""
import re
from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.models.lead import CloserProfile, Lead


class Appointment(BaseModel):
    """A row in call_appointments, optionally joined with its lead and closer"""
    model_config = ConfigDict(extra="ignore")

    id: str
    organization_id: Optional[str] = None
    lead_id: Optional[str] = None
    closer_id: Optional[str] = None
    previous_closer_id: Optional[str] = None
    scheduled_date: Optional[str] = None  # YYYY-MM-DD, IST
    scheduled_time: Optional[str] = None  # HH:MM:SS, IST
    previous_scheduled_date: Optional[str] = None
    previous_scheduled_time: Optional[str] = None
    zoom_link: Optional[str] = None
    calendly_event_uri: Optional[str] = None
    calendly_invitee_uri: Optional[str] = None
    status: Optional[str] = None
    was_rescheduled: Optional[bool] = None
    rescheduled_at: Optional[datetime] = None

    lead: Optional[Lead] = None
    closer: Optional[CloserProfile] = None

    def is_same_slot(self, new_date: str, new_time: str) -> bool:
        """Compare date and HH:MM against a requested slot."""
        current_time = (self.scheduled_time or "")[:5]
        return self.scheduled_date == new_date and current_time == new_time[:5]


_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")


class ReassignmentRequest(BaseModel):
    """Request body for POST /appointments/reassign"""
    appointment_id: str = Field(..., min_length=1)
    new_closer_id: str = Field(..., min_length=1)
    new_date: str = Field(..., description="YYYY-MM-DD in IST")
    new_time: str = Field(..., description="HH:MM or HH:MM:SS in IST, stored as HH:MM:SS")

    @field_validator("new_date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        if not _DATE_RE.match(v):
            raise ValueError("new_date must be YYYY-MM-DD")
        try:
            date.fromisoformat(v)
        except ValueError:
            raise ValueError(f"new_date is not a calendar date: {v}")
        return v

    @field_validator("new_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not _TIME_RE.match(v):
            raise ValueError("new_time must be HH:MM or HH:MM:SS")
        time_format = "%H:%M:%S" if v.count(":") == 2 else "%H:%M"
        try:
            parsed = datetime.strptime(v, time_format)
        except ValueError:
            raise ValueError(f"new_time is not a valid time: {v}")
        return parsed.strftime("%H:%M:%S")

    @property
    def new_time_with_seconds(self) -> str:
        return self.new_time


class MeetingResult(BaseModel):
    """What a meeting provider produced for a booking"""
    join_url: Optional[str] = None
    event_uri: Optional[str] = None  # Provider-side reference, if any
    meeting_id: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)
