"""
Call-Center Webhook Event Schemas
Decodes the two payload shapes the call-center provider posts to one endpoint:

- Tool calls, fired by the live agent mid-conversation (carry "tool_name")
- Post-call reports, sent once the call ends (everything else)

Based on the Pydantic v2 callable discriminator pattern.
"""
from enum import Enum
from typing import Annotated, Any, Dict, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from app.domain.exceptions import InvalidEventError
from app.domain.models.call import CallOutcome, CallStatus


class ToolName(str, Enum):
    """Tools the voice agent is allowed to invoke"""
    MARK_ATTENDANCE = "mark_attendance"
    RESCHEDULE_LEAD = "reschedule_lead"
    SEND_WHATSAPP_GROUP_LINK = "send_whatsapp_group_link"


UNKNOWN_RESCHEDULE_DAY = "Unknown"


class ToolCallEvent(BaseModel):
    """Tool call correlated to our CallRecord through call_id"""
    model_config = ConfigDict(extra="ignore")

    tool_name: ToolName
    call_id: str = Field(..., min_length=1)
    outcome: Optional[str] = None
    reschedule_day: str = UNKNOWN_RESCHEDULE_DAY

    @model_validator(mode="before")
    @classmethod
    def resolve_reschedule_day(cls, data: Any) -> Any:
        # The agent has been seen to send the day under several names
        if not isinstance(data, dict):
            return data
        arguments = data.get("arguments")
        if not isinstance(arguments, dict):
            arguments = {}
        day = (
            data.get("reschedule_day")
            or data.get("day")
            or data.get("preferred_day")
            or arguments.get("reschedule_day")
            or arguments.get("day")
        )
        return {**data, "reschedule_day": str(day) if day else UNKNOWN_RESCHEDULE_DAY}

    @field_validator("call_id", mode="before")
    @classmethod
    def coerce_call_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @property
    def attendance_outcome(self) -> str:
        return self.outcome or CallOutcome.CONFIRMED.value


class TelephonyData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    to_number: Optional[str] = None
    duration: Optional[float] = None
    recording_url: Optional[str] = None


class PostCallEvent(BaseModel):
    """Execution report sent after a call leaves the provider's queue"""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    execution_id: Optional[str] = None
    status: Optional[str] = None
    telephony_data: Optional[TelephonyData] = None
    conversation_time: Optional[float] = None
    total_cost: Optional[float] = None
    transcript: Optional[str] = None
    extracted_data: Optional[Any] = None
    batch_id: Optional[str] = None

    @field_validator("id", "execution_id", "batch_id", mode="before")
    @classmethod
    def coerce_refs(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @property
    def execution_ref(self) -> Optional[str]:
        return self.id or self.execution_id

    @property
    def mapped_status(self) -> CallStatus:
        return CallStatus.from_provider(self.status or CallStatus.COMPLETED.value)

    @property
    def to_number(self) -> str:
        return (self.telephony_data.to_number if self.telephony_data else None) or ""

    @property
    def recording_url(self) -> Optional[str]:
        return self.telephony_data.recording_url if self.telephony_data else None

    @property
    def duration_seconds(self) -> float:
        telephony_duration = self.telephony_data.duration if self.telephony_data else None
        return telephony_duration or self.conversation_time or 0.0

    @property
    def cost(self) -> float:
        return self.total_cost or 0.0

    @property
    def attendance(self) -> Optional[str]:
        if isinstance(self.extracted_data, dict):
            value = self.extracted_data.get("attendance")
            return str(value) if value else None
        return None


def _event_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "tool_call" if value.get("tool_name") else "post_call"
    return "tool_call" if getattr(value, "tool_name", None) else "post_call"


ProviderEvent = Annotated[
    Union[
        Annotated[ToolCallEvent, Tag("tool_call")],
        Annotated[PostCallEvent, Tag("post_call")],
    ],
    Discriminator(_event_kind),
]

_event_adapter: TypeAdapter = TypeAdapter(ProviderEvent)


def parse_provider_event(payload: Any) -> Union[ToolCallEvent, PostCallEvent]:
    """
    Decode a raw webhook body into a typed event.

    Raises:
        InvalidEventError: If the payload is not an object or fails validation
    """
    if not isinstance(payload, dict):
        raise InvalidEventError("Webhook payload must be a JSON object")

    try:
        return _event_adapter.validate_python(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"][1:])
        if field == "call_id":
            raise InvalidEventError("call_id required", details=str(e)) from e
        raise InvalidEventError(
            f"Invalid webhook payload: {field or 'body'}: {first['msg']}",
            details=str(e)
        ) from e
