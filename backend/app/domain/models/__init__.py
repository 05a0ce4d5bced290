"""Domain models"""

from .campaign import (
    CampaignStatus,
    CampaignCounter,
    Campaign,
)

from .call import (
    CallStatus,
    CallOutcome,
    CallRecord,
    CallDetails,
    TerminalTransition,
    TERMINAL_STATUSES,
    ACTIVE_STATUSES,
)

from .lead import (
    Lead,
    CloserProfile,
)

from .appointment import (
    Appointment,
    ReassignmentRequest,
    MeetingResult,
)

from .integration import (
    IntegrationType,
    MeetingProviderKind,
    Integration,
    CloserBinding,
)

# Webhook events
from .provider_events import (
    ToolName,
    ToolCallEvent,
    PostCallEvent,
    parse_provider_event,
)

__all__ = [
    # Campaigns
    "CampaignStatus",
    "CampaignCounter",
    "Campaign",
    # Calls
    "CallStatus",
    "CallOutcome",
    "CallRecord",
    "CallDetails",
    "TerminalTransition",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUSES",
    # Leads and closers
    "Lead",
    "CloserProfile",
    # Appointments
    "Appointment",
    "ReassignmentRequest",
    "MeetingResult",
    # Integrations
    "IntegrationType",
    "MeetingProviderKind",
    "Integration",
    "CloserBinding",
    # Webhook events
    "ToolName",
    "ToolCallEvent",
    "PostCallEvent",
    "parse_provider_event",
]
