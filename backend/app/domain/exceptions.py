"""
Domain Exceptions
Error taxonomy shared by the dispatcher, reconciler and reassignment flows.

Every error carries the HTTP status the API layer should answer with, so
endpoints can map them without knowing which service raised them.
"""
from typing import Optional


class OrchestratorError(Exception):
    """Base class for all voice-campaign orchestration errors."""
    http_status: int = 500

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


# ============================================================================
# INPUT VALIDATION (400)
# ============================================================================

class ValidationError(OrchestratorError):
    """Missing or malformed request fields."""
    http_status = 400


class InvalidEventError(ValidationError):
    """Webhook payload could not be decoded into a known event shape."""


class CampaignConfigurationError(OrchestratorError):
    """Organization is missing call-center credentials or agent config."""
    http_status = 400

    def __init__(
        self,
        message: str = "Bolna integration not configured. Add it in Settings > Integrations.",
        details: Optional[str] = None
    ):
        super().__init__(message, details)


class NoPendingCallsError(OrchestratorError):
    """Campaign has no call records left to dispatch."""
    http_status = 400

    def __init__(self, message: str = "No pending calls found", details: Optional[str] = None):
        super().__init__(message, details)


# ============================================================================
# NOT FOUND (404)
# ============================================================================

class NotFoundError(OrchestratorError):
    http_status = 404


class CampaignNotFoundError(NotFoundError):
    def __init__(self, campaign_id: str):
        super().__init__("Campaign not found", details=campaign_id)


class CallNotFoundError(NotFoundError):
    def __init__(self, call_id: str):
        super().__init__("Call not found", details=call_id)


class AppointmentNotFoundError(NotFoundError):
    def __init__(self, appointment_id: str, message: str = "Appointment not found"):
        super().__init__(message, details=appointment_id)


class CloserNotFoundError(NotFoundError):
    def __init__(self, closer_id: str):
        super().__init__("New closer not found", details=closer_id)


# ============================================================================
# PERSISTENCE / UPSTREAM
# ============================================================================

class PersistenceError(OrchestratorError):
    """A datastore write on a hard path failed."""
    http_status = 500


class CallCenterProviderError(OrchestratorError):
    """The call-center batch API rejected or failed a hard-path request."""
    http_status = 502


class MeetingProviderError(OrchestratorError):
    """
    A meeting provider (Zoom / Calendly) failed.

    Always handled as a soft failure by the reassignment flow.
    """
    http_status = 502


class RequestTimeoutError(OrchestratorError):
    """Outbound request exceeded its time budget."""
    http_status = 504


class UpstreamHTTPError(OrchestratorError):
    """Outbound request returned a non-2xx response."""
    http_status = 502

    def __init__(self, status_code: int, url: str, body: str = ""):
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"HTTP {status_code} from {url}", details=body or None)
