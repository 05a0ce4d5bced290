"""
Integration Domain Models
Organization-scoped provider credentials and closer bindings.
"""
import os
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class IntegrationType(str, Enum):
    """Known integration_type prefixes"""
    BOLNA = "bolna"
    AISENSY = "aisensy"
    ZOOM = "zoom"
    CALENDLY = "calendly"


class MeetingProviderKind(str, Enum):
    """
    Meeting provider families a closer can be bound to.

    ZOOM: OAuth2 client-credentials, meeting created directly.
    CALENDLY: token-authenticated scheduling, invitee booked on an event type.
    """
    ZOOM = "zoom"
    CALENDLY = "calendly"


class Integration(BaseModel):
    """A row in organization_integrations"""
    model_config = ConfigDict(extra="ignore")

    id: str
    organization_id: Optional[str] = None
    integration_type: str
    integration_name: Optional[str] = None
    is_active: bool = True
    config: Dict[str, Any] = Field(default_factory=dict)
    uses_env_secrets: bool = False

    @property
    def reads_env_secrets(self) -> bool:
        return bool(self.uses_env_secrets or self.config.get("uses_env_secrets"))

    def secret(self, key: str) -> Optional[str]:
        """
        Resolve a credential from config.

        With env-secret indirection the config holds the name of an
        environment variable under "<key>_secret" instead of the value.
        """
        if self.reads_env_secrets:
            env_name = self.config.get(f"{key}_secret")
            return os.getenv(env_name) if env_name else None
        value = self.config.get(key)
        return str(value) if value else None

    @property
    def meeting_provider(self) -> Optional[MeetingProviderKind]:
        kind = (self.integration_type or "").lower()
        if kind.startswith(IntegrationType.ZOOM.value):
            return MeetingProviderKind.ZOOM
        if kind.startswith(IntegrationType.CALENDLY.value):
            return MeetingProviderKind.CALENDLY
        return None


class CloserBinding(BaseModel):
    """A closer resolved to its meeting provider integration"""
    closer_id: str
    integration: Optional[Integration] = None

    @property
    def provider(self) -> Optional[MeetingProviderKind]:
        if self.integration is None or not self.integration.is_active:
            return None
        return self.integration.meeting_provider
