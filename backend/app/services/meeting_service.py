"""
Meeting Service
Resolves which meeting provider a closer is bound to and builds it from
the organization's stored credentials.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from app.core.config import ConfigManager, get_config_manager
from app.domain.exceptions import MeetingProviderError
from app.domain.interfaces.appointment_repository import IntegrationRepository
from app.domain.models.integration import CloserBinding, Integration, MeetingProviderKind
from app.infrastructure.connectors.meeting import (
    CalendlyMeetingProvider,
    MeetingProvider,
    ZoomMeetingProvider,
)
from app.infrastructure.http.resilient_client import ResilientHttpClient, get_http_client

logger = logging.getLogger(__name__)


@dataclass
class ResolvedMeetingProvider:
    kind: MeetingProviderKind
    provider: MeetingProvider
    integration_id: str


class MeetingService:
    """
    Closer -> meeting provider resolution.

    A closer is bound through closer_integrations to one
    organization_integrations row; its integration_type prefix picks the
    provider family.
    """

    def __init__(
        self,
        integrations: IntegrationRepository,
        http_client: Optional[ResilientHttpClient] = None,
        config: Optional[ConfigManager] = None
    ):
        self.integrations = integrations
        self._http = http_client or get_http_client()
        self._config = config or get_config_manager()

    def get_closer_binding(self, closer_id: str, organization_id: Optional[str]) -> CloserBinding:
        return self.integrations.get_closer_binding(closer_id, organization_id)

    def get_closer_provider(
        self,
        closer_id: str,
        organization_id: Optional[str] = None
    ) -> Optional[ResolvedMeetingProvider]:
        """
        Build the meeting provider a closer is bound to.

        Returns:
            None when the closer has no meeting integration

        Raises:
            MeetingProviderError: If the bound integration lacks credentials
        """
        binding = self.get_closer_binding(closer_id, organization_id)
        kind = binding.provider
        if kind is None:
            logger.info(f"Closer {closer_id[:8]}... has no meeting provider binding")
            return None

        provider = self.build_provider(kind, binding.integration)
        return ResolvedMeetingProvider(
            kind=kind,
            provider=provider,
            integration_id=binding.integration.id
        )

    def build_provider(self, kind: MeetingProviderKind, integration: Integration) -> MeetingProvider:
        if kind == MeetingProviderKind.ZOOM:
            return ZoomMeetingProvider(
                account_id=integration.secret("account_id") or "",
                client_id=integration.secret("client_id") or "",
                client_secret=integration.secret("client_secret") or "",
                http_client=self._http,
                config=self._config.get("providers.zoom", {})
            )
        if kind == MeetingProviderKind.CALENDLY:
            return CalendlyMeetingProvider(
                api_token=integration.secret("api_token") or "",
                http_client=self._http,
                config=self._config.get("providers.calendly", {}),
                default_country_code=str(self._config.get("campaigns.default_country_code", "91"))
            )
        raise MeetingProviderError(f"Unsupported meeting provider: {kind}")
