"""
WhatsApp Notification Service
Credential resolution and best-effort template sends for campaign flows.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from app.core.config import ConfigManager, Settings, get_config_manager, get_settings
from app.domain.interfaces.appointment_repository import IntegrationRepository
from app.domain.models.integration import IntegrationType
from app.infrastructure.connectors.whatsapp import (
    AiSensyWhatsAppProvider,
    RetryPolicy,
    TemplateMedia,
    WhatsAppProvider,
    WhatsAppResult,
)
from app.infrastructure.http.resilient_client import ResilientHttpClient, get_http_client

logger = logging.getLogger(__name__)


@dataclass
class MessagingCredentials:
    api_key: str
    source: Optional[str] = None
    origin: str = "organization"  # "organization" or "environment"


def format_booking_date(value: str) -> str:
    """'2025-03-15' -> '15 March'"""
    parsed = date.fromisoformat(value)
    return f"{parsed.day} {parsed.strftime('%B')}"


def format_booking_time(value: str) -> str:
    """'19:30' or '19:30:00' -> '7:30 PM IST'"""
    hours, minutes = value.split(":")[:2]
    hour = int(hours)
    suffix = "PM" if hour >= 12 else "AM"
    hour12 = hour % 12 or 12
    return f"{hour12}:{minutes} {suffix} IST"


class WhatsAppNotificationService:
    """
    Sends campaign and booking notifications over WhatsApp.

    Credentials come from the organization's active AiSensy integration,
    falling back to the process-wide AISENSY_API_KEY. Every send is
    best-effort: errors are logged and reported, never raised.
    """

    def __init__(
        self,
        integrations: IntegrationRepository,
        http_client: Optional[ResilientHttpClient] = None,
        settings: Optional[Settings] = None,
        config: Optional[ConfigManager] = None
    ):
        self.integrations = integrations
        self._http = http_client or get_http_client()
        self._settings = settings or get_settings()
        self._config = config or get_config_manager()

    def resolve_credentials(self, organization_id: Optional[str]) -> Optional[MessagingCredentials]:
        """Org integration first, then environment defaults."""
        if organization_id:
            integration = self.integrations.get_active_integration(
                organization_id, IntegrationType.AISENSY.value
            )
            if integration:
                api_key = integration.secret("api_key")
                if api_key:
                    return MessagingCredentials(
                        api_key=api_key,
                        source=integration.secret("source") or self._settings.aisensy_source,
                        origin="organization"
                    )

        if self._settings.aisensy_api_key:
            return MessagingCredentials(
                api_key=self._settings.aisensy_api_key,
                source=self._settings.aisensy_source,
                origin="environment"
            )
        return None

    def _provider(self, credentials: MessagingCredentials) -> WhatsAppProvider:
        return AiSensyWhatsAppProvider(
            api_key=credentials.api_key,
            source=credentials.source,
            http_client=self._http,
            config=self._config.get("providers.aisensy", {})
        )

    async def send_group_link(
        self,
        organization_id: Optional[str],
        to_number: str,
        template_name: str,
        group_link: str
    ) -> WhatsAppResult:
        """Send the workshop group invite template with the link as its only param."""
        credentials = self.resolve_credentials(organization_id)
        if credentials is None:
            logger.warning("No AiSensy credentials available, group link not sent")
            return WhatsAppResult(success=False, provider="aisensy", error="Messaging not configured")

        return await self._provider(credentials).send_template(
            to_number=to_number,
            template_name=template_name,
            template_params=[group_link],
            retry_policy=RetryPolicy.BACKOFF,
            metadata={"kind": "whatsapp_group_link"}
        )

    async def send_booking_confirmation(
        self,
        organization_id: Optional[str],
        to_number: str,
        contact_name: str,
        scheduled_date: str,
        scheduled_time: str,
        meeting_link: Optional[str] = None
    ) -> WhatsAppResult:
        """
        Send the 1:1 booking confirmation template.

        Params: [name, role label, "15 March", "7:30 PM IST", link or
        placeholder, support number].
        """
        credentials = self.resolve_credentials(organization_id)
        if credentials is None:
            return WhatsAppResult(success=False, provider="aisensy", error="Messaging not configured")

        booking = self._config.get("notifications.booking_confirmation", {}) or {}

        try:
            template_params = [
                contact_name or "",
                booking.get("role_label", "Our Expert"),
                format_booking_date(scheduled_date),
                format_booking_time(scheduled_time),
                meeting_link or booking.get("link_placeholder", ""),
                booking.get("support_number", "") or "",
            ]
        except ValueError as e:
            logger.error(f"Cannot format booking slot {scheduled_date} {scheduled_time}: {e}")
            return WhatsAppResult(success=False, provider="aisensy", error=str(e))

        media = None
        if booking.get("media_url"):
            media = TemplateMedia(
                url=booking["media_url"],
                filename=booking.get("media_filename", "booking.mp4")
            )

        return await self._provider(credentials).send_template(
            to_number=to_number,
            template_name=booking.get("template", ""),
            template_params=template_params,
            user_name=booking.get("user_name"),
            media=media,
            retry_policy=RetryPolicy.CONNECTION_RESET,
            metadata={"kind": "booking_confirmation"}
        )
