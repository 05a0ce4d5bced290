"""
Tests for WhatsApp messaging
AiSensy provider payloads and the notification service's credential resolution
"""
import json

import httpx
import pytest

from app.core.config import Settings
from app.domain.models.integration import Integration
from app.infrastructure.connectors.whatsapp import (
    AiSensyWhatsAppProvider,
    RetryPolicy,
    TemplateMedia,
)
from app.infrastructure.http.resilient_client import ResilientHttpClient
from app.services.whatsapp_service import (
    WhatsAppNotificationService,
    format_booking_date,
    format_booking_time,
)


class Recorder:
    """MockTransport handler that records JSON bodies and replays responses."""

    def __init__(self, *responses):
        self.bodies = []
        self._responses = list(responses) or [httpx.Response(200, json={"submitted_message_id": "m-1"})]

    def __call__(self, request):
        self.bodies.append(json.loads(request.content))
        if len(self._responses) > 1:
            return self._responses.pop(0)
        return self._responses[0]


def http_client(handler):
    async def no_sleep(seconds):
        return None
    return ResilientHttpClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), sleep=no_sleep)


class TestFormatting:

    def test_booking_date(self):
        assert format_booking_date("2025-03-15") == "15 March"
        assert format_booking_date("2025-12-01") == "1 December"

    def test_booking_time(self):
        assert format_booking_time("19:30") == "7:30 PM IST"
        assert format_booking_time("00:05:00") == "12:05 AM IST"
        assert format_booking_time("12:00") == "12:00 PM IST"
        assert format_booking_time("09:15:00") == "9:15 AM IST"


class TestAiSensyProvider:

    @pytest.mark.asyncio
    async def test_payload_shape(self):
        recorder = Recorder()
        provider = AiSensyWhatsAppProvider("api-key", http_client(recorder), source="crm")

        result = await provider.send_template(
            to_number="+919876543210",
            template_name="booking",
            template_params=["Asha", "Our Expert"],
            user_name="Expert Call",
            media=TemplateMedia(url="https://cdn/video.mp4", filename="booking.mp4"),
        )

        assert result.success is True
        assert result.message_id == "m-1"
        assert recorder.bodies[0] == {
            "apiKey": "api-key",
            "campaignName": "booking",
            "destination": "919876543210",
            "templateParams": ["Asha", "Our Expert"],
            "userName": "Expert Call",
            "source": "crm",
            "media": {"url": "https://cdn/video.mp4", "filename": "booking.mp4"},
        }

    @pytest.mark.asyncio
    async def test_optional_fields_omitted(self):
        recorder = Recorder()
        provider = AiSensyWhatsAppProvider("api-key", http_client(recorder))

        await provider.send_template("919876543210", "group_invite", ["https://chat"])

        assert set(recorder.bodies[0]) == {"apiKey", "campaignName", "destination", "templateParams"}

    @pytest.mark.asyncio
    async def test_backoff_policy_retries_server_errors(self):
        recorder = Recorder(httpx.Response(500), httpx.Response(200, json={}))
        provider = AiSensyWhatsAppProvider("api-key", http_client(recorder))

        result = await provider.send_template("919876543210", "t", [], retry_policy=RetryPolicy.BACKOFF)

        assert result.success is True
        assert len(recorder.bodies) == 2

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self):
        recorder = Recorder(httpx.Response(400, text="Template not found"))
        provider = AiSensyWhatsAppProvider("api-key", http_client(recorder))

        result = await provider.send_template(
            "919876543210", "t", [], retry_policy=RetryPolicy.CONNECTION_RESET
        )

        assert result.success is False
        assert result.error == "Template not found"

    @pytest.mark.asyncio
    async def test_transport_error_is_reported(self):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        provider = AiSensyWhatsAppProvider("api-key", http_client(handler))

        result = await provider.send_template("919876543210", "t", [], retry_policy=RetryPolicy.CONNECTION_RESET)

        assert result.success is False
        assert "Name or service not known" in result.error

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        provider = AiSensyWhatsAppProvider(None, http_client(Recorder()))

        result = await provider.send_template("919876543210", "t", [])

        assert result.success is False
        assert provider.is_configured() is False


class TestNotificationService:

    def make_service(self, integration_repo, config, handler, **settings):
        return WhatsAppNotificationService(
            integration_repo,
            http_client=http_client(handler),
            settings=Settings(_env_file=None, **settings),
            config=config
        )

    def test_org_credentials_take_precedence(self, integration_repo, config):
        integration_repo.add(Integration(
            id="int-ai", organization_id="org-1", integration_type="aisensy",
            config={"api_key": "org-key", "source": "org-source"},
        ))
        service = self.make_service(integration_repo, config, Recorder(), aisensy_api_key="env-key")

        credentials = service.resolve_credentials("org-1")

        assert credentials.api_key == "org-key"
        assert credentials.source == "org-source"
        assert credentials.origin == "organization"

    def test_env_fallback(self, integration_repo, config):
        service = self.make_service(
            integration_repo, config, Recorder(), aisensy_api_key="env-key", aisensy_source="env-src"
        )

        credentials = service.resolve_credentials("org-1")

        assert credentials.api_key == "env-key"
        assert credentials.origin == "environment"

    def test_no_credentials(self, integration_repo, config):
        service = self.make_service(integration_repo, config, Recorder(), aisensy_api_key=None)

        assert service.resolve_credentials("org-1") is None

    @pytest.mark.asyncio
    async def test_unconfigured_send_reports_error(self, integration_repo, config):
        service = self.make_service(integration_repo, config, Recorder(), aisensy_api_key=None)

        result = await service.send_group_link("org-1", "+919876543210", "group_invite", "https://chat")

        assert result.success is False
        assert result.error == "Messaging not configured"

    @pytest.mark.asyncio
    async def test_group_link_send(self, integration_repo, config):
        recorder = Recorder()
        service = self.make_service(integration_repo, config, recorder, aisensy_api_key="env-key")

        result = await service.send_group_link("org-1", "+919876543210", "group_invite", "https://chat")

        assert result.success is True
        assert recorder.bodies[0]["campaignName"] == "group_invite"
        assert recorder.bodies[0]["templateParams"] == ["https://chat"]

    @pytest.mark.asyncio
    async def test_booking_confirmation_params(self, integration_repo, config):
        recorder = Recorder()
        service = self.make_service(integration_repo, config, recorder, aisensy_api_key="env-key")

        result = await service.send_booking_confirmation(
            organization_id=None,
            to_number="+919876543210",
            contact_name="Asha",
            scheduled_date="2025-03-15",
            scheduled_time="19:30",
            meeting_link=None
        )

        assert result.success is True
        body = recorder.bodies[0]
        assert body["templateParams"][:5] == [
            "Asha",
            "Our Expert",
            "15 March",
            "7:30 PM IST",
            "you will get zoom link 30 minutes before the zoom call",
        ]
        assert len(body["templateParams"]) == 6
