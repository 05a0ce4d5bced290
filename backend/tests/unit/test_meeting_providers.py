"""
Tests for meeting providers and closer -> provider resolution
"""
import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from app.domain.exceptions import MeetingProviderError
from app.domain.models.integration import Integration, MeetingProviderKind
from app.domain.models.lead import CloserProfile, Lead
from app.infrastructure.connectors.meeting import CalendlyMeetingProvider, ZoomMeetingProvider
from app.infrastructure.connectors.meeting.calendly import (
    build_questions_and_answers,
    ist_to_utc_iso,
    phone_with_country_code,
    select_event_type,
)
from app.infrastructure.http.resilient_client import ResilientHttpClient
from app.services.meeting_service import MeetingService

LEAD = Lead(id="lead-1", contact_name="Asha Rao", email="asha@example.com", phone="98765 43210", country="+91")
CLOSER = CloserProfile(id="closer-1", full_name="Ravi Kumar", email="ravi@example.com")


def http_client(handler):
    return ResilientHttpClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestCalendlyHelpers:

    def test_ist_to_utc(self):
        assert ist_to_utc_iso("2025-03-15", "19:30") == "2025-03-15T14:00:00.000Z"
        assert ist_to_utc_iso("2025-03-15", "02:00:00") == "2025-03-14T20:30:00.000Z"

    def test_phone_with_country_code(self):
        assert phone_with_country_code("98765 43210", "+91") == "919876543210"
        assert phone_with_country_code("+919876543210", None) == "919876543210"
        assert phone_with_country_code("4155550100", "1") == "14155550100"
        assert phone_with_country_code(None, "91") == ""

    def test_event_type_prefers_direct(self):
        types = [{"name": "Ravi Kumar 30min"}, {"name": "Direct Booking"}]
        assert select_event_type(types, "Ravi Kumar")["name"] == "Direct Booking"

    def test_event_type_by_surname(self):
        types = [{"name": "Intro"}, {"name": "Kumar consult"}]
        assert select_event_type(types, "Ravi Kumar")["name"] == "Kumar consult"

    def test_event_type_falls_back_to_first(self):
        types = [{"name": "Intro"}, {"name": "Other"}]
        assert select_event_type(types, "")["name"] == "Intro"
        assert select_event_type([], "Ravi") is None

    def test_questions_and_answers(self):
        questions = [
            {"name": "Phone Number", "type": "phone_number", "position": 0},
            {"name": "Budget", "type": "single_select", "answer_choices": ["Low", "High"], "position": 1},
            {"name": "Anything else?", "type": "text", "position": 2},
        ]

        answers = build_questions_and_answers(questions, "919876543210")

        assert [a["answer"] for a in answers] == ["919876543210", "Low", "null"]
        assert [a["position"] for a in answers] == [0, 1, 2]


class TestCalendlyProvider:

    @pytest.mark.asyncio
    async def test_provision_books_invitee(self):
        requests = []

        def handler(request):
            requests.append(request)
            path = request.url.path
            if path == "/users/me":
                return httpx.Response(200, json={"resource": {"uri": "https://api.calendly.com/users/U1"}})
            if path == "/event_types":
                return httpx.Response(200, json={"collection": [
                    {"name": "Intro", "uri": "https://api.calendly.com/event_types/E0"},
                    {"name": "Direct 1:1", "uri": "https://api.calendly.com/event_types/E1"},
                ]})
            if path == "/event_types/E1":
                return httpx.Response(200, json={"resource": {"custom_questions": [
                    {"name": "Mobile", "type": "phone_number", "position": 0},
                ]}})
            if path == "/invitees":
                return httpx.Response(201, json={"resource": {
                    "event": "https://api.calendly.com/scheduled_events/EV1",
                    "scheduled_event": {"location": {"join_url": "https://zoom.us/j/111"}},
                }})
            return httpx.Response(404)

        provider = CalendlyMeetingProvider("token", http_client(handler))
        result = await provider.provision_meeting(LEAD, CLOSER, "2025-03-15", "19:30")

        assert result.join_url == "https://zoom.us/j/111"
        assert result.event_uri == "https://api.calendly.com/scheduled_events/EV1"

        listing = requests[1]
        assert listing.url.params["user"] == "https://api.calendly.com/users/U1"
        assert listing.url.params["active"] == "true"

        invitee = json.loads(requests[-1].content)
        assert invitee["event_type"] == "https://api.calendly.com/event_types/E1"
        assert invitee["start_time"] == "2025-03-15T14:00:00.000Z"
        assert invitee["location"] == {"kind": "zoom_conference"}
        assert invitee["invitee"]["email"] == "asha@example.com"
        assert invitee["questions_and_answers"][0]["answer"] == "919876543210"
        assert all(r.headers["Authorization"] == "Bearer token" for r in requests)

    @pytest.mark.asyncio
    async def test_no_event_types(self):
        def handler(request):
            if request.url.path == "/users/me":
                return httpx.Response(200, json={"resource": {"uri": "u"}})
            return httpx.Response(200, json={"collection": []})

        provider = CalendlyMeetingProvider("token", http_client(handler))

        with pytest.raises(MeetingProviderError):
            await provider.provision_meeting(LEAD, CLOSER, "2025-03-15", "19:30")

    @pytest.mark.asyncio
    async def test_invitee_rejection(self):
        def handler(request):
            return httpx.Response(401, text="Unauthenticated")

        provider = CalendlyMeetingProvider("token", http_client(handler))

        with pytest.raises(MeetingProviderError) as exc_info:
            await provider.provision_meeting(LEAD, CLOSER, "2025-03-15", "19:30")
        assert "401" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_cancel_uses_event_uuid(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"resource": {}})

        provider = CalendlyMeetingProvider("token", http_client(handler))
        cancelled = await provider.cancel_meeting("https://api.calendly.com/scheduled_events/EV1")

        assert cancelled is True
        assert seen["path"] == "/scheduled_events/EV1/cancellation"
        assert seen["body"] == {"reason": "Reassigned to another closer via CRM"}

    def test_requires_token(self):
        with pytest.raises(MeetingProviderError):
            CalendlyMeetingProvider("", http_client(lambda r: httpx.Response(200)))


class TestZoomProvider:

    @pytest.mark.asyncio
    async def test_provision_creates_meeting(self):
        requests = []

        def handler(request):
            requests.append(request)
            if request.url.host == "zoom.us":
                return httpx.Response(200, json={"access_token": "zoom-token"})
            return httpx.Response(201, json={"id": 123456, "join_url": "https://zoom.us/j/123456"})

        provider = ZoomMeetingProvider("acct", "cid", "csecret", http_client(handler))
        result = await provider.provision_meeting(LEAD, CLOSER, "2025-03-15", "7:05")

        assert result.join_url == "https://zoom.us/j/123456"
        assert result.meeting_id == "123456"

        token_request = requests[0]
        expected = base64.b64encode(b"cid:csecret").decode()
        assert token_request.headers["Authorization"] == f"Basic {expected}"
        form = parse_qs(token_request.content.decode())
        assert form["grant_type"] == ["account_credentials"]
        assert form["account_id"] == ["acct"]

        meeting_request = requests[1]
        assert str(meeting_request.url) == "https://api.zoom.us/v2/users/me/meetings"
        assert meeting_request.headers["Authorization"] == "Bearer zoom-token"
        body = json.loads(meeting_request.content)
        assert body["topic"] == "1:1 Call with Asha Rao"
        assert body["start_time"] == "2025-03-15T07:05:00"
        assert body["duration"] == 90
        assert body["timezone"] == "Asia/Kolkata"
        assert body["settings"]["approval_type"] == 2
        assert body["settings"]["auto_recording"] == "cloud"

    @pytest.mark.asyncio
    async def test_token_failure(self):
        provider = ZoomMeetingProvider(
            "acct", "cid", "csecret", http_client(lambda r: httpx.Response(400, text="invalid_client"))
        )

        with pytest.raises(MeetingProviderError):
            await provider.provision_meeting(LEAD, CLOSER, "2025-03-15", "19:30")

    @pytest.mark.asyncio
    async def test_cancel_deletes_meeting(self):
        methods = []

        def handler(request):
            methods.append((request.method, request.url.path))
            if request.url.host == "zoom.us":
                return httpx.Response(200, json={"access_token": "t"})
            return httpx.Response(204)

        provider = ZoomMeetingProvider("acct", "cid", "csecret", http_client(handler))

        assert await provider.cancel_meeting("123456") is True
        assert methods[-1] == ("DELETE", "/v2/meetings/123456")

    def test_requires_credentials(self):
        with pytest.raises(MeetingProviderError):
            ZoomMeetingProvider("acct", "", "secret", http_client(lambda r: httpx.Response(200)))


class TestMeetingService:

    def test_unbound_closer_has_no_provider(self, integration_repo, config):
        service = MeetingService(integration_repo, http_client(lambda r: httpx.Response(200)), config)

        assert service.get_closer_provider("closer-1", "org-1") is None

    def test_zoom_binding(self, integration_repo, config):
        integration = integration_repo.add(Integration(
            id="int-zoom",
            organization_id="org-1",
            integration_type="zoom_ravi",
            config={"account_id": "a", "client_id": "c", "client_secret": "s"},
        ))
        integration_repo.bind("closer-1", integration)
        service = MeetingService(integration_repo, http_client(lambda r: httpx.Response(200)), config)

        resolved = service.get_closer_provider("closer-1", "org-1")

        assert resolved.kind == MeetingProviderKind.ZOOM
        assert isinstance(resolved.provider, ZoomMeetingProvider)
        assert resolved.integration_id == "int-zoom"

    def test_calendly_binding_with_env_secrets(self, integration_repo, config, monkeypatch):
        monkeypatch.setenv("CALENDLY_TOKEN_RAVI", "tok")
        integration = integration_repo.add(Integration(
            id="int-cal",
            organization_id="org-1",
            integration_type="calendly",
            uses_env_secrets=True,
            config={"api_token_secret": "CALENDLY_TOKEN_RAVI"},
        ))
        integration_repo.bind("closer-1", integration)
        service = MeetingService(integration_repo, http_client(lambda r: httpx.Response(200)), config)

        resolved = service.get_closer_provider("closer-1", "org-1")

        assert resolved.kind == MeetingProviderKind.CALENDLY
        assert isinstance(resolved.provider, CalendlyMeetingProvider)

    def test_inactive_integration_is_ignored(self, integration_repo, config):
        integration = integration_repo.add(Integration(
            id="int-zoom", organization_id="org-1", integration_type="zoom", is_active=False,
        ))
        integration_repo.bind("closer-1", integration)
        service = MeetingService(integration_repo, http_client(lambda r: httpx.Response(200)), config)

        assert service.get_closer_provider("closer-1", "org-1") is None

    def test_missing_credentials_raise(self, integration_repo, config):
        integration = integration_repo.add(Integration(
            id="int-zoom", organization_id="org-1", integration_type="zoom", config={},
        ))
        integration_repo.bind("closer-1", integration)
        service = MeetingService(integration_repo, http_client(lambda r: httpx.Response(200)), config)

        with pytest.raises(MeetingProviderError):
            service.get_closer_provider("closer-1", "org-1")
