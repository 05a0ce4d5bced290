"""
Calendly Meeting Provider
Books an invitee directly on one of the closer's event types.

Flow:
1. GET /users/me                       -> user URI
2. GET /event_types?user=&active=true  -> choose an event type
3. GET <event type URI>                -> custom questions
4. POST /invitees                      -> scheduled event + Zoom join URL
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import pytz

from app.domain.exceptions import MeetingProviderError, RequestTimeoutError
from app.domain.models.appointment import MeetingResult
from app.domain.models.lead import CloserProfile, Lead
from app.infrastructure.http.resilient_client import ResilientHttpClient

from .base import MeetingProvider

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.calendly.com"
DEFAULT_CANCEL_REASON = "Reassigned to another closer via CRM"
INVITEE_TIMEZONE = "Asia/Kolkata"
IST = pytz.timezone(INVITEE_TIMEZONE)

PHONE_QUESTION_HINTS = ("phone", "mobile", "number")


def ist_to_utc_iso(scheduled_date: str, scheduled_time: str) -> str:
    """Convert an IST wall-clock slot to a UTC ISO timestamp."""
    hours, minutes = scheduled_time.split(":")[:2]
    naive = datetime.strptime(f"{scheduled_date} {int(hours):02d}:{minutes}", "%Y-%m-%d %H:%M")
    return IST.localize(naive).astimezone(pytz.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def phone_with_country_code(phone: Optional[str], country: Optional[str], default_code: str = "91") -> str:
    """Digits only, prefixed with the country code unless already present."""
    digits = re.sub(r"\D", "", phone or "")
    code = re.sub(r"\D", "", country or "") or default_code
    if not digits or digits.startswith(code):
        return digits
    return f"{code}{digits}"


def select_event_type(event_types: List[Dict[str, Any]], closer_name: str) -> Optional[Dict[str, Any]]:
    """
    Choose an event type: a "direct" booking type first, then one named after
    the closer (full name or surname), then the first active type.
    """
    if not event_types:
        return None

    for event_type in event_types:
        if "direct" in (event_type.get("name") or "").lower():
            return event_type

    name = (closer_name or "").strip().lower()
    if name:
        surname = name.split()[-1]
        for event_type in event_types:
            type_name = (event_type.get("name") or "").lower()
            if name in type_name or surname in type_name:
                return event_type

    return event_types[0]


def build_questions_and_answers(
    questions: List[Dict[str, Any]],
    phone_number: str
) -> List[Dict[str, Any]]:
    """Answer phone questions with the lead number, single selects with their first choice."""
    answers = []
    for question in questions:
        name = question.get("name") or ""
        choices = question.get("answer_choices") or []
        if any(hint in name.lower() for hint in PHONE_QUESTION_HINTS):
            answer = phone_number
        elif question.get("type") == "single_select" and choices:
            answer = choices[0]
        else:
            answer = "null"
        answers.append({
            "question": name,
            "answer": answer,
            "position": question.get("position", 0),
        })
    return answers


class CalendlyMeetingProvider(MeetingProvider):
    """Calendly provider authenticated with a personal access token"""

    def __init__(
        self,
        api_token: str,
        http_client: ResilientHttpClient,
        config: Optional[Dict[str, Any]] = None,
        default_country_code: str = "91"
    ):
        if not api_token:
            raise MeetingProviderError("Missing Calendly API token")
        config = config or {}
        self._token = api_token
        self._http = http_client
        self._api_base_url = str(config.get("api_base_url", DEFAULT_API_BASE_URL)).rstrip("/")
        self._timeout_ms = int(config.get("timeout_ms", 10000))
        self._cancel_reason = config.get("cancel_reason", DEFAULT_CANCEL_REASON)
        self._default_country_code = default_country_code

    @property
    def provider_name(self) -> str:
        return "calendly"

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(self, method: str, url: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.call_with_timeout(
                method, url, self._timeout_ms, headers=self._headers, **kwargs
            )
        except RequestTimeoutError as e:
            raise MeetingProviderError(f"calendly {action} failed: {e.message}") from e
        except httpx.HTTPError as e:
            raise MeetingProviderError(f"calendly {action} failed: {e}") from e
        self._raise_for_status(response, action)
        return response

    async def get_user_uri(self) -> str:
        response = await self._request("GET", f"{self._api_base_url}/users/me", "user lookup")
        uri = (response.json().get("resource") or {}).get("uri")
        if not uri:
            raise MeetingProviderError("calendly user lookup returned no URI")
        return uri

    async def list_event_types(self, user_uri: str) -> List[Dict[str, Any]]:
        response = await self._request(
            "GET",
            f"{self._api_base_url}/event_types",
            "event type listing",
            params={"user": user_uri, "active": "true"}
        )
        return response.json().get("collection") or []

    async def get_custom_questions(self, event_type_uri: str) -> List[Dict[str, Any]]:
        response = await self._request("GET", event_type_uri, "event type lookup")
        return (response.json().get("resource") or {}).get("custom_questions") or []

    async def provision_meeting(
        self,
        lead: Lead,
        closer: CloserProfile,
        scheduled_date: str,
        scheduled_time: str
    ) -> MeetingResult:
        user_uri = await self.get_user_uri()
        event_types = await self.list_event_types(user_uri)

        event_type = select_event_type(event_types, closer.full_name or "")
        if not event_type or not event_type.get("uri"):
            raise MeetingProviderError("No active Calendly event types found")
        logger.info(f"Selected Calendly event type: {event_type.get('name')}")

        questions = await self.get_custom_questions(event_type["uri"])
        phone = phone_with_country_code(lead.phone, lead.country, self._default_country_code)

        payload = {
            "event_type": event_type["uri"],
            "start_time": ist_to_utc_iso(scheduled_date, scheduled_time),
            "invitee": {
                "name": lead.contact_name,
                "email": lead.email,
                "timezone": INVITEE_TIMEZONE,
            },
            "location": {"kind": "zoom_conference"},
            "questions_and_answers": build_questions_and_answers(questions, phone),
        }

        response = await self._request(
            "POST", f"{self._api_base_url}/invitees", "invitee creation", json=payload
        )
        resource = response.json().get("resource") or {}
        location = (resource.get("scheduled_event") or {}).get("location") or {}

        result = MeetingResult(
            join_url=location.get("join_url"),
            event_uri=resource.get("event"),
            raw=resource
        )
        logger.info(f"Calendly invitee booked: event={result.event_uri}")
        return result

    async def cancel_meeting(self, reference: str, reason: Optional[str] = None) -> bool:
        event_uuid = reference.rstrip("/").split("/")[-1]
        if not event_uuid:
            return False
        await self._request(
            "POST",
            f"{self._api_base_url}/scheduled_events/{event_uuid}/cancellation",
            "event cancellation",
            json={"reason": reason or self._cancel_reason}
        )
        logger.info(f"Cancelled Calendly event {event_uuid}")
        return True
