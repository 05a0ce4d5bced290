"""
Zoom Meeting Provider
Server-to-Server OAuth app creating scheduled meetings on the host account.
"""
import base64
import logging
from typing import Any, Dict, Optional

import httpx

from app.domain.exceptions import MeetingProviderError, RequestTimeoutError
from app.domain.models.appointment import MeetingResult
from app.domain.models.lead import CloserProfile, Lead
from app.infrastructure.http.resilient_client import ResilientHttpClient

from .base import MeetingProvider

logger = logging.getLogger(__name__)

DEFAULT_OAUTH_URL = "https://zoom.us/oauth/token"
DEFAULT_API_BASE_URL = "https://api.zoom.us/v2"


class ZoomMeetingProvider(MeetingProvider):
    """
    Zoom provider using the account_credentials grant.

    A fresh token is fetched per booking; reassignment volume is low and
    tokens are short-lived.
    """

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        http_client: ResilientHttpClient,
        config: Optional[Dict[str, Any]] = None
    ):
        if not (account_id and client_id and client_secret):
            raise MeetingProviderError("Missing Zoom credentials")
        config = config or {}
        self._account_id = account_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http_client
        self._oauth_url = config.get("oauth_url", DEFAULT_OAUTH_URL)
        self._api_base_url = str(config.get("api_base_url", DEFAULT_API_BASE_URL)).rstrip("/")
        self._timeout_ms = int(config.get("timeout_ms", 10000))
        self._duration = int(config.get("duration_minutes", 90))
        self._timezone = config.get("timezone", "Asia/Kolkata")

    @property
    def provider_name(self) -> str:
        return "zoom"

    async def _request(self, method: str, url: str, action: str, **kwargs) -> httpx.Response:
        try:
            return await self._http.call_with_timeout(method, url, self._timeout_ms, **kwargs)
        except RequestTimeoutError as e:
            raise MeetingProviderError(f"zoom {action} failed: {e.message}") from e
        except httpx.HTTPError as e:
            raise MeetingProviderError(f"zoom {action} failed: {e}") from e

    async def get_access_token(self) -> str:
        credentials = f"{self._client_id}:{self._client_secret}".encode("utf-8")
        basic = base64.b64encode(credentials).decode("ascii")

        response = await self._request(
            "POST",
            self._oauth_url,
            "token request",
            headers={
                "Authorization": f"Basic {basic}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            data={"grant_type": "account_credentials", "account_id": self._account_id}
        )
        self._raise_for_status(response, "token request")

        token = response.json().get("access_token")
        if not token:
            raise MeetingProviderError("zoom token request returned no access_token")
        logger.info("Zoom access token obtained")
        return token

    async def provision_meeting(
        self,
        lead: Lead,
        closer: CloserProfile,
        scheduled_date: str,
        scheduled_time: str
    ) -> MeetingResult:
        access_token = await self.get_access_token()

        hours, minutes = scheduled_time.split(":")[:2]
        start_time = f"{scheduled_date}T{int(hours):02d}:{int(minutes):02d}:00"
        topic = f"1:1 Call with {lead.contact_name or 'Lead'}"

        payload = {
            "topic": topic,
            "type": 2,  # Scheduled meeting
            "start_time": start_time,
            "duration": self._duration,
            "timezone": self._timezone,
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": False,
                "mute_upon_entry": False,
                "watermark": False,
                "use_pmi": False,
                "approval_type": 2,
                "audio": "both",
                "auto_recording": "cloud",
            },
        }

        logger.info(f"Creating Zoom meeting '{topic}' at {start_time} {self._timezone}")
        response = await self._request(
            "POST",
            f"{self._api_base_url}/users/me/meetings",
            "meeting creation",
            headers={"Authorization": f"Bearer {access_token}"},
            json=payload
        )
        self._raise_for_status(response, "meeting creation")

        data = response.json()
        meeting_id = str(data["id"]) if data.get("id") is not None else None
        logger.info(f"Zoom meeting created: {meeting_id}")
        return MeetingResult(
            join_url=data.get("join_url"),
            meeting_id=meeting_id,
            raw=data
        )

    async def cancel_meeting(self, reference: str, reason: Optional[str] = None) -> bool:
        access_token = await self.get_access_token()
        response = await self._request(
            "DELETE",
            f"{self._api_base_url}/meetings/{reference}",
            "meeting cancellation",
            headers={"Authorization": f"Bearer {access_token}"}
        )
        self._raise_for_status(response, "meeting cancellation")
        logger.info(f"Zoom meeting {reference} deleted")
        return True
