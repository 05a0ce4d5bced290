"""
Bolna Batch Client
CallCenterProvider implementation over the Bolna batch API.

Endpoints used:
- POST /batches                  multipart: agent_id, file (CSV), from_phone_number
- POST /batches/{id}/schedule    multipart: scheduled_at, bypass_call_guardrails
- POST /batches/{id}/stop
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from app.domain.exceptions import CallCenterProviderError, RequestTimeoutError, UpstreamHTTPError
from app.domain.interfaces.call_center_provider import CallCenterProvider
from app.infrastructure.http.resilient_client import ResilientHttpClient

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.bolna.ai"


def format_schedule_time(when: datetime) -> str:
    """Render as YYYY-MM-DDTHH:MM:SS+00:00 in UTC, the only form the API accepts."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S+00:00")


class BolnaBatchClient(CallCenterProvider):
    """
    Bolna batch client.

    Batch creation and stop are idempotent enough to retry with backoff.
    Scheduling is not: a duplicate schedule starts the batch twice, so it
    only gets the single connection-reset retry.
    """

    def __init__(
        self,
        api_key: str,
        http_client: ResilientHttpClient,
        config: Optional[Dict[str, Any]] = None
    ):
        if not api_key:
            raise ValueError("api_key is required for Bolna")
        config = config or {}
        self._api_key = api_key
        self._http = http_client
        self._base_url = str(config.get("base_url", DEFAULT_BASE_URL)).rstrip("/")
        self._batch_timeout_ms = int(config.get("batch_timeout_ms", 15000))
        self._batch_max_retries = int(config.get("batch_max_retries", 2))
        self._schedule_timeout_ms = int(config.get("schedule_timeout_ms", 15000))
        self._stop_timeout_ms = int(config.get("stop_timeout_ms", 15000))
        self._stop_max_retries = int(config.get("stop_max_retries", 2))

    @property
    def name(self) -> str:
        return "bolna"

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def create_batch(
        self,
        agent_id: str,
        manifest_csv: str,
        from_phone_number: Optional[str] = None
    ) -> str:
        data = {"agent_id": agent_id}
        if from_phone_number:
            data["from_phone_number"] = from_phone_number
        files = {"file": ("contacts.csv", manifest_csv.encode("utf-8"), "text/csv")}

        url = f"{self._base_url}/batches"
        try:
            response = await self._http.call_with_retry(
                "POST",
                url,
                max_retries=self._batch_max_retries,
                timeout_ms=self._batch_timeout_ms,
                headers=self._headers,
                data=data,
                files=files
            )
        except (UpstreamHTTPError, RequestTimeoutError) as e:
            raise CallCenterProviderError(f"Bolna batch creation failed: {e.message}", details=e.details) from e
        except httpx.HTTPError as e:
            raise CallCenterProviderError(f"Bolna batch creation failed: {e}") from e

        if not response.is_success:
            raise CallCenterProviderError(
                f"Bolna batch creation failed: HTTP {response.status_code}",
                details=response.text
            )

        try:
            body = response.json()
        except ValueError as e:
            raise CallCenterProviderError(
                "Bolna batch creation returned a non-JSON body", details=response.text
            ) from e
        if not isinstance(body, dict):
            raise CallCenterProviderError("No batch_id returned from Bolna", details=response.text)

        batch_id = body.get("batch_id") or body.get("id")
        if not batch_id:
            raise CallCenterProviderError("No batch_id returned from Bolna", details=response.text)

        logger.info(f"Bolna batch created: {batch_id}")
        return str(batch_id)

    async def schedule_batch(self, batch_id: str, scheduled_at: datetime) -> None:
        url = f"{self._base_url}/batches/{batch_id}/schedule"
        scheduled_for = format_schedule_time(scheduled_at)
        # Multipart form fields, no file part
        form = {
            "scheduled_at": (None, scheduled_for),
            "bypass_call_guardrails": (None, "true"),
        }
        try:
            response = await self._http.call_with_connection_reset_retry(
                "POST",
                url,
                timeout_ms=self._schedule_timeout_ms,
                headers=self._headers,
                files=form
            )
        except RequestTimeoutError as e:
            raise CallCenterProviderError(f"Bolna schedule failed: {e.message}") from e
        except httpx.HTTPError as e:
            raise CallCenterProviderError(f"Bolna schedule failed: {e}") from e

        if not response.is_success:
            raise CallCenterProviderError(
                f"Bolna schedule failed: HTTP {response.status_code}",
                details=response.text
            )
        logger.info(f"Bolna batch {batch_id} scheduled for {scheduled_for}")

    async def stop_batch(self, batch_id: str) -> None:
        url = f"{self._base_url}/batches/{batch_id}/stop"
        try:
            response = await self._http.call_with_retry(
                "POST",
                url,
                max_retries=self._stop_max_retries,
                timeout_ms=self._stop_timeout_ms,
                headers=self._headers
            )
        except (UpstreamHTTPError, RequestTimeoutError) as e:
            raise CallCenterProviderError(f"Bolna stop failed: {e.message}", details=e.details) from e
        except httpx.HTTPError as e:
            raise CallCenterProviderError(f"Bolna stop failed: {e}") from e

        if not response.is_success:
            raise CallCenterProviderError(
                f"Bolna stop failed: HTTP {response.status_code}",
                details=response.text
            )
        logger.info(f"Bolna batch {batch_id} stopped")
