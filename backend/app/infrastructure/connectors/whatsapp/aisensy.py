"""
AiSensy WhatsApp Provider
Template sends through the AiSensy campaign API.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.infrastructure.http.resilient_client import ResilientHttpClient

from .base import RetryPolicy, TemplateMedia, WhatsAppProvider, WhatsAppResult

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://backend.aisensy.com/campaign/t1/api/v2"


class AiSensyWhatsAppProvider(WhatsAppProvider):
    """
    AiSensy provider.

    The API key travels in the JSON body, not a header. "source" is an
    optional account-level tag AiSensy attaches to the contact.
    """

    def __init__(
        self,
        api_key: Optional[str],
        http_client: ResilientHttpClient,
        source: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        config = config or {}
        self._api_key = api_key
        self._source = source
        self._http = http_client
        self._api_url = config.get("api_url", DEFAULT_API_URL)
        self._timeout_ms = int(config.get("timeout_ms", 10000))
        self._max_retries = int(config.get("max_retries", 3))

    @property
    def provider_name(self) -> str:
        return "aisensy"

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def send_template(
        self,
        to_number: str,
        template_name: str,
        template_params: List[str],
        user_name: Optional[str] = None,
        media: Optional[TemplateMedia] = None,
        retry_policy: RetryPolicy = RetryPolicy.BACKOFF,
        metadata: Optional[Dict[str, Any]] = None
    ) -> WhatsAppResult:
        destination = self._normalize_number(to_number)

        if not self.is_configured():
            return WhatsAppResult(
                success=False,
                provider=self.provider_name,
                to_number=destination,
                error="AiSensy API key not configured",
                metadata=metadata
            )

        payload: Dict[str, Any] = {
            "apiKey": self._api_key,
            "campaignName": template_name,
            "destination": destination,
            "templateParams": template_params,
        }
        if user_name:
            payload["userName"] = user_name
        if self._source:
            payload["source"] = self._source
        if media and media.url:
            payload["media"] = {"url": media.url, "filename": media.filename}

        logger.info(f"Sending WhatsApp template '{template_name}' to {destination[:6]}...")

        try:
            if retry_policy == RetryPolicy.CONNECTION_RESET:
                response = await self._http.call_with_connection_reset_retry(
                    "POST", self._api_url, timeout_ms=self._timeout_ms, json=payload
                )
            else:
                response = await self._http.call_with_retry(
                    "POST",
                    self._api_url,
                    max_retries=self._max_retries,
                    timeout_ms=self._timeout_ms,
                    json=payload
                )
        except Exception as e:
            logger.error(f"AiSensy send failed for {destination[:6]}...: {e}")
            return WhatsAppResult(
                success=False,
                provider=self.provider_name,
                to_number=destination,
                error=str(e),
                metadata=metadata
            )

        if not response.is_success:
            logger.error(f"AiSensy send failed: HTTP {response.status_code} {response.text[:200]}")
            return WhatsAppResult(
                success=False,
                provider=self.provider_name,
                to_number=destination,
                error=response.text or f"HTTP {response.status_code}",
                metadata=metadata
            )

        message_id = None
        try:
            body = response.json()
            if isinstance(body, dict):
                message_id = body.get("submitted_message_id") or body.get("id")
        except ValueError:
            pass

        logger.info(f"WhatsApp template '{template_name}' sent to {destination[:6]}...")
        return WhatsAppResult(
            success=True,
            message_id=message_id,
            provider=self.provider_name,
            to_number=destination,
            sent_at=datetime.now(timezone.utc),
            metadata=metadata
        )
