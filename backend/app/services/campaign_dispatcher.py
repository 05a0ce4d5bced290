"""
Campaign Dispatcher
Turns a campaign's pending calls into one call-center batch, and stops it.
"""
import asyncio
import csv
import io
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.core.config import ConfigManager, get_config_manager
from app.domain.exceptions import (
    CallCenterProviderError,
    CampaignConfigurationError,
    CampaignNotFoundError,
    NoPendingCallsError,
)
from app.domain.interfaces.appointment_repository import IntegrationRepository
from app.domain.interfaces.call_center_provider import CallCenterProvider
from app.domain.interfaces.campaign_repository import CallRepository, CampaignRepository
from app.domain.models.call import CallRecord, CallStatus
from app.domain.models.campaign import Campaign, CampaignStatus
from app.domain.models.integration import Integration, IntegrationType
from app.infrastructure.http.resilient_client import ResilientHttpClient, get_http_client
from app.infrastructure.telephony.factory import CallCenterFactory

logger = logging.getLogger(__name__)

MANIFEST_HEADER = ["contact_number", "lead_name", "workshop_time", "call_id"]

Clock = Callable[[], datetime]
ProviderBuilder = Callable[[str], CallCenterProvider]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_phone(phone: str, default_country_code: str = "91") -> str:
    """
    E.164-like form: numbers already starting with '+' are kept, anything
    else gets '+<default country code>' after formatting is stripped.
    """
    phone = (phone or "").strip()
    if phone.startswith("+"):
        return phone
    digits = re.sub(r"[\s\-().]", "", phone)
    return f"+{default_country_code}{digits}"


def build_manifest(
    calls: List[CallRecord],
    workshop_time: str,
    default_country_code: str = "91"
) -> str:
    """CSV manifest, one row per call, with the CallRecord id as correlation token."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(MANIFEST_HEADER)
    for call in calls:
        writer.writerow([
            normalize_phone(call.contact_phone, default_country_code),
            call.contact_name or "",
            workshop_time,
            call.id,
        ])
    return buffer.getvalue()


class CampaignDispatcher:
    """
    Starts and stops voice campaigns on the call-center provider.

    Start is all-or-nothing up to batch creation: if the batch cannot be
    created the campaign is marked failed. Scheduling and stopping are
    best-effort; the provider may still run a batch it never acknowledged.
    """

    def __init__(
        self,
        campaigns: CampaignRepository,
        calls: CallRepository,
        integrations: IntegrationRepository,
        http_client: Optional[ResilientHttpClient] = None,
        config: Optional[ConfigManager] = None,
        provider_builder: Optional[ProviderBuilder] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        self.campaigns = campaigns
        self.calls = calls
        self.integrations = integrations
        self._http = http_client or get_http_client()
        self._config = config or get_config_manager()
        self._provider_builder = provider_builder or self._default_provider
        self._clock = clock or utc_now
        self._sleep = sleep or asyncio.sleep

    def _default_provider(self, api_key: str) -> CallCenterProvider:
        return CallCenterFactory.create(
            "bolna",
            api_key=api_key,
            config=self._config.get("providers.bolna", {}),
            http_client=self._http
        )

    def _load_campaign(self, campaign_id: str) -> Campaign:
        campaign = self.campaigns.get_campaign(campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    def _call_center_integration(self, campaign: Campaign) -> Optional[Integration]:
        if not campaign.organization_id:
            return None
        return self.integrations.get_active_integration(
            campaign.organization_id, IntegrationType.BOLNA.value
        )

    async def start(
        self,
        campaign_id: str,
        scheduled_at: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Dispatch every pending call of a campaign as one batch.

        Raises:
            CampaignNotFoundError: Unknown campaign
            CampaignConfigurationError: No usable call-center integration
            NoPendingCallsError: Nothing to dispatch
            CallCenterProviderError: Batch creation failed (campaign marked failed)
        """
        campaign = self._load_campaign(campaign_id)

        integration = self._call_center_integration(campaign)
        if integration is None:
            raise CampaignConfigurationError()

        api_key = integration.secret("api_key")
        agent_id = campaign.bolna_agent_id or integration.config.get("agent_id")
        if not api_key or not agent_id:
            raise CampaignConfigurationError("Bolna API key or Agent ID missing")
        from_phone_number = integration.config.get("from_phone_number") or None

        pending = self.calls.list_calls(campaign_id, [CallStatus.PENDING])
        if not pending:
            raise NoPendingCallsError()

        country_code = str(self._config.get("campaigns.default_country_code", "91"))
        workshop_time = campaign.workshop_time or self._config.get(
            "campaigns.default_workshop_time", "7 PM"
        )
        manifest = build_manifest(pending, workshop_time, country_code)

        logger.info(f"Starting campaign {campaign_id}: {len(pending)} contacts")
        provider = self._provider_builder(api_key)

        try:
            batch_id = await provider.create_batch(agent_id, manifest, from_phone_number)
        except CallCenterProviderError as e:
            logger.error(f"Batch creation failed for campaign {campaign_id}: {e.message}")
            self.campaigns.update_campaign(campaign_id, {"status": CampaignStatus.FAILED})
            raise

        # Give the provider a moment to ingest the manifest before scheduling
        settle = float(self._config.get("campaigns.schedule_settle_seconds", 2))
        if settle > 0:
            await self._sleep(settle)

        delay = int(self._config.get("campaigns.schedule_delay_seconds", 30))
        run_at = scheduled_at or campaign.scheduled_at or (self._clock() + timedelta(seconds=delay))

        scheduled = False
        try:
            await provider.schedule_batch(batch_id, run_at)
            scheduled = True
        except CallCenterProviderError as e:
            logger.error(
                f"Scheduling batch {batch_id} for campaign {campaign_id} failed, "
                f"provider may still run it: {e.message}"
            )

        self.campaigns.update_campaign(campaign_id, {
            "status": CampaignStatus.RUNNING,
            "bolna_batch_id": batch_id,
            "bolna_agent_id": agent_id,
            "started_at": self._clock(),
        })
        queued = self.calls.bulk_update_status(campaign_id, [CallStatus.PENDING], CallStatus.QUEUED)
        logger.info(f"Campaign {campaign_id} running: batch={batch_id}, queued={queued}")

        return {
            "success": True,
            "batch_id": batch_id,
            "calls_queued": queued,
            "scheduled": scheduled,
        }

    async def stop(self, campaign_id: str) -> Dict[str, Any]:
        """Pause a campaign and cancel its undialled calls."""
        campaign = self._load_campaign(campaign_id)

        provider_stopped = False
        if campaign.bolna_batch_id:
            integration = self._call_center_integration(campaign)
            api_key = integration.secret("api_key") if integration else None
            if api_key:
                try:
                    await self._provider_builder(api_key).stop_batch(campaign.bolna_batch_id)
                    provider_stopped = True
                except CallCenterProviderError as e:
                    logger.error(f"Failed to stop batch {campaign.bolna_batch_id}: {e.message}")
            else:
                logger.warning(f"No call-center credentials to stop batch {campaign.bolna_batch_id}")

        self.campaigns.update_campaign(campaign_id, {"status": CampaignStatus.PAUSED})
        cancelled = self.calls.bulk_update_status(
            campaign_id,
            [CallStatus.PENDING, CallStatus.QUEUED],
            CallStatus.CANCELLED
        )
        logger.info(f"Campaign {campaign_id} paused, {cancelled} calls cancelled")

        return {
            "success": True,
            "calls_cancelled": cancelled,
            "provider_stopped": provider_stopped,
        }
