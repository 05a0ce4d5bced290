"""
Shared fixtures for unit tests.

In-memory repositories mirror the database functions: the terminal
transition is guarded the same way transition_call_to_terminal is.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

from app.core.config import ConfigManager
from app.domain.interfaces.appointment_repository import (
    AppointmentRepository,
    IntegrationRepository,
)
from app.domain.interfaces.call_center_provider import CallCenterProvider
from app.domain.interfaces.campaign_repository import CallRepository, CampaignRepository
from app.domain.models.appointment import Appointment
from app.domain.models.call import (
    CallDetails,
    CallRecord,
    CallStatus,
    TERMINAL_STATUSES,
    TerminalTransition,
)
from app.domain.models.campaign import Campaign, CampaignCounter, CampaignStatus
from app.domain.models.integration import CloserBinding, Integration
from app.domain.models.lead import CloserProfile
from app.infrastructure.connectors.whatsapp import WhatsAppResult

T0 = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock; call it to read, advance() to move forward."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class InMemoryCampaignRepository(CampaignRepository):

    def __init__(self):
        self.campaigns: Dict[str, Campaign] = {}
        self.group_links: Dict[str, str] = {}

    def add(self, campaign: Campaign) -> Campaign:
        self.campaigns[campaign.id] = campaign
        return campaign

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        campaign = self.campaigns.get(campaign_id)
        return campaign.model_copy() if campaign else None

    def find_campaign_by_batch(self, batch_id: str) -> Optional[Campaign]:
        for campaign in self.campaigns.values():
            if campaign.bolna_batch_id == batch_id:
                return campaign.model_copy()
        return None

    def update_campaign(self, campaign_id: str, fields: Dict[str, Any]) -> None:
        self.campaigns[campaign_id] = self.campaigns[campaign_id].model_copy(update=fields)

    def complete_campaign(self, campaign_id: str, completed_at: datetime) -> bool:
        campaign = self.campaigns[campaign_id]
        if campaign.status == CampaignStatus.COMPLETED:
            return False
        self.update_campaign(campaign_id, {
            "status": CampaignStatus.COMPLETED,
            "completed_at": completed_at,
        })
        return True

    def increment_counter(self, campaign_id: str, counter: CampaignCounter) -> None:
        campaign = self.campaigns[campaign_id]
        value = getattr(campaign, counter.value) + 1
        self.update_campaign(campaign_id, {counter.value: value})

    def add_cost(self, campaign_id: str, cost: float) -> None:
        campaign = self.campaigns[campaign_id]
        self.update_campaign(campaign_id, {"total_cost": campaign.total_cost + cost})

    def get_workshop_group_link(self, workshop_id: str) -> Optional[str]:
        return self.group_links.get(workshop_id)


class InMemoryCallRepository(CallRepository):

    def __init__(self, clock: FakeClock):
        self.calls: Dict[str, CallRecord] = {}
        self._clock = clock

    def add(self, call: CallRecord) -> CallRecord:
        if call.created_at is None:
            call = call.model_copy(update={"created_at": self._clock()})
        if call.updated_at is None:
            call = call.model_copy(update={"updated_at": call.created_at})
        self.calls[call.id] = call
        return call

    def _set(self, call_id: str, fields: Dict[str, Any]) -> None:
        fields = {**fields, "updated_at": self._clock()}
        self.calls[call_id] = self.calls[call_id].model_copy(update=fields)

    def get_call(self, call_id: str) -> Optional[CallRecord]:
        return self.calls.get(call_id)

    def find_call_by_execution(self, execution_id: str) -> Optional[CallRecord]:
        for call in self.calls.values():
            if call.bolna_call_id == execution_id:
                return call
        return None

    def find_latest_call_by_phone(
        self,
        phone: str,
        campaign_id: Optional[str] = None
    ) -> Optional[CallRecord]:
        matches = [
            c for c in self.calls.values()
            if c.contact_phone == phone and (campaign_id is None or c.campaign_id == campaign_id)
        ]
        if not matches:
            return None
        return max(matches, key=lambda c: c.updated_at)

    def list_calls(self, campaign_id: str, statuses: Iterable[CallStatus]) -> List[CallRecord]:
        statuses = set(statuses)
        return [c for c in self.calls.values() if c.campaign_id == campaign_id and c.status in statuses]

    def list_stale_calls(
        self,
        campaign_id: str,
        statuses: Iterable[CallStatus],
        created_before: datetime
    ) -> List[CallRecord]:
        return [c for c in self.list_calls(campaign_id, statuses) if c.created_at < created_before]

    def count_calls(self, campaign_id: str, statuses: Iterable[CallStatus]) -> int:
        return len(self.list_calls(campaign_id, statuses))

    def bulk_update_status(
        self,
        campaign_id: str,
        from_statuses: Iterable[CallStatus],
        to_status: CallStatus
    ) -> int:
        matched = self.list_calls(campaign_id, from_statuses)
        for call in matched:
            self._set(call.id, {"status": to_status})
        return len(matched)

    def update_call(self, call_id: str, fields: Dict[str, Any]) -> None:
        self._set(call_id, fields)

    def update_call_if_active(self, call_id: str, fields: Dict[str, Any]) -> bool:
        if self.calls[call_id].status in TERMINAL_STATUSES:
            return False
        self._set(call_id, fields)
        return True

    def transition_call_to_terminal(
        self,
        call_id: str,
        status: CallStatus,
        outcome: Optional[str] = None,
        details: Optional[CallDetails] = None,
        ended_at: Optional[datetime] = None
    ) -> TerminalTransition:
        call = self.calls.get(call_id)
        if call is None:
            return TerminalTransition(was_first_transition=False)

        first = call.status not in TERMINAL_STATUSES
        outcome_was_set = call.outcome is None and bool(outcome)

        fields: Dict[str, Any] = {}
        if first:
            fields["status"] = status
        if outcome_was_set:
            fields["outcome"] = outcome
        if details:
            for key, value in details.model_dump().items():
                if value not in (None, ""):
                    fields[key] = value
        if call.call_ended_at is None:
            fields["call_ended_at"] = ended_at or self._clock()

        self._set(call_id, fields)
        return TerminalTransition(
            was_first_transition=first,
            outcome_was_set=outcome_was_set,
            outcome=self.calls[call_id].outcome
        )


class InMemoryIntegrationRepository(IntegrationRepository):

    def __init__(self):
        self.integrations: List[Integration] = []
        self.bindings: Dict[str, str] = {}  # closer_id -> integration id

    def add(self, integration: Integration) -> Integration:
        self.integrations.append(integration)
        return integration

    def bind(self, closer_id: str, integration: Integration) -> None:
        self.bindings[closer_id] = integration.id

    def get_active_integration(
        self,
        organization_id: str,
        integration_type: str
    ) -> Optional[Integration]:
        for integration in self.integrations:
            if (integration.organization_id == organization_id
                    and integration.integration_type == integration_type
                    and integration.is_active):
                return integration
        return None

    def get_closer_binding(
        self,
        closer_id: str,
        organization_id: Optional[str] = None
    ) -> CloserBinding:
        integration_id = self.bindings.get(closer_id)
        for integration in self.integrations:
            if integration.id == integration_id and integration.is_active:
                return CloserBinding(closer_id=closer_id, integration=integration)
        return CloserBinding(closer_id=closer_id)


class InMemoryAppointmentRepository(AppointmentRepository):

    def __init__(self):
        self.appointments: Dict[str, Appointment] = {}
        self.profiles: Dict[str, CloserProfile] = {}
        self.appointment_updates: List[Dict[str, Any]] = []
        self.lead_updates: List[Dict[str, Any]] = []

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self.appointments.get(appointment_id)

    def get_profile(self, user_id: str) -> Optional[CloserProfile]:
        return self.profiles.get(user_id)

    def update_appointment(self, appointment_id: str, fields: Dict[str, Any]) -> None:
        self.appointment_updates.append(fields)
        self.appointments[appointment_id] = self.appointments[appointment_id].model_copy(update=fields)

    def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        self.lead_updates.append({"lead_id": lead_id, **fields})


class FakeCallCenter(CallCenterProvider):
    """Records batch operations; set fail_* to raise the given error."""

    def __init__(self, batch_id: str = "batch-1"):
        self.batch_id = batch_id
        self.created: List[Dict[str, Any]] = []
        self.scheduled: List[Dict[str, Any]] = []
        self.stopped: List[str] = []
        self.fail_create: Optional[Exception] = None
        self.fail_schedule: Optional[Exception] = None
        self.fail_stop: Optional[Exception] = None

    @property
    def name(self) -> str:
        return "fake"

    async def create_batch(self, agent_id, manifest_csv, from_phone_number=None) -> str:
        if self.fail_create:
            raise self.fail_create
        self.created.append({
            "agent_id": agent_id,
            "manifest": manifest_csv,
            "from_phone_number": from_phone_number,
        })
        return self.batch_id

    async def schedule_batch(self, batch_id, scheduled_at) -> None:
        if self.fail_schedule:
            raise self.fail_schedule
        self.scheduled.append({"batch_id": batch_id, "scheduled_at": scheduled_at})

    async def stop_batch(self, batch_id) -> None:
        if self.fail_stop:
            raise self.fail_stop
        self.stopped.append(batch_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return ConfigManager(env="test")


@pytest.fixture
def campaign_repo():
    return InMemoryCampaignRepository()


@pytest.fixture
def call_repo(clock):
    return InMemoryCallRepository(clock)


@pytest.fixture
def integration_repo():
    return InMemoryIntegrationRepository()


@pytest.fixture
def appointment_repo():
    return InMemoryAppointmentRepository()


@pytest.fixture
def notifications():
    """WhatsAppNotificationService stand-in whose sends succeed."""
    service = MagicMock()
    service.send_group_link = AsyncMock(
        return_value=WhatsAppResult(success=True, provider="aisensy", message_id="msg-1")
    )
    service.send_booking_confirmation = AsyncMock(
        return_value=WhatsAppResult(success=True, provider="aisensy", message_id="msg-2")
    )
    service.resolve_credentials = MagicMock(return_value=MagicMock(api_key="key"))
    return service


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def call_center():
    return FakeCallCenter()
