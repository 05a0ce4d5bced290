"""
Event Reconciler
Applies call-center webhooks to call records and campaign aggregates.

Two event shapes arrive on one endpoint:
- Tool calls, fired by the agent mid-conversation (mark_attendance,
  reschedule_lead, send_whatsapp_group_link)
- Post-call reports, fired once per execution and possibly redelivered

Every terminal transition, from either shape or from the stale sweep, goes
through CallRepository.transition_call_to_terminal. Counters move only when
that reports the first terminal transition, which makes redelivery a no-op.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from app.core.config import ConfigManager, get_config_manager
from app.domain.exceptions import CallNotFoundError
from app.domain.interfaces.campaign_repository import CallRepository, CampaignRepository
from app.domain.models.call import (
    ACTIVE_STATUSES,
    ATTENDANCE_COUNTERS,
    OUTCOME_COUNTERS,
    CallDetails,
    CallOutcome,
    CallRecord,
    CallStatus,
    TerminalTransition,
)
from app.domain.models.campaign import CampaignCounter
from app.domain.models.provider_events import (
    PostCallEvent,
    ToolCallEvent,
    ToolName,
    parse_provider_event,
)
from app.services.whatsapp_service import WhatsAppNotificationService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

NO_MATCH_RESPONSE = {"warning": "No matching call record"}

RESCHEDULE_COUNTERS: Dict[str, CampaignCounter] = {
    CallOutcome.RESCHEDULED.value: CampaignCounter.CALLS_RESCHEDULED,
}

STALE_STATUSES = (CallStatus.QUEUED, CallStatus.PENDING)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def phone_variants(to_number: str, country_code: str = "91") -> List[str]:
    """As given, without '+', and '+<cc><national>'; duplicates dropped."""
    clean = to_number.lstrip("+")
    national = clean[len(country_code):] if clean.startswith(country_code) else clean
    variants = [to_number, clean, f"+{country_code}{national}"]
    return list(dict.fromkeys(v for v in variants if v))


class EventReconciler:
    """
    Webhook reconciliation for voice campaigns.

    Stateless between requests; consistency lives in the datastore (guarded
    transitions, atomic counters).
    """

    def __init__(
        self,
        campaigns: CampaignRepository,
        calls: CallRepository,
        notifications: WhatsAppNotificationService,
        config: Optional[ConfigManager] = None,
        clock: Optional[Clock] = None
    ):
        self.campaigns = campaigns
        self.calls = calls
        self.notifications = notifications
        self._config = config or get_config_manager()
        self._clock = clock or utc_now
        self._country_code = str(self._config.get("campaigns.default_country_code", "91"))
        self._grace = timedelta(
            minutes=float(self._config.get("campaigns.stale_call_grace_minutes", 10))
        )

    async def handle(self, payload: Any) -> Dict[str, Any]:
        """
        Decode and apply one webhook body.

        Raises:
            InvalidEventError: Malformed payload
            CallNotFoundError: Tool call for an unknown call_id
        """
        event = parse_provider_event(payload)
        if isinstance(event, ToolCallEvent):
            logger.info(f"Webhook received: tool_call {event.tool_name.value} for call {event.call_id}")
            return await self.handle_tool_call(event)
        logger.info(f"Webhook received: post_call execution={event.execution_ref}")
        return await self.handle_post_call(event)

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def _finalize(
        self,
        call: CallRecord,
        status: CallStatus,
        outcome: Optional[str],
        details: Optional[CallDetails],
        counter_map: Mapping[str, CampaignCounter]
    ) -> Tuple[TerminalTransition, List[str]]:
        transition = self.calls.transition_call_to_terminal(
            call.id, status, outcome, details, ended_at=self._clock()
        )
        counted: List[str] = []

        if transition.was_first_transition:
            self.campaigns.increment_counter(call.campaign_id, CampaignCounter.CALLS_COMPLETED)
            counted.append(CampaignCounter.CALLS_COMPLETED.value)

            counter = counter_map.get(transition.outcome or "")
            if transition.outcome_was_set and counter is not None:
                self.campaigns.increment_counter(call.campaign_id, counter)
                counted.append(counter.value)
        else:
            logger.info(f"Call {call.id} already terminal, counters unchanged")

        logger.info(
            f"Transition result: first={transition.was_first_transition}, "
            f"outcome={transition.outcome}, call={call.id}, counted={counted}"
        )
        return transition, counted

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    async def handle_tool_call(self, event: ToolCallEvent) -> Dict[str, Any]:
        call = self.calls.get_call(event.call_id)
        if call is None:
            logger.error(f"Call record not found for id: {event.call_id}")
            raise CallNotFoundError(event.call_id)

        result: Dict[str, Any] = {
            "success": True,
            "call_id": call.id,
            "tool_name": event.tool_name.value,
        }

        if event.tool_name == ToolName.MARK_ATTENDANCE:
            transition, counted = self._finalize(
                call,
                CallStatus.COMPLETED,
                event.attendance_outcome,
                None,
                ATTENDANCE_COUNTERS
            )
            logger.info(f"mark_attendance: {event.attendance_outcome} for call {call.id}")
            result.update(outcome=transition.outcome, counted=counted)

        elif event.tool_name == ToolName.RESCHEDULE_LEAD:
            transition, counted = self._finalize(
                call,
                CallStatus.COMPLETED,
                CallOutcome.RESCHEDULED.value,
                CallDetails(reschedule_day=event.reschedule_day),
                RESCHEDULE_COUNTERS
            )
            logger.info(f"reschedule_lead: {event.reschedule_day} for call {call.id}")
            result.update(
                outcome=transition.outcome,
                reschedule_day=event.reschedule_day,
                counted=counted
            )

        elif event.tool_name == ToolName.SEND_WHATSAPP_GROUP_LINK:
            result["whatsapp_sent"] = await self._send_group_link(call)

        return result

    async def _send_group_link(self, call: CallRecord) -> bool:
        campaign = self.campaigns.get_campaign(call.campaign_id)

        group_link = None
        if campaign and campaign.workshop_id:
            group_link = self.campaigns.get_workshop_group_link(campaign.workshop_id)
        template = campaign.whatsapp_template_id if campaign else None

        sent = False
        if template and group_link:
            outcome = await self.notifications.send_group_link(
                organization_id=campaign.organization_id,
                to_number=call.contact_phone,
                template_name=template,
                group_link=group_link
            )
            sent = outcome.success
            if not sent:
                logger.error(f"WhatsApp group link send failed for call {call.id}: {outcome.error}")
        else:
            logger.info(f"No template or group link for call {call.id}, WhatsApp send skipped")

        # Records the attempt, not delivery
        self.calls.update_call(call.id, {
            "whatsapp_link_sent": True,
            "in_whatsapp_group": False,
        })
        return sent

    # ------------------------------------------------------------------
    # Post-call finalization
    # ------------------------------------------------------------------

    def match_call(self, event: PostCallEvent) -> Optional[CallRecord]:
        """
        Find the call a post-call report belongs to.

        Execution id first, then phone variants of the dialled number,
        narrowed to the batch's campaign when the event names one. Terminal
        records are eligible so redeliveries still resolve.
        """
        if event.execution_ref:
            call = self.calls.find_call_by_execution(event.execution_ref)
            if call:
                return call

        if not event.to_number:
            return None

        campaign_id = None
        if event.batch_id:
            campaign = self.campaigns.find_campaign_by_batch(event.batch_id)
            campaign_id = campaign.id if campaign else None

        for variant in phone_variants(event.to_number, self._country_code):
            call = self.calls.find_latest_call_by_phone(variant, campaign_id)
            if call:
                return call
        return None

    @staticmethod
    def candidate_outcome(event: PostCallEvent, status: CallStatus) -> Optional[str]:
        if event.attendance:
            return event.attendance
        if status in (CallStatus.NO_ANSWER, CallStatus.BUSY):
            return CallOutcome.NO_RESPONSE.value
        return None

    async def handle_post_call(self, event: PostCallEvent) -> Dict[str, Any]:
        call = self.match_call(event)
        if call is None:
            logger.warning(
                f"No matching call record for webhook. execution_id: {event.execution_ref}, "
                f"phone present: {bool(event.to_number)}"
            )
            return dict(NO_MATCH_RESPONSE)

        status = event.mapped_status
        outcome: Optional[str] = call.outcome
        counted: List[str] = []

        if status.is_terminal:
            details = CallDetails(
                bolna_call_id=event.execution_ref,
                call_duration_seconds=event.duration_seconds or None,
                call_cost=event.cost or None,
                transcript=event.transcript or None,
                recording_url=event.recording_url or None,
                extracted_data=event.extracted_data if isinstance(event.extracted_data, dict) else None,
            )
            transition, counted = self._finalize(
                call,
                status,
                self.candidate_outcome(event, status),
                details,
                OUTCOME_COUNTERS
            )
            outcome = transition.outcome
        else:
            fields: Dict[str, Any] = {"status": status}
            if event.execution_ref:
                fields["bolna_call_id"] = event.execution_ref
            if not self.calls.update_call_if_active(call.id, fields):
                logger.info(f"Ignoring {status.value} for call {call.id}, already terminal")

        # Not guarded by the first-transition check, see DESIGN.md
        if event.cost > 0:
            self.campaigns.add_cost(call.campaign_id, event.cost)

        swept = self.sweep_stale_calls(call.campaign_id)
        campaign_completed = self.check_completion(call.campaign_id)

        return {
            "success": True,
            "call_id": call.id,
            "status": status.value,
            "outcome": outcome,
            "counted": counted,
            "swept": swept,
            "campaign_completed": campaign_completed,
        }

    def sweep_stale_calls(self, campaign_id: str) -> int:
        """
        Fail calls the provider never dialled.

        Once the grace period after started_at has passed, anything still
        queued or pending that was created before that mark is moved to
        failed / invalid_number.
        """
        campaign = self.campaigns.get_campaign(campaign_id)
        if campaign is None or campaign.started_at is None:
            return 0

        started_at = campaign.started_at
        if started_at.tzinfo is None:
            started_at = started_at.replace(tzinfo=timezone.utc)
        cutoff = started_at + self._grace
        now = self._clock()
        if now < cutoff:
            return 0

        swept = 0
        for stale in self.calls.list_stale_calls(campaign_id, STALE_STATUSES, cutoff):
            transition = self.calls.transition_call_to_terminal(
                stale.id,
                CallStatus.FAILED,
                CallOutcome.INVALID_NUMBER.value,
                ended_at=now
            )
            if transition.was_first_transition:
                self.campaigns.increment_counter(campaign_id, CampaignCounter.CALLS_COMPLETED)
                self.campaigns.increment_counter(campaign_id, CampaignCounter.CALLS_NO_ANSWER)
                swept += 1

        if swept:
            logger.info(f"Marked {swept} stale queued calls as failed in campaign {campaign_id}")
        return swept

    def check_completion(self, campaign_id: str) -> bool:
        """Complete the campaign once no call is left in a non-terminal status."""
        remaining = self.calls.count_calls(campaign_id, ACTIVE_STATUSES)
        if remaining > 0:
            return False
        if self.campaigns.complete_campaign(campaign_id, self._clock()):
            logger.info(f"Campaign {campaign_id} completed")
        return True
