"""
Campaign and Call Repository Interfaces
Persistence seams for the dispatcher and the event reconciler
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.domain.models.call import CallDetails, CallRecord, CallStatus, TerminalTransition
from app.domain.models.campaign import Campaign, CampaignCounter


class CampaignRepository(ABC):
    """Storage for voice_campaigns and related lookups"""

    @abstractmethod
    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        pass

    @abstractmethod
    def find_campaign_by_batch(self, batch_id: str) -> Optional[Campaign]:
        pass

    @abstractmethod
    def update_campaign(self, campaign_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def complete_campaign(self, campaign_id: str, completed_at: datetime) -> bool:
        """
        Mark the campaign completed unless it already is.

        Returns:
            True if this call changed the campaign
        """
        pass

    @abstractmethod
    def increment_counter(self, campaign_id: str, counter: CampaignCounter) -> None:
        """Atomically add one to a campaign counter"""
        pass

    @abstractmethod
    def add_cost(self, campaign_id: str, cost: float) -> None:
        """Atomically add to the campaign's total_cost"""
        pass

    @abstractmethod
    def get_workshop_group_link(self, workshop_id: str) -> Optional[str]:
        pass


class CallRepository(ABC):
    """Storage for voice_campaign_calls"""

    @abstractmethod
    def get_call(self, call_id: str) -> Optional[CallRecord]:
        pass

    @abstractmethod
    def find_call_by_execution(self, execution_id: str) -> Optional[CallRecord]:
        pass

    @abstractmethod
    def find_latest_call_by_phone(
        self,
        phone: str,
        campaign_id: Optional[str] = None
    ) -> Optional[CallRecord]:
        """Most recently updated record for a phone, terminal records included"""
        pass

    @abstractmethod
    def list_calls(self, campaign_id: str, statuses: Iterable[CallStatus]) -> List[CallRecord]:
        pass

    @abstractmethod
    def list_stale_calls(
        self,
        campaign_id: str,
        statuses: Iterable[CallStatus],
        created_before: datetime
    ) -> List[CallRecord]:
        pass

    @abstractmethod
    def count_calls(self, campaign_id: str, statuses: Iterable[CallStatus]) -> int:
        pass

    @abstractmethod
    def bulk_update_status(
        self,
        campaign_id: str,
        from_statuses: Iterable[CallStatus],
        to_status: CallStatus
    ) -> int:
        """
        Move every call of the campaign in from_statuses to to_status.

        Returns:
            Number of records changed
        """
        pass

    @abstractmethod
    def update_call(self, call_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def update_call_if_active(self, call_id: str, fields: Dict[str, Any]) -> bool:
        """Apply fields only while the record is non-terminal"""
        pass

    @abstractmethod
    def transition_call_to_terminal(
        self,
        call_id: str,
        status: CallStatus,
        outcome: Optional[str] = None,
        details: Optional[CallDetails] = None,
        ended_at: Optional[datetime] = None
    ) -> TerminalTransition:
        """
        Guarded, atomic terminal transition.

        Status is written only if the record is still non-terminal; outcome
        is written only if none is set; details never overwrite with blanks.
        """
        pass
