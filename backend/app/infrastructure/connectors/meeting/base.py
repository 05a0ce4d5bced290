"""
Meeting Provider Base Class
Abstract base class for providers that book 1:1 video meetings.
"""
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from app.domain.exceptions import MeetingProviderError
from app.domain.models.appointment import MeetingResult
from app.domain.models.lead import CloserProfile, Lead


class MeetingProvider(ABC):
    """
    Abstract base class for meeting providers.

    All providers must implement:
    - provision_meeting(): Book a meeting and return its join link
    - cancel_meeting(): Cancel a previously booked meeting

    Failures raise MeetingProviderError.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (e.g., 'zoom', 'calendly')."""
        pass

    @abstractmethod
    async def provision_meeting(
        self,
        lead: Lead,
        closer: CloserProfile,
        scheduled_date: str,
        scheduled_time: str
    ) -> MeetingResult:
        """
        Book a meeting for a lead with a closer.

        Args:
            lead: Invitee
            closer: Host
            scheduled_date: YYYY-MM-DD (IST wall clock)
            scheduled_time: HH:MM or HH:MM:SS (IST wall clock)

        Returns:
            MeetingResult with join_url and provider reference
        """
        pass

    @abstractmethod
    async def cancel_meeting(self, reference: str, reason: Optional[str] = None) -> bool:
        """Cancel a meeting by its provider reference."""
        pass

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        if not response.is_success:
            raise MeetingProviderError(
                f"{self.provider_name} {action} failed: HTTP {response.status_code}",
                details=response.text
            )
