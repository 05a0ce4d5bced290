"""
Call-Center Provider Interface
Abstract base class for batch voice-agent platforms
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional


class CallCenterProvider(ABC):
    """
    Abstract base class for call-center batch providers.

    A batch is created from a CSV manifest, scheduled for a start time, and
    can be stopped while calls are still queued.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass

    @abstractmethod
    async def create_batch(
        self,
        agent_id: str,
        manifest_csv: str,
        from_phone_number: Optional[str] = None
    ) -> str:
        """
        Upload a call manifest as a new batch.

        Returns:
            batch_id: Provider batch reference
        """
        pass

    @abstractmethod
    async def schedule_batch(self, batch_id: str, scheduled_at: datetime) -> None:
        """Schedule a created batch to start at scheduled_at (UTC)"""
        pass

    @abstractmethod
    async def stop_batch(self, batch_id: str) -> None:
        """Stop a running batch"""
        pass
