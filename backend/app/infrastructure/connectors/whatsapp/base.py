"""
WhatsApp Provider Base Classes
Abstract base class for templated WhatsApp messaging providers.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class RetryPolicy(str, Enum):
    """How hard to retry a send"""
    BACKOFF = "backoff"  # Exponential backoff on 5xx / network errors
    CONNECTION_RESET = "connection_reset"  # One retry, only on peer reset


@dataclass
class TemplateMedia:
    url: str
    filename: str


@dataclass
class WhatsAppResult:
    """Result of a WhatsApp template send."""
    success: bool
    message_id: Optional[str] = None
    provider: str = ""
    to_number: str = ""
    error: Optional[str] = None
    sent_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "message_id": self.message_id,
            "provider": self.provider,
            "to_number": self.to_number,
            "error": self.error,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "metadata": self.metadata
        }


class WhatsAppProvider(ABC):
    """
    Abstract base class for WhatsApp template providers.

    Implementations never raise from send_template(); failures come back
    as WhatsAppResult(success=False).
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (e.g., 'aisensy')."""
        pass

    @abstractmethod
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
        """
        Send a pre-approved template message.

        Args:
            to_number: Destination number, digits with country code
            template_name: Approved template / campaign name
            template_params: Positional template parameters
            user_name: Display name recorded by the provider
            media: Optional header media attachment
            retry_policy: Retry behaviour for this send
            metadata: Optional metadata for tracking

        Returns:
            WhatsAppResult with success status
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the provider has valid configuration."""
        pass

    def _normalize_number(self, number: str) -> str:
        """Strip formatting and the leading '+', providers expect bare digits."""
        number = number.replace(" ", "").replace("-", "").replace("(", "").replace(")", "")
        return number.lstrip("+")
