"""
Appointment Repository Interfaces
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from app.domain.models.appointment import Appointment
from app.domain.models.integration import CloserBinding, Integration
from app.domain.models.lead import CloserProfile


class AppointmentRepository(ABC):
    """Storage for call_appointments, leads and profiles"""

    @abstractmethod
    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Load an appointment joined with its lead and current closer"""
        pass

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[CloserProfile]:
        pass

    @abstractmethod
    def update_appointment(self, appointment_id: str, fields: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        pass


class IntegrationRepository(ABC):
    """Read-only access to organization_integrations and closer_integrations"""

    @abstractmethod
    def get_active_integration(
        self,
        organization_id: str,
        integration_type: str
    ) -> Optional[Integration]:
        pass

    @abstractmethod
    def get_closer_binding(
        self,
        closer_id: str,
        organization_id: Optional[str] = None
    ) -> CloserBinding:
        pass
