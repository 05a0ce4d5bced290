"""
Call-Center Provider Factory
"""
from typing import Any, Dict, Optional, Type

from app.domain.interfaces.call_center_provider import CallCenterProvider
from app.infrastructure.http.resilient_client import ResilientHttpClient, get_http_client
from app.infrastructure.telephony.bolna_batch_client import BolnaBatchClient


class CallCenterFactory:
    """Factory for creating call-center provider instances"""

    _providers: Dict[str, Type[CallCenterProvider]] = {
        "bolna": BolnaBatchClient,
    }

    @classmethod
    def create(
        cls,
        provider_name: str,
        api_key: str,
        config: Optional[Dict[str, Any]] = None,
        http_client: Optional[ResilientHttpClient] = None
    ) -> CallCenterProvider:
        """Create call-center provider instance"""
        if provider_name not in cls._providers:
            available = ", ".join(cls._providers.keys()) if cls._providers else "None"
            raise ValueError(f"Unknown call-center provider: {provider_name}. Available: {available}")

        provider_class = cls._providers[provider_name]
        return provider_class(
            api_key=api_key,
            http_client=http_client or get_http_client(),
            config=config
        )

    @classmethod
    def register(cls, name: str, provider_class: Type[CallCenterProvider]) -> None:
        """Register a provider"""
        cls._providers[name] = provider_class

    @classmethod
    def list_providers(cls) -> list[str]:
        """List available providers"""
        return list(cls._providers.keys())
