"""
WhatsApp Connectors Package
Templated WhatsApp messaging via external providers.
"""
from .base import RetryPolicy, TemplateMedia, WhatsAppProvider, WhatsAppResult
from .aisensy import AiSensyWhatsAppProvider

__all__ = [
    "RetryPolicy",
    "TemplateMedia",
    "WhatsAppProvider",
    "WhatsAppResult",
    "AiSensyWhatsAppProvider",
]
