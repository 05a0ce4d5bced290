"""
Meeting Connectors Package
Provisions 1:1 video meetings through a closer's bound provider.
"""
from .base import MeetingProvider
from .zoom import ZoomMeetingProvider
from .calendly import CalendlyMeetingProvider

__all__ = [
    "MeetingProvider",
    "ZoomMeetingProvider",
    "CalendlyMeetingProvider",
]
