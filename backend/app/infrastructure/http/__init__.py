"""
Outbound HTTP Package
"""
from app.infrastructure.http.resilient_client import (
    ResilientHttpClient,
    close_http_client,
    get_http_client,
    is_connection_reset,
)

__all__ = ["ResilientHttpClient", "close_http_client", "get_http_client", "is_connection_reset"]
