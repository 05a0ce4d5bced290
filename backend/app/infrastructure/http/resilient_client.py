"""
Resilient HTTP Client
Bounded-timeout outbound calls with retry policies for external providers.

Two retry policies are offered:
- call_with_retry: exponential backoff (1s, 2s, 4s, ...) for 5xx, network
  errors and timeouts. 4xx responses are returned untouched unless asked.
- call_with_connection_reset_retry: a single retry after a fixed 2s delay,
  only when the peer dropped the connection (the callee restarted).
"""
import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Optional

import httpx

from app.domain.exceptions import RequestTimeoutError, UpstreamHTTPError

logger = logging.getLogger(__name__)


SleepFunc = Callable[[float], Awaitable[None]]

CONNECTION_RESET_PATTERN = re.compile(
    r"connection reset|reset by peer|econnreset|broken pipe|"
    r"server disconnected|peer closed connection|connection aborted|"
    r"remote end closed connection|connection was closed",
    re.IGNORECASE
)

CONNECTION_RESET_RETRY_DELAY = 2.0


def is_connection_reset(error: BaseException) -> bool:
    """Heuristically detect a peer reset / disconnect from the error text."""
    text = f"{type(error).__name__}: {error}"
    cause = error.__cause__ or error.__context__
    if cause is not None:
        text += f" {type(cause).__name__}: {cause}"
    return bool(CONNECTION_RESET_PATTERN.search(text))


class ResilientHttpClient:
    """
    Thin wrapper around httpx.AsyncClient with timeout and retry policies.

    Injected into every provider adapter so tests can substitute an
    httpx.MockTransport and a recording sleep function.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None
    ):
        self._client = client or httpx.AsyncClient()
        self._sleep = sleep or asyncio.sleep

    async def aclose(self) -> None:
        await self._client.aclose()

    async def call_with_timeout(
        self,
        method: str,
        url: str,
        timeout_ms: int = 5000,
        **kwargs: Any
    ) -> httpx.Response:
        """
        Issue a single request bounded by timeout_ms.

        Raises:
            RequestTimeoutError: If no response arrives in time
        """
        try:
            return await self._client.request(
                method,
                url,
                timeout=timeout_ms / 1000,
                **kwargs
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"Request to {url} timed out after {timeout_ms}ms"
            ) from e

    async def call_with_retry(
        self,
        method: str,
        url: str,
        max_retries: int = 3,
        timeout_ms: int = 5000,
        retry_on_4xx: bool = False,
        **kwargs: Any
    ) -> httpx.Response:
        """
        Call with exponential backoff.

        Args:
            method: HTTP method
            url: Target URL
            max_retries: Retries after the first attempt
            timeout_ms: Per-attempt timeout
            retry_on_4xx: Also retry client errors

        Returns:
            The first 2xx response, or a 4xx response when not retrying them

        Raises:
            UpstreamHTTPError: Last non-2xx response after all retries
            RequestTimeoutError / httpx.HTTPError: Last transport failure
        """
        last_error: Optional[Exception] = None

        for attempt in range(max_retries + 1):
            try:
                response = await self.call_with_timeout(method, url, timeout_ms, **kwargs)

                if response.is_success:
                    return response

                if 400 <= response.status_code < 500 and not retry_on_4xx:
                    return response

                last_error = UpstreamHTTPError(response.status_code, url, response.text)
            except (httpx.HTTPError, RequestTimeoutError) as e:
                last_error = e

            if attempt < max_retries:
                delay = float(2 ** attempt)
                logger.info(
                    f"Retry {attempt + 1}/{max_retries} for {url} in {delay:.0f}s "
                    f"(last error: {last_error})"
                )
                await self._sleep(delay)

        logger.error(f"Giving up on {url} after {max_retries} retries: {last_error}")
        raise last_error

    async def call_with_connection_reset_retry(
        self,
        method: str,
        url: str,
        timeout_ms: int = 5000,
        **kwargs: Any
    ) -> httpx.Response:
        """
        Call once, retrying exactly once after 2s if the peer reset the connection.

        Any other failure propagates immediately. Non-2xx responses are
        returned to the caller untouched.
        """
        try:
            return await self.call_with_timeout(method, url, timeout_ms, **kwargs)
        except (httpx.HTTPError, RequestTimeoutError) as e:
            if not is_connection_reset(e):
                raise
            logger.warning(
                f"Connection reset calling {url}, retrying once in "
                f"{CONNECTION_RESET_RETRY_DELAY:.0f}s: {e}"
            )

        await self._sleep(CONNECTION_RESET_RETRY_DELAY)
        return await self.call_with_timeout(method, url, timeout_ms, **kwargs)


_http_client: Optional[ResilientHttpClient] = None


def get_http_client() -> ResilientHttpClient:
    """Get or create the shared ResilientHttpClient instance."""
    global _http_client
    if _http_client is None:
        _http_client = ResilientHttpClient()
    return _http_client


async def close_http_client() -> None:
    """Close the shared client, if one was created."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
