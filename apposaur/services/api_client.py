"""
Apposaur backend API client.

Architecture:
    ApposaurSDK → services → ApiClient (httpx) → https://api.apposaur.io/sdk

Every request carries the API key and the platform tag. Transport errors and
non-2xx responses are retried by retry_async (2 retries → 3 attempts, fixed
0.5s delay by default); the last failure is raised as RequestError. A 2xx
body that is not JSON is raised as ResponseParseError and never retried.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from apposaur import config
from apposaur.core.exceptions import RequestError, ResponseParseError
from apposaur.utils.retry import retry_async


logger = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS = (httpx.HTTPError, asyncio.TimeoutError, ConnectionError, OSError)


class ApiClient:
    """
    JSON client for the referral backend.

    The credential headers are fixed at construction; build a new client to
    change them.
    """

    def __init__(
        self,
        api_key: str,
        platform_name: str,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        retry_backoff: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or config.BASE_URL).rstrip("/")
        self.retries = config.RETRY_COUNT if retries is None else retries
        self.retry_delay = config.RETRY_DELAY if retry_delay is None else retry_delay
        self.retry_backoff = config.RETRY_BACKOFF if retry_backoff is None else retry_backoff
        self.platform_name = platform_name
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Content-Type": "application/json",
                config.API_HEADER_KEY: api_key,
                config.SDK_PLATFORM_HEADER_KEY: platform_name,
            },
            timeout=httpx.Timeout(config.REQUEST_TIMEOUT if timeout is None else timeout),
            transport=transport,
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def request(
        self,
        endpoint: str,
        method: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Send a JSON request and return the decoded response.

        Args:
            endpoint: Path below the base URL (e.g. "/referral/key")
            method: HTTP method
            body: JSON body; omitted when None
            params: Query string parameters

        Returns:
            Decoded JSON, or None for an empty response body

        Raises:
            RequestError: Transport failure or non-2xx status after all attempts
            ResponseParseError: 2xx response whose body is not JSON
        """
        method = method.upper()
        attempts = 0

        async def _attempt() -> httpx.Response:
            nonlocal attempts
            attempts += 1
            response = await self._client.request(method, endpoint, json=body, params=params)
            response.raise_for_status()
            return response

        def _on_retry(attempt: int, error: Exception, delay: float) -> None:
            logger.warning(
                f"API_REQUEST_RETRY [endpoint={endpoint}, method={method}, attempt={attempt}, "
                f"delay={delay:.2f}s, error={_describe(error)}]"
            )

        try:
            response = await retry_async(
                _attempt,
                retries=self.retries,
                base_delay=self.retry_delay,
                backoff=self.retry_backoff,
                retry_on=RETRYABLE_EXCEPTIONS,
                on_retry=_on_retry,
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(
                f"API_REQUEST_FAILED [endpoint={endpoint}, method={method}, attempts={attempts}, status={status}]",
                extra={"component": "api_client", "endpoint": endpoint, "status": status, "attempts": attempts},
            )
            raise RequestError(
                f"HTTP error {status} for {method} {endpoint}",
                endpoint=endpoint,
                status=status,
                attempts=attempts,
            ) from e
        except RETRYABLE_EXCEPTIONS as e:
            logger.error(
                f"API_REQUEST_FAILED [endpoint={endpoint}, method={method}, attempts={attempts}, "
                f"error={_describe(e)}]",
                extra={"component": "api_client", "endpoint": endpoint, "attempts": attempts},
            )
            raise RequestError(
                f"Transport error for {method} {endpoint}: {_describe(e)}",
                endpoint=endpoint,
                attempts=attempts,
            ) from e

        return _decode(response, endpoint)


def _decode(response: httpx.Response, endpoint: str) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        logger.error(f"API_INVALID_JSON [endpoint={endpoint}, status={response.status_code}]")
        raise ResponseParseError(
            f"Invalid JSON in response from {endpoint}",
            endpoint=endpoint,
            status=response.status_code,
        ) from e


def _describe(error: Exception) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"status={error.response.status_code}"
    message = str(error)[:100]
    return f"{type(error).__name__}: {message}" if message else type(error).__name__
