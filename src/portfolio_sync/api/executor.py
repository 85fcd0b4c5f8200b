"""
Request Executor.

Sends HTTP requests to the portfolio API with per-attempt timeouts, bounded
fixed-delay retry of transient failures and bearer token injection. Knows
nothing about caching.
"""

import json as jsonlib
from typing import Any, Optional

import aiohttp

from portfolio_sync.core import (
    ApiResponseError,
    ConnectionFailedError,
    MalformedResponseError,
    NetworkError,
    ServerUnavailableError,
    TimeoutConfig,
    TransientNetworkError,
    get_logger,
    with_timeout,
)
from portfolio_sync.core.retry import RetryConfig, RetryStrategy, retry_async

from .auth import BearerAuth
from .constants import DEFAULT_BASE_URL, RETRYABLE_STATUSES

logger = get_logger(__name__)


def serialize_params(params: Optional[dict[str, Any]]) -> dict[str, str]:
    """Drop None values and render query values as strings (bools as true/false)."""
    if not params:
        return {}
    result = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[key] = "true" if value else "false"
        else:
            result[key] = str(value)
    return result


class RequestExecutor:
    """
    Async HTTP executor for the portfolio API.

    Example:
        >>> async with RequestExecutor("http://localhost:5000/api/v1") as executor:
        ...     data = await executor.execute(
        ...         "GET", "/balances", params={"user_id": "42"}, timeout=120.0
        ...     )
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        auth: Optional[BearerAuth] = None,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        timeouts: Optional[TimeoutConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize RequestExecutor.

        Args:
            base_url: API base URL including the version prefix
            auth: Bearer token source (requests go out unauthenticated without it)
            max_retries: Default retries after the first attempt
            retry_delay: Fixed delay between attempts in seconds
            timeouts: Timeout tiers, the defaults if omitted
            session: Externally owned aiohttp session
        """
        self._base_url = base_url.rstrip("/")
        self._auth = auth or BearerAuth()
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._timeouts = timeouts or TimeoutConfig()
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeouts(self) -> TimeoutConfig:
        return self._timeouts

    # =========================================================================
    # Lifecycle Management
    # =========================================================================

    async def connect(self) -> None:
        """Create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
            logger.debug(f"Connected to {self._base_url}")

    async def close(self) -> None:
        """Close HTTP session if this executor created it."""
        if self._session and not self._session.closed and self._owns_session:
            await self._session.close()
            logger.debug("Session closed")
        self._session = None

    async def __aenter__(self) -> "RequestExecutor":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # Request Execution
    # =========================================================================

    async def execute(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> dict:
        """
        Execute a request with timeout and retry.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            params: Query parameters (None values dropped)
            json: JSON body
            timeout: Per-attempt timeout in seconds (default tier if omitted)
            max_retries: Override of the executor's retry count, 0 disables retry

        Returns:
            Decoded JSON object

        Raises:
            NetworkError: Every attempt failed with a transient error
            ApiResponseError: Server rejected the request (4xx)
            MalformedResponseError: Body is not a JSON object
        """
        operation = f"{method} {path}"
        config = RetryConfig(
            max_retries=self._max_retries if max_retries is None else max_retries,
            delay=self._retry_delay,
            strategy=RetryStrategy.FIXED,
            retryable_exceptions=(TransientNetworkError,),
            operation_name=operation,
        )

        result = await retry_async(
            self._attempt,
            method,
            path,
            serialize_params(params),
            json,
            timeout if timeout is not None else self._timeouts.default,
            config=config,
        )

        if result.success:
            return result.result

        exc = result.exception
        if isinstance(exc, TransientNetworkError):
            raise NetworkError(result.attempts, exc) from exc
        raise exc

    async def _attempt(
        self,
        method: str,
        path: str,
        params: dict[str, str],
        json: Optional[dict[str, Any]],
        timeout: float,
    ) -> dict:
        """One attempt: fresh auth headers, raced against the timeout."""
        headers = await self._auth.get_headers()
        return await with_timeout(
            self._send(method, path, params, json, headers),
            timeout,
            f"{method} {path}",
        )

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, str],
        json: Optional[dict[str, Any]],
        headers: dict[str, str],
    ) -> dict:
        if self._session is None or self._session.closed:
            await self.connect()

        url = f"{self._base_url}{path}"
        logger.debug(f"Request: {method} {path} params={params}")

        try:
            async with self._session.request(
                method, url, params=params, json=json, headers=headers
            ) as resp:
                return await self._handle_response(resp)
        except aiohttp.ClientError as e:
            raise ConnectionFailedError(f"Failed to connect to {url}: {e}") from e

    async def _handle_response(self, response: aiohttp.ClientResponse) -> dict:
        """
        Map the HTTP response onto a payload or an exception.

        Raises:
            ServerUnavailableError: 5xx or 429
            ApiResponseError: Any other status >= 400
            MalformedResponseError: Body is not a JSON object
        """
        status = response.status
        logger.debug(f"Response status: {status}")

        if status >= 500 or status in RETRYABLE_STATUSES:
            raise ServerUnavailableError(status, f"HTTP {status} {response.reason or ''}".strip())

        text = await response.text()

        if status >= 400:
            body: Any = text
            message = None
            try:
                body = jsonlib.loads(text)
            except ValueError:
                pass
            if isinstance(body, dict):
                message = body.get("error") or body.get("message")
            raise ApiResponseError(
                status,
                body,
                f"API error: {status} {message or response.reason or ''}".strip(),
            )

        try:
            data = jsonlib.loads(text)
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Expected JSON object, got {type(data).__name__}"
            )
        return data
