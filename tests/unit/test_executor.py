"""
Tests for RequestExecutor.

Tests timeout, retry, auth injection and response mapping.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from portfolio_sync.api import BearerAuth, RequestExecutor
from portfolio_sync.api.executor import serialize_params
from portfolio_sync.core import (
    ApiResponseError,
    ConnectionFailedError,
    MalformedResponseError,
    NetworkError,
    RequestTimeoutError,
    ServerUnavailableError,
)


def make_response(status: int, text: str = "{}", reason: str = "") -> MagicMock:
    response = MagicMock()
    response.status = status
    response.reason = reason
    response.text = AsyncMock(return_value=text)
    return response


@pytest.fixture
def executor():
    return RequestExecutor("http://api.test/api/v1", max_retries=2, retry_delay=0)


# =============================================================================
# Retry and Timeout
# =============================================================================


class TestExecutorRetry:
    """Test bounded fixed-delay retry."""

    @pytest.mark.asyncio
    async def test_always_timing_out_makes_three_attempts(self, executor):
        """Test timeouts exhaust all attempts."""
        calls = 0

        async def slow_send(*args, **kwargs):
            nonlocal calls
            calls += 1
            await asyncio.sleep(1)
            return {}

        with patch.object(executor, "_send", side_effect=slow_send):
            with pytest.raises(NetworkError) as exc_info:
                await executor.execute("GET", "/balances", timeout=0.01)

        assert calls == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_cause, RequestTimeoutError)

    @pytest.mark.asyncio
    async def test_transient_then_success(self, executor):
        """Test transient failure then success."""
        with patch.object(
            executor,
            "_send",
            new_callable=AsyncMock,
            side_effect=[ServerUnavailableError(503), {"ok": True}],
        ) as mock_send:
            result = await executor.execute("GET", "/balances", timeout=1)

        assert result == {"ok": True}
        assert mock_send.await_count == 2

    @pytest.mark.asyncio
    async def test_connection_failure_is_retried(self, executor):
        """Test connection failure retry."""
        with patch.object(
            executor,
            "_send",
            new_callable=AsyncMock,
            side_effect=ConnectionFailedError("refused"),
        ) as mock_send:
            with pytest.raises(NetworkError) as exc_info:
                await executor.execute("GET", "/balances", timeout=1)

        assert mock_send.await_count == 3
        assert isinstance(exc_info.value.last_cause, ConnectionFailedError)

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, executor):
        """Test 4xx is not retried."""
        with patch.object(
            executor,
            "_send",
            new_callable=AsyncMock,
            side_effect=ApiResponseError(404, {"error": "not found"}),
        ) as mock_send:
            with pytest.raises(ApiResponseError) as exc_info:
                await executor.execute("GET", "/tokens/BTC", timeout=1)

        assert mock_send.await_count == 1
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_malformed_not_retried(self, executor):
        """Test malformed response is not retried."""
        with patch.object(
            executor,
            "_send",
            new_callable=AsyncMock,
            side_effect=MalformedResponseError("bad json"),
        ) as mock_send:
            with pytest.raises(MalformedResponseError):
                await executor.execute("GET", "/balances", timeout=1)

        assert mock_send.await_count == 1

    @pytest.mark.asyncio
    async def test_zero_retries_single_attempt(self, executor):
        """Test max_retries=0."""
        with patch.object(
            executor,
            "_send",
            new_callable=AsyncMock,
            side_effect=ServerUnavailableError(502),
        ) as mock_send:
            with pytest.raises(NetworkError) as exc_info:
                await executor.execute("POST", "/orders/buy", timeout=1, max_retries=0)

        assert mock_send.await_count == 1
        assert exc_info.value.attempts == 1


# =============================================================================
# Auth and Params
# =============================================================================


class TestExecutorAuth:
    """Test bearer token injection."""

    @pytest.mark.asyncio
    async def test_bearer_header_injected(self):
        """Test bearer header."""
        executor = RequestExecutor("http://api.test", auth=BearerAuth(lambda: "tok"))

        with patch.object(executor, "_send", new_callable=AsyncMock, return_value={}) as mock_send:
            await executor.execute("GET", "/balances", params={"user_id": "u1"}, timeout=1)

        method, path, params, body, headers = mock_send.call_args.args
        assert (method, path) == ("GET", "/balances")
        assert params == {"user_id": "u1"}
        assert headers == {"Authorization": "Bearer tok"}

    @pytest.mark.asyncio
    async def test_async_provider(self):
        """Test async token provider."""
        async def provider():
            return "async-tok"

        executor = RequestExecutor("http://api.test", auth=BearerAuth(provider))

        with patch.object(executor, "_send", new_callable=AsyncMock, return_value={}) as mock_send:
            await executor.execute("GET", "/balances", timeout=1)

        assert mock_send.call_args.args[4] == {"Authorization": "Bearer async-tok"}

    @pytest.mark.asyncio
    async def test_failing_provider_proceeds_unauthenticated(self):
        """Test failing token provider."""
        def provider():
            raise RuntimeError("keychain locked")

        executor = RequestExecutor("http://api.test", auth=BearerAuth(provider))

        with patch.object(executor, "_send", new_callable=AsyncMock, return_value={"ok": 1}) as mock_send:
            result = await executor.execute("GET", "/balances", timeout=1)

        assert result == {"ok": 1}
        assert mock_send.call_args.args[4] == {}

    @pytest.mark.asyncio
    async def test_missing_token_proceeds_unauthenticated(self):
        """Test request without a token."""
        executor = RequestExecutor("http://api.test", auth=BearerAuth.static(None))

        with patch.object(executor, "_send", new_callable=AsyncMock, return_value={}) as mock_send:
            await executor.execute("GET", "/balances", timeout=1)

        assert mock_send.call_args.args[4] == {}

    def test_serialize_params(self):
        """Test query parameter serialization."""
        assert serialize_params({"a": None, "b": True, "c": False, "d": 7, "e": "x"}) == {
            "b": "true",
            "c": "false",
            "d": "7",
            "e": "x",
        }
        assert serialize_params(None) == {}


# =============================================================================
# Response Handling
# =============================================================================


class TestExecutorResponses:
    """Test HTTP response mapping."""

    @pytest.mark.asyncio
    async def test_success_object(self, executor):
        """Test successful JSON object response."""
        data = await executor._handle_response(make_response(200, '{"exchanges": []}'))
        assert data == {"exchanges": []}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 502, 503, 429])
    async def test_transient_statuses(self, executor, status):
        """Test retryable status codes."""
        with pytest.raises(ServerUnavailableError) as exc_info:
            await executor._handle_response(make_response(status))
        assert exc_info.value.status == status

    @pytest.mark.asyncio
    async def test_client_error_with_json_body(self, executor):
        """Test 4xx with JSON body."""
        response = make_response(401, '{"error": "invalid token"}', "Unauthorized")
        with pytest.raises(ApiResponseError) as exc_info:
            await executor._handle_response(response)

        assert exc_info.value.status == 401
        assert exc_info.value.body == {"error": "invalid token"}
        assert "invalid token" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_client_error_with_text_body(self, executor):
        """Test 4xx with text body."""
        with pytest.raises(ApiResponseError) as exc_info:
            await executor._handle_response(make_response(404, "Not Found", "Not Found"))
        assert exc_info.value.body == "Not Found"

    @pytest.mark.asyncio
    async def test_invalid_json(self, executor):
        """Test invalid JSON body."""
        with pytest.raises(MalformedResponseError):
            await executor._handle_response(make_response(200, "<html>oops</html>"))

    @pytest.mark.asyncio
    async def test_non_object_json(self, executor):
        """Test JSON body that is not an object."""
        with pytest.raises(MalformedResponseError):
            await executor._handle_response(make_response(200, "[1, 2]"))

    @pytest.mark.asyncio
    async def test_client_connection_error_maps_to_transient(self):
        """Test aiohttp connection error mapping."""
        session = MagicMock()
        session.closed = False
        session.request = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))
        executor = RequestExecutor("http://api.test", session=session)

        with pytest.raises(ConnectionFailedError):
            await executor._send("GET", "/balances", {}, None, {})

    @pytest.mark.asyncio
    async def test_close_keeps_external_session(self):
        """Test close with an external session."""
        session = MagicMock()
        session.closed = False
        session.close = AsyncMock()
        executor = RequestExecutor("http://api.test", session=session)

        await executor.close()

        session.close.assert_not_awaited()
