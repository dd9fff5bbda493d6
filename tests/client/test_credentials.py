import asyncio
from unittest.mock import AsyncMock

import pytest

from metabase_mcp._exceptions import AuthenticationError, UpstreamApiError
from metabase_mcp.client import API_KEY_HEADER, SESSION_HEADER, CredentialManager
from metabase_mcp.config import AuthMethod


@pytest.mark.asyncio
async def test_api_key_mode_never_logs_in(api_key_config):
    login = AsyncMock()
    manager = CredentialManager(api_key_config, login=login)

    assert manager.auth_method is AuthMethod.API_KEY
    assert await manager.get_credential() == "test-api-key"
    assert await manager.auth_headers() == {API_KEY_HEADER: "test-api-key"}
    login.assert_not_called()
    assert manager.has_session_token is False


@pytest.mark.asyncio
async def test_session_mode_logs_in_once_and_caches(session_config):
    login = AsyncMock(return_value={"id": "tok-1"})
    manager = CredentialManager(session_config, login=login)

    assert await manager.auth_headers() == {SESSION_HEADER: "tok-1"}
    assert await manager.auth_headers() == {SESSION_HEADER: "tok-1"}

    login.assert_awaited_once_with(
        {"username": "analyst@example.com", "password": "s3cret"}
    )
    assert manager.has_session_token is True


@pytest.mark.asyncio
async def test_concurrent_first_use_at_most_one_login_per_task(session_config):
    tokens = iter(["tok-a", "tok-b", "tok-c"])

    async def slow_login(body):
        await asyncio.sleep(0.01)
        return {"id": next(tokens)}

    login = AsyncMock(side_effect=slow_login)
    manager = CredentialManager(session_config, login=login)

    results = await asyncio.gather(*(manager.get_credential() for _ in range(3)))

    assert login.await_count <= 3
    assert all(r in {"tok-a", "tok-b", "tok-c"} for r in results)

    cached = await manager.get_credential()
    calls_after = login.await_count
    assert await manager.get_credential() == cached
    assert login.await_count == calls_after


@pytest.mark.asyncio
async def test_login_failure_raises_authentication_error(session_config):
    login = AsyncMock(side_effect=UpstreamApiError(401, "Unauthorized", {"message": "bad creds"}))
    manager = CredentialManager(session_config, login=login)

    with pytest.raises(AuthenticationError, match="Failed to authenticate with Metabase") as exc_info:
        await manager.get_credential()
    assert isinstance(exc_info.value.__cause__, UpstreamApiError)
    assert manager.has_session_token is False


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [{}, {"id": None}, {"id": ""}, ["not", "a", "dict"]])
async def test_login_response_without_id(session_config, response):
    manager = CredentialManager(session_config, login=AsyncMock(return_value=response))
    with pytest.raises(AuthenticationError):
        await manager.get_credential()


@pytest.mark.asyncio
async def test_failed_login_is_retried_on_next_use(session_config):
    login = AsyncMock(side_effect=[RuntimeError("network down"), {"id": "tok-2"}])
    manager = CredentialManager(session_config, login=login)

    with pytest.raises(AuthenticationError):
        await manager.get_credential()
    assert await manager.get_credential() == "tok-2"
    assert login.await_count == 2
