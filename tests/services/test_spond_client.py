from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from club_scheduler.config import get_settings
from club_scheduler.services.errors import (
    AuthError,
    NetworkError,
    NotFoundError,
    ProtocolError,
    RateLimitError,
)
from club_scheduler.services.spond_client import SpondClient, format_timestamp

BASE_URL = "https://api.spond.com/core/v1"
GROUP_ID = "6F1A2B3C4D5E6F708192A3B4C5D6E7F8"
SUBGROUP_ID = "0A1B2C3D4E5F60718293A4B5C6D7E8F9"
EVENT_ID = "11112222333344445555666677778888"

REQUEST_PATH = "club_scheduler.services.spond_client.httpx.AsyncClient.request"


def make_response(status_code: int, payload=None, method: str = "GET", path: str = "") -> httpx.Response:
    return httpx.Response(
        status_code,
        json=payload,
        request=httpx.Request(method, f"{BASE_URL}/{path}"),
    )


def login_response() -> httpx.Response:
    return make_response(200, {"loginToken": "token-123"}, "POST", "login")


def test_format_timestamp_uses_utc_millis_and_z_suffix():
    assert format_timestamp(datetime(2026, 11, 5, 18, 0)) == "2026-11-05T18:00:00.000Z"
    aware = datetime(2026, 11, 5, 18, 0, tzinfo=timezone.utc)
    assert format_timestamp(aware) == "2026-11-05T18:00:00.000Z"


@pytest.mark.asyncio
class TestSpondClientRequest:
    async def test_get_request_does_not_send_json_body(self):
        with patch(REQUEST_PATH, new=AsyncMock(return_value=make_response(200, []))) as request_mock:
            client = SpondClient("coach@example.org", "secret")
            await client._make_request("get", f"{BASE_URL}/groups/", json={"x": 1})

        _, kwargs = request_mock.call_args
        assert "json" not in kwargs

    async def test_retry_on_transient_network_error(self):
        response = make_response(200, [])
        request_mock = AsyncMock(side_effect=[httpx.ConnectTimeout("timeout"), response])

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            result = await client._make_request("get", f"{BASE_URL}/groups/")

        assert result is response
        assert request_mock.await_count == 2


@pytest.mark.asyncio
class TestSpondClientAuth:
    async def test_login_posts_credentials_and_stores_token(self):
        with patch(REQUEST_PATH, new=AsyncMock(return_value=login_response())) as request_mock:
            client = SpondClient("coach@example.org", "secret")
            await client.login()

        assert client.token == "token-123"
        args, kwargs = request_mock.call_args
        assert args[0] == "POST"
        assert args[1] == f"{BASE_URL}/login"
        assert kwargs["json"] == {"email": "coach@example.org", "password": "secret"}

    async def test_login_rejected_credentials_raise_auth_error(self):
        with patch(REQUEST_PATH, new=AsyncMock(return_value=make_response(401, {}, "POST", "login"))):
            client = SpondClient("coach@example.org", "wrong")
            with pytest.raises(AuthError):
                await client.login()

        assert client.token is None

    async def test_login_without_token_is_protocol_error(self):
        with patch(REQUEST_PATH, new=AsyncMock(return_value=make_response(200, {}, "POST", "login"))):
            client = SpondClient("coach@example.org", "secret")
            with pytest.raises(ProtocolError):
                await client.login()

    async def test_test_connection_reports_failure_without_raising(self):
        with patch(REQUEST_PATH, new=AsyncMock(return_value=make_response(403, {}, "POST", "login"))):
            client = SpondClient("coach@example.org", "wrong")
            result = await client.test_connection()

        assert result["success"] is False
        assert result["group_count"] is None


@pytest.mark.asyncio
class TestSpondClientEvents:
    async def test_get_events_logs_in_once_and_sends_filters(self):
        events = [{"id": EVENT_ID, "heading": "Practice", "startTimestamp": "2026-11-05T18:00:00.000Z"}]
        request_mock = AsyncMock(side_effect=[login_response(), make_response(200, events, path="sponds/")])

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            result = await client.get_events(
                group_id=GROUP_ID,
                min_start=datetime(2026, 11, 1, tzinfo=timezone.utc),
                max_start=datetime(2026, 12, 1, tzinfo=timezone.utc),
                max_events=50,
            )

        assert result == events
        assert client.events == events
        args, kwargs = request_mock.call_args
        assert args == ("GET", f"{BASE_URL}/sponds/")
        assert kwargs["headers"]["Authorization"] == "Bearer token-123"
        assert kwargs["params"]["GroupId"] == GROUP_ID
        assert kwargs["params"]["minStartTimestamp"] == "2026-11-01T00:00:00.000Z"
        assert kwargs["params"]["max"] == 50

    async def test_get_events_without_cap_sends_default_max(self):
        request_mock = AsyncMock(side_effect=[login_response(), make_response(200, [], path="sponds/")])

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            await client.get_events()

        _, kwargs = request_mock.call_args
        assert kwargs["params"]["max"] == get_settings().spond_default_max_events

    async def test_get_event_returns_none_when_deleted(self):
        request_mock = AsyncMock(side_effect=[login_response(), make_response(404, {})])

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            assert await client.get_event(EVENT_ID) is None

    async def test_get_event_attendance_missing_event_is_not_found(self):
        request_mock = AsyncMock(side_effect=[login_response(), make_response(404, {})])

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            with pytest.raises(NotFoundError):
                await client.get_event_attendance(EVENT_ID)

    async def test_create_event_addresses_parent_group_with_subgroups(self):
        created = {"id": EVENT_ID, "heading": "Flag Practice"}
        request_mock = AsyncMock(
            side_effect=[login_response(), make_response(200, created, "POST", "sponds/")]
        )

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            result = await client.create_event(
                GROUP_ID, {"heading": "Flag Practice"}, subgroup_ids=[SUBGROUP_ID]
            )

        assert result == created
        _, kwargs = request_mock.call_args
        assert kwargs["json"]["recipients"] == {
            "group": {"id": GROUP_ID},
            "subGroups": [{"id": SUBGROUP_ID}],
        }
        assert kwargs["json"]["heading"] == "Flag Practice"

    async def test_delete_event_tolerates_already_deleted(self):
        request_mock = AsyncMock(
            side_effect=[login_response(), make_response(404, {}, "DELETE", f"sponds/{EVENT_ID}")]
        )

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            await client.delete_event(EVENT_ID)

        args, _ = request_mock.call_args
        assert args[0] == "DELETE"
        assert args[1] == f"{BASE_URL}/sponds/{EVENT_ID}"

    async def test_rate_limit_maps_to_rate_limit_error(self):
        request_mock = AsyncMock(side_effect=[login_response(), make_response(429, {})])

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            with pytest.raises(RateLimitError) as exc_info:
                await client.get_groups()

        assert exc_info.value.status_code == 429

    async def test_rejected_session_on_data_call_is_auth_error_without_relogin(self):
        request_mock = AsyncMock(
            side_effect=[login_response(), make_response(401, {}, path="groups/")]
        )

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            with pytest.raises(AuthError) as exc_info:
                await client.get_groups()

        assert exc_info.value.status_code == 401
        assert request_mock.await_count == 2
        assert client.token == "token-123"

    async def test_exhausted_retries_raise_network_error(self):
        request_mock = AsyncMock(
            side_effect=[login_response()] + [httpx.ConnectError("connection refused")] * 3
        )

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            with pytest.raises(NetworkError):
                await client.get_groups()

        assert request_mock.await_count == 4

    async def test_server_error_maps_to_protocol_error(self):
        request_mock = AsyncMock(side_effect=[login_response(), make_response(500, {})])

        with patch(REQUEST_PATH, new=request_mock):
            client = SpondClient("coach@example.org", "secret")
            with pytest.raises(ProtocolError):
                await client.get_groups()
