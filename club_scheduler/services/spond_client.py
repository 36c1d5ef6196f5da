import httpx
import logging
from datetime import datetime, timezone
from typing import Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from club_scheduler.config import get_settings
from club_scheduler.services.errors import (
    AuthError,
    NetworkError,
    NotFoundError,
    ProtocolError,
    RateLimitError,
    SpondAPIError,
)
from club_scheduler.utils.spond_ids import same_spond_id
from club_scheduler.utils.timestamps import as_utc

settings = get_settings()
logger = logging.getLogger(__name__)

# Exceptions to retry on
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime the way the Spond API expects (UTC, millis, Z suffix)."""
    return as_utc(value).astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class SpondClient:
    """Client for the Spond API (https://api.spond.com/core/v1)"""

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.username = username
        self.password = password
        self.base_url = (base_url or settings.spond_api_base_url).rstrip("/")
        self.timeout = timeout or settings.spond_request_timeout_seconds
        self.token: str | None = None

        # Last fetched snapshots
        self.groups: list[dict[str, Any]] | None = None
        self.events: list[dict[str, Any]] | None = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _make_request(
        self,
        method: str,
        url: str,
        headers: dict | None = None,
        params: dict | None = None,
        json: dict | None = None,
    ) -> httpx.Response:
        """
        Make an HTTP request with automatic retry on transient failures.

        Retries up to 3 times with exponential backoff on connection timeouts,
        read timeouts and connection errors. Status codes are not checked here.
        """
        kwargs: dict[str, Any] = {
            "headers": headers,
            "params": params,
            "timeout": self.timeout,
        }
        if method.lower() != "get" and json is not None:
            kwargs["json"] = json

        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await client.request(method.upper(), url, **kwargs)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._make_request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"Spond request {method.upper()} {url} failed: {e}")
            raise NetworkError(
                "Cannot reach Spond servers. Please check your internet connection."
            ) from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(
                "Spond returned a response that is not JSON",
                status_code=response.status_code,
                body=response.text[:500],
            ) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        status = response.status_code
        body = response.text
        if status in (401, 403):
            raise AuthError(f"Failed to {action}: Spond rejected the session ({status})", status, body)
        if status == 429:
            raise RateLimitError(f"Failed to {action}: too many requests", status, body)
        raise ProtocolError(f"Failed to {action}: {status} {response.reason_phrase}", status, body)

    @property
    def auth_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

    # ==================== Authentication ====================

    async def login(self) -> None:
        """Exchange credentials for a bearer token."""
        logger.info(f"Spond login for {self.username}")
        response = await self._send(
            "post",
            f"{self.base_url}/login",
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            json={"email": self.username, "password": self.password},
        )

        status = response.status_code
        if status in (401, 403):
            raise AuthError(
                "Invalid email or password. Please check your Spond credentials.",
                status,
                response.text,
            )
        if status == 429:
            raise RateLimitError(
                "Too many login attempts. Please wait a few minutes and try again.",
                status,
                response.text,
            )
        if not response.is_success:
            raise ProtocolError(
                f"Spond login failed ({status}): {response.reason_phrase}", status, response.text
            )

        data = self._json(response)
        token = data.get("loginToken") if isinstance(data, dict) else None
        if not token:
            raise ProtocolError(
                "Spond login failed: no authentication token received",
                status,
                response.text[:200],
            )

        self.token = token
        logger.info("Spond authentication successful")

    async def ensure_authenticated(self) -> None:
        """Log in once if no token is cached. Expired tokens are not refreshed."""
        if not self.token:
            await self.login()

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        params: dict | None = None,
        json: dict | None = None,
        allow_not_found: bool = False,
    ) -> httpx.Response | None:
        await self.ensure_authenticated()
        response = await self._send(
            method,
            f"{self.base_url}/{path}",
            headers=self.auth_headers,
            params=params,
            json=json,
        )
        if allow_not_found and response.status_code == 404:
            return None
        self._raise_for_status(response, action)
        return response

    # ==================== Groups ====================

    async def get_groups(self) -> list[dict[str, Any]]:
        """Get all groups with their members and subgroups."""
        response = await self._request(
            "get", "groups/", "fetch groups", params={"includeMembers": "true"}
        )
        data = self._json(response)
        if not isinstance(data, list):
            raise ProtocolError("Unexpected groups payload", response.status_code, response.text[:200])

        self.groups = data
        logger.info(f"Retrieved {len(data)} Spond groups")
        return data

    async def get_group(self, group_id: str) -> dict[str, Any] | None:
        """Find a group in the cached snapshot, fetching it on first use."""
        if self.groups is None:
            await self.get_groups()
        for group in self.groups or []:
            if same_spond_id(group.get("id"), group_id):
                return group
        return None

    # ==================== Events ====================

    async def get_events(
        self,
        group_id: str | None = None,
        subgroup_id: str | None = None,
        min_start: datetime | None = None,
        max_start: datetime | None = None,
        max_events: int | None = None,
        include_hidden: bool = False,
    ) -> list[dict[str, Any]]:
        """Get events, optionally filtered by group and start window."""
        params: dict[str, Any] = {}
        if group_id:
            params["GroupId"] = group_id
        if subgroup_id:
            params["subgroupId"] = subgroup_id
        if include_hidden:
            params["includeHidden"] = "true"
        if min_start:
            params["minStartTimestamp"] = format_timestamp(min_start)
        if max_start:
            params["maxStartTimestamp"] = format_timestamp(max_start)
        params["max"] = max_events or settings.spond_default_max_events

        response = await self._request("get", "sponds/", "fetch events", params=params)
        data = self._json(response)
        if not isinstance(data, list):
            raise ProtocolError("Unexpected events payload", response.status_code, response.text[:200])

        self.events = data
        logger.info(f"Retrieved {len(data)} Spond events")
        return data

    async def get_event(self, event_id: str) -> dict[str, Any] | None:
        """Get a single event including its responses. Returns None if it no longer exists."""
        response = await self._request(
            "get", f"sponds/{event_id}", "fetch event", allow_not_found=True
        )
        if response is None:
            return None
        return self._json(response)

    async def get_event_attendance(self, event_id: str) -> dict[str, Any]:
        """
        Get the raw response rosters of an event.

        Returns dict with:
            - event_id: the requested id
            - group_id: owning group id (for roster cross-referencing)
            - responses: Spond ``responses`` object (id lists or member objects)
        """
        event = await self.get_event(event_id)
        if event is None:
            raise NotFoundError(f"Spond event {event_id} not found")

        recipients = event.get("recipients") or {}
        group = recipients.get("group") or {}
        return {
            "event_id": event.get("id", event_id),
            "group_id": group.get("id"),
            "responses": event.get("responses") or {},
        }

    async def create_event(
        self,
        group_id: str,
        payload: dict[str, Any],
        subgroup_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        """
        Create an event addressed to ``group_id``.

        Subgroups are never primary recipients; they are passed as a
        sub-audience of their parent group.
        """
        recipients: dict[str, Any] = {"group": {"id": group_id}}
        if subgroup_ids:
            recipients["subGroups"] = [{"id": sid} for sid in subgroup_ids]

        body = {
            "spilesType": "EVENT",
            "autoAccept": False,
            **payload,
            "recipients": recipients,
        }
        response = await self._request("post", "sponds/", "create event", json=body)
        created = self._json(response)
        if not isinstance(created, dict) or not created.get("id"):
            raise ProtocolError("Created event has no id", response.status_code, response.text[:200])

        logger.info(f"Created Spond event {created['id']} for group {group_id}")
        return created

    async def update_event(self, event_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Update an event. Spond uses POST on the event resource for updates."""
        response = await self._request(
            "post", f"sponds/{event_id}", "update event", json=payload
        )
        logger.info(f"Updated Spond event {event_id}")
        return self._json(response)

    async def delete_event(self, event_id: str) -> None:
        response = await self._request(
            "delete", f"sponds/{event_id}", "delete event", allow_not_found=True
        )
        if response is None:
            logger.info(f"Spond event {event_id} was already deleted")
            return
        logger.info(f"Deleted Spond event {event_id}")

    # ==================== Diagnostics ====================

    async def test_connection(self) -> dict[str, Any]:
        """Log in from scratch and list groups."""
        self.token = None
        try:
            await self.login()
            groups = await self.get_groups()
        except SpondAPIError as e:
            return {"success": False, "message": f"Connection failed: {e}", "group_count": None}
        return {
            "success": True,
            "message": f"Connected successfully. Found {len(groups)} group(s).",
            "group_count": len(groups),
        }

    def clear_cache(self) -> None:
        self.groups = None
        self.events = None
