"""
Base class and helpers shared by the Spond sync services.

Contains the mapping rules from Spond payloads to local event fields:
type inference, status derivation and description composition.
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Any

from club_scheduler.config import get_settings
from club_scheduler.models import EventStatus, EventType
from club_scheduler.schemas.spond import SpondEvent
from club_scheduler.services.sync.repository import SpondRepository
from club_scheduler.utils.spond_ids import normalize_spond_id
from club_scheduler.utils.timestamps import as_utc, as_wall_clock, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

DEFAULT_EVENT_DURATION = timedelta(hours=1)


# ==================== Type / status mapping ====================

HEADING_KEYWORDS: tuple[tuple[tuple[str, ...], EventType], ...] = (
    (("practice", "training"), EventType.practice),
    (("game", "match"), EventType.game),
    (("meeting",), EventType.meeting),
)

TYPE_TAGS = {
    "MATCH": EventType.game,
    "TRAINING": EventType.practice,
    "PRACTICE": EventType.practice,
    "MEETING": EventType.meeting,
}


def infer_event_type(heading: str | None, type_tag: str | None = None) -> EventType:
    """Heading keywords win over the Spond type tag; anything else is Other."""
    heading_lower = (heading or "").lower()
    for keywords, event_type in HEADING_KEYWORDS:
        if any(keyword in heading_lower for keyword in keywords):
            return event_type
    return TYPE_TAGS.get((type_tag or "").upper(), EventType.other)


def derive_event_status(remote: SpondEvent, now: datetime | None = None) -> EventStatus:
    if remote.cancelled:
        return EventStatus.cancelled

    now = as_utc(now or utcnow())
    start = as_utc(remote.start_timestamp)
    if start < now:
        return EventStatus.completed
    if start - now < timedelta(hours=24):
        return EventStatus.confirmed
    return EventStatus.planned


def compose_description(heading: str | None, description: str | None) -> str:
    heading = heading or ""
    if description:
        return f"{heading}\n\n{description}" if heading else description
    return heading


def serialize_payload(payload: Any) -> str:
    if isinstance(payload, SpondEvent):
        return payload.model_dump_json(by_alias=True)
    return json.dumps(payload, default=str)


def remote_event_times(remote: SpondEvent) -> tuple[datetime, datetime]:
    """Start/end as local wall-clock values."""
    start = as_wall_clock(remote.start_timestamp)
    if remote.end_timestamp is None:
        return start, start + DEFAULT_EVENT_DURATION
    return start, as_wall_clock(remote.end_timestamp)


def remote_event_fields(
    remote: SpondEvent, payload: Any, now: datetime | None = None
) -> dict[str, Any]:
    """Local event columns refreshed from a Spond event on create and update."""
    start_time, end_time = remote_event_times(remote)
    return {
        "event_type": infer_event_type(remote.heading, remote.type_tag),
        "status": derive_event_status(remote, now),
        "start_time": start_time,
        "end_time": end_time,
        "description": compose_description(remote.heading, remote.description),
        "spond_group_id": normalize_spond_id(remote.group_id),
        "spond_data": serialize_payload(payload),
    }


def resolve_team_id(remote: SpondEvent, mappings: dict[str, int]) -> int | None:
    """Subgroup mappings are more specific than the owning group's."""
    for group_id in [*remote.subgroup_ids, remote.group_id]:
        normalized = normalize_spond_id(group_id)
        if normalized and normalized in mappings:
            return mappings[normalized]
    return None


# ==================== Base Sync Service ====================

class BaseSyncService:
    """
    Base class for the Spond sync services.

    Services hold the repository; the authenticated Spond client is passed
    into each operation by the caller that owns the session.
    """

    def __init__(self, repository: SpondRepository):
        self.repository = repository

    async def abort_run(self, result, action: str, error: Exception):
        """Mark a batch result as failed as a whole and discard pending changes."""
        await self.repository.rollback()
        logger.error(f"{action} aborted: {error}")
        result.success = False
        result.message = f"{action} failed: {error}"
        result.add_error("batch", str(error))
        return result
