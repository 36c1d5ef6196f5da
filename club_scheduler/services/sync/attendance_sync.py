"""
Attendance sync service.

Pulls the response rosters of linked Spond events, stores one participant row
per member and a count snapshot on the event itself.
"""
import logging
from datetime import datetime, timedelta
from typing import Any

from club_scheduler.config import get_settings
from club_scheduler.models import Event, RESPONSE_TYPES
from club_scheduler.schemas.sync import (
    AttendanceBatchResult,
    AttendanceCounts,
    AttendanceResult,
)
from club_scheduler.services.errors import (
    SESSION_ERRORS,
    NotFoundError,
    SpondAPIError,
    SpondSyncError,
    ValidationError,
)
from club_scheduler.services.spond_client import SpondClient
from club_scheduler.services.sync.base import BaseSyncService
from club_scheduler.utils.spond_ids import normalize_spond_id
from club_scheduler.utils.timestamps import as_wall_clock, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

# Spond has shipped both id lists and member object lists for responses
RESPONSE_KEYS: dict[str, tuple[str, ...]] = {
    "accepted": ("acceptedIds", "accepted"),
    "declined": ("declinedIds", "declined"),
    "unanswered": ("unansweredIds", "unanswered"),
    "waiting": ("waitinglistIds", "waitinglist", "waiting"),
    "unconfirmed": ("unconfirmedIds", "unconfirmed"),
}


def parse_response_time(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def build_roster(group: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    """Member id -> member object for the owning group."""
    roster: dict[str, dict[str, Any]] = {}
    if not group:
        return roster
    for member in group.get("members") or []:
        member_id = normalize_spond_id(member.get("id"))
        if member_id:
            roster[member_id] = member
    return roster


def collect_responses(
    responses: dict[str, Any], roster: dict[str, dict[str, Any]]
) -> dict[str, list[dict[str, Any]]]:
    """
    Group enriched members by response type.

    Entries are either bare member ids or member objects; names and emails
    missing from an entry are taken from the group roster.
    """
    collected: dict[str, list[dict[str, Any]]] = {response: [] for response in RESPONSE_TYPES}

    for response, keys in RESPONSE_KEYS.items():
        entries = next((responses[key] for key in keys if responses.get(key)), [])
        for entry in entries:
            raw = entry if isinstance(entry, dict) else {"id": entry}
            member_id = normalize_spond_id(raw.get("id") or raw.get("memberId"))
            if member_id is None:
                logger.warning(f"Skipping {response} response with malformed member id {raw.get('id')!r}")
                continue

            member = roster.get(member_id, {})
            collected[response].append(
                {
                    "spond_member_id": member_id,
                    "first_name": raw.get("firstName") or member.get("firstName") or "Unknown",
                    "last_name": raw.get("lastName") or member.get("lastName") or "",
                    "email": raw.get("email") or member.get("email"),
                    "response_time": parse_response_time(raw.get("respondedTime")),
                    "is_organizer": bool(raw.get("organizer") or raw.get("isOrganizer")),
                }
            )

    return collected


def count_responses(collected: dict[str, list[dict[str, Any]]]) -> AttendanceCounts:
    counts = AttendanceCounts(**{response: len(collected[response]) for response in RESPONSE_TYPES})
    counts.total = sum(len(members) for members in collected.values())
    counts.estimated_attendance = counts.accepted + counts.waiting
    return counts


class AttendanceSyncService(BaseSyncService):
    """
    Service for syncing Spond attendance.

    Handles:
    - Single event attendance (participants + snapshot)
    - Batch attendance for all linked events in a window
    """

    async def _sync_event(self, client: SpondClient, event: Event) -> AttendanceCounts:
        attendance = await client.get_event_attendance(event.spond_id)

        group = None
        if attendance.get("group_id"):
            group = await client.get_group(attendance["group_id"])

        collected = collect_responses(attendance.get("responses") or {}, build_roster(group))
        counts = count_responses(collected)

        for response, members in collected.items():
            for member in members:
                await self.repository.upsert_participant(
                    event.id,
                    member.pop("spond_member_id"),
                    response=response,
                    **member,
                )

        synced_at = utcnow()
        await self.repository.update_event(
            event,
            attendance_accepted=counts.accepted,
            attendance_declined=counts.declined,
            attendance_unanswered=counts.unanswered,
            attendance_waiting=counts.waiting,
            attendance_unconfirmed=counts.unconfirmed,
            attendance_estimated=counts.estimated_attendance,
            attendance_last_sync=synced_at,
            attendance_data={**counts.model_dump(), "synced_at": synced_at.isoformat()},
        )
        await self.repository.commit()
        return counts

    async def _sync_linked_event(self, client: SpondClient, event_id: int) -> AttendanceCounts:
        event = await self.repository.get_event(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if not event.spond_id:
            raise ValidationError("Event is not linked to Spond")
        return await self._sync_event(client, event)

    async def sync_attendance(self, client: SpondClient, event_id: int) -> AttendanceResult:
        """
        Sync attendance for a single linked event.

        Args:
            client: Authenticated Spond client
            event_id: Local event id

        Returns:
            AttendanceResult with the stored counts
        """
        try:
            counts = await self._sync_linked_event(client, event_id)
        except SpondSyncError as e:
            await self.repository.rollback()
            logger.warning(f"Attendance sync failed for event {event_id}: {e}")
            return AttendanceResult(success=False, event_id=event_id, error=str(e))

        logger.info(
            f"Attendance for event {event_id}: {counts.accepted} accepted, "
            f"{counts.declined} declined, {counts.waiting} waiting"
        )
        return AttendanceResult(success=True, event_id=event_id, attendance=counts)

    async def sync_all_attendance(
        self,
        client: SpondClient,
        only_future: bool = True,
        days_ahead: int | None = None,
        days_behind: int | None = None,
        now: datetime | None = None,
    ) -> AttendanceBatchResult:
        """
        Sync attendance for every linked event in the window.

        A failed login, an unreachable host or rate limiting stops the run and
        marks it failed; any other error is recorded against its event.
        """
        result = AttendanceBatchResult()
        now = as_wall_clock(now or utcnow())
        days_ahead = days_ahead if days_ahead is not None else settings.spond_attendance_days_ahead
        days_behind = days_behind if days_behind is not None else settings.spond_default_days_behind

        start = now if only_future else now - timedelta(days=days_behind)
        end = now + timedelta(days=days_ahead)
        events = await self.repository.find_linked_events_in_window(start, end)
        event_ids = [event.id for event in events]
        logger.info(f"Syncing attendance for {len(event_ids)} linked events")

        try:
            await client.ensure_authenticated()
        except SpondAPIError as e:
            return await self.abort_run(result, "Attendance sync", e)

        for event_id in event_ids:
            try:
                await self._sync_linked_event(client, event_id)
            except SESSION_ERRORS as e:
                return await self.abort_run(result, "Attendance sync", e)
            except Exception as e:
                await self.repository.rollback()
                logger.warning(f"Attendance sync failed for event {event_id}: {e}")
                result.failed += 1
                result.add_error(f"Event {event_id}", str(e))
                continue
            result.updated += 1

        result.message = f"Synced attendance for {result.updated} events, {result.failed} failed"
        logger.info(result.message)
        return result
