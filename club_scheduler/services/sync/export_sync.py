"""
Event export service.

Pushes local events to Spond and keeps the resulting link on the local row.
Spond requires subgroups to be addressed through their parent group, so the
team's mapping decides both the primary recipient and the sub-audience.
"""
import logging
from datetime import datetime
from typing import Any

from club_scheduler.models import Event, EventStatus, EventType
from club_scheduler.schemas.sync import ExportCandidate, ExportResult, ExportValidation, SyncResult
from club_scheduler.services.errors import (
    SESSION_ERRORS,
    ConflictError,
    NotFoundError,
    ProtocolError,
    SpondAPIError,
    SpondSyncError,
    ValidationError,
)
from club_scheduler.services.spond_client import SpondClient, format_timestamp
from club_scheduler.services.sync.base import BaseSyncService, serialize_payload
from club_scheduler.services.sync.repository import TeamGroupSettings
from club_scheduler.utils.location_matcher import VenueInfo
from club_scheduler.utils.spond_ids import normalize_spond_id

logger = logging.getLogger(__name__)


def event_heading(event: Event) -> str:
    if event.name:
        return event.name
    if event.description:
        first_line = event.description.split("\n")[0].strip()
        if first_line:
            return first_line
    event_type = event.event_type.value if event.event_type else EventType.other.value
    return f"{event_type} Event"


def build_remote_payload(event: Event, venue: VenueInfo | None = None) -> dict[str, Any]:
    """Spond event body for a local event (recipients are added by the client)."""
    payload: dict[str, Any] = {
        "heading": event_heading(event),
        "description": event.description or "",
        "startTimestamp": format_timestamp(event.start_time),
        "endTimestamp": format_timestamp(event.end_time),
        "spilesType": "MATCH" if event.event_type == EventType.game else "EVENT",
    }
    if venue is not None and not venue.is_empty:
        payload["location"] = {
            "address": venue.text or None,
            "latitude": venue.latitude,
            "longitude": venue.longitude,
        }
    return payload


def resolve_recipients(target_group_id: str, group_settings: TeamGroupSettings | None) -> tuple[str, list[str]]:
    """
    Return (recipient group, subgroup ids) for a target group.

    A subgroup is never the primary recipient: the parent group receives the
    event and the subgroup is passed as its sub-audience.
    """
    if group_settings is not None and group_settings.is_subgroup:
        return group_settings.parent_group_id, [group_settings.group_id]
    return target_group_id, []


class EventExportService(BaseSyncService):
    """
    Service for pushing local events to Spond.

    Handles:
    - Single and bulk export (create in Spond, store the link locally)
    - Updating an already exported event through the explicit update path
    - Read-only classification of export candidates before a bulk push
    """

    async def _resolve_addressing(
        self, event: Event, target_group_id: str | None
    ) -> tuple[str, list[str]]:
        team_settings = await self.repository.find_team_subgroup_settings(event.team_id)

        if target_group_id:
            target = normalize_spond_id(target_group_id)
            if target is None:
                raise ValidationError(f"Invalid Spond group id {target_group_id!r}")
            if team_settings is not None and team_settings.group_id == target:
                group_settings = team_settings
            else:
                group_settings = await self.repository.find_group_settings(target)
        else:
            if team_settings is None or team_settings.group_id is None:
                raise ValidationError(
                    f"Event {event.id} has no Spond group: its team is not linked to Spond"
                )
            target = team_settings.group_id
            group_settings = team_settings

        return resolve_recipients(target, group_settings)

    async def _export(
        self, client: SpondClient, event_id: int, target_group_id: str | None
    ) -> str:
        event = await self.repository.get_event(event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        if event.spond_id:
            raise ConflictError(
                f"Event {event_id} is already linked to Spond event {event.spond_id}; "
                "use the update path instead"
            )

        recipient, subgroup_ids = await self._resolve_addressing(event, target_group_id)
        venue = await self.repository.get_venue(event.field_id)
        payload = build_remote_payload(event, venue)

        created = await client.create_event(recipient, payload, subgroup_ids=subgroup_ids or None)
        spond_id = normalize_spond_id(created.get("id"))
        if spond_id is None:
            raise ProtocolError(f"Spond returned malformed event id {created.get('id')!r}")

        await self.repository.update_event(
            event,
            spond_id=spond_id,
            spond_group_id=recipient,
            spond_data=serialize_payload(created),
        )
        await self.repository.commit()
        logger.info(f"Exported event {event_id} to Spond event {spond_id} (group {recipient})")
        return spond_id

    async def export_event(
        self,
        client: SpondClient,
        event_id: int,
        target_group_id: str | None = None,
    ) -> ExportResult:
        """
        Create a Spond event for a local event and link them.

        Args:
            client: Authenticated Spond client
            event_id: Local event id
            target_group_id: Spond group to address; defaults to the team's mapping

        Returns:
            ExportResult with the new Spond id, or the error that prevented the export
        """
        try:
            spond_id = await self._export(client, event_id, target_group_id)
        except SpondSyncError as e:
            await self.repository.rollback()
            logger.warning(f"Export of event {event_id} failed: {e}")
            return ExportResult(success=False, event_id=event_id, error=str(e))
        return ExportResult(success=True, event_id=event_id, spond_event_id=spond_id)

    async def export_events(
        self,
        client: SpondClient,
        event_ids: list[int],
        target_group_id: str | None = None,
    ) -> SyncResult:
        result = SyncResult()
        try:
            await client.ensure_authenticated()
        except SpondAPIError as e:
            return await self.abort_run(result, "Export", e)

        for event_id in event_ids:
            try:
                await self._export(client, event_id, target_group_id)
            except SESSION_ERRORS as e:
                return await self.abort_run(result, "Export", e)
            except Exception as e:
                await self.repository.rollback()
                logger.warning(f"Export of event {event_id} failed: {e}")
                result.add_error(f"Event {event_id}", str(e))
                continue
            result.exported += 1

        result.message = f"Pushed {result.exported} events, {len(result.errors)} failed"
        logger.info(result.message)
        return result

    async def update_remote_event(self, client: SpondClient, event_id: int) -> ExportResult:
        """Push local changes of an already exported event to Spond."""
        try:
            event = await self.repository.get_event(event_id)
            if event is None:
                raise NotFoundError(f"Event {event_id} not found")
            if not event.spond_id:
                raise ValidationError(f"Event {event_id} is not linked to Spond")

            payload = build_remote_payload(event, await self.repository.get_venue(event.field_id))
            payload.pop("spilesType", None)
            payload["cancelled"] = event.status == EventStatus.cancelled

            updated = await client.update_event(event.spond_id, payload)
            await self.repository.update_event(event, spond_data=serialize_payload(updated))
            await self.repository.commit()
        except SpondSyncError as e:
            await self.repository.rollback()
            logger.warning(f"Update of Spond event for local event {event_id} failed: {e}")
            return ExportResult(success=False, event_id=event_id, error=str(e))

        return ExportResult(success=True, event_id=event_id, spond_event_id=event.spond_id)

    async def validate_export(
        self,
        client: SpondClient,
        start: datetime,
        end: datetime,
        team_id: int | None = None,
    ) -> ExportValidation:
        """
        Classify the events in [start, end] before a bulk export.

        Nothing is written: linked events are checked against Spond to detect
        links whose remote event was deleted, unlinked ones against the team
        mappings.
        """
        validation = ExportValidation()
        events = await self.repository.find_events_in_window(start, end, team_id)
        settings_cache: dict[int, TeamGroupSettings | None] = {}

        for event in events:
            candidate = ExportCandidate(
                event_id=event.id,
                name=event.name,
                start_time=event.start_time,
                team_id=event.team_id,
                spond_id=event.spond_id,
                spond_group_id=event.spond_group_id,
            )

            if event.spond_id:
                remote = await client.get_event(event.spond_id)
                if remote is None:
                    candidate.reason = "Linked Spond event no longer exists"
                    validation.conflicting.append(candidate)
                else:
                    validation.already_exported.append(candidate)
                continue

            if event.team_id is None:
                candidate.reason = "Event has no team"
                validation.not_exportable.append(candidate)
                continue

            if event.team_id not in settings_cache:
                settings_cache[event.team_id] = await self.repository.find_team_subgroup_settings(
                    event.team_id
                )
            team_settings = settings_cache[event.team_id]
            if team_settings is None or team_settings.group_id is None:
                candidate.reason = "Team is not linked to a Spond group"
                validation.not_exportable.append(candidate)
                continue

            candidate.spond_group_id = team_settings.group_id
            validation.ready.append(candidate)

        logger.info(
            f"Export validation {start:%Y-%m-%d}..{end:%Y-%m-%d}: "
            f"{len(validation.ready)} ready, {len(validation.already_exported)} exported, "
            f"{len(validation.conflicting)} conflicting, {len(validation.not_exportable)} not exportable"
        )
        return validation
