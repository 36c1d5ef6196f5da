"""
Event import service.

Pulls a window of Spond events and reconciles each one with the local
store through the MatchEngine. Every event is applied and committed on its
own so that one bad payload never aborts the batch.
"""
import logging
from datetime import datetime, timedelta
from typing import Any

from club_scheduler.config import get_settings
from club_scheduler.schemas.spond import SpondEvent
from club_scheduler.schemas.sync import SyncResult
from club_scheduler.services.errors import SpondSyncError, ValidationError
from club_scheduler.services.spond_client import SpondClient
from club_scheduler.services.sync.base import (
    BaseSyncService,
    remote_event_fields,
    resolve_team_id,
    serialize_payload,
)
from club_scheduler.services.sync.match_engine import MatchAction, MatchEngine
from club_scheduler.services.sync.repository import SpondRepository
from club_scheduler.utils.spond_ids import normalize_spond_id
from club_scheduler.utils.timestamps import utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


def _item_label(payload: Any, index: int) -> str:
    if isinstance(payload, dict) and payload.get("id"):
        return str(payload["id"])
    return f"#{index + 1}"


class EventImportService(BaseSyncService):
    """
    Service for importing Spond events.

    Handles:
    - Refreshing events already linked to Spond (update)
    - Attaching Spond ids to matching unlinked local events (link)
    - Creating local events for everything else (create)
    """

    def __init__(self, repository: SpondRepository, match_engine: MatchEngine | None = None):
        super().__init__(repository)
        self.match_engine = match_engine or MatchEngine(repository)

    async def import_events(
        self,
        client: SpondClient,
        group_id: str | None = None,
        days_ahead: int | None = None,
        days_behind: int | None = None,
        now: datetime | None = None,
    ) -> SyncResult:
        """
        Import events starting in [now - days_behind, now + days_ahead].

        Args:
            client: Authenticated Spond client
            group_id: Optional Spond group filter
            days_ahead: Window end in days from now
            days_behind: Window start in days before now

        Returns:
            SyncResult with imported/updated/linked counts and per-event errors
        """
        result = SyncResult()
        now = now or utcnow()
        days_ahead = days_ahead if days_ahead is not None else settings.spond_default_days_ahead
        days_behind = days_behind if days_behind is not None else settings.spond_default_days_behind

        try:
            group_filter = None
            if group_id:
                group_filter = normalize_spond_id(group_id)
                if group_filter is None:
                    raise ValidationError(f"Invalid Spond group id {group_id!r}")

            mappings = await self.repository.find_team_group_mappings()
            events = await client.get_events(
                group_id=group_filter,
                min_start=now - timedelta(days=days_behind),
                max_start=now + timedelta(days=days_ahead),
                max_events=settings.spond_import_max_events,
            )
        except SpondSyncError as e:
            logger.error(f"Spond event import failed before processing: {e}")
            result.success = False
            result.message = f"Sync failed: {e}"
            result.add_error("batch", str(e))
            return result

        logger.info(f"Found {len(events)} Spond events to sync")

        for index, payload in enumerate(events):
            label = _item_label(payload, index)
            try:
                action = await self._import_one(payload, mappings, now)
            except Exception as e:
                await self.repository.rollback()
                logger.warning(f"Failed to import Spond event {label}: {e}")
                result.add_error(label, str(e))
                continue

            if action is MatchAction.create:
                result.imported += 1
            elif action is MatchAction.update:
                result.updated += 1
            else:
                result.linked += 1

        result.message = (
            f"Sync completed: {result.imported} imported, {result.updated} updated, "
            f"{result.linked} linked"
        )
        if result.errors:
            result.message += f", {len(result.errors)} failed"
        logger.info(result.message)
        return result

    async def _import_one(
        self, payload: dict[str, Any], mappings: dict[str, int], now: datetime
    ) -> MatchAction:
        remote = SpondEvent.model_validate(payload)
        decision = await self.match_engine.resolve(remote)
        spond_id = normalize_spond_id(remote.id)
        team_id = resolve_team_id(remote, mappings)

        if decision.action is MatchAction.update:
            event = decision.event
            fields = remote_event_fields(remote, payload, now)
            # Team assignment is only filled in, never overwritten
            if event.team_id is None and team_id is not None:
                fields["team_id"] = team_id
                if not event.team_ids:
                    fields["team_ids"] = [team_id]
            await self.repository.update_event(event, **fields)

        elif decision.action is MatchAction.link:
            event = decision.event
            # User-entered fields (name, description, times, team) stay untouched
            await self.repository.update_event(
                event,
                spond_id=spond_id,
                spond_group_id=normalize_spond_id(remote.group_id),
                spond_data=serialize_payload(payload),
            )
            logger.info(f"Linked Spond event {spond_id} to local event {event.id}")

        else:
            event = await self.repository.insert_event(
                name=remote.heading,
                spond_id=spond_id,
                team_id=team_id,
                team_ids=[team_id] if team_id is not None else None,
                **remote_event_fields(remote, payload, now),
            )
            logger.info(f"Created local event {event.id} from Spond event {spond_id}")

        await self.repository.commit()
        return decision.action
