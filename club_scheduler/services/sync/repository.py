"""
Persistence boundary of the Spond sync engine.

Sync services never build queries themselves; everything they read from or
write to the club database goes through ``SpondRepository`` so the engine can
be exercised against any session (or a test double with the same methods).
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from club_scheduler.models import (
    Event,
    EventParticipant,
    Field,
    Site,
    SpondConfig,
    SpondSyncLog,
    Team,
)
from club_scheduler.utils.location_matcher import VenueInfo
from club_scheduler.utils.spond_ids import normalize_spond_id
from club_scheduler.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TeamGroupSettings:
    """How a local team is addressed in Spond."""

    team_id: int
    group_id: str | None
    parent_group_id: str | None

    @property
    def is_subgroup(self) -> bool:
        return bool(self.group_id and self.parent_group_id)


class SpondRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Events ====================

    async def get_event(self, event_id: int) -> Event | None:
        return await self.db.get(Event, event_id)

    async def find_event_by_remote_id(self, spond_id: str) -> Event | None:
        normalized = normalize_spond_id(spond_id)
        if normalized is None:
            return None
        result = await self.db.execute(select(Event).where(Event.spond_id == normalized))
        return result.scalar_one_or_none()

    async def find_unlinked_events_in_window(self, start: datetime, end: datetime) -> list[Event]:
        """Unlinked events starting in [start, end], earliest first."""
        result = await self.db.execute(
            select(Event)
            .where(
                Event.spond_id.is_(None),
                Event.start_time >= start,
                Event.start_time <= end,
            )
            .order_by(Event.start_time, Event.id)
        )
        return list(result.scalars().all())

    async def find_linked_events_in_window(
        self, start: datetime | None, end: datetime | None
    ) -> list[Event]:
        query = select(Event).where(Event.spond_id.is_not(None))
        if start is not None:
            query = query.where(Event.start_time >= start)
        if end is not None:
            query = query.where(Event.start_time <= end)
        result = await self.db.execute(query.order_by(Event.start_time, Event.id))
        return list(result.scalars().all())

    async def find_events_in_window(
        self, start: datetime, end: datetime, team_id: int | None = None
    ) -> list[Event]:
        query = select(Event).where(Event.start_time >= start, Event.start_time <= end)
        if team_id is not None:
            query = query.where(Event.team_id == team_id)
        result = await self.db.execute(query.order_by(Event.start_time, Event.id))
        return list(result.scalars().all())

    async def insert_event(self, **values: Any) -> Event:
        event = Event(**values)
        self.db.add(event)
        await self.db.flush()
        return event

    async def update_event(self, event: Event, **values: Any) -> Event:
        for key, value in values.items():
            setattr(event, key, value)
        event.updated_at = utcnow()
        await self.db.flush()
        return event

    async def get_venue(self, field_id: int | None) -> VenueInfo | None:
        """Describe the field/site of an event for location matching."""
        if field_id is None:
            return None
        result = await self.db.execute(
            select(
                Field.name,
                Site.name,
                Site.address,
                Site.city,
                Site.latitude,
                Site.longitude,
            )
            .outerjoin(Site, Field.site_id == Site.id)
            .where(Field.id == field_id)
        )
        row = result.first()
        if row is None:
            return None
        field_name, site_name, address, city, latitude, longitude = row
        text = " ".join(part for part in (site_name, field_name, address, city) if part)
        return VenueInfo(text=text, latitude=latitude, longitude=longitude)

    async def count_linked_events(self) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Event).where(Event.spond_id.is_not(None))
        )
        return result.scalar_one()

    # ==================== Participants ====================

    async def upsert_participant(self, event_id: int, spond_member_id: str, **values: Any) -> None:
        """Insert or overwrite the participant row keyed by (event_id, spond_member_id)."""
        insert = sqlite_insert if self.db.get_bind().dialect.name == "sqlite" else pg_insert
        stmt = insert(EventParticipant).values(
            event_id=event_id,
            spond_member_id=spond_member_id,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["event_id", "spond_member_id"],
            set_={**values, "updated_at": utcnow()},
        )
        await self.db.execute(stmt)

    async def list_participants(self, event_id: int) -> list[EventParticipant]:
        result = await self.db.execute(
            select(EventParticipant)
            .where(EventParticipant.event_id == event_id)
            .order_by(
                EventParticipant.response,
                EventParticipant.last_name,
                EventParticipant.first_name,
            )
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ==================== Teams ====================

    async def find_team_group_mappings(self) -> dict[str, int]:
        """Normalized Spond group/subgroup id -> local team id."""
        result = await self.db.execute(
            select(Team.id, Team.spond_group_id).where(Team.spond_group_id.is_not(None))
        )
        mappings: dict[str, int] = {}
        for team_id, group_id in result.all():
            normalized = normalize_spond_id(group_id)
            if normalized is None:
                logger.warning(f"Team {team_id} has malformed Spond group id {group_id!r}")
                continue
            mappings[normalized] = team_id
        return mappings

    async def find_team_subgroup_settings(self, team_id: int | None) -> TeamGroupSettings | None:
        if team_id is None:
            return None
        team = await self.db.get(Team, team_id)
        if team is None:
            return None
        return TeamGroupSettings(
            team_id=team.id,
            group_id=normalize_spond_id(team.spond_group_id),
            parent_group_id=normalize_spond_id(team.spond_parent_group_id),
        )

    async def find_group_settings(self, group_id: str) -> TeamGroupSettings | None:
        """Settings of the team mapped to ``group_id``, if any."""
        normalized = normalize_spond_id(group_id)
        if normalized is None:
            return None
        result = await self.db.execute(
            select(Team).where(Team.spond_group_id == normalized).order_by(Team.id).limit(1)
        )
        team = result.scalar_one_or_none()
        if team is None:
            return None
        return TeamGroupSettings(
            team_id=team.id,
            group_id=normalized,
            parent_group_id=normalize_spond_id(team.spond_parent_group_id),
        )

    async def get_team(self, team_id: int) -> Team | None:
        return await self.db.get(Team, team_id)

    async def list_linked_teams(self) -> list[Team]:
        result = await self.db.execute(
            select(Team).where(Team.spond_group_id.is_not(None)).order_by(Team.id)
        )
        return list(result.scalars().all())

    async def find_team_by_group(self, group_id: str) -> Team | None:
        normalized = normalize_spond_id(group_id)
        if normalized is None:
            return None
        result = await self.db.execute(
            select(Team).where(Team.spond_group_id == normalized).order_by(Team.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def insert_team(self, **values: Any) -> Team:
        team = Team(**values)
        self.db.add(team)
        await self.db.flush()
        return team

    async def update_team(self, team: Team, **values: Any) -> Team:
        for key, value in values.items():
            setattr(team, key, value)
        team.updated_at = utcnow()
        await self.db.flush()
        return team

    async def count_linked_teams(self) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Team).where(Team.spond_group_id.is_not(None))
        )
        return result.scalar_one()

    # ==================== Integration config ====================

    async def get_active_integration_config(self) -> SpondConfig | None:
        result = await self.db.execute(
            select(SpondConfig)
            .where(SpondConfig.is_active.is_(True))
            .order_by(SpondConfig.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def replace_integration_config(self, **values: Any) -> SpondConfig:
        """Deactivate the current configuration and store a new active one."""
        await self.deactivate_integration_configs()
        config = SpondConfig(is_active=True, **values)
        self.db.add(config)
        await self.db.flush()
        return config

    async def deactivate_integration_configs(self) -> None:
        result = await self.db.execute(select(SpondConfig).where(SpondConfig.is_active.is_(True)))
        for config in result.scalars().all():
            config.is_active = False
            config.updated_at = utcnow()
        await self.db.flush()

    async def set_last_sync_timestamp(self, timestamp: datetime) -> None:
        config = await self.get_active_integration_config()
        if config is None:
            logger.warning("No active Spond configuration to record last sync on")
            return
        config.last_sync = timestamp
        await self.db.flush()

    async def add_sync_log(self, **values: Any) -> SpondSyncLog:
        entry = SpondSyncLog(**values)
        self.db.add(entry)
        await self.db.flush()
        return entry

    # ==================== Transactions ====================

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
