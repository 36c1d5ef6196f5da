"""
Matching of incoming Spond events against the local event store.

For each remote event the engine decides one of three actions:

- ``update``: a local event is already linked to this Spond id
- ``link``: an unlinked local event starts within the time window and its
  venue is compatible, so the remote id is attached to it
- ``create``: nothing matches, a new local event is synthesized
"""
import enum
import logging
from dataclasses import dataclass
from datetime import timedelta

from club_scheduler.config import get_settings
from club_scheduler.models import Event
from club_scheduler.schemas.spond import SpondEvent
from club_scheduler.services.sync.repository import SpondRepository
from club_scheduler.utils.location_matcher import VenueInfo, location_matches
from club_scheduler.utils.spond_ids import normalize_spond_id
from club_scheduler.utils.timestamps import as_wall_clock

logger = logging.getLogger(__name__)
settings = get_settings()


class MatchAction(str, enum.Enum):
    link = "link"
    update = "update"
    create = "create"


@dataclass(slots=True)
class MatchDecision:
    action: MatchAction
    event: Event | None = None


class MatchEngine:
    """
    Decide what an incoming Spond event means for the local store.

    Candidates for ``link`` are taken in repository order (start time, then
    id) and the first compatible one wins.
    """

    def __init__(
        self,
        repository: SpondRepository,
        window_minutes: int | None = None,
        geo_tolerance: float | None = None,
    ):
        self.repository = repository
        self.window = timedelta(
            minutes=window_minutes if window_minutes is not None else settings.spond_match_window_minutes
        )
        self.geo_tolerance = (
            geo_tolerance if geo_tolerance is not None else settings.spond_geo_tolerance_degrees
        )
        self._venue_cache: dict[int, VenueInfo | None] = {}

    async def _venue_for(self, event: Event) -> VenueInfo | None:
        if event.field_id is None:
            return None
        if event.field_id not in self._venue_cache:
            self._venue_cache[event.field_id] = await self.repository.get_venue(event.field_id)
        return self._venue_cache[event.field_id]

    async def find_link_candidate(self, remote: SpondEvent) -> Event | None:
        start = as_wall_clock(remote.start_timestamp)
        candidates = await self.repository.find_unlinked_events_in_window(
            start - self.window, start + self.window
        )
        if not candidates:
            return None

        remote_venue = VenueInfo.from_remote(remote.location)
        for candidate in candidates:
            local_venue = await self._venue_for(candidate)
            if location_matches(remote_venue, local_venue, self.geo_tolerance):
                return candidate

        logger.debug(
            f"Spond event {remote.id}: {len(candidates)} event(s) in time window, none at a matching location"
        )
        return None

    async def resolve(self, remote: SpondEvent) -> MatchDecision:
        spond_id = normalize_spond_id(remote.id)
        if spond_id is None:
            raise ValueError(f"Malformed Spond event id {remote.id!r}")

        existing = await self.repository.find_event_by_remote_id(spond_id)
        if existing is not None:
            return MatchDecision(MatchAction.update, existing)

        candidate = await self.find_link_candidate(remote)
        if candidate is not None:
            return MatchDecision(MatchAction.link, candidate)

        return MatchDecision(MatchAction.create)
