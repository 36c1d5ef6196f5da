from club_scheduler.models.team import Team
from club_scheduler.models.site import Site, Field
from club_scheduler.models.event import Event, EventType, EventStatus
from club_scheduler.models.event_participant import EventParticipant, RESPONSE_TYPES
from club_scheduler.models.spond_config import SpondConfig, SpondSyncLog

__all__ = [
    "Team",
    "Site",
    "Field",
    "Event",
    "EventType",
    "EventStatus",
    "EventParticipant",
    "RESPONSE_TYPES",
    "SpondConfig",
    "SpondSyncLog",
]
