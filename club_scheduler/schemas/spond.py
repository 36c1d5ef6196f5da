from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ==================== Spond payloads ====================

class SpondModel(BaseModel):
    """Base for Spond API payloads (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SpondLocation(SpondModel):
    id: str | None = None
    feature: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class SpondRef(SpondModel):
    id: str
    name: str | None = None


class SpondRecipients(SpondModel):
    group: SpondRef | None = None
    sub_groups: list[SpondRef] = Field(default_factory=list)


class SpondEvent(SpondModel):
    id: str
    heading: str | None = None
    description: str | None = None
    type: str | None = None
    spiles_type: str | None = None
    start_timestamp: datetime
    end_timestamp: datetime | None = None
    cancelled: bool = False
    location: SpondLocation | None = None
    recipients: SpondRecipients | None = None

    @property
    def type_tag(self) -> str | None:
        return self.type or self.spiles_type

    @property
    def group_id(self) -> str | None:
        if self.recipients and self.recipients.group:
            return self.recipients.group.id
        return None

    @property
    def subgroup_ids(self) -> list[str]:
        if not self.recipients:
            return []
        return [sg.id for sg in self.recipients.sub_groups]


# ==================== API requests ====================

class SpondCredentialsRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    auto_sync: bool = False
    sync_interval_minutes: int = 60


class FullSyncRequest(BaseModel):
    sync_groups: bool = True
    sync_events: bool = True
    days_ahead: int | None = None


class EventSyncRequest(BaseModel):
    group_id: str | None = None
    days_ahead: int | None = None
    days_behind: int | None = None


class ExportEventRequest(BaseModel):
    spond_group_id: str | None = None


class BulkExportRequest(BaseModel):
    event_ids: list[int] = Field(min_length=1)
    spond_group_id: str | None = None


class LinkTeamRequest(BaseModel):
    team_id: int
    spond_group_id: str
    parent_group_id: str | None = None


class AttendanceSyncRequest(BaseModel):
    only_future_events: bool = True
    days_ahead: int | None = None
    days_behind: int | None = None


# ==================== API responses ====================

class SpondStatusResponse(BaseModel):
    configured: bool
    connected: bool
    last_sync: datetime | None = None
    linked_teams: int = 0
    linked_events: int = 0


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    group_count: int | None = None


class LinkedTeam(BaseModel):
    id: int
    name: str


class SpondGroupItem(BaseModel):
    id: str
    name: str
    parent_group: str | None = None
    parent_group_id: str | None = None
    activity: str | None = None
    member_count: int = 0
    linked_team: LinkedTeam | None = None
    is_parent_group: bool
    has_subgroups: bool = False


class SpondEventItem(BaseModel):
    id: str
    heading: str | None = None
    description: str | None = None
    type: str | None = None
    start_timestamp: datetime
    end_timestamp: datetime | None = None
    cancelled: bool = False
    location: SpondLocation | None = None
    group_id: str | None = None
    group_name: str | None = None


class ParticipantResponse(BaseModel):
    spond_member_id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    response: str
    response_time: datetime | None = None
    is_organizer: bool = False

    class Config:
        from_attributes = True


class EventParticipantsResponse(BaseModel):
    event_id: int
    spond_id: str | None = None
    counts: dict[str, int]
    estimated_attendance: int = 0
    last_sync: datetime | None = None
    participants: list[ParticipantResponse]
