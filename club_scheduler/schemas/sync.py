from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SyncResponse(BaseModel):
    status: SyncStatus
    message: str
    details: dict | None = None


class SyncItemError(BaseModel):
    item: str
    message: str


class SyncResult(BaseModel):
    """
    Outcome of one sync run.

    ``success`` is False only when the run itself could not proceed (login,
    fetch or configuration failure). Individual item failures are listed in
    ``errors`` and never flip ``success``.
    """
    success: bool = True
    message: str = ""
    imported: int = 0
    updated: int = 0
    linked: int = 0
    exported: int = 0
    errors: list[SyncItemError] = Field(default_factory=list)

    def add_error(self, item: str, message: str) -> None:
        self.errors.append(SyncItemError(item=item, message=message))

    @property
    def status(self) -> SyncStatus:
        if not self.success:
            return SyncStatus.FAILED
        if self.errors:
            return SyncStatus.PARTIAL
        return SyncStatus.SUCCESS


class ExportResult(BaseModel):
    success: bool
    event_id: int
    spond_event_id: str | None = None
    error: str | None = None


class ExportCandidate(BaseModel):
    event_id: int
    name: str | None = None
    start_time: datetime
    team_id: int | None = None
    spond_id: str | None = None
    spond_group_id: str | None = None
    reason: str | None = None


class ExportValidation(BaseModel):
    ready: list[ExportCandidate] = Field(default_factory=list)
    already_exported: list[ExportCandidate] = Field(default_factory=list)
    conflicting: list[ExportCandidate] = Field(default_factory=list)
    not_exportable: list[ExportCandidate] = Field(default_factory=list)


class AttendanceCounts(BaseModel):
    accepted: int = 0
    declined: int = 0
    unanswered: int = 0
    waiting: int = 0
    unconfirmed: int = 0
    total: int = 0
    estimated_attendance: int = 0


class AttendanceResult(BaseModel):
    success: bool
    event_id: int
    attendance: AttendanceCounts | None = None
    error: str | None = None


class AttendanceBatchResult(BaseModel):
    success: bool = True
    message: str = ""
    updated: int = 0
    failed: int = 0
    errors: list[SyncItemError] = Field(default_factory=list)

    def add_error(self, item: str, message: str) -> None:
        self.errors.append(SyncItemError(item=item, message=message))
