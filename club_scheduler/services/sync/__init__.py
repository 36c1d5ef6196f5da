from club_scheduler.services.sync.attendance_sync import AttendanceSyncService
from club_scheduler.services.sync.export_sync import EventExportService
from club_scheduler.services.sync.group_sync import GroupImportService
from club_scheduler.services.sync.import_sync import EventImportService
from club_scheduler.services.sync.match_engine import MatchAction, MatchDecision, MatchEngine
from club_scheduler.services.sync.orchestrator import SpondSyncOrchestrator
from club_scheduler.services.sync.repository import SpondRepository, TeamGroupSettings

__all__ = [
    "AttendanceSyncService",
    "EventExportService",
    "EventImportService",
    "GroupImportService",
    "MatchAction",
    "MatchDecision",
    "MatchEngine",
    "SpondRepository",
    "SpondSyncOrchestrator",
    "TeamGroupSettings",
]
