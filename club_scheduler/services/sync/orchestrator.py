"""
Spond sync orchestrator.

Entry point used by the API layer: wires the sync services onto one
repository, runs multi-step syncs and keeps the sync log.
"""
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from club_scheduler.schemas.spond import SpondStatusResponse
from club_scheduler.schemas.sync import (
    AttendanceBatchResult,
    SyncItemError,
    SyncResult,
    SyncStatus,
)
from club_scheduler.services.spond_client import SpondClient
from club_scheduler.services.sync.attendance_sync import AttendanceSyncService
from club_scheduler.services.sync.export_sync import EventExportService
from club_scheduler.services.sync.group_sync import GroupImportService
from club_scheduler.services.sync.import_sync import EventImportService
from club_scheduler.services.sync.repository import SpondRepository
from club_scheduler.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

MAX_LOGGED_ERRORS = 10


def _error_summary(errors: list[SyncItemError]) -> str | None:
    if not errors:
        return None
    summary = "; ".join(f"{error.item}: {error.message}" for error in errors[:MAX_LOGGED_ERRORS])
    if len(errors) > MAX_LOGGED_ERRORS:
        summary += f" (+{len(errors) - MAX_LOGGED_ERRORS} more)"
    return summary


class SpondSyncOrchestrator:
    """
    Facade over the Spond sync services.

    Usage:
        orchestrator = SpondSyncOrchestrator(db)
        results = await orchestrator.full_sync(client)
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = SpondRepository(db)
        self.groups = GroupImportService(self.repository)
        self.events = EventImportService(self.repository)
        self.exports = EventExportService(self.repository)
        self.attendance = AttendanceSyncService(self.repository)

    # ==================== Sync log ====================

    async def _record(
        self,
        sync_type: str,
        direction: str,
        result: SyncResult,
        started_at: datetime,
    ) -> None:
        await self.repository.add_sync_log(
            sync_type=sync_type,
            direction=direction,
            status=result.status.value,
            items_processed=(
                result.imported + result.updated + result.linked + result.exported + len(result.errors)
            ),
            items_imported=result.imported + result.exported,
            items_updated=result.updated + result.linked,
            items_failed=len(result.errors),
            error_message=_error_summary(result.errors),
            started_at=started_at,
            completed_at=utcnow(),
        )
        await self.repository.commit()

    # ==================== Import ====================

    async def import_groups(self, client: SpondClient) -> SyncResult:
        started_at = utcnow()
        result = await self.groups.import_groups(client)
        await self._record("groups", "import", result, started_at)
        return result

    async def import_events(
        self,
        client: SpondClient,
        group_id: str | None = None,
        days_ahead: int | None = None,
        days_behind: int | None = None,
    ) -> SyncResult:
        started_at = utcnow()
        result = await self.events.import_events(
            client, group_id=group_id, days_ahead=days_ahead, days_behind=days_behind
        )
        await self._record("events", "import", result, started_at)
        return result

    async def full_sync(
        self,
        client: SpondClient,
        sync_groups: bool = True,
        sync_events: bool = True,
        days_ahead: int | None = None,
    ) -> dict[str, SyncResult | None]:
        """
        Import groups, then events, and stamp the active configuration.

        Returns:
            Dict with ``groups`` and ``events`` results (None when skipped)
        """
        logger.info(f"Starting full Spond sync (groups={sync_groups}, events={sync_events})")
        results: dict[str, SyncResult | None] = {"groups": None, "events": None}

        if sync_groups:
            results["groups"] = await self.import_groups(client)
        if sync_events:
            results["events"] = await self.import_events(client, days_ahead=days_ahead)

        await self.repository.set_last_sync_timestamp(utcnow())
        await self.repository.commit()
        logger.info("Full Spond sync finished")
        return results

    # ==================== Export ====================

    async def export_events(
        self,
        client: SpondClient,
        event_ids: list[int],
        target_group_id: str | None = None,
    ) -> SyncResult:
        started_at = utcnow()
        result = await self.exports.export_events(client, event_ids, target_group_id)
        await self._record("export", "export", result, started_at)
        return result

    # ==================== Attendance ====================

    async def sync_all_attendance(
        self,
        client: SpondClient,
        only_future: bool = True,
        days_ahead: int | None = None,
        days_behind: int | None = None,
    ) -> AttendanceBatchResult:
        started_at = utcnow()
        result = await self.attendance.sync_all_attendance(
            client, only_future=only_future, days_ahead=days_ahead, days_behind=days_behind
        )
        if not result.success:
            status = SyncStatus.FAILED
        elif result.failed:
            status = SyncStatus.PARTIAL
        else:
            status = SyncStatus.SUCCESS

        await self.repository.add_sync_log(
            sync_type="attendance",
            direction="import",
            status=status.value,
            items_processed=result.updated + result.failed,
            items_updated=result.updated,
            items_failed=result.failed,
            error_message=_error_summary(result.errors),
            started_at=started_at,
            completed_at=utcnow(),
        )
        await self.repository.commit()
        return result

    # ==================== Status ====================

    async def get_status(self, client: SpondClient | None = None) -> SpondStatusResponse:
        config = await self.repository.get_active_integration_config()
        return SpondStatusResponse(
            configured=config is not None,
            connected=bool(client is not None and client.token),
            last_sync=config.last_sync if config else None,
            linked_teams=await self.repository.count_linked_teams(),
            linked_events=await self.repository.count_linked_events(),
        )
