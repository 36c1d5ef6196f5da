import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError as PayloadError
from sqlalchemy.ext.asyncio import AsyncSession

from club_scheduler.api.deps import get_db, get_spond_client, get_spond_sessions
from club_scheduler.config import get_settings
from club_scheduler.schemas.spond import (
    AttendanceSyncRequest,
    BulkExportRequest,
    ConnectionTestResponse,
    EventParticipantsResponse,
    EventSyncRequest,
    ExportEventRequest,
    FullSyncRequest,
    LinkedTeam,
    LinkTeamRequest,
    ParticipantResponse,
    SpondCredentialsRequest,
    SpondEvent,
    SpondEventItem,
    SpondGroupItem,
    SpondStatusResponse,
)
from club_scheduler.schemas.sync import (
    AttendanceResult,
    ExportResult,
    ExportValidation,
    SyncResponse,
    SyncStatus,
)
from club_scheduler.services.errors import SpondAPIError
from club_scheduler.services.spond_client import SpondClient
from club_scheduler.services.spond_session import SpondSessionManager
from club_scheduler.services.sync import SpondRepository, SpondSyncOrchestrator
from club_scheduler.utils.spond_ids import normalize_spond_id
from club_scheduler.utils.timestamps import as_wall_clock, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/spond", tags=["spond"])

EVENT_LIST_MAX = 200
EVENT_LIST_DAYS_AHEAD = 30


def _remote_failure(e: SpondAPIError) -> HTTPException:
    return HTTPException(status_code=502, detail=f"Spond request failed: {str(e)}")


async def _get_event_or_404(repository: SpondRepository, event_id: int):
    event = await repository.get_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
    return event


# ==================== Configuration ====================

@router.get("/status", response_model=SpondStatusResponse)
async def get_status(
    db: AsyncSession = Depends(get_db),
    sessions: SpondSessionManager = Depends(get_spond_sessions),
):
    """Integration state: configured, connected, last sync and link counts."""
    orchestrator = SpondSyncOrchestrator(db)
    return await orchestrator.get_status(sessions.client)


@router.post("/configure", response_model=ConnectionTestResponse)
async def configure(
    request: SpondCredentialsRequest,
    db: AsyncSession = Depends(get_db),
    sessions: SpondSessionManager = Depends(get_spond_sessions),
):
    """Store Spond credentials after a live connection test."""
    client = sessions.create_client(request.username, request.password)
    test_result = await client.test_connection()
    if not test_result["success"]:
        raise HTTPException(status_code=401, detail=test_result["message"])

    repository = SpondRepository(db)
    await repository.replace_integration_config(
        username=request.username,
        password=request.password,
        auto_sync=request.auto_sync,
        sync_interval_minutes=request.sync_interval_minutes,
    )
    await repository.commit()
    sessions.use(client)

    return ConnectionTestResponse(
        success=True,
        message="Spond configured successfully",
        group_count=test_result["group_count"],
    )


@router.delete("/configure")
async def remove_configuration(
    db: AsyncSession = Depends(get_db),
    sessions: SpondSessionManager = Depends(get_spond_sessions),
):
    repository = SpondRepository(db)
    await repository.deactivate_integration_configs()
    await repository.commit()
    sessions.clear()
    return {"success": True, "message": "Spond configuration removed"}


@router.post("/test", response_model=ConnectionTestResponse)
async def test_connection(
    request: SpondCredentialsRequest,
    sessions: SpondSessionManager = Depends(get_spond_sessions),
):
    """Check credentials without storing them."""
    client = sessions.create_client(request.username, request.password)
    return ConnectionTestResponse(**await client.test_connection())


# ==================== Remote data ====================

@router.get("/groups", response_model=list[SpondGroupItem])
async def list_groups(
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    """Spond groups and their subgroups, each annotated with the linked local team."""
    try:
        groups = await client.get_groups()
    except SpondAPIError as e:
        raise _remote_failure(e)

    linked = {
        team.spond_group_id: LinkedTeam(id=team.id, name=team.name)
        for team in await SpondRepository(db).list_linked_teams()
    }

    items = []
    for group in groups:
        group_id = normalize_spond_id(group.get("id"))
        subgroups = group.get("subGroups") or []
        items.append(
            SpondGroupItem(
                id=group.get("id"),
                name=group.get("name") or "",
                activity=group.get("activity"),
                member_count=len(group.get("members") or []),
                linked_team=linked.get(group_id),
                is_parent_group=True,
                has_subgroups=bool(subgroups),
            )
        )
        for subgroup in subgroups:
            items.append(
                SpondGroupItem(
                    id=subgroup.get("id"),
                    name=subgroup.get("name") or "",
                    parent_group=group.get("name"),
                    parent_group_id=group.get("id"),
                    activity=group.get("activity"),
                    member_count=len(subgroup.get("members") or []),
                    linked_team=linked.get(normalize_spond_id(subgroup.get("id"))),
                    is_parent_group=False,
                )
            )
    return items


@router.get("/events", response_model=list[SpondEventItem])
async def list_events(
    group_id: str | None = Query(default=None),
    days_ahead: int = Query(default=EVENT_LIST_DAYS_AHEAD, ge=0),
    days_behind: int = Query(default=None, ge=0),
    client: SpondClient = Depends(get_spond_client),
):
    if days_behind is None:
        days_behind = settings.spond_default_days_behind

    now = utcnow()
    try:
        events = await client.get_events(
            group_id=group_id,
            min_start=now - timedelta(days=days_behind),
            max_start=now + timedelta(days=days_ahead),
            max_events=EVENT_LIST_MAX,
        )
    except SpondAPIError as e:
        raise _remote_failure(e)

    items = []
    for payload in events:
        try:
            event = SpondEvent.model_validate(payload)
        except PayloadError as e:
            event_id = payload.get("id") if isinstance(payload, dict) else None
            logger.warning(f"Skipping malformed Spond event {event_id}: {e}")
            continue
        items.append(
            SpondEventItem(
                id=event.id,
                heading=event.heading,
                description=event.description,
                type=event.type_tag,
                start_timestamp=event.start_timestamp,
                end_timestamp=event.end_timestamp,
                cancelled=event.cancelled,
                location=event.location,
                group_id=event.group_id,
                group_name=event.recipients.group.name if event.group_id else None,
            )
        )
    return items


# ==================== Import ====================

@router.post("/sync", response_model=SyncResponse)
async def sync_full(
    request: FullSyncRequest | None = None,
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    """Import Spond groups and events."""
    request = request or FullSyncRequest()
    try:
        orchestrator = SpondSyncOrchestrator(db)
        results = await orchestrator.full_sync(
            client,
            sync_groups=request.sync_groups,
            sync_events=request.sync_events,
            days_ahead=request.days_ahead,
        )

        ran = [result for result in results.values() if result is not None]
        statuses = {result.status for result in ran}
        if SyncStatus.FAILED in statuses:
            status = SyncStatus.FAILED
        elif SyncStatus.PARTIAL in statuses:
            status = SyncStatus.PARTIAL
        else:
            status = SyncStatus.SUCCESS

        return SyncResponse(
            status=status,
            message="; ".join(result.message for result in ran) or "Nothing to sync",
            details={
                key: result.model_dump() if result is not None else None
                for key, result in results.items()
            },
        )
    except Exception as e:
        return SyncResponse(
            status=SyncStatus.FAILED,
            message=f"Synchronization failed: {str(e)}",
            details=None,
        )


@router.post("/sync/groups", response_model=SyncResponse)
async def sync_groups(
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    try:
        orchestrator = SpondSyncOrchestrator(db)
        result = await orchestrator.import_groups(client)
        return SyncResponse(status=result.status, message=result.message, details=result.model_dump())
    except Exception as e:
        return SyncResponse(
            status=SyncStatus.FAILED,
            message=f"Groups synchronization failed: {str(e)}",
            details=None,
        )


@router.post("/sync/events", response_model=SyncResponse)
async def sync_events(
    request: EventSyncRequest | None = None,
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    """Import Spond events: update linked, link matching, create the rest."""
    request = request or EventSyncRequest()
    try:
        orchestrator = SpondSyncOrchestrator(db)
        result = await orchestrator.import_events(
            client,
            group_id=request.group_id,
            days_ahead=request.days_ahead,
            days_behind=request.days_behind,
        )
        return SyncResponse(status=result.status, message=result.message, details=result.model_dump())
    except Exception as e:
        return SyncResponse(
            status=SyncStatus.FAILED,
            message=f"Events synchronization failed: {str(e)}",
            details=None,
        )


# ==================== Export ====================

@router.post("/export/event/{event_id}", response_model=ExportResult)
async def export_event(
    event_id: int,
    request: ExportEventRequest | None = None,
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    """Create the Spond event for a local event."""
    orchestrator = SpondSyncOrchestrator(db)
    await _get_event_or_404(orchestrator.repository, event_id)

    target = request.spond_group_id if request else None
    result = await orchestrator.exports.export_event(client, event_id, target)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result


@router.put("/export/event/{event_id}", response_model=ExportResult)
async def update_exported_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    """Push local changes of an exported event to Spond."""
    orchestrator = SpondSyncOrchestrator(db)
    await _get_event_or_404(orchestrator.repository, event_id)

    result = await orchestrator.exports.update_remote_event(client, event_id)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result


@router.post("/export/events", response_model=SyncResponse)
async def export_events(
    request: BulkExportRequest,
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    try:
        orchestrator = SpondSyncOrchestrator(db)
        result = await orchestrator.export_events(client, request.event_ids, request.spond_group_id)
        return SyncResponse(status=result.status, message=result.message, details=result.model_dump())
    except Exception as e:
        return SyncResponse(
            status=SyncStatus.FAILED,
            message=f"Export failed: {str(e)}",
            details=None,
        )


@router.get("/export/validate", response_model=ExportValidation)
async def validate_export(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    team_id: int | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    """Classify events in a window before a bulk export. Nothing is written."""
    start = as_wall_clock(start or utcnow())
    end = as_wall_clock(end) if end else start + timedelta(days=settings.spond_default_days_ahead)
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")

    orchestrator = SpondSyncOrchestrator(db)
    try:
        return await orchestrator.exports.validate_export(client, start, end, team_id)
    except SpondAPIError as e:
        raise _remote_failure(e)


# ==================== Team links ====================

@router.post("/link/team")
async def link_team(request: LinkTeamRequest, db: AsyncSession = Depends(get_db)):
    """Map a local team to a Spond group or subgroup."""
    group_id = normalize_spond_id(request.spond_group_id)
    if group_id is None:
        raise HTTPException(status_code=400, detail="Invalid Spond group id")

    parent_group_id = None
    if request.parent_group_id:
        parent_group_id = normalize_spond_id(request.parent_group_id)
        if parent_group_id is None:
            raise HTTPException(status_code=400, detail="Invalid Spond parent group id")

    repository = SpondRepository(db)
    team = await repository.get_team(request.team_id)
    if team is None:
        raise HTTPException(status_code=404, detail=f"Team {request.team_id} not found")

    await repository.update_team(
        team, spond_group_id=group_id, spond_parent_group_id=parent_group_id
    )
    await repository.commit()
    return {"success": True, "message": "Team linked to Spond group"}


@router.delete("/link/team/{team_id}")
async def unlink_team(team_id: int, db: AsyncSession = Depends(get_db)):
    repository = SpondRepository(db)
    team = await repository.get_team(team_id)
    if team is None:
        raise HTTPException(status_code=404, detail=f"Team {team_id} not found")

    await repository.update_team(team, spond_group_id=None, spond_parent_group_id=None)
    await repository.commit()
    return {"success": True, "message": "Team unlinked from Spond"}


# ==================== Attendance ====================

@router.post("/sync/attendance/event/{event_id}", response_model=AttendanceResult)
async def sync_event_attendance(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    orchestrator = SpondSyncOrchestrator(db)
    event = await _get_event_or_404(orchestrator.repository, event_id)
    if not event.spond_id:
        raise HTTPException(status_code=400, detail="Event is not linked to Spond")

    result = await orchestrator.attendance.sync_attendance(client, event_id)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)
    return result


@router.post("/sync/attendance", response_model=SyncResponse)
async def sync_all_attendance(
    request: AttendanceSyncRequest | None = None,
    db: AsyncSession = Depends(get_db),
    client: SpondClient = Depends(get_spond_client),
):
    """Sync attendance for every linked event in the window."""
    request = request or AttendanceSyncRequest()
    try:
        orchestrator = SpondSyncOrchestrator(db)
        result = await orchestrator.sync_all_attendance(
            client,
            only_future=request.only_future_events,
            days_ahead=request.days_ahead,
            days_behind=request.days_behind,
        )
        if not result.success:
            status = SyncStatus.FAILED
        elif result.failed:
            status = SyncStatus.PARTIAL
        else:
            status = SyncStatus.SUCCESS
        return SyncResponse(status=status, message=result.message, details=result.model_dump())
    except Exception as e:
        return SyncResponse(
            status=SyncStatus.FAILED,
            message=f"Attendance synchronization failed: {str(e)}",
            details=None,
        )


@router.get("/participants/event/{event_id}", response_model=EventParticipantsResponse)
async def get_event_participants(event_id: int, db: AsyncSession = Depends(get_db)):
    """Stored attendance of an event as of its last attendance sync."""
    repository = SpondRepository(db)
    event = await _get_event_or_404(repository, event_id)
    participants = await repository.list_participants(event_id)

    return EventParticipantsResponse(
        event_id=event.id,
        spond_id=event.spond_id,
        counts={
            "accepted": event.attendance_accepted or 0,
            "declined": event.attendance_declined or 0,
            "unanswered": event.attendance_unanswered or 0,
            "waiting": event.attendance_waiting or 0,
            "unconfirmed": event.attendance_unconfirmed or 0,
        },
        estimated_attendance=event.attendance_estimated or 0,
        last_sync=event.attendance_last_sync,
        participants=[ParticipantResponse.model_validate(p) for p in participants],
    )
