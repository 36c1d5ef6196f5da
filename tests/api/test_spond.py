import pytest
from httpx import AsyncClient
from sqlalchemy import select

from club_scheduler.models import EventParticipant, SpondConfig, SpondSyncLog, Team
from club_scheduler.services.errors import AuthError, NetworkError

GROUP_ID = "6F1A2B3C4D5E6F708192A3B4C5D6E7F8"
SUBGROUP_ID = "0A1B2C3D4E5F60718293A4B5C6D7E8F9"
REMOTE_ID = "A1B2C3D4E5F60718293A4B5C6D7E8F90"


@pytest.mark.asyncio
class TestSpondConfigurationAPI:
    """Tests for /api/v1/spond configuration endpoints."""

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_status_when_not_configured(self, client: AsyncClient):
        response = await client.get("/api/v1/spond/status")
        assert response.status_code == 200
        data = response.json()
        assert data["configured"] is False
        assert data["connected"] is False
        assert data["linked_teams"] == 0
        assert data["linked_events"] == 0

    async def test_configure_stores_credentials_after_connection_test(
        self, client: AsyncClient, test_session, spond_config, sample_teams
    ):
        response = await client.post(
            "/api/v1/spond/configure",
            json={"username": "manager@example.org", "password": "new-secret", "auto_sync": True},
        )
        assert response.status_code == 200
        assert response.json()["group_count"] == 1

        configs = (await test_session.execute(select(SpondConfig).order_by(SpondConfig.id))).scalars().all()
        assert [c.is_active for c in configs] == [False, True]
        assert configs[1].username == "manager@example.org"
        assert configs[1].auto_sync is True

        status = (await client.get("/api/v1/spond/status")).json()
        assert status["configured"] is True
        assert status["connected"] is True
        assert status["linked_teams"] == 2

    async def test_configure_rejects_bad_credentials(self, client: AsyncClient, mock_spond_client):
        mock_spond_client.test_connection.return_value = {
            "success": False,
            "message": "Connection failed: Invalid email or password.",
            "group_count": None,
        }

        response = await client.post(
            "/api/v1/spond/configure",
            json={"username": "manager@example.org", "password": "wrong"},
        )
        assert response.status_code == 401

        status = (await client.get("/api/v1/spond/status")).json()
        assert status["configured"] is False

    async def test_remove_configuration(self, client: AsyncClient, spond_config):
        response = await client.delete("/api/v1/spond/configure")
        assert response.status_code == 200

        status = (await client.get("/api/v1/spond/status")).json()
        assert status["configured"] is False
        assert status["connected"] is False

    async def test_test_connection_does_not_store_credentials(self, client: AsyncClient, test_session):
        response = await client.post(
            "/api/v1/spond/test", json={"username": "manager@example.org", "password": "secret"}
        )
        assert response.status_code == 200
        assert response.json()["success"] is True

        configs = (await test_session.execute(select(SpondConfig))).scalars().all()
        assert configs == []

    async def test_remote_endpoints_require_configuration(self, client: AsyncClient):
        response = await client.get("/api/v1/spond/groups")
        assert response.status_code == 400
        assert response.json()["detail"] == "Spond not configured"


@pytest.mark.asyncio
class TestSpondDataAPI:
    async def test_groups_are_flattened_and_annotated_with_linked_team(
        self, client: AsyncClient, spond_config, sample_teams, mock_spond_client
    ):
        mock_spond_client.get_groups.return_value = [
            {
                "id": GROUP_ID,
                "name": "Renegades",
                "activity": "football",
                "members": [{"id": "1"}, {"id": "2"}],
                "subGroups": [{"id": SUBGROUP_ID, "name": "Flag", "members": [{"id": "1"}]}],
            }
        ]

        response = await client.get("/api/v1/spond/groups")
        assert response.status_code == 200
        parent, subgroup = response.json()

        assert parent["is_parent_group"] is True
        assert parent["has_subgroups"] is True
        assert parent["member_count"] == 2
        assert parent["linked_team"] == {"id": 1, "name": "Renegades U14"}

        assert subgroup["is_parent_group"] is False
        assert subgroup["parent_group_id"] == GROUP_ID
        assert subgroup["parent_group"] == "Renegades"
        assert subgroup["linked_team"] == {"id": 2, "name": "Renegades Flag"}

    async def test_events_are_listed(self, client: AsyncClient, spond_config, mock_spond_client):
        mock_spond_client.get_events.return_value = [
            {
                "id": REMOTE_ID,
                "heading": "Practice",
                "spilesType": "EVENT",
                "startTimestamp": "2026-11-05T18:00:00.000Z",
                "recipients": {"group": {"id": GROUP_ID, "name": "Renegades"}},
            }
        ]

        response = await client.get("/api/v1/spond/events?days_ahead=14")
        assert response.status_code == 200
        data = response.json()
        assert data[0]["id"] == REMOTE_ID
        assert data[0]["type"] == "EVENT"
        assert data[0]["group_name"] == "Renegades"

    async def test_malformed_events_are_skipped(self, client: AsyncClient, spond_config, mock_spond_client):
        mock_spond_client.get_events.return_value = [
            {"id": "B0000000000000000000000000000000", "heading": "No start"},
            {
                "id": REMOTE_ID,
                "heading": "Practice",
                "startTimestamp": "2026-11-05T18:00:00.000Z",
            },
        ]

        response = await client.get("/api/v1/spond/events")
        assert response.status_code == 200
        assert [item["id"] for item in response.json()] == [REMOTE_ID]


@pytest.mark.asyncio
class TestSpondSyncAPI:
    async def test_sync_events_links_matching_event(
        self, client: AsyncClient, spond_config, sample_event, mock_spond_client
    ):
        mock_spond_client.get_events.return_value = [
            {
                "id": REMOTE_ID,
                "heading": "Practice",
                "startTimestamp": "2026-11-05T18:00:00.000Z",
                "recipients": {"group": {"id": GROUP_ID}},
            }
        ]

        response = await client.post("/api/v1/spond/sync/events", json={"days_ahead": 90})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["details"]["linked"] == 1

    async def test_sync_events_reports_remote_failure(
        self, client: AsyncClient, spond_config, mock_spond_client
    ):
        mock_spond_client.get_events.side_effect = NetworkError("Cannot reach Spond servers.")

        response = await client.post("/api/v1/spond/sync/events")
        assert response.status_code == 200
        assert response.json()["status"] == "failed"

    async def test_full_sync_writes_sync_log_and_last_sync(
        self, client: AsyncClient, test_session, spond_config, mock_spond_client
    ):
        mock_spond_client.get_groups.return_value = [{"id": GROUP_ID, "name": "Renegades"}]

        response = await client.post("/api/v1/spond/sync", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["details"]["groups"]["imported"] == 1
        assert data["details"]["events"]["imported"] == 0

        logs = (await test_session.execute(select(SpondSyncLog).order_by(SpondSyncLog.id))).scalars().all()
        assert [log.sync_type for log in logs] == ["groups", "events"]
        assert all(log.status == "success" for log in logs)

        await test_session.refresh(spond_config)
        assert spond_config.last_sync is not None

    async def test_full_sync_can_skip_groups(self, client: AsyncClient, spond_config, mock_spond_client):
        response = await client.post("/api/v1/spond/sync", json={"sync_groups": False})
        assert response.status_code == 200
        assert response.json()["details"]["groups"] is None
        mock_spond_client.get_groups.assert_not_called()


@pytest.mark.asyncio
class TestSpondExportAPI:
    async def test_export_event(self, client: AsyncClient, spond_config, sample_event, mock_spond_client):
        mock_spond_client.create_event.return_value = {"id": REMOTE_ID}

        response = await client.post(f"/api/v1/spond/export/event/{sample_event.id}")
        assert response.status_code == 200
        assert response.json()["spond_event_id"] == REMOTE_ID

    async def test_export_unknown_event_is_404(self, client: AsyncClient, spond_config):
        response = await client.post("/api/v1/spond/export/event/999")
        assert response.status_code == 404

    async def test_export_linked_event_is_rejected(
        self, client: AsyncClient, test_session, spond_config, sample_event, mock_spond_client
    ):
        sample_event.spond_id = REMOTE_ID
        await test_session.commit()

        response = await client.post(f"/api/v1/spond/export/event/{sample_event.id}")
        assert response.status_code == 400
        mock_spond_client.create_event.assert_not_called()

    async def test_update_exported_event(
        self, client: AsyncClient, test_session, spond_config, sample_event, mock_spond_client
    ):
        sample_event.spond_id = REMOTE_ID
        await test_session.commit()
        mock_spond_client.update_event.return_value = {"id": REMOTE_ID}

        response = await client.put(f"/api/v1/spond/export/event/{sample_event.id}")
        assert response.status_code == 200
        args, _ = mock_spond_client.update_event.call_args
        assert args[0] == REMOTE_ID
        assert args[1]["heading"] == "U14 Practice"

    async def test_update_unexported_event_is_rejected(
        self, client: AsyncClient, spond_config, sample_event, mock_spond_client
    ):
        response = await client.put(f"/api/v1/spond/export/event/{sample_event.id}")
        assert response.status_code == 400
        mock_spond_client.update_event.assert_not_called()

    async def test_bulk_export_reports_partial_result(
        self, client: AsyncClient, spond_config, sample_event, mock_spond_client
    ):
        mock_spond_client.create_event.return_value = {"id": REMOTE_ID}

        response = await client.post(
            "/api/v1/spond/export/events", json={"event_ids": [sample_event.id, 999]}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "partial"
        assert data["details"]["exported"] == 1

    async def test_validate_export(self, client: AsyncClient, spond_config, sample_event):
        response = await client.get(
            "/api/v1/spond/export/validate",
            params={"start": "2026-11-01T00:00:00", "end": "2026-11-30T00:00:00"},
        )
        assert response.status_code == 200
        data = response.json()
        assert [c["event_id"] for c in data["ready"]] == [sample_event.id]
        assert data["conflicting"] == []


@pytest.mark.asyncio
class TestSpondLinkAPI:
    async def test_link_team_normalizes_group_ids(self, client: AsyncClient, test_session, sample_teams):
        response = await client.post(
            "/api/v1/spond/link/team",
            json={
                "team_id": 3,
                "spond_group_id": "d0000000-0000-0000-0000-000000000001",
                "parent_group_id": GROUP_ID.lower(),
            },
        )
        assert response.status_code == 200

        team = await test_session.get(Team, 3)
        await test_session.refresh(team)
        assert team.spond_group_id == "D0000000000000000000000000000001"
        assert team.spond_parent_group_id == GROUP_ID

    async def test_link_team_rejects_malformed_group_id(self, client: AsyncClient, sample_teams):
        response = await client.post(
            "/api/v1/spond/link/team", json={"team_id": 3, "spond_group_id": "group-7"}
        )
        assert response.status_code == 400

    async def test_link_unknown_team_is_404(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/spond/link/team", json={"team_id": 99, "spond_group_id": GROUP_ID}
        )
        assert response.status_code == 404

    async def test_unlink_team(self, client: AsyncClient, test_session, sample_teams):
        response = await client.delete("/api/v1/spond/link/team/2")
        assert response.status_code == 200

        team = await test_session.get(Team, 2)
        await test_session.refresh(team)
        assert team.spond_group_id is None
        assert team.spond_parent_group_id is None


@pytest.mark.asyncio
class TestSpondAttendanceAPI:
    async def test_unlinked_event_attendance_is_rejected(
        self, client: AsyncClient, spond_config, sample_event
    ):
        response = await client.post(f"/api/v1/spond/sync/attendance/event/{sample_event.id}")
        assert response.status_code == 400

    async def test_event_attendance_sync_and_participants(
        self, client: AsyncClient, test_session, spond_config, sample_event, mock_spond_client
    ):
        member_id = "C0000000000000000000000000000001"
        sample_event.spond_id = REMOTE_ID
        await test_session.commit()
        mock_spond_client.get_event_attendance.return_value = {
            "event_id": REMOTE_ID,
            "group_id": GROUP_ID,
            "responses": {"acceptedIds": [member_id], "waitinglistIds": []},
        }
        mock_spond_client.get_group.return_value = {
            "id": GROUP_ID,
            "members": [{"id": member_id, "firstName": "Sam", "lastName": "Berg"}],
        }

        response = await client.post(f"/api/v1/spond/sync/attendance/event/{sample_event.id}")
        assert response.status_code == 200
        assert response.json()["attendance"]["estimated_attendance"] == 1

        response = await client.get(f"/api/v1/spond/participants/event/{sample_event.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["counts"]["accepted"] == 1
        assert data["estimated_attendance"] == 1
        assert data["participants"][0]["first_name"] == "Sam"
        assert data["participants"][0]["response"] == "accepted"

        stored = (await test_session.execute(select(EventParticipant))).scalars().all()
        assert len(stored) == 1

    async def test_batch_attendance_sync(self, client: AsyncClient, spond_config):
        response = await client.post("/api/v1/spond/sync/attendance", json={"only_future_events": True})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["details"]["updated"] == 0

    async def test_batch_attendance_with_rejected_login_is_failed(
        self, client: AsyncClient, test_session, spond_config, mock_spond_client
    ):
        mock_spond_client.ensure_authenticated.side_effect = AuthError(
            "Invalid email or password. Please check your Spond credentials.", 401
        )

        response = await client.post("/api/v1/spond/sync/attendance", json={"only_future_events": True})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "failed"
        assert data["details"]["failed"] == 0

        log = (await test_session.execute(select(SpondSyncLog))).scalars().one()
        assert log.sync_type == "attendance"
        assert log.status == "failed"

    async def test_participants_of_unknown_event_is_404(self, client: AsyncClient):
        response = await client.get("/api/v1/spond/participants/event/999")
        assert response.status_code == 404
