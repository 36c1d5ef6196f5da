from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy import select

from club_scheduler.models import Team
from club_scheduler.services.errors import AuthError
from club_scheduler.services.sync.group_sync import GroupImportService, guess_sport
from club_scheduler.services.sync.repository import SpondRepository

GROUP_ID = "6F1A2B3C4D5E6F708192A3B4C5D6E7F8"
NEW_GROUP_ID = "D0000000000000000000000000000001"


def test_guess_sport_prefers_flag_keyword():
    assert guess_sport("Renegades Flag U10") == "Flag Football"
    assert guess_sport("Renegades", "flag football") == "Flag Football"
    assert guess_sport("Renegades Seniors", "american football") == "Tackle Football"
    assert guess_sport(None) == "Tackle Football"


@pytest.mark.asyncio
class TestGroupImport:
    async def test_groups_create_or_refresh_teams(self, test_session, sample_teams):
        client = Mock()
        client.get_groups = AsyncMock(
            return_value=[
                {"id": GROUP_ID.lower(), "name": "Renegades Youth", "activity": "flag football"},
                {"id": NEW_GROUP_ID, "name": "Renegades Flag Minis", "members": []},
                {"id": "broken", "name": "Broken group"},
            ]
        )

        service = GroupImportService(SpondRepository(test_session))
        result = await service.import_groups(client)

        assert result.updated == 1
        assert result.imported == 1
        assert [error.item for error in result.errors] == ["broken"]

        existing = await test_session.get(Team, sample_teams[0].id)
        await test_session.refresh(existing)
        assert existing.name == "Renegades Youth"
        # Sport of an existing team is left alone
        assert existing.sport == "Tackle Football"
        assert existing.spond_data is not None

        created = (
            await test_session.execute(select(Team).where(Team.spond_group_id == NEW_GROUP_ID))
        ).scalar_one()
        assert created.sport == "Flag Football"
        assert created.active is True

    async def test_fetch_failure_fails_the_run(self, test_session):
        client = Mock()
        client.get_groups = AsyncMock(side_effect=AuthError("Spond rejected the session", 401))

        service = GroupImportService(SpondRepository(test_session))
        result = await service.import_groups(client)

        assert result.success is False
        assert result.message.startswith("Groups sync failed")
