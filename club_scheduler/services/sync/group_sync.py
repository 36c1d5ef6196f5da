"""Import of Spond groups as local teams."""
import logging
from typing import Any

from club_scheduler.schemas.sync import SyncResult
from club_scheduler.services.errors import SpondSyncError, ValidationError
from club_scheduler.services.spond_client import SpondClient
from club_scheduler.services.sync.base import BaseSyncService, serialize_payload
from club_scheduler.utils.spond_ids import normalize_spond_id

logger = logging.getLogger(__name__)

FLAG_FOOTBALL = "Flag Football"
TACKLE_FOOTBALL = "Tackle Football"


def guess_sport(name: str | None, activity: str | None = None) -> str:
    combined = f"{name or ''} {activity or ''}".lower()
    if "flag" in combined:
        return FLAG_FOOTBALL
    return TACKLE_FOOTBALL


class GroupImportService(BaseSyncService):
    async def import_groups(self, client: SpondClient) -> SyncResult:
        """
        Create or refresh one team per top-level Spond group.

        Existing teams keep their sport; only the name and the stored group
        payload are refreshed.
        """
        result = SyncResult()

        try:
            groups = await client.get_groups()
        except SpondSyncError as e:
            logger.error(f"Spond group import failed: {e}")
            result.success = False
            result.message = f"Groups sync failed: {e}"
            result.add_error("batch", str(e))
            return result

        logger.info(f"Found {len(groups)} Spond groups to sync")

        for index, group in enumerate(groups):
            label = str(group.get("id") or f"#{index + 1}")
            try:
                created = await self._import_one(group)
            except Exception as e:
                await self.repository.rollback()
                logger.warning(f"Failed to import Spond group {label}: {e}")
                result.add_error(label, str(e))
                continue

            if created:
                result.imported += 1
            else:
                result.updated += 1

        result.message = (
            f"Groups sync completed: {result.imported} imported, {result.updated} updated"
        )
        if result.errors:
            result.message += f", {len(result.errors)} failed"
        logger.info(result.message)
        return result

    async def _import_one(self, group: dict[str, Any]) -> bool:
        group_id = normalize_spond_id(group.get("id"))
        if group_id is None:
            raise ValidationError(f"Malformed Spond group id {group.get('id')!r}")
        name = group.get("name") or f"Spond group {group_id}"

        team = await self.repository.find_team_by_group(group_id)
        if team is not None:
            await self.repository.update_team(team, name=name, spond_data=serialize_payload(group))
            created = False
        else:
            team = await self.repository.insert_team(
                name=name,
                sport=guess_sport(name, group.get("activity")),
                spond_group_id=group_id,
                spond_data=serialize_payload(group),
                active=True,
            )
            logger.info(f"Created team {team.id} for Spond group {group_id}")
            created = True

        await self.repository.commit()
        return created
