"""
Lifecycle of the club-wide Spond session.

The integration is configured once for the whole club, so one authenticated
client is shared by every request until the configuration changes. The
manager lives on ``app.state`` and is handed to request handlers through a
dependency; sync services receive the client itself as a parameter.
"""
import logging
from typing import Callable

from club_scheduler.services.spond_client import SpondClient
from club_scheduler.services.sync.repository import SpondRepository

logger = logging.getLogger(__name__)


class SpondSessionManager:
    def __init__(self, client_factory: Callable[..., SpondClient] = SpondClient):
        self._client_factory = client_factory
        self._client: SpondClient | None = None

    @property
    def client(self) -> SpondClient | None:
        return self._client

    async def get_client(self, repository: SpondRepository) -> SpondClient | None:
        """Return the cached client, creating it from the active config on first use."""
        if self._client is not None:
            return self._client

        config = await repository.get_active_integration_config()
        if config is None:
            return None

        logger.info("Creating Spond session from stored configuration")
        self._client = self._client_factory(config.username, config.password)
        return self._client

    def create_client(self, username: str, password: str) -> SpondClient:
        """Build a client that is not installed as the session (credential checks)."""
        return self._client_factory(username, password)

    def use(self, client: SpondClient) -> None:
        """Replace the session after new credentials were stored."""
        logger.info("Installing new Spond session")
        self._client = client

    def clear(self) -> None:
        if self._client is not None:
            logger.info("Clearing Spond session")
        self._client = None
