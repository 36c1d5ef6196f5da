from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from club_scheduler.database import AsyncSessionLocal
from club_scheduler.services.spond_client import SpondClient
from club_scheduler.services.spond_session import SpondSessionManager
from club_scheduler.services.sync.repository import SpondRepository


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


def get_spond_sessions(request: Request) -> SpondSessionManager:
    """Process-wide Spond session holder attached to the application."""
    return request.app.state.spond_sessions


async def get_spond_client(
    db: AsyncSession = Depends(get_db),
    sessions: SpondSessionManager = Depends(get_spond_sessions),
) -> SpondClient:
    client = await sessions.get_client(SpondRepository(db))
    if client is None:
        raise HTTPException(status_code=400, detail="Spond not configured")
    return client
