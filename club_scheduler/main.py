from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from club_scheduler.config import get_settings
from club_scheduler.database import engine
from club_scheduler.services.spond_session import SpondSessionManager

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Shutdown
    app.state.spond_sessions.clear()
    await engine.dispose()


app = FastAPI(
    title="Club Scheduler",
    description="Club event scheduling with Spond calendar sync",
    version="1.0.0",
    lifespan=lifespan,
)

# One Spond session for the whole club
app.state.spond_sessions = SpondSessionManager()

# CORS
_origins = (
    settings.allowed_origins.split(",")
    if settings.allowed_origins != "*"
    else ["*"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Import and include routers after app is created
from club_scheduler.api.router import api_router
app.include_router(api_router, prefix="/api/v1")
