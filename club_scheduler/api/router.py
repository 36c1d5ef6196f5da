from fastapi import APIRouter

from club_scheduler.api.spond import router as spond_router

api_router = APIRouter()

# Spond integration
api_router.include_router(spond_router)
