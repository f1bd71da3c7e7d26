from fastapi import APIRouter

from app.api.v1.attendees import router as attendees_router
from app.api.v1.events import router as events_router

router = APIRouter()
router.include_router(events_router)
router.include_router(attendees_router)
