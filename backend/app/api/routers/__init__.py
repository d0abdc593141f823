from fastapi import APIRouter

from app.api.routers.attendance import router as attendance_router
from app.api.routers.feedback import router as feedback_router
from app.api.routers.notifications import router as notifications_router


api_router = APIRouter()
api_router.include_router(attendance_router, prefix="/attendance", tags=["attendance"])
api_router.include_router(feedback_router, prefix="/feedback", tags=["feedback"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
