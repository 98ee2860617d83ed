# app/api/v1/router.py
from datetime import datetime, timezone

from fastapi import APIRouter

from app.api.v1.endpoints import auth, submissions, users
from app.core.config import get_settings
from app.schemas.common import ApiResponse

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(submissions.router, prefix="/submissions", tags=["submissions"])
api_router.include_router(users.router, prefix="/users", tags=["users"])


@api_router.get("/health", tags=["health"], response_model=ApiResponse[dict])
def api_health() -> ApiResponse[dict]:
    return ApiResponse(
        message="OralVis Healthcare API is running",
        data={
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": get_settings().app_env,
        },
    )
