"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    sync = getattr(request.app.state, "trip_sync", None)
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "version": request.app.state.settings.app_version,
            "subscribed": bool(sync and sync.is_subscribed),
        },
        "requestId": request.state.request_id,
    }
