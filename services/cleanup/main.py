"""
Paddle cleanup trip service: trip list, sign-ups and trip creation.

Entrypoint: uvicorn services.cleanup.main:app --host 0.0.0.0 --port 8000
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from starlette.responses import JSONResponse

from services.cleanup.auth.firebase import FirebaseAuthClient
from services.cleanup.config import settings
from services.cleanup.middleware.cors import setup_cors
from services.cleanup.middleware.sentry import setup_sentry
from services.cleanup.routers import auth, health, trips
from services.cleanup.routers._envelope import error_response
from services.cleanup.stores.firestore import FirestoreDocumentStore
from services.cleanup.stores.gcs import GCSBlobStore
from services.cleanup.trips.errors import TripError
from services.cleanup.trips.service import TripService
from services.cleanup.trips.sync import TripSync

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    setup_sentry()

    app.state.settings = settings

    store = FirestoreDocumentStore(
        settings.trips_collection,
        project_id=settings.gcp_project_id,
        health_interval_s=settings.subscription_health_interval_s,
    )
    if not settings.storage_bucket:
        logger.warning("storage_bucket not set; trip creation will fail at the upload step")
    blobs = GCSBlobStore(settings.storage_bucket, project_id=settings.gcp_project_id)

    # a failed subscription leaves the view stale; the app still starts
    sync = TripSync(store)
    await sync.start()

    app.state.trip_sync = sync
    app.state.trip_service = TripService(
        sync,
        store,
        blobs,
        images_prefix=settings.trip_images_prefix,
        max_cover_bytes=settings.max_cover_bytes,
        debounce_s=settings.search_debounce_s,
    )
    app.state.auth_client = FirebaseAuthClient(
        settings.firebase_api_key,
        timeout_s=settings.auth_timeout_s,
    )

    yield

    await sync.close()


app = FastAPI(
    title="Paddle Cleanup API",
    version=settings.app_version,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# -- Middleware (order matters: last added = outermost in Starlette) --

# Routers first (innermost)
app.include_router(health.router)
app.include_router(trips.router)
app.include_router(auth.router)

# CORS (needs to be outermost to handle preflight)
setup_cors(app)


# Request ID injection
@app.middleware("http")
async def request_id_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# -- Exception Handlers --

@app.exception_handler(TripError)
async def trip_error_handler(request: Request, exc: TripError) -> JSONResponse:
    return error_response(request, exc)


@app.exception_handler(404)
async def not_found_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "success": False,
            "error": {"code": "NOT_FOUND", "message": "Resource not found."},
            "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
        },
    )


@app.exception_handler(422)
async def validation_error_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": str(exc.detail) if hasattr(exc, "detail") else "Validation error.",
            },
            "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
        },
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred."},
            "requestId": getattr(request.state, "request_id", str(uuid.uuid4())),
        },
    )
