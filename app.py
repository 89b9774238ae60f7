"""
Smartling Bulk Service - Unified Application Entry Point
Mounts the bulk job service and the progress WebSocket under a single FastAPI application
"""

import time
from collections import Counter
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from services.bulk_jobs import app as bulk_jobs_module
from services.websocket_progress import websocket_manager
from shared.config import config
from shared.logging_utils import setup_logging
from shared.response_models import HealthResponse

logger = setup_logging("smartling-bulk-service")

bulk_jobs_app = bulk_jobs_module.app
STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("Smartling bulk service starting")
    yield
    logger.info("Shutting down, cancelling outstanding bulk job pipelines")
    await bulk_jobs_module.orchestrator.shutdown(cancel_pending=True)
    await websocket_manager.reset()


app = FastAPI(
    title="Smartling Bulk Service API",
    description="""
    Asynchronous bulk translation jobs over the Smartling translation management API.

    Start a job, poll its status and fetch consolidated results once it completes.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Health",
            "description": "Service health and status endpoints",
        },
        {
            "name": "Bulk Jobs",
            "description": "Bulk translation job service - mounted at /api/v1/bulk-jobs",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get("allowed_origins", ["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes to exclude (internal FastAPI docs routes)
EXCLUDED_PATHS = {"/openapi.json", "/docs", "/docs/oauth2-redirect", "/redoc"}

# Include Bulk Job routes with prefix
for route in bulk_jobs_app.routes:
    if hasattr(route, "path") and hasattr(route, "endpoint"):
        if route.path in EXCLUDED_PATHS:
            continue
        route_kwargs = {
            "path": f"/api/v1/bulk-jobs{route.path}",
            "endpoint": route.endpoint,
            "methods": route.methods,
            "tags": ["Bulk Jobs"],
        }
        if hasattr(route, "name"):
            route_kwargs["name"] = f"bulk_jobs_{route.name}"
        if hasattr(route, "response_model"):
            route_kwargs["response_model"] = route.response_model
        if getattr(route, "response_model_exclude_none", False):
            route_kwargs["response_model_exclude_none"] = True
        app.add_api_route(**route_kwargs)


@app.websocket("/ws/progress")
async def websocket_progress_endpoint(websocket: WebSocket):
    """WebSocket endpoint for bulk job progress updates."""
    client_id = websocket.query_params.get("client_id")
    assigned_client_id = await websocket_manager.connect(websocket, client_id)
    await websocket.send_json({"event": "connected", "client_id": assigned_client_id})

    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action")

            if action == "subscribe":
                job_id = message.get("job_id")
                if not job_id:
                    await websocket.send_json(
                        {"event": "error", "message": "Missing job_id for subscribe"}
                    )
                    continue
                latest = await websocket_manager.subscribe(assigned_client_id, job_id)
                await websocket.send_json({"event": "subscribed", "job_id": job_id})
                if latest:
                    await websocket.send_json(latest)
            elif action == "unsubscribe":
                job_id = message.get("job_id")
                await websocket_manager.unsubscribe(assigned_client_id, job_id)
                await websocket.send_json({"event": "unsubscribed", "job_id": job_id})
            elif action == "ping":
                await websocket.send_json({"event": "pong"})
            else:
                await websocket.send_json(
                    {"event": "error", "message": f"Unknown action: {action}"}
                )
    except WebSocketDisconnect:
        await websocket_manager.disconnect(assigned_client_id)
    except Exception:
        await websocket_manager.disconnect(assigned_client_id)
        raise


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with service information and API navigation"""
    return {
        "service": "Smartling Bulk Service API",
        "version": "1.0.0",
        "services": {
            "bulk_jobs": {
                "base_url": "/api/v1/bulk-jobs",
                "health": "/api/v1/bulk-jobs/health",
            },
            "progress": {
                "websocket": "/ws/progress",
            },
        },
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json",
        },
    }


@app.get("/health", tags=["Health"], response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint with job counts"""
    counts = Counter(
        record.status.value for record in bulk_jobs_module.orchestrator.store.records()
    )
    return HealthResponse(
        status="healthy",
        message="Smartling bulk service is operational",
        version="1.0.0",
        uptime=round(time.monotonic() - STARTED_AT, 3),
        jobs=dict(counts),
    )


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Smartling bulk service on http://0.0.0.0:8000")
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=config.get("debug", False), log_level="info")
