"""Liveness endpoint."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

health_router = APIRouter(tags=["health"])


@health_router.get("/healthz")
async def healthz(request: Request) -> dict[str, Any]:
    container = getattr(request.app.state, "container", None)
    ready = container is not None and container.is_initialized
    return {
        "status": "ok" if ready else "starting",
        "timestamp": datetime.now(UTC).isoformat(),
    }
