"""FastAPI health endpoints for liveness and readiness probes."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .models import GatewayStatus

if TYPE_CHECKING:
    from .dispatcher import MailDispatcher


def create_health_app(dispatcher: MailDispatcher) -> FastAPI:
    """Build a minimal FastAPI app with ``/health`` and ``/ready`` routes.

    The *dispatcher* reference is read on every request for live status
    and counters.
    """
    app = FastAPI(title=f"{dispatcher.config.app_name} health", docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> JSONResponse:
        status = dispatcher.status
        healthy = status in (GatewayStatus.RUNNING, GatewayStatus.STARTING)
        return JSONResponse(
            content={
                "app_name": dispatcher.config.app_name,
                "status": status.value,
                "uptime_seconds": time.monotonic() - dispatcher.start_time,
                "in_flight_requests": dispatcher.in_flight,
                "queued_mails": dispatcher.mails.qsize(),
                "mails_received": dispatcher.mails_received,
                "replies_sent": dispatcher.replies_sent,
            },
            status_code=200 if healthy else 503,
        )

    @app.get("/ready")
    async def ready() -> JSONResponse:
        is_ready = dispatcher.status == GatewayStatus.RUNNING
        return JSONResponse(
            content={"ready": is_ready},
            status_code=200 if is_ready else 503,
        )

    return app
