"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP guest_messaging_dispatch_total Dispatch outcomes per channel
        # TYPE guest_messaging_dispatch_total counter
        guest_messaging_dispatch_total{channel="whatsapp",status="sent"} 42.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Metrics in the Prometheus text exposition format, for scraping."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
