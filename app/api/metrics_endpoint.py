"""Prometheus scrape target.

Plain-text exposition format, not the JSON envelope: this is read by the
Prometheus server, not by API clients.  Restrict it at the ingress in
production; series names reveal request rates and failure patterns.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
