"""Exports the in-process metrics registry for scraping."""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from app.monitoring.registry import registry


router = APIRouter(tags=["system"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


@router.get("/metrics", response_class=PlainTextResponse, include_in_schema=False)
def export_metrics() -> PlainTextResponse:
    return PlainTextResponse(registry.render(), media_type=PROMETHEUS_CONTENT_TYPE)
