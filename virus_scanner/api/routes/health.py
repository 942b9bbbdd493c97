"""Liveness and metrics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Hello from virus-scanner-service"


@router.get("/healthz")
async def health_check(request: Request) -> JSONResponse:
    clamd_ok = await request.app.state.engine.ping()
    return JSONResponse({"status": "ok", "clamd": clamd_ok})


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
