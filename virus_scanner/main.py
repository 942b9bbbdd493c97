import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from virus_scanner.api.middleware.logging import RequestLoggingMiddleware
from virus_scanner.api.routes.delta import router as delta_router
from virus_scanner.api.routes.health import router as health_router
from virus_scanner.api.routes.scan import router as scan_router
from virus_scanner.config import Settings, get_settings
from virus_scanner.core.orchestrator import ScanOrchestrator
from virus_scanner.core.recorder import AnalysisRecorder
from virus_scanner.core.resolver import FileResolver
from virus_scanner.engines import ClamAVAdapter, ScanEngine
from virus_scanner.services.background import BackgroundScanService
from virus_scanner.services.scanning import ScanService
from virus_scanner.sparql.client import SparqlClient

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app(
    settings: Settings | None = None,
    *,
    engine: ScanEngine | None = None,
    sparql: SparqlClient | None = None,
) -> FastAPI:
    """Build the application and every component from *settings*.

    *engine* and *sparql* replace the ClamAV adapter and the SPARQL client,
    which is how tests run the app without clamd or a triplestore.
    """
    settings = settings or get_settings()

    http_client: httpx.AsyncClient | None = None
    if sparql is None:
        http_client = httpx.AsyncClient(timeout=settings.sparql_timeout_seconds)
        sparql = SparqlClient(
            settings.sparql_endpoint,
            sudo=settings.sparql_sudo,
            timeout=settings.sparql_timeout_seconds,
            http_client=http_client,
        )
    if engine is None:
        engine = ClamAVAdapter(
            socket_path=settings.clamd_socket,
            host=settings.clamd_host,
            port=settings.clamd_port,
            timeout=settings.clamd_timeout_seconds,
        )

    orchestrator = ScanOrchestrator(
        resolver=FileResolver(sparql, share_root=settings.share_root),
        engine=engine,
        recorder=AnalysisRecorder(sparql, base_iri=settings.analysis_base_iri),
    )
    scan_service = ScanService(orchestrator)
    background = BackgroundScanService(scan_service)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "virus-scanner starting up environment=%s sparql=%s clamd=%s",
            settings.environment,
            settings.sparql_endpoint,
            settings.clamd_host or settings.clamd_socket,
        )
        yield
        await background.drain()
        if http_client is not None:
            await http_client.aclose()
        logger.info("virus-scanner shutting down")

    app = FastAPI(
        title="Virus Scanner Service",
        description="Scans uploaded files with ClamAV and stores STIX malware analyses",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.scan_service = scan_service
    app.state.background = background

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router)
    app.include_router(delta_router)
    app.include_router(scan_router)

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception) -> PlainTextResponse:
        logger.exception("Uncaught error in %s", request.url.path)
        return PlainTextResponse(
            f"Uncaught error in {request.url.path}: {exc}", status_code=500
        )

    return app


def build_app() -> FastAPI:
    """Entry point for ``uvicorn --factory virus_scanner.main:build_app``."""
    settings = get_settings()
    configure_logging(settings)
    return create_app(settings)
