import os
import signal
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, AsyncIterator

import httpx
import uvicorn
from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from healthcheck.config import Settings, get_settings
from healthcheck.core.audit import run_census, run_full_audit, run_recommendations
from healthcheck.core.errors import HealthcheckError
from healthcheck.core.pagespeed import run_pagespeed
from healthcheck.models.schema import (
    AuditTarget,
    AspResponse,
    FullAuditResponse,
    PageSpeedAudit,
    RecommendationsRequest,
    RecommendationsResponse,
)

# ---------- logging ----------
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
log = logging.getLogger("healthcheck")


# ---------- process-level failures ----------
def _fatal_loop_error(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    # anything reaching the loop escaped every handler; per-request state may be
    # corrupt, so stop and let the supervisor restart the process
    log.critical("Unhandled error in event loop: %s", context.get("message"), exc_info=context.get("exception"))
    os.kill(os.getpid(), signal.SIGTERM)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    asyncio.get_running_loop().set_exception_handler(_fatal_loop_error)
    log.info("Audit server ready")
    yield


# ---------- dependencies ----------
async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    # one client per request; nothing is shared between audits
    async with httpx.AsyncClient() as client:
        yield client


def resolve_target(url: Optional[str] = Query(None), settings: Settings = Depends(get_settings)) -> AuditTarget:
    return AuditTarget.parse(url, settings.target_url)


# ---------- error envelopes ----------
async def healthcheck_error_handler(request: Request, exc: HealthcheckError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        path = request.url.path + (f"?{request.url.query}" if request.url.query else "")
        return JSONResponse(status_code=404, content={"error": f"Not found: {request.method} {path}"})
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__})


# ---------- app ----------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    explicit = settings is not None
    settings = settings or get_settings()
    app = FastAPI(title="ASP Healthcheck API", version="1.0.0", lifespan=lifespan)
    if explicit:
        # routes see the same settings the middleware was built from
        app.dependency_overrides[get_settings] = lambda: settings

    # grant headers for allow-listed origins; requests without an Origin
    # header (curl, server-to-server) are never blocked
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_body_bytes:
            return JSONResponse(status_code=413, content={"error": "Request body too large"})
        return await call_next(request)

    # CORSMiddleware only withholds the grant headers; a disallowed browser
    # origin must not reach a route that spends quota or starts a browser
    @app.middleware("http")
    async def block_disallowed_origins(request: Request, call_next):
        origin = request.headers.get("origin")
        if origin and origin not in settings.allowed_origins:
            log.warning("CORS blocked for origin: %s", origin)
            return JSONResponse(status_code=403, content={"error": f"CORS blocked for origin: {origin}"})
        return await call_next(request)

    app.add_exception_handler(HealthcheckError, healthcheck_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # ---------- health endpoints ----------
    @app.get("/health")
    async def health_check():
        return {"ok": True}

    @app.get("/api/ping")
    async def ping():
        return {"ok": True}

    # ---------- audit endpoints ----------
    @app.get("/api/audit", response_model=PageSpeedAudit)
    async def pagespeed_audit(
        target: AuditTarget = Depends(resolve_target),
        settings: Settings = Depends(get_settings),
        client: httpx.AsyncClient = Depends(get_http_client),
    ):
        log.info("PageSpeed audit requested for: %s", target.url)
        return await run_pagespeed(client, target.url, settings)

    @app.get("/api/asp-recommendations", response_model=AspResponse)
    async def asp_recommendations(
        mode: Optional[str] = Query(None),
        target: AuditTarget = Depends(resolve_target),
        settings: Settings = Depends(get_settings),
        client: httpx.AsyncClient = Depends(get_http_client),
    ):
        log.info("ASP census requested for: %s (mode=%s)", target.url, mode or settings.census_mode)
        return await run_census(client, target.url, settings, mode)

    @app.get("/api/full-audit", response_model=FullAuditResponse)
    async def full_audit(
        mode: Optional[str] = Query(None),
        target: AuditTarget = Depends(resolve_target),
        settings: Settings = Depends(get_settings),
        client: httpx.AsyncClient = Depends(get_http_client),
    ):
        log.info("Full audit requested for: %s", target.url)
        return await run_full_audit(client, target.url, settings, mode)

    @app.post("/api/recommendations", response_model=RecommendationsResponse)
    async def recommendations(
        body: RecommendationsRequest,
        settings: Settings = Depends(get_settings),
        client: httpx.AsyncClient = Depends(get_http_client),
    ):
        return await run_recommendations(client, body, settings)

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    log.info("Audit server listening on %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
