"""sbgateway FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — application factory; the dispatcher table is fixed here
  - lifespan     — builds the classifier if none was injected, closes it on shutdown

Dispatcher table (built once, never reloaded):

  /v4/threatMatches:find  → gateway/lookup.py   (POST; JSON or protobuf)
  /v4/threatLists         → gateway/lists.py    (GET;  JSON or protobuf)
  /status                 → health.py           (any;  JSON)
  /_ah/health             → health.py           (any;  "ok")
  /public/*               → StaticFiles over sbgateway/public/ (prefix stripped)

The shared collaborators are injected, not ambient:

    app = create_app(config, classifier)

``config`` is read-only for the process lifetime; ``classifier`` is shared by
every concurrent request. Handlers receive both through the dependencies in
gateway/dependencies.py.

Error rendering: every GatewayError is turned into a plain-text body with its
status code by the exception handler registered below. Nothing escapes a
handler unrendered.

For uvicorn without the CLI wrapper (config from file / env only):
    uvicorn --factory sbgateway.main:create_app --host 127.0.0.1 --port 8080
"""

from __future__ import annotations

import os
import pathlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from sbgateway import __version__
from sbgateway.classifier.factory import create_classifier
from sbgateway.classifier.protocol import ThreatClassifier
from sbgateway.config import Config, load_config
from sbgateway.constants import PUBLIC_PREFIX
from sbgateway.errors import GatewayError
from sbgateway.gateway.lists import router as lists_router
from sbgateway.gateway.lookup import router as lookup_router
from sbgateway.health import router as health_router
from sbgateway.middleware import BodySizeLimitMiddleware, RequestIDMiddleware
from sbgateway.models.responses import build_error_response
from sbgateway.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)

PUBLIC_DIR = pathlib.Path(__file__).parent / "public"


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown.

    Startup:
      1. create_classifier(config) unless a classifier was injected.
         ClassifierInitError propagates and aborts startup.
      2. log readiness

    Shutdown:
      classifier.close() (errors logged, non-fatal)
    """
    logger.info("sbgateway starting up...")
    config: Config = app.state.config

    if app.state.classifier is None:
        app.state.classifier = create_classifier(config)

    logger.info(
        "sbgateway ready",
        version=__version__,
        addr=config.server.addr,
        threat_lists=len(config.threat_lists),
    )

    yield

    logger.info("sbgateway shutting down...")
    classifier: ThreatClassifier = app.state.classifier
    try:
        await classifier.close()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Classifier close error (non-fatal)", error=str(exc))
    logger.info("sbgateway shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(
    config: Optional[Config] = None,
    classifier: Optional[ThreatClassifier] = None,
    *,
    public_dir: pathlib.Path = PUBLIC_DIR,
) -> FastAPI:
    """Create and configure the sbgateway FastAPI application.

    Args:
        config:     Process configuration. Loaded with load_config() when None.
        classifier: Shared classifier. Built from ``config`` during lifespan
                    startup when None.
        public_dir: Directory served under /public/.

    Returns:
        Configured FastAPI application with lifespan, routes and middleware.
    """
    if config is None:
        config = load_config()

    _debug = os.getenv("DEBUG", "false").lower() == "true"

    application = FastAPI(
        title="sbgateway",
        description="Safe Browsing API v4 lookup gateway",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if _debug else None,
        redoc_url="/redoc" if _debug else None,
        openapi_url="/openapi.json" if _debug else None,
    )

    application.state.config = config
    application.state.classifier = classifier

    # Last added is outermost: RequestIDMiddleware wraps BodySizeLimitMiddleware.
    application.add_middleware(BodySizeLimitMiddleware)
    application.add_middleware(RequestIDMiddleware)

    application.include_router(health_router)
    application.include_router(lookup_router)
    application.include_router(lists_router)
    application.mount(
        PUBLIC_PREFIX,
        StaticFiles(directory=str(public_dir), html=True),
        name="public",
    )

    # Exception handlers
    @application.exception_handler(GatewayError)
    async def gateway_error_handler(
        request: Request, exc: GatewayError
    ) -> PlainTextResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "Request failed",
            status_code=exc.status_code,
            error=exc.message,
            method=request.method,
            path=str(request.url.path),
        )
        return build_error_response(exc.message, exc.status_code)

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> PlainTextResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        response = build_error_response(str(exc.detail), exc.status_code)
        for name, value in (exc.headers or {}).items():
            response.headers[name] = value
        return response

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> PlainTextResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return build_error_response("internal server error", 500)

    return application
