"""Health endpoints for sbgateway.

Implements:
  /status      — classifier counters + last classifier error (any method)
  /_ah/health  — liveness probe, always 200 "ok" (any method)

/status lets a client see how many lookups were answered locally (cache,
database) and how many were forwarded upstream. It is an introspection
surface: a classifier-reported error is returned in ``Error`` with HTTP 200,
never as an HTTP failure. The body is always JSON::

    $ curl localhost:8080/status
    {"Stats": {"QueriesByDatabase": 132, "QueriesByCache": 31,
               "QueriesByAPI": 6, "QueriesFail": 0}, "Error": ""}
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from sbgateway.classifier.protocol import Stats, ThreatClassifier
from sbgateway.constants import ALL_METHODS, HEALTH_CHECK_PATH, MIME_JSON, STATUS_PATH
from sbgateway.errors import InternalError
from sbgateway.gateway.dependencies import get_classifier
from sbgateway.models.responses import StatusResponse
from sbgateway.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.api_route(STATUS_PATH, methods=ALL_METHODS)
async def status(classifier: ThreatClassifier = Depends(get_classifier)) -> Response:
    """Report classifier counters and its last error.

    An exception raised by ``classifier.status()`` itself is reported the same
    way, with zeroed counters. Only a failure to encode the body yields 500.
    """
    sb_error: Optional[BaseException]
    try:
        stats, sb_error = await classifier.status()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Classifier status failed", error=str(exc), error_type=type(exc).__name__)
        stats, sb_error = Stats(), exc

    try:
        body = StatusResponse(
            Stats=stats,
            Error=str(sb_error) if sb_error is not None else "",
        ).model_dump_json()
    except (ValidationError, ValueError) as exc:
        raise InternalError(str(exc)) from exc

    return Response(content=body, media_type=MIME_JSON)


@router.api_route(HEALTH_CHECK_PATH, methods=ALL_METHODS)
async def health() -> PlainTextResponse:
    """Liveness probe."""
    return PlainTextResponse("ok")
