"""Gateway error taxonomy.

Every failure inside an endpoint is raised as a GatewayError subclass and
rendered by the application exception handler (main.py) as a plain-text body
carrying ``message`` with the class's ``status_code``:

  BadRequestError (400) — wrong method, invalid interchange format,
                          undecodable body, non-URL threat entry
  InternalError   (500) — classifier lookup failure, encode failure
"""

from __future__ import annotations

INVALID_METHOD = "invalid method"
ONLY_URL_ENTRIES = "only ThreatEntry.Url may be set"


class GatewayError(Exception):
    """Base class for errors rendered directly to the client."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(GatewayError):
    """The request is malformed or not supported (HTTP 400)."""

    status_code = 400


class InternalError(GatewayError):
    """The gateway or its classifier failed (HTTP 500)."""

    status_code = 500


def require_method(method: str, allowed: str) -> None:
    """Raise BadRequestError("invalid method") unless ``method`` is ``allowed``."""
    if method != allowed:
        raise BadRequestError(INVALID_METHOD)
