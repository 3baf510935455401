"""Response builders shared by the endpoints.

  build_error_response():
      Plain-text error body (``text/plain; charset=utf-8``) carrying the
      error message verbatim. There is no structured error schema.

  build_message_response():
      A protobuf message encoded in the negotiated WireFormat, with the
      matching Content-Type.

  StatusResponse:
      The ``{"Stats": {...}, "Error": "..."}`` body served by /status.
"""

from __future__ import annotations

from fastapi.responses import PlainTextResponse, Response
from google.protobuf.message import Message
from pydantic import BaseModel

from sbgateway.classifier.protocol import Stats as ClassifierStats
from sbgateway.errors import InternalError
from sbgateway.protocol.codec import CodecError, WireFormat


class StatusResponse(BaseModel):
    """Body of GET /status. ``Error`` is empty when the classifier is healthy."""

    Stats: ClassifierStats
    Error: str = ""


def build_error_response(message: str, status_code: int) -> PlainTextResponse:
    """Build a plain-text error response.

    ``X-Content-Type-Options: nosniff`` keeps browsers from sniffing the
    echoed message as HTML.
    """
    response = PlainTextResponse(content=message, status_code=status_code)
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


def build_message_response(message: Message, wire_format: WireFormat) -> Response:
    """Encode ``message`` in ``wire_format``.

    Raises:
        InternalError: The message could not be encoded.
    """
    try:
        body = wire_format.encode(message)
    except CodecError as exc:
        raise InternalError(str(exc)) from exc
    return Response(content=body, media_type=wire_format.media_type)
