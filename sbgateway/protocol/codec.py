"""Wire codec and content negotiation for the v4 endpoints.

Two interchange formats are supported, each a member of ``WireFormat``:

  WireFormat.JSON   — ``application/json``; protobuf canonical JSON mapping
                      (camelCase field names, enum names, default values
                      omitted). Field-name based, so field order is irrelevant.
  WireFormat.PROTO  — ``application/x-protobuf``; binary protobuf encoding.

Negotiation rules:

  Response format: the ``alt`` query parameter if non-empty, otherwise the
  request's Content-Type. ``json``/``application/json`` select JSON,
  ``proto``/``application/x-protobuf`` select PROTO; anything else is
  ``InvalidInterchangeFormat``. A request with neither is rejected unless the
  caller supplies a default (the list endpoint defaults to JSON).

  Request format: the Content-Type alone. An unrecognized Content-Type means
  the body is not decoded and the request message stays at its zero value.
"""

from __future__ import annotations

import enum
from typing import Optional, TypeVar

from google.protobuf import json_format
from google.protobuf.message import DecodeError, EncodeError, Message

from sbgateway.constants import MIME_JSON, MIME_PROTO

M = TypeVar("M", bound=Message)

INVALID_INTERCHANGE_FORMAT = "invalid interchange format"


class CodecError(Exception):
    """A message could not be encoded to or decoded from its wire format."""


class InvalidInterchangeFormat(ValueError):
    """The requested interchange format selector is not recognized."""

    def __init__(self, selector: str = "") -> None:
        super().__init__(INVALID_INTERCHANGE_FORMAT)
        self.selector = selector


class WireFormat(enum.Enum):
    """The two interchange formats; the value is the MIME type."""

    JSON = MIME_JSON
    PROTO = MIME_PROTO

    @property
    def media_type(self) -> str:
        return self.value

    def encode(self, message: Message) -> bytes:
        """Serialize ``message`` in this format.

        Raises:
            CodecError: The message could not be serialized.
        """
        try:
            if self is WireFormat.PROTO:
                return message.SerializeToString()
            return json_format.MessageToJson(message, indent=None).encode("utf-8")
        except (EncodeError, json_format.Error, ValueError) as exc:
            raise CodecError(str(exc)) from exc

    def decode(
        self,
        data: bytes,
        message_type: type[M],
        *,
        ignore_unknown_fields: bool = False,
    ) -> M:
        """Parse ``data`` into a new ``message_type`` instance.

        ``ignore_unknown_fields`` only affects JSON; binary decoding always
        preserves unknown fields.

        Raises:
            CodecError: Truncated or malformed input.
        """
        message = message_type()
        try:
            if self is WireFormat.PROTO:
                message.ParseFromString(data)
            else:
                json_format.Parse(
                    data.decode("utf-8"),
                    message,
                    ignore_unknown_fields=ignore_unknown_fields,
                )
        except (DecodeError, json_format.ParseError, ValueError) as exc:
            raise CodecError(str(exc)) from exc
        return message


_SELECTORS: dict[str, WireFormat] = {
    "json": WireFormat.JSON,
    MIME_JSON: WireFormat.JSON,
    "proto": WireFormat.PROTO,
    MIME_PROTO: WireFormat.PROTO,
}


def _media_type(content_type: Optional[str]) -> str:
    """Strip parameters (``; charset=utf-8``) and normalize case."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def response_format(
    alt: Optional[str],
    content_type: Optional[str],
    *,
    default: Optional[WireFormat] = None,
) -> WireFormat:
    """Pick the response format from the ``alt`` parameter or the Content-Type.

    An empty ``alt`` counts as absent. When neither ``alt`` nor a Content-Type
    is present, ``default`` is used; without a default that is an error.

    Raises:
        InvalidInterchangeFormat: The selector is missing or not one of the
                                  accepted values.
    """
    selector = alt if alt else _media_type(content_type)
    if not selector and default is not None:
        return default
    try:
        return _SELECTORS[selector]
    except KeyError:
        raise InvalidInterchangeFormat(selector) from None


def request_format(content_type: Optional[str]) -> Optional[WireFormat]:
    """Return the format of a request body, or None if it should not be decoded."""
    media_type = _media_type(content_type)
    for wire_format in WireFormat:
        if wire_format.media_type == media_type:
            return wire_format
    return None


def decode_request(body: bytes, content_type: Optional[str], message_type: type[M]) -> M:
    """Decode a request body according to its Content-Type.

    Returns the zero message when the Content-Type is not recognized.

    Raises:
        CodecError: The body does not parse in the declared format.
    """
    wire_format = request_format(content_type)
    if wire_format is None:
        return message_type()
    return wire_format.decode(body, message_type)
