"""Safe Browsing v4 wire protocol for sbgateway.

    schema.py — message classes and enums (protobuf, v4 field numbering)
    codec.py  — WireFormat (JSON / binary) and content negotiation
"""

from sbgateway.protocol.codec import (
    CodecError,
    InvalidInterchangeFormat,
    WireFormat,
    decode_request,
    request_format,
    response_format,
)

__all__ = [
    "CodecError",
    "InvalidInterchangeFormat",
    "WireFormat",
    "decode_request",
    "request_format",
    "response_format",
]
