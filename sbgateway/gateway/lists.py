"""GET /v4/threatLists: the threat lists the gateway is subscribed to.

Matches returned by /v4/threatMatches:find only ever carry one of these
descriptors. Pure configuration echo: the configured lists in configured
order, or DEFAULT_THREAT_LISTS when none are configured. No classifier call.

Example::

    $ curl localhost:8080/v4/threatLists
    {"threatLists": [
        {"threatType": "MALWARE", "platformType": "ANY_PLATFORM", "threatEntryType": "URL"},
        {"threatType": "SOCIAL_ENGINEERING", "platformType": "ANY_PLATFORM", "threatEntryType": "URL"},
        {"threatType": "UNWANTED_SOFTWARE", "platformType": "ANY_PLATFORM", "threatEntryType": "URL"}]}
"""

from __future__ import annotations

from typing import Sequence

from fastapi import APIRouter, Depends, Request, Response

from sbgateway.classifier.protocol import DEFAULT_THREAT_LISTS, ThreatDescriptor
from sbgateway.config import Config
from sbgateway.constants import ALL_METHODS, GET_THREAT_LISTS_PATH
from sbgateway.errors import BadRequestError, require_method
from sbgateway.gateway.dependencies import get_config
from sbgateway.models.responses import build_message_response
from sbgateway.protocol import schema
from sbgateway.protocol.codec import InvalidInterchangeFormat, WireFormat, response_format

router = APIRouter(tags=["v4"])


def subscribed_lists(config: Config) -> Sequence[ThreatDescriptor]:
    return config.threat_lists or DEFAULT_THREAT_LISTS


def build_lists_response(lists: Sequence[ThreatDescriptor]):
    response = schema.ListThreatListsResponse()
    for descriptor in lists:
        response.threat_lists.add(
            threat_type=descriptor.threat_type,
            platform_type=descriptor.platform_type,
            threat_entry_type=descriptor.threat_entry_type,
        )
    return response


@router.api_route(GET_THREAT_LISTS_PATH, methods=ALL_METHODS)
async def list_threat_lists(
    request: Request,
    config: Config = Depends(get_config),
) -> Response:
    try:
        wire_format = response_format(
            request.query_params.get("alt"),
            request.headers.get("content-type"),
            default=WireFormat.JSON,
        )
    except InvalidInterchangeFormat as exc:
        raise BadRequestError(str(exc)) from exc
    require_method(request.method, "GET")

    return build_message_response(build_lists_response(subscribed_lists(config)), wire_format)
