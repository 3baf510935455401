"""POST /v4/threatMatches:find: a light-weight threatMatches endpoint.

Takes a batch of URLs and returns the threat matches for them. Unlike the
upstream API it needs no API key. Request and response may each be JSON or
binary protobuf (see protocol/codec.py).

Example::

    $ curl -H "Content-Type: application/json" -X POST -d '{
          "threatInfo": {"threatEntries": [{"url": "google.com"}, {"url": "bad1url.org"}]}
      }' localhost:8080/v4/threatMatches:find
    {"matches": [{"threatType": "MALWARE", "platformType": "ANY_PLATFORM",
                  "threat": {"url": "bad1url.org"}, "threatEntryType": "URL"}]}

Handler steps (each failure is final; nothing is retried):
  1. method must be POST                       → 400 "invalid method"
  2. negotiate the response format             → 400 "invalid interchange format"
  3. decode the body per its Content-Type      → 400 <decoder message>
  4. every entry must be a plain URL entry     → 400 "only ThreatEntry.Url may be set"
  5. one batched classifier lookup             → 500 <classifier message>
  6. dedup descriptors per URL, compose matches
  7. encode in the negotiated format           → 500 <encoder message>

threatInfo.threatTypes / platformTypes / threatEntryTypes are accepted and
decoded but do not filter the result.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from fastapi import APIRouter, Depends, Request, Response

from sbgateway.classifier.protocol import ClassifierError, ThreatClassifier, URLThreat
from sbgateway.config import Config
from sbgateway.constants import ALL_METHODS, FIND_THREAT_PATH
from sbgateway.errors import (
    ONLY_URL_ENTRIES,
    BadRequestError,
    InternalError,
    require_method,
)
from sbgateway.gateway.dependencies import get_classifier, get_config
from sbgateway.models.responses import build_message_response
from sbgateway.protocol import schema
from sbgateway.protocol.codec import (
    CodecError,
    InvalidInterchangeFormat,
    decode_request,
    response_format,
)
from sbgateway.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["v4"])


def extract_urls(entries: Sequence) -> list[str]:
    """Return the URL of every ThreatEntry, in order.

    Raises:
        BadRequestError: An entry has an empty URL or carries a hash. One bad
                         entry rejects the whole batch.
    """
    urls: list[str] = []
    for entry in entries:
        if not entry.url or entry.hash:
            raise BadRequestError(ONLY_URL_ENTRIES)
        urls.append(entry.url)
    return urls


def build_find_response(
    urls: Sequence[str],
    url_threats: Sequence[Sequence[URLThreat]],
):
    """Compose a FindThreatMatchesResponse.

    One ThreatMatch per distinct descriptor per URL; ``threat.url`` echoes the
    queried URL, not the matched pattern. Matches follow input URL order, and
    within one URL the order in which descriptors were first reported.
    """
    response = schema.FindThreatMatchesResponse()
    for url, threats in zip(urls, url_threats):
        # dict keys as an insertion-ordered set
        for descriptor in dict.fromkeys(threat.descriptor for threat in threats):
            match = response.matches.add()
            match.threat.url = url
            match.threat_type = descriptor.threat_type
            match.platform_type = descriptor.platform_type
            match.threat_entry_type = descriptor.threat_entry_type
    return response


@router.api_route(FIND_THREAT_PATH, methods=ALL_METHODS)
async def find_threat_matches(
    request: Request,
    config: Config = Depends(get_config),
    classifier: ThreatClassifier = Depends(get_classifier),
) -> Response:
    require_method(request.method, "POST")

    content_type = request.headers.get("content-type")
    try:
        wire_format = response_format(request.query_params.get("alt"), content_type)
    except InvalidInterchangeFormat as exc:
        raise BadRequestError(str(exc)) from exc

    body = await request.body()
    try:
        find_request = decode_request(body, content_type, schema.FindThreatMatchesRequest)
    except CodecError as exc:
        raise BadRequestError(str(exc)) from exc

    urls = extract_urls(find_request.threat_info.threat_entries)

    try:
        with PerformanceLogger("classifier lookup", logger, urls=len(urls)):
            url_threats = await asyncio.wait_for(
                classifier.lookup_urls(urls), timeout=config.lookup_timeout_s
            )
    except asyncio.TimeoutError as exc:
        raise InternalError(
            f"classifier lookup timed out after {config.lookup_timeout_s:g}s"
        ) from exc
    except ClassifierError as exc:
        raise InternalError(str(exc)) from exc

    if len(url_threats) != len(urls):
        raise InternalError(
            f"classifier returned {len(url_threats)} results for {len(urls)} URLs"
        )

    find_response = build_find_response(urls, url_threats)
    logger.info(
        "threatMatches:find",
        urls=len(urls),
        matches=len(find_response.matches),
        format=wire_format.name,
    )
    return build_message_response(find_response, wire_format)
