"""ThreatClassifier backed by the Safe Browsing v4 Lookup API.

Every URL that is not in the local cache is sent upstream in a
``threatMatches:find`` call (at most MAX_LOOKUP_ENTRIES per call). The
request and response use the same schema and JSON wire format the gateway
serves, so upstream payloads and gateway payloads are the same messages.

Counters (``/status``):
  QueriesByCache    — URLs answered from the cache
  QueriesByAPI      — URLs answered by an upstream call
  QueriesFail       — URLs whose upstream call failed
  QueriesByDatabase — always 0; this classifier keeps no local database

The last upstream failure (including a lookup cancelled mid-call) is reported
by ``status()`` until the next upstream call succeeds.

Upstream failure modes (all raised as ClassifierError):
  - httpx.TimeoutException            → "upstream lookup timed out"
  - other httpx.HTTPError (connect …)  → "upstream lookup failed"
  - non-2xx response                  → "upstream lookup returned HTTP <code>"
  - body that does not decode         → "invalid upstream response"
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import httpx

from sbgateway.classifier.cache import ThreatCache
from sbgateway.classifier.protocol import (
    ClassifierError,
    ClassifierInitError,
    DEFAULT_THREAT_LISTS,
    Stats,
    ThreatDescriptor,
    URLThreat,
)
from sbgateway.constants import (
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CLIENT_ID,
    DEFAULT_CLIENT_VERSION,
    DEFAULT_NEGATIVE_CACHE_TTL_S,
    DEFAULT_UPSTREAM_BASE_URL,
    FIND_THREAT_PATH,
    MAX_LOOKUP_ENTRIES,
    MIME_JSON,
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
    UPSTREAM_TIMEOUT_S,
)
from sbgateway.protocol import schema
from sbgateway.protocol.codec import CodecError, WireFormat
from sbgateway.utils.logger import get_logger

logger = get_logger(__name__)

# Longest upstream error body echoed into an error message.
_ERROR_BODY_SNIPPET = 200


def create_http_client(timeout_s: float = UPSTREAM_TIMEOUT_S) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used for upstream lookups.

    Created once per classifier and NEVER per request.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=False,
    )


def _unique(values: Sequence[int]) -> list[int]:
    return list(dict.fromkeys(values))


class LookupAPIClassifier:
    """Classifier that forwards cache misses to the Safe Browsing Lookup API.

    Args:
        api_key:        Upstream API key (required).
        base_url:       Upstream API root.
        threat_lists:   Subscribed lists; empty means DEFAULT_THREAT_LISTS
                        are queried upstream.
        client_id:      ClientInfo.client_id sent upstream.
        client_version: ClientInfo.client_version sent upstream.
        negative_ttl_s: Cache lifetime of a URL with no matches.
        cache:          Result cache (a fresh one by default).
        http_client:    Shared client; when omitted one is created and owned.
        max_batch:      Largest number of entries per upstream call.
        timeout_s:      Upstream timeout of an owned http client.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_UPSTREAM_BASE_URL,
        threat_lists: Sequence[ThreatDescriptor] = (),
        client_id: str = DEFAULT_CLIENT_ID,
        client_version: str = DEFAULT_CLIENT_VERSION,
        negative_ttl_s: float = DEFAULT_NEGATIVE_CACHE_TTL_S,
        cache: Optional[ThreatCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_batch: int = MAX_LOOKUP_ENTRIES,
        timeout_s: float = UPSTREAM_TIMEOUT_S,
    ) -> None:
        if not api_key:
            raise ClassifierInitError("no API key specified")
        try:
            url = httpx.URL(base_url)
        except httpx.InvalidURL as exc:
            raise ClassifierInitError(f"invalid upstream base URL {base_url!r}: {exc}") from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise ClassifierInitError(f"invalid upstream base URL {base_url!r}")
        if max_batch <= 0:
            raise ClassifierInitError(f"max_batch must be positive, got {max_batch}")

        self._api_key = api_key
        self._find_url = str(base_url).rstrip("/") + FIND_THREAT_PATH
        self._threat_lists = tuple(threat_lists)
        self._client_id = client_id
        self._client_version = client_version
        self._negative_ttl_s = negative_ttl_s
        self._cache = cache if cache is not None else ThreatCache(DEFAULT_CACHE_MAX_ENTRIES)
        self._owns_http_client = http_client is None
        self._http = http_client if http_client is not None else create_http_client(timeout_s)
        self._max_batch = max_batch
        self._stats = Stats()
        self._last_error: Optional[Exception] = None

    async def lookup_urls(self, urls: Sequence[str]) -> list[list[URLThreat]]:
        results: list[list[URLThreat]] = [[] for _ in urls]

        # Cache misses, each URL once, with every position it occupies.
        pending: dict[str, list[int]] = {}
        for position, url in enumerate(urls):
            cached = self._cache.get(url)
            if cached is not None:
                results[position] = cached
                self._stats.QueriesByCache += 1
                continue
            pending.setdefault(url, []).append(position)

        misses = list(pending)
        for start in range(0, len(misses), self._max_batch):
            batch = misses[start:start + self._max_batch]
            try:
                found = await self._find_threat_matches(batch)
            except ClassifierError as exc:
                self._record_failure(exc, sum(len(pending[url]) for url in misses[start:]))
                raise
            except asyncio.CancelledError:
                # The caller gave up (lookup timeout or client disconnect) mid-call.
                self._record_failure(
                    ClassifierError("upstream lookup cancelled"),
                    sum(len(pending[url]) for url in misses[start:]),
                )
                raise
            self._last_error = None

            for url in batch:
                threats, ttl_s = found.get(url, ([], self._negative_ttl_s))
                self._cache.put(url, threats, ttl_s)
                for position in pending[url]:
                    results[position] = list(threats)
                self._stats.QueriesByAPI += len(pending[url])

        logger.debug(
            "Lookup complete",
            urls=len(urls),
            upstream=len(misses),
            matched=sum(1 for threats in results if threats),
        )
        return results

    async def status(self) -> tuple[Stats, Optional[Exception]]:
        return self._stats.model_copy(), self._last_error

    async def close(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    def _record_failure(self, exc: ClassifierError, failed_urls: int) -> None:
        self._stats.QueriesFail += failed_urls
        self._last_error = exc
        logger.warning("Upstream lookup failed", error=str(exc), failed_urls=failed_urls)

    # ── Upstream ──────────────────────────────────────────────────────────────

    def _build_request(self, urls: Sequence[str]):
        lists = self._threat_lists or DEFAULT_THREAT_LISTS
        request = schema.FindThreatMatchesRequest()
        request.client.client_id = self._client_id
        request.client.client_version = self._client_version
        info = request.threat_info
        info.threat_types.extend(_unique([d.threat_type for d in lists]))
        info.platform_types.extend(_unique([d.platform_type for d in lists]))
        info.threat_entry_types.extend(_unique([d.threat_entry_type for d in lists]))
        for url in urls:
            info.threat_entries.add(url=url)
        return request

    async def _find_threat_matches(
        self, urls: Sequence[str]
    ) -> dict[str, tuple[list[URLThreat], float]]:
        """One upstream call. Returns ``{url: (threats, cache ttl)}`` for matched URLs."""
        body = WireFormat.JSON.encode(self._build_request(urls))
        try:
            response = await self._http.post(
                self._find_url,
                params={"key": self._api_key},
                content=body,
                headers={"Content-Type": MIME_JSON},
            )
        except httpx.TimeoutException as exc:
            raise ClassifierError(f"upstream lookup timed out: {type(exc).__name__}") from exc
        except httpx.HTTPError as exc:
            raise ClassifierError(f"upstream lookup failed: {type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise ClassifierError(
                f"upstream lookup returned HTTP {response.status_code}: "
                f"{response.text[:_ERROR_BODY_SNIPPET]}"
            )

        try:
            decoded = WireFormat.JSON.decode(
                response.content,
                schema.FindThreatMatchesResponse,
                ignore_unknown_fields=True,
            )
        except CodecError as exc:
            raise ClassifierError(f"invalid upstream response: {exc}") from exc

        found: dict[str, tuple[list[URLThreat], float]] = {}
        for match in decoded.matches:
            url = match.threat.url
            descriptor = ThreatDescriptor(
                match.threat_type, match.platform_type, match.threat_entry_type
            )
            ttl_s = (
                match.cache_duration.ToTimedelta().total_seconds()
                if match.HasField("cache_duration")
                else 0.0
            )
            threats, previous_ttl_s = found.get(url, ([], ttl_s))
            threats.append(URLThreat(pattern=url, descriptor=descriptor))
            found[url] = (threats, min(previous_ttl_s, ttl_s))
        return found
