"""Unit tests for ThreatCache (per-URL TTL, bounded size)."""

from __future__ import annotations

from sbgateway.classifier.cache import ThreatCache
from sbgateway.classifier.protocol import ThreatDescriptor, URLThreat

MALWARE = ThreatDescriptor.from_names("MALWARE", "ANY_PLATFORM", "URL")


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _threats(url: str) -> list[URLThreat]:
    return [URLThreat(url, MALWARE)]


class TestThreatCache:
    def test_miss(self) -> None:
        assert ThreatCache(10).get("a.com") is None

    def test_hit_until_expiry(self) -> None:
        clock = FakeClock()
        cache = ThreatCache(10, clock=clock)
        cache.put("a.com", _threats("a.com"), ttl_s=60)

        clock.now += 59
        assert cache.get("a.com") == _threats("a.com")

        clock.now += 1
        assert cache.get("a.com") is None
        assert len(cache) == 0

    def test_negative_result_cached(self) -> None:
        cache = ThreatCache(10)
        cache.put("clean.com", [], ttl_s=300)
        assert cache.get("clean.com") == []

    def test_non_positive_ttl_not_stored(self) -> None:
        cache = ThreatCache(10)
        cache.put("a.com", [], ttl_s=0)
        cache.put("b.com", [], ttl_s=-5)
        assert len(cache) == 0

    def test_zero_capacity_disables_cache(self) -> None:
        cache = ThreatCache(0)
        cache.put("a.com", [], ttl_s=60)
        assert cache.get("a.com") is None

    def test_oldest_evicted(self) -> None:
        cache = ThreatCache(2)
        cache.put("a.com", [], ttl_s=60)
        cache.put("b.com", [], ttl_s=60)
        cache.put("c.com", [], ttl_s=60)
        assert cache.get("a.com") is None
        assert cache.get("b.com") == []
        assert cache.get("c.com") == []

    def test_reinsert_refreshes_position(self) -> None:
        cache = ThreatCache(2)
        cache.put("a.com", [], ttl_s=60)
        cache.put("b.com", [], ttl_s=60)
        cache.put("a.com", [], ttl_s=60)
        cache.put("c.com", [], ttl_s=60)
        assert cache.get("a.com") == []
        assert cache.get("b.com") is None

    def test_returned_list_is_a_copy(self) -> None:
        cache = ThreatCache(10)
        cache.put("a.com", _threats("a.com"), ttl_s=60)
        cache.get("a.com").clear()  # type: ignore[union-attr]
        assert cache.get("a.com") == _threats("a.com")
