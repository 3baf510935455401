"""Root test configuration for sbgateway.

Provides a FakeClassifier that satisfies the ThreatClassifier Protocol
without any network access, plus fixtures wiring it into an application:

  classifier — a fresh FakeClassifier; tests set ``threats`` / ``lookup_error``
               / ``last_error`` on it before issuing requests
  config     — Config.defaults() (no file I/O)
  client     — TestClient over create_app(config, classifier), lifespan run

Environment overrides are cleared for every test so a developer's
SBGATEWAY_* variables never leak into config loading.
"""

from __future__ import annotations

import asyncio
from typing import Iterator, Optional, Sequence

import pytest
from starlette.testclient import TestClient

from sbgateway.classifier.protocol import Stats, ThreatDescriptor, URLThreat
from sbgateway.config import ENV_ADDR, ENV_API_KEY, ENV_CONFIG, ENV_DB, Config
from sbgateway.main import create_app

MALWARE = ThreatDescriptor.from_names("MALWARE", "ANY_PLATFORM", "URL")
PHISHING = ThreatDescriptor.from_names("SOCIAL_ENGINEERING", "ANY_PLATFORM", "URL")


class FakeClassifier:
    """In-memory ThreatClassifier for endpoint tests."""

    def __init__(self) -> None:
        self.threats: dict[str, list[URLThreat]] = {}
        self.lookup_error: Optional[Exception] = None
        self.lookup_delay_s: float = 0.0
        self.stats = Stats()
        self.last_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.calls: list[list[str]] = []
        self.closed = False

    async def lookup_urls(self, urls: Sequence[str]) -> list[list[URLThreat]]:
        self.calls.append(list(urls))
        if self.lookup_delay_s:
            await asyncio.sleep(self.lookup_delay_s)
        if self.lookup_error is not None:
            raise self.lookup_error
        return [list(self.threats.get(url, [])) for url in urls]

    async def status(self) -> tuple[Stats, Optional[Exception]]:
        if self.status_error is not None:
            raise self.status_error
        return self.stats, self.last_error

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def clear_sbgateway_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove SBGATEWAY_* overrides from the test environment."""
    for name in (ENV_CONFIG, ENV_API_KEY, ENV_ADDR, ENV_DB):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def config() -> Config:
    return Config.defaults()


@pytest.fixture
def client(config: Config, classifier: FakeClassifier) -> Iterator[TestClient]:
    with TestClient(create_app(config, classifier)) as test_client:
        yield test_client
