"""Unit tests for the application factory and lifespan lifecycle."""

from __future__ import annotations

import dataclasses

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from sbgateway.classifier.lookup_api import LookupAPIClassifier
from sbgateway.classifier.protocol import ClassifierInitError
from sbgateway.config import Config, UpstreamConfig
from sbgateway.main import create_app


class TestCreateApp:
    def test_returns_fastapi_instance(self, config, classifier) -> None:
        assert isinstance(create_app(config, classifier), FastAPI)

    def test_state_holds_collaborators(self, config, classifier) -> None:
        application = create_app(config, classifier)
        assert application.state.config is config
        assert application.state.classifier is classifier

    def test_loads_config_when_omitted(self, monkeypatch, classifier) -> None:
        stub = Config.defaults().with_overrides(api_key="from-loader")
        monkeypatch.setattr("sbgateway.main.load_config", lambda: stub)
        application = create_app(classifier=classifier)
        assert application.state.config is stub

    def test_docs_disabled_by_default(self, client: TestClient) -> None:
        assert client.get("/docs").status_code == 404


class TestLifespan:
    def test_injected_classifier_closed_on_shutdown(self, config, classifier) -> None:
        with TestClient(create_app(config, classifier)):
            assert classifier.closed is False
        assert classifier.closed is True

    def test_classifier_built_from_config(self) -> None:
        config = dataclasses.replace(Config.defaults(), upstream=UpstreamConfig(api_key="k"))
        application = create_app(config)
        with TestClient(application):
            assert isinstance(application.state.classifier, LookupAPIClassifier)

    def test_startup_fails_without_api_key(self) -> None:
        with pytest.raises(ClassifierInitError):
            with TestClient(create_app(Config.defaults())):
                pass
