"""Integration tests for POST /v4/threatMatches:find.

Covers:
  - JSON request / JSON response with classifier matches
  - dedup of repeated descriptors per URL, threat.url echoing the queried URL
  - binary protobuf request and response (Content-Type and alt=proto)
  - method, interchange format, decode and entry validation failures (400)
  - classifier failure and timeout (500)
"""

from __future__ import annotations

import dataclasses
import json

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from sbgateway.classifier.protocol import ClassifierError, ThreatDescriptor, URLThreat
from sbgateway.config import Config
from sbgateway.constants import FIND_THREAT_PATH, MIME_JSON, MIME_PROTO
from sbgateway.main import create_app
from sbgateway.protocol import schema

MALWARE = ThreatDescriptor.from_names("MALWARE", "ANY_PLATFORM", "URL")
PHISHING = ThreatDescriptor.from_names("SOCIAL_ENGINEERING", "ANY_PLATFORM", "URL")
UNWANTED = ThreatDescriptor.from_names("UNWANTED_SOFTWARE", "WINDOWS", "URL")

JSON_HEADERS = {"Content-Type": MIME_JSON}


def _find_body(*urls: str) -> str:
    return json.dumps({"threatInfo": {"threatEntries": [{"url": url} for url in urls]}})


# ─── Successful lookups ───────────────────────────────────────────────────────


class TestFindJSON:
    def test_matches_for_bad_url_only(self, client: TestClient, classifier) -> None:
        classifier.threats = {
            "bad1url.org": [
                URLThreat("bad1url.org", MALWARE),
                URLThreat("bad1url.org", PHISHING),
            ]
        }
        response = client.post(
            FIND_THREAT_PATH, content=_find_body("google.com", "bad1url.org"), headers=JSON_HEADERS
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == MIME_JSON
        matches = response.json()["matches"]
        assert matches == [
            {
                "threatType": "MALWARE",
                "platformType": "ANY_PLATFORM",
                "threat": {"url": "bad1url.org"},
                "threatEntryType": "URL",
            },
            {
                "threatType": "SOCIAL_ENGINEERING",
                "platformType": "ANY_PLATFORM",
                "threat": {"url": "bad1url.org"},
                "threatEntryType": "URL",
            },
        ]

    def test_classifier_called_once_with_urls_in_order(self, client: TestClient, classifier) -> None:
        client.post(FIND_THREAT_PATH, content=_find_body("a.com", "b.com", "c.com"), headers=JSON_HEADERS)
        assert classifier.calls == [["a.com", "b.com", "c.com"]]

    def test_no_matches_is_empty_object(self, client: TestClient) -> None:
        response = client.post(FIND_THREAT_PATH, content=_find_body("google.com"), headers=JSON_HEADERS)
        assert response.status_code == 200
        assert response.json() == {}

    def test_repeated_descriptor_reported_once(self, client: TestClient, classifier) -> None:
        classifier.threats = {
            "evil.example/a": [
                URLThreat("evil.example/", MALWARE),
                URLThreat("evil.example/a", MALWARE),
                URLThreat("evil.example/a", UNWANTED),
                URLThreat("evil.example/", UNWANTED),
            ]
        }
        response = client.post(FIND_THREAT_PATH, content=_find_body("evil.example/a"), headers=JSON_HEADERS)

        matches = response.json()["matches"]
        assert [(m["threatType"], m["platformType"]) for m in matches] == [
            ("MALWARE", "ANY_PLATFORM"),
            ("UNWANTED_SOFTWARE", "WINDOWS"),
        ]

    def test_threat_url_is_queried_url_not_pattern(self, client: TestClient, classifier) -> None:
        classifier.threats = {"http://evil.example/x/y": [URLThreat("evil.example/", MALWARE)]}
        response = client.post(
            FIND_THREAT_PATH, content=_find_body("http://evil.example/x/y"), headers=JSON_HEADERS
        )
        assert response.json()["matches"][0]["threat"] == {"url": "http://evil.example/x/y"}

    def test_matches_follow_input_url_order(self, client: TestClient, classifier) -> None:
        classifier.threats = {
            "first.example": [URLThreat("first.example", PHISHING)],
            "second.example": [URLThreat("second.example", MALWARE)],
        }
        response = client.post(
            FIND_THREAT_PATH,
            content=_find_body("second.example", "ok.example", "first.example"),
            headers=JSON_HEADERS,
        )
        urls = [m["threat"]["url"] for m in response.json()["matches"]]
        assert urls == ["second.example", "first.example"]

    def test_type_filters_do_not_restrict_matches(self, client: TestClient, classifier) -> None:
        classifier.threats = {"bad.example": [URLThreat("bad.example", PHISHING)]}
        body = json.dumps(
            {
                "threatInfo": {
                    "threatTypes": ["MALWARE"],
                    "platformTypes": ["WINDOWS"],
                    "threatEntryTypes": ["URL"],
                    "threatEntries": [{"url": "bad.example"}],
                }
            }
        )
        response = client.post(FIND_THREAT_PATH, content=body, headers=JSON_HEADERS)
        assert response.json()["matches"][0]["threatType"] == "SOCIAL_ENGINEERING"

    def test_content_type_parameters_ignored(self, client: TestClient) -> None:
        response = client.post(
            FIND_THREAT_PATH,
            content=_find_body("google.com"),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        assert response.status_code == 200

    def test_unrecognized_content_type_with_alt_skips_decode(
        self, client: TestClient, classifier
    ) -> None:
        response = client.post(
            FIND_THREAT_PATH + "?alt=json",
            content=_find_body("google.com"),
            headers={"Content-Type": "text/plain"},
        )
        assert response.status_code == 200
        assert response.json() == {}
        assert classifier.calls == [[]]


class TestFindProtobuf:
    def test_binary_request_and_response(self, client: TestClient, classifier) -> None:
        classifier.threats = {"bad1url.org": [URLThreat("bad1url.org", MALWARE)]}
        request = schema.FindThreatMatchesRequest()
        request.threat_info.threat_entries.add(url="google.com")
        request.threat_info.threat_entries.add(url="bad1url.org")

        response = client.post(
            FIND_THREAT_PATH,
            content=request.SerializeToString(),
            headers={"Content-Type": MIME_PROTO},
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == MIME_PROTO
        decoded = schema.FindThreatMatchesResponse.FromString(response.content)
        assert len(decoded.matches) == 1
        assert decoded.matches[0].threat.url == "bad1url.org"
        assert decoded.matches[0].threat_type == schema.ThreatType.Value("MALWARE")

    def test_alt_proto_overrides_json_content_type(self, client: TestClient, classifier) -> None:
        classifier.threats = {"bad1url.org": [URLThreat("bad1url.org", PHISHING)]}
        response = client.post(
            FIND_THREAT_PATH + "?alt=proto", content=_find_body("bad1url.org"), headers=JSON_HEADERS
        )

        assert response.headers["content-type"] == MIME_PROTO
        decoded = schema.FindThreatMatchesResponse.FromString(response.content)
        assert decoded.matches[0].threat_type == schema.ThreatType.Value("SOCIAL_ENGINEERING")

    def test_alt_json_overrides_proto_content_type(self, client: TestClient) -> None:
        request = schema.FindThreatMatchesRequest()
        request.threat_info.threat_entries.add(url="google.com")
        response = client.post(
            FIND_THREAT_PATH + "?alt=application/json",
            content=request.SerializeToString(),
            headers={"Content-Type": MIME_PROTO},
        )
        assert response.headers["content-type"] == MIME_JSON
        assert response.json() == {}


# ─── Client errors ────────────────────────────────────────────────────────────


class TestFindRejections:
    def test_wrong_method(self, client: TestClient, classifier) -> None:
        response = client.get(FIND_THREAT_PATH)
        assert response.status_code == 400
        assert response.text == "invalid method"
        assert classifier.calls == []

    def test_unrecognized_content_type_without_alt(self, client: TestClient, classifier) -> None:
        response = client.post(
            FIND_THREAT_PATH, content=_find_body("google.com"), headers={"Content-Type": "text/xml"}
        )
        assert response.status_code == 400
        assert response.text == "invalid interchange format"
        assert classifier.calls == []

    def test_missing_content_type_without_alt(self, client: TestClient, classifier) -> None:
        response = client.post(FIND_THREAT_PATH, content=_find_body("google.com").encode())
        assert response.status_code == 400
        assert response.text == "invalid interchange format"
        assert classifier.calls == []

    def test_empty_alt_and_content_type(self, client: TestClient, classifier) -> None:
        response = client.post(
            FIND_THREAT_PATH + "?alt=", content=_find_body("google.com"), headers={"Content-Type": ""}
        )
        assert response.status_code == 400
        assert classifier.calls == []

    def test_unknown_alt_value(self, client: TestClient) -> None:
        response = client.post(
            FIND_THREAT_PATH + "?alt=xml", content=_find_body("google.com"), headers=JSON_HEADERS
        )
        assert response.status_code == 400
        assert response.text == "invalid interchange format"

    def test_hash_entry_rejects_whole_batch(self, client: TestClient, classifier) -> None:
        body = json.dumps(
            {
                "threatInfo": {
                    "threatEntries": [{"url": "google.com"}, {"url": "bad1url.org", "hash": "abcd"}]
                }
            }
        )
        response = client.post(FIND_THREAT_PATH, content=body, headers=JSON_HEADERS)
        assert response.status_code == 400
        assert response.text == "only ThreatEntry.Url may be set"
        assert classifier.calls == []

    def test_entry_without_url(self, client: TestClient, classifier) -> None:
        body = json.dumps({"threatInfo": {"threatEntries": [{"url": "a.com"}, {}]}})
        response = client.post(FIND_THREAT_PATH, content=body, headers=JSON_HEADERS)
        assert response.status_code == 400
        assert response.text == "only ThreatEntry.Url may be set"
        assert classifier.calls == []

    def test_malformed_json(self, client: TestClient, classifier) -> None:
        response = client.post(FIND_THREAT_PATH, content=b"{not json", headers=JSON_HEADERS)
        assert response.status_code == 400
        assert response.text
        assert response.headers["content-type"].startswith("text/plain")
        assert classifier.calls == []

    def test_malformed_protobuf(self, client: TestClient) -> None:
        response = client.post(
            FIND_THREAT_PATH, content=b"\x12\xff\xff\xff", headers={"Content-Type": MIME_PROTO}
        )
        assert response.status_code == 400

    def test_unknown_json_field_rejected(self, client: TestClient) -> None:
        response = client.post(FIND_THREAT_PATH, content=b'{"bogus": 1}', headers=JSON_HEADERS)
        assert response.status_code == 400


# ─── Server errors ────────────────────────────────────────────────────────────


class TestFindClassifierFailures:
    def test_classifier_error_is_500_with_message(self, client: TestClient, classifier) -> None:
        classifier.lookup_error = ClassifierError("upstream lookup returned HTTP 503: unavailable")
        response = client.post(FIND_THREAT_PATH, content=_find_body("a.com"), headers=JSON_HEADERS)
        assert response.status_code == 500
        assert response.text == "upstream lookup returned HTTP 503: unavailable"

    def test_unexpected_exception_is_generic_500(self, config: Config, classifier) -> None:
        classifier.lookup_error = RuntimeError("boom")
        application = create_app(config, classifier)
        with TestClient(application, raise_server_exceptions=False) as test_client:
            response = test_client.post(
                FIND_THREAT_PATH, content=_find_body("a.com"), headers=JSON_HEADERS
            )
        assert response.status_code == 500
        assert response.text == "internal server error"

    @pytest.mark.asyncio
    async def test_lookup_timeout_is_500(self, classifier) -> None:
        config = dataclasses.replace(Config.defaults(), lookup_timeout_s=0.05)
        classifier.lookup_delay_s = 1.0
        application = create_app(config, classifier)
        transport = ASGITransport(app=application)  # type: ignore[arg-type]
        async with AsyncClient(transport=transport, base_url="http://test") as http:
            response = await http.post(
                FIND_THREAT_PATH, content=_find_body("slow.example"), headers=JSON_HEADERS
            )
        assert response.status_code == 500
        assert response.text == "classifier lookup timed out after 0.05s"
