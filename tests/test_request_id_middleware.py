from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from coach_relay.core.middleware import origin_host


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_security_headers_on_every_response(client: TestClient):
    resp = client.get("/health")

    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "max-age" in resp.headers["Strict-Transport-Security"]


def test_security_headers_on_error_responses(client: TestClient):
    resp = client.post("/api/chat", json={"messages": []})

    assert resp.status_code == 401
    assert resp.headers["X-Frame-Options"] == "DENY"


class TestCsrfOriginCheck:
    def test_cross_site_post_is_rejected(self, client: TestClient, user_headers):
        resp = client.post(
            "/api/sync",
            json={"data": {}},
            headers={**user_headers, "Origin": "https://evil.example.com"},
        )

        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "csrf_origin_mismatch"
        assert resp.headers.get("X-Request-ID")

    def test_malformed_origin_is_rejected(self, client: TestClient, user_headers):
        resp = client.post(
            "/api/sync",
            json={"data": {}},
            headers={**user_headers, "Origin": "null"},
        )

        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "csrf_invalid_origin"

    def test_same_origin_post_passes(self, client: TestClient, user_headers):
        resp = client.post(
            "/api/sync",
            json={"data": {}},
            headers={**user_headers, "Origin": "http://testserver"},
        )

        assert resp.status_code == 200

    def test_post_without_origin_passes(self, client: TestClient, user_headers):
        resp = client.post("/api/sync", json={"data": {}}, headers=user_headers)

        assert resp.status_code == 200

    def test_safe_methods_are_not_checked(self, client: TestClient):
        resp = client.get("/health", headers={"Origin": "https://evil.example.com"})

        assert resp.status_code == 200

    @pytest.mark.parametrize(
        "origin",
        ["http://testserver:80", "http://attacker@testserver", "HTTP://TestServer"],
    )
    def test_origin_is_compared_by_host(self, client: TestClient, user_headers, origin: str):
        resp = client.post("/api/sync", json={"data": {}}, headers={**user_headers, "Origin": origin})

        assert resp.status_code == 200

    def test_userinfo_cannot_spoof_the_host(self, client: TestClient, user_headers):
        resp = client.post(
            "/api/sync",
            json={"data": {}},
            headers={**user_headers, "Origin": "https://testserver@evil.example.com"},
        )

        assert resp.status_code == 403


class TestOriginHost:
    @pytest.mark.parametrize(
        ("origin", "expected"),
        [
            ("https://app.example.com", "app.example.com"),
            ("https://app.example.com:443", "app.example.com"),
            ("http://localhost:3000", "localhost:3000"),
            ("http://user:pw@app.example.com", "app.example.com"),
            ("https://[::1]:8443", "[::1]:8443"),
        ],
    )
    def test_matches_url_host(self, origin: str, expected: str):
        assert origin_host(origin) == expected

    @pytest.mark.parametrize("origin", ["null", "app.example.com", "https://", "http://host:notaport"])
    def test_rejects_unusable_values(self, origin: str):
        assert origin_host(origin) is None
