"""Tests for API middleware: correlation ID, actor context, request audit log, preview headers."""

import json
import logging

import pytest
from httpx import ASGITransport, AsyncClient

from content_guard.api.middleware import (
    PREVIEW_SECURITY_HEADERS,
    client_ip_from,
    preview_token_from_path,
)
from content_guard.domain.models.preview import token_fingerprint
from content_guard.main import app


@pytest.fixture
async def client(app_with_overrides):
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_correlation_id_generated(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    assert len(r.headers["X-Correlation-ID"]) > 0


@pytest.mark.asyncio
async def test_correlation_id_preserved_when_passed(client: AsyncClient):
    r = await client.get("/health", headers={"X-Correlation-ID": "my-correlation-123"})
    assert r.headers.get("X-Correlation-ID") == "my-correlation-123"
    assert r.json()["correlation_id"] == "my-correlation-123"


@pytest.mark.asyncio
async def test_unknown_role_is_least_privileged(client: AsyncClient, editor_headers):
    headers = {**editor_headers, "X-Actor-Role": "SUPERUSER"}
    r = await client.post("/previews", json={"collection": "a", "slug": "b"}, headers=headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_preview_lookup_carries_security_headers(client: AsyncClient):
    r = await client.get("/previews/some-token")
    for name, value in PREVIEW_SECURITY_HEADERS.items():
        assert r.headers[name] == value


@pytest.mark.asyncio
async def test_other_routes_have_no_preview_headers(client: AsyncClient):
    r = await client.get("/health")
    assert "X-Robots-Tag" not in r.headers


@pytest.mark.asyncio
async def test_request_log_never_contains_token(client: AsyncClient, caplog):
    with caplog.at_level(logging.INFO, logger="content_guard.api.middleware"):
        await client.get("/previews/secret-token-value")
    lines = [json.loads(r.getMessage()) for r in caplog.records if "request_audit" in r.getMessage()]
    assert lines
    assert "secret-token-value" not in lines[-1]["path"]
    assert token_fingerprint("secret-token-value") in lines[-1]["path"]


def test_preview_token_from_path():
    assert preview_token_from_path("/previews/abc") == "abc"
    assert preview_token_from_path("/previews/approvals") is None
    assert preview_token_from_path("/previews/approvals/r-1/approve") is None
    assert preview_token_from_path("/previews") is None
    assert preview_token_from_path("/audit/recent") is None


def test_client_ip_prefers_forwarded_for():
    class _Client:
        host = "10.0.0.1"

    class _Request:
        def __init__(self, headers):
            self.headers = headers
            self.client = _Client()

    assert client_ip_from(_Request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})) == "203.0.113.7"
    assert client_ip_from(_Request({})) == "10.0.0.1"
