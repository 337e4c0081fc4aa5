"""Tests for the preview API: create, public lookup, rejections, approvals, listing."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from content_guard.application.exceptions import GrantStoreUnavailableError
from content_guard.domain.models.document import Document, Sensitivity


@pytest.fixture
def published(documents, normal_doc):
    return documents.put(normal_doc)


@pytest.fixture
def confidential(documents, encryption):
    return documents.put(
        Document(
            collection="reports",
            slug="q3",
            title="Q3 results",
            sensitivity=Sensitivity.CONFIDENTIAL,
            body=encryption.encrypt("Revenue up"),
            is_encrypted=True,
        )
    )


async def _create(client, headers, **body):
    payload = {"collection": "articles", "slug": "spring-launch", **body}
    return await client.post("/previews", json=payload, headers=headers)


@pytest.mark.asyncio
async def test_create_and_view(async_client: AsyncClient, published, editor_headers):
    r = await _create(async_client, editor_headers, max_views=2)
    assert r.status_code == 201
    data = r.json()
    assert data["max_views"] == 2
    assert data["sensitivity"] == "normal"

    view = await async_client.get(f"/previews/{data['token']}")
    assert view.status_code == 200
    assert view.json() == {
        "valid": True,
        "content": "<p>Hello</p>",
        "sensitivity": "normal",
        "views_remaining": 1,
    }
    assert view.headers["Cache-Control"] == "private, no-store, no-cache, must-revalidate"


@pytest.mark.asyncio
async def test_create_requires_actor(async_client: AsyncClient, published):
    r = await _create(async_client, {})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_viewer_cannot_create(async_client: AsyncClient, published, viewer_headers):
    r = await _create(async_client, viewer_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_unknown_document_is_404(async_client: AsyncClient, editor_headers):
    r = await _create(async_client, editor_headers, slug="nope")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_invalid_body_is_422(async_client: AsyncClient, published, editor_headers):
    r = await _create(async_client, editor_headers, max_views=0)
    assert r.status_code == 422
    r = await _create(async_client, editor_headers, ip_allowlist=["not-an-ip"])
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_embargo_is_409(async_client: AsyncClient, documents, editor_headers):
    documents.put(
        Document(
            collection="press",
            slug="merger",
            title="Merger",
            sensitivity=Sensitivity.EMBARGOED,
            embargo_until=datetime.now(timezone.utc) + timedelta(minutes=2),
            approved_for_preview=True,
        )
    )
    r = await async_client.post(
        "/previews", json={"collection": "press", "slug": "merger"}, headers=editor_headers
    )
    assert r.status_code == 409
    assert "embargo" in r.json()["detail"]


@pytest.mark.asyncio
async def test_unapproved_confidential_is_409(async_client: AsyncClient, confidential, editor_headers):
    r = await async_client.post(
        "/previews", json={"collection": "reports", "slug": "q3"}, headers=editor_headers
    )
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_approval_flow_unlocks_confidential_preview(
    async_client: AsyncClient, confidential, editor_headers, approver_headers
):
    requested = await async_client.post(
        "/previews/approvals",
        json={"collection": "reports", "slug": "q3", "reason": "Board review"},
        headers=editor_headers,
    )
    assert requested.status_code == 201
    request_id = requested.json()["request_id"]
    assert requested.json()["status"] == "PENDING"

    denied = await async_client.post(
        f"/previews/approvals/{request_id}/approve", headers=editor_headers
    )
    assert denied.status_code == 403

    approved = await async_client.post(
        f"/previews/approvals/{request_id}/approve", headers=approver_headers
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"

    again = await async_client.post(
        f"/previews/approvals/{request_id}/reject", headers=approver_headers
    )
    assert again.status_code == 409

    created = await async_client.post(
        "/previews",
        json={"collection": "reports", "slug": "q3", "max_views": 50},
        headers=editor_headers,
    )
    assert created.status_code == 201
    assert created.json()["max_views"] == 10

    view = await async_client.get(f"/previews/{created.json()['token']}")
    assert view.status_code == 200
    assert view.json()["content"] == "Revenue up"


@pytest.mark.asyncio
async def test_unknown_token_is_403_with_reason(async_client: AsyncClient):
    r = await async_client.get("/previews/does-not-exist")
    assert r.status_code == 403
    body = r.json()
    assert body["valid"] is False
    assert body["reason"] == "invalid_token"


@pytest.mark.asyncio
async def test_exhausted_token(async_client: AsyncClient, published, editor_headers):
    token = (await _create(async_client, editor_headers, max_views=1)).json()["token"]
    assert (await async_client.get(f"/previews/{token}")).status_code == 200
    r = await async_client.get(f"/previews/{token}")
    assert r.status_code == 403
    assert r.json()["reason"] == "max_views_exceeded"


@pytest.mark.asyncio
async def test_ip_allowlist_enforced(async_client: AsyncClient, published, editor_headers):
    token = (
        await _create(async_client, editor_headers, ip_allowlist=["203.0.113.0/24"])
    ).json()["token"]
    blocked = await async_client.get(f"/previews/{token}", headers={"X-Forwarded-For": "198.51.100.1"})
    assert blocked.json()["reason"] == "ip_not_allowed"
    allowed = await async_client.get(f"/previews/{token}", headers={"X-Forwarded-For": "203.0.113.9"})
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_rate_limited_lookups(async_client: AsyncClient, metrics):
    statuses = [
        (await async_client.get("/previews/guess", headers={"X-Forwarded-For": "192.0.2.1"})).status_code
        for _ in range(6)
    ]
    assert statuses[:5] == [403] * 5
    assert statuses[5] == 429
    assert metrics.counter("preview_rate_limited") == 1


@pytest.mark.asyncio
async def test_store_outage_is_503(async_client: AsyncClient, grant_repo, monkeypatch):
    async def broken_get(token):
        raise GrantStoreUnavailableError("Grant store unavailable")

    monkeypatch.setattr(grant_repo, "get", broken_get)
    r = await async_client.get("/previews/any-token")
    assert r.status_code == 503
    assert r.headers["Retry-After"] == "1"


@pytest.mark.asyncio
async def test_list_active_grants(async_client: AsyncClient, published, editor_headers):
    token = (await _create(async_client, editor_headers)).json()["token"]
    r = await async_client.get(
        "/previews", params={"collection": "articles", "slug": "spring-launch"}, headers=editor_headers
    )
    assert r.status_code == 200
    (grant,) = r.json()
    assert grant["state"] == "issued"
    assert grant["token_fingerprint"] != token
    assert token not in r.text


@pytest.mark.asyncio
async def test_list_requires_actor(async_client: AsyncClient):
    assert (await async_client.get("/previews")).status_code == 401
