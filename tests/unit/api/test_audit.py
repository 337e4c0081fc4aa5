"""Tests for the audit API: history, search, permissions, integrity verification."""

import pytest
from httpx import AsyncClient

from content_guard.domain.models.audit import AuditAction, AuditContext, AuditEntryDraft, ResourceRef


@pytest.fixture
async def seeded(audit_service, editor, request_context, clock):
    ctx = AuditContext(actor=editor, request=request_context)
    ids = []
    for action, summary in [
        (AuditAction.CREATE, "Created draft"),
        (AuditAction.UPDATE_FIELD, "Changed title"),
        (AuditAction.PUBLISH, "Went live"),
    ]:
        ids.append(
            await audit_service.log(
                AuditEntryDraft(
                    action=action,
                    resource=ResourceRef(type="articles", id="spring-launch", title="Spring launch"),
                    value_after={"step": summary},
                    change_summary=summary,
                ),
                ctx,
            )
        )
        clock.advance(1)
    return ids


@pytest.mark.asyncio
async def test_resource_history(async_client: AsyncClient, seeded, viewer_headers):
    r = await async_client.get("/audit/resources/articles/spring-launch", headers=viewer_headers)
    assert r.status_code == 200
    entries = r.json()["entries"]
    assert [e["id"] for e in entries] == list(reversed(seeded))
    assert entries[0]["action_category"] == "workflow"
    assert entries[0]["value_after"] == {"step": "Went live"}


@pytest.mark.asyncio
async def test_history_requires_actor(async_client: AsyncClient, seeded):
    r = await async_client.get("/audit/resources/articles/spring-launch")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_negative_limit_is_422(async_client: AsyncClient, viewer_headers):
    r = await async_client.get("/audit/recent", params={"limit": -1}, headers=viewer_headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_search_by_category(async_client: AsyncClient, seeded, viewer_headers):
    r = await async_client.get(
        "/audit/search", params={"category": "content", "limit": 1}, headers=viewer_headers
    )
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert len(body["entries"]) == 1
    assert body["entries"][0]["action"] == "update_field"


@pytest.mark.asyncio
async def test_search_free_text_and_actor(async_client: AsyncClient, seeded, viewer_headers):
    r = await async_client.get(
        "/audit/search",
        params={"q": "title", "actor": "editor@example.com"},
        headers=viewer_headers,
    )
    assert r.json()["total"] == 1


@pytest.mark.asyncio
async def test_search_unknown_action_is_422(async_client: AsyncClient, viewer_headers):
    r = await async_client.get("/audit/search", params={"action": "teleport"}, headers=viewer_headers)
    assert r.status_code == 422
    r = await async_client.get("/audit/search", params={"category": "nope"}, headers=viewer_headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_actor_history_and_recent(async_client: AsyncClient, seeded, viewer_headers):
    r = await async_client.get("/audit/actors/editor@example.com", headers=viewer_headers)
    assert len(r.json()["entries"]) == 3
    r = await async_client.get("/audit/recent", params={"limit": 2}, headers=viewer_headers)
    assert [e["id"] for e in r.json()["entries"]] == [seeded[2], seeded[1]]


@pytest.mark.asyncio
async def test_verify_requires_admin(async_client: AsyncClient, editor_headers):
    r = await async_client.post("/audit/verify", headers=editor_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_verify_reports_tampering(async_client: AsyncClient, seeded, audit_repo, admin_headers):
    audit_repo.rows[0]["change_summary"] = "Nothing happened"
    r = await async_client.post("/audit/verify", json={}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"valid_count": 2, "invalid_count": 1, "invalid_entry_ids": [seeded[0]]}


@pytest.mark.asyncio
async def test_verify_rejects_inverted_range(async_client: AsyncClient, admin_headers):
    r = await async_client.post("/audit/verify", json={"since": 10, "until": 5}, headers=admin_headers)
    assert r.status_code == 422
