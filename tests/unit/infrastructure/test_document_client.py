"""HttpDocumentSource against a mocked content system (httpx.MockTransport)."""

from datetime import datetime, timezone

import httpx
import pytest

from content_guard.application.exceptions import DocumentSourceError
from content_guard.domain.models.document import Sensitivity
from content_guard.infrastructure.http.document_client import HttpDocumentSource


def _source(handler):
    client = httpx.AsyncClient(
        base_url="http://cms.test/api/documents",
        transport=httpx.MockTransport(handler),
    )
    return HttpDocumentSource(client=client)


@pytest.mark.asyncio
async def test_document_is_mapped():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/documents/press/merger"
        return httpx.Response(
            200,
            json={
                "title": "Merger",
                "sensitivity": "embargoed",
                "embargo_until": "2026-03-01T14:00:00Z",
                "approved_for_preview": True,
                "body": "ciphertext",
                "is_encrypted": True,
            },
        )

    document = await _source(handler).get_document("press", "merger")
    assert document.collection == "press"
    assert document.slug == "merger"
    assert document.sensitivity is Sensitivity.EMBARGOED
    assert document.embargo_until == datetime(2026, 3, 1, 14, 0, tzinfo=timezone.utc)
    assert document.approved_for_preview is True
    assert document.is_encrypted is True


@pytest.mark.asyncio
async def test_missing_sensitivity_defaults_to_normal():
    document = await _source(lambda r: httpx.Response(200, json={"title": "T"})).get_document("a", "b")
    assert document.sensitivity is Sensitivity.NORMAL
    assert document.embargo_until is None


@pytest.mark.asyncio
async def test_not_found_returns_none():
    assert await _source(lambda r: httpx.Response(404)).get_document("a", "b") is None


@pytest.mark.asyncio
async def test_server_error_raises():
    with pytest.raises(DocumentSourceError):
        await _source(lambda r: httpx.Response(500)).get_document("a", "b")


@pytest.mark.asyncio
async def test_unknown_sensitivity_raises():
    handler = lambda r: httpx.Response(200, json={"sensitivity": "top-secret"})
    with pytest.raises(DocumentSourceError):
        await _source(handler).get_document("a", "b")


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(DocumentSourceError):
        await _source(handler).get_document("a", "b")


@pytest.mark.asyncio
async def test_embargo_without_offset_is_utc():
    handler = lambda r: httpx.Response(
        200, json={"sensitivity": "embargoed", "embargo_until": "2099-01-01T00:00:00"}
    )
    document = await _source(handler).get_document("press", "merger")
    assert document.embargo_until == datetime(2099, 1, 1, tzinfo=timezone.utc)
    assert document.embargo_until.tzinfo is not None


@pytest.mark.asyncio
async def test_embargo_as_epoch_millis():
    handler = lambda r: httpx.Response(
        200, json={"sensitivity": "embargoed", "embargo_until": 4102444800000}
    )
    document = await _source(handler).get_document("press", "merger")
    assert document.embargo_until == datetime(2100, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [["2099-01-01"], {"at": 1}, True, "next tuesday"])
async def test_unusable_embargo_raises(value):
    handler = lambda r: httpx.Response(200, json={"sensitivity": "embargoed", "embargo_until": value})
    with pytest.raises(DocumentSourceError):
        await _source(handler).get_document("press", "merger")
