"""Fixtures for API unit tests: in-memory stores, fake content system, AsyncClient."""

import pytest
from httpx import ASGITransport, AsyncClient

from content_guard.main import app
from content_guard.scalability.rate_limiter import ClientRateLimiter, InMemoryRateLimitBackend
from content_guard.security.encryption import EncryptionService

ENCRYPTION_KEY = "test-secret-key-at-least-32-chars-long-for-aes"


@pytest.fixture
def encryption():
    return EncryptionService(ENCRYPTION_KEY)


@pytest.fixture
def rate_limiter(metrics):
    return ClientRateLimiter(
        InMemoryRateLimitBackend(), requests_per_window=5, window_seconds=60, metrics=metrics
    )


@pytest.fixture
def app_with_overrides(
    audit_service, grant_repo, approval_repo, documents, rate_limiter, encryption, metrics
):
    """App with stores, content system and rate limiter overridden for testing."""
    from content_guard.api import dependencies

    app.dependency_overrides[dependencies.get_audit_service] = lambda: audit_service
    app.dependency_overrides[dependencies.get_grant_repository] = lambda: grant_repo
    app.dependency_overrides[dependencies.get_approval_repository] = lambda: approval_repo
    app.dependency_overrides[dependencies.get_document_source] = lambda: documents
    app.dependency_overrides[dependencies.get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[dependencies.get_encryption_service] = lambda: encryption
    app.dependency_overrides[dependencies.get_metrics] = lambda: metrics
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app_with_overrides):
    """Async HTTP client for testing; uses overridden app."""
    transport = ASGITransport(app=app_with_overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def actor_headers(role="EDITOR", actor_id="u-1", email="editor@example.com"):
    return {
        "X-Actor-ID": actor_id,
        "X-Actor-Email": email,
        "X-Actor-Name": "Test User",
        "X-Actor-Role": role,
    }


@pytest.fixture
def editor_headers():
    return actor_headers("EDITOR")


@pytest.fixture
def admin_headers():
    return actor_headers("ADMIN", actor_id="u-9", email="admin@example.com")


@pytest.fixture
def approver_headers():
    return actor_headers("APPROVER", actor_id="u-2", email="approver@example.com")


@pytest.fixture
def viewer_headers():
    return actor_headers("VIEWER", actor_id="u-3", email="viewer@example.com")
