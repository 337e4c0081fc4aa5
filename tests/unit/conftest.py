"""Shared fixtures: in-memory stores, fake clock, fake content system."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from content_guard.domain.models.audit import Actor, RequestContext
from content_guard.domain.models.document import Document, Sensitivity
from content_guard.domain.models.preview import PreviewGrant, ResourceLocator
from content_guard.governance.approval_workflow import ApprovalRequest, ApprovalStatus
from content_guard.governance.audit_service import AuditLogService
from content_guard.observability.metrics import MetricsCollector


class FakeClock:
    """Settable UTC clock. Call it like utc_now()."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class InMemoryAuditRepository:
    """Append-only list of rows. Tests may edit self.rows directly to simulate tampering."""

    def __init__(self):
        self.rows: list[dict] = []
        self.fail_times = 0

    async def append(self, row):
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("audit store unavailable")
        self.rows.append(dict(row))

    @staticmethod
    def _newest_first(rows):
        return sorted(rows, key=lambda r: (r["timestamp"], r["id"]), reverse=True)

    async def list_for_resource(self, resource_type, resource_id, *, limit, offset, actions=None):
        wanted = {a.value for a in actions} if actions else None
        rows = [
            r
            for r in self.rows
            if r["resource_type"] == resource_type
            and r["resource_id"] == resource_id
            and (wanted is None or r["action"] in wanted)
        ]
        return self._newest_first(rows)[offset : offset + limit]

    async def list_for_actor(self, actor_email, *, limit, since=None, until=None):
        rows = [
            r
            for r in self.rows
            if r["actor_email"] == actor_email
            and (since is None or r["timestamp"] >= since)
            and (until is None or r["timestamp"] <= until)
        ]
        return self._newest_first(rows)[:limit]

    async def search(self, filters, *, limit, offset):
        def matches(r):
            if filters.actions and r["action"] not in {a.value for a in filters.actions}:
                return False
            if filters.categories and r["action_category"] not in {c.value for c in filters.categories}:
                return False
            if filters.actors and r["actor_email"] not in filters.actors:
                return False
            if filters.resource_types and r["resource_type"] not in filters.resource_types:
                return False
            if filters.since is not None and r["timestamp"] < filters.since:
                return False
            if filters.until is not None and r["timestamp"] > filters.until:
                return False
            if filters.query:
                q = filters.query.lower()
                haystack = [r.get("resource_title"), r.get("change_summary"), r.get("actor_email")]
                if not any(q in (h or "").lower() for h in haystack):
                    return False
            return True

        rows = self._newest_first([r for r in self.rows if matches(r)])
        return rows[offset : offset + limit], len(rows)

    async def iter_range(self, since, until, *, batch_size):
        rows = sorted(
            (
                r
                for r in self.rows
                if (since is None or r["timestamp"] >= since)
                and (until is None or r["timestamp"] <= until)
            ),
            key=lambda r: (r["timestamp"], r["id"]),
        )
        for i in range(0, len(rows), batch_size):
            yield rows[i : i + batch_size]


class InMemoryGrantRepository:
    """Grant store whose consume is atomic within the event loop, like the conditional UPDATE."""

    def __init__(self):
        self.grants: dict[str, PreviewGrant] = {}
        self._lock = asyncio.Lock()

    async def add(self, grant):
        self.grants[grant.token] = grant

    async def get(self, token):
        grant = self.grants.get(token)
        # Yield so concurrent validations all read before any of them consumes.
        await asyncio.sleep(0)
        return grant

    async def consume_view(self, token, now):
        async with self._lock:
            grant = self.grants.get(token)
            if grant is None or grant.is_expired(now) or grant.is_exhausted():
                return None
            updated = grant.with_view_count(grant.view_count + 1)
            self.grants[token] = updated
            return updated.view_count

    async def list_active(self, now, locator=None):
        return [
            g
            for g in self.grants.values()
            if not g.is_expired(now)
            and not g.is_exhausted()
            and (locator is None or g.resource_ref == locator)
        ]


class InMemoryApprovalRepository:
    def __init__(self):
        self.requests: dict[str, ApprovalRequest] = {}

    async def save(self, request):
        self.requests[request.request_id] = request

    async def get(self, request_id):
        request = self.requests.get(request_id)
        # Yield so that concurrent deciders both observe the same state.
        await asyncio.sleep(0)
        return request

    async def record_decision(self, request):
        current = self.requests.get(request.request_id)
        if current is None or current.status != ApprovalStatus.PENDING:
            return False
        self.requests[request.request_id] = request
        return True

    async def find_approved(self, locator: ResourceLocator):
        approved = [
            r
            for r in self.requests.values()
            if r.locator == locator and r.status == ApprovalStatus.APPROVED
        ]
        return approved[-1] if approved else None


class FakeDocumentSource:
    def __init__(self):
        self.documents: dict[tuple[str, str], Document] = {}

    def put(self, document: Document) -> Document:
        self.documents[(document.collection, document.slug)] = document
        return document

    async def get_document(self, collection, slug):
        return self.documents.get((collection, slug))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def audit_repo():
    return InMemoryAuditRepository()


@pytest.fixture
def grant_repo():
    return InMemoryGrantRepository()


@pytest.fixture
def approval_repo():
    return InMemoryApprovalRepository()


@pytest.fixture
def documents():
    return FakeDocumentSource()


@pytest.fixture
def audit_service(audit_repo, metrics, clock):
    return AuditLogService(
        audit_repo,
        metrics=metrics,
        clock=clock,
        write_retries=2,
        retry_base_delay=0,
    )


@pytest.fixture
def editor():
    return Actor(id="u-1", email="editor@example.com", display_name="Eddie Editor")


@pytest.fixture
def approver():
    return Actor(id="u-2", email="approver@example.com", display_name="Ada Approver")


@pytest.fixture
def request_context():
    return RequestContext(
        ip="203.0.113.7",
        user_agent="pytest",
        session_id="sess-1",
        correlation_id="corr-1",
    )


@pytest.fixture
def normal_doc():
    return Document(
        collection="articles",
        slug="spring-launch",
        title="Spring launch",
        sensitivity=Sensitivity.NORMAL,
        body="<p>Hello</p>",
    )
