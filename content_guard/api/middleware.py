"""API middleware: correlation ID, actor context, request audit trail, preview security headers."""

import json
import logging
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from content_guard.core.context import actor_id_ctx, correlation_id_ctx
from content_guard.domain.models.audit import Actor
from content_guard.domain.models.preview import token_fingerprint
from content_guard.security.rbac import Role

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
ACTOR_ID_HEADER = "X-Actor-ID"
ACTOR_EMAIL_HEADER = "X-Actor-Email"
ACTOR_NAME_HEADER = "X-Actor-Name"
ACTOR_ROLE_HEADER = "X-Actor-Role"
FORWARDED_FOR_HEADER = "X-Forwarded-For"

PREVIEW_PREFIX = "/previews/"
# Sub-paths of /previews/ that are not tokens.
_PREVIEW_RESERVED = ("approvals",)

PREVIEW_SECURITY_HEADERS = {
    "Cache-Control": "private, no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "X-Robots-Tag": "noindex, nofollow, noarchive, nosnippet",
    "X-Frame-Options": "DENY",
    "Content-Security-Policy": "frame-ancestors 'none'",
    "Referrer-Policy": "no-referrer",
    "X-Content-Type-Options": "nosniff",
}


def preview_token_from_path(path: str) -> Optional[str]:
    """Token segment of /previews/{token}, or None for any other path."""
    if not path.startswith(PREVIEW_PREFIX):
        return None
    rest = path[len(PREVIEW_PREFIX):]
    if not rest or "/" in rest or rest in _PREVIEW_RESERVED:
        return None
    return rest


def client_ip_from(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop (set by the trusted proxy), else the socket peer."""
    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Generate or preserve correlation ID; attach to request.state, response header, and logging context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        correlation_id_ctx.set(correlation_id)

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class ActorContextMiddleware(BaseHTTPMiddleware):
    """
    Read the identity set by the upstream auth proxy into request.state.actor / request.state.role.
    Never rejects: public preview links carry no identity, and endpoints that need one
    enforce it through dependencies.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        actor_id = (request.headers.get(ACTOR_ID_HEADER) or "").strip()
        email = (request.headers.get(ACTOR_EMAIL_HEADER) or "").strip()
        actor = None
        if actor_id and email:
            actor = Actor(
                id=actor_id,
                email=email,
                display_name=(request.headers.get(ACTOR_NAME_HEADER) or "").strip() or None,
            )
        role = None
        raw_role = (request.headers.get(ACTOR_ROLE_HEADER) or "").strip().upper()
        if raw_role:
            try:
                role = Role(raw_role)
            except ValueError:
                logger.warning("unknown_actor_role", extra={"role": raw_role})
        request.state.actor = actor
        request.state.role = role
        request.state.client_ip = client_ip_from(request)
        actor_id_ctx.set(actor.id if actor else None)
        return await call_next(request)


class RequestAuditMiddleware(BaseHTTPMiddleware):
    """After response: log structured request event (correlation_id, actor_id, path, method, status_code)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        path = request.url.path
        token = preview_token_from_path(path)
        if token is not None:
            path = f"{PREVIEW_PREFIX}<{token_fingerprint(token)}>"
        actor = getattr(request.state, "actor", None)
        audit_event = {
            "event": "request_audit",
            "correlation_id": getattr(request.state, "correlation_id", None),
            "actor_id": actor.id if actor else None,
            "client_ip": getattr(request.state, "client_ip", None),
            "path": path,
            "method": request.method,
            "status_code": response.status_code,
        }
        logger.info(json.dumps(audit_event))
        return response


class PreviewSecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Preview responses must not be cached, indexed, framed or leak the token via Referer."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        if preview_token_from_path(request.url.path) is not None:
            for name, value in PREVIEW_SECURITY_HEADERS.items():
                response.headers[name] = value
        return response
