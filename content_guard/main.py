# content_guard/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from content_guard.api import dependencies
from content_guard.api.middleware import (
    ActorContextMiddleware,
    CorrelationIdMiddleware,
    PreviewSecurityHeadersMiddleware,
    RequestAuditMiddleware,
)
from content_guard.api.routers import audit, health, previews
from content_guard.application.exceptions import (
    ApplicationError,
    DocumentNotFoundError,
    DocumentSourceError,
    GrantStoreUnavailableError,
)
from content_guard.config.logging import configure_logging
from content_guard.config.settings import get_settings
from content_guard.domain.exceptions import (
    ApprovalRequiredError,
    DomainError,
    DomainValidationError,
    EmbargoActiveError,
    InvalidActionError,
    IpRestrictionRequiredError,
    MissingActorError,
)
from content_guard.governance.exceptions import GovernanceError, InvalidWorkflowStateError
from content_guard.security.exceptions import AuthorizationError, SecurityError

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.log_level)

RETRY_AFTER_SECONDS = "1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await dependencies.shutdown()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Middleware order: last added runs first (outermost).
# Request flow: CorrelationId -> ActorContext -> RequestAudit -> PreviewSecurityHeaders.
app.add_middleware(PreviewSecurityHeadersMiddleware)
app.add_middleware(RequestAuditMiddleware)
app.add_middleware(ActorContextMiddleware)
app.add_middleware(CorrelationIdMiddleware)


@app.exception_handler(MissingActorError)
async def missing_actor_error_handler(request, exc: MissingActorError):
    return JSONResponse(status_code=401, content={"detail": exc.message})


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(EmbargoActiveError)
async def embargo_active_error_handler(request, exc: EmbargoActiveError):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(ApprovalRequiredError)
async def approval_required_error_handler(request, exc: ApprovalRequiredError):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(DomainValidationError)
async def domain_validation_error_handler(request, exc: DomainValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(InvalidActionError)
async def invalid_action_error_handler(request, exc: InvalidActionError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(IpRestrictionRequiredError)
async def ip_restriction_required_error_handler(request, exc: IpRestrictionRequiredError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(DocumentNotFoundError)
async def document_not_found_error_handler(request, exc: DocumentNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(GrantStoreUnavailableError)
async def grant_store_unavailable_error_handler(request, exc: GrantStoreUnavailableError):
    return JSONResponse(
        status_code=503,
        content={"detail": exc.message},
        headers={"Retry-After": RETRY_AFTER_SECONDS},
    )


@app.exception_handler(DocumentSourceError)
async def document_source_error_handler(request, exc: DocumentSourceError):
    return JSONResponse(
        status_code=503,
        content={"detail": exc.message},
        headers={"Retry-After": RETRY_AFTER_SECONDS},
    )


@app.exception_handler(ApplicationError)
async def application_error_handler(request, exc: ApplicationError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.exception_handler(InvalidWorkflowStateError)
async def invalid_workflow_state_error_handler(request, exc: InvalidWorkflowStateError):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(GovernanceError)
async def governance_error_handler(request, exc: GovernanceError):
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.exception_handler(SecurityError)
async def security_error_handler(request, exc: SecurityError):
    logger.error("security_error", extra={"error": exc.message})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Routers: /health, /previews, /audit
app.include_router(health.router)
app.include_router(previews.router, prefix="/previews")
app.include_router(audit.router, prefix="/audit")
