"""Domain model for audit log entries. Pure business semantics. No ORM or infrastructure."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


class ActionCategory(str, Enum):
    CONTENT = "content"
    WORKFLOW = "workflow"
    ACCESS = "access"
    SYSTEM = "system"
    COMMENT = "comment"


class AuditAction(str, Enum):
    """Closed set of auditable actions. Category is derived, never supplied by callers."""

    # Content
    CREATE = "create"
    UPDATE = "update"
    UPDATE_FIELD = "update_field"
    DELETE = "delete"
    RESTORE = "restore"
    ARCHIVE = "archive"
    # Workflow
    SUBMIT_REVIEW = "submit_review"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    SCHEDULE = "schedule"
    UNSCHEDULE = "unschedule"
    PREVIEW_APPROVAL_REQUESTED = "preview_approval_requested"
    PREVIEW_APPROVAL_GRANTED = "preview_approval_granted"
    PREVIEW_APPROVAL_DENIED = "preview_approval_denied"
    # Access
    VIEW = "view"
    DOWNLOAD = "download"
    EXPORT = "export"
    SHARE_PREVIEW = "share_preview"
    PREVIEW_VIEW = "preview_view"
    PREVIEW_REJECTED = "preview_rejected"
    # System
    LOGIN = "login"
    LOGOUT = "logout"
    PERMISSION_GRANT = "permission_grant"
    PERMISSION_REVOKE = "permission_revoke"
    SETTINGS_UPDATE = "settings_update"
    # Comments
    COMMENT_CREATE = "comment_create"
    COMMENT_UPDATE = "comment_update"
    COMMENT_DELETE = "comment_delete"
    COMMENT_RESOLVE = "comment_resolve"

    @property
    def category(self) -> ActionCategory:
        return category_for(self)


_CATEGORY_MEMBERS: Dict[ActionCategory, FrozenSet[AuditAction]] = {
    ActionCategory.CONTENT: frozenset({
        AuditAction.CREATE,
        AuditAction.UPDATE,
        AuditAction.UPDATE_FIELD,
        AuditAction.DELETE,
        AuditAction.RESTORE,
        AuditAction.ARCHIVE,
    }),
    ActionCategory.WORKFLOW: frozenset({
        AuditAction.SUBMIT_REVIEW,
        AuditAction.APPROVE,
        AuditAction.REJECT,
        AuditAction.REQUEST_CHANGES,
        AuditAction.PUBLISH,
        AuditAction.UNPUBLISH,
        AuditAction.SCHEDULE,
        AuditAction.UNSCHEDULE,
        AuditAction.PREVIEW_APPROVAL_REQUESTED,
        AuditAction.PREVIEW_APPROVAL_GRANTED,
        AuditAction.PREVIEW_APPROVAL_DENIED,
    }),
    ActionCategory.ACCESS: frozenset({
        AuditAction.VIEW,
        AuditAction.DOWNLOAD,
        AuditAction.EXPORT,
        AuditAction.SHARE_PREVIEW,
        AuditAction.PREVIEW_VIEW,
        AuditAction.PREVIEW_REJECTED,
    }),
    ActionCategory.SYSTEM: frozenset({
        AuditAction.LOGIN,
        AuditAction.LOGOUT,
        AuditAction.PERMISSION_GRANT,
        AuditAction.PERMISSION_REVOKE,
        AuditAction.SETTINGS_UPDATE,
    }),
    ActionCategory.COMMENT: frozenset({
        AuditAction.COMMENT_CREATE,
        AuditAction.COMMENT_UPDATE,
        AuditAction.COMMENT_DELETE,
        AuditAction.COMMENT_RESOLVE,
    }),
}

# action -> category; every action belongs to exactly one category
_ACTION_CATEGORY: Dict[AuditAction, ActionCategory] = {
    action: category
    for category, actions in _CATEGORY_MEMBERS.items()
    for action in actions
}


def category_for(action: AuditAction) -> ActionCategory:
    return _ACTION_CATEGORY[action]


def actions_in(category: ActionCategory) -> FrozenSet[AuditAction]:
    return _CATEGORY_MEMBERS[category]


@dataclass(frozen=True)
class Actor:
    """Authenticated caller. id and email are required for an attributable entry."""

    id: str
    email: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class ResourceRef:
    """Affected entity. title is a point-in-time snapshot, not a live reference."""

    type: str
    id: str
    title: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    """Best-effort request details; any field may be absent."""

    ip: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    correlation_id: Optional[str] = None


@dataclass(frozen=True)
class AuditContext:
    """Caller's authenticated context passed alongside an entry draft."""

    actor: Optional[Actor]
    request: RequestContext = field(default_factory=RequestContext)


@dataclass(frozen=True)
class AuditEntryDraft:
    """
    Partially-filled entry supplied by callers. id, timestamp, category and checksum
    are stamped by the audit service. action is accepted as a raw string so that
    unknown values are rejected at the service boundary.
    """

    action: Any
    resource: ResourceRef
    field_path: Optional[str] = None
    value_before: Any = None
    value_after: Any = None
    change_summary: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class AuditLogEntry:
    """
    Immutable audit log entry. value_before, value_after and metadata hold
    canonical JSON text exactly as persisted (the checksum covers the text).
    """

    id: str
    timestamp: int
    actor: Actor
    action: AuditAction
    action_category: ActionCategory
    resource: ResourceRef
    request_context: RequestContext
    checksum: Optional[str]
    field_path: Optional[str] = None
    value_before: Optional[str] = None
    value_after: Optional[str] = None
    change_summary: Optional[str] = None
    metadata: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """Flat column mapping matching the audit_log table. Includes checksum."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "actor_id": self.actor.id,
            "actor_email": self.actor.email,
            "actor_name": self.actor.display_name,
            "action": self.action.value,
            "action_category": self.action_category.value,
            "resource_type": self.resource.type,
            "resource_id": self.resource.id,
            "resource_title": self.resource.title,
            "field_path": self.field_path,
            "value_before": self.value_before,
            "value_after": self.value_after,
            "change_summary": self.change_summary,
            "ip_address": self.request_context.ip,
            "user_agent": self.request_context.user_agent,
            "session_id": self.request_context.session_id,
            "correlation_id": self.request_context.correlation_id,
            "metadata": self.metadata,
            "checksum": self.checksum,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AuditLogEntry":
        action = AuditAction(row["action"])
        return cls(
            id=row["id"],
            timestamp=row["timestamp"],
            actor=Actor(
                id=row["actor_id"],
                email=row["actor_email"],
                display_name=row.get("actor_name"),
            ),
            action=action,
            action_category=ActionCategory(row["action_category"]),
            resource=ResourceRef(
                type=row["resource_type"],
                id=row["resource_id"],
                title=row.get("resource_title"),
            ),
            request_context=RequestContext(
                ip=row.get("ip_address"),
                user_agent=row.get("user_agent"),
                session_id=row.get("session_id"),
                correlation_id=row.get("correlation_id"),
            ),
            checksum=row.get("checksum"),
            field_path=row.get("field_path"),
            value_before=row.get("value_before"),
            value_after=row.get("value_after"),
            change_summary=row.get("change_summary"),
            metadata=row.get("metadata"),
        )


@dataclass(frozen=True)
class AuditSearchFilters:
    actions: Optional[FrozenSet[AuditAction]] = None
    categories: Optional[FrozenSet[ActionCategory]] = None
    actors: Optional[FrozenSet[str]] = None
    resource_types: Optional[FrozenSet[str]] = None
    since: Optional[int] = None
    until: Optional[int] = None
    query: Optional[str] = None


@dataclass(frozen=True)
class AuditSearchResult:
    entries: list
    total: int


@dataclass(frozen=True)
class IntegrityReport:
    valid_count: int
    invalid_entry_ids: list

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_entry_ids)
