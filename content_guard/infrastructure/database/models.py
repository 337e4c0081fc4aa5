# content_guard/infrastructure/database/models.py

from sqlalchemy import JSON, BigInteger, Column, Index, Integer, String, Text

from content_guard.infrastructure.database.session import Base


class AuditLogRecord(Base):
    """Append-only audit row. Columns mirror AuditLogEntry.to_row(); the checksum covers all of them."""

    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True)
    timestamp = Column(BigInteger, nullable=False)

    actor_id = Column(String, nullable=False)
    actor_email = Column(String, nullable=False)
    actor_name = Column(String, nullable=True)

    action = Column(String(64), nullable=False)
    action_category = Column(String(32), nullable=False)

    resource_type = Column(String, nullable=False)
    resource_id = Column(String, nullable=False)
    resource_title = Column(Text, nullable=True)

    field_path = Column(String, nullable=True)
    value_before = Column(Text, nullable=True)
    value_after = Column(Text, nullable=True)
    change_summary = Column(Text, nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    session_id = Column(String, nullable=True)
    correlation_id = Column(String, nullable=True)

    metadata_ = Column("metadata", Text, nullable=True)
    checksum = Column(String(64), nullable=True)


Index("ix_audit_log_timestamp", AuditLogRecord.timestamp.desc())
Index(
    "ix_audit_log_resource_timeline",
    AuditLogRecord.resource_type,
    AuditLogRecord.resource_id,
    AuditLogRecord.timestamp.desc(),
)
Index("ix_audit_log_actor_timeline", AuditLogRecord.actor_email, AuditLogRecord.timestamp.desc())
Index("ix_audit_log_action", AuditLogRecord.action)
Index("ix_audit_log_action_category", AuditLogRecord.action_category)


class PreviewGrantRecord(Base):
    """Preview grant. Never deleted; view_count is only changed by the conditional consume update."""

    __tablename__ = "preview_grants"

    token = Column(String(64), primary_key=True)
    collection = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    issued_by = Column(String, nullable=False)
    issued_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False)
    max_views = Column(Integer, nullable=True)
    view_count = Column(Integer, nullable=False, default=0)
    ip_allowlist = Column(JSON, nullable=True)
    sensitivity_at_issue = Column(String(32), nullable=False)


Index("ix_preview_grants_resource", PreviewGrantRecord.collection, PreviewGrantRecord.slug)
Index("ix_preview_grants_expires_at", PreviewGrantRecord.expires_at)


class PreviewApprovalRecord(Base):
    __tablename__ = "preview_approval_requests"

    request_id = Column(String(36), primary_key=True)
    collection = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    title = Column(Text, nullable=True)
    requested_by = Column(String, nullable=False)
    status = Column(String(16), nullable=False)
    created_at = Column(BigInteger, nullable=False)
    decided_by = Column(String, nullable=True)
    decided_at = Column(BigInteger, nullable=True)
    reason = Column(Text, nullable=True)


Index(
    "ix_preview_approval_resource",
    PreviewApprovalRecord.collection,
    PreviewApprovalRecord.slug,
    PreviewApprovalRecord.status,
)
