"""Audit trail for role assignment changes."""
from typing import Optional

from sqlalchemy.orm import Session

from marketportal.core.role_policy import POLICY_VERSION
from marketportal.models.audit_log import AuditLog


class AuditSink:
    """Adds audit rows to the caller's transaction; they commit or roll back with it."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        actor_id: int,
        action: str,
        entity_type: str,
        entity_id: int,
        from_value: Optional[str],
        to_value: Optional[str],
        changes: Optional[dict] = None,
    ) -> AuditLog:
        payload = dict(changes or {})
        payload.setdefault("policy_version", POLICY_VERSION)
        audit_log = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            user_id=actor_id,
            old_value=from_value,
            new_value=to_value,
            changes=payload,
        )
        self.db.add(audit_log)
        return audit_log
