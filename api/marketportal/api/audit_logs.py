"""Audit logs routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, joinedload
from marketportal.core.database import get_db
from marketportal.core.deps import require_super_admin
from marketportal.models.user import User
from marketportal.models.audit_log import AuditLog
from marketportal.schemas.audit_log import AuditLogResponse

router = APIRouter()


@router.get("/", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_type: Optional[str] = Query(None, description="Filter by entity type (e.g., RoleAssignment)"),
    entity_id: Optional[int] = Query(None, description="Filter by specific entity ID"),
    action: Optional[str] = Query(None, description="Filter by action (REVIEW, REVOKE, RESUBMIT, ...)"),
    user_id: Optional[int] = Query(None, description="Filter by user who made the change"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of results"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """List audit logs with optional filters."""
    query = db.query(AuditLog).options(joinedload(AuditLog.user))

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)

    # Most recent first, then paginate
    return query.order_by(AuditLog.timestamp.desc(), AuditLog.log_id.desc()).offset(offset).limit(limit).all()


@router.get("/actions", response_model=List[str])
def get_actions(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """Get all unique actions from audit logs."""
    result = db.query(AuditLog.action).distinct().all()
    return [r[0] for r in result]
