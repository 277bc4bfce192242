"""Role assignment routes.

Handlers only translate between HTTP and ``AssignmentLifecycleService``;
workflow errors are mapped to responses in ``marketportal.main``.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from marketportal.core.deps import get_current_user, get_lifecycle_service
from marketportal.core.document_types import DocType
from marketportal.models.user import User
from marketportal.schemas.role_assignment import (
    ReasonRequest,
    ReviewRequest,
    RevokeRequest,
    RoleAssignmentDetail,
    RoleAssignmentResponse,
    TransitionResponse,
    transition_response,
)
from marketportal.services.document_store import UploadedFile
from marketportal.services.role_assignments import AssignmentLifecycleService

router = APIRouter()


def to_uploaded_file(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    if upload is None or not upload.filename:
        return None
    return UploadedFile(
        content=upload.file.read(),
        mime_type=upload.content_type or "",
        filename=upload.filename,
    )


@router.post("/", response_model=RoleAssignmentResponse, status_code=201)
def create_role_assignment(
    role: str = Form(..., description="Role code or alias"),
    user_id: Optional[int] = Form(None, description="Target user; defaults to the caller"),
    market_id: Optional[int] = Form(None),
    doc_type: str = Form(DocType.ID.value),
    document: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    """Request a role for yourself, or grant one to another user."""
    assignment = service.create_assignment(
        user_id=user_id or current_user.user_id,
        role_name=role,
        initiated_by=current_user.user_id,
        bootstrap_document=to_uploaded_file(document),
        bootstrap_doc_type=doc_type,
        market_id=market_id,
    )
    return assignment


@router.get("/pending", response_model=List[RoleAssignmentResponse])
def list_pending_role_assignments(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    """Role requests waiting for the caller's review."""
    return service.list_reviewable(current_user.user_id, limit=limit, offset=offset)


@router.get("/me", response_model=List[RoleAssignmentDetail])
def list_my_role_assignments(
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    return service.user_assignments(current_user.user_id)


@router.get("/{assignment_id}", response_model=RoleAssignmentDetail)
def get_role_assignment(
    assignment_id: int,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    return service.get_assignment(assignment_id, viewer_id=current_user.user_id)


@router.post("/{assignment_id}/review", response_model=TransitionResponse)
def review_role_assignment(
    assignment_id: int,
    payload: ReviewRequest,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    """Recompute status from documents, optionally forcing activation."""
    result = service.review_assignment(
        assignment_id, current_user.user_id, force_active=payload.force_active
    )
    return transition_response(result)


@router.post("/{assignment_id}/reject", response_model=TransitionResponse)
def reject_role_assignment(
    assignment_id: int,
    payload: ReasonRequest,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    result = service.reject_assignment(assignment_id, current_user.user_id, payload.reason)
    return transition_response(result)


@router.post("/{assignment_id}/request-resubmission", response_model=RoleAssignmentResponse)
def request_role_resubmission(
    assignment_id: int,
    payload: ReasonRequest,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    return service.request_resubmission(assignment_id, current_user.user_id, payload.reason)


@router.post("/{assignment_id}/resubmit", response_model=TransitionResponse)
def resubmit_role_documents(
    assignment_id: int,
    id_document: Optional[UploadFile] = File(None),
    permit_document: Optional[UploadFile] = File(None),
    note: Optional[str] = Form(None, max_length=2000),
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    """Upload replacement documents for a rejected or flagged request."""
    documents = {
        DocType.ID.value: to_uploaded_file(id_document),
        DocType.PERMIT.value: to_uploaded_file(permit_document),
    }
    result = service.resubmit(
        assignment_id,
        current_user.user_id,
        {doc_type: upload for doc_type, upload in documents.items() if upload is not None},
        note=note,
    )
    return transition_response(result)


@router.post("/{assignment_id}/revoke", response_model=TransitionResponse)
def revoke_role_assignment(
    assignment_id: int,
    payload: RevokeRequest,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    result = service.revoke(assignment_id, current_user.user_id, reason=payload.reason)
    return transition_response(result)
