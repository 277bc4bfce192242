"""Verification document decision routes."""
from fastapi import APIRouter, Depends
from marketportal.core.deps import get_current_user, get_lifecycle_service
from marketportal.models.user import User
from marketportal.schemas.role_assignment import (
    DocumentDecisionResponse,
    IdentityDecisionResponse,
    ReasonRequest,
    transition_response,
)
from marketportal.services.role_assignments import AssignmentLifecycleService

router = APIRouter()


def _document_decision(result) -> DocumentDecisionResponse:
    base = transition_response(result)
    return DocumentDecisionResponse(
        **base.model_dump(),
        document_id=result.document_id,
        document_status=result.document_status,
    )


@router.post("/role-documents/{document_id}/approve", response_model=DocumentDecisionResponse)
def approve_role_document(
    document_id: int,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    """Approve one document; the owning assignment may move forward."""
    return _document_decision(service.approve_document(document_id, current_user.user_id))


@router.post("/role-documents/{document_id}/reject", response_model=DocumentDecisionResponse)
def reject_role_document(
    document_id: int,
    payload: ReasonRequest,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    return _document_decision(
        service.reject_document(document_id, current_user.user_id, payload.reason)
    )


@router.post("/identity-documents/{identity_id}/approve", response_model=IdentityDecisionResponse)
def approve_identity_document(
    identity_id: int,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    results = service.approve_identity_document(identity_id, current_user.user_id)
    return IdentityDecisionResponse(
        identity_id=identity_id,
        document_status="approved",
        assignments=[transition_response(result) for result in results],
    )


@router.post("/identity-documents/{identity_id}/reject", response_model=IdentityDecisionResponse)
def reject_identity_document(
    identity_id: int,
    payload: ReasonRequest,
    current_user: User = Depends(get_current_user),
    service: AssignmentLifecycleService = Depends(get_lifecycle_service)
):
    results = service.reject_identity_document(identity_id, current_user.user_id, payload.reason)
    return IdentityDecisionResponse(
        identity_id=identity_id,
        document_status="rejected",
        assignments=[transition_response(result) for result in results],
    )
