"""Role assignment and verification document schemas."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReviewRequest(BaseModel):
    force_active: bool = False


class ReasonRequest(BaseModel):
    reason: str = Field(..., max_length=2000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("reason must not be empty")
        return value


class RevokeRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class RoleDocumentResponse(BaseModel):
    document_id: int
    user_role_id: int
    doc_type: str
    status: str
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    admin_notes: Optional[str] = None
    uploaded_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class RoleAssignmentResponse(BaseModel):
    user_role_id: int
    user_id: int
    role_id: int
    role_name: Optional[str] = None
    market_id: Optional[int] = None
    status: str
    resubmission_reason: Optional[str] = None
    assigned_by: Optional[int] = None
    assigned_at: datetime
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RoleAssignmentDetail(RoleAssignmentResponse):
    admin_notes: Optional[str] = None
    documents: List[RoleDocumentResponse] = []


class TransitionResponse(BaseModel):
    assignment: RoleAssignmentResponse
    old_status: Optional[str] = None
    new_status: str
    forced: bool = False
    sessions_invalidated: bool = False


class DocumentDecisionResponse(TransitionResponse):
    document_id: int
    document_status: str


class IdentityDecisionResponse(BaseModel):
    identity_id: int
    document_status: str
    assignments: List[TransitionResponse] = []


def transition_response(result) -> TransitionResponse:
    """Build the response body for a lifecycle ``TransitionResult``."""
    report = result.side_effects
    return TransitionResponse(
        assignment=RoleAssignmentResponse.model_validate(result.assignment),
        old_status=result.old_status,
        new_status=result.new_status,
        forced=result.forced,
        sessions_invalidated=bool(report and report.session_invalidation_attempted),
    )
