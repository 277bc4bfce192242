"""
Role assignment status resolution.

Given a role's document requirement and the latest status of each document
type, compute the status the assignment should move to.

ALL combinator (only required types count):
- ANY required rejected            -> rejected
- ALL required approved            -> active
- SOME required approved           -> provisional_active
- otherwise                        -> under_review

EITHER combinator: an approved ``id`` or ``permit`` (required or optional)
makes the assignment active. Anything else leaves the status as it is, so a
rejected alternative never blocks the other one.

The functions here do no I/O and are safe to call repeatedly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from marketportal.core.assignment_status import AssignmentStatus
from marketportal.core.document_types import DocumentStatus, IDENTITY_CLASS_DOC_TYPES
from marketportal.core.role_policy import Combinator, RoleRequirement


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolution.

    ``status`` is None when the combinator leaves the assignment unchanged.
    """
    status: Optional[str]
    required_rejected: bool
    forced: bool = False

    def target(self, current_status: str) -> str:
        return self.status if self.status is not None else current_status


def merge_document_statuses(
    role_level: Mapping[str, str],
    identity_level: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Role-level documents win; user-level ones only fill in missing types."""
    merged = dict(identity_level or {})
    merged.update(role_level)
    return merged


def _resolve_all(requirement: RoleRequirement, doc_statuses: Mapping[str, str]) -> Resolution:
    any_rejected = False
    all_approved = True
    any_approved = False

    for doc_type in requirement.required:
        doc_status = doc_statuses.get(doc_type)
        if doc_status == DocumentStatus.REJECTED.value:
            any_rejected = True
        if doc_status == DocumentStatus.APPROVED.value:
            any_approved = True
        else:
            all_approved = False

    if any_rejected:
        new_status = AssignmentStatus.REJECTED.value
    elif all_approved:
        new_status = AssignmentStatus.ACTIVE.value
    elif any_approved:
        new_status = AssignmentStatus.PROVISIONAL_ACTIVE.value
    else:
        new_status = AssignmentStatus.UNDER_REVIEW.value
    return Resolution(status=new_status, required_rejected=any_rejected)


def _resolve_either(requirement: RoleRequirement, doc_statuses: Mapping[str, str]) -> Resolution:
    required_rejected = any(
        doc_statuses.get(doc_type) == DocumentStatus.REJECTED.value
        for doc_type in requirement.required
    )
    for doc_type in requirement.considered:
        if doc_type not in IDENTITY_CLASS_DOC_TYPES:
            continue
        if doc_statuses.get(doc_type) == DocumentStatus.APPROVED.value:
            return Resolution(status=AssignmentStatus.ACTIVE.value, required_rejected=required_rejected)
    return Resolution(status=None, required_rejected=required_rejected)


def resolve_status(
    requirement: RoleRequirement,
    doc_statuses: Mapping[str, str],
    force_active: bool = False,
) -> Resolution:
    """Compute the target status for an assignment.

    ``force_active`` is honored only when no required document is rejected.
    """
    if requirement.combinator == Combinator.EITHER:
        resolution = _resolve_either(requirement, doc_statuses)
    else:
        resolution = _resolve_all(requirement, doc_statuses)

    if force_active and not resolution.required_rejected:
        return Resolution(
            status=AssignmentStatus.ACTIVE.value,
            required_rejected=False,
            forced=resolution.status != AssignmentStatus.ACTIVE.value,
        )
    return resolution
