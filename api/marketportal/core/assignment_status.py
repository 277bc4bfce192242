"""Role assignment status codes and the groupings the workflow checks against."""
import enum


class AssignmentStatus(str, enum.Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    PROVISIONAL_ACTIVE = "provisional_active"
    ACTIVE = "active"
    REJECTED = "rejected"
    REVOKED = "revoked"
    INACTIVE = "inactive"


# Statuses authorization callers honor.
AUTHORIZING_STATUSES = frozenset({
    AssignmentStatus.ACTIVE.value,
    AssignmentStatus.PROVISIONAL_ACTIVE.value,
})

REVIEWABLE_STATUSES = frozenset({
    AssignmentStatus.PENDING.value,
    AssignmentStatus.UNDER_REVIEW.value,
    AssignmentStatus.PROVISIONAL_ACTIVE.value,
    AssignmentStatus.REJECTED.value,
})

REJECTABLE_STATUSES = frozenset({
    AssignmentStatus.PENDING.value,
    AssignmentStatus.UNDER_REVIEW.value,
    AssignmentStatus.PROVISIONAL_ACTIVE.value,
})

REVOCABLE_STATUSES = frozenset({
    AssignmentStatus.ACTIVE.value,
    AssignmentStatus.PROVISIONAL_ACTIVE.value,
    AssignmentStatus.UNDER_REVIEW.value,
})

# Statuses a document event may move forward from.
DOCUMENT_DRIVEN_STATUSES = frozenset({
    AssignmentStatus.PENDING.value,
    AssignmentStatus.UNDER_REVIEW.value,
    AssignmentStatus.PROVISIONAL_ACTIVE.value,
    AssignmentStatus.REJECTED.value,
    AssignmentStatus.ACTIVE.value,
})

# Promotion ladder used to decide whether a document approval moved forward.
STATUS_RANK = {
    AssignmentStatus.REJECTED.value: 0,
    AssignmentStatus.PENDING.value: 1,
    AssignmentStatus.UNDER_REVIEW.value: 2,
    AssignmentStatus.PROVISIONAL_ACTIVE.value: 3,
    AssignmentStatus.ACTIVE.value: 4,
}


def is_authorizing(status: str | None) -> bool:
    return status in AUTHORIZING_STATUSES
