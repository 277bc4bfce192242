"""
Role assignment lifecycle.

``AssignmentLifecycleService`` is the only writer of ``user_roles.status``.
Each public operation:

1. locks the assignment row (SELECT ... FOR UPDATE) before reading documents,
2. resolves the target status through the shared ``RoleRequirementPolicy``,
3. writes status, notes, audit row and side effects in one transaction,
4. hands user-facing notices to the ``NotificationGateway`` after commit.

Database failures roll the whole operation back and surface as
``PersistenceError``; notification and session invalidation failures are
logged and never undo a committed status change.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from marketportal.core.assignment_status import (
    AUTHORIZING_STATUSES,
    DOCUMENT_DRIVEN_STATUSES,
    REJECTABLE_STATUSES,
    REVIEWABLE_STATUSES,
    REVOCABLE_STATUSES,
    STATUS_RANK,
    AssignmentStatus,
)
from marketportal.core.document_types import (
    DocType,
    DocumentStatus,
    canonicalize_doc_type,
)
from marketportal.core.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    WorkflowError,
)
from marketportal.core.role_policy import (
    RequirementContext,
    RoleRequirement,
    RoleRequirementPolicy,
    default_policy,
)
from marketportal.core.roles import (
    SELF_SERVICE_ROLE_CODES,
    STAFF_ROLE_CODES,
    RoleCode,
    normalize_role_code,
)
from marketportal.core.status_resolver import Resolution, merge_document_statuses, resolve_status
from marketportal.core.time import note_stamp, utc_now
from marketportal.models.market import Market, market_managers
from marketportal.models.role import Role
from marketportal.models.role_assignment import IdentityDocument, RoleAssignment, RoleDocument
from marketportal.models.user import User
from marketportal.services.audit import AuditSink
from marketportal.services.document_store import (
    DocumentStore,
    IdentityDocumentFallback,
    UploadedFile,
    validate_upload,
)
from marketportal.services.notifications import NotificationGateway, PendingNotice
from marketportal.services.sessions import SessionStore
from marketportal.services.side_effects import SideEffectCoordinator, SideEffectReport

logger = logging.getLogger(__name__)

ENTITY_TYPE = "RoleAssignment"

_REVIEW_OUTCOME_MESSAGES = {
    AssignmentStatus.PROVISIONAL_ACTIVE.value: "Provisional access granted; remaining documents must be approved.",
    AssignmentStatus.UNDER_REVIEW.value: "Required documents are still pending approval.",
    AssignmentStatus.REJECTED.value: "Required document(s) were rejected; please resubmit.",
    AssignmentStatus.ACTIVE.value: "Full access granted.",
}


@dataclass
class TransitionResult:
    assignment: RoleAssignment
    old_status: Optional[str]
    new_status: str
    forced: bool = False
    side_effects: Optional[SideEffectReport] = None

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status


@dataclass
class DocumentDecision(TransitionResult):
    document_id: Optional[int] = None
    document_status: Optional[str] = None


class AssignmentLifecycleService:
    """Atomic operations on role assignments and their documents."""

    def __init__(
        self,
        db: Session,
        policy: Optional[RoleRequirementPolicy] = None,
        store: Optional[DocumentStore] = None,
        fallback: Optional[IdentityDocumentFallback] = None,
        sessions: Optional[SessionStore] = None,
        notifier: Optional[NotificationGateway] = None,
        audit: Optional[AuditSink] = None,
    ):
        self.db = db
        self.policy = policy or default_policy()
        self.store = store or DocumentStore(db)
        self.fallback = fallback or IdentityDocumentFallback(db)
        self.sessions = sessions or SessionStore(db)
        self.notifier = notifier or NotificationGateway(db)
        self.audit = audit or AuditSink(db)
        self.side_effects = SideEffectCoordinator(db, self.sessions)
        self._outbox: List[PendingNotice] = []

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        self._outbox = []
        try:
            yield
            self.db.commit()
        except WorkflowError:
            self.db.rollback()
            self.store.discard_written_files()
            raise
        except (SQLAlchemyError, OSError) as exc:
            self.db.rollback()
            self.store.discard_written_files()
            logger.error("%s failed and was rolled back", operation, exc_info=True)
            raise PersistenceError(
                f"Could not complete {operation}; no changes were saved. Please retry.",
                original_error=exc,
            ) from exc

        self.store.forget_written_files()
        outbox, self._outbox = self._outbox, []
        self.notifier.deliver(outbox)

    def _queue_notice(self, user_id: int, title: str, message: str, severity: str = "info") -> None:
        self._outbox.append(PendingNotice(user_id=user_id, title=title, message=message, severity=severity))

    # ------------------------------------------------------------------
    # Loading and authorization helpers
    # ------------------------------------------------------------------

    def _lock_assignment(self, assignment_id: int) -> RoleAssignment:
        assignment = self.db.query(RoleAssignment).filter(
            RoleAssignment.user_role_id == assignment_id
        ).with_for_update().populate_existing().first()
        if assignment is None:
            raise NotFoundError("Role assignment", assignment_id)
        return assignment

    def _get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def authorizing_role_codes(self, user_id: int) -> Set[str]:
        rows = self.db.query(Role.name).join(
            RoleAssignment, RoleAssignment.role_id == Role.role_id
        ).filter(
            RoleAssignment.user_id == user_id,
            RoleAssignment.status.in_(AUTHORIZING_STATUSES)
        ).all()
        return {normalize_role_code(name) for (name,) in rows}

    def _managed_market_ids(self, user_id: int) -> Set[int]:
        rows = self.db.execute(
            select(market_managers.c.market_id).where(market_managers.c.user_id == user_id)
        ).all()
        return {market_id for (market_id,) in rows}

    def _can_manage_staff_assignment(self, actor_id: int, role_code: Optional[str], market_id: Optional[int]) -> bool:
        return (
            role_code in STAFF_ROLE_CODES
            and market_id is not None
            and market_id in self._managed_market_ids(actor_id)
        )

    def _require_reviewer(self, reviewer_id: int, assignment: RoleAssignment, force_active: bool = False) -> None:
        if reviewer_id == assignment.user_id:
            raise AuthorizationError("You cannot review your own role assignment.")
        codes = self.authorizing_role_codes(reviewer_id)
        if RoleCode.SUPER_ADMIN.value in codes:
            return
        if force_active:
            raise AuthorizationError("Only a super admin may force-activate a role assignment.")
        if (
            RoleCode.MARKET_MANAGER.value in codes
            and self._can_manage_staff_assignment(
                reviewer_id, normalize_role_code(assignment.role_name), assignment.market_id
            )
        ):
            return
        raise AuthorizationError("You are not allowed to review this role assignment.")

    def _document_statuses(self, assignment: RoleAssignment, requirement: RoleRequirement) -> Dict[str, str]:
        role_level = self.store.status_map(assignment.user_role_id)
        identity_level = (
            self.fallback.latest_by_type(assignment.user_id)
            if requirement.allow_identity_fallback else None
        )
        return merge_document_statuses(role_level, identity_level)

    def _resolve(
        self,
        assignment: RoleAssignment,
        context: RequirementContext,
        force_active: bool = False,
    ) -> Resolution:
        requirement = self.policy.requirement_for(assignment.role_name, context)
        return resolve_status(requirement, self._document_statuses(assignment, requirement), force_active)

    def _transition(
        self,
        assignment: RoleAssignment,
        new_status: str,
        actor_id: int,
        note: str,
        downgrade: bool = False,
    ) -> TransitionResult:
        old_status = assignment.status
        assignment.status = new_status
        assignment.reviewed_by = actor_id
        assignment.reviewed_at = utc_now()
        assignment.append_note(note)
        self.db.flush()
        report = self.side_effects.apply(
            assignment, old_status, new_status, actor_id=actor_id, downgrade=downgrade
        )
        return TransitionResult(
            assignment=assignment, old_status=old_status, new_status=new_status, side_effects=report
        )

    def _active_super_admin_ids(self) -> List[int]:
        rows = self.db.query(RoleAssignment.user_id).join(Role).filter(
            Role.name == RoleCode.SUPER_ADMIN.value,
            RoleAssignment.status == AssignmentStatus.ACTIVE.value
        ).limit(100).all()
        return [user_id for (user_id,) in rows]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_assignment(
        self,
        user_id: int,
        role_name: str,
        initiated_by: int,
        bootstrap_document: Optional[UploadedFile] = None,
        bootstrap_doc_type: str = DocType.ID.value,
        market_id: Optional[int] = None,
    ) -> RoleAssignment:
        """Create (or reopen) the ``(user, role)`` assignment in ``pending``.

        The bootstrap document is validated up front, but failing to store it
        does not abort the request; an admin can ask for a resubmission.
        """
        role_code = normalize_role_code(role_name)
        if role_code is None:
            raise ValidationError(f"Unknown role '{role_name}'.")
        if bootstrap_document is not None:
            validate_upload(bootstrap_document, canonicalize_doc_type(bootstrap_doc_type), allow_pdf=True)

        with self._transaction("role assignment creation"):
            role = self.db.query(Role).filter(Role.name == role_code, Role.is_active.is_(True)).first()
            if role is None:
                raise ValidationError(f"Role '{role_code}' is not available.")
            user = self._get_user(user_id)
            self._authorize_create(initiated_by, user, role_code, market_id)
            if market_id is not None and self.db.get(Market, market_id) is None:
                raise NotFoundError("Market", market_id)

            assignment = self.db.query(RoleAssignment).filter(
                RoleAssignment.user_id == user.user_id,
                RoleAssignment.role_id == role.role_id
            ).with_for_update().populate_existing().first()

            old_status = None
            if assignment is None:
                assignment = RoleAssignment(
                    user_id=user.user_id,
                    role_id=role.role_id,
                    market_id=market_id,
                    status=AssignmentStatus.PENDING.value,
                    assigned_by=initiated_by,
                    admin_notes=f"[Requested {note_stamp()}] by user {initiated_by}",
                )
                self.db.add(assignment)
            elif assignment.status in {
                AssignmentStatus.REJECTED.value,
                AssignmentStatus.REVOKED.value,
                AssignmentStatus.INACTIVE.value,
            }:
                old_status = assignment.status
                assignment.status = AssignmentStatus.PENDING.value
                assignment.market_id = market_id if market_id is not None else assignment.market_id
                assignment.resubmission_reason = None
                assignment.assigned_by = initiated_by
                assignment.assigned_at = utc_now()
                assignment.reviewed_by = None
                assignment.reviewed_at = None
                assignment.append_note(
                    f"[Re-requested {note_stamp()}] by user {initiated_by} (was {old_status})"
                )
            else:
                raise InvalidStateError(
                    f"User already has a {assignment.status} {role_code} assignment.",
                    current_status=assignment.status,
                )
            self.db.flush()

            if bootstrap_document is not None:
                self._store_bootstrap_document(assignment, bootstrap_document, bootstrap_doc_type)

            self.audit.record(
                initiated_by, "CREATE", ENTITY_TYPE, assignment.user_role_id,
                old_status, AssignmentStatus.PENDING.value,
                changes={"role": role_code, "user_id": user.user_id, "market_id": assignment.market_id},
            )
            logger.info(
                "Role assignment %s (%s) requested for user %s by %s",
                assignment.user_role_id, role_code, user.user_id, initiated_by
            )

            if role_code == RoleCode.MARKET_MANAGER.value and initiated_by == user.user_id:
                for admin_id in self._active_super_admin_ids():
                    self._queue_notice(
                        admin_id,
                        "Market Manager request pending",
                        f"User {user.full_name} ({user.username}) requested the Market Manager role. Review documents.",
                    )

        return assignment

    def _authorize_create(self, actor_id: int, user: User, role_code: str, market_id: Optional[int]) -> None:
        codes = self.authorizing_role_codes(actor_id)
        if RoleCode.SUPER_ADMIN.value in codes:
            return
        if actor_id == user.user_id and role_code in SELF_SERVICE_ROLE_CODES:
            return
        if RoleCode.MARKET_MANAGER.value in codes and role_code in STAFF_ROLE_CODES:
            if market_id is None:
                raise AuthorizationError("Staff roles must be scoped to a market you manage.")
            if self._can_manage_staff_assignment(actor_id, role_code, market_id):
                return
            raise AuthorizationError(f"You do not manage market {market_id}.")
        raise AuthorizationError(f"You are not allowed to assign the {role_code} role.")

    def _store_bootstrap_document(self, assignment: RoleAssignment, upload: UploadedFile, doc_type: str) -> None:
        mark = self.store.written_count
        try:
            with self.db.begin_nested():
                self.store.put(
                    assignment.user_role_id,
                    doc_type,
                    upload.content,
                    upload.mime_type,
                    original_filename=upload.filename,
                    allow_pdf=True,
                )
        except (SQLAlchemyError, OSError):
            self.store.discard_written_files(since=mark)
            logger.warning(
                "Could not store bootstrap document for assignment %s; continuing without it",
                assignment.user_role_id, exc_info=True
            )

    # ------------------------------------------------------------------
    # Admin review
    # ------------------------------------------------------------------

    def review_assignment(self, assignment_id: int, reviewer_id: int, force_active: bool = False) -> TransitionResult:
        with self._transaction("role review"):
            assignment = self._lock_assignment(assignment_id)
            self._require_reviewer(reviewer_id, assignment, force_active=force_active)
            old_status = assignment.status
            if old_status not in REVIEWABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot review a role assignment that is {old_status}.", current_status=old_status
                )

            resolution = self._resolve(assignment, RequirementContext.REVIEW, force_active=force_active)
            new_status = resolution.target(old_status)
            if resolution.status is None and old_status in {
                AssignmentStatus.PENDING.value, AssignmentStatus.REJECTED.value
            }:
                new_status = AssignmentStatus.UNDER_REVIEW.value

            if force_active and resolution.required_rejected:
                logger.warning(
                    "Force-active refused for assignment %s by %s: a required document is rejected",
                    assignment_id, reviewer_id
                )
            note = f"[Review by admin {reviewer_id} at {note_stamp()}] {old_status} -> {new_status}"
            if resolution.forced:
                note += " (forced active)"
            result = self._transition(assignment, new_status, reviewer_id, note)
            result.forced = resolution.forced

            if resolution.forced:
                logger.warning(
                    "Force-active override: assignment %s (%s) set active by %s despite documents %s",
                    assignment_id, assignment.role_name, reviewer_id,
                    self._document_statuses(
                        assignment, self.policy.requirement_for(assignment.role_name)
                    )
                )
            else:
                logger.info(
                    "Reviewed assignment %s (%s): %s -> %s",
                    assignment_id, assignment.role_name, old_status, new_status
                )

            self.audit.record(
                reviewer_id, "FORCE_ACTIVATE" if resolution.forced else "REVIEW",
                ENTITY_TYPE, assignment_id, old_status, new_status,
                changes={"force_active": force_active, "required_rejected": resolution.required_rejected},
            )
            self._queue_notice(
                assignment.user_id,
                "Role Approval Update",
                f"Your role request for '{assignment.role_name}' was reviewed. Status: {new_status}. "
                + _REVIEW_OUTCOME_MESSAGES.get(new_status, ""),
            )
        return result

    def reject_assignment(self, assignment_id: int, reviewer_id: int, reason: str) -> TransitionResult:
        reason = _require_reason(reason)
        with self._transaction("role rejection"):
            assignment = self._lock_assignment(assignment_id)
            self._require_reviewer(reviewer_id, assignment)
            old_status = assignment.status
            if old_status not in REJECTABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot reject a role assignment that is {old_status}.", current_status=old_status
                )

            assignment.resubmission_reason = reason
            result = self._transition(
                assignment, AssignmentStatus.REJECTED.value, reviewer_id,
                f"[Rejected by admin {reviewer_id} at {note_stamp()}] {reason}",
            )
            self.audit.record(
                reviewer_id, "REJECT", ENTITY_TYPE, assignment_id, old_status,
                AssignmentStatus.REJECTED.value, changes={"reason": reason},
            )
            logger.info("Rejected assignment %s (%s) from %s", assignment_id, assignment.role_name, old_status)
            self._queue_notice(
                assignment.user_id,
                "Role Request Rejected",
                f"Your role request for '{assignment.role_name}' was rejected. Reason: {reason}",
                severity="danger",
            )
        return result

    def request_resubmission(self, assignment_id: int, reviewer_id: int, reason: str) -> RoleAssignment:
        """Invite the user to upload new documents without rejecting the assignment."""
        reason = _require_reason(reason)
        with self._transaction("resubmission request"):
            assignment = self._lock_assignment(assignment_id)
            self._require_reviewer(reviewer_id, assignment)
            if assignment.status not in REJECTABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot request resubmission for a role assignment that is {assignment.status}.",
                    current_status=assignment.status,
                )
            assignment.resubmission_reason = reason
            assignment.append_note(f"[Resubmission requested by admin {reviewer_id} at {note_stamp()}] {reason}")
            self.audit.record(
                reviewer_id, "REQUEST_RESUBMISSION", ENTITY_TYPE, assignment_id,
                assignment.status, assignment.status, changes={"reason": reason},
            )
            self._queue_notice(
                assignment.user_id,
                "Resubmission Requested",
                f"Please resubmit documents for your '{assignment.role_name}' role request. Reason: {reason}",
                severity="warning",
            )
        return assignment

    def revoke(self, assignment_id: int, reviewer_id: int, reason: Optional[str] = None) -> TransitionResult:
        reason = (reason or "").strip() or None
        with self._transaction("role revoke"):
            assignment = self._lock_assignment(assignment_id)
            self._require_reviewer(reviewer_id, assignment)
            old_status = assignment.status
            if old_status not in REVOCABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot revoke a role assignment that is {old_status}.", current_status=old_status
                )

            note = f"[Revoked by admin {reviewer_id} at {note_stamp()}]"
            if reason:
                note += f" {reason}"
            result = self._transition(
                assignment, AssignmentStatus.REVOKED.value, reviewer_id, note, downgrade=True
            )
            self.audit.record(
                reviewer_id, "REVOKE", ENTITY_TYPE, assignment_id, old_status,
                AssignmentStatus.REVOKED.value,
                changes={
                    "reason": reason,
                    "restored_vendor_assignment_id": result.side_effects.restored_vendor_assignment_id,
                },
            )
            logger.info("Revoked assignment %s (%s) from %s", assignment_id, assignment.role_name, old_status)
            self._queue_notice(
                assignment.user_id,
                "Role Revoked",
                f"Your '{assignment.role_name}' role was revoked." + (f" Reason: {reason}" if reason else ""),
                severity="danger",
            )
        return result

    # ------------------------------------------------------------------
    # Document decisions
    # ------------------------------------------------------------------

    def _lock_document(self, document_id: int) -> tuple[RoleDocument, RoleAssignment]:
        assignment_id = self.db.query(RoleDocument.user_role_id).filter(
            RoleDocument.document_id == document_id
        ).scalar()
        if assignment_id is None:
            raise NotFoundError("Document", document_id)
        assignment = self._lock_assignment(assignment_id)
        document = self.db.query(RoleDocument).filter(
            RoleDocument.document_id == document_id
        ).populate_existing().one()
        return document, assignment

    def _apply_document_outcome(
        self,
        assignment: RoleAssignment,
        reviewer_id: int,
        approving: bool,
        label: str,
    ) -> TransitionResult:
        """Re-resolve after a document change.

        Approvals only move the assignment forward; rejections only move it
        to ``rejected``. Revoked and inactive assignments keep their status.
        """
        old_status = assignment.status
        if old_status not in DOCUMENT_DRIVEN_STATUSES:
            return TransitionResult(assignment=assignment, old_status=old_status, new_status=old_status)

        resolution = self._resolve(assignment, RequirementContext.AUTO_ACTIVATION)
        candidate = resolution.status
        if candidate is None or candidate == old_status:
            move = False
        elif approving:
            move = STATUS_RANK.get(candidate, -1) > STATUS_RANK.get(old_status, -1)
        else:
            move = candidate == AssignmentStatus.REJECTED.value

        if not move:
            return TransitionResult(assignment=assignment, old_status=old_status, new_status=old_status)

        result = self._transition(
            assignment, candidate, reviewer_id,
            f"[Auto-status {note_stamp()}] {old_status} -> {candidate} after {label}",
        )
        logger.info(
            "Assignment %s (%s) moved %s -> %s after %s",
            assignment.user_role_id, assignment.role_name, old_status, candidate, label
        )
        return result

    def approve_document(self, document_id: int, reviewer_id: int) -> DocumentDecision:
        with self._transaction("document approval"):
            document, assignment = self._lock_document(document_id)
            self._require_reviewer(reviewer_id, assignment)
            old_doc_status = document.status
            document.status = DocumentStatus.APPROVED.value
            document.reviewed_by = reviewer_id
            document.reviewed_at = utc_now()
            document.append_note(f"[Approved by admin {reviewer_id} at {note_stamp()}]")
            self.db.flush()

            outcome = self._apply_document_outcome(
                assignment, reviewer_id, approving=True,
                label=f"{canonicalize_doc_type(document.doc_type)} document approval",
            )
            self.audit.record(
                reviewer_id, "APPROVE_DOCUMENT", ENTITY_TYPE, assignment.user_role_id,
                outcome.old_status, outcome.new_status,
                changes={
                    "document_id": document.document_id,
                    "doc_type": canonicalize_doc_type(document.doc_type),
                    "document_status": {"old": old_doc_status, "new": DocumentStatus.APPROVED.value},
                },
            )
            if outcome.changed:
                self._queue_notice(
                    assignment.user_id,
                    "Role Approval Update",
                    f"Your role request for '{assignment.role_name}' was reviewed. Status: {outcome.new_status}. "
                    + _REVIEW_OUTCOME_MESSAGES.get(outcome.new_status, ""),
                    severity="success" if outcome.new_status == AssignmentStatus.ACTIVE.value else "info",
                )
        return _decision(outcome, document, DocumentStatus.APPROVED.value)

    def reject_document(self, document_id: int, reviewer_id: int, reason: str) -> DocumentDecision:
        reason = _require_reason(reason)
        with self._transaction("document rejection"):
            document, assignment = self._lock_document(document_id)
            self._require_reviewer(reviewer_id, assignment)
            old_doc_status = document.status
            document.status = DocumentStatus.REJECTED.value
            document.reviewed_by = reviewer_id
            document.reviewed_at = utc_now()
            document.append_note(f"[Rejected by admin {reviewer_id} at {note_stamp()}] {reason}")
            self.db.flush()

            doc_type = canonicalize_doc_type(document.doc_type)
            outcome = self._apply_document_outcome(
                assignment, reviewer_id, approving=False, label=f"{doc_type} document rejection",
            )
            self.audit.record(
                reviewer_id, "REJECT_DOCUMENT", ENTITY_TYPE, assignment.user_role_id,
                outcome.old_status, outcome.new_status,
                changes={
                    "document_id": document.document_id,
                    "doc_type": doc_type,
                    "document_status": {"old": old_doc_status, "new": DocumentStatus.REJECTED.value},
                    "reason": reason,
                },
            )
            self._queue_notice(
                assignment.user_id,
                "Document Rejected",
                f"Your {doc_type} document for '{assignment.role_name}' was rejected. Reason: {reason}",
                severity="danger",
            )
        return _decision(outcome, document, DocumentStatus.REJECTED.value)

    def _decide_identity_document(
        self, identity_id: int, reviewer_id: int, approving: bool, reason: Optional[str] = None
    ) -> List[TransitionResult]:
        document = self.db.get(IdentityDocument, identity_id)
        if document is None:
            raise NotFoundError("Identity document", identity_id)
        if reviewer_id == document.user_id:
            raise AuthorizationError("You cannot review your own documents.")
        if RoleCode.SUPER_ADMIN.value not in self.authorizing_role_codes(reviewer_id):
            raise AuthorizationError("Only a super admin may review identity documents.")

        assignment_ids = [
            row_id for (row_id,) in self.db.query(RoleAssignment.user_role_id).filter(
                RoleAssignment.user_id == document.user_id,
                RoleAssignment.status.in_(DOCUMENT_DRIVEN_STATUSES - {AssignmentStatus.ACTIVE.value})
            ).order_by(RoleAssignment.user_role_id).all()
        ]
        assignments = [self._lock_assignment(assignment_id) for assignment_id in assignment_ids]
        self.db.refresh(document, with_for_update=True)

        old_doc_status = document.status
        new_doc_status = DocumentStatus.APPROVED.value if approving else DocumentStatus.REJECTED.value
        document.status = new_doc_status
        document.reviewed_by = reviewer_id
        document.reviewed_at = utc_now()
        document.append_note(
            f"[{new_doc_status.capitalize()} by admin {reviewer_id} at {note_stamp()}]"
            + (f" {reason}" if reason else "")
        )
        self.db.flush()

        doc_type = canonicalize_doc_type(document.doc_type)
        results = []
        for assignment in assignments:
            requirement = self.policy.requirement_for(assignment.role_name, RequirementContext.AUTO_ACTIVATION)
            if not requirement.allow_identity_fallback:
                continue
            outcome = self._apply_document_outcome(
                assignment, reviewer_id, approving=approving,
                label=f"identity {doc_type} document {'approval' if approving else 'rejection'}",
            )
            results.append(outcome)
            if outcome.changed:
                self._queue_notice(
                    assignment.user_id,
                    "Role Approval Update",
                    f"Your role request for '{assignment.role_name}' was reviewed. Status: {outcome.new_status}. "
                    + _REVIEW_OUTCOME_MESSAGES.get(outcome.new_status, ""),
                )

        self.audit.record(
            reviewer_id, "APPROVE_IDENTITY_DOCUMENT" if approving else "REJECT_IDENTITY_DOCUMENT",
            "IdentityDocument", identity_id, old_doc_status, new_doc_status,
            changes={
                "user_id": document.user_id,
                "doc_type": doc_type,
                "reason": reason,
                "assignments": {
                    str(r.assignment.user_role_id): {"old": r.old_status, "new": r.new_status}
                    for r in results
                },
            },
        )
        return results

    def approve_identity_document(self, identity_id: int, reviewer_id: int) -> List[TransitionResult]:
        with self._transaction("identity document approval"):
            results = self._decide_identity_document(identity_id, reviewer_id, approving=True)
        return results

    def reject_identity_document(self, identity_id: int, reviewer_id: int, reason: str) -> List[TransitionResult]:
        reason = _require_reason(reason)
        with self._transaction("identity document rejection"):
            results = self._decide_identity_document(identity_id, reviewer_id, approving=False, reason=reason)
        return results

    # ------------------------------------------------------------------
    # Resubmission
    # ------------------------------------------------------------------

    def resubmit(
        self,
        assignment_id: int,
        submitting_user_id: int,
        documents_by_type: Mapping[str, UploadedFile],
        note: Optional[str] = None,
    ) -> TransitionResult:
        """Replace or add documents and send the assignment back for review."""
        uploads: Dict[str, UploadedFile] = {}
        for raw_type, upload in documents_by_type.items():
            if upload is None:
                continue
            doc_type = canonicalize_doc_type(raw_type)
            validate_upload(upload, doc_type)
            uploads[doc_type] = upload
        note = (note or "").strip()

        with self._transaction("document resubmission"):
            assignment = self._lock_assignment(assignment_id)
            if assignment.user_id != submitting_user_id:
                raise AuthorizationError("You can only resubmit documents for your own role requests.")

            old_status = assignment.status
            governing = self.store.governing_documents(assignment.user_role_id)
            any_rejected = any(
                doc.status == DocumentStatus.REJECTED.value for doc in governing.values()
            )
            # Revoked and superseded rows reopen only through create_assignment.
            eligible = old_status not in {
                AssignmentStatus.REVOKED.value,
                AssignmentStatus.INACTIVE.value,
            } and (
                old_status == AssignmentStatus.REJECTED.value
                or (old_status in REJECTABLE_STATUSES and bool(assignment.resubmission_reason))
                or any_rejected
            )
            if not eligible:
                raise InvalidStateError(
                    f"This role request ({old_status}) is not open for resubmission.",
                    current_status=old_status,
                )

            requirement = self.policy.requirement_for(assignment.role_name, RequirementContext.REVIEW)
            if not uploads:
                missing = [
                    doc_type for doc_type in requirement.required
                    if doc_type not in governing
                    or governing[doc_type].status == DocumentStatus.REJECTED.value
                ]
                if missing:
                    raise ValidationError(
                        "Upload at least one of the required documents: " + ", ".join(missing) + "."
                    )

            for doc_type, upload in uploads.items():
                self.store.put(
                    assignment.user_role_id,
                    doc_type,
                    upload.content,
                    upload.mime_type,
                    original_filename=upload.filename,
                )

            resolution = resolve_status(requirement, self._document_statuses(assignment, requirement))
            new_status = resolution.target(old_status)
            if resolution.status is None and old_status in {
                AssignmentStatus.PENDING.value, AssignmentStatus.REJECTED.value
            }:
                new_status = AssignmentStatus.UNDER_REVIEW.value

            submission_note = f"[User Resubmission {note_stamp()}] Docs: {', '.join(sorted(uploads)) or 'none'}"
            if note:
                submission_note += f". Note: {note}"
            assignment.resubmission_reason = None
            result = self._transition(assignment, new_status, submitting_user_id, submission_note)
            assignment.reviewed_by = None
            assignment.reviewed_at = None

            self.audit.record(
                submitting_user_id, "RESUBMIT", ENTITY_TYPE, assignment_id, old_status, new_status,
                changes={"doc_types": sorted(uploads), "note": note or None},
            )
            logger.info(
                "Resubmission for assignment %s (%s): %s -> %s with %s",
                assignment_id, assignment.role_name, old_status, new_status, sorted(uploads)
            )

            if new_status in {
                AssignmentStatus.UNDER_REVIEW.value,
                AssignmentStatus.PROVISIONAL_ACTIVE.value,
                AssignmentStatus.ACTIVE.value,
            }:
                user = self._get_user(submitting_user_id)
                for admin_id in self._active_super_admin_ids():
                    self._queue_notice(
                        admin_id,
                        "Role resubmission",
                        f"User {user.full_name or user.username} resubmitted documents for role request "
                        f"ID {assignment_id} (status now: {new_status}).",
                    )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_assignments(
        self,
        statuses: Optional[List[str]] = None,
        market_ids: Optional[Set[int]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[RoleAssignment]:
        query = self.db.query(RoleAssignment).options(
            selectinload(RoleAssignment.role),
            selectinload(RoleAssignment.user),
        )
        if statuses:
            query = query.filter(RoleAssignment.status.in_(statuses))
        if market_ids is not None:
            query = query.filter(RoleAssignment.market_id.in_(market_ids))
        return query.order_by(
            RoleAssignment.assigned_at.asc(), RoleAssignment.user_role_id.asc()
        ).offset(offset).limit(limit).all()

    def list_reviewable(self, reviewer_id: int, limit: int = 100, offset: int = 0) -> List[RoleAssignment]:
        """Pending queue as seen by ``reviewer_id``; market managers only see their staff requests."""
        statuses = [
            AssignmentStatus.PENDING.value,
            AssignmentStatus.UNDER_REVIEW.value,
            AssignmentStatus.PROVISIONAL_ACTIVE.value,
        ]
        codes = self.authorizing_role_codes(reviewer_id)
        if RoleCode.SUPER_ADMIN.value in codes:
            return self.list_assignments(statuses, limit=limit, offset=offset)
        if RoleCode.MARKET_MANAGER.value in codes:
            rows = self.list_assignments(
                statuses, market_ids=self._managed_market_ids(reviewer_id), limit=limit, offset=offset
            )
            return [
                row for row in rows
                if normalize_role_code(row.role_name) in STAFF_ROLE_CODES and row.user_id != reviewer_id
            ]
        raise AuthorizationError("You are not allowed to review role requests.")

    def get_assignment(self, assignment_id: int, viewer_id: Optional[int] = None) -> RoleAssignment:
        assignment = self.db.query(RoleAssignment).options(
            selectinload(RoleAssignment.documents),
            selectinload(RoleAssignment.role),
        ).filter(RoleAssignment.user_role_id == assignment_id).first()
        if assignment is None:
            raise NotFoundError("Role assignment", assignment_id)
        if viewer_id is not None and viewer_id != assignment.user_id:
            self._require_reviewer(viewer_id, assignment)
        return assignment

    def user_assignments(self, user_id: int) -> List[RoleAssignment]:
        return self.db.query(RoleAssignment).options(
            selectinload(RoleAssignment.role),
            selectinload(RoleAssignment.documents),
        ).filter(RoleAssignment.user_id == user_id).order_by(RoleAssignment.user_role_id).all()

    def authorizing_roles(self, user_id: int) -> List[str]:
        """Role codes the user may act as right now (active or provisional_active)."""
        return sorted(self.authorizing_role_codes(user_id))


def _require_reason(reason: Optional[str]) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required.")
    return reason


def _decision(outcome: TransitionResult, document: RoleDocument, document_status: str) -> DocumentDecision:
    return DocumentDecision(
        assignment=outcome.assignment,
        old_status=outcome.old_status,
        new_status=outcome.new_status,
        side_effects=outcome.side_effects,
        document_id=document.document_id,
        document_status=document_status,
    )
