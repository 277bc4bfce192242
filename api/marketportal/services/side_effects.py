"""
Cascading consequences of a role assignment status change.

Everything that follows from a transition lives here so the lifecycle
operations cannot each grow their own variant:

1. Legacy mirror: entering active/provisional_active writes the coarse role
   bucket to users.role and reactivates the account.
2. Superseded vendor: an elevated role becoming active deactivates the
   user's active vendor assignment.
3. Vendor restore: after a revoke, a user left without any active elevated
   role gets the vendor assignment back.
4. Session invalidation: crossing the authorizing boundary (or any revoke)
   deletes server sessions and bumps the session epoch, once per transition.
   This runs in a savepoint; a failure is logged and the status change stands.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from marketportal.core.assignment_status import AssignmentStatus, is_authorizing
from marketportal.core.errors import SideEffectError
from marketportal.core.roles import (
    ELEVATED_ROLE_CODES,
    LegacyRole,
    RoleCode,
    get_role_display,
    legacy_role_for,
    normalize_role_code,
)
from marketportal.core.time import note_stamp, utc_now
from marketportal.models.role import Role
from marketportal.models.role_assignment import RoleAssignment
from marketportal.models.user import User, UserStatus
from marketportal.services.sessions import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class SideEffectReport:
    legacy_role: Optional[str] = None
    deactivated_assignment_ids: List[int] = field(default_factory=list)
    restored_vendor_assignment_id: Optional[int] = None
    session_invalidation_attempted: bool = False
    errors: List[SideEffectError] = field(default_factory=list)


def requires_session_invalidation(old_status: Optional[str], new_status: str, downgrade: bool = False) -> bool:
    if downgrade:
        return True
    if old_status == new_status:
        return False
    return is_authorizing(old_status) or is_authorizing(new_status)


class SideEffectCoordinator:
    def __init__(self, db: Session, sessions: SessionStore):
        self.db = db
        self.sessions = sessions

    def apply(
        self,
        assignment: RoleAssignment,
        old_status: Optional[str],
        new_status: str,
        actor_id: Optional[int] = None,
        downgrade: bool = False,
    ) -> SideEffectReport:
        """Run every consequence of ``old_status -> new_status`` on ``assignment``.

        ``downgrade`` is set by revoke and triggers the vendor restore check.
        """
        report = SideEffectReport()
        user = self.db.get(User, assignment.user_id)
        role_code = normalize_role_code(assignment.role_name)

        if is_authorizing(new_status) and user is not None:
            report.legacy_role = legacy_role_for(role_code)
            user.role = report.legacy_role
            user.status = UserStatus.ACTIVE.value

        if (
            role_code in ELEVATED_ROLE_CODES
            and new_status == AssignmentStatus.ACTIVE.value
            and old_status != AssignmentStatus.ACTIVE.value
        ):
            report.deactivated_assignment_ids = self._deactivate_vendor(assignment, actor_id)

        if downgrade and user is not None and role_code != RoleCode.VENDOR.value:
            report.restored_vendor_assignment_id = self._restore_vendor(user, assignment, actor_id)

        if requires_session_invalidation(old_status, new_status, downgrade=downgrade):
            report.session_invalidation_attempted = True
            report.errors.extend(self._invalidate_sessions(assignment.user_id))

        return report

    def _deactivate_vendor(self, assignment: RoleAssignment, actor_id: Optional[int]) -> List[int]:
        vendor_rows = self.db.query(RoleAssignment).join(Role).filter(
            RoleAssignment.user_id == assignment.user_id,
            RoleAssignment.user_role_id != assignment.user_role_id,
            Role.name == RoleCode.VENDOR.value,
            RoleAssignment.status == AssignmentStatus.ACTIVE.value
        ).with_for_update().all()

        deactivated = []
        for vendor_row in vendor_rows:
            vendor_row.status = AssignmentStatus.INACTIVE.value
            vendor_row.reviewed_by = actor_id
            vendor_row.reviewed_at = utc_now()
            vendor_row.append_note(
                f"[Auto-deactivated {note_stamp()}] superseded by "
                f"{get_role_display(assignment.role_name, assignment.role_name)}"
            )
            deactivated.append(vendor_row.user_role_id)
        if deactivated:
            logger.info(
                "Deactivated vendor assignment(s) %s for user %s after %s became active",
                deactivated, assignment.user_id, assignment.role_name
            )
        return deactivated

    def _restore_vendor(self, user: User, revoked: RoleAssignment, actor_id: Optional[int]) -> Optional[int]:
        remaining_elevated = self.db.query(RoleAssignment.user_role_id).join(Role).filter(
            RoleAssignment.user_id == user.user_id,
            RoleAssignment.user_role_id != revoked.user_role_id,
            Role.name.in_(ELEVATED_ROLE_CODES),
            RoleAssignment.status == AssignmentStatus.ACTIVE.value
        ).first()
        if remaining_elevated is not None:
            return None

        vendor_role = self.db.query(Role).filter(Role.name == RoleCode.VENDOR.value).first()
        if vendor_role is None:
            logger.error("Vendor role missing from catalog; cannot restore vendor access for user %s", user.user_id)
            return None

        vendor_row = self.db.query(RoleAssignment).filter(
            RoleAssignment.user_id == user.user_id,
            RoleAssignment.role_id == vendor_role.role_id
        ).with_for_update().first()
        note = f"[Restored {note_stamp()}] after revoke of {revoked.role_name}"
        if vendor_row is None:
            vendor_row = RoleAssignment(
                user_id=user.user_id,
                role_id=vendor_role.role_id,
                status=AssignmentStatus.ACTIVE.value,
                assigned_by=actor_id,
                admin_notes=note,
            )
            self.db.add(vendor_row)
        else:
            vendor_row.status = AssignmentStatus.ACTIVE.value
            vendor_row.reviewed_by = actor_id
            vendor_row.reviewed_at = utc_now()
            vendor_row.append_note(note)

        user.role = LegacyRole.VENDOR.value
        user.status = UserStatus.ACTIVE.value
        self.db.flush()
        logger.info("Restored vendor assignment %s for user %s", vendor_row.user_role_id, user.user_id)
        return vendor_row.user_role_id

    def _invalidate_sessions(self, user_id: int) -> List[SideEffectError]:
        errors = []
        for effect, call in (
            ("session_invalidation", self.sessions.invalidate_all),
            ("session_epoch_bump", self.sessions.bump_epoch),
        ):
            try:
                with self.db.begin_nested():
                    call(user_id)
            except Exception as exc:
                error = SideEffectError(effect, original_error=exc)
                logger.warning("%s (user_id=%s)", error.message, user_id, exc_info=True)
                errors.append(error)
        return errors
