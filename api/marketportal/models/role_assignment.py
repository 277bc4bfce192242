"""Role assignment (user, role) aggregate and its verification documents."""
from datetime import datetime
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from marketportal.core.assignment_status import AssignmentStatus
from marketportal.core.document_types import DocumentStatus
from marketportal.core.time import utc_now
from marketportal.models.base import Base

if TYPE_CHECKING:
    from marketportal.models.user import User
    from marketportal.models.role import Role
    from marketportal.models.market import Market


class RoleAssignment(Base):
    """One row per (user, role); repeat requests mutate the same row."""
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),
        Index("ix_user_roles_status", "status"),
    )

    user_role_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("roles.role_id"), nullable=False
    )
    # Scope for staff roles (inspector/accountant are tied to one market)
    market_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("markets.market_id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=AssignmentStatus.PENDING.value
    )
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    resubmission_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    assigned_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    user: Mapped["User"] = relationship(
        "User", back_populates="role_assignments", foreign_keys=[user_id]
    )
    role: Mapped["Role"] = relationship("Role")
    market: Mapped[Optional["Market"]] = relationship("Market")
    documents: Mapped[List["RoleDocument"]] = relationship(
        "RoleDocument", back_populates="assignment",
        order_by="RoleDocument.document_id"
    )

    @property
    def role_name(self) -> Optional[str]:
        return self.role.name if self.role else None

    def append_note(self, note: str) -> None:
        """Append to the embedded audit trail; existing text is never rewritten."""
        self.admin_notes = f"{self.admin_notes}\n{note}" if self.admin_notes else note


class RoleDocument(Base):
    """Verification document uploaded for one role assignment."""
    __tablename__ = "user_role_documents"

    document_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_roles.user_role_id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    doc_type: Mapped[str] = mapped_column(String(20), nullable=False)  # id, permit, other
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.PENDING.value
    )
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    original_filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )

    assignment: Mapped["RoleAssignment"] = relationship(
        "RoleAssignment", back_populates="documents"
    )

    def append_note(self, note: str) -> None:
        self.admin_notes = f"{self.admin_notes}\n{note}" if self.admin_notes else note


class IdentityDocument(Base):
    """User-level identity document from the legacy bootstrap path."""
    __tablename__ = "identity_documents"

    identity_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    doc_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.PENDING.value
    )
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    original_filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])

    def append_note(self, note: str) -> None:
        self.admin_notes = f"{self.admin_notes}\n{note}" if self.admin_notes else note
