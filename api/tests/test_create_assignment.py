"""Tests for creating role assignments."""
import pytest
from sqlalchemy.exc import OperationalError

from marketportal.core.errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from marketportal.models.audit_log import AuditLog
from marketportal.models.notification import Notification
from marketportal.models.role_assignment import RoleAssignment, RoleDocument
from marketportal.services.document_store import DocumentStore, FileBlobStore, UploadedFile

from tests.factories import PDF_BYTES


class TestSelfService:
    """Users requesting roles for themselves."""

    def test_user_can_request_market_manager(self, service, plain_user, db_session):
        assignment = service.create_assignment(plain_user.user_id, "Market Manager", plain_user.user_id)

        assert assignment.status == "pending"
        assert assignment.role_name == "market_manager"
        assert assignment.assigned_by == plain_user.user_id
        assert "[Requested" in assignment.admin_notes
        log = db_session.query(AuditLog).filter(AuditLog.action == "CREATE").one()
        assert log.entity_id == assignment.user_role_id
        assert log.new_value == "pending"

    def test_user_cannot_request_staff_role(self, service, plain_user, db_session):
        with pytest.raises(AuthorizationError):
            service.create_assignment(plain_user.user_id, "inspector", plain_user.user_id)
        assert db_session.query(RoleAssignment).filter(
            RoleAssignment.user_id == plain_user.user_id
        ).count() == 0

    def test_user_cannot_request_role_for_someone_else(self, service, plain_user, vendor_user):
        with pytest.raises(AuthorizationError):
            service.create_assignment(vendor_user.user_id, "market_manager", plain_user.user_id)

    def test_unknown_role_is_validation_error(self, service, plain_user):
        with pytest.raises(ValidationError):
            service.create_assignment(plain_user.user_id, "janitor", plain_user.user_id)

    def test_missing_user_is_not_found(self, service, admin_user):
        with pytest.raises(NotFoundError):
            service.create_assignment(99999, "vendor", admin_user.user_id)

    def test_market_manager_request_notifies_super_admins(self, service, plain_user, admin_user, db_session):
        service.create_assignment(plain_user.user_id, "market_manager", plain_user.user_id)

        notice = db_session.query(Notification).filter(Notification.user_id == admin_user.user_id).one()
        assert notice.title == "Market Manager request pending"
        assert plain_user.username in notice.message


class TestStaffCreation:
    """Super admins and market managers granting roles to others."""

    def test_super_admin_can_grant_any_role(self, service, admin_user, plain_user):
        assignment = service.create_assignment(plain_user.user_id, "super_admin", admin_user.user_id)
        assert assignment.status == "pending"

    def test_manager_can_create_inspector_for_managed_market(self, service, manager_user, plain_user, market):
        assignment = service.create_assignment(
            plain_user.user_id, "inspector", manager_user.user_id, market_id=market.market_id
        )
        assert assignment.market_id == market.market_id

    def test_manager_cannot_create_staff_for_other_market(self, service, manager_user, plain_user, other_market):
        with pytest.raises(AuthorizationError, match="do not manage"):
            service.create_assignment(
                plain_user.user_id, "accountant", manager_user.user_id, market_id=other_market.market_id
            )

    def test_manager_must_scope_staff_to_a_market(self, service, manager_user, plain_user):
        with pytest.raises(AuthorizationError, match="scoped"):
            service.create_assignment(plain_user.user_id, "inspector", manager_user.user_id)

    def test_manager_cannot_grant_super_admin(self, service, manager_user, plain_user):
        with pytest.raises(AuthorizationError):
            service.create_assignment(plain_user.user_id, "super_admin", manager_user.user_id)


class TestRowReuse:
    """One row per (user, role)."""

    def test_duplicate_open_request_is_invalid_state(self, service, request_role, plain_user):
        request_role(plain_user, "market_manager")
        with pytest.raises(InvalidStateError) as exc_info:
            request_role(plain_user, "market_manager")
        assert exc_info.value.current_status == "pending"

    def test_revoked_row_is_reopened(self, service, request_role, plain_user, admin_user, add_document, db_session):
        assignment = request_role(plain_user, "market_manager")
        add_document(assignment, "permit", status="approved")
        service.review_assignment(assignment.user_role_id, admin_user.user_id)
        service.revoke(assignment.user_role_id, admin_user.user_id, reason="Left the market")

        reopened = request_role(plain_user, "market_manager")

        assert reopened.user_role_id == assignment.user_role_id
        assert reopened.status == "pending"
        assert "[Re-requested" in reopened.admin_notes
        assert "was revoked" in reopened.admin_notes
        assert db_session.query(RoleAssignment).filter(
            RoleAssignment.user_id == plain_user.user_id,
            RoleAssignment.role_id == assignment.role_id
        ).count() == 1


class TestBootstrapDocument:
    """Document uploaded together with the request."""

    def test_bootstrap_document_is_stored(self, service, admin_user, plain_user, db_session):
        upload = UploadedFile(PDF_BYTES, "application/pdf", "permit.pdf")
        assignment = service.create_assignment(
            plain_user.user_id, "accountant", admin_user.user_id,
            bootstrap_document=upload, bootstrap_doc_type="permit",
        )

        document = db_session.query(RoleDocument).filter(
            RoleDocument.user_role_id == assignment.user_role_id
        ).one()
        assert document.doc_type == "permit"
        assert document.status == "pending"
        assert document.mime_type == "application/pdf"

    def test_invalid_bootstrap_document_blocks_creation(self, service, admin_user, plain_user, db_session):
        upload = UploadedFile(b"GIF89a" + b"\x00" * 16, "image/gif", "id.gif")
        with pytest.raises(ValidationError):
            service.create_assignment(plain_user.user_id, "inspector", admin_user.user_id, bootstrap_document=upload)
        assert db_session.query(RoleAssignment).filter(
            RoleAssignment.user_id == plain_user.user_id
        ).count() == 0

    def test_storage_failure_does_not_abort_creation(self, service, admin_user, plain_user, db_session, monkeypatch):
        def broken_save(self, owner_key, content, extension):
            raise OSError("disk full")

        monkeypatch.setattr(FileBlobStore, "save", broken_save)
        upload = UploadedFile(PDF_BYTES, "application/pdf", "permit.pdf")

        assignment = service.create_assignment(
            plain_user.user_id, "inspector", admin_user.user_id, bootstrap_document=upload
        )

        assert assignment.status == "pending"
        assert db_session.query(RoleDocument).filter(
            RoleDocument.user_role_id == assignment.user_role_id
        ).count() == 0

    def test_failed_document_row_removes_written_file(
        self, service, admin_user, plain_user, db_session, document_storage, monkeypatch
    ):
        def broken_lookup(self, role_assignment_id):
            raise OperationalError("SELECT user_role_documents", {}, Exception("database is locked"))

        monkeypatch.setattr(DocumentStore, "governing_documents", broken_lookup)
        upload = UploadedFile(PDF_BYTES, "application/pdf", "permit.pdf")

        assignment = service.create_assignment(
            plain_user.user_id, "inspector", admin_user.user_id, bootstrap_document=upload
        )

        assert assignment.status == "pending"
        assert [path for path in document_storage.rglob("*") if path.is_file()] == []
        assert service.store.written_count == 0
