"""Tests for transition side effects and failure handling."""
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from marketportal.core.errors import PersistenceError
from marketportal.models.notification import Notification
from marketportal.models.role_assignment import RoleAssignment, RoleDocument
from marketportal.services.audit import AuditSink
from marketportal.services.notifications import NotificationGateway, PendingNotice
from marketportal.services.role_assignments import AssignmentLifecycleService
from marketportal.services.sessions import SessionStore
from marketportal.services.side_effects import requires_session_invalidation


class CountingSessionStore(SessionStore):
    def __init__(self, db):
        super().__init__(db)
        self.invalidations = []
        self.epoch_bumps = []

    def invalidate_all(self, user_id):
        self.invalidations.append(user_id)
        return super().invalidate_all(user_id)

    def bump_epoch(self, user_id):
        self.epoch_bumps.append(user_id)
        super().bump_epoch(user_id)


class BrokenSessionStore(SessionStore):
    def invalidate_all(self, user_id):
        raise RuntimeError("session backend unavailable")


class FailingAuditSink(AuditSink):
    def record(self, *args, **kwargs):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("database is locked"))


class TestSessionInvalidationBoundary:
    @pytest.mark.parametrize("old_status,new_status,downgrade,expected", [
        ("pending", "active", False, True),
        ("under_review", "provisional_active", False, True),
        ("provisional_active", "active", False, True),
        ("active", "rejected", False, True),
        ("pending", "under_review", False, False),
        ("pending", "rejected", False, False),
        ("active", "active", False, False),
        ("under_review", "revoked", True, True),
        (None, "pending", False, False),
    ])
    def test_requires_session_invalidation(self, old_status, new_status, downgrade, expected):
        assert requires_session_invalidation(old_status, new_status, downgrade=downgrade) is expected


class TestSessionInvalidation:
    def test_activation_invalidates_exactly_once(self, db_session, request_role, vendor_user, admin_user, add_document):
        sessions = CountingSessionStore(db_session)
        service = AssignmentLifecycleService(db_session, sessions=sessions)
        assignment = request_role(vendor_user, "market_manager")
        add_document(assignment, "permit", status="approved")

        result = service.review_assignment(assignment.user_role_id, admin_user.user_id)

        assert result.new_status == "active"
        assert sessions.invalidations == [vendor_user.user_id]
        assert sessions.epoch_bumps == [vendor_user.user_id]

    def test_non_authorizing_transition_keeps_sessions(self, db_session, request_role, vendor_user, admin_user):
        sessions = CountingSessionStore(db_session)
        service = AssignmentLifecycleService(db_session, sessions=sessions)
        assignment = request_role(vendor_user, "market_manager")

        result = service.review_assignment(assignment.user_role_id, admin_user.user_id)

        assert result.new_status == "under_review"
        assert result.side_effects.session_invalidation_attempted is False
        assert sessions.invalidations == []

    def test_invalidation_failure_does_not_undo_status(
        self, db_session, request_role, vendor_user, admin_user, add_document, caplog
    ):
        service = AssignmentLifecycleService(db_session, sessions=BrokenSessionStore(db_session))
        assignment = request_role(vendor_user, "market_manager")
        add_document(assignment, "permit", status="approved")
        epoch = vendor_user.session_version

        with caplog.at_level("WARNING"):
            result = service.review_assignment(assignment.user_role_id, admin_user.user_id)

        assert [error.effect for error in result.side_effects.errors] == ["session_invalidation"]
        assert "session_invalidation" in caplog.text
        db_session.expire_all()
        assert db_session.get(RoleAssignment, assignment.user_role_id).status == "active"
        # The epoch bump runs in its own savepoint and still lands.
        assert vendor_user.session_version == epoch + 1


class TestTransactionFailures:
    def test_database_failure_rolls_back_review(self, db_session, request_role, vendor_user, admin_user, add_document):
        service = AssignmentLifecycleService(db_session, audit=FailingAuditSink(db_session))
        assignment = request_role(vendor_user, "market_manager")
        add_document(assignment, "permit", status="approved")

        with pytest.raises(PersistenceError) as exc_info:
            service.review_assignment(assignment.user_role_id, admin_user.user_id)

        assert "no changes were saved" in exc_info.value.message
        db_session.expire_all()
        assert db_session.get(RoleAssignment, assignment.user_role_id).status == "pending"
        assert vendor_user.role == "vendor"
        assert db_session.query(Notification).filter(Notification.user_id == vendor_user.user_id).count() == 0

    def test_database_failure_discards_uploaded_blobs(
        self, db_session, service, request_role, vendor_user, admin_user, add_document, jpeg_upload, document_storage
    ):
        assignment = request_role(vendor_user, "market_manager")
        add_document(assignment, "permit", status="rejected")
        service.review_assignment(assignment.user_role_id, admin_user.user_id)
        failing = AssignmentLifecycleService(db_session, audit=FailingAuditSink(db_session))

        with pytest.raises(PersistenceError):
            failing.resubmit(assignment.user_role_id, vendor_user.user_id, {"permit": jpeg_upload()})

        assert not any(path.is_file() for path in document_storage.rglob("*"))
        db_session.expire_all()
        permit = db_session.query(RoleDocument).filter(RoleDocument.user_role_id == assignment.user_role_id).one()
        assert permit.status == "rejected"


class TestNotificationGateway:
    def test_notify_writes_row(self, db_session, vendor_user):
        gateway = NotificationGateway(db_session)

        assert gateway.notify(vendor_user.user_id, "Hello", "Welcome aboard", severity="success") is True
        notice = db_session.query(Notification).filter(Notification.user_id == vendor_user.user_id).one()
        assert notice.type == "success"
        assert notice.category == "role_request"

    def test_notify_failure_is_swallowed(self, caplog):
        db = MagicMock()
        db.commit.side_effect = SQLAlchemyError("connection reset")
        gateway = NotificationGateway(db)

        with caplog.at_level("WARNING"):
            assert gateway.notify(1, "Hello", "Welcome") is False
        db.rollback.assert_called_once()
        assert "notification" in caplog.text

    def test_deliver_counts_successes(self):
        db = MagicMock()
        db.commit.side_effect = [None, SQLAlchemyError("connection reset"), None]
        gateway = NotificationGateway(db)
        notices = [PendingNotice(user_id=i, title="t", message="m") for i in range(3)]

        assert gateway.deliver(notices) == 2

    def test_notification_failure_keeps_status(self, db_session, request_role, vendor_user, admin_user, add_document):
        broken = MagicMock()
        broken.commit.side_effect = SQLAlchemyError("connection reset")
        service = AssignmentLifecycleService(db_session, notifier=NotificationGateway(broken))
        assignment = request_role(vendor_user, "market_manager")
        add_document(assignment, "permit", status="approved")

        result = service.review_assignment(assignment.user_role_id, admin_user.user_id)

        assert result.new_status == "active"
        db_session.expire_all()
        assert db_session.get(RoleAssignment, assignment.user_role_id).status == "active"
