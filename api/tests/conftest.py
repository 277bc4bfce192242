"""Pytest fixtures for API and workflow testing."""
import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketportal.main import app
from marketportal.core.config import settings
from marketportal.core.database import get_db
from marketportal.core.document_types import DocumentStatus
from marketportal.core.roles import RoleCode
from marketportal.core.security import get_password_hash, create_access_token
from marketportal.core.time import utc_now
from marketportal.models.base import Base
from marketportal.models.market import Market
from marketportal.models.role_assignment import IdentityDocument, RoleDocument
from marketportal.models.user import User
from marketportal.seed import ensure_active_assignment, seed_role_catalog
from marketportal.services.document_store import UploadedFile
from marketportal.services.role_assignments import AssignmentLifecycleService
from tests.factories import JPEG_BYTES

# In-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def document_storage(tmp_path, monkeypatch):
    """Keep uploaded blobs inside the test's temporary directory."""
    storage = tmp_path / "documents"
    monkeypatch.setattr(settings, "DOCUMENT_STORAGE_DIR", str(storage))
    return storage


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database with the role catalog for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    seed_role_catalog(db)
    db.commit()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Test client with database override."""
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def roles(db_session):
    return seed_role_catalog(db_session)


def _create_user(db, username, full_name, password="testpass123"):
    user = User(
        username=username,
        email=f"{username}@example.com",
        full_name=full_name,
        password_hash=get_password_hash(password),
        role="vendor",
    )
    db.add(user)
    db.flush()
    return user


def _headers_for(user):
    token = create_access_token(
        data={"sub": user.username}, session_version=user.session_version
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(db_session, roles):
    """Super admin seeded directly as active."""
    user = _create_user(db_session, "admin", "Admin User")
    ensure_active_assignment(db_session, user, roles[RoleCode.SUPER_ADMIN.value])
    db_session.commit()
    return user


@pytest.fixture
def second_admin(db_session, roles):
    user = _create_user(db_session, "admin2", "Second Admin")
    ensure_active_assignment(db_session, user, roles[RoleCode.SUPER_ADMIN.value])
    db_session.commit()
    return user


@pytest.fixture
def vendor_user(db_session, roles):
    """Ordinary vendor with an active vendor assignment."""
    user = _create_user(db_session, "vendor", "Victor Reyes")
    ensure_active_assignment(db_session, user, roles[RoleCode.VENDOR.value])
    db_session.commit()
    return user


@pytest.fixture
def plain_user(db_session):
    """User without any role assignment."""
    user = _create_user(db_session, "newcomer", "Nina Cruz")
    db_session.commit()
    return user


@pytest.fixture
def market(db_session):
    market = Market(name="Central Market")
    db_session.add(market)
    db_session.commit()
    return market


@pytest.fixture
def other_market(db_session):
    market = Market(name="Riverside Market")
    db_session.add(market)
    db_session.commit()
    return market


@pytest.fixture
def manager_user(db_session, roles, market):
    """Active market manager of ``market``."""
    user = _create_user(db_session, "manager", "Maria Santos")
    ensure_active_assignment(db_session, user, roles[RoleCode.MARKET_MANAGER.value])
    market.managers.append(user)
    db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture
def vendor_headers(vendor_user):
    return _headers_for(vendor_user)


@pytest.fixture
def manager_headers(manager_user):
    return _headers_for(manager_user)


@pytest.fixture
def headers_for():
    """Build fresh auth headers; picks up the user's current session epoch."""
    return _headers_for


@pytest.fixture
def service(db_session):
    return AssignmentLifecycleService(db_session)


@pytest.fixture
def jpeg_upload():
    def _make(filename="document.jpg"):
        return UploadedFile(content=JPEG_BYTES, mime_type="image/jpeg", filename=filename)
    return _make


@pytest.fixture
def add_document(db_session):
    """Attach a document row directly, bypassing upload validation."""
    def _add(assignment, doc_type, status=DocumentStatus.PENDING.value):
        document = RoleDocument(
            user_role_id=assignment.user_role_id,
            doc_type=doc_type,
            status=status,
            file_path=f"assignment_{assignment.user_role_id}/{doc_type}.jpg",
            original_filename=f"{doc_type}.jpg",
            mime_type="image/jpeg",
            file_size=len(JPEG_BYTES),
            uploaded_at=utc_now(),
        )
        db_session.add(document)
        db_session.commit()
        return document
    return _add


@pytest.fixture
def add_identity_document(db_session):
    def _add(user, doc_type, status=DocumentStatus.PENDING.value):
        document = IdentityDocument(
            user_id=user.user_id,
            doc_type=doc_type,
            status=status,
            file_path=f"user_{user.user_id}/{doc_type}.jpg",
            original_filename=f"{doc_type}.jpg",
            mime_type="image/jpeg",
        )
        db_session.add(document)
        db_session.commit()
        return document
    return _add


@pytest.fixture
def request_role(service, admin_user):
    """Create a pending assignment through the lifecycle service."""
    def _request(user, role, market_id=None, initiated_by=None):
        return service.create_assignment(
            user_id=user.user_id,
            role_name=role,
            initiated_by=initiated_by if initiated_by is not None else admin_user.user_id,
            market_id=market_id,
        )
    return _request


# ---------------------------------------------------------------------------
# PostgreSQL (real row locks); skipped unless TEST_POSTGRES_URL is set
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def postgres_engine():
    url = os.getenv("TEST_POSTGRES_URL")
    if not url:
        pytest.skip("TEST_POSTGRES_URL not set")
    pg_engine = create_engine(url, pool_pre_ping=True, pool_size=10)
    yield pg_engine
    pg_engine.dispose()


@pytest.fixture
def postgres_db_session(postgres_engine):
    Base.metadata.drop_all(bind=postgres_engine)
    Base.metadata.create_all(bind=postgres_engine)
    PgSession = sessionmaker(autocommit=False, autoflush=False, bind=postgres_engine)
    db = PgSession()
    seed_role_catalog(db)
    db.commit()
    yield db
    db.close()
    Base.metadata.drop_all(bind=postgres_engine)
