"""Request dependencies: current user and role checks."""
from typing import Set

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from marketportal.core.database import get_db
from marketportal.core.roles import RoleCode
from marketportal.core.security import decode_token
from marketportal.models.user import User, UserStatus
from marketportal.services.role_assignments import AssignmentLifecycleService
from marketportal.services.sessions import SessionStore

security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to a user.

    A token stops validating once the user's session epoch moves past its
    ``sv`` claim or its server-side session (``sid``) has been deleted.
    """
    payload = decode_token(credentials.credentials)
    if payload is None:
        raise _credentials_error()

    username = payload.get("sub")
    if not username:
        raise _credentials_error()

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise _credentials_error()

    if payload.get("sv") != user.session_version:
        raise _credentials_error("Session expired; please sign in again")

    session_key = payload.get("sid")
    if session_key and not SessionStore(db).is_valid(user.user_id, session_key):
        raise _credentials_error("Session expired; please sign in again")

    if user.status != UserStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active"
        )
    return user


def get_user_role_codes(db: Session, user: User) -> Set[str]:
    return AssignmentLifecycleService(db).authorizing_role_codes(user.user_id)


def require_super_admin(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> User:
    if RoleCode.SUPER_ADMIN.value not in get_user_role_codes(db, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin access required"
        )
    return current_user


def get_lifecycle_service(db: Session = Depends(get_db)) -> AssignmentLifecycleService:
    return AssignmentLifecycleService(db)
