"""Server-side sessions and the per-user session epoch."""
import secrets
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from marketportal.core.time import utc_now
from marketportal.models.user import User
from marketportal.models.user_session import UserSession


class SessionStore:
    def __init__(self, db: Session):
        self.db = db

    def create_session(self, user_id: int) -> str:
        session_key = secrets.token_urlsafe(32)
        self.db.add(UserSession(session_key=session_key, user_id=user_id, last_seen_at=utc_now()))
        self.db.flush()
        return session_key

    def is_valid(self, user_id: int, session_key: Optional[str]) -> bool:
        if not session_key:
            return False
        return self.db.query(UserSession.session_id).filter(
            UserSession.user_id == user_id,
            UserSession.session_key == session_key
        ).first() is not None

    def invalidate_all(self, user_id: int) -> int:
        """Delete every persisted session of the user; returns the number removed."""
        return self.db.query(UserSession).filter(
            UserSession.user_id == user_id
        ).delete(synchronize_session=False)

    def bump_epoch(self, user_id: int) -> None:
        """Increment users.session_version so previously issued tokens stop validating."""
        self.db.execute(
            update(User)
            .where(User.user_id == user_id)
            .values(session_version=User.session_version + 1)
            .execution_options(synchronize_session="fetch")
        )
