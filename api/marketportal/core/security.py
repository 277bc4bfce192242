"""Password hashing and session token helpers."""
from datetime import timedelta
from jose import JWTError, jwt
import bcrypt
from marketportal.core.config import settings
from marketportal.core.time import utc_now


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8")
        )
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    hashed = bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt()
    )
    return hashed.decode("utf-8")


def create_access_token(data: dict, session_version: int = 0, session_key: str | None = None) -> str:
    """Create a JWT bound to the user's current session epoch.

    ``sv`` carries users.session_version at issue time; ``sid`` optionally
    names the server-side session row the token belongs to.
    """
    to_encode = data.copy()
    expire = utc_now() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "sv": session_version})
    if session_key:
        to_encode["sid"] = session_key
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict | None:
    """Decode JWT token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
