"""Session issuance routes."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from marketportal.core.database import get_db
from marketportal.core.deps import get_current_user, get_user_role_codes
from marketportal.core.security import create_access_token, verify_password
from marketportal.models.user import User, UserStatus
from marketportal.schemas.user import CurrentUserResponse, LoginRequest, Token
from marketportal.services.sessions import SessionStore

router = APIRouter()


@router.post("/login", response_model=Token)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    """Issue a token bound to a new server session and the current session epoch."""
    user = db.query(User).filter(User.username == login_data.username).first()

    if not user or not verify_password(login_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password"
        )
    if user.status != UserStatus.ACTIVE.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active"
        )

    session_key = SessionStore(db).create_session(user.user_id)
    db.commit()
    access_token = create_access_token(
        data={"sub": user.username},
        session_version=user.session_version,
        session_key=session_key,
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=CurrentUserResponse)
def get_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Current user with the roles they may act as right now."""
    response = CurrentUserResponse.model_validate(current_user)
    response.roles = sorted(get_user_role_codes(db, current_user))
    return response
