from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from sqlmodel import Session, select
import structlog

from pdflearn.auth import get_password_hash, verify_password
from pdflearn.db import get_session
from pdflearn.middleware.rate_limit import auth_limit
from pdflearn.models import User
from pdflearn.session import UserSession, close_all_sessions, close_session, get_user_session, open_session

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 6


def _session_response(user: User, user_session: UserSession) -> dict:
    return {
        "access_token": user_session.access_token,
        "token_type": "bearer",
        "user": {"id": user.id, "email": user.email, "full_name": user.full_name},
    }


@router.post("/register")
@auth_limit()
def register(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    full_name: str = Form(""),
    session: Session = Depends(get_session),
):
    email = email.strip().lower()
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    existing = session.exec(select(User).where(User.email == email)).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    user = User(email=email, full_name=full_name.strip(), hashed_password=get_password_hash(password))
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("user_registered", user_id=user.id)
    return _session_response(user, open_session(user))


@router.post("/login")
@auth_limit()
def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    session: Session = Depends(get_session),
):
    user = session.exec(select(User).where(User.email == email.strip().lower())).first()
    if not user or not verify_password(password, user.hashed_password):
        logger.warning("login_failed", email=email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _session_response(user, open_session(user))


@router.post("/logout")
def logout(user_session: UserSession = Depends(get_user_session)):
    close_session(user_session)
    return {"message": "Signed out"}


@router.get("/me")
def me(user_session: UserSession = Depends(get_user_session), session: Session = Depends(get_session)):
    user = session.get(User, user_session.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "created_at": user.created_at.isoformat(),
        "session_opened_at": user_session.opened_at.isoformat(),
    }


@router.post("/change-password")
def change_password(
    current_password: str = Form(...),
    new_password: str = Form(...),
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    user = session.get(User, user_session.user_id)
    if not user or not verify_password(current_password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    user.hashed_password = get_password_hash(new_password)
    session.add(user)
    session.commit()
    # Every open session ends, including this one; the user signs in again
    close_all_sessions(user.id)
    return {"message": "Password updated. Please sign in again."}
