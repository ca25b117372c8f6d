"""
Explicit per-user sessions.

A ``UserSession`` is opened on sign-in, handed to every operation that acts
on behalf of the user, and closed on sign-out. A token is only honoured while
its session id is registered in the cache.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import structlog

from pdflearn.auth import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, verify_token
from pdflearn.models import User
from pdflearn.services.cache import cache

logger = structlog.get_logger()

_bearer = HTTPBearer(auto_error=False)


@dataclass
class UserSession:
    user_id: int
    email: str
    session_id: str
    access_token: str
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _session_key(user_id: int, session_id: str) -> str:
    return f"session:{user_id}:{session_id}"


def open_session(user: User) -> UserSession:
    """Sign-in: mint a token and register its session id."""
    session_id = uuid.uuid4().hex
    token = create_access_token(str(user.id), session_id=session_id)
    user_session = UserSession(user_id=user.id, email=user.email, session_id=session_id, access_token=token)
    cache.set(
        _session_key(user.id, session_id),
        {"email": user.email, "opened_at": user_session.opened_at.isoformat()},
        expire=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    logger.info("session_opened", user_id=user.id, session_id=session_id)
    return user_session


def resolve_session(token: str) -> Optional[UserSession]:
    payload = verify_token(token)
    if not payload:
        return None
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None
    session_id = payload.get("jti", "")
    record = cache.get(_session_key(user_id, session_id))
    if not record:
        logger.warning("session_not_found", user_id=user_id, session_id=session_id)
        return None
    return UserSession(
        user_id=user_id,
        email=record.get("email", ""),
        session_id=session_id,
        access_token=token,
        opened_at=datetime.fromisoformat(record["opened_at"]) if record.get("opened_at") else datetime.now(timezone.utc),
    )


def close_session(user_session: UserSession) -> None:
    """Sign-out: the token stops working immediately."""
    cache.delete(_session_key(user_session.user_id, user_session.session_id))
    logger.info("session_closed", user_id=user_session.user_id, session_id=user_session.session_id)


def close_all_sessions(user_id: int) -> int:
    closed = cache.clear_pattern(f"session:{user_id}:*")
    logger.info("sessions_closed", user_id=user_id, count=closed)
    return closed


def get_user_session(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> UserSession:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user_session = resolve_session(credentials.credentials)
    if user_session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
    return user_session
