from datetime import datetime, timedelta, timezone
import os
from typing import Optional
import uuid
import structlog

from jose import jwt, JWTError
from passlib.context import CryptContext

logger = structlog.get_logger()

SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 8)))

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    subject: str,
    session_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": subject,
        "exp": expire,
        "type": "access",
        "jti": session_id or uuid.uuid4().hex,
    }
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    logger.info("access_token_created", user_id=subject, expires_at=expire.isoformat())
    return encoded_jwt


def verify_token(token: str, token_type: str = "access") -> Optional[dict]:
    """Verify a JWT and return its payload, or None when invalid or expired"""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("token_verification_failed", error=str(e))
        return None

    if payload.get("type") != token_type:
        logger.warning("invalid_token_type", expected=token_type, actual=payload.get("type"))
        return None

    exp = payload.get("exp")
    if exp and datetime.now(timezone.utc).timestamp() > exp:
        logger.warning("token_expired", user_id=payload.get("sub"))
        return None

    return payload
