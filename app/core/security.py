# core/security.py
# Token issuing/verification and password hashing.

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.errors import InvalidToken

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

logger = logging.getLogger(__name__)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """
    Creates a signed JWT carrying the user id as its subject.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"sub": str(user_id), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> UUID:
    """
    Verifies signature and expiry and returns the embedded user id.

    Raises InvalidToken for anything that does not check out.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        logger.warning("Invalid Auth Token")
        raise InvalidToken()

    subject = payload.get("sub")
    if subject is None:
        logger.warning("Auth Token has no subject")
        raise InvalidToken()
    try:
        return UUID(subject)
    except (TypeError, ValueError):
        logger.warning("Auth Token subject is not a user id")
        raise InvalidToken()
