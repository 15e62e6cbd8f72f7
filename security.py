import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

import config
from errors import AuthenticationFailed, TokenExpired, TokenInvalid
from models import User
from stores import UserStore

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# Token creation
def issue_token(identity: str, extra_claims: Optional[dict] = None, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token for ``identity``; registered claims win over ``extra_claims``."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = dict(extra_claims or {})
    to_encode.update({"sub": identity, "iat": now, "exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise TokenInvalid()


def verify_token(token: str, expected_identity: Optional[str] = None) -> str:
    """Return the token's subject.

    Raises TokenExpired when past ``exp`` and TokenInvalid for anything else
    wrong with it, including a subject other than ``expected_identity``.
    """
    payload = decode_token(token)
    username = payload.get("sub")
    if not username:
        raise TokenInvalid()
    if expected_identity is not None and username != expected_identity:
        raise TokenInvalid()
    return username


def is_token_valid(token: str, identity: str) -> bool:
    try:
        verify_token(token, expected_identity=identity)
    except (TokenInvalid, TokenExpired):
        return False
    return True


def authenticate(db: Session, username: str, password: str) -> User:
    user = UserStore(db).get_by_username(username)
    if user is None or not verify_password(password, user.password):
        logger.warning("Failed login attempt for username: %s", username)
        raise AuthenticationFailed()
    if not user.is_active:
        logger.warning("Login attempt for inactive account: %s", username)
        raise AuthenticationFailed("Account is disabled or locked")
    return user
