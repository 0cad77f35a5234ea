"""
Session tokens and request identity.

Access tokens are short-lived and carry the user's id and email. Refresh
tokens are signed with a separate secret and carry only the user id plus a
session id and version. The current version of every session lives in redis;
each refresh bumps it, so a refresh token stops validating as soon as its
successor has been issued.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

import bcrypt
import jwt
import redis.asyncio as redis
from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.exceptions import WatchError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import (
    ConfigurationError,
    Forbidden,
    TokenExpired,
    TokenInvalid,
    Unauthorized,
    UserNotFound,
)
from app.core.timeutils import utcnow
from app.models.user import User

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def _signing_secret(token_type: str) -> str:
    if token_type == ACCESS:
        secret = settings.JWT_SECRET
    elif token_type == REFRESH:
        secret = settings.REFRESH_TOKEN_SECRET
    else:
        raise ValueError(f"Unknown token type: {token_type}")

    if not secret:
        logger.error("Signing secret for %s tokens is not configured", token_type)
        raise ConfigurationError()
    return secret


def _encode(claims: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    secret = _signing_secret(token_type)
    issued_at = utcnow()
    to_encode = dict(claims)
    to_encode.update({"type": token_type, "iat": issued_at, "exp": issued_at + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({"sub": str(user.id), "email": user.email}, ACCESS, expires_delta)


def create_refresh_token(
    user: User,
    session_id: str,
    version: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode({"sub": str(user.id), "sid": session_id, "ver": version}, REFRESH, expires_delta)


def verify_token(token: str, token_type: str = ACCESS) -> Dict[str, Any]:
    """Decode and validate a token, returning its claims"""
    secret = _signing_secret(token_type)
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.ALGORITHM],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired() from None
    except jwt.InvalidTokenError:
        raise TokenInvalid() from None

    if payload.get("type") != token_type:
        raise TokenInvalid()
    if token_type == ACCESS and not payload.get("email"):
        raise TokenInvalid("Invalid token payload")
    if token_type == REFRESH and (not payload.get("sid") or not isinstance(payload.get("ver"), int)):
        raise TokenInvalid("Invalid refresh token payload")

    return payload


def user_id_from_claims(claims: Dict[str, Any]) -> int:
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise TokenInvalid("Invalid token payload") from None


class RefreshSessionStore:
    """Per-session refresh token versions kept in redis"""

    key_prefix = "refresh_session"

    def __init__(self, redis_client: redis.Redis, ttl_seconds: Optional[int] = None):
        self.redis = redis_client
        self.ttl = ttl_seconds or settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}:{session_id}"

    async def start(self) -> Tuple[str, int]:
        session_id = uuid.uuid4().hex
        await self.redis.setex(self._key(session_id), self.ttl, 1)
        return session_id, 1

    async def rotate(self, session_id: str, presented_version: int) -> int:
        """Advance the session to its next version if ``presented_version`` is current"""
        key = self._key(session_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = await pipe.get(key)
                if current is None:
                    raise TokenInvalid("Refresh session not found")
                if int(current) != presented_version:
                    raise TokenInvalid("Refresh token has been superseded")
                pipe.multi()
                pipe.incr(key)
                pipe.expire(key, self.ttl)
                new_version, _ = await pipe.execute()
            except WatchError:
                # Another refresh with the same token won the race
                raise TokenInvalid("Refresh token has been superseded") from None
        return int(new_version)

    async def revoke(self, session_id: str) -> None:
        await self.redis.delete(self._key(session_id))


async def issue_session(user: User, store: RefreshSessionStore) -> TokenPair:
    """Start a new refresh session for ``user`` and return its first token pair"""
    _signing_secret(ACCESS)
    _signing_secret(REFRESH)
    session_id, version = await store.start()
    return TokenPair(
        access_token=create_access_token(user),
        refresh_token=create_refresh_token(user, session_id, version),
    )


async def refresh_session(refresh_token: str, db: AsyncSession, store: RefreshSessionStore) -> TokenPair:
    """Exchange a refresh token for a brand-new pair, superseding the old one"""
    claims = verify_token(refresh_token, REFRESH)
    # Both secrets must be usable before the session version moves
    _signing_secret(ACCESS)
    session_id = claims["sid"]

    user = await db.get(User, user_id_from_claims(claims))
    if user is None or not user.is_active:
        logger.warning("Refresh attempted for missing or inactive user %s", claims.get("sub"))
        await store.revoke(session_id)
        raise UserNotFound()

    try:
        new_version = await store.rotate(session_id, claims["ver"])
    except TokenInvalid:
        logger.warning("Rejected superseded refresh token for user %s", user.id)
        raise

    logger.info("Rotated refresh session for user %s", user.id)
    return TokenPair(
        access_token=create_access_token(user),
        refresh_token=create_refresh_token(user, session_id, new_version),
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from a Bearer header, falling back to the auth_token cookie"""
    token = credentials.credentials if credentials else auth_token
    if not token:
        raise Unauthorized("Unauthorized: Missing or invalid token")

    claims = verify_token(token, ACCESS)
    user = await db.get(User, user_id_from_claims(claims))
    if user is None:
        raise Unauthorized("Unauthorized: Invalid token")
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise Forbidden("Inactive user")
    return current_user
