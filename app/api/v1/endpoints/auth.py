import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_refresh_store
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import ConfigurationError, Forbidden, Unauthorized, ValidationError
from app.core.security import (
    REFRESH,
    RefreshSessionStore,
    TokenPair,
    get_password_hash,
    issue_session,
    refresh_session,
    verify_password,
    verify_token,
)
from app.models.user import User
from app.schemas.auth import MessageResponse, Token
from app.schemas.user import UserCreate, UserLogin, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()

ACCESS_COOKIE = "auth_token"
REFRESH_COOKIE = "refreshToken"


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": not settings.is_development,
        "samesite": "lax",
        "path": "/",
    }


def set_session_cookies(response: Response, pair: TokenPair) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        pair.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **_cookie_options(),
    )
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        **_cookie_options(),
    )


def clear_session_cookies(response: Response) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.set_cookie(name, "", max_age=0, **_cookie_options())


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new user"""
    email = user.email.lower()
    result = await db.execute(select(User).where(func.lower(User.email) == email))
    if result.scalar_one_or_none():
        raise ValidationError(
            "Email already registered",
            errors=[{"field": "email", "message": "Email already registered"}],
        )

    db_user = User(email=email, hashed_password=get_password_hash(user.password))
    db.add(db_user)
    await db.commit()
    await db.refresh(db_user)

    logger.info("Registered user %s", db_user.id)
    return db_user


@router.post("/login", response_model=Token)
async def login(
    credentials: UserLogin,
    response: Response,
    db: AsyncSession = Depends(get_db),
    store: RefreshSessionStore = Depends(get_refresh_store),
):
    """Login user, set session cookies and return the access token"""
    result = await db.execute(select(User).where(func.lower(User.email) == credentials.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise Unauthorized("Incorrect email or password")

    if not user.is_active:
        raise Forbidden("Inactive user")

    pair = await issue_session(user, store)
    set_session_cookies(response, pair)

    logger.info("User %s logged in", user.id)
    return {"accessToken": pair.access_token}


@router.post("/refresh-token", response_model=Token)
async def refresh_token(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    db: AsyncSession = Depends(get_db),
    store: RefreshSessionStore = Depends(get_refresh_store),
):
    """Rotate the refresh token and issue a new access token"""
    if not refresh_cookie:
        raise Unauthorized("Refresh token not found")

    try:
        pair = await refresh_session(refresh_cookie, db, store)
    except Unauthorized as exc:
        # A refresh token that failed once will never succeed; drop it
        error_response = JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
        clear_session_cookies(error_response)
        return error_response

    set_session_cookies(response, pair)
    return {"accessToken": pair.access_token}


@router.api_route("/logout", methods=["GET", "POST"], response_model=MessageResponse)
async def logout(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    store: RefreshSessionStore = Depends(get_refresh_store),
):
    """Clear session cookies and end the refresh session if one is presented"""
    if refresh_cookie:
        try:
            claims = verify_token(refresh_cookie, REFRESH)
            await store.revoke(claims["sid"])
            logger.info("Revoked refresh session for user %s", claims.get("sub"))
        except (Unauthorized, ConfigurationError):
            logger.debug("Logout with unusable refresh token")
        except RedisError:
            logger.exception("Could not revoke refresh session during logout")

    clear_session_cookies(response)
    return {"message": "Logged out successfully"}
