"""
Security utilities: password hashing, JWT creation/verification, and dependencies.
=================================================================================

This module provides the security primitives of the Betting Insights API.

Features:
- Salted password hashing with bcrypt (passlib)
- Access and refresh JWTs signed with two independent secrets
- Mandatory and optional authentication dependencies (request gates)

Tokens are stateless: nothing about an issued token is stored server-side,
so there is no revocation list. A refresh token that has been rotated (or
leaked) stays valid until its own ``exp``.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.core.errors import AuthenticationError, ForbiddenError, TokenError
from app.core.logging import get_logger
from app.core.utils import utcnow
from app.services.user_repository import UserRepository

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# Bearer scheme for token extraction; missing headers are reported by the gate itself
bearer_scheme = HTTPBearer(auto_error=False)


class TokenClaims(BaseModel):
    """Identity asserted by a token."""

    user_id: str
    email: str
    username: str


class TokenPair(BaseModel):
    """Access/refresh token pair as returned to clients."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        str: Salted hash; a new salt is drawn on every call
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Stored hashed password

    Returns:
        bool: True if password matches, False otherwise (including
        unrecognised or malformed hashes)
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (UnknownHashError, ValueError, TypeError) as e:
        logger.warning(f"Password verification against malformed hash: {e}")
        return False


def _encode(claims: TokenClaims, token_type: str, secret: str, expires_delta: timedelta) -> str:
    now = utcnow()
    to_encode = {
        "sub": claims.user_id,
        "email": claims.email,
        "username": claims.username,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(claims: TokenClaims, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token signed with JWT_SECRET.

    Args:
        claims: Identity to embed
        expires_delta: Lifetime override; defaults to JWT_EXPIRES_IN

    Returns:
        str: Encoded JWT token
    """
    token = _encode(
        claims,
        ACCESS_TOKEN_TYPE,
        settings.JWT_SECRET,
        expires_delta if expires_delta is not None else settings.access_token_ttl,
    )
    logger.debug(f"Access token created for user: {claims.user_id}")
    return token


def create_refresh_token(claims: TokenClaims, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT refresh token signed with JWT_REFRESH_SECRET.

    Args:
        claims: Identity to embed
        expires_delta: Lifetime override; defaults to JWT_REFRESH_EXPIRES_IN

    Returns:
        str: Encoded JWT refresh token
    """
    token = _encode(
        claims,
        REFRESH_TOKEN_TYPE,
        settings.JWT_REFRESH_SECRET,
        expires_delta if expires_delta is not None else settings.refresh_token_ttl,
    )
    logger.debug(f"Refresh token created for user: {claims.user_id}")
    return token


def create_token_pair(claims: TokenClaims) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
    )


def _verify(token: str, token_type: str, secret: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        logger.debug(f"{token_type.capitalize()} token has expired")
        raise TokenError()
    except JWTError as e:
        logger.debug(f"{token_type.capitalize()} token verification failed: {e}")
        raise TokenError()

    # Verify token type
    if payload.get("type") != token_type:
        logger.warning(f"Invalid token type: expected {token_type}, got {payload.get('type')}")
        raise TokenError()

    try:
        return TokenClaims(
            user_id=payload["sub"],
            email=payload["email"],
            username=payload["username"],
        )
    except (KeyError, ValueError):
        logger.warning("Token is missing identity claims")
        raise TokenError()


def verify_access_token(token: str) -> TokenClaims:
    """
    Verify an access token's signature, expiry and type.

    Raises:
        TokenError: If the token is malformed, expired, signed with another
            secret or is not an access token
    """
    return _verify(token, ACCESS_TOKEN_TYPE, settings.JWT_SECRET)


def verify_refresh_token(token: str) -> TokenClaims:
    """
    Verify a refresh token's signature, expiry and type.

    Raises:
        TokenError: If the token is malformed, expired, signed with another
            secret or is not a refresh token
    """
    return _verify(token, REFRESH_TOKEN_TYPE, settings.JWT_REFRESH_SECRET)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Read a token's claims WITHOUT checking signature or expiry.

    Only for display/diagnostics; never base an authorization decision on
    the result.

    Returns:
        Optional[dict]: Raw claims, or None if the token cannot be decoded
    """
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


async def _load_active_user(db: AsyncSession, user_id: str):
    user = await UserRepository(db).find_by_id(user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> TokenClaims:
    """
    Mandatory request gate.

    Missing bearer token and unknown/inactive users are 401; a token that is
    present but fails verification is 403.

    Args:
        request: Incoming request; verified claims are attached to request.state.user
        credentials: Bearer credentials from the Authorization header
        db: Database session

    Returns:
        TokenClaims: Identity of the authenticated user

    Raises:
        AuthenticationError: Missing token, or user not found / inactive
        ForbiddenError: Invalid or expired token
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    try:
        claims = verify_access_token(credentials.credentials)
    except TokenError:
        raise ForbiddenError("Invalid or expired token")

    user = await _load_active_user(db, claims.user_id)
    if user is None:
        logger.warning(f"Token presented for missing or inactive user: {claims.user_id}")
        raise AuthenticationError("User not found or inactive")

    request.state.user = claims
    logger.debug(f"User authenticated: {claims.email}")
    return claims


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[TokenClaims]:
    """
    Optional request gate: identify the caller when possible, never reject.

    Returns:
        Optional[TokenClaims]: Identity, or None for anonymous/invalid callers
    """
    request.state.user = None
    if credentials is None or not credentials.credentials:
        return None

    try:
        claims = verify_access_token(credentials.credentials)
    except TokenError:
        return None

    try:
        user = await _load_active_user(db, claims.user_id)
    except SQLAlchemyError as e:
        logger.warning(f"Optional authentication skipped, user lookup failed: {e}")
        return None
    if user is None:
        return None

    request.state.user = claims
    return claims
