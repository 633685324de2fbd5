"""Authentication: bcrypt password hashing and HS256 JWT bearer tokens."""

from __future__ import annotations

import time

import bcrypt
from fastapi import Depends, Request
from joserfc import jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey

from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.db_models import User, UserRole
from taskmarket.errors import Forbidden, Unauthenticated
from taskmarket.permissions import Identity

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode(), password_hash.encode())


def _signing_key() -> OctKey:
    return OctKey.import_key(settings.jwt_secret)


def _encode(identity: Identity, token_type: str, ttl_seconds: int) -> str:
    now = int(time.time())
    claims = {
        "sub": identity.user_id,
        "email": identity.email,
        "role": identity.role.value,
        "type": token_type,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(
        {"alg": settings.jwt_algorithm},
        claims,
        _signing_key(),
        algorithms=[settings.jwt_algorithm],
    )


def generate_token_pair(identity: Identity) -> dict:
    return {
        "access_token": _encode(identity, ACCESS, settings.access_token_expire_minutes * 60),
        "refresh_token": _encode(
            identity, REFRESH, settings.refresh_token_expire_days * 24 * 3600
        ),
    }


def verify_token(token: str, token_type: str = ACCESS) -> Identity | None:
    """Decode and validate a token. Returns None for anything invalid."""
    try:
        decoded = jwt.decode(token, _signing_key(), algorithms=[settings.jwt_algorithm])
        jwt.JWTClaimsRegistry(
            exp={"essential": True}, sub={"essential": True}
        ).validate(decoded.claims)
    except (JoseError, ValueError):
        return None

    claims = decoded.claims
    if claims.get("type") != token_type:
        return None
    try:
        role = UserRole(claims.get("role"))
    except ValueError:
        return None
    return Identity(user_id=claims["sub"], role=role, email=claims.get("email"))


def extract_bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth[7:] or None


async def get_current_user(request: Request) -> Identity:
    token = extract_bearer_token(request)
    if not token:
        raise Unauthenticated("Missing or invalid Authorization header")
    identity = verify_token(token)
    if identity is None:
        raise Unauthenticated("Invalid or expired token")
    return identity


async def get_optional_user(request: Request) -> Identity | None:
    """Like get_current_user, but anonymous callers get None instead of 401."""
    token = extract_bearer_token(request)
    if not token:
        return None
    return verify_token(token)


async def require_admin(
    identity: Identity = Depends(get_current_user), session=Depends(get_db_session)
) -> Identity:
    """The token must claim ADMIN and the stored account must still hold that role."""
    if not identity.is_admin:
        raise Forbidden("Admin access required")
    user = await session.get(User, identity.user_id)
    if user is None or user.role != UserRole.ADMIN:
        raise Forbidden("Admin access required")
    return identity


AuthUser = Depends(get_current_user)
OptionalUser = Depends(get_optional_user)
AdminUser = Depends(require_admin)
