"""Bearer-token authentication.

Tokens are HS256 JWTs carrying ``sub`` (user id), ``name`` and ``roles``.
Issuing tokens is not a product feature here; ``create_access_token``
exists for development and tests.
"""

from datetime import UTC, datetime, timedelta

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from marketplace.actor import Actor
from marketplace.config import settings
from marketplace.errors import ForbiddenError, Unauthenticated

security = HTTPBearer(auto_error=False)


def create_access_token(user_id, name=None, roles=(), expires_delta: timedelta | None = None) -> str:
    now = datetime.now(UTC)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    claims = {
        "sub": str(user_id),
        "name": name,
        "roles": list(roles),
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Actor:
    if credentials is None:
        raise Unauthenticated("Authentication required")

    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise Unauthenticated("Invalid or expired token")

    return Actor(
        actor_id=str(payload["sub"]),
        name=payload.get("name"),
        roles=tuple(payload.get("roles") or ()),
    )


async def get_current_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise ForbiddenError("Admin access required")
    return actor
