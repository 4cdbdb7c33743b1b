"""Security utilities: bearer tokens for the request identity."""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID
import logging

import jwt
from pydantic import BaseModel

from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class OverrideClaim(BaseModel):
    """A per-user permission grant or deny carried in the token."""

    permission: str
    granted: bool
    expires_at: datetime | None = None


class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str  # User ID
    org: str  # Organization (tenant) ID
    role: str = "staff"
    overrides: list[OverrideClaim] = []
    exp: datetime
    iat: datetime
    type: str = "access"


def create_access_token(
    user_id: UUID,
    organization_id: UUID,
    role: str = "staff",
    overrides: list[dict[str, Any]] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )

    claims = []
    for override in overrides or []:
        claim = dict(override)
        if isinstance(claim.get("expires_at"), datetime):
            claim["expires_at"] = claim["expires_at"].isoformat()
        claims.append(claim)

    payload = {
        "sub": str(user_id),
        "org": str(organization_id),
        "role": role,
        "overrides": claims,
        "exp": expire,
        "iat": now,
        "type": "access",
    }

    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenPayload | None:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.jwt_algorithm]
        )
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired access token")
        return None
    except jwt.InvalidTokenError:
        return None
    except ValueError as e:
        logger.warning(f"Malformed token payload: {e}")
        return None
