"""
Access gate.

Tokens are issued by the identity service at login and carry the caller's
identity (``sub``), role and approval status.  The gate verifies the
signature and expiry and turns the claims into a ``Principal``; it never
looks the caller up in a user store, so the token is the single source of
the role.
"""

from __future__ import annotations

import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.config import settings
from src.domain.entities import Principal
from src.domain.enums import ApprovalStatus, Role

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_principal(token: str) -> Principal:
    """Verify *token* and build a ``Principal``.  Raises ``HTTPException(401)``."""
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "role"]},
        )
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid or expired token") from exc

    try:
        role = Role(claims["role"])
        status = ApprovalStatus(claims.get("status", ApprovalStatus.PENDING.value))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token payload") from exc

    return Principal(identity=str(claims["sub"]), role=role, approval_status=status)


async def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise HTTPException(status_code=401, detail="No authorization header")
    return decode_principal(credentials.credentials)


def require_role(role: Role):
    """Dependency factory: the caller must hold *role*."""

    async def _dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role != role:
            raise HTTPException(status_code=403, detail="Forbidden: role not allowed")
        return principal

    return _dependency
