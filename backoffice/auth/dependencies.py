"""Auth dependencies — JWT validation, tenant context, role enforcement.

Tokens carry ``sub`` (auth user id) and ``tenant_id`` (the user's active
tenant). The role is never trusted from the token; it is read from the
active ``user_tenant_roles`` row.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.auth.models import UserTenantRole
from backoffice.common.constants import TenantRole
from backoffice.common.exceptions import ConflictError, ForbiddenException
from backoffice.config import settings
from backoffice.database import get_db


@dataclass(frozen=True)
class TenantContext:
    tenant_id: uuid.UUID
    user_id: uuid.UUID
    role: TenantRole


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


def _decode(token: str) -> dict:
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")
    return payload


def _parse_uuid(value) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


# ── Core dependencies ───────────────────────────────────────────────

async def get_token_payload(request: Request) -> dict:
    """Validate the bearer JWT once per request and return its claims."""
    return _decode(_extract_bearer(request))


async def get_current_user_id(payload: dict = Depends(get_token_payload)) -> uuid.UUID:
    """The authenticated user's id (``sub`` claim)."""
    user_id = _parse_uuid(payload.get("sub"))
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid token subject.")
    return user_id


async def get_tenant_context(
    payload: dict = Depends(get_token_payload),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> TenantContext:
    """Resolve the caller's active tenant and their role in it."""
    tenant_id = _parse_uuid(payload.get("tenant_id"))
    if tenant_id is None:
        raise ConflictError("tenant_id", "No active tenant. Set active tenant first.")

    result = await db.execute(
        select(UserTenantRole.role).where(
            UserTenantRole.tenant_id == tenant_id,
            UserTenantRole.user_id == user_id,
            UserTenantRole.is_active.is_(True),
        )
    )
    role = result.scalars().first()
    if role is None:
        raise ForbiddenException(detail="You are not a member of the active tenant.")

    return TenantContext(tenant_id=tenant_id, user_id=user_id, role=TenantRole(role))


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: TenantRole) -> Callable:
    """Return a FastAPI dependency that enforces tenant-role membership."""

    async def _check(
        ctx: TenantContext = Depends(get_tenant_context),
    ) -> TenantContext:
        if ctx.role not in allowed_roles:
            raise ForbiddenException(
                detail=f"Role '{ctx.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return ctx

    return _check
