"""
FastAPI dependency injection helpers: database session + cooperative tenant resolution.

Tokens are issued elsewhere; this service only verifies them and turns the
``sub`` claim into a trusted cooperative id.
"""
import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.config import settings
from harvest.database import get_db
from harvest.models.cooperative import Cooperative
from harvest.services.errors import RegistryError, UnauthorizedError

COOPERATIVE_ROLE = "cooperative"

_bearer = HTTPBearer(auto_error=False)

_ROLE_EXCEPTION = HTTPException(
    status_code=status.HTTP_403_FORBIDDEN,
    detail="Insufficient role",
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_sub_and_role(token: str) -> tuple[uuid.UUID, str]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid or expired token")
    sub = payload.get("sub")
    role = payload.get("role")
    if sub is None or role is None:
        raise _unauthorized("Invalid or expired token")
    try:
        return uuid.UUID(sub), role
    except ValueError:
        raise _unauthorized("Invalid or expired token")


async def resolve_cooperative_id(db: AsyncSession, subject: uuid.UUID) -> uuid.UUID:
    """Map an authenticated subject to the cooperative it acts for."""
    cooperative = await db.get(Cooperative, subject)
    if cooperative is None:
        raise UnauthorizedError("User does not belong to any cooperative")
    if not cooperative.is_approved:
        raise UnauthorizedError("Cooperative account is pending approval")
    return cooperative.id


async def get_current_cooperative_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> uuid.UUID:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    subject, role = _extract_sub_and_role(credentials.credentials)
    if role != COOPERATIVE_ROLE:
        raise _ROLE_EXCEPTION
    try:
        return await resolve_cooperative_id(db, subject)
    except UnauthorizedError as exc:
        raise _unauthorized(str(exc))


CooperativeId = Annotated[uuid.UUID, Depends(get_current_cooperative_id)]


def as_http_exception(exc: RegistryError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))
