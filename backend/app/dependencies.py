import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.exceptions import (
    AccessDeniedError,
    CapTrackError,
    NotFoundError,
    StateConflictError,
    TransitionNotCommittedError,
    UpstreamError,
    ValidationError,
)
from app.services.access import AccessContext, resolve_access

logger = logging.getLogger(__name__)

security = HTTPBearer()

STATUS_BY_ERROR: list[tuple[type[CapTrackError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
    (TransitionNotCommittedError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def create_access_token(user_id: str) -> str:
    """Mint a token the way the identity provider does (dev seed and tests)."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def http_error(e: CapTrackError) -> HTTPException:
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(e, error_type):
            return HTTPException(status_code=code, detail={"code": e.code, "message": e.message})
    logger.error(f"Unmapped core error {e.code}: {e.message}")
    return HTTPException(status_code=500, detail={"code": e.code, "message": e.message})


async def get_current_access(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> AccessContext:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(
            credentials.credentials, settings.secret_key, algorithms=[settings.algorithm]
        )
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        user_id = uuid.UUID(subject)
    except (JWTError, ValueError):
        raise credentials_exception

    return await resolve_access(db, user_id)


async def require_admin(access: AccessContext = Depends(get_current_access)) -> AccessContext:
    if not access.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return access
