"""
API Dependencies

Authentication, capability and shared-state dependencies for the
admin routes.
"""
from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.capabilities import has_capability
from app.core.security import get_user_from_token
from app.db.session import get_db
from app.exceptions import PermissionDeniedError
from app.logging_config import get_logger
from app.models.user import User
from app.services.sync_scheduler import SyncScheduler

logger = get_logger(__name__)

# Tokens are issued by the auth service; tokenUrl is only for the OpenAPI docs
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user from access token

    Args:
        token: JWT access token from Authorization header
        db: Database session

    Returns:
        User object if token is valid

    Raises:
        HTTPException 401 if token is invalid or user not found
        HTTPException 403 if the account is blocked
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id = get_user_from_token(token, expected_type="access")
    if user_id is None:
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is blocked"
        )

    return user


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)]
) -> User:
    """
    Dependency to require admin access.

    Raises:
        HTTPException 403 if user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def require_capability(capability: str) -> Callable:
    """
    Dependency factory: admin who also holds ``capability``.

    Usage:
        current_admin: User = Depends(require_capability(BULK_DESTRUCTIVE_ACTIONS))
    """
    async def _require(
        current_admin: Annotated[User, Depends(get_current_admin_user)]
    ) -> User:
        if not has_capability(current_admin, capability):
            logger.warning(
                f"Capability '{capability}' denied for {current_admin.email}",
                extra={"user_id": current_admin.id, "capability": capability},
            )
            raise PermissionDeniedError(
                f"Unauthorized. {current_admin.email} lacks the '{capability}' capability.",
                action=capability,
                details={"email": current_admin.email},
            )
        return current_admin

    return _require


def get_sync_scheduler(request: Request) -> SyncScheduler:
    """Process-wide reconciliation throttle, created at startup."""
    scheduler = getattr(request.app.state, "member_sync_scheduler", None)
    if scheduler is None:
        scheduler = SyncScheduler()
        request.app.state.member_sync_scheduler = scheduler
    return scheduler
