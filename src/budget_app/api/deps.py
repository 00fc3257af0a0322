"""FastAPI dependency injection for authentication, database and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from budget_app.core.security import get_user_id_from_token
from budget_app.db.session import get_db
from budget_app.models.user import User
from budget_app.repositories.user import UserRepository
from budget_app.services.reconciliation import ReconciliationService

# OAuth2 bearer token scheme
security = HTTPBearer()


async def get_user_repository(
    db: AsyncSession = Depends(get_db),
) -> UserRepository:
    """
    Get user repository instance.

    Args:
        db: Database session

    Returns:
        UserRepository instance
    """
    return UserRepository(db)


async def get_reconciliation_service(
    db: AsyncSession = Depends(get_db),
) -> ReconciliationService:
    """Get reconciliation service bound to the request's session."""
    return ReconciliationService(db)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    user_repo: UserRepository = Depends(get_user_repository),
) -> User:
    """
    Extract and validate user from JWT token.

    Args:
        credentials: HTTP bearer token credentials
        user_repo: User repository for database queries

    Returns:
        Authenticated user object

    Raises:
        HTTPException: If token is invalid, expired, or user not found
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        user_id = get_user_id_from_token(credentials.credentials)
    except (JWTError, ValueError):
        raise credentials_exception

    user = await user_repo.get_by_id(user_id)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user
