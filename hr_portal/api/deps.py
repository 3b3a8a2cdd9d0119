from typing import Annotated
import logging

from fastapi import Depends, HTTPException, Path, Response, UploadFile, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from hr_portal.config import settings
from hr_portal.database import get_db
from hr_portal.core.security import verify_access_token
from hr_portal.services.auth_service import AuthService, AuthenticatedUser
from hr_portal.services.storage_service import HRRepository, StorageRepository


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer()


DB = Annotated[AsyncSession, Depends(get_db)]


async def get_repository(db: DB) -> HRRepository:
    """Repository over the request's database session."""
    return StorageRepository(db)


Repo = Annotated[HRRepository, Depends(get_repository)]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    repo: Repo,
) -> AuthenticatedUser:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and re-checks that a co-admin is not locked.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    username = verify_access_token(credentials.credentials)
    if username is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise credentials_exception

    user = await AuthService(repo).resolve(username)
    if user is None:
        logger.warning(f"Token subject {username} is unknown or locked")
        raise credentials_exception
    return user


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]


async def require_main_admin(user: CurrentUser) -> AuthenticatedUser:
    """Only the main admin manages co-admin accounts."""
    if not user.is_main_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the main admin can manage users"
        )
    return user


MainAdmin = Annotated[AuthenticatedUser, Depends(require_main_admin)]


async def log_activity(repo: HRRepository, user: AuthenticatedUser, message: str) -> None:
    """Append to the dashboard's recent-activity feed."""
    await repo.add_activity(f"{user.username}: {message}", limit=settings.RECENT_ACTIVITY_LIMIT)


async def read_csv_upload(file: UploadFile) -> str:
    """Decode an uploaded CSV file, tolerating a UTF-8 BOM."""
    content = await file.read()
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CSV file must be UTF-8 encoded"
        )


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Path parameters for monthly resources (months are 1-12)
Year = Annotated[int, Path(ge=1900, le=2200)]
Month = Annotated[int, Path(ge=1, le=12)]
