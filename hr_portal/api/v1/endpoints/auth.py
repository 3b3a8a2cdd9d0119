from fastapi import APIRouter, HTTPException, status

from hr_portal.api.deps import Repo, CurrentUser, log_activity
from hr_portal.config import settings
from hr_portal.core.security import create_access_token
from hr_portal.schemas.hr import LoginRequest, TokenResponse, UserResponse
from hr_portal.services.auth_service import AuthService, AccountLockedError

router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, repo: Repo):
    """
    Authenticate the main admin or a co-admin and return an access token.
    """
    auth_service = AuthService(repo)
    try:
        user = await auth_service.authenticate(data.username, data.password)
    except AccountLockedError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=e.message,
        )

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(user.username)
    await log_activity(repo, user, "logged in")

    return TokenResponse(
        access_token=access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        username=user.username,
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser):
    """Get the logged-in account."""
    return UserResponse(
        id=current_user.id,
        username=current_user.username,
        is_locked=False,
        is_main_admin=current_user.is_main_admin,
    )
