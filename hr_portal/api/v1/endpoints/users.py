"""Co-admin account management. Only the main admin may change accounts."""
from typing import List

from fastapi import APIRouter, HTTPException, status

from hr_portal.api.deps import Repo, CurrentUser, MainAdmin, log_activity
from hr_portal.schemas.hr import UserCreate, UserLockUpdate, UserResponse
from hr_portal.services.auth_service import AuthService, DuplicateUserError, MAIN_ADMIN_ID

router = APIRouter()


def _reject_main_admin(user_id: str) -> None:
    if user_id == MAIN_ADMIN_ID:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The main admin account cannot be modified"
        )


@router.get("", response_model=List[UserResponse])
async def list_users(repo: Repo, current_user: CurrentUser):
    """List the main admin and all co-admins."""
    return await AuthService(repo).list_users()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, repo: Repo, current_user: MainAdmin):
    """Create a co-admin account."""
    try:
        user = await AuthService(repo).create_user(data.username, data.password)
    except DuplicateUserError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message
        )

    await log_activity(repo, current_user, f"created user {user.username}")
    return user


@router.put("/{user_id}/lock", response_model=UserResponse)
async def set_user_lock(user_id: str, data: UserLockUpdate, repo: Repo, current_user: MainAdmin):
    """Lock or unlock a co-admin. Locked accounts cannot log in."""
    _reject_main_admin(user_id)
    user = await AuthService(repo).set_locked(user_id, data.is_locked)
    await log_activity(repo, current_user, f"{'locked' if user.is_locked else 'unlocked'} user {user.username}")
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: str, repo: Repo, current_user: MainAdmin):
    _reject_main_admin(user_id)
    user = await AuthService(repo).delete_user(user_id)
    await log_activity(repo, current_user, f"deleted user {user.username}")
