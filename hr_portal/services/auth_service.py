"""Authentication for the main admin and co-admin accounts."""
import logging
import secrets
from dataclasses import dataclass
from typing import Optional, List

from hr_portal.config import settings
from hr_portal.core.exceptions import HRPortalError, NotFoundError
from hr_portal.core.security import verify_password, get_password_hash
from hr_portal.schemas.hr import SimulatedUser, UserResponse
from hr_portal.services.storage_service import HRRepository

logger = logging.getLogger(__name__)

MAIN_ADMIN_ID = "main-admin"


class AccountLockedError(HRPortalError):
    """Login refused because the co-admin account is locked."""
    pass


class DuplicateUserError(HRPortalError):
    """Username already taken."""
    pass


@dataclass
class AuthenticatedUser:
    id: str
    username: str
    is_main_admin: bool = False


def _is_main_admin(username: str) -> bool:
    return secrets.compare_digest(username.strip().lower().encode(), settings.ADMIN_USERNAME.lower().encode())


class AuthService:
    def __init__(self, repo: HRRepository):
        self.repo = repo

    async def authenticate(self, username: str, password: str) -> Optional[AuthenticatedUser]:
        """
        Check credentials.

        Returns None for wrong credentials. Raises AccountLockedError when
        a co-admin with the right password is locked.
        """
        if _is_main_admin(username):
            if secrets.compare_digest(password.encode(), settings.ADMIN_PASSWORD.encode()):
                return AuthenticatedUser(id=MAIN_ADMIN_ID, username=settings.ADMIN_USERNAME, is_main_admin=True)
            logger.warning("Failed login for main admin")
            return None

        user = await self.get_user_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {username}")
            return None
        if user.is_locked:
            raise AccountLockedError(f"Account {user.username} is locked")
        return AuthenticatedUser(id=user.id, username=user.username)

    async def resolve(self, username: str) -> Optional[AuthenticatedUser]:
        """Map a token subject back to an active account."""
        if _is_main_admin(username):
            return AuthenticatedUser(id=MAIN_ADMIN_ID, username=settings.ADMIN_USERNAME, is_main_admin=True)
        user = await self.get_user_by_username(username)
        if user is None or user.is_locked:
            return None
        return AuthenticatedUser(id=user.id, username=user.username)

    async def get_user_by_username(self, username: str) -> Optional[SimulatedUser]:
        wanted = username.strip().lower()
        for user in await self.repo.load_users():
            if user.username.lower() == wanted:
                return user
        return None

    # ==================== Co-admin Management ====================

    async def list_users(self) -> List[UserResponse]:
        users = [UserResponse(id=MAIN_ADMIN_ID, username=settings.ADMIN_USERNAME, is_locked=False, is_main_admin=True)]
        users.extend(
            UserResponse(id=u.id, username=u.username, is_locked=u.is_locked)
            for u in await self.repo.load_users()
        )
        return users

    async def create_user(self, username: str, password: str) -> UserResponse:
        username = username.strip()
        if _is_main_admin(username) or await self.get_user_by_username(username):
            raise DuplicateUserError(f"User {username} already exists")

        user = SimulatedUser(username=username, password_hash=get_password_hash(password))
        users = await self.repo.load_users()
        users.append(user)
        await self.repo.save_users(users)
        return UserResponse(id=user.id, username=user.username, is_locked=user.is_locked)

    async def set_locked(self, user_id: str, is_locked: bool) -> UserResponse:
        users = await self.repo.load_users()
        for user in users:
            if user.id == user_id:
                user.is_locked = is_locked
                await self.repo.save_users(users)
                return UserResponse(id=user.id, username=user.username, is_locked=user.is_locked)
        raise NotFoundError(f"User {user_id} not found")

    async def delete_user(self, user_id: str) -> SimulatedUser:
        users = await self.repo.load_users()
        remaining = [u for u in users if u.id != user_id]
        if len(remaining) == len(users):
            raise NotFoundError(f"User {user_id} not found")
        await self.repo.save_users(remaining)
        return next(u for u in users if u.id == user_id)
