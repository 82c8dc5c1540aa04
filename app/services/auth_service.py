"""Authentication service."""
import logging
from datetime import timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from app.crud.user import user as user_crud
from app.models.user import User
from app.utils.security import verify_password, get_password_hash, create_access_token
from app.utils.timeutils import utcnow
from app.config import settings

logger = logging.getLogger(__name__)


class AuthService:
    """Password login and access tokens."""

    @staticmethod
    async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
        """Return the active user owning ``email`` when the password matches."""
        user = await user_crud.get_by_email(db, email=email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Rejected login for %s", email)
            return None
        if not user.is_active:
            logger.info("Rejected login for inactive user %s", user.id)
            return None
        return user

    @staticmethod
    async def record_login(db: AsyncSession, user: User) -> User:
        return await user_crud.update(db, db_obj=user, obj_in={"last_login_at": utcnow()})

    @staticmethod
    async def create_tokens(user: User) -> dict:
        """Access token for a user; there is no refresh token."""
        lifetime = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        return {
            "access_token": create_access_token(
                data={"sub": str(user.id), "email": user.email},
                expires_delta=lifetime,
            ),
            "token_type": "bearer",
            "expires_in": int(lifetime.total_seconds()),
        }

    @staticmethod
    def hash_password(password: str) -> str:
        return get_password_hash(password)
