"""Authentication API endpoints."""
import logging
from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.dependencies import get_current_active_user
from app.localization.helpers import get_translation
from app.models.user import User
from app.services.auth_service import AuthService
from app.schemas.auth import TokenResponse
from app.schemas.user import UserResponse
from app.core.exceptions import UnauthorizedError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """OAuth2 password flow; ``username`` carries the email."""
    user = await AuthService.authenticate_user(db, form_data.username, form_data.password)
    if user is None:
        raise UnauthorizedError(get_translation("errors.invalid_credentials"))

    user = await AuthService.record_login(db, user)
    logger.info("User %s logged in", user.id)
    return TokenResponse(**await AuthService.create_tokens(user))


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_active_user)):
    """The authenticated user with their global roles."""
    return current_user
