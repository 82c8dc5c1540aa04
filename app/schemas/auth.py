"""Authentication schemas."""
from typing import Literal, Optional
from uuid import UUID
from pydantic import BaseModel


class TokenResponse(BaseModel):
    """Token response schema."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenPayload(BaseModel):
    """Claims of an access token."""

    sub: UUID
    email: Optional[str] = None
    type: Literal["access"]
