"""Authentication-related request and response schemas."""

from pydantic import BaseModel

from foodflow.models.user import UserRole
from foodflow.schemas.common import CamelModel


class LoginRequest(BaseModel):
    """Payload for user login."""

    email: str
    password: str


class TokenResponse(BaseModel):
    """JWT response payload."""

    access_token: str
    token_type: str = "bearer"


class UserRead(CamelModel):
    id: int
    email: str
    name: str
    phone: str | None = None
    role: UserRole
