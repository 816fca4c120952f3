"""Authentication endpoints (API JWT)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from foodflow.core.errors import UnauthorizedError
from foodflow.core.security import create_access_token, get_current_user, verify_password
from foodflow.db.session import get_db
from foodflow.models.user import User
from foodflow.schemas.auth import LoginRequest, TokenResponse, UserRead

router: APIRouter = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    email = payload.email.strip().lower()
    user: User | None = db.scalar(select(User).where(User.email == email).limit(1))
    if user is None or not user.is_active or not verify_password(payload.password, user.password_hash):
        logger.info("[AUTH] Failed login for %s", email)
        raise UnauthorizedError("Incorrect email or password")
    return TokenResponse(access_token=create_access_token(data={"sub": str(user.id), "role": user.role.value}))


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(current_user)
