"""Authentication API routes."""

from fastapi import APIRouter, Depends, HTTPException, status

from i2v.container import Container
from i2v.dependencies import get_container, get_current_user
from i2v.models.user import User
from i2v.schemas.auth import LoginRequest, TokenResponse, UserResponse
from i2v.utils.security import create_access_token, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, container: Container = Depends(get_container)):
    user = await container.store.get_user_by_username(payload.username)
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled")

    access = create_access_token(user.id, user.username, container.settings.JWT_SECRET_KEY)
    return TokenResponse(access_token=access)


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    return user
