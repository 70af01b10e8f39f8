import logging
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.session import get_db
from app.db.repositories import user_repo
from app.dependencies import get_current_user
from app.models.user import User
from app.services.auth_service import (
    MAX_PASSWORD_BYTES,
    create_access_token,
    hash_password,
    password_too_long,
    verify_password,
)
from app.schemas.auth import (
    AuthResponse,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    UserResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _issue_token(user: User, response: Response) -> str:
    """JWT в теле ответа и в http-only cookie."""
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        samesite=settings.cookie_samesite,
        secure=settings.cookie_secure,
    )
    return token


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    name = body.name.strip()
    email = body.email.strip().lower()
    if not name or not email or not body.password:
        raise HTTPException(status_code=400, detail="Please fill all fields.")
    if password_too_long(body.password):
        raise HTTPException(status_code=400, detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    if await user_repo.get_user_by_email(db, email):
        raise HTTPException(status_code=400, detail="Email already in use.")
    user = await user_repo.create_user(db, name=name, email=email, password_hash=hash_password(body.password))
    await db.commit()
    logger.info("Зарегистрирован пользователь %s", user.id)
    token = _issue_token(user, response)
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    email = body.email.strip().lower()
    user = await user_repo.get_user_by_email(db, email) if email else None
    # одно сообщение для «нет пользователя» и «неверный пароль»
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid credentials.")
    token = _issue_token(user, response)
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response):
    response.delete_cookie(
        key=settings.cookie_name,
        httponly=True,
        samesite=settings.cookie_samesite,
        secure=settings.cookie_secure,
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    user = await user_repo.update_user(db, current_user, name=name)
    await db.commit()
    return user
