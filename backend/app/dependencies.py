from functools import lru_cache
from uuid import UUID
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.session import get_db
from app.db.repositories.user_repo import get_user_by_id
from app.services.auth_service import decode_access_token
from app.services.grading_client import Grader, build_grader
from app.models.user import User

security = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    # cookie (браузер) или Authorization: Bearer (мобильный клиент)
    token = request.cookies.get(settings.cookie_name)
    if not token and credentials and credentials.credentials:
        token = credentials.credentials
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(token)
    if not payload or "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        uid = UUID(payload["sub"])
    except (ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await get_user_by_id(db, uid)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


@lru_cache
def get_grader() -> Grader:
    """Клиент модели: один на процесс; в тестах подменяется через dependency_overrides."""
    return build_grader(settings)
