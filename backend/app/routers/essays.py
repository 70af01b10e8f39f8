from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.dependencies import get_current_user, get_grader
from app.errors import GradeFormatError, NotFoundError, UpstreamError, ValidationError
from app.models.user import User
from app.services import achievement_service, analytics_service, essay_service
from app.services.grading_client import Grader
from app.schemas.essay import (
    AchievementResponse,
    AnalyticsResponse,
    CorrectionRecordResponse,
    EssayDetailResponse,
    EssayHistoryItem,
    EssaySubmitRequest,
)

router = APIRouter()


@router.post("", response_model=CorrectionRecordResponse, status_code=status.HTTP_201_CREATED)
async def submit_essay(
    body: EssaySubmitRequest,
    db: AsyncSession = Depends(get_db),
    grader: Grader = Depends(get_grader),
    current_user: User = Depends(get_current_user),
):
    """Проверка сочинения моделью. Повторная отправка того же текста добавляет новую оценку."""
    try:
        return await essay_service.submit_essay(db, grader, current_user.id, body.topic, body.text)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except UpstreamError as e:
        # 422: клиент может объяснить пользователю, что текст заблокирован фильтром
        raise HTTPException(status_code=422 if e.blocked else 502, detail=e.message)
    except GradeFormatError as e:
        raise HTTPException(status_code=502, detail=e.message)


@router.get("/history", response_model=list[EssayHistoryItem])
async def get_history(
    page: int = 1,
    limit: int = essay_service.HISTORY_DEFAULT_LIMIT,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """История сочинений (новые первыми) с последней оценкой."""
    return await essay_service.get_history(db, current_user.id, page=page, limit=limit)


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await analytics_service.analyze(db, current_user.id)


@router.get("/achievements", response_model=list[AchievementResponse])
async def get_achievements(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await achievement_service.evaluate(db, current_user.id)


@router.get("/{essay_id}", response_model=EssayDetailResponse)
async def get_essay(
    essay_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Одно сочинение со всеми оценками (новые первыми)."""
    try:
        return await essay_service.get_essay(db, current_user.id, essay_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
