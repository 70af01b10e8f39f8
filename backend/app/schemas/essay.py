from datetime import datetime
from uuid import UUID
from pydantic import BaseModel

from app.schemas.grade import GradePayload


class EssaySubmitRequest(BaseModel):
    # пустые значения отклоняет сервис (400), а не pydantic (422)
    topic: str = ""
    text: str = ""


class CorrectionResponse(BaseModel):
    id: UUID
    essay_id: UUID
    total: int
    grade: GradePayload | None  # None: сохранённая запись не проходит валидацию
    model: str | None = None
    created_at: datetime


class CorrectionRecordResponse(BaseModel):
    """Результат проверки: сочинение + только что созданная оценка."""
    essay_id: UUID
    topic: str
    text: str
    essay_created_at: datetime
    correction: CorrectionResponse


class EssayHistoryItem(BaseModel):
    id: UUID
    topic: str
    text_preview: str
    created_at: datetime
    corrections_count: int
    latest_total: int | None = None
    latest_corrected_at: datetime | None = None


class EssayDetailResponse(BaseModel):
    id: UUID
    topic: str
    text: str
    created_at: datetime
    corrections: list[CorrectionResponse]


class ScorePoint(BaseModel):
    essay_id: UUID
    date: datetime
    total: int


class LatestEssayItem(BaseModel):
    essay_id: UUID
    topic: str
    total: int
    created_at: datetime


class AnalyticsResponse(BaseModel):
    total_corrections: int = 0
    average_total_grade: int = 0
    competency_performance: dict[str, int]
    score_history: list[ScorePoint] = []
    latest_essays: list[LatestEssayItem] = []
    total_words: int = 0


class AchievementResponse(BaseModel):
    id: str
    title: str
    description: str
    unlocked: bool
