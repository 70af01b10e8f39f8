"""Статистика для дашборда по оценённым сочинениям пользователя."""
import math
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.essay import AnalyticsResponse, LatestEssayItem, ScorePoint
from app.schemas.grade import COMPETENCY_KEYS
from app.services.graded_essays import GradedEssay, load_graded_essays, word_count

LATEST_ESSAYS_COUNT = 3


def _round(value: float) -> int:
    # округление половины вверх, как на фронтенде (Math.round)
    return int(math.floor(value + 0.5))


def _mean(values: list[int]) -> int:
    if not values:
        return 0
    return _round(sum(values) / len(values))


def summarize(graded: list[GradedEssay]) -> AnalyticsResponse:
    """Чистая функция над списком, отсортированным по дате (старые первыми)."""
    competency_performance = {
        key: _mean([getattr(g.grade.competencias, key).nota for g in graded]) for key in COMPETENCY_KEYS
    }
    newest_first = sorted(graded, key=lambda g: g.created_at, reverse=True)
    return AnalyticsResponse(
        total_corrections=len(graded),
        average_total_grade=_mean([g.total for g in graded]),
        competency_performance=competency_performance,
        score_history=[ScorePoint(essay_id=g.essay_id, date=g.created_at, total=g.total) for g in graded],
        latest_essays=[
            LatestEssayItem(essay_id=g.essay_id, topic=g.topic, total=g.total, created_at=g.created_at)
            for g in newest_first[:LATEST_ESSAYS_COUNT]
        ],
        total_words=sum(word_count(g.text) for g in graded),
    )


async def analyze(session: AsyncSession, user_id: UUID) -> AnalyticsResponse:
    graded = await load_graded_essays(session, user_id)
    return summarize(graded)
