"""Оценённые сочинения пользователя: одна последняя валидная оценка на сочинение.

Общий источник для аналитики и достижений. Сочинения без оценок или с
невалидной последней оценкой пропускаются.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories import essay_repo
from app.schemas.grade import GradePayload
from app.services.grade_validator import validate

logger = logging.getLogger(__name__)


@dataclass
class GradedEssay:
    essay_id: UUID
    topic: str
    text: str
    created_at: datetime
    grade: GradePayload

    @property
    def total(self) -> int:
        return self.grade.total


def word_count(text: str) -> int:
    return len([w for w in (text or "").split() if w.strip()])


async def load_graded_essays(session: AsyncSession, user_id: UUID) -> list[GradedEssay]:
    """Отсортированы по дате сочинения, старые первыми."""
    pairs = await essay_repo.get_latest_corrections_by_user(session, user_id)
    graded = []
    for essay, correction in pairs:
        result = validate(correction.grade)
        if not result.ok:
            logger.warning("Оценка %s сочинения %s пропущена: %s", correction.id, essay.id, result.error)
            continue
        graded.append(
            GradedEssay(
                essay_id=essay.id,
                topic=essay.topic,
                text=essay.text,
                created_at=essay.created_at,
                grade=result.grade,
            )
        )
    graded.sort(key=lambda g: g.created_at)
    return graded
