"""Достижения: фиксированный каталог предикатов, пересчитывается при каждом запросе."""
from dataclasses import dataclass
from typing import Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.essay import AchievementResponse
from app.schemas.grade import MAX_COMPETENCY_SCORE
from app.services.graded_essays import GradedEssay, load_graded_essays

NEAR_PERFECT_TOTAL = 900
GOOD_START_TOTAL = 800


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    # список отсортирован по дате, старые первыми
    predicate: Callable[[list[GradedEssay]], bool]


CATALOG: tuple[Achievement, ...] = (
    Achievement(
        id="first_essay",
        title="Primeira Redação",
        description="Corrigiu sua primeira redação.",
        predicate=lambda graded: len(graded) >= 1,
    ),
    Achievement(
        id="five_essays",
        title="5 Redações Corrigidas",
        description="Corrigiu 5 redações no total.",
        predicate=lambda graded: len(graded) >= 5,
    ),
    Achievement(
        id="good_start",
        title="Bom Começo",
        description="Conseguiu uma nota de 800+ em sua primeira redação.",
        predicate=lambda graded: bool(graded) and graded[0].total >= GOOD_START_TOTAL,
    ),
    Achievement(
        id="perfect_c5",
        title="Competência 5 Perfeita",
        description="Alcançou a nota máxima (200) na Competência 5.",
        predicate=lambda graded: any(g.grade.competencias.c5.nota == MAX_COMPETENCY_SCORE for g in graded),
    ),
    Achievement(
        id="road_to_1000",
        title="Caminho para 1000",
        description="Alcançou uma nota de 900+ em uma redação.",
        predicate=lambda graded: any(g.total >= NEAR_PERFECT_TOTAL for g in graded),
    ),
)


def evaluate_graded(graded: list[GradedEssay]) -> list[AchievementResponse]:
    graded = sorted(graded, key=lambda g: g.created_at)
    return [
        AchievementResponse(
            id=a.id,
            title=a.title,
            description=a.description,
            unlocked=a.predicate(graded),
        )
        for a in CATALOG
    ]


async def evaluate(session: AsyncSession, user_id: UUID) -> list[AchievementResponse]:
    graded = await load_graded_essays(session, user_id)
    return evaluate_graded(graded)
