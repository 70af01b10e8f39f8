from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.essay import Essay
from app.models.correction import Correction


async def get_essay_by_fingerprint(session: AsyncSession, user_id: UUID, fingerprint: str) -> Essay | None:
    # first() а не one_or_none(): при гонке двух запросов дубль допустим
    result = await session.execute(
        select(Essay)
        .where(Essay.user_id == user_id, Essay.fingerprint == fingerprint)
        .order_by(Essay.created_at)
        .limit(1)
    )
    return result.scalars().first()


async def create_essay(session: AsyncSession, user_id: UUID, topic: str, text: str, fingerprint: str) -> Essay:
    essay = Essay(user_id=user_id, topic=topic, text=text, fingerprint=fingerprint)
    session.add(essay)
    await session.flush()
    await session.refresh(essay)
    return essay


async def create_correction(
    session: AsyncSession,
    essay_id: UUID,
    total: int,
    grade: dict,
    model: str | None = None,
) -> Correction:
    correction = Correction(essay_id=essay_id, total=total, grade=grade, model=model)
    session.add(correction)
    await session.flush()
    await session.refresh(correction)
    return correction


async def get_essay_by_id(session: AsyncSession, essay_id: UUID, user_id: UUID) -> Essay | None:
    """Сочинение с оценками (новые первыми). Только если принадлежит user_id."""
    result = await session.execute(
        select(Essay)
        .where(Essay.id == essay_id, Essay.user_id == user_id)
        .options(selectinload(Essay.corrections))
        .execution_options(populate_existing=True)
    )
    return result.scalars().one_or_none()


async def get_essays_by_user(
    session: AsyncSession, user_id: UUID, limit: int | None = None, offset: int = 0
) -> list[Essay]:
    """Сочинения пользователя (новые первыми) со всеми оценками."""
    q = (
        select(Essay)
        .where(Essay.user_id == user_id)
        .options(selectinload(Essay.corrections))
        .execution_options(populate_existing=True)
        .order_by(Essay.created_at.desc())
        .offset(offset)
    )
    if limit is not None:
        q = q.limit(limit)
    result = await session.execute(q)
    return list(result.scalars().all())


async def get_latest_corrections_by_user(session: AsyncSession, user_id: UUID) -> list[tuple[Essay, Correction]]:
    """Для каждого сочинения пользователя только последняя оценка. Сочинения без оценок не попадают."""
    latest = (
        select(Correction.essay_id, func.max(Correction.created_at).label("latest_at"))
        .join(Essay, Essay.id == Correction.essay_id)
        .where(Essay.user_id == user_id)
        .group_by(Correction.essay_id)
        .subquery()
    )
    result = await session.execute(
        select(Essay, Correction)
        .join(Correction, Correction.essay_id == Essay.id)
        .join(
            latest,
            (latest.c.essay_id == Correction.essay_id) & (latest.c.latest_at == Correction.created_at),
        )
        .where(Essay.user_id == user_id)
        .order_by(Essay.created_at)
        .execution_options(populate_existing=True)
    )
    pairs: list[tuple[Essay, Correction]] = []
    seen: set[UUID] = set()
    for essay, correction in result.all():
        # одинаковый created_at у двух оценок: берём одну
        if essay.id in seen:
            continue
        seen.add(essay.id)
        pairs.append((essay, correction))
    return pairs
