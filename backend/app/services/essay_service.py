"""Проверка сочинения: промпт -> модель -> разбор -> валидация -> сохранение.

Также история и просмотр одного сочинения. Только этот слой бросает ошибки из app.errors.
"""
import hashlib
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repositories import essay_repo
from app.errors import GradeFormatError, NotFoundError, UpstreamError, ValidationError
from app.models.correction import Correction
from app.models.essay import Essay
from app.schemas.essay import (
    CorrectionRecordResponse,
    CorrectionResponse,
    EssayDetailResponse,
    EssayHistoryItem,
)
from app.services.grade_parser import sanitize, truncate_for_log
from app.services.grade_validator import validate
from app.services.grading_client import Grader, GraderBlockedError, GraderError

logger = logging.getLogger(__name__)

HISTORY_DEFAULT_LIMIT = 10
HISTORY_MAX_LIMIT = 100
TEXT_PREVIEW_CHARS = 150

GRADING_PROMPT = """Você é um corretor experiente de redações do ENEM e avalia textos dissertativo-argumentativos.
Avalie a redação abaixo segundo as cinco competências do ENEM:
- C1: domínio da modalidade escrita formal da língua portuguesa;
- C2: compreensão da proposta e aplicação de conceitos de várias áreas do conhecimento;
- C3: seleção, relação, organização e interpretação de informações e argumentos;
- C4: conhecimento dos mecanismos linguísticos necessários para a argumentação;
- C5: proposta de intervenção para o problema abordado, respeitando os direitos humanos.

Regras de pontuação:
- cada competência recebe exatamente uma destas notas: 0, 40, 80, 120, 160 ou 200;
- "total" é a soma das cinco notas (de 0 a 1000).

Responda SOMENTE com um objeto JSON, sem markdown e sem texto fora do JSON, neste formato:
{{
  "competencias": {{
    "c1": {{"nota": number, "comentario": string}},
    "c2": {{"nota": number, "comentario": string}},
    "c3": {{"nota": number, "comentario": string}},
    "c4": {{"nota": number, "comentario": string}},
    "c5": {{"nota": number, "comentario": string}}
  }},
  "total": number,
  "feedbackGeral": string,
  "pontosPositivos": string,
  "pontosA_Melhorar": string,
  "analiseTextual": {{
    "coesaoE_Coerencia": string,
    "repertorioSociocultural": string,
    "dominioDaGramatica": string,
    "argumentacao": string
  }},
  "sugestoesDeMelhora": string
}}

"feedbackGeral" deve ser curto. "sugestoesDeMelhora" deve ser um único parágrafo com dicas práticas.

Tema da redação: "{topic}"

Redação:
\"\"\"
{text}
\"\"\"
"""


def build_prompt(topic: str, text: str) -> str:
    return GRADING_PROMPT.format(topic=topic, text=text)


def essay_fingerprint(topic: str, text: str) -> str:
    return hashlib.sha256(f"{topic}\0{text}".encode("utf-8")).hexdigest()


def correction_view(correction: Correction) -> CorrectionResponse:
    """Сохранённая оценка -> ответ API. Запись, не прошедшая валидацию, отдаётся с grade=None."""
    result = validate(correction.grade)
    return CorrectionResponse(
        id=correction.id,
        essay_id=correction.essay_id,
        total=result.grade.total if result.ok else correction.total,
        grade=result.grade if result.ok else None,
        model=correction.model,
        created_at=correction.created_at,
    )


async def _find_or_create_essay(session: AsyncSession, user_id: UUID, topic: str, text: str) -> Essay:
    fingerprint = essay_fingerprint(topic, text)
    essay = await essay_repo.get_essay_by_fingerprint(session, user_id, fingerprint)
    if essay is not None:
        logger.info("Повторная отправка сочинения %s пользователем %s", essay.id, user_id)
        return essay
    return await essay_repo.create_essay(session, user_id, topic=topic, text=text, fingerprint=fingerprint)


async def submit_essay(
    session: AsyncSession,
    grader: Grader,
    user_id: UUID,
    topic: str,
    text: str,
) -> CorrectionRecordResponse:
    topic = (topic or "").strip()
    text = (text or "").strip()
    if not topic:
        raise ValidationError("O campo 'topic' é obrigatório.")
    if not text:
        raise ValidationError("O campo 'text' é obrigatório.")

    essay = await _find_or_create_essay(session, user_id, topic, text)

    try:
        raw = await grader.grade(build_prompt(topic, text))
    except GraderBlockedError as e:
        logger.warning("Сочинение %s заблокировано фильтром безопасности: %s", essay.id, e)
        await session.rollback()
        raise UpstreamError(blocked=True) from e
    except GraderError as e:
        logger.error("Ошибка вызова модели для сочинения %s: %s", essay.id, e)
        await session.rollback()
        raise UpstreamError() from e

    parsed = sanitize(raw)
    if not parsed.ok:
        # сочинение остаётся (повторная отправка найдёт его), оценки нет
        await session.commit()
        raise GradeFormatError(parsed.error or "unparseable response", raw=raw)

    result = validate(parsed.data)
    if not result.ok:
        logger.warning(
            "Ответ модели для сочинения %s не прошёл валидацию (%s): %s",
            essay.id, result.error, truncate_for_log(raw),
        )
        await session.commit()
        raise GradeFormatError(result.error or "invalid grade", raw=raw)

    grade = result.grade
    correction = await essay_repo.create_correction(
        session,
        essay.id,
        total=grade.total,
        grade=grade.to_storage(),
        model=getattr(grader, "model_name", None),
    )
    await session.commit()
    logger.info("Сочинение %s проверено: total=%s", essay.id, grade.total)

    return CorrectionRecordResponse(
        essay_id=essay.id,
        topic=essay.topic,
        text=essay.text,
        essay_created_at=essay.created_at,
        correction=CorrectionResponse(
            id=correction.id,
            essay_id=essay.id,
            total=grade.total,
            grade=grade,
            model=correction.model,
            created_at=correction.created_at,
        ),
    )


async def get_history(
    session: AsyncSession, user_id: UUID, page: int = 1, limit: int = HISTORY_DEFAULT_LIMIT
) -> list[EssayHistoryItem]:
    # 0 означает значение по умолчанию
    page = max(page or 1, 1)
    limit = min(max(limit or HISTORY_DEFAULT_LIMIT, 1), HISTORY_MAX_LIMIT)
    essays = await essay_repo.get_essays_by_user(session, user_id, limit=limit, offset=(page - 1) * limit)
    items = []
    for essay in essays:
        # corrections отсортированы по created_at desc
        latest = essay.corrections[0] if essay.corrections else None
        preview = essay.text[:TEXT_PREVIEW_CHARS] + ("…" if len(essay.text) > TEXT_PREVIEW_CHARS else "")
        items.append(
            EssayHistoryItem(
                id=essay.id,
                topic=essay.topic,
                text_preview=preview,
                created_at=essay.created_at,
                corrections_count=len(essay.corrections),
                latest_total=latest.total if latest else None,
                latest_corrected_at=latest.created_at if latest else None,
            )
        )
    return items


async def get_essay(session: AsyncSession, user_id: UUID, essay_id: UUID) -> EssayDetailResponse:
    essay = await essay_repo.get_essay_by_id(session, essay_id, user_id)
    if essay is None:
        raise NotFoundError()
    return EssayDetailResponse(
        id=essay.id,
        topic=essay.topic,
        text=essay.text,
        created_at=essay.created_at,
        corrections=[correction_view(c) for c in essay.corrections],
    )
