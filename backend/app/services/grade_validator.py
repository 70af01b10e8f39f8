"""Проверка и нормализация разобранного ответа модели в GradePayload.

Обязательная часть: числовые оценки c1..c5 (0/40/80/120/160/200) и total.
total всегда пересчитывается как сумма компетенций.
Текстовые поля необязательны, разные варианты ключей приводятся к одной схеме.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any

from app.schemas.grade import ALLOWED_SCORES, COMPETENCY_KEYS, GradePayload

logger = logging.getLogger(__name__)

_COMPETENCY_MAP_KEYS = ("competencias", "competencies", "notes")
_COMMENT_KEYS = ("comentario", "analise", "comment", "feedback", "justificativa")

_NARRATIVE_KEYS = {
    "feedbackGeral": ("feedbackGeral", "feedback_geral", "feedback", "generalFeedback", "general_feedback"),
    "pontosPositivos": ("pontosPositivos", "pontos_positivos", "strengths"),
    "pontosA_Melhorar": ("pontosA_Melhorar", "pontosAMelhorar", "pontos_a_melhorar", "weaknesses"),
    "sugestoesDeMelhora": ("sugestoesDeMelhora", "sugestoes_de_melhora", "sugestoes", "suggestions"),
}
_ANALYSIS_MAP_KEYS = ("analiseTextual", "analise_textual", "textualAnalysis")
_ANALYSIS_KEYS = {
    "coesaoE_Coerencia": ("coesaoE_Coerencia", "coesaoECoerencia", "coesao_e_coerencia", "coesao"),
    "repertorioSociocultural": ("repertorioSociocultural", "repertorio_sociocultural", "repertorio"),
    "dominioDaGramatica": ("dominioDaGramatica", "dominio_da_gramatica", "gramatica"),
    "argumentacao": ("argumentacao", "argumentação"),
}


@dataclass
class ValidationResult:
    ok: bool
    grade: GradePayload | None = None
    error: str | None = None
    total_corrected: bool = False


def _fail(error: str) -> ValidationResult:
    return ValidationResult(ok=False, error=error)


def _as_number(value: Any) -> float | None:
    """int/float/числовая строка -> float; bool, NaN, inf и прочее -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # json.loads отдаёт целые любой длины
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(str(v).strip() for v in value if v is not None and str(v).strip())
    if isinstance(value, dict):
        return "\n".join(f"{k}: {v}" for k, v in value.items())
    return str(value).strip()


def _first(data: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _competency_map(obj: dict) -> dict | None:
    raw = _first(obj, _COMPETENCY_MAP_KEYS)
    if not isinstance(raw, dict):
        return None
    # ключи C1/c1: без учёта регистра
    return {str(k).strip().lower(): v for k, v in raw.items()}


def _textual_analysis(obj: dict) -> dict[str, str]:
    raw = _first(obj, _ANALYSIS_MAP_KEYS)
    if not isinstance(raw, dict):
        return {key: "" for key in _ANALYSIS_KEYS}
    return {key: _as_text(_first(raw, variants)) for key, variants in _ANALYSIS_KEYS.items()}


def validate(obj: Any) -> ValidationResult:
    if not isinstance(obj, dict):
        return _fail("grade is not an object")

    reported_total = _as_number(obj.get("total"))
    if reported_total is None:
        return _fail("total is missing or not a finite number")

    competencies = _competency_map(obj)
    if competencies is None:
        return _fail("competencias is missing")

    normalized: dict[str, dict[str, Any]] = {}
    for key in COMPETENCY_KEYS:
        item = competencies.get(key)
        if not isinstance(item, dict):
            return _fail(f"{key} is missing")
        score = _as_number(item.get("nota"))
        if score is None or not score.is_integer() or int(score) not in ALLOWED_SCORES:
            return _fail(f"{key}.nota is invalid: {item.get('nota')!r}")
        normalized[key] = {"nota": int(score), "comentario": _as_text(_first(item, _COMMENT_KEYS))}

    total = sum(c["nota"] for c in normalized.values())
    total_corrected = reported_total != total
    if total_corrected:
        logger.warning("Модель вернула total=%s, сумма компетенций %s: используем сумму", reported_total, total)

    payload = {
        "competencias": normalized,
        "total": total,
        "analiseTextual": _textual_analysis(obj),
    }
    for key, variants in _NARRATIVE_KEYS.items():
        payload[key] = _as_text(_first(obj, variants))

    return ValidationResult(ok=True, grade=GradePayload.model_validate(payload), total_corrected=total_corrected)
