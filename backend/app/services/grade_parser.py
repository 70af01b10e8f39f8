"""Разбор сырого ответа модели в JSON-объект.

Модель часто оборачивает ответ в ```json ... ```, вставляет переводы строк внутрь
строк или пишет пояснения вокруг объекта. `sanitize` пробует стратегии по очереди
и никогда не бросает исключение: возвращает ParseResult.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from app.config import settings

logger = logging.getLogger(__name__)

_LEADING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\r?\n?")
_TRAILING_FENCE = re.compile(r"\r?\n?[ \t]*```$")


@dataclass
class ParseResult:
    ok: bool
    raw: str
    data: dict[str, Any] | None = None
    strategy: str | None = None
    error: str | None = None


def strip_fences(text: str) -> str:
    """Trim and remove a leading ``` (with optional language tag) and a trailing ```."""
    text = text.strip()
    if not text.startswith("```"):
        return text
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def remove_line_breaks(text: str) -> str:
    return text.replace("\r", "").replace("\n", "")


def extract_braced_object(text: str) -> str | None:
    """Первый сбалансированный {...}. Скобки внутри строковых литералов не считаются."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            c = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
                continue
            if c == '"':
                in_string = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # незакрытая скобка: пробуем следующую
        start = text.find("{", start + 1)
    return None


def _decode_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _try_strict(text: str) -> dict[str, Any] | None:
    return _decode_object(text)


def _try_without_line_breaks(text: str) -> dict[str, Any] | None:
    return _decode_object(remove_line_breaks(text))


def _try_braced_span(text: str) -> dict[str, Any] | None:
    span = extract_braced_object(text)
    if span is None:
        return None
    return _decode_object(span) or _decode_object(remove_line_breaks(span))


# порядок важен: от самой строгой к самой свободной
STRATEGIES: list[tuple[str, Callable[[str], dict[str, Any] | None]]] = [
    ("strict", _try_strict),
    ("without_line_breaks", _try_without_line_breaks),
    ("braced_span", _try_braced_span),
]


def truncate_for_log(text: str) -> str:
    limit = settings.log_raw_response_chars
    if limit <= 0 or len(text) <= limit:
        return text
    return f"{text[:limit]}… [{len(text) - limit} chars truncated]"


def sanitize(raw: Any) -> ParseResult:
    if not isinstance(raw, str):
        logger.warning("Ответ модели не строка: %s", type(raw).__name__)
        return ParseResult(ok=False, raw=repr(raw), error="response is not text")
    text = strip_fences(raw)
    if not text:
        logger.warning("Пустой ответ модели")
        return ParseResult(ok=False, raw=raw, error="empty response")
    for name, strategy in STRATEGIES:
        data = strategy(text)
        if data is not None:
            if name != "strict":
                logger.debug("Ответ модели разобран стратегией %s", name)
            return ParseResult(ok=True, raw=raw, data=data, strategy=name)
    logger.warning("Не удалось разобрать JSON из ответа модели: %s", truncate_for_log(raw))
    return ParseResult(ok=False, raw=raw, error="no JSON object found in response")
