"""Внешний вызов проверки: prompt -> сырой текст ответа модели (Gemini или OpenAI).

Провайдер выбирается через AI_PRIORITY ("gemini" | "gpt"). Один вызов на проверку,
без перебора моделей: повтор при ошибке остаётся решением клиента.
Все сбои приводятся к GraderError, блокировка фильтром безопасности к GraderBlockedError.
"""
import asyncio
import logging
from typing import Protocol

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import BlockedPromptException, StopCandidateException
import openai
from openai import AsyncOpenAI

from app.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class GraderError(Exception):
    """Вызов модели не выполнен: сеть, авторизация, квота, таймаут."""


class GraderBlockedError(GraderError):
    """Запрос или ответ заблокирован фильтром безопасности провайдера."""


class Grader(Protocol):
    model_name: str

    async def grade(self, prompt: str) -> str: ...


class GeminiGrader:
    def __init__(self, api_key: str, model_name: str, timeout: float):
        self.api_key = (api_key or "").strip()
        self.model_name = model_name
        self.timeout = timeout
        if self.api_key:
            genai.configure(api_key=self.api_key)

    def _model(self):
        return genai.GenerativeModel(
            self.model_name,
            generation_config={"response_mime_type": "application/json"},
        )

    async def grade(self, prompt: str) -> str:
        if not self.api_key:
            raise GraderError("GEMINI_API_KEY не задан")
        logger.debug("Gemini запрос, модель %s", self.model_name)
        try:
            response = await asyncio.wait_for(
                self._model().generate_content_async(prompt, request_options={"timeout": self.timeout}),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise GraderError(f"Gemini не ответил за {self.timeout} с") from e
        except (BlockedPromptException, StopCandidateException) as e:
            raise GraderBlockedError(f"Gemini заблокировал запрос: {e}") from e
        except google_exceptions.GoogleAPIError as e:
            raise GraderError(f"Gemini ошибка ({e.__class__.__name__}): {e}") from e

        block_reason = _gemini_block_reason(response)
        if block_reason:
            raise GraderBlockedError(f"Gemini заблокировал ответ: {block_reason}")
        try:
            return (response.text or "").strip()
        except ValueError as e:
            # нет частей ответа (finish_reason != STOP)
            raise GraderError(f"Gemini вернул пустой ответ: {e}") from e


def _gemini_block_reason(response) -> str | None:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    if reason:
        return getattr(reason, "name", str(reason))
    for candidate in getattr(response, "candidates", None) or []:
        finish = getattr(candidate, "finish_reason", None)
        name = getattr(finish, "name", str(finish) if finish is not None else "")
        if name in ("SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"):
            return name
    return None


class OpenAIGrader:
    def __init__(self, api_key: str, model_name: str, timeout: float):
        self.api_key = (api_key or "").strip()
        self.model_name = model_name
        self.timeout = timeout
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI | None:
        if not self.api_key:
            return None
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def grade(self, prompt: str) -> str:
        client = self._get_client()
        if client is None:
            raise GraderError("OPENAI_API_KEY не задан")
        logger.debug("OpenAI запрос, модель %s", self.model_name)
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self.model_name,
                    messages=[{"role": "user", "content": prompt}],
                    response_format={"type": "json_object"},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise GraderError(f"OpenAI не ответил за {self.timeout} с") from e
        except openai.BadRequestError as e:
            if getattr(e, "code", None) == "content_policy_violation":
                raise GraderBlockedError(f"OpenAI заблокировал запрос: {e}") from e
            raise GraderError(f"OpenAI ошибка: {e}") from e
        except openai.OpenAIError as e:
            raise GraderError(f"OpenAI ошибка ({e.__class__.__name__}): {e}") from e

        if not response.choices:
            raise GraderError("OpenAI вернул пустой ответ")
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise GraderBlockedError("OpenAI заблокировал ответ: content_filter")
        return (choice.message.content or "").strip()


def build_grader(config: Settings | None = None) -> Grader:
    config = config or default_settings
    priority = (config.ai_priority or "gemini").strip().lower()
    if priority == "gpt":
        return OpenAIGrader(config.openai_api_key, config.openai_model, config.grading_timeout_seconds)
    return GeminiGrader(config.gemini_api_key, config.gemini_model, config.grading_timeout_seconds)
