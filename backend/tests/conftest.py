"""
Shared fixtures: in-memory SQLite database, a fake grader and an HTTP client
over the ASGI app. No network calls.
"""
import json
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import get_db
from app.dependencies import get_grader
from app.main import app as api
from app.models.correction import Correction
from app.models.essay import Essay
from app.db.repositories import user_repo
from app.services.auth_service import create_access_token, hash_password
from app.services.essay_service import essay_fingerprint
from app.utils.rate_limiter import api_rate_limiter


def make_grade(c1=160, c2=160, c3=160, c4=160, c5=160, total=None, **extra) -> dict:
    """Grade object in the shape the grader is asked to return."""
    scores = {"c1": c1, "c2": c2, "c3": c3, "c4": c4, "c5": c5}
    grade = {
        "competencias": {k: {"nota": v, "comentario": f"comentário {k}"} for k, v in scores.items()},
        "total": sum(scores.values()) if total is None else total,
        "feedbackGeral": "Bom texto.",
        "pontosPositivos": "Argumentação clara.",
        "pontosA_Melhorar": "Proposta de intervenção incompleta.",
        "analiseTextual": {
            "coesaoE_Coerencia": "Boa coesão.",
            "repertorioSociocultural": "Repertório pertinente.",
            "dominioDaGramatica": "Poucos desvios.",
            "argumentacao": "Consistente.",
        },
        "sugestoesDeMelhora": "Detalhe o agente da proposta.",
    }
    grade.update(extra)
    return grade


def fenced(obj: dict) -> str:
    return "```json\n" + json.dumps(obj, ensure_ascii=False) + "\n```"


class FakeGrader:
    """Returns queued responses in order (the last one repeats) or raises `error`."""

    model_name = "fake-grader"

    def __init__(self, responses=None, error: Exception | None = None):
        self.responses = list(responses or [json.dumps(make_grade())])
        self.error = error
        self.prompts: list[str] = []

    async def grade(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def grader():
    return FakeGrader()


@pytest.fixture
async def user(session_maker):
    async with session_maker() as session:
        u = await user_repo.create_user(session, name="Ana", email="ana@example.com", password_hash=hash_password("secret"))
        await session.commit()
        return u


@pytest.fixture
async def other_user(session_maker):
    async with session_maker() as session:
        u = await user_repo.create_user(session, name="Bruno", email="bruno@example.com", password_hash=hash_password("secret"))
        await session.commit()
        return u


def auth_headers(u) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(u.id), 'email': u.email})}"}


@pytest.fixture
async def client(session_maker, grader):
    async def _get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    api.dependency_overrides[get_db] = _get_db
    api.dependency_overrides[get_grader] = lambda: grader
    api_rate_limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=api), base_url="http://test") as c:
        yield c
    api.dependency_overrides.clear()
    api_rate_limiter.reset()


async def add_graded_essay(session, user_id, grade: dict | None, days_ago: int = 0, topic="Tema", text="um texto qualquer"):
    """Essay with one correction stored directly. grade=None -> essay without corrections."""
    created_at = datetime.now(timezone.utc) - timedelta(days=days_ago)
    text = f"{text} {days_ago}"
    essay = Essay(
        user_id=user_id,
        topic=topic,
        text=text,
        fingerprint=essay_fingerprint(topic, text),
        created_at=created_at,
    )
    session.add(essay)
    await session.flush()
    if grade is not None:
        session.add(
            Correction(
                essay_id=essay.id,
                total=grade.get("total", 0) if isinstance(grade.get("total"), int) else 0,
                grade=grade,
                created_at=created_at,
            )
        )
    await session.commit()
    return essay
