"""Каноническая схема оценки (ENEM: пять компетенций C1–C5 + комментарии).

Ключи в JSON совпадают со схемой, которую просим у модели в промпте
(`competencias`, `nota`, `feedbackGeral`, ...). В Python: snake_case через alias.
"""
from pydantic import BaseModel, Field

COMPETENCY_KEYS = ("c1", "c2", "c3", "c4", "c5")
ALLOWED_SCORES = (0, 40, 80, 120, 160, 200)
MAX_COMPETENCY_SCORE = 200
MAX_TOTAL = MAX_COMPETENCY_SCORE * len(COMPETENCY_KEYS)


class CompetencyGrade(BaseModel):
    nota: int
    comentario: str = ""


class Competencies(BaseModel):
    c1: CompetencyGrade
    c2: CompetencyGrade
    c3: CompetencyGrade
    c4: CompetencyGrade
    c5: CompetencyGrade

    def scores(self) -> dict[str, int]:
        return {key: getattr(self, key).nota for key in COMPETENCY_KEYS}


class TextualAnalysis(BaseModel):
    coesao_e_coerencia: str = Field("", alias="coesaoE_Coerencia")
    repertorio_sociocultural: str = Field("", alias="repertorioSociocultural")
    dominio_da_gramatica: str = Field("", alias="dominioDaGramatica")
    argumentacao: str = ""

    class Config:
        populate_by_name = True


class GradePayload(BaseModel):
    competencias: Competencies
    total: int
    feedback_geral: str = Field("", alias="feedbackGeral")
    pontos_positivos: str = Field("", alias="pontosPositivos")
    pontos_a_melhorar: str = Field("", alias="pontosA_Melhorar")
    analise_textual: TextualAnalysis = Field(default_factory=TextualAnalysis, alias="analiseTextual")
    sugestoes_de_melhora: str = Field("", alias="sugestoesDeMelhora")

    class Config:
        populate_by_name = True

    def to_storage(self) -> dict:
        """JSON-совместимый dict для колонки corrections.grade."""
        return self.model_dump(by_alias=True)
