import uuid
from sqlalchemy import String, DateTime, ForeignKey, Integer, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime

from app.db.base import Base
from app.models.user import _utcnow


class Correction(Base):
    __tablename__ = "corrections"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    essay_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("essays.id", ondelete="CASCADE"), nullable=False, index=True
    )
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    # canonical grade payload: competencias c1..c5, feedbackGeral, analiseTextual, ...
    grade: Mapped[dict] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)

    essay = relationship("Essay", back_populates="corrections")
