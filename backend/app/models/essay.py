import uuid
from sqlalchemy import String, DateTime, ForeignKey, Text, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime

from app.db.base import Base
from app.models.user import _utcnow


class Essay(Base):
    __tablename__ = "essays"
    __table_args__ = (
        Index("ix_essays_user_id_fingerprint", "user_id", "fingerprint"),
        Index("ix_essays_user_id_created_at", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    # sha256(topic + "\0" + text): поиск повторной отправки того же текста
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    user = relationship("User", back_populates="essays")
    corrections = relationship(
        "Correction",
        back_populates="essay",
        cascade="all, delete-orphan",
        order_by="Correction.created_at.desc()",
    )
