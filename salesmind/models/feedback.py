"""SQLAlchemy model for the AI analysis attached to a recording."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Column, DateTime
from sqlalchemy import Enum as SqlEnum
from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import relationship

from salesmind.models.base import Base


class SentimentCategory(str, Enum):
    """Three-valued overall mood of the call."""

    POSITIVO = "POSITIVO"
    NEUTRO = "NEUTRO"
    NEGATIVO = "NEGATIVO"

    @classmethod
    def from_score(cls, score: int | None) -> "SentimentCategory | None":
        if score is None:
            return None
        if score >= 70:
            return cls.POSITIVO
        if score >= 40:
            return cls.NEUTRO
        return cls.NEGATIVO


class Feedback(Base):
    __tablename__ = "feedbacks"

    id = Column(Integer, primary_key=True, index=True)
    recording_id = Column(
        Integer,
        ForeignKey("recordings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    strengths = Column(JSON, nullable=False, default=list)
    weaknesses = Column(JSON, nullable=False, default=list)
    suggestions = Column(JSON, nullable=False, default=list)
    objections = Column(JSON, nullable=False, default=list)
    key_moments = Column(JSON, nullable=False, default=list)
    sentiment_score = Column(Integer, nullable=True)
    closing_probability = Column(Integer, nullable=True)
    sentiment_category = Column(
        SqlEnum(SentimentCategory, name="sentiment_category"),
        nullable=True,
    )
    service_quality = Column(Integer, nullable=True)
    script_adherence = Column(Integer, nullable=True)
    objection_handling = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    recording = relationship("Recording", back_populates="feedback")

    @property
    def computed_sentiment_category(self) -> SentimentCategory | None:
        """Stored category, or one derived from the sentiment score."""

        if self.sentiment_category is not None:
            return SentimentCategory(self.sentiment_category)
        return SentimentCategory.from_score(self.sentiment_score)


__all__ = ["Feedback", "SentimentCategory"]
