"""Pydantic schemas for AI feedback responses."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from salesmind.models import Feedback, SentimentCategory


class FeedbackResponse(BaseModel):
    """Analysis attached to a processed recording."""

    id: int
    recording_id: int = Field(serialization_alias="idGravacao")
    company_id: int = Field(serialization_alias="idEmpresa")
    strengths: List[str] = Field(default_factory=list, serialization_alias="pontosFortes")
    weaknesses: List[str] = Field(default_factory=list, serialization_alias="pontosFracos")
    suggestions: List[str] = Field(default_factory=list, serialization_alias="sugestoes")
    sentiment_score: Optional[int] = Field(None, serialization_alias="sentimentScore")
    closing_probability: Optional[int] = Field(
        None, serialization_alias="probabilidadeFechamento"
    )
    sentiment_category: Optional[SentimentCategory] = Field(
        None, serialization_alias="categoriaAmbiental"
    )
    service_quality: Optional[int] = Field(None, serialization_alias="qualidadeAtendimento")
    script_adherence: Optional[int] = Field(None, serialization_alias="aderenciaScript")
    objection_handling: Optional[int] = Field(None, serialization_alias="gestaoObjecoes")
    objections: List[str] = Field(default_factory=list, serialization_alias="objecoesIdentificadas")
    key_moments: List[str] = Field(default_factory=list, serialization_alias="momentosChave")
    created_at: datetime = Field(serialization_alias="criadoEm")

    @classmethod
    def from_model(cls, feedback: Feedback) -> "FeedbackResponse":
        return cls(
            id=feedback.id,
            recording_id=feedback.recording_id,
            company_id=feedback.company_id,
            strengths=feedback.strengths or [],
            weaknesses=feedback.weaknesses or [],
            suggestions=feedback.suggestions or [],
            sentiment_score=feedback.sentiment_score,
            closing_probability=feedback.closing_probability,
            sentiment_category=feedback.computed_sentiment_category,
            service_quality=feedback.service_quality,
            script_adherence=feedback.script_adherence,
            objection_handling=feedback.objection_handling,
            objections=feedback.objections or [],
            key_moments=feedback.key_moments or [],
            created_at=feedback.created_at,
        )
