"""Pydantic schemas for recording upload and status endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from salesmind.models import ProcessingStatus, Recording, SaleStatus
from salesmind.views.feedbacks import FeedbackResponse


class RecordingUploadResponse(BaseModel):
    """Returned as soon as the audio is stored and queued."""

    id: int
    status: ProcessingStatus
    message: str
    audio_filename: Optional[str] = Field(None, serialization_alias="audioFilename")
    audio_url: Optional[str] = Field(None, serialization_alias="audioUrl")
    estimated_duration: str = Field(serialization_alias="estimatedDuration")
    check_status_at: str = Field(serialization_alias="checkStatusAt")


class RecordingStatusResponse(BaseModel):
    """Lightweight polling view of a recording's progress."""

    id: int
    processing_status: ProcessingStatus = Field(serialization_alias="statusProcessamento")
    sale_status: SaleStatus = Field(serialization_alias="statusVenda")
    has_transcript: bool = Field(serialization_alias="hasTranscricao")
    has_summary: bool = Field(serialization_alias="hasResumo")
    has_feedback: bool = Field(serialization_alias="hasFeedback")
    processing_error: Optional[str] = Field(None, serialization_alias="erroProcessamento")

    @classmethod
    def from_model(cls, recording: Recording) -> "RecordingStatusResponse":
        return cls(
            id=recording.id,
            processing_status=recording.processing_status,
            sale_status=recording.sale_status,
            has_transcript=bool(recording.transcript),
            has_summary=bool(recording.ai_summary),
            has_feedback=recording.feedback is not None,
            processing_error=recording.processing_error,
        )


class RecordingResponse(BaseModel):
    """Full recording view including the nested feedback when available."""

    id: int
    user_id: int = Field(serialization_alias="idUsuario")
    client_id: int = Field(serialization_alias="idCliente")
    audio_url: Optional[str] = Field(None, serialization_alias="audioUrl")
    audio_filename: Optional[str] = Field(None, serialization_alias="audioFilename")
    transcript: Optional[str] = Field(None, serialization_alias="transcricao")
    ai_summary: Optional[str] = Field(None, serialization_alias="resumoIA")
    sale_status: SaleStatus = Field(serialization_alias="statusVenda")
    processing_status: ProcessingStatus = Field(serialization_alias="statusProcessamento")
    duration_seconds: Optional[int] = Field(None, serialization_alias="duracaoSegundos")
    processing_error: Optional[str] = Field(None, serialization_alias="erroProcessamento")
    recorded_at: datetime = Field(serialization_alias="dataGravacao")
    created_at: datetime = Field(serialization_alias="criadoEm")
    updated_at: datetime = Field(serialization_alias="atualizadoEm")
    feedback: Optional[FeedbackResponse] = None

    @classmethod
    def from_model(cls, recording: Recording) -> "RecordingResponse":
        feedback = recording.feedback
        return cls(
            id=recording.id,
            user_id=recording.user_id,
            client_id=recording.client_id,
            audio_url=recording.audio_path,
            audio_filename=recording.audio_filename,
            transcript=recording.transcript,
            ai_summary=recording.ai_summary,
            sale_status=recording.sale_status,
            processing_status=recording.processing_status,
            duration_seconds=recording.duration_seconds,
            processing_error=recording.processing_error,
            recorded_at=recording.recorded_at,
            created_at=recording.created_at,
            updated_at=recording.updated_at,
            feedback=FeedbackResponse.from_model(feedback) if feedback is not None else None,
        )
