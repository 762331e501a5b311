"""SQLAlchemy model for uploaded sales-call recordings."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SqlEnum
from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from salesmind.models.base import Base


class SaleStatus(str, Enum):
    """Business outcome of the call, independent of pipeline progress."""

    PENDENTE = "PENDENTE"
    PROPOSTA_ENVIADA = "PROPOSTA_ENVIADA"
    QUALIFICADO = "QUALIFICADO"
    FECHADO = "FECHADO"


class ProcessingStatus(str, Enum):
    """Pipeline progress of a recording.

    Statuses only move forward (UPLOADING -> PROCESSANDO -> CONCLUIDO); ERRO
    can be reached from any non-terminal status.
    """

    UPLOADING = "UPLOADING"
    PROCESSANDO = "PROCESSANDO"
    CONCLUIDO = "CONCLUIDO"
    ERRO = "ERRO"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.CONCLUIDO, ProcessingStatus.ERRO)

    def can_transition_to(self, target: "ProcessingStatus") -> bool:
        if self.is_terminal:
            return False
        if target is ProcessingStatus.ERRO:
            return True
        return _STATUS_ORDER.index(target) == _STATUS_ORDER.index(self) + 1


_STATUS_ORDER = (
    ProcessingStatus.UPLOADING,
    ProcessingStatus.PROCESSANDO,
    ProcessingStatus.CONCLUIDO,
)


class InvalidStatusTransition(ValueError):
    """Raised when a recording is moved backwards or out of a terminal status."""


class Recording(Base):
    __tablename__ = "recordings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id = Column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    audio_path = Column(String(1024), nullable=True)
    audio_filename = Column(String(255), nullable=True)
    transcript = Column(Text, nullable=True)
    ai_summary = Column(Text, nullable=True)
    sale_status = Column(
        SqlEnum(SaleStatus, name="sale_status"),
        nullable=False,
        default=SaleStatus.PENDENTE,
    )
    processing_status = Column(
        SqlEnum(ProcessingStatus, name="processing_status"),
        nullable=False,
        default=ProcessingStatus.UPLOADING,
        index=True,
    )
    duration_seconds = Column(Integer, nullable=True)
    processing_error = Column(Text, nullable=True)
    recorded_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    feedback = relationship(
        "Feedback",
        back_populates="recording",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def mark_status(self, target: ProcessingStatus) -> None:
        """Move the recording to ``target`` enforcing forward-only progress."""

        current = ProcessingStatus(self.processing_status or ProcessingStatus.UPLOADING)
        if not current.can_transition_to(target):
            raise InvalidStatusTransition(
                f"Recording {self.id} cannot move from {current.value} to {target.value}"
            )
        self.processing_status = target


__all__ = [
    "Recording",
    "SaleStatus",
    "ProcessingStatus",
    "InvalidStatusTransition",
]
