"""SQLAlchemy model representing tenant companies."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from salesmind.models.base import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    tax_id = Column(String(20), nullable=True, unique=True)
    created_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
    )

    users = relationship("User", back_populates="company")
    clients = relationship("Client", back_populates="company")


__all__ = ["Company"]
