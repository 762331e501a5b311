"""SQLAlchemy models for the SalesMind backend."""

from .base import Base
from .client import Client  # noqa: F401
from .company import Company  # noqa: F401
from .feedback import Feedback, SentimentCategory  # noqa: F401
from .recording import (  # noqa: F401
    InvalidStatusTransition,
    ProcessingStatus,
    Recording,
    SaleStatus,
)
from .user import User, UserRole  # noqa: F401

__all__ = [
    "Base",
    "Company",
    "User",
    "UserRole",
    "Client",
    "Recording",
    "SaleStatus",
    "ProcessingStatus",
    "InvalidStatusTransition",
    "Feedback",
    "SentimentCategory",
]
