"""Response schemas exposed by the HTTP API."""

from .common import ErrorResponse, HealthResponse
from .feedbacks import FeedbackResponse
from .recordings import RecordingResponse, RecordingStatusResponse, RecordingUploadResponse

__all__ = [
    "ErrorResponse",
    "FeedbackResponse",
    "HealthResponse",
    "RecordingResponse",
    "RecordingStatusResponse",
    "RecordingUploadResponse",
]
