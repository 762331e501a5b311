"""Utility helpers for the SalesMind backend."""

from .multipart import FilePart, FormData, MalformedRequestError, parse_multipart
from .security import (
    AuthenticationError,
    create_access_token,
    decode_access_token,
)

__all__ = [
    "FilePart",
    "FormData",
    "MalformedRequestError",
    "parse_multipart",
    "create_access_token",
    "decode_access_token",
    "AuthenticationError",
]
