"""Structured logging middleware for FastAPI requests."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from salesmind.utils.security import AuthenticationError, decode_access_token

logger = logging.getLogger("salesmind.middleware.structured")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one JSON log line for each HTTP request."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.perf_counter()
        log_payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else None,
        }

        session = self._session_descriptor(request)
        if session is not None:
            log_payload["session"] = session

        try:
            response = await call_next(request)
        except Exception as exc:
            log_payload["status_code"] = 500
            log_payload["duration_ms"] = self._elapsed_ms(start_time)
            log_payload["error"] = repr(exc)
            logger.exception(self._to_json(log_payload))
            raise

        log_payload["status_code"] = response.status_code
        log_payload["duration_ms"] = self._elapsed_ms(start_time)
        if response.status_code >= 500:
            logger.error(self._to_json(log_payload))
        else:
            logger.info(self._to_json(log_payload))
        return response

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        """Return elapsed milliseconds rounded to two decimals."""

        return round((time.perf_counter() - start_time) * 1000, 2)

    def _session_descriptor(self, request: Request) -> dict[str, Any] | None:
        """Describe the caller without logging the raw bearer token."""

        token = self._extract_bearer_token(request)
        if not token:
            return None

        try:
            payload = decode_access_token(token)
        except AuthenticationError:
            return {"user_id": None, "valid": False}

        issued = payload.iat.timestamp() if payload.iat else 0
        fingerprint_source = f"{payload.sub}:{int(issued)}"
        return {
            "user_id": payload.sub,
            "company_id": payload.company_id,
            "fingerprint": hashlib.sha256(fingerprint_source.encode("utf-8")).hexdigest()[:16],
        }

    @staticmethod
    def _extract_bearer_token(request: Request) -> Optional[str]:
        """Return the bearer token from the request headers when present."""

        auth_header = request.headers.get("authorization")
        if not auth_header:
            return None

        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None

        return token

    @staticmethod
    def _to_json(payload: dict[str, Any]) -> str:
        """Serialize payload as compact JSON."""

        return json.dumps(payload, default=str, separators=(",", ":"))
