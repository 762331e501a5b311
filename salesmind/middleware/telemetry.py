"""Request instrumentation middleware."""

from __future__ import annotations

import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from salesmind.telemetry import observe_request

_UNTRACKED_PATHS = frozenset({"/metrics"})


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Feed Prometheus request counters and latency histograms."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in _UNTRACKED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            # Route templates are only known after routing, so resolve late.
            observe_request(
                request.method,
                self._route_template(request),
                status_code,
                time.perf_counter() - started,
            )

    @staticmethod
    def _route_template(request: Request) -> str:
        """Use ``/api/gravacoes/{recording_id}`` style labels to bound cardinality."""

        route: Any = request.scope.get("route")
        template = getattr(route, "path", None)
        return template or request.url.path
