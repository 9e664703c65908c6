"""Prometheus instrumentation for HTTP requests."""

from __future__ import annotations

import time
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from sacraltrack.telemetry import observe_request

# Scrapes and health checks would otherwise dominate the request histogram.
UNINSTRUMENTED_PATHS = frozenset({"/metrics", "/health"})


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Count and time every API request, labelled by route template."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in UNINSTRUMENTED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            observe_request(
                request.method,
                self._route_label(request),
                status_code,
                time.perf_counter() - started,
            )

    @staticmethod
    def _route_label(request: Request) -> str:
        """Use the route template so track ids don't explode label cardinality."""

        route: Any = request.scope.get("route")
        template = getattr(route, "path", None)
        return template or request.url.path
