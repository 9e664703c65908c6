"""Structured logging middleware for FastAPI requests."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger("sacraltrack.middleware.structured")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one JSON line per HTTP request."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.perf_counter()
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else None,
        }
        try:
            response = await call_next(request)
        except Exception as exc:
            payload["status_code"] = 500
            payload["duration_ms"] = self._elapsed_ms(start_time)
            payload["error"] = repr(exc)
            logger.exception(self._to_json(payload))
            raise

        # Routing fills path_params in the shared scope.
        track_id = request.scope.get("path_params", {}).get("track_id")
        if track_id:
            payload["track_id"] = track_id
        payload["status_code"] = response.status_code
        payload["duration_ms"] = self._elapsed_ms(start_time)
        if response.status_code >= 500:
            logger.error(self._to_json(payload))
        elif response.status_code >= 400:
            logger.warning(self._to_json(payload))
        else:
            logger.info(self._to_json(payload))
        return response

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        """Return elapsed milliseconds rounded to two decimals."""

        return round((time.perf_counter() - start_time) * 1000, 2)

    @staticmethod
    def _to_json(payload: dict[str, Any]) -> str:
        """Serialize payload as compact JSON."""

        return json.dumps(payload, default=str, separators=(",", ":"))
