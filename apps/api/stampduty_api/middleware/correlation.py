"""Correlation ID middleware."""

import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Add correlation ID to requests and responses."""

    async def dispatch(self, request: Request, call_next):
        """Process request with correlation ID."""
        # Prefer an explicit correlation id, then the delivery id so retries of
        # the same event share one
        correlation_id = (
            request.headers.get("x-correlation-id")
            or request.headers.get("webhook-id")
            or str(uuid.uuid4())
        )

        request.state.correlation_id = correlation_id

        response: Response = await call_next(request)

        response.headers["x-correlation-id"] = correlation_id

        return response
