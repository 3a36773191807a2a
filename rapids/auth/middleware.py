"""API key authentication middleware for FastAPI."""

from __future__ import annotations

import logging
import re

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from rapids.models.common import error_detail

logger = logging.getLogger(__name__)

# Paths that require a valid API key
PROTECTED_PATH_PREFIXES = ("/v1/protected",)

_AUTH_HEADER = re.compile(r"^(?:Bearer|ApiKey)\s+(.+)$", re.IGNORECASE)

REASON_RESPONSES = {
    "not_found": (401, "UNAUTHORIZED", "Invalid API key"),
    "expired": (401, "UNAUTHORIZED", "API key has expired"),
    "revoked": (401, "UNAUTHORIZED", "API key has been revoked"),
    "rate_limited": (429, "RATE_LIMITED", "Rate limit exceeded"),
}


def extract_api_key(authorization: str | None) -> str | None:
    """Pull the key out of ``Bearer <key>`` or ``ApiKey <key>``."""
    if not authorization:
        return None
    match = _AUTH_HEADER.match(authorization.strip())
    return match.group(1) if match else None


class ApiKeyAuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not path.startswith(PROTECTED_PATH_PREFIXES):
            return await call_next(request)

        request.state.api_key = None

        raw_key = extract_api_key(request.headers.get("authorization"))
        if not raw_key:
            return JSONResponse(
                status_code=401,
                content=error_detail("UNAUTHORIZED", "Missing API key in Authorization header"),
            )

        service = request.app.state.api_key_service
        result = await service.validate(raw_key)
        if not result.valid:
            status_code, code, message = REASON_RESPONSES[result.reason]
            logger.debug("Rejected API key for %s: %s", path, result.reason)
            headers = None
            if result.reason == "rate_limited":
                # Windows are epoch-aligned minutes
                headers = {"Retry-After": str(60 - int(service.now().timestamp()) % 60)}
            return JSONResponse(
                status_code=status_code,
                content=error_detail(code, message),
                headers=headers,
            )

        request.state.api_key = result.key
        return await call_next(request)
