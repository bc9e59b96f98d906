"""CORS, request-id, logging and access-token renewal middleware."""

import uuid
import time
import logging
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from pds_api.core.config import settings
from pds_api.core.exceptions import InvalidTokenError
from pds_api.core.security import create_access_token, decode_access_token

logger = logging.getLogger("pds.http")

RENEWED_TOKEN_HEADER = "X-New-Access-Token"


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Add a unique request ID to every request/response."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        response: Response = await call_next(request)

        duration = round((time.time() - start_time) * 1000, 2)
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration)

        logger.info(
            "%s %s %s %sms",
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )
        return response


class AccessTokenRenewalMiddleware(BaseHTTPMiddleware):
    """Hand out a fresh access token when the presented one is about to expire."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)

        auth = request.headers.get("authorization", "")
        if not auth.lower().startswith("bearer ") or response.status_code >= 400:
            return response
        try:
            payload = decode_access_token(auth[7:].strip())
        except InvalidTokenError:
            return response

        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        window = timedelta(minutes=settings.ACCESS_TOKEN_RENEW_WINDOW_MINUTES)
        if expires_at - datetime.now(timezone.utc) < window:
            claims = {k: payload[k] for k in ("sub", "email", "role") if k in payload}
            response.headers[RENEWED_TOKEN_HEADER] = create_access_token(claims)
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[RENEWED_TOKEN_HEADER, "X-Request-Id"],
    )

    app.add_middleware(AccessTokenRenewalMiddleware)

    # Request ID + timing
    app.add_middleware(RequestIdMiddleware)
