"""
Shared-secret authentication middleware for the worker.

Every pipeline, project, reconcile and conversation endpoint requires an
X-Worker-Secret header matching WORKER_SHARED_SECRET. The app's server-side
routes attach this header when forwarding requests to the worker.
"""

import secrets

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .config import get_config

PROTECTED_PREFIXES = ("/pipeline", "/projects", "/reconcile", "/conversations")


class WorkerAuthMiddleware(BaseHTTPMiddleware):
    """Reject unauthenticated requests to protected endpoints."""

    # Paths that are always public (health checks, etc.)
    PUBLIC_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if path in self.PUBLIC_PATHS or not path.startswith(PROTECTED_PREFIXES):
            return await call_next(request)

        config = get_config()
        if not config.worker_secret:
            # In development without the secret set, allow all traffic
            if config.is_development:
                return await call_next(request)
            return JSONResponse(status_code=500, content={"detail": "WORKER_SHARED_SECRET not configured"})

        provided = request.headers.get("X-Worker-Secret", "")
        if not secrets.compare_digest(provided, config.worker_secret):
            return JSONResponse(status_code=401, content={"detail": "Invalid or missing worker secret"})

        return await call_next(request)
