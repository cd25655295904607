"""
FastAPI middleware enforcing the authorization gate.

Every request outside the exempt paths goes through the pipeline before it
reaches a route. Denied requests never reach application logic.
"""

import logging
from typing import Callable, Iterable, Optional

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .identity import extract_bearer_token
from .models import Verdict
from .service import AuthorizationPipeline, build_pipeline

logger = logging.getLogger(__name__)

DEFAULT_EXEMPT_PATHS = ("/health",)


def deny_response(verdict: Verdict) -> JSONResponse:
    """Every denial is a 401; the error code carries the deny reason."""
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={
            "error": {
                "code": verdict.reason.value,
                "message": verdict.message,
                "details": {},
            }
        },
    )


class AuthorizationMiddleware(BaseHTTPMiddleware):
    """
    Middleware that authorizes each request with an AuthorizationPipeline.

    The verdict is stored on ``request.state.verdict`` for downstream handlers.
    A pipeline passed in is owned by the caller, typically closed from the
    application lifespan; one built here from the environment lives as long
    as the process.
    """

    def __init__(
        self,
        app,
        pipeline: Optional[AuthorizationPipeline] = None,
        exempt_paths: Iterable[str] = DEFAULT_EXEMPT_PATHS,
    ):
        """
        Initialize authorization middleware.

        Args:
            app: ASGI application
            pipeline: Decision pipeline (built from environment if not provided)
            exempt_paths: Paths served without authorization
        """
        super().__init__(app)
        self.pipeline = pipeline or build_pipeline()
        self.exempt_paths = frozenset(exempt_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("Authorization"))
        # pipeline I/O is blocking
        verdict = await run_in_threadpool(
            self.pipeline.authorize,
            token,
            request.method,
            request.url.path,
        )

        if not verdict.allowed:
            return deny_response(verdict)

        request.state.verdict = verdict
        return await call_next(request)
