from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from .logging import logger
from .rate_limit import RateLimitConfig, RateLimitDecision, RateLimiter, rate_limit_id


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Apply fixed-window limits to routes by path prefix.

    - The longest matching prefix selects the profile; unmapped paths pass
    - Identity is `request.state.user_email` (set by the auth layer) or the
      first `X-Forwarded-For` address
    - Denials become 429 with `Retry-After` and `X-RateLimit-*` headers
    """

    def __init__(
        self,
        app,
        *,
        limiter: RateLimiter,
        route_profiles: Mapping[str, RateLimitConfig],
    ) -> None:
        super().__init__(app)
        self._limiter = limiter
        # longest prefix first so /api/text-to-speech-eleven beats /api/text-to-speech
        self._routes = sorted(route_profiles.items(), key=lambda item: len(item[0]), reverse=True)

    def _resolve_profile(self, path: str) -> RateLimitConfig | None:
        for prefix, config in self._routes:
            if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
                return config
        return None

    @staticmethod
    def _resolve_identifier(request: Request) -> str:
        email = getattr(request.state, "user_email", None)
        if not isinstance(email, str):
            email = None
        return rate_limit_id(email, request.headers.get("x-forwarded-for"))

    @staticmethod
    def _denied_response(decision: RateLimitDecision) -> Response:
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests. Please try again later."},
            headers={
                "Retry-After": str(decision.retry_after_seconds or 0),
                "X-RateLimit-Limit": str(decision.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(decision.reset_at * 1000)),
            },
        )

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        config = self._resolve_profile(request.url.path)
        if config is None:
            return await call_next(request)

        identifier = self._resolve_identifier(request)
        decision = self._limiter.check(identifier, config)
        if not decision.allowed:
            logger.info(
                "request_rate_limited",
                path=request.url.path,
                identifier=identifier,
                retry_after=decision.retry_after_seconds,
            )
            return self._denied_response(decision)

        response = await call_next(request)
        response.headers.setdefault("X-RateLimit-Limit", str(decision.limit))
        response.headers.setdefault("X-RateLimit-Remaining", str(decision.remaining))
        return response
