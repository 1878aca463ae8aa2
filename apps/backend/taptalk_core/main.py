from __future__ import annotations

from fastapi import FastAPI

from .config import Settings, settings
from .logging import configure_logging, logger
from .middleware import RateLimitMiddleware
from .provider_health import CircuitBreakerPolicy, ProviderHealthMonitor
from .rate_limit import RateLimitConfig, RateLimiter
from .routers import health


def build_rate_limit_profiles(app_settings: Settings) -> dict[str, RateLimitConfig]:
    """Resolve the `ai`/`audio`/`light` profiles from settings."""
    return {
        "ai": RateLimitConfig(
            limit=app_settings.rate_limit_ai_limit,
            window_seconds=app_settings.rate_limit_ai_window_seconds,
        ),
        "audio": RateLimitConfig(
            limit=app_settings.rate_limit_audio_limit,
            window_seconds=app_settings.rate_limit_audio_window_seconds,
        ),
        "light": RateLimitConfig(
            limit=app_settings.rate_limit_light_limit,
            window_seconds=app_settings.rate_limit_light_window_seconds,
        ),
    }


def build_circuit_breaker_policy(app_settings: Settings) -> CircuitBreakerPolicy:
    return CircuitBreakerPolicy(
        min_samples=app_settings.circuit_break_min_samples,
        failure_rate_threshold=app_settings.circuit_break_failure_rate,
        cooldown_ms=app_settings.circuit_break_cooldown_ms,
        result_window=app_settings.provider_result_window,
        latency_window=app_settings.provider_latency_window,
    )


def create_app(
    app_settings: Settings | None = None,
    *,
    limiter: RateLimiter | None = None,
    monitor: ProviderHealthMonitor | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    The limiter and health monitor live on `app.state`, one instance per app,
    so separate apps (and tests) never share counters.
    """
    resolved = app_settings or settings
    configure_logging(resolved.log_level)
    app = FastAPI(title="TapTalk Core API", version="0.1.0")

    app.state.settings = resolved
    # RateLimiter defines __len__, so an empty injected limiter is falsy
    if limiter is None:
        limiter = RateLimiter(
            cleanup_interval_seconds=resolved.rate_limit_cleanup_interval_seconds,
        )
    if monitor is None:
        monitor = ProviderHealthMonitor(
            build_circuit_breaker_policy(resolved),
            provider_order=resolved.tts_provider_order,
        )
    app.state.rate_limiter = limiter
    app.state.provider_health = monitor

    profiles = build_rate_limit_profiles(resolved)
    route_profiles = {
        prefix: profiles[profile] for prefix, profile in resolved.route_profile_map().items()
    }
    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        route_profiles=route_profiles,
    )
    app.include_router(health.router)

    logger.info(
        "app_configured",
        environment=resolved.environment,
        rate_limited_routes=len(route_profiles),
        tts_providers=list(resolved.tts_provider_order),
    )
    return app


app = create_app()
