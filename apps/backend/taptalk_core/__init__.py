"""Adaptive control core: review scheduling, rate limiting, provider health
and learning-position estimation."""

from .learning_position import LearningPosition, LevelDetails, estimate_learning_position
from .provider_health import CircuitBreakerPolicy, ProviderHealthMonitor
from .rate_limit import RATE_LIMITS, RateLimitConfig, RateLimitDecision, RateLimiter, rate_limit_id
from .srs import (
    ReviewRecord,
    ReviewScheduler,
    ReviewStatus,
    calculate_simple_interval,
    calculate_sm2,
    format_next_review,
    review_status,
)

__all__ = [
    "CircuitBreakerPolicy",
    "LearningPosition",
    "LevelDetails",
    "ProviderHealthMonitor",
    "RATE_LIMITS",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimiter",
    "ReviewRecord",
    "ReviewScheduler",
    "ReviewStatus",
    "calculate_simple_interval",
    "calculate_sm2",
    "estimate_learning_position",
    "format_next_review",
    "rate_limit_id",
    "review_status",
]
