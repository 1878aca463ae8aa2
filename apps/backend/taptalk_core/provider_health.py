from __future__ import annotations

import math
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel

from .logging import logger


@dataclass(frozen=True)
class CircuitBreakerPolicy:
    min_samples: int = 3
    failure_rate_threshold: float = 0.5
    cooldown_ms: int = 60_000
    result_window: int = 10
    latency_window: int = 20


@dataclass
class ProviderMetrics:
    latency_window: int = 20
    result_window: int = 10
    total_requests: int = 0
    successes: int = 0
    failures: int = 0
    total_latency_ms: float = 0.0
    last_success: Optional[float] = None
    last_failure: Optional[float] = None
    recent_latencies: Deque[float] = field(init=False)
    recent_results: Deque[bool] = field(init=False)

    def __post_init__(self) -> None:
        # deque(maxlen) drops the oldest sample on overflow
        self.recent_latencies = deque(maxlen=max(1, self.latency_window))
        self.recent_results = deque(maxlen=max(1, self.result_window))


class ProviderSnapshot(BaseModel):
    total_requests: int
    successes: int
    failures: int
    total_latency_ms: float
    last_success: Optional[float] = None
    last_failure: Optional[float] = None
    recent_latencies: List[float]
    recent_results: List[bool]
    p95_latency: float
    success_rate: float


def calculate_p95(latencies: Iterable[float]) -> float:
    values = sorted(latencies)
    if not values:
        return 0.0
    index = math.ceil(len(values) * 0.95) - 1
    return values[max(0, index)]


class ProviderHealthMonitor:
    """In-memory health tracker for interchangeable providers (e.g. TTS).

    - Rolling window of recent outcomes per provider drives the breaker
    - Rolling window of recent latencies drives p95
    - Open/half-open is derived from the window and the time since the last
      failure on every call; no breaker state is stored
    """

    def __init__(
        self,
        policy: CircuitBreakerPolicy | None = None,
        *,
        provider_order: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._policy = policy or CircuitBreakerPolicy()
        self._provider_order: tuple[str, ...] = tuple(provider_order)
        self._clock = clock
        self._lock = threading.Lock()
        self._metrics: Dict[str, ProviderMetrics] = {}

    @property
    def policy(self) -> CircuitBreakerPolicy:
        return self._policy

    @property
    def provider_order(self) -> tuple[str, ...]:
        return self._provider_order

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _ensure(self, provider: str) -> ProviderMetrics:
        metrics = self._metrics.get(provider)
        if metrics is None:
            metrics = ProviderMetrics(
                latency_window=self._policy.latency_window,
                result_window=self._policy.result_window,
            )
            self._metrics[provider] = metrics
        return metrics

    def record_success(self, provider: str, latency_ms: float) -> None:
        latency = max(0.0, float(latency_ms))
        with self._lock:
            m = self._ensure(provider)
            m.total_requests += 1
            m.successes += 1
            m.total_latency_ms += latency
            m.last_success = self._now_ms()
            m.recent_latencies.append(latency)
            m.recent_results.append(True)

    def record_failure(self, provider: str) -> None:
        with self._lock:
            m = self._ensure(provider)
            m.total_requests += 1
            m.failures += 1
            m.last_failure = self._now_ms()
            m.recent_results.append(False)
            recent_failures = m.recent_results.count(False)
            total_failures = m.failures
        logger.warning(
            "provider_failure_recorded",
            provider=provider,
            recent_failures=recent_failures,
            total_failures=total_failures,
        )

    def should_circuit_break(self, provider: str) -> bool:
        """Return True when the provider should be skipped for now.

        Fewer than ``min_samples`` outcomes never break. Above the failure-rate
        threshold the provider is skipped until ``cooldown_ms`` has passed
        since its last failure, after which one probe is let through.
        """
        with self._lock:
            m = self._metrics.get(provider)
            if m is None or len(m.recent_results) < self._policy.min_samples:
                return False
            failure_rate = m.recent_results.count(False) / len(m.recent_results)
            if failure_rate <= self._policy.failure_rate_threshold:
                return False
            last_failure = m.last_failure
            now = self._now_ms()

        if last_failure is not None and now - last_failure > self._policy.cooldown_ms:
            logger.debug("provider_circuit_probe", provider=provider, failure_rate=round(failure_rate, 3))
            return False
        logger.debug("provider_circuit_open", provider=provider, failure_rate=round(failure_rate, 3))
        return True

    should_skip = should_circuit_break

    def select_provider(self, candidates: Optional[Iterable[str]] = None) -> Optional[str]:
        """Pick the first candidate whose circuit is closed, else None.

        Without explicit candidates the configured provider order is used.
        """
        tried: List[str] = []
        for provider in self._provider_order if candidates is None else candidates:
            tried.append(provider)
            if not self.should_circuit_break(provider):
                return provider
        if tried:
            logger.error("provider_unavailable", candidates=tried)
        return None

    @contextmanager
    def track(self, provider: str) -> Iterator[None]:
        """Time the wrapped call and record its outcome.

        Exceptions are recorded as failures and re-raised unchanged.
        """
        start = time.perf_counter()
        try:
            yield
        except Exception:
            self.record_failure(provider)
            raise
        self.record_success(provider, (time.perf_counter() - start) * 1000.0)

    def get_metrics(self) -> Dict[str, ProviderSnapshot]:
        with self._lock:
            result: Dict[str, ProviderSnapshot] = {}
            for name, m in self._metrics.items():
                result[name] = ProviderSnapshot(
                    total_requests=m.total_requests,
                    successes=m.successes,
                    failures=m.failures,
                    total_latency_ms=m.total_latency_ms,
                    last_success=m.last_success,
                    last_failure=m.last_failure,
                    recent_latencies=list(m.recent_latencies),
                    recent_results=list(m.recent_results),
                    p95_latency=calculate_p95(m.recent_latencies),
                    success_rate=(m.successes / m.total_requests) if m.total_requests > 0 else 1.0,
                )
            return result
