from __future__ import annotations

from datetime import datetime

from fastapi.testclient import TestClient

from taptalk_core.config import Settings
from taptalk_core.main import create_app
from taptalk_core.provider_health import ProviderHealthMonitor
from taptalk_core.rate_limit import RateLimiter


def test_healthz_reports_ok() -> None:
    with TestClient(create_app(Settings())) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_tts_health_exposes_provider_snapshots(clock) -> None:
    monitor = ProviderHealthMonitor(clock=clock)
    monitor.record_success("openai", 180)
    monitor.record_success("openai", 220)
    monitor.record_failure("elevenlabs")

    app = create_app(Settings(), monitor=monitor)
    with TestClient(app) as client:
        response = client.get("/api/tts-health")

    assert response.status_code == 200
    body = response.json()
    assert set(body["providers"]) == {"openai", "elevenlabs"}
    openai = body["providers"]["openai"]
    assert openai["p95_latency"] == 220.0
    assert openai["success_rate"] == 1.0
    assert openai["recent_results"] == [True, True]
    assert body["providers"]["elevenlabs"]["success_rate"] == 0.0
    assert datetime.fromisoformat(body["timestamp"]).tzinfo is not None


def test_apps_get_independent_monitors() -> None:
    first = create_app(Settings())
    second = create_app(Settings())

    first.state.provider_health.record_failure("openai")

    assert first.state.provider_health is not second.state.provider_health
    assert second.state.provider_health.get_metrics() == {}
    assert first.state.rate_limiter is not second.state.rate_limiter


def test_injected_engines_are_kept_even_when_empty(clock) -> None:
    limiter = RateLimiter(clock=clock)
    monitor = ProviderHealthMonitor(clock=clock)

    app = create_app(Settings(), limiter=limiter, monitor=monitor)

    assert len(limiter) == 0
    assert app.state.rate_limiter is limiter
    assert app.state.provider_health is monitor


def test_default_monitor_uses_configured_provider_order() -> None:
    app = create_app(Settings(tts_provider_order="OpenAI,ElevenLabs"))

    assert app.state.provider_health.provider_order == ("openai", "elevenlabs")
    assert app.state.provider_health.select_provider() == "openai"
