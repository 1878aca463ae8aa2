from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..provider_health import ProviderHealthMonitor

router = APIRouter()


@router.get("/healthz")
def health_check() -> dict[str, str]:
    """Simple health check endpoint.

    ライブネス/レディネス確認用の簡易エンドポイント。
    """
    return {"status": "ok"}


@router.get("/api/tts-health")
def tts_health(request: Request) -> JSONResponse:
    """Return per-provider TTS health (p95 latency, success rate, recent results).

    認可は本ルーターをマウントする側のアプリケーションで行う。
    """
    monitor: ProviderHealthMonitor = request.app.state.provider_health
    providers = {name: snapshot.model_dump() for name, snapshot in monitor.get_metrics().items()}
    return JSONResponse(
        content={
            "providers": providers,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )
