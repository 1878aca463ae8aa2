from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.types import NoDecode


RATE_LIMIT_PROFILE_NAMES = frozenset({"ai", "audio", "light"})

# Route prefix → rate-limit profile. AI-heavy routes use "ai", speech routes
# use "audio" and data reads/writes use "light".
DEFAULT_ROUTE_PROFILES: tuple[str, ...] = (
    "/api/chat=ai",
    "/api/debate-chat=ai",
    "/api/ai-evaluate=ai",
    "/api/trending-topics=ai",
    "/api/speech-to-text=audio",
    "/api/text-to-speech=audio",
    "/api/text-to-speech-eleven=audio",
    "/api/corrections=light",
    "/api/vocab-book=light",
    "/api/lesson-history=light",
    "/api/user-profile=light",
    "/api/speaking-evaluate=light",
)


def _split_csv(raw: object) -> list[str] | None:
    """Split comma separated env input into trimmed, non-empty, unique entries."""

    if raw is None:
        candidates: list[str] = []
    elif isinstance(raw, str):
        candidates = raw.split(",")
    else:
        try:
            candidates = list(raw)  # type: ignore[call-overload]
        except TypeError:
            return None

    normalised: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        trimmed = candidate.strip()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)
        normalised.append(trimmed)
    return normalised


class Settings(BaseSettings):
    """Runtime settings for the adaptive control core.

    環境変数から読み込まれる設定クラス。既定値は外部契約の定数と一致させており、
    環境変数で上書きしない限り挙動は変わらない。
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level / ルートロガーのログレベル",
    )

    # --- Rate limiting ---
    rate_limit_ai_limit: int = Field(
        default=30,
        description="Requests per window for AI-heavy routes / AI 系ルートのウィンドウ内上限",
    )
    rate_limit_ai_window_seconds: int = Field(
        default=60,
        description="Window length for AI-heavy routes (s) / AI 系ルートのウィンドウ長（秒）",
    )
    rate_limit_audio_limit: int = Field(
        default=40,
        description="Requests per window for STT/TTS routes / 音声系ルートのウィンドウ内上限",
    )
    rate_limit_audio_window_seconds: int = Field(
        default=60,
        description="Window length for STT/TTS routes (s) / 音声系ルートのウィンドウ長（秒）",
    )
    rate_limit_light_limit: int = Field(
        default=60,
        description="Requests per window for light routes / 軽量ルートのウィンドウ内上限",
    )
    rate_limit_light_window_seconds: int = Field(
        default=60,
        description="Window length for light routes (s) / 軽量ルートのウィンドウ長（秒）",
    )
    rate_limit_cleanup_interval_seconds: float = Field(
        default=60.0,
        description=(
            "Minimum interval between expired-entry sweeps (s) / "
            "期限切れエントリ掃除の最小間隔（秒）"
        ),
    )
    rate_limit_route_profiles: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_ROUTE_PROFILES,
        description=(
            "Comma separated `prefix=profile` pairs / "
            "パスプレフィックスとプロファイルの対応（カンマ区切り）"
        ),
    )

    # --- Provider health / circuit breaker ---
    circuit_break_min_samples: int = Field(
        default=3,
        description="Samples required before breaking / 遮断判定に必要な最小サンプル数",
    )
    circuit_break_failure_rate: float = Field(
        default=0.5,
        description="Failure rate above which a provider is skipped / 遮断する失敗率の閾値",
    )
    circuit_break_cooldown_ms: int = Field(
        default=60_000,
        description="Cooldown before a retry probe (ms) / 再試行を許可するまでの待機時間（ms）",
    )
    provider_result_window: int = Field(
        default=10,
        description="Recent outcomes kept per provider / プロバイダ毎に保持する直近結果数",
    )
    provider_latency_window: int = Field(
        default=20,
        description="Recent latencies kept per provider / プロバイダ毎に保持する直近レイテンシ数",
    )
    tts_provider_order: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("elevenlabs", "openai"),
        description="Preferred TTS providers in order / 優先順の TTS プロバイダ一覧",
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("rate_limit_route_profiles", mode="before")
    @classmethod
    def _normalise_route_profiles(cls, raw_pairs: object) -> tuple[str, ...] | object:
        """Validate `prefix=profile` pairs and normalise them into a tuple.

        未知のプロファイル名や `/` で始まらないプレフィックスは設定読込時に拒否する。
        """

        candidates = _split_csv(raw_pairs)
        if candidates is None:
            return raw_pairs

        pairs: list[str] = []
        for candidate in candidates:
            prefix, separator, profile = candidate.partition("=")
            prefix = prefix.strip()
            profile = profile.strip().lower()
            if not separator or not prefix.startswith("/"):
                raise ValueError(
                    f"RATE_LIMIT_ROUTE_PROFILES entry must look like '/path=profile': {candidate!r}"
                )
            if profile not in RATE_LIMIT_PROFILE_NAMES:
                raise ValueError(
                    f"Unknown rate limit profile {profile!r}; expected one of "
                    f"{sorted(RATE_LIMIT_PROFILE_NAMES)}"
                )
            pairs.append(f"{prefix}={profile}")
        return tuple(pairs)

    @field_validator("tts_provider_order", mode="before")
    @classmethod
    def _normalise_provider_order(cls, raw_providers: object) -> tuple[str, ...] | object:
        candidates = _split_csv(raw_providers)
        if candidates is None:
            return raw_providers
        return tuple(candidate.lower() for candidate in candidates)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, raw_level: object) -> object:
        if isinstance(raw_level, str):
            return raw_level.strip().upper() or "INFO"
        return raw_level

    def route_profile_map(self) -> dict[str, str]:
        """Return the route prefix → profile name mapping."""

        mapping: dict[str, str] = {}
        for pair in self.rate_limit_route_profiles:
            prefix, _, profile = pair.partition("=")
            mapping[prefix] = profile
        return mapping


settings = Settings()
