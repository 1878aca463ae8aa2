"""Logging utilities and sanitisation helpers.

構造化ログの初期化と、機密情報や利用者のメールアドレスを含むイベントを
マスクするヘルパーをまとめて提供する。レート制限の識別子は `user:<email>`
形式のため、ログへそのまま出力しないようここで一元的にフィルタリングする。
"""

from typing import Any

import logging
import re
import structlog
from structlog import contextvars as structlog_contextvars
from .config import settings


_SENSITIVE_KEYWORDS = ("api_key", "token", "secret", "authorization", "password")
_MASK_PLACEHOLDER = "***"
_EMAIL_PATTERN = re.compile(r"([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+)")


def _mask_secret_value(raw: object) -> str:
    """Return a masked representation of a secret-like value.

    短い値は `***` に、一定長以上は先頭4文字+末尾4文字だけを残し中間を隠す。
    """

    if raw is None:
        return _MASK_PLACEHOLDER
    text = str(raw).strip()
    if not text:
        return _MASK_PLACEHOLDER
    if len(text) <= 8:
        return _MASK_PLACEHOLDER
    return f"{text[:4]}…{text[-4:]}"


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(keyword in lowered for keyword in _SENSITIVE_KEYWORDS)


def mask_email(value: str) -> str:
    """Keep the first character of each e-mail local part and the domain.

    `user:alice@example.com` は `user:a***@example.com` になる。
    """

    return _EMAIL_PATTERN.sub(lambda m: f"{m.group(1)}{_MASK_PLACEHOLDER}@{m.group(2)}", value)


def _sanitize_event_dict(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Sanitize sensitive fields before rendering a log event.

    キー名に `api_key`/`token` 等が含まれる場合は値をマスクし、文字列中の
    メールアドレスはローカル部を伏せる。ネストした dict も再帰的に処理する。
    """

    def _sanitize_value(value: Any, key_hint: str | None = None) -> Any:
        if isinstance(value, dict):
            return {k: _sanitize_value(v, k) for k, v in value.items()}
        if key_hint and _is_sensitive_key(key_hint):
            return _mask_secret_value(value)
        if isinstance(value, str):
            return mask_email(value)
        return value

    for key, value in list(event_dict.items()):
        event_dict[key] = _sanitize_value(value, str(key))
    return event_dict


def configure_logging(level: str | None = None) -> None:
    """Configure structlog for application-wide logging.

    標準 logging をメッセージのみのフォーマットで初期化し、structlog で
    ISO タイムスタンプと JSON 形式の出力を有効化する。
    """
    resolved_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    # force=True で既存ハンドラ（uvicorn 等）を上書きして一貫化。
    logging.basicConfig(
        level=resolved_level,
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog_contextvars.merge_contextvars,
            _sanitize_event_dict,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()
