from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_DIR = PACKAGE_DIR / "config"

DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_MAX_COMPLETION_TOKENS = 6000
DEFAULT_REASONING_EFFORT = "medium"
DEFAULT_VERBOSITY = "medium"


@dataclass
class Settings:
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    model: str = DEFAULT_MODEL
    max_completion_tokens: int = DEFAULT_MAX_COMPLETION_TOKENS
    reasoning_effort: str = DEFAULT_REASONING_EFFORT
    verbosity: str = DEFAULT_VERBOSITY
    request_timeout_seconds: float = 120.0
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    config_dir: Path = DEFAULT_CONFIG_DIR
    cors_allow_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        max_tokens = _parse_optional_int(os.getenv("ANALYSIS_MAX_COMPLETION_TOKENS"))
        config_dir = os.getenv("CONFIG_DIR", "").strip()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip().rstrip("/"),
            model=os.getenv("ANALYSIS_MODEL", DEFAULT_MODEL).strip() or DEFAULT_MODEL,
            max_completion_tokens=max_tokens if max_tokens and max_tokens > 0 else DEFAULT_MAX_COMPLETION_TOKENS,
            reasoning_effort=os.getenv("ANALYSIS_REASONING_EFFORT", DEFAULT_REASONING_EFFORT).strip(),
            verbosity=os.getenv("ANALYSIS_VERBOSITY", DEFAULT_VERBOSITY).strip(),
            request_timeout_seconds=_parse_timeout_seconds(
                os.getenv("ANALYSIS_REQUEST_TIMEOUT_SECONDS"),
                fallback=120.0,
            ),
            supabase_url=os.getenv("SUPABASE_URL", "").strip().rstrip("/"),
            supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip(),
            config_dir=Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR,
            cors_allow_origins=_parse_csv(os.getenv("CORS_ALLOW_ORIGINS"), default=["*"]),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    @property
    def uses_supabase(self) -> bool:
        return bool(self.supabase_url)


def _parse_timeout_seconds(raw_value: str | None, *, fallback: float) -> float:
    if raw_value is None:
        return fallback
    try:
        parsed = float(raw_value)
    except ValueError:
        return fallback
    if parsed <= 0:
        return fallback
    return parsed


def _parse_optional_int(raw_value: str | None) -> int | None:
    if raw_value is None:
        return None
    try:
        parsed = int(raw_value)
    except ValueError:
        return None
    return parsed


def _parse_csv(raw_value: str | None, *, default: list[str]) -> list[str]:
    if raw_value is None:
        return list(default)
    values = [item.strip() for item in raw_value.split(",") if item.strip()]
    return values or list(default)
