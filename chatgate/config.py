import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_int(name: str, default: int) -> int:
    try:
        return int(_get_env(name, str(default)) or default)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    try:
        return float(_get_env(name, str(default)) or default)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    max_message_length: int = 200
    rl_window_seconds: float = 60.0
    rl_max_requests: int = 10
    rl_ban_seconds: float = 300.0
    rate_limiting_disabled: bool = False
    cache_ttl_seconds: float = 3600.0
    cache_similarity_threshold: float = 0.6
    cache_max_size: int = 100
    allowed_origin: str = "*"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    assistant_id: str | None = None
    assistant_model: str = "gpt-4o-mini"
    assistant_name: str = "All-Star Talent Recruiting Assistant"
    assistant_timeout_s: float = 20.0
    run_poll_interval_s: float = 0.5
    run_max_wait_s: float = 60.0
    kv_rest_api_url: str = ""
    kv_rest_api_token: str = ""
    analytics_prefix: str = "ast"


def load_settings() -> Settings:
    max_message_length = _get_int("MAX_MESSAGE_LENGTH", 200)
    rl_window_seconds = _get_int("RL_WINDOW_SECONDS", 60)
    rl_max_requests = _get_int("RL_MAX_REQUESTS", 10)
    rl_ban_seconds = _get_int("RL_BAN_SECONDS", 300)
    disable_rl = (_get_env("DISABLE_RATE_LIMITING", "false") or "false").strip().lower() in {"1", "true", "yes", "on"}

    cache_ttl_seconds = _get_int("CACHE_TTL_SECONDS", 3600)
    similarity = _get_float("CACHE_SIMILARITY_THRESHOLD", 0.6)
    cache_max_size = _get_int("CACHE_MAX_SIZE", 100)

    poll_ms = _get_int("RUN_POLL_INTERVAL_MS", 500)

    return Settings(
        max_message_length=max(1, min(max_message_length, 10000)),
        rl_window_seconds=float(max(1, min(rl_window_seconds, 3600))),
        rl_max_requests=max(1, min(rl_max_requests, 100000)),
        rl_ban_seconds=float(max(0, min(rl_ban_seconds, 86400))),
        rate_limiting_disabled=disable_rl,
        cache_ttl_seconds=float(max(0, cache_ttl_seconds)),
        cache_similarity_threshold=max(0.0, min(similarity, 1.0)),
        cache_max_size=max(1, min(cache_max_size, 100000)),
        allowed_origin=(_get_env("ALLOWED_ORIGIN", "*") or "*").strip(),
        openai_api_key=(_get_env("OPENAI_API_KEY", "") or "").strip(),
        openai_base_url=(_get_env("OPENAI_BASE_URL", "https://api.openai.com/v1") or "").strip(),
        assistant_id=(_get_env("ASSISTANT_ID") or "").strip() or None,
        assistant_model=(_get_env("ASSISTANT_MODEL", "gpt-4o-mini") or "gpt-4o-mini").strip(),
        assistant_name=(_get_env("ASSISTANT_NAME", "All-Star Talent Recruiting Assistant") or "").strip(),
        assistant_timeout_s=float(max(1, min(_get_int("ASSISTANT_TIMEOUT_S", 20), 120))),
        run_poll_interval_s=max(50, min(poll_ms, 5000)) / 1000.0,
        run_max_wait_s=float(max(1, min(_get_int("RUN_MAX_WAIT_S", 60), 600))),
        kv_rest_api_url=(_get_env("KV_REST_API_URL", "") or "").strip(),
        kv_rest_api_token=(_get_env("KV_REST_API_TOKEN", "") or "").strip(),
        analytics_prefix=(_get_env("ANALYTICS_PREFIX", "ast") or "ast").strip(),
    )
