"""
FAQ Audit - Configuration
Environment-style settings, read once at startup by the CLI and passed
explicitly to every component that needs them.
"""

import os
from dataclasses import dataclass
from typing import Optional

USER_AGENT = "Mozilla/5.0 (compatible; FaqAuditBot/1.0; +hotel FAQ QA scanner)"
ACCEPT_LANGUAGE = "en-GB,en;q=0.9"

MIN_CALLS_PER_HOTEL = 1
MAX_CALLS_PER_HOTEL = 6


def _env_int(name: str, default: int, env=None) -> int:
    """Integer from the environment; default when unset or unparsable."""
    env = os.environ if env is None else env
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        print(f"  [config] Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_str(name: str, env=None) -> Optional[str]:
    env = os.environ if env is None else env
    value = (env.get(name) or "").strip()
    return value or None


def clamp_calls(value: int) -> int:
    return max(MIN_CALLS_PER_HOTEL, min(MAX_CALLS_PER_HOTEL, value))


@dataclass
class AuditSettings:
    render: bool = False
    playwright_channel: Optional[str] = None
    max_calls_per_hotel: int = 1
    click_pause_ms: int = 120
    loadmore_cycles: int = 8
    scroll_steps: int = 12
    scroll_delta: int = 1400
    request_timeout: int = 15
    nav_timeout_ms: int = 30000
    idle_timeout_ms: int = 5000
    model: Optional[str] = None
    topic_rules_path: Optional[str] = None
    output_dir: str = "reports"
    llm_max_calls: int = 200
    llm_max_retries: int = 2
    gemini_api_key: str = ""
    anthropic_api_key: str = ""
    user_agent: str = USER_AGENT

    @classmethod
    def from_env(cls, env=None) -> "AuditSettings":
        env = os.environ if env is None else env
        # A zero or garbage budget falls back to one call, as if unset
        calls = _env_int("FAQ_AUDIT_MAX_CALLS_PER_HOTEL", 1, env) or 1
        return cls(
            render=(env.get("FAQ_AUDIT_RENDER") or "").strip() == "1",
            playwright_channel=_env_str("FAQ_AUDIT_PLAYWRIGHT_CHANNEL", env),
            max_calls_per_hotel=clamp_calls(calls),
            click_pause_ms=max(0, _env_int("FAQ_AUDIT_CLICK_PAUSE_MS", 120, env)),
            loadmore_cycles=max(0, _env_int("FAQ_AUDIT_LOADMORE_CYCLES", 8, env)),
            scroll_steps=max(0, _env_int("FAQ_AUDIT_SCROLL_STEPS", 12, env)),
            scroll_delta=_env_int("FAQ_AUDIT_SCROLL_DELTA", 1400, env),
            request_timeout=max(1, _env_int("FAQ_AUDIT_REQUEST_TIMEOUT", 15, env)),
            nav_timeout_ms=max(1000, _env_int("FAQ_AUDIT_NAV_TIMEOUT_MS", 30000, env)),
            model=_env_str("FAQ_AUDIT_MODEL", env),
            topic_rules_path=_env_str("FAQ_AUDIT_TOPIC_RULES", env),
            output_dir=_env_str("FAQ_AUDIT_OUTPUT_DIR", env) or "reports",
            llm_max_calls=max(1, _env_int("LLM_MAX_CALLS", 200, env)),
            llm_max_retries=max(0, _env_int("LLM_MAX_RETRIES", 2, env)),
            gemini_api_key=env.get("GEMINI_API_KEY", "") or "",
            anthropic_api_key=env.get("ANTHROPIC_API_KEY", "") or "",
        )
