"""
FAQ Audit - LLM Client
Text completions via Gemini (primary) or Anthropic (fallback), with retry and
a run-wide usage guard on call count and tokens.
"""

import time

import anthropic
from google import genai
from google.genai import types

from audit_config import AuditSettings

GEMINI_MODEL = "gemini-2.0-flash"
ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
MAX_OUTPUT_TOKENS = 2000
COST_PER_CALL = 0.01
HIGH_USAGE_RATIO = 0.8


class ModelCallError(Exception):
    """The model could not be called, or every retry failed."""


# =============================================================================
# USAGE GUARD
# =============================================================================

class UsageGuard:
    """Caps model calls for one run and keeps a token tally."""

    def __init__(self, max_calls: int = 200):
        self.max_calls = max_calls
        self.calls = 0
        self.tokens = 0

    def can_make_call(self) -> bool:
        if self.calls >= self.max_calls:
            print(f"  [LLM] Call limit reached ({self.max_calls})")
            return False
        if self.calls >= self.max_calls * HIGH_USAGE_RATIO:
            print(f"  [LLM] {self.calls}/{self.max_calls} calls used")
        return True

    def record_call(self, tokens: int = 0):
        self.calls += 1
        self.tokens += tokens or 0

    def status(self) -> dict:
        return {
            "calls": self.calls,
            "max_calls": self.max_calls,
            "tokens": self.tokens,
            "cost": round(self.calls * COST_PER_CALL, 3),
            "remaining": max(0, self.max_calls - self.calls),
        }

    def show_status(self):
        s = self.status()
        print("\n  LLM usage:")
        print(f"    Calls:  {s['calls']}/{s['max_calls']} ({s['remaining']} left)")
        print(f"    Tokens: {s['tokens']}")
        print(f"    Cost:   ~${s['cost']:.3f}")
        if s["max_calls"] and s["calls"] / s["max_calls"] > HIGH_USAGE_RATIO:
            print("    [!] High usage")

    def reset(self):
        self.calls = 0
        self.tokens = 0


# =============================================================================
# CLIENT
# =============================================================================

def pick_provider(settings: AuditSettings):
    if settings.gemini_api_key:
        return "gemini"
    if settings.anthropic_api_key:
        return "anthropic"
    return None


class LLMClient:
    """submit(prompt) -> completion text. Raises ModelCallError on failure."""

    def __init__(self, settings: AuditSettings, guard: UsageGuard = None, sleep=time.sleep):
        self.settings = settings
        self.guard = guard or UsageGuard(settings.llm_max_calls)
        self.provider = pick_provider(settings)
        self.max_retries = settings.llm_max_retries
        self._sleep = sleep
        self._client = None

    def _get_client(self):
        if self._client is None:
            if self.provider == "gemini":
                self._client = genai.Client(api_key=self.settings.gemini_api_key)
            else:
                self._client = anthropic.Anthropic(api_key=self.settings.anthropic_api_key)
        return self._client

    def _call_gemini(self, prompt: str, system, model) -> tuple[str, int]:
        config = types.GenerateContentConfig(
            system_instruction=system,
            max_output_tokens=MAX_OUTPUT_TOKENS,
        )
        response = self._get_client().models.generate_content(
            model=model or GEMINI_MODEL,
            contents=prompt,
            config=config,
        )
        usage = getattr(response, "usage_metadata", None)
        tokens = getattr(usage, "total_token_count", 0) or 0
        return (response.text or "").strip(), tokens

    def _call_anthropic(self, prompt: str, system, model) -> tuple[str, int]:
        kwargs = {
            "model": model or ANTHROPIC_MODEL,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        response = self._get_client().messages.create(**kwargs)
        usage = getattr(response, "usage", None)
        tokens = (getattr(usage, "input_tokens", 0) or 0) + (getattr(usage, "output_tokens", 0) or 0)
        text = "".join(getattr(block, "text", "") for block in response.content)
        return text.strip(), tokens

    def submit(self, prompt: str, system: str = None, model: str = None) -> str:
        if not self.provider:
            raise ModelCallError("No AI provider configured (set GEMINI_API_KEY or ANTHROPIC_API_KEY)")

        call = self._call_gemini if self.provider == "gemini" else self._call_anthropic
        base_delay = 1.0
        last_error = None

        for attempt in range(self.max_retries + 1):
            if not self.guard.can_make_call():
                raise ModelCallError(f"LLM call limit reached ({self.guard.max_calls})")
            try:
                text, tokens = call(prompt, system, model)
            except Exception as e:
                self.guard.record_call(0)
                last_error = e
                if attempt < self.max_retries:
                    delay = base_delay * (2 ** attempt)
                    print(f"    [LLM] {self.provider} call failed ({e}), retrying in {delay}s...")
                    self._sleep(delay)
                continue
            self.guard.record_call(tokens)
            return text

        raise ModelCallError(f"{self.provider} call failed after {self.max_retries + 1} attempt(s): {last_error}")
