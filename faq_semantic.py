"""
FAQ Audit - Semantic Validator
Model-assisted review: does each answer address its question, and is it free of
obvious spelling/grammar errors. Pairs are sent in a bounded number of batches
per hotel.
"""

import json
import math
from dataclasses import dataclass, field

from audit_config import clamp_calls
from faq_models import Issue, gpt_issue

# Model output is capped at a few thousand tokens; anything far larger is not a reply
MAX_RESPONSE_CHARS = 50000
MAX_BLOCK_STARTS = 64

SYSTEM_PROMPT = " ".join([
    "You are a strict FAQ validator.",
    "Given a list of Q&A items scraped from a hotel's FAQ page (raw DOM content),",
    "identify material issues that a typical end-user would notice in the Q&A pairs ONLY",
    "(ignore the rest of the page).",
    "",
    "Flag BOTH:",
    "- semantic mismatch (answer doesn't address the question), and",
    "- obvious spelling/grammar issues (clear, non-stylistic errors).",
    "Do not flag style, tone or wording preferences.",
    "",
    "Return ONLY valid JSON shaped as:",
    '{"issues":[{"index":number,"reason":string}]}',
    "The 'index' is the 0-based item number shown in the list.",
    "",
    "Prefix 'reason' with a category tag, e.g.:",
    "- [mismatch] answer talks about parking but the question is about check-in",
    "- [spelling] accomodation -> accommodation",
    "- [grammar] missing verb in the sentence",
])


# =============================================================================
# BATCHING
# =============================================================================

@dataclass
class Batch:
    items: list
    base_index: int = 0


def plan_batches(groups, all_qas, max_calls: int = 1) -> list[Batch]:
    """Split a hotel's pairs into at most `max_calls` batches.

    With groups, each non-empty group is a batch until the budget runs out; the
    uncovered tail is one more batch, or folded into the last one. Without
    groups, the list is cut into even chunks.
    """
    all_qas = list(all_qas)
    budget = clamp_calls(max_calls)
    if not all_qas:
        return []
    if budget <= 1:
        return [Batch(items=all_qas, base_index=0)]

    batches = []
    if groups:
        base = 0
        for g in groups:
            if not g.items:
                continue
            if len(batches) >= budget:
                break
            batches.append(Batch(items=list(g.items), base_index=base))
            base += len(g.items)
        covered = sum(len(b.items) for b in batches)
        remaining = all_qas[covered:]
        if remaining:
            if batches and len(batches) >= budget:
                batches[-1].items.extend(remaining)
            else:
                batches.append(Batch(items=remaining, base_index=covered))
        return batches

    size = math.ceil(len(all_qas) / budget)
    for start in range(0, len(all_qas), size):
        batches.append(Batch(items=all_qas[start:start + size], base_index=start))
    return batches


def build_prompt(qas) -> str:
    listing = "\n\n".join(f"{i}. Q: {qa.q}\nA: {qa.a}" for i, qa in enumerate(qas))
    return f"List:\n{listing}\n\nReturn ONLY JSON as specified."


# =============================================================================
# PARSING
# =============================================================================

@dataclass
class Findings:
    items: list = field(default_factory=list)


@dataclass
class Malformed:
    reason: str


def _json_blocks(raw: str, max_starts: int = MAX_BLOCK_STARTS):
    """Yield every balanced {...} substring, outermost first, left to right.

    At most `max_starts` opening braces are tried, each scanned once to its
    match or to the end of `raw`.
    """
    starts = 0
    for start, ch in enumerate(raw):
        if ch != "{":
            continue
        starts += 1
        if starts > max_starts:
            return
        depth = 0
        in_str = False
        escaped = False
        for end in range(start, len(raw)):
            c = raw[end]
            if in_str:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_str = False
                continue
            if c == '"':
                in_str = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    yield raw[start:end + 1]
                    break


def parse_findings(raw: str):
    """Findings for the first JSON object carrying an `issues` list, else Malformed."""
    if not raw or not raw.strip():
        return Malformed("empty response")
    if len(raw) > MAX_RESPONSE_CHARS:
        return Malformed(f"response longer than {MAX_RESPONSE_CHARS} chars")
    for block in _json_blocks(raw):
        try:
            obj = json.loads(block)
        except (json.JSONDecodeError, RecursionError):
            continue
        if isinstance(obj, dict) and isinstance(obj.get("issues"), list):
            return Findings(items=obj["issues"])
    return Malformed("no JSON object with an 'issues' list")


def _as_index(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


# =============================================================================
# VALIDATOR
# =============================================================================

class SemanticValidator:
    def __init__(self, llm, max_calls: int = 1, model: str = None):
        self.llm = llm
        self.max_calls = clamp_calls(max_calls)
        self.model = model

    def check_batch(self, qas, base_index: int) -> list[Issue]:
        try:
            raw = self.llm.submit(build_prompt(qas), system=SYSTEM_PROMPT, model=self.model)
        except Exception as e:
            print(f"    [LLM] Semantic check failed for items {base_index + 1}-{base_index + len(qas)}: {e}")
            return [gpt_issue(qa, "inference_error", base_index + i) for i, qa in enumerate(qas)]

        result = parse_findings(raw)
        if isinstance(result, Malformed):
            print(f"    [LLM] Unreadable model output ({result.reason}), no issues taken from this batch")
            return []

        issues = []
        for entry in result.items:
            if not isinstance(entry, dict):
                continue
            local = _as_index(entry.get("index"))
            if local is None or not 0 <= local < len(qas):
                continue
            reason = entry.get("reason")
            reason = str(reason) if reason not in (None, "") else "mismatch"
            issues.append(gpt_issue(qas[local], reason, base_index + local))
        return issues

    def check(self, groups, all_qas) -> list[Issue]:
        issues = []
        for batch in plan_batches(groups, all_qas, self.max_calls):
            issues.extend(self.check_batch(batch.items, batch.base_index))
        return issues
