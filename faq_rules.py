"""
FAQ Audit - Rule Validator
Deterministic checks over a hotel's Q/A list: empty/short/placeholder answers,
answers that talk about the wrong topic, and one answer pasted under many
questions.

Topic rules are data. The built-in ones cover the minibar/check-in mix-up;
more can be loaded from a JSON file (FAQ_AUDIT_TOPIC_RULES), e.g.

    [{"question": "parking|car park", "answer": "breakfast|buffet",
      "reason": "Answer seems about breakfast, not parking"}]
"""

import json
import re
from collections import defaultdict
from dataclasses import dataclass

from faq_models import Issue, normalize_ws, rule_issue

MIN_ANSWER_LENGTH = 5
DUPLICATE_PREFIX_LENGTH = 200
DUPLICATE_THRESHOLD = 3

PLACEHOLDER_RE = re.compile(r"lorem|tbd|coming soon|placeholder|to be determined", re.I)


@dataclass(frozen=True)
class TopicMismatchRule:
    question_pattern: str
    answer_pattern: str
    reason: str

    def matches(self, q: str, a: str) -> bool:
        return bool(re.search(self.question_pattern, q, re.I)
                    and re.search(self.answer_pattern, a, re.I))


DEFAULT_TOPIC_RULES = (
    TopicMismatchRule(
        question_pattern=r"mini\s*bar|mini-?fridge|fridge|minibar",
        answer_pattern=r"check\s*in|check\s*out|arrival|after\s*\d{1,2}[:.]\d{2}",
        reason="Answer seems about check-in, not minibar",
    ),
    TopicMismatchRule(
        question_pattern=r"check\s*in|check\s*out|arrival|departure",
        answer_pattern=r"minibar|mini\s*bar|fridge|drinks|beverage",
        reason="Answer seems about minibar, not check-in",
    ),
)


def load_topic_rules(path: str = None) -> tuple:
    """Built-in topic rules plus any defined in the JSON file at `path`."""
    rules = list(DEFAULT_TOPIC_RULES)
    if not path:
        return tuple(rules)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        print(f"  [rules] Topic rules file not found: {path} (using built-in rules)")
        return tuple(rules)

    if isinstance(data, dict):
        data = data.get("rules", [])
    for entry in data:
        try:
            rule = TopicMismatchRule(
                question_pattern=entry["question"],
                answer_pattern=entry["answer"],
                reason=entry["reason"],
            )
            re.compile(rule.question_pattern)
            re.compile(rule.answer_pattern)
        except (KeyError, TypeError, re.error) as e:
            print(f"  [rules] Skipping bad topic rule {entry!r}: {e}")
            continue
        rules.append(rule)
    return tuple(rules)


def answer_prefix(answer: str) -> str:
    return normalize_ws(answer).lower()[:DUPLICATE_PREFIX_LENGTH]


def check_pair(qa, index: int, topic_rules=DEFAULT_TOPIC_RULES) -> list[Issue]:
    a = (qa.a or "").strip()
    issues = []
    if not a:
        issues.append(rule_issue(qa, "Empty answer", index))
    if len(a) < MIN_ANSWER_LENGTH:
        issues.append(rule_issue(qa, "Answer too short", index))
    if PLACEHOLDER_RE.search(a):
        issues.append(rule_issue(qa, "Placeholder answer", index))
    for rule in topic_rules:
        if rule.matches(qa.q, a):
            issues.append(rule_issue(qa, rule.reason, index))
    return issues


def check_duplicates(qas) -> list[Issue]:
    """Flag every pair whose answer prefix is shared by DUPLICATE_THRESHOLD+ pairs."""
    by_prefix = defaultdict(list)
    for i, qa in enumerate(qas):
        by_prefix[answer_prefix(qa.a)].append(i)

    issues = []
    for indices in by_prefix.values():
        if len(indices) < DUPLICATE_THRESHOLD:
            continue
        for i in indices:
            issues.append(rule_issue(qas[i], "Same answer repeated for many questions", i))
    return issues


def check_rules(qas, topic_rules=DEFAULT_TOPIC_RULES) -> list[Issue]:
    qas = list(qas)
    issues = []
    for i, qa in enumerate(qas):
        issues.extend(check_pair(qa, i, topic_rules))
    issues.extend(check_duplicates(qas))
    return issues
