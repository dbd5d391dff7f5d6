"""
FAQ Audit - Data Model
Value types shared by the crawler, extractor, validators and report compiler.
"""

import re
from dataclasses import dataclass, field
from typing import Optional


REPORT_HEADER = [
    "Hotel", "FAQ", "Status", "Kind", "#", "Question", "Answer", "Reason",
    "Meta title", "Meta description", "Schema",
]

_WS_RE = re.compile(r"\s+")


def normalize_ws(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class HotelItem:
    name: str
    faq_url: Optional[str] = None


@dataclass(frozen=True)
class QA:
    q: str
    a: str

    @property
    def key(self) -> str:
        return normalize_ws(f"{self.q}||{self.a}").lower()


@dataclass
class Group:
    label: str
    items: list = field(default_factory=list)


@dataclass(frozen=True)
class Issue:
    kind: str  # "rule" or "gpt"
    q: str
    a: str
    reason: str
    index: int  # position in the hotel's Q/A list, -1 for page-level findings


@dataclass
class FetchResult:
    html: str
    qas: list = field(default_factory=list)


@dataclass
class SeoCheckResult:
    issues: list = field(default_factory=list)
    schema_qas: list = field(default_factory=list)
    meta_title: str = ""
    meta_description: str = ""
    schema_ok: bool = False


@dataclass
class AuditRow:
    hotel: str
    faq_url: str = ""
    status: str = ""
    kind: str = ""
    number: str = ""
    question: str = ""
    answer: str = ""
    reason: str = ""
    meta_title: str = ""
    meta_description: str = ""
    schema: str = ""
    is_summary: bool = True

    def to_cells(self) -> list[str]:
        return [
            self.hotel, self.faq_url, self.status, self.kind, self.number,
            self.question, self.answer, self.reason,
            self.meta_title, self.meta_description, self.schema,
        ]


@dataclass
class AuditSummary:
    spreadsheet_id: str
    hotels_processed: int = 0
    hotels_with_faq: int = 0
    hotels_with_problems: int = 0
    rows: list = field(default_factory=list)


# =============================================================================
# CONSTRUCTORS / HELPERS
# =============================================================================

def make_qa(q: str, a: str) -> Optional[QA]:
    """Build a normalized QA, or None when either side is empty."""
    q, a = normalize_ws(q), normalize_ws(a)
    if not q or not a:
        return None
    return QA(q=q, a=a)


def rule_issue(qa: QA, reason: str, index: int) -> Issue:
    return Issue(kind="rule", q=qa.q, a=qa.a, reason=reason, index=index)


def gpt_issue(qa: QA, reason: str, index: int) -> Issue:
    return Issue(kind="gpt", q=qa.q, a=qa.a, reason=reason, index=index)


def page_issue(reason: str) -> Issue:
    """A page-level finding not tied to one Q/A pair."""
    return Issue(kind="rule", q="", a="", reason=reason, index=-1)


def dedupe_qas(items) -> list[QA]:
    """Drop repeated pairs by normalized, case-insensitive (q + a). First one wins."""
    seen = set()
    out = []
    for qa in items:
        if qa.key in seen:
            continue
        seen.add(qa.key)
        out.append(QA(q=normalize_ws(qa.q), a=normalize_ws(qa.a)))
    return out
