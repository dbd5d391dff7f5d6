"""
FAQ Audit - FAQ Extractor
Finds question/answer pairs in a static FAQ page.

Each item container is run through an ordered list of pairing strategies
(definition list, <details>, ARIA trigger/panel, generic container); the first
one that yields pairs wins. Pages with no recognizable containers fall back to
h3/h4 heading blocks.
"""

import copy
import re

from bs4 import BeautifulSoup

from faq_models import Group, QA, make_qa, normalize_ws

SECTION_KEYWORDS = re.compile(
    r"faq|question|policy|stay|room|facility|service|booking|payment|amenit", re.I
)

ITEM_SELECTOR = ", ".join([
    ".accordion-item",
    ".accordion__item",
    ".faq-item",
    ".faq__item",
    "[data-faq-item]",
    "[data-accordion-item]",
    "details",
    "dl",
])

QUESTION_SELECTOR = "summary, h2, h3, h4, .question, [data-question], [role=button]"
GENERIC_QUESTION_SELECTOR = "summary, h2, h3, h4, button, .question, [data-question]"
ARIA_ANSWER_SELECTOR = ".answer, .accordion-panel, .accordion-body, [data-answer]"
GENERIC_ANSWER_SELECTOR = ".answer, .accordion-body, .accordion__panel, [data-answer]"
STRIP_SELECTOR = "summary, h1, h2, h3, h4, h5, h6, button, .question, [data-question], [role=button]"

FALLBACK_HEADINGS = ("h3", "h4")
FALLBACK_BLOCKS = ("p", "div", "ul", "ol", "li")

_SPACE_BEFORE_PUNCT = re.compile(r"\s+([.,;:!?)])")


def _text(el) -> str:
    if el is None:
        return ""
    return _SPACE_BEFORE_PUNCT.sub(r"\1", normalize_ws(el.get_text(" ")))


def _text_without(el, selector: str) -> str:
    """Text of `el` with every `selector` descendant removed. `el` is left untouched."""
    clone = copy.copy(el)
    for node in clone.select(selector):
        node.extract()
    return _text(clone)


def _first_text(el, selector: str) -> str:
    return _text(el.select_one(selector))


def _collect(pairs) -> list[QA]:
    out = []
    for q, a in pairs:
        qa = make_qa(q, a)
        if qa:
            out.append(qa)
    return out


# =============================================================================
# PAIRING STRATEGIES
# =============================================================================

def pair_definition_list(item, soup) -> list[QA]:
    """<dt>/<dd> pairs, matched by position."""
    if item.name != "dl":
        return []
    dts = item.find_all("dt")
    dds = item.find_all("dd")
    return _collect((_text(dt), _text(dd)) for dt, dd in zip(dts, dds))


def pair_disclosure(item, soup) -> list[QA]:
    """<details>: summary is the question, the rest is the answer."""
    if item.name != "details":
        return []
    summary = item.find("summary")
    if summary is None:
        return []
    return _collect([(_text(summary), _text_without(item, "summary"))])


def pair_aria_trigger(item, soup) -> list[QA]:
    """A control with aria-controls; its referenced panel holds the answer."""
    trigger = item.find(attrs={"aria-controls": True})
    if trigger is None:
        if item.has_attr("aria-controls"):
            trigger = item
        else:
            trigger = item.find_parent(attrs={"aria-controls": True})
    if trigger is None:
        return []

    ctrl = (trigger.get("aria-controls") or "").split()
    panel = soup.find(id=ctrl[0]) if ctrl else None

    q = _text(trigger) or _first_text(item, QUESTION_SELECTOR)
    a = _text(panel) or _first_text(item, ARIA_ANSWER_SELECTOR)
    if not a:
        a = _text_without(item, STRIP_SELECTOR)
    return _collect([(q, a)])


def pair_generic_container(item, soup) -> list[QA]:
    """First heading/button is the question; answer class or leftover text is the answer."""
    q = _first_text(item, GENERIC_QUESTION_SELECTOR) or _first_text(item, "[role=button]")
    a = _first_text(item, GENERIC_ANSWER_SELECTOR)
    if not a:
        a = _text_without(item, STRIP_SELECTOR)
    return _collect([(q, a)])


STRATEGIES = [
    pair_definition_list,
    pair_disclosure,
    pair_aria_trigger,
    pair_generic_container,
]


def pair_item(item, soup, strategies=None) -> list[QA]:
    """Run the cascade on one container; first strategy with results wins."""
    for strategy in strategies or STRATEGIES:
        found = strategy(item, soup)
        if found:
            return found
    return []


def heading_blocks(headings) -> list[QA]:
    """Last resort: each h3/h4 is a question, following text blocks are its answer."""
    pairs = []
    for h in headings:
        parts = []
        for sib in h.find_next_siblings():
            if sib.name in FALLBACK_HEADINGS:
                break
            if sib.name in FALLBACK_BLOCKS:
                parts.append(_text(sib))
        pairs.append((_text(h), " ".join(parts)))
    return _collect(pairs)


# =============================================================================
# EXTRACTOR
# =============================================================================

def _in_scope(el, scope_ids: set) -> bool:
    if id(el) in scope_ids:
        return True
    return any(id(p) in scope_ids for p in el.parents)


class FaqExtractor:
    """Groups a FAQ page into labelled sections of Q/A pairs."""

    def __init__(self, strategies=None):
        self.strategies = strategies or STRATEGIES

    def _collect_scope(self, soup, scope: list, items: list, headings: list) -> list[QA]:
        scope_ids = {id(el) for el in scope}
        out = []
        for item in items:
            if _in_scope(item, scope_ids):
                out.extend(pair_item(item, soup, self.strategies))
        if out:
            return out
        return heading_blocks([h for h in headings if _in_scope(h, scope_ids)])

    def extract(self, html: str) -> list[Group]:
        soup = BeautifulSoup(html or "", "lxml")
        body = soup.body or soup
        items = soup.select(ITEM_SELECTOR)
        headings = soup.find_all(FALLBACK_HEADINGS)

        sections = [h for h in soup.find_all(["h2", "h3"])
                    if _text(h) and SECTION_KEYWORDS.search(_text(h))]

        raw_groups = []
        for i, heading in enumerate(sections):
            until = sections[i + 1] if i + 1 < len(sections) else None
            scope = []
            for sib in heading.find_next_siblings():
                if sib is until:
                    break
                scope.append(sib)
            found = self._collect_scope(soup, scope, items, headings)
            if found:
                raw_groups.append(Group(label=_text(heading), items=found))

        if not raw_groups:
            found = self._collect_scope(soup, [body], items, headings)
            if found:
                raw_groups.append(Group(label="FAQ", items=found))

        # A pair belongs to the first section that produced it
        seen = set()
        groups = []
        for g in raw_groups:
            unique = []
            for qa in g.items:
                if qa.key in seen:
                    continue
                seen.add(qa.key)
                unique.append(qa)
            if unique:
                groups.append(Group(label=g.label, items=unique))
        return groups


def extract(html: str) -> list[Group]:
    return FaqExtractor().extract(html)


def flatten(groups) -> list[QA]:
    return [qa for g in groups for qa in g.items]
