"""
FAQ Audit - SEO / Schema Checks
Page <title>, meta description and FAQPage JSON-LD for one FAQ page. All
findings are page-level issues (index -1).
"""

import json
import re

from bs4 import BeautifulSoup

from faq_models import QA, SeoCheckResult, normalize_ws, page_issue

MIN_TITLE_LENGTH = 10
MIN_DESCRIPTION_LENGTH = 30
FAQ_TYPE_RE = re.compile(r"faqpage", re.I)


def _type_matches(obj: dict) -> bool:
    t = obj.get("@type") or obj.get("@TYPE") or ""
    types = t if isinstance(t, list) else [t]
    return any(FAQ_TYPE_RE.search(str(x)) for x in types)


def find_faq_pages(objects) -> list[dict]:
    """FAQPage objects among `objects`, descending into @graph arrays."""
    found = []

    def visit(obj):
        if not isinstance(obj, dict):
            return
        if _type_matches(obj):
            found.append(obj)
        graph = obj.get("@graph")
        if isinstance(graph, list):
            for child in graph:
                visit(child)

    for obj in objects:
        visit(obj)
    return found


def _answer_text(accepted) -> str:
    def one(a):
        if isinstance(a, dict):
            return str(a.get("text") or a.get("articleBody") or "")
        return ""

    if isinstance(accepted, list):
        return " ".join(one(a) for a in accepted)
    return one(accepted)


def schema_pairs(faq: dict):
    """Yield (q, a) for every mainEntity entry; either may be empty."""
    main = faq.get("mainEntity") or faq.get("mainEntityOfPage") or []
    entries = main if isinstance(main, list) else [main]
    for entry in entries:
        if not isinstance(entry, dict):
            yield "", ""
            continue
        q = normalize_ws(str(entry.get("name") or entry.get("question") or ""))
        accepted = entry.get("acceptedAnswer") or entry.get("acceptedAnswers") or entry.get("answer")
        yield q, normalize_ws(_answer_text(accepted))


def check_seo(html: str) -> SeoCheckResult:
    soup = BeautifulSoup(html or "", "lxml")
    result = SeoCheckResult()

    # --- meta ---
    title_tag = soup.select_one("head > title")
    title = title_tag.get_text().strip() if title_tag else ""
    result.meta_title = title
    if not title:
        result.issues.append(page_issue("[meta] Missing <title> tag"))
    elif len(title) < MIN_TITLE_LENGTH:
        result.issues.append(page_issue("[meta] <title> is very short (less than 10 chars)"))

    desc_tag = soup.select_one('head meta[name="description"]')
    desc = (desc_tag.get("content") or "").strip() if desc_tag else ""
    result.meta_description = desc
    if not desc:
        result.issues.append(page_issue('[meta] Missing meta "description"'))
    elif len(desc) < MIN_DESCRIPTION_LENGTH:
        result.issues.append(page_issue("[meta] description is very short (less than 30 chars)"))

    # --- JSON-LD ---
    scripts = soup.find_all("script", attrs={"type": "application/ld+json"})
    if not scripts:
        result.issues.append(page_issue("[schema] No JSON-LD script tags found on page"))
        return result

    objects = []
    for script in scripts:
        txt = script.string or script.get_text()
        if not txt or not txt.strip():
            continue
        try:
            parsed = json.loads(txt)
        except (json.JSONDecodeError, RecursionError):
            result.issues.append(page_issue("[schema] Invalid JSON-LD (parse error)"))
            continue
        if isinstance(parsed, list):
            objects.extend(parsed)
        else:
            objects.append(parsed)

    if not objects:
        result.issues.append(page_issue("[schema] No valid JSON-LD objects parsed"))
        return result

    faq_pages = find_faq_pages(objects)
    if not faq_pages:
        result.issues.append(page_issue("[schema] No @type: FAQPage object found in JSON-LD"))
        return result

    for faq in faq_pages:
        for q, a in schema_pairs(faq):
            if not q or not a:
                result.issues.append(
                    page_issue("[schema] Question or answer missing in FAQPage mainEntity item"))
            else:
                result.schema_qas.append(QA(q=q, a=a))

    if not result.schema_qas:
        result.issues.append(page_issue("[schema] FAQPage exists but contains no valid Q/A pairs"))

    result.schema_ok = bool(result.schema_qas) and not any(
        i.reason.startswith("[schema]") for i in result.issues)
    return result
