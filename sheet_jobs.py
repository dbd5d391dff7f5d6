"""
FAQ Audit - Sheet Content Jobs
Jobs that work on an FAQ tab already in a workbook (Category | Question |
Answer | ...):

    MetaSchemaJob  - meta title/description/H1 and FAQPage JSON-LD from the Q/A rows
    TranslateJob   - one translated copy of the tab per target language
    RewriteJob     - applies reviewer comments, light grammar fixes and hotel-name mentions
"""

import json
import re
from dataclasses import dataclass, field

from openpyxl.utils import column_index_from_string

from faq_models import QA, make_qa
from validate_lite import ModelOutputMalformed, load_json_object

QUESTION_COL = 1
ANSWER_COL = 2
META_DESCRIPTION_LIMIT = 160
DEFAULT_HOTEL_NAME = "The Hotel"

_TRAILING_BRACKETS = re.compile(r"\s*[(\[{][^)\]}]{0,40}[)\]}]\s*$")
_TRAILING_VERSION = re.compile(
    r"\s*[-_.–—]\s*(updated|edited|final|copy|duplicate|draft|temp|bak|backup|ver\s*\d+|v\d+)\s*$", re.I)
_TRAILING_HEBREW_NOTE = re.compile(r"\s*(נערך|מעודכן|עותק|העתק|מתוקן|טיוטה)\s*$")
_EMPTY_BRACKETS = re.compile(r"\s*(\(\s*\)|\[\s*\]|\{\s*\})\s*$")


def quote_tab(title: str) -> str:
    return "'" + str(title).replace("'", "''") + "'"


def one_line(text: str) -> str:
    return re.sub(r"\s{2,}", " ", re.sub(r"\r?\n+", " ", text or "")).strip()


def sanitize_hotel_title(raw: str) -> str:
    """Workbook title -> hotel name, without '(copy)', '- v2', 'draft' style suffixes."""
    s = (raw or "").strip()
    for pattern in (_TRAILING_BRACKETS, _TRAILING_VERSION, _TRAILING_HEBREW_NOTE, _EMPTY_BRACKETS):
        s = pattern.sub("", s)
    return s.strip()


def collect_qa(rows: list[list[str]]) -> list[QA]:
    """Question (B) / answer (C) pairs from data rows; rows missing either are skipped."""
    out = []
    for row in rows[1:]:
        row = list(row) + [""] * 3
        qa = make_qa(row[QUESTION_COL], row[ANSWER_COL])
        if qa:
            out.append(qa)
    return out


def build_faq_json_ld(qas: list[QA]) -> dict:
    return {
        "@context": "https://schema.org",
        "@type": "FAQPage",
        "mainEntity": [
            {
                "@type": "Question",
                "name": qa.q,
                "acceptedAnswer": {"@type": "Answer", "text": qa.a},
            }
            for qa in qas
        ],
    }


def _col_index(letter: str) -> int:
    """0-based column index for a letter such as 'C'."""
    return column_index_from_string((letter or "").strip().upper()) - 1


def _cell(row, idx: int) -> str:
    return str(row[idx]).strip() if idx < len(row) and row[idx] is not None else ""


# =============================================================================
# META + SCHEMA
# =============================================================================

@dataclass
class MetaSchemaResult:
    tab: str
    hotel_name: str
    meta_title: str
    meta_description: str
    h1: str
    schema: str
    pairs: int


class MetaSchemaJob:
    """Writes meta tags and FAQPage JSON-LD for the first tab of a workbook.

    Layout (defaults): header + values at A70:C71, a blank spacer at E72, the
    "FAQ Schema (JSON-LD)" label at E73 and the <script> block at E74.
    """

    def __init__(self, store):
        self.store = store

    def run(self, spreadsheet_id: str, meta_row: int = 70, schema_row: int = None,
            meta_col: str = "A", schema_col: str = "E") -> MetaSchemaResult:
        schema_row = schema_row or meta_row + 3
        tab = self.store.get_first_sheet_title(spreadsheet_id)
        tab_a1 = quote_tab(tab)

        rows = self.store.read_values(spreadsheet_id, f"{tab_a1}!A:Z")
        if not rows:
            raise ValueError(f"Source tab {tab!r} is empty")

        hotel = sanitize_hotel_title(self.store.get_spreadsheet_title(spreadsheet_id))
        qas = collect_qa(rows)
        if not qas:
            raise ValueError(f"No Q/A rows found in tab {tab!r}")

        meta_title = one_line(f"FAQ | {hotel}")
        h1 = one_line(f"FAQ about {hotel}")
        meta_description = one_line(
            f"Find answers to frequently asked questions about {hotel}. "
            f"Learn about check-in times, parking, Wi-Fi, location, amenities, and more."
        )
        if len(meta_description) > META_DESCRIPTION_LIMIT:
            meta_description = meta_description[:META_DESCRIPTION_LIMIT].strip()

        schema = ('<script type="application/ld+json">\n'
                  f"{json.dumps(build_faq_json_ld(qas), indent=2, ensure_ascii=False)}\n"
                  "</script>")

        self.store.write_values(spreadsheet_id, f"{tab_a1}!{meta_col}{meta_row}", [
            ["Meta Title", "Meta Description", "H1"],
            [meta_title, meta_description, h1],
        ])
        self.store.write_values(spreadsheet_id, f"{tab_a1}!{schema_col}{schema_row - 1}", [
            [""],
            ["FAQ Schema (JSON-LD)"],
            [schema],
        ])
        self.store.format_sheet_like_faq(spreadsheet_id, tab)

        print(f"  [meta] {hotel}: meta at {meta_col}{meta_row}, schema with {len(qas)} Q/A "
              f"at {schema_col}{schema_row + 1}")
        return MetaSchemaResult(tab=tab, hotel_name=hotel, meta_title=meta_title,
                                meta_description=meta_description, h1=h1,
                                schema=schema, pairs=len(qas))


# =============================================================================
# TRANSLATE
# =============================================================================

LANGUAGE_LABELS = {
    "ar": "Arabic", "de": "German", "el": "Greek", "en": "English", "es": "Spanish",
    "fr": "French", "gr": "Greek", "he": "Hebrew", "it": "Italian", "nl": "Dutch",
    "pl": "Polish", "ru": "Russian", "zh": "Chinese",
}

LANGUAGE_NOTES = {
    "de": "Formal, neutral German in third person. Native question forms such as "
          "'Gibt es ...?' or 'Verfügt das Hotel über ...?'. Standard terms: kostenloses WLAN, "
          "Rezeption rund um die Uhr, Zimmerreinigung. Use 'Uhr' for times.",
    "es": "Neutral, polite Spanish in third person. Questions like '¿El hotel dispone de...?'. "
          "Terms: Wi-Fi gratis, recepción 24 horas, servicio de habitaciones. "
          "Put € after the number (15 €) when natural.",
    "fr": "Formal, fluent French in third person. Questions like 'L'hôtel dispose-t-il de ... ?'. "
          "Terms: Wi-Fi gratuit, réception ouverte 24h/24, service d'étage. "
          "French spacing before ? : ; without breaking source formatting.",
    "it": "Formal, courteous Italian in third person. Questions like 'L'hotel dispone di...?'. "
          "Terms: Wi-Fi gratuito, reception aperta 24 ore su 24, servizio in camera.",
    "nl": "Polite, clear Dutch with concise sentences. Questions like 'Beschikt het hotel over...?'. "
          "Terms: gratis wifi, 24-uursreceptie, roomservice.",
    "pl": "Polite, neutral Polish. Questions like 'Czy hotel...?'. "
          "Terms: bezpłatne Wi-Fi, całodobowa recepcja, obsługa pokoju.",
    "ru": "Formal, neutral Russian using impersonal constructions. Questions like 'Есть ли...?'. "
          "Terms: бесплатный Wi-Fi, круглосуточная стойка регистрации.",
    "he": "Formal, clear Hebrew, gender-neutral phrasing where possible. Wi-Fi may stay in Latin script.",
    "zh": "Simplified Chinese, formal and natural, third person. Terms: 免费Wi-Fi, 24小时前台.",
    "ar": "Modern Standard Arabic, formal, third person. Terms: واي فاي مجاني، خدمة الغرف.",
}
for _code, _name in [("de", "german"), ("es", "spanish"), ("fr", "french"), ("it", "italian"),
                     ("nl", "dutch"), ("pl", "polish"), ("ru", "russian"), ("he", "hebrew"),
                     ("zh", "chinese"), ("ar", "arabic")]:
    LANGUAGE_NOTES[_name] = LANGUAGE_NOTES[_code]


def language_label(lang: str) -> str:
    return LANGUAGE_LABELS.get(lang.lower(), lang)


def translation_system_prompt(lang: str) -> str:
    label = language_label(lang)
    return "\n".join([
        f"ROLE: Professional hotel-localization translator for {label}.",
        "TONE: Formal, courteous, neutral, natural; third-person; no slang; no hype.",
        "BRANDING: Keep property/venue/brand names EXACTLY as in source (same casing). "
        "Do NOT translate brand names.",
        "DO-NOT-TRANSLATE: URLs, email addresses, phone numbers, booking/room codes, currency symbols, "
        "units, placeholders/tokens (e.g., [VERIFY], {...}, {{...}}, %s, %1$s).",
        "STRUCTURE: Preserve the exact matrix shape (rows x columns). Do not add/remove/merge/split "
        "cells. Keep empty cells empty.",
        f"LANGUAGE GUARANTEE: Output text fully in {label}, except items listed under Do-Not-Translate.",
        f"TERMINOLOGY: Use consistent, standard hospitality terminology in {label}.",
        "QUALITY: Publication-ready copy for an official hotel website.",
        f"LANGUAGE-SPECIFIC NOTES: {LANGUAGE_NOTES.get(lang.lower(), '')}",
    ])


def translation_prompt(rows: list[list[str]], translate_header: bool) -> str:
    return "\n".join([
        "TASK: Translate EVERY non-empty cell to the target language.",
        f"Translate header row: {'YES' if translate_header else 'NO'}.",
        "Do NOT add commentary.",
        "OUTPUT (STRICT JSON):",
        '{"rows":[["...","..."],["...","..."], ...]}',
        "",
        "INPUT:",
        json.dumps({"rows": rows}, ensure_ascii=False),
    ])


def parse_matrix_or_raise(text: str) -> list[list[str]]:
    obj = load_json_object(text, "translation")
    if not isinstance(obj, dict) or not isinstance(obj.get("rows"), list):
        raise ModelOutputMalformed("Translation JSON must contain a 'rows' array")
    return [
        ["" if cell is None else str(cell) for cell in row] if isinstance(row, list) else []
        for row in obj["rows"]
    ]


def fit_to_shape(translated: list[list[str]], source: list[list[str]]) -> list[list[str]]:
    """Same rows x columns as `source`; any cell the model left out keeps the source text."""
    width = max((len(r) for r in source), default=0)
    out = []
    for r, src_row in enumerate(source):
        row = translated[r] if r < len(translated) else []
        out.append([
            row[c] if c < len(row) else (src_row[c] if c < len(src_row) else "")
            for c in range(width)
        ])
    return out


class TranslateJob:
    def __init__(self, llm, store, model: str = None):
        self.llm = llm
        self.store = store
        self.model = model

    def _source_tab(self, spreadsheet_id: str, source_tab: str = None) -> str:
        first = self.store.get_first_sheet_title(spreadsheet_id)
        if not source_tab or not source_tab.strip():
            print(f"  [translate] No source tab given, using first tab {first!r}")
            return first
        source_tab = source_tab.strip()
        if source_tab not in self.store.list_sheet_titles(spreadsheet_id):
            print(f"  [translate] Tab {source_tab!r} not found, using first tab {first!r}")
            return first
        return source_tab

    def translate_rows(self, rows: list[list[str]], lang: str, translate_header: bool = True):
        raw = self.llm.submit(translation_prompt(rows, translate_header),
                              system=translation_system_prompt(lang), model=self.model)
        translated = fit_to_shape(parse_matrix_or_raise(raw), rows)
        if not translate_header:
            header = list(rows[0])
            translated[0] = header + [""] * (len(translated[0]) - len(header))
        return translated

    def run(self, spreadsheet_id: str, target_langs, source_tab: str = None,
            translate_header: bool = True) -> list[str]:
        """Returns the titles of the tabs written, one per language that succeeded."""
        source_tab = self._source_tab(spreadsheet_id, source_tab)
        source_id = self.store.get_sheet_id_by_title(spreadsheet_id, source_tab)
        rows = self.store.read_values(spreadsheet_id, f"{quote_tab(source_tab)}!A:Z")
        if not rows:
            raise ValueError(f"Source tab {source_tab!r} is empty")

        written = []
        for lang in target_langs:
            new_title = f"{source_tab} – {lang.upper()}"
            try:
                translated = self.translate_rows(rows, lang, translate_header)
            except Exception as e:
                print(f"  [translate] {language_label(lang)} failed: {e}")
                continue

            if new_title in self.store.list_sheet_titles(spreadsheet_id):
                print(f"  [translate] Overwriting existing tab {new_title!r}")
            else:
                self.store.duplicate_sheet(spreadsheet_id, source_id, new_title)
            self.store.write_values(spreadsheet_id, f"{quote_tab(new_title)}!A1", translated)
            print(f"  [translate] Translated tab created: {new_title}")
            written.append(new_title)
        return written


# =============================================================================
# REWRITE
# =============================================================================

def rewrite_prompt(rewrite_items, grammar_items, name_candidates, hotel_name: str) -> str:
    payload = json.dumps({
        "rewrite": rewrite_items,
        "grammar": grammar_items,
        "name_candidates": name_candidates,
    }, indent=2, ensure_ascii=False)
    return f"""Hotel FAQ Combined - Rewrite (Comments) + QA + Hotel Name Injection

ROLE
You are a senior hospitality copywriter.
Target Hotel Name: "{hotel_name}"

INPUT DATA
1. "rewrite": Rows with client comments (Needs full rewrite).
2. "grammar": Rows without comments (Needs light QA).
3. "name_candidates": ALL rows (Candidates for inserting the hotel name).

SECTION A - REWRITE (APPLY COMMENTS)
For "rewrite" items:
- Use Client Comment as priority.
- Output: Polished final answer.

SECTION B - GRAMMAR (LIGHT TOUCH)
For "grammar" items:
- Fix only factual/severe errors. Return "" if fine.

SECTION C - HOTEL NAME INJECTION (UPDATE ORIGINAL)
The client requires the hotel name "{hotel_name}" to appear in 7-10 answers.
1. Pick exactly 7 to 10 rows from "name_candidates" where inserting the name fits naturally.
2. Create the final version of that sentence including the hotel name.
   - If the row was rewritten in Section A, use that version + name.
   - Otherwise use the original/grammar-fixed version + name.
3. Language: must match the row's language.

OUTPUT JSON
{{
  "rewrite": [ {{"rowIndex1Based": number, "final_answer": string}}, ... ],
  "grammar": [ {{"rowIndex1Based": number, "fixed": string}}, ... ],
  "hotel_name_inject": [ {{"rowIndex1Based": number, "answer_with_name": string}}, ... ]
}}

INPUT
{payload}"""


def _row_map(entries, value_key: str) -> dict:
    """{row: text} from model entries; entries without a numeric row are dropped."""
    out = {}
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, dict):
            continue
        row = entry.get("rowIndex1Based")
        if isinstance(row, bool) or not isinstance(row, (int, float)):
            continue
        value = entry.get(value_key)
        out[int(row)] = "" if value is None else str(value)
    return out


def parse_rewrite_output(text: str) -> dict:
    obj = load_json_object(text, "rewrite")
    if not isinstance(obj, dict):
        raise ModelOutputMalformed("Rewrite JSON must be an object")
    return {
        "rewrite": _row_map(obj.get("rewrite"), "final_answer"),
        "grammar": _row_map(obj.get("grammar"), "fixed"),
        "hotel_name_inject": _row_map(obj.get("hotel_name_inject"), "answer_with_name"),
    }


@dataclass
class RewriteResult:
    tab: str
    hotel_name: str
    rewritten: int = 0
    grammar_fixes: int = 0
    names_added: list = field(default_factory=list)


class RewriteJob:
    """One model call per tab: comment rewrites, optional grammar pass, hotel-name mentions.

    Answers picked for a hotel-name mention are replaced in place in the answer
    column and marked in the status column. Rewrites and grammar fixes go to
    their own columns and leave the original answer alone.
    """

    NAME_ADDED = "Name added to answer"

    def __init__(self, llm, store, model: str = None):
        self.llm = llm
        self.store = store
        self.model = model

    def hotel_name(self, spreadsheet_id: str, given: str = None) -> str:
        if given and given.strip().lower() != "hotel name":
            return given.strip()
        try:
            title = self.store.get_spreadsheet_title(spreadsheet_id)
        except (FileNotFoundError, OSError):
            return DEFAULT_HOTEL_NAME
        name = re.sub(r"audit", "", re.sub(r"faq", "", title, count=1, flags=re.I), count=1, flags=re.I)
        return one_line(name) or DEFAULT_HOTEL_NAME

    def run(self, spreadsheet_id: str, source_tab: str = None, comment_col: str = "E",
            answer_col: str = "C", target_col: str = "F", header: str = "Agent Final Answer",
            check_grammar: bool = False, grammar_col: str = "G",
            grammar_header: str = "Answer Grammar Fix", name_col: str = "I",
            name_header: str = "Hotel Name Status", hotel_name: str = None) -> RewriteResult:
        hotel = self.hotel_name(spreadsheet_id, hotel_name)
        tab = (source_tab or "").strip() or self.store.get_first_sheet_title(spreadsheet_id)
        print(f"  [rewrite] Hotel name: {hotel!r}, tab {tab!r}")

        rows = self.store.read_values(spreadsheet_id, f"{quote_tab(tab)}!A:Z")
        ans_idx, cmt_idx = _col_index(answer_col), _col_index(comment_col)

        rewrite_items, grammar_items, candidates = [], [], []
        for r in range(2, len(rows) + 1):
            row = rows[r - 1]
            question = _cell(row, QUESTION_COL)
            answer = _cell(row, ans_idx)
            comment = _cell(row, cmt_idx)
            if comment:
                rewrite_items.append({"rowIndex1Based": r, "question": question,
                                      "originalAnswer": answer, "clientComment": comment})
            elif check_grammar and answer:
                grammar_items.append({"rowIndex1Based": r, "question": question, "originalAnswer": answer})
            if answer or comment:
                candidates.append({"rowIndex1Based": r, "question": question,
                                   "currentAnswer": f"(Pending Rewrite: {comment})" if comment else answer})

        result = RewriteResult(tab=tab, hotel_name=hotel)
        if not candidates:
            print(f"  [rewrite] {tab!r} has no answers or comments, nothing to do")
            return result

        prompt = rewrite_prompt(rewrite_items, grammar_items, candidates, hotel)
        out = parse_rewrite_output(self.llm.submit(prompt, model=self.model))
        grammar = out["grammar"] if check_grammar else {}

        data_rows = range(2, len(rows) + 1)
        answers = [out["hotel_name_inject"].get(r, _cell(rows[r - 1], ans_idx)) for r in data_rows]
        status = [self.NAME_ADDED if r in out["hotel_name_inject"] else "" for r in data_rows]
        rewrites = [out["rewrite"].get(r, "") for r in data_rows]
        fixes = [grammar.get(r, "") for r in data_rows]

        answer_header = _cell(rows[0], ans_idx) or "Answer"
        self.store.write_column(spreadsheet_id, answer_col, answer_header, answers, tab=tab)
        self.store.write_column(spreadsheet_id, name_col, name_header, status, tab=tab)
        self.store.write_column(spreadsheet_id, target_col, header, rewrites, tab=tab)
        if check_grammar:
            self.store.write_column(spreadsheet_id, grammar_col, grammar_header, fixes, tab=tab)
        self.store.format_sheet_like_faq(spreadsheet_id, tab)

        result.rewritten = sum(1 for v in rewrites if v.strip())
        result.grammar_fixes = sum(1 for v in fixes if v.strip())
        result.names_added = [r for r in data_rows if r in out["hotel_name_inject"]]
        print(f"  [rewrite] {hotel}: {result.rewritten} rewrite(s) -> {target_col}, "
              f"{len(result.names_added)} name mention(s) in {answer_col}, "
              f"{result.grammar_fixes} grammar fix(es)")
        return result
