"""
FAQ Audit - Validate Lite
Reviews FAQ tables already in a workbook (Category | Question | Answer |
Frequency). One model call per tab flags clear problems and proposes a fixed
answer; results go back as Issue / Fix (Suggested) columns plus a run report.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime

from sheets_store import parse_spreadsheet_id

VERIFY_TOKEN = "[VERIFY]"
REPORT_HEADER = [
    "File Name", "File Path", "Tab",
    "Issues", "Total Rows", "Issue Rows (first 10)",
    "VERIFY Count", "VERIFY Rows (first 10)",
    "Issue Column", "Fix Column",
]
PREVIEW_ROWS = 10


class ModelOutputMalformed(Exception):
    """The model's validation output is not the JSON shape we asked for."""


@dataclass
class ValidationTabReport:
    file_id: str
    file_name: str
    tab: str
    issues: int = 0
    total: int = 0
    issue_rows: list = field(default_factory=list)
    verify_count: int = 0
    verify_rows: list = field(default_factory=list)
    issue_column: str = "G"
    fix_column: str = "H"

    def to_cells(self, file_path: str) -> list[str]:
        return [
            self.file_name, file_path, self.tab,
            str(self.issues), str(self.total),
            ", ".join(str(r) for r in self.issue_rows[:PREVIEW_ROWS]),
            str(self.verify_count),
            ", ".join(str(r) for r in self.verify_rows[:PREVIEW_ROWS]),
            self.issue_column, self.fix_column,
        ]


def build_items(rows: list[list[str]]) -> list[dict]:
    """Data rows 2..n as model input items keyed by their 1-based sheet row."""
    items = []
    for r in range(2, len(rows) + 1):
        row = list(rows[r - 1] or []) + [""] * 4
        items.append({
            "rowIndex1Based": r,
            "category": str(row[0] or ""),
            "question": str(row[1] or ""),
            "answer": str(row[2] or ""),
            "frequency": str(row[3] or ""),
        })
    return items


def build_flag_and_fix_prompt(items: list[dict]) -> str:
    payload = json.dumps({"items": items}, indent=2, ensure_ascii=False)
    return f"""Hotel FAQ Validation (Flag only when CLEAR) + Provide a concise fix.

You receive an array of rows with: rowIndex1Based, category, question, answer, frequency.

FLAG ONLY if one of these is DEFINITELY true:
- MISMATCH: answer doesn't provide the specifics the question requests.
- TOO_SHORT: answer is extremely short/unhelpful for a factual FAQ (about < 5 words).
- GRAMMAR: obvious grammar/spelling error that would be unacceptable publicly.
- CONTRADICTS: answer contradicts the question, itself, or other info in the row.
NOTE: blank rows separate categories; do NOT flag them as missing question and answer.

When NOT SURE, do NOT flag. No nitpicking. Keep it minimal.

If flagged, provide a FIX (replacement answer) following ALL rules:
- Tone: professional, welcoming, luxury-hospitality; third person.
- Do NOT repeat the hotel name.
- For yes/no questions: start with "Yes, ...", "No, ...", or "Currently, ...".
- Otherwise: start with a clear factual statement.
- 10-16 words; clear, decisive; no links, no marketing fluff; publication-ready English.

OUTPUT (STRICT JSON, no markdown):
{{"rows":[
  {{"rowIndex1Based": <number>,
   "issue": "-",
   "fix": ""}}
]}}
"issue" is "-" if OK, otherwise e.g. "MISMATCH: short reason".
"fix" is empty if OK, otherwise the full corrected answer.

Return ONE object per input item, SAME order, SAME rowIndex1Based.

INPUT
{payload}"""


def load_json_object(text: str, what: str):
    """JSON between the first '{' and the last '}' of a model reply."""
    text = text or ""
    first, last = text.find("{"), text.rfind("}")
    chunk = text[first:last + 1] if first >= 0 and last > first else text
    try:
        return json.loads(chunk)
    except (json.JSONDecodeError, RecursionError) as e:
        raise ModelOutputMalformed(f"Model did not return valid JSON for {what} output") from e


def parse_rows_or_raise(text: str) -> list[dict]:
    """Strict parse of {"rows": [{rowIndex1Based, issue, fix}, ...]}."""
    obj = load_json_object(text, "validation")
    if not isinstance(obj, dict) or not isinstance(obj.get("rows"), list):
        raise ModelOutputMalformed("Validation JSON must contain a 'rows' array")
    for row in obj["rows"]:
        if not isinstance(row, dict):
            raise ModelOutputMalformed("Each row must be an object")
        idx = row.get("rowIndex1Based")
        if isinstance(idx, bool) or not isinstance(idx, (int, float)):
            raise ModelOutputMalformed("rowIndex1Based must be a number")
        if not isinstance(row.get("issue"), str):
            raise ModelOutputMalformed("issue must be a string")
        if not isinstance(row.get("fix"), str):
            raise ModelOutputMalformed("fix must be a string")
    return obj["rows"]


def _is_issue(value: str) -> bool:
    v = (value or "").strip()
    return bool(v) and v != "-" and v.upper() != "OK"


class ValidateLiteJob:
    def __init__(self, llm, store):
        self.llm = llm
        self.store = store
        self.report_spreadsheet_id = None

    def resolve_ids(self, spreadsheet_ids, control_range: str = None) -> list[str]:
        out = {}
        for value in spreadsheet_ids or []:
            out[parse_spreadsheet_id(value)] = None
        if control_range:
            # "<id>!A1:A50" or "<id>!<tab>!A1:A50"
            if "!" not in control_range:
                raise ValueError(f"Control range must look like '<id>!A1:A50': {control_range!r}")
            control_id, a1 = control_range.split("!", 1)
            for row in self.store.read_values(parse_spreadsheet_id(control_id), a1):
                for cell in row:
                    if not cell.strip():
                        continue
                    try:
                        out[parse_spreadsheet_id(cell)] = None
                    except ValueError:
                        print(f"  [validate] Ignoring control cell {cell!r}")
        return list(out)

    def _titles(self, spreadsheet_id: str, tabs) -> list[str]:
        if tabs == "ALL":
            return self.store.list_sheet_titles(spreadsheet_id)
        if tabs:
            return list(tabs)
        return [self.store.get_first_sheet_title(spreadsheet_id)]

    def validate_tab(self, spreadsheet_id: str, file_name: str, title: str,
                     write_col: str, fix_col: str, write_back: bool):
        rows = self.store.read_values(spreadsheet_id, f"{title}!A:Z")
        if len(rows) < 2:
            print(f"    [validate] {file_name} / {title!r} skipped (empty or header only)")
            return None

        items = build_items(rows)
        out = parse_rows_or_raise(self.llm.submit(build_flag_and_fix_prompt(items)))

        issue_by_row, fix_by_row = {}, {}
        for r in out:
            issue_by_row[int(r["rowIndex1Based"])] = r["issue"]
            fix_by_row[int(r["rowIndex1Based"])] = r["fix"]

        data_rows = len(rows) - 1
        issue_values = [issue_by_row.get(i + 2, "-") or "-" for i in range(data_rows)]
        fix_values = [fix_by_row.get(i + 2, "") for i in range(data_rows)]

        # [VERIFY] rows are only counted, never written back
        verify_rows = [i + 1 for i in range(1, len(rows))
                       if any(VERIFY_TOKEN in (c or "") for c in rows[i])]
        issue_rows = [i + 2 for i, v in enumerate(issue_values) if _is_issue(v)]

        if write_back:
            self.store.write_column(spreadsheet_id, write_col, "Issue", issue_values, tab=title)
            if any(v.strip() for v in fix_values):
                self.store.write_column(spreadsheet_id, fix_col, "Fix (Suggested)", fix_values, tab=title)
            self.store.format_sheet_like_faq(spreadsheet_id, title)

        if issue_rows or verify_rows:
            print(f"    [validate] {file_name} / {title!r}: issues {len(issue_rows)}/{data_rows}, "
                  f"VERIFY {len(verify_rows)} -> {write_col}/{fix_col}")
        else:
            print(f"    [validate] {file_name} / {title!r}: all good")

        return ValidationTabReport(
            file_id=spreadsheet_id, file_name=file_name, tab=title,
            issues=len(issue_rows), total=data_rows,
            issue_rows=issue_rows[:PREVIEW_ROWS],
            verify_count=len(verify_rows), verify_rows=verify_rows[:PREVIEW_ROWS],
            issue_column=write_col, fix_column=fix_col,
        )

    def run(self, spreadsheet_ids, tabs=None, write_col: str = "G", fix_col: str = "H",
            write_back: bool = True, control_range: str = None) -> list[ValidationTabReport]:
        ids = self.resolve_ids(spreadsheet_ids, control_range)
        if not ids:
            print("  [validate] No spreadsheets to validate.")
            return []

        write_col, fix_col = write_col.upper(), fix_col.upper()
        print(f"  [validate] Lite validation (flags + fix) on {len(ids)} spreadsheet(s)...")

        reports = []
        for spreadsheet_id in ids:
            try:
                titles = self._titles(spreadsheet_id, tabs)
                file_name = self.store.get_spreadsheet_title(spreadsheet_id)
            except (FileNotFoundError, KeyError, IndexError, OSError) as e:
                print(f"  [validate] Could not load tabs for {spreadsheet_id}: {e}")
                continue

            for title in titles:
                try:
                    report = self.validate_tab(spreadsheet_id, file_name, title,
                                               write_col, fix_col, write_back)
                except Exception as e:
                    print(f"    [validate] Tab {title!r} failed: {e}")
                    continue
                if report:
                    reports.append(report)

        stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
        report_id = self.store.create_spreadsheet(f"FAQ Validation Report {stamp}")
        values = [REPORT_HEADER] + [
            r.to_cells(str(self.store.path_for(r.file_id))) for r in reports
        ]
        self.store.write_values(report_id, "A1", values)
        self.report_spreadsheet_id = report_id
        print(f"  [validate] Report: {self.store.path_for(report_id)}")
        return reports
