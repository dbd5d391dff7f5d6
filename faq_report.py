"""
FAQ Audit - Report Compiler
Accumulates the audit grid (one summary row per hotel, one detail row per
issue) and renders a JSON copy for the audit trail.
"""

import re
from datetime import datetime

from faq_models import REPORT_HEADER, AuditRow, AuditSummary, HotelItem, normalize_ws

MAX_CELL_TEXT = 500
_LEADING_DASH = re.compile(r"^ —\s*")


def schema_summary(seo) -> str:
    """Text for the Schema column."""
    count = len(seo.schema_qas)
    if count == 0:
        return "No schema"
    schema_issues = [i for i in seo.issues if i.reason.startswith("[schema]")]
    if schema_issues:
        return f"{len(schema_issues)} schema issues — {count} Qs"
    return f"OK — {count} schema Qs"


def _short(text: str) -> str:
    return normalize_ws(text)[:MAX_CELL_TEXT]


class ReportCompiler:
    """Builds the 11-column audit grid hotel by hotel."""

    def __init__(self):
        self.rows: list[AuditRow] = []
        self.hotels_processed = 0
        self.hotels_with_faq = 0
        self.hotels_with_problems = 0

    def _summary(self, hotel: HotelItem, status: str, **extra) -> AuditRow:
        self.hotels_processed += 1
        row = AuditRow(hotel=hotel.name, faq_url=hotel.faq_url or "", status=status, **extra)
        self.rows.append(row)
        return row

    def add_not_found(self, hotel: HotelItem):
        self._summary(hotel, "FAQ page not found")

    def add_fetch_failed(self, hotel: HotelItem, reason: str):
        self.hotels_with_faq += 1
        self._summary(hotel, f"FAQ fetch failed ({reason})")

    def add_audit_failed(self, hotel: HotelItem, reason: str):
        self.hotels_with_faq += 1
        self._summary(hotel, f"FAQ audit failed ({reason})")

    def add_no_items(self, hotel: HotelItem):
        self.hotels_with_faq += 1
        self._summary(hotel, "No Q/A items found in page")

    def add_audited(self, hotel: HotelItem, total_checked: int, issues: list, seo):
        self.hotels_with_faq += 1
        if issues:
            self.hotels_with_problems += 1
            status = f"Found {len(issues)} issues — {total_checked} items checked"
        else:
            status = f"OK — {total_checked} items checked"

        self._summary(
            hotel, status,
            meta_title=seo.meta_title or "",
            meta_description=seo.meta_description or "",
            schema=schema_summary(seo),
        )

        for issue in issues:
            self.rows.append(AuditRow(
                hotel=hotel.name,
                faq_url=hotel.faq_url or "",
                status="Issue",
                kind=issue.kind,
                number=str(issue.index + 1) if issue.index >= 0 else "",
                question=_short(issue.q),
                answer=_short(issue.a),
                reason=_LEADING_DASH.sub("", str(issue.reason or "")),
                is_summary=False,
            ))

    def values(self) -> list[list[str]]:
        return [list(REPORT_HEADER)] + [row.to_cells() for row in self.rows]

    def totals(self) -> dict:
        return {
            "hotels_processed": self.hotels_processed,
            "hotels_with_faq": self.hotels_with_faq,
            "hotels_with_problems": self.hotels_with_problems,
        }

    def summary(self, spreadsheet_id: str) -> AuditSummary:
        return AuditSummary(spreadsheet_id=spreadsheet_id, rows=list(self.rows), **self.totals())


def generate_json_report(summary: AuditSummary, country_url: str = "", sheet_title: str = "") -> dict:
    """Machine-readable copy of one audit run."""
    keys = [h.lower().replace(" ", "_").replace("#", "number") for h in REPORT_HEADER]
    return {
        "metadata": {
            "tool": "FAQ Web Audit",
            "version": "1.0.0",
            "scan_time": datetime.now().isoformat(timespec="seconds"),
            "country_url": country_url,
            "sheet_title": sheet_title,
            "spreadsheet_id": summary.spreadsheet_id,
        },
        "summary": {
            "hotels_processed": summary.hotels_processed,
            "hotels_with_faq": summary.hotels_with_faq,
            "hotels_with_problems": summary.hotels_with_problems,
            "issues": sum(1 for r in summary.rows if not r.is_summary),
        },
        "rows": [
            dict(zip(keys, row.to_cells()), row_type="summary" if row.is_summary else "issue")
            for row in summary.rows
        ],
    }
