"""
FAQ Audit - Workbook Store
Spreadsheet operations over local .xlsx files (openpyxl). One workbook file per
spreadsheet id; ranges use A1 notation ("Audit!A1", "FAQ!A:Z", "B2").
"""

import re
import uuid
from pathlib import Path

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import column_index_from_string, get_column_letter
from openpyxl.utils.cell import coordinate_to_tuple, range_boundaries

HEADER_FILL = PatternFill(start_color="3D85C6", end_color="3D85C6", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
WIDE_COLUMNS = {"question", "answer", "reason", "issue", "fix (suggested)"}
WIDE_WIDTH = 70
NARROW_WIDTH = 28
HEADER_HEIGHT = 23

_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


def split_range(a1: str):
    """'Tab!A1:D5' -> ('Tab', 'A1:D5'); "'My Tab'!A1" -> ('My Tab', 'A1'); 'A1' -> (None, 'A1')"""
    if "!" not in a1:
        return None, a1.strip()
    tab, rng = a1.rsplit("!", 1)
    tab = tab.strip()
    if len(tab) >= 2 and tab[0] == tab[-1] == "'":
        tab = tab[1:-1].replace("''", "'")
    return tab, rng.strip()


def _cell_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _cell_value(value):
    """Scraped/model text as a storable literal: control characters dropped."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def _put(ws, row: int, col: int, value):
    cell = ws.cell(row=row, column=col, value=_cell_value(value))
    # text is never a formula, even when it starts with "="
    if isinstance(cell.value, str) and cell.data_type == "f":
        cell.data_type = "s"
    return cell


def _trim(grid: list[list[str]]) -> list[list[str]]:
    out = []
    for row in grid:
        while row and row[-1] == "":
            row.pop()
        out.append(row)
    while out and not out[-1]:
        out.pop()
    return out


def _slug(title: str) -> str:
    s = re.sub(r"[^A-Za-z0-9]+", "-", title or "").strip("-").lower()
    return s[:40] or "sheet"


def parse_spreadsheet_id(value: str) -> str:
    """Accept a bare spreadsheet id or a path to a .xlsx file."""
    v = (value or "").strip().strip("'\"")
    if not v:
        raise ValueError("Empty spreadsheet id")
    if v.lower().endswith(".xlsx"):
        return v
    if _ID_RE.match(v):
        return v
    raise ValueError(f"Not a spreadsheet id or .xlsx path: {value!r}")


class WorkbookStore:
    """Spreadsheet collaborator backed by .xlsx files under `base_dir`."""

    def __init__(self, base_dir: str = "reports"):
        self.base_dir = Path(base_dir)

    def path_for(self, spreadsheet_id: str) -> Path:
        if spreadsheet_id.lower().endswith(".xlsx"):
            return Path(spreadsheet_id)
        return self.base_dir / f"{spreadsheet_id}.xlsx"

    def _load(self, spreadsheet_id: str):
        path = self.path_for(spreadsheet_id)
        if not path.exists():
            raise FileNotFoundError(f"Workbook not found: {path}")
        return openpyxl.load_workbook(path)

    def _save(self, wb, spreadsheet_id: str):
        wb.save(self.path_for(spreadsheet_id))

    @staticmethod
    def _sheet(wb, tab):
        if tab is None:
            return wb.worksheets[0]
        if tab not in wb.sheetnames:
            raise KeyError(f"No tab named {tab!r}")
        return wb[tab]

    # -- spreadsheet ----------------------------------------------------------

    def create_spreadsheet(self, title: str) -> str:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        spreadsheet_id = f"{_slug(title)}-{uuid.uuid4().hex[:8]}"
        wb = openpyxl.Workbook()
        wb.active.title = "Sheet1"
        wb.properties.title = title
        self._save(wb, spreadsheet_id)
        print(f"  [sheets] Created {self.path_for(spreadsheet_id)}")
        return spreadsheet_id

    def get_spreadsheet_title(self, spreadsheet_id: str) -> str:
        wb = self._load(spreadsheet_id)
        return wb.properties.title or self.path_for(spreadsheet_id).stem

    def list_sheet_titles(self, spreadsheet_id: str) -> list[str]:
        return list(self._load(spreadsheet_id).sheetnames)

    def get_first_sheet_title(self, spreadsheet_id: str) -> str:
        return self.list_sheet_titles(spreadsheet_id)[0]

    def get_sheet_id_by_title(self, spreadsheet_id: str, title: str) -> int:
        names = self.list_sheet_titles(spreadsheet_id)
        if title not in names:
            raise KeyError(f"No tab named {title!r} in {spreadsheet_id}")
        return names.index(title)

    def duplicate_sheet(self, spreadsheet_id: str, sheet_id: int, new_title: str):
        wb = self._load(spreadsheet_id)
        copy = wb.copy_worksheet(wb.worksheets[sheet_id])
        copy.title = new_title
        self._save(wb, spreadsheet_id)

    # -- values ---------------------------------------------------------------

    def read_values(self, spreadsheet_id: str, a1: str) -> list[list[str]]:
        tab, rng = split_range(a1)
        wb = self._load(spreadsheet_id)
        ws = self._sheet(wb, tab)
        min_col, min_row, max_col, max_row = range_boundaries(rng.upper())
        rows = ws.iter_rows(
            min_row=min_row or 1,
            max_row=max_row or ws.max_row,
            min_col=min_col or 1,
            max_col=max_col or ws.max_column,
            values_only=True,
        )
        return _trim([[_cell_str(v) for v in row] for row in rows])

    def write_values(self, spreadsheet_id: str, a1: str, rows):
        """Overwrite cells starting at the anchor's top-left corner."""
        tab, rng = split_range(a1)
        start_row, start_col = coordinate_to_tuple(rng.split(":")[0].upper())
        wb = self._load(spreadsheet_id)
        ws = self._sheet(wb, tab)
        for r, row in enumerate(rows):
            for c, value in enumerate(row):
                _put(ws, start_row + r, start_col + c, value)
        self._save(wb, spreadsheet_id)

    def write_column(self, spreadsheet_id: str, col_letter: str, header: str, values, tab: str = None):
        col = column_index_from_string(col_letter.upper())
        wb = self._load(spreadsheet_id)
        ws = self._sheet(wb, tab)
        _put(ws, 1, col, header)
        for i, value in enumerate(values):
            _put(ws, 2 + i, col, value)
        self._save(wb, spreadsheet_id)

    # -- formatting -----------------------------------------------------------

    def format_sheet_like_faq(self, spreadsheet_id: str, tab: str = None):
        """Blue bold header, wrapped middle-aligned body, wide text columns, frozen header."""
        wb = self._load(spreadsheet_id)
        ws = self._sheet(wb, tab)
        last_col = max(ws.max_column, 1)

        for col in range(1, last_col + 1):
            cell = ws.cell(row=1, column=col)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
            name = _cell_str(cell.value).strip().lower()
            width = WIDE_WIDTH if name in WIDE_COLUMNS else NARROW_WIDTH
            ws.column_dimensions[get_column_letter(col)].width = width
        ws.row_dimensions[1].height = HEADER_HEIGHT

        body = Alignment(vertical="center", wrap_text=True)
        for row in ws.iter_rows(min_row=2, max_row=ws.max_row, max_col=last_col):
            for cell in row:
                cell.alignment = body

        ws.freeze_panes = "A2"
        self._save(wb, spreadsheet_id)
