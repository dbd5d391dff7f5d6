import openpyxl
import pytest

from sheets_store import WorkbookStore, parse_spreadsheet_id, split_range


def test_create_spreadsheet(store):
    sid = store.create_spreadsheet("UK FAQ audit")
    assert store.path_for(sid).exists()
    assert sid.startswith("uk-faq-audit-")
    assert store.get_spreadsheet_title(sid) == "UK FAQ audit"
    assert store.get_first_sheet_title(sid) == "Sheet1"
    assert store.get_sheet_id_by_title(sid, "Sheet1") == 0


def test_unknown_tab_raises_key_error(store):
    sid = store.create_spreadsheet("x")
    with pytest.raises(KeyError):
        store.get_sheet_id_by_title(sid, "Nope")
    with pytest.raises(KeyError):
        store.read_values(sid, "Nope!A1:B2")


def test_write_and_read_values(store):
    sid = store.create_spreadsheet("grid")
    store.write_values(sid, "Sheet1!B2", [["a", "b"], ["c", "", ""], [3, None]])
    assert store.read_values(sid, "Sheet1!A1:D10") == [[], ["", "a", "b"], ["", "c"], ["", "3"]]
    assert store.read_values(sid, "Sheet1!B2:B3") == [["a"], ["c"]]
    assert store.read_values(sid, "B2") == [["a"]]


def test_write_values_is_an_idempotent_overwrite(store):
    sid = store.create_spreadsheet("grid")
    rows = [["Hotel", "Status"], ["alpha", "OK"]]
    store.write_values(sid, "Sheet1!A1", rows)
    store.write_values(sid, "Sheet1!A1", rows)
    assert store.read_values(sid, "Sheet1!A:Z") == rows


def test_duplicate_sheet_copies_values(store):
    sid = store.create_spreadsheet("dup")
    store.write_values(sid, "Sheet1!A1", [["Category", "Question"]])
    store.duplicate_sheet(sid, 0, "Audit")
    assert store.list_sheet_titles(sid) == ["Sheet1", "Audit"]
    assert store.read_values(sid, "Audit!A:Z") == [["Category", "Question"]]


def test_write_column_to_named_tab(store):
    sid = store.create_spreadsheet("cols")
    store.duplicate_sheet(sid, 0, "FAQ")
    store.write_column(sid, "g", "Issue", ["-", "MISMATCH: wrong topic"], tab="FAQ")
    assert store.read_values(sid, "FAQ!G1:G3") == [["Issue"], ["-"], ["MISMATCH: wrong topic"]]
    assert store.read_values(sid, "Sheet1!A:Z") == []


def test_format_sheet_like_faq(store):
    sid = store.create_spreadsheet("fmt")
    store.write_values(sid, "Sheet1!A1", [["Hotel", "Question", "Answer"], ["a", "q", "x"]])
    store.format_sheet_like_faq(sid, "Sheet1")

    ws = openpyxl.load_workbook(store.path_for(sid))["Sheet1"]
    assert ws.freeze_panes == "A2"
    assert ws["A1"].font.bold
    assert ws["A1"].fill.fill_type == "solid"
    assert ws["B2"].alignment.wrap_text
    assert ws.column_dimensions["B"].width > ws.column_dimensions["A"].width


def test_xlsx_path_used_as_id(tmp_path):
    path = tmp_path / "faq.xlsx"
    wb = openpyxl.Workbook()
    wb.active.title = "FAQ"
    wb.active.append(["Category", "Question", "Answer", "Frequency"])
    wb.save(path)

    store = WorkbookStore(str(tmp_path / "elsewhere"))
    sid = parse_spreadsheet_id(str(path))
    assert store.get_first_sheet_title(sid) == "FAQ"
    assert store.get_spreadsheet_title(sid) == "faq"


def test_control_characters_are_dropped(store):
    sid = store.create_spreadsheet("dirty")
    store.write_values(sid, "Sheet1!A1", [["[spelling] fee\x01 typo", "tab\tkept"]])
    store.write_column(sid, "C", "Issue\x0b", ["bell\x07"])
    assert store.read_values(sid, "Sheet1!A1:C2") == [
        ["[spelling] fee typo", "tab\tkept", "Issue"],
        ["", "", "bell"],
    ]


def test_leading_equals_is_stored_as_text(store):
    sid = store.create_spreadsheet("formula")
    store.write_values(sid, "Sheet1!A1", [["Answer"], ["=15 EUR per night for parking"]])
    store.write_column(sid, "B", "Fix", ["=SUM(A1:A2)"])

    ws = openpyxl.load_workbook(store.path_for(sid))["Sheet1"]
    assert ws["A2"].data_type == "s"
    assert ws["A2"].value == "=15 EUR per night for parking"
    assert ws["B2"].data_type == "s"
    assert store.read_values(sid, "Sheet1!A2:B2") == [["=15 EUR per night for parking", "=SUM(A1:A2)"]]


def test_missing_workbook(store):
    with pytest.raises(FileNotFoundError):
        store.list_sheet_titles("does-not-exist")


def test_parse_spreadsheet_id():
    assert parse_spreadsheet_id("  abc-123_X ") == "abc-123_X"
    assert parse_spreadsheet_id("'reports/a b.xlsx'") == "reports/a b.xlsx"
    with pytest.raises(ValueError):
        parse_spreadsheet_id("")
    with pytest.raises(ValueError):
        parse_spreadsheet_id("not an id")


def test_split_range():
    assert split_range("Audit!A1") == ("Audit", "A1")
    assert split_range("'My ''FAQ'' tab'!A:Z") == ("My 'FAQ' tab", "A:Z")
    assert split_range("B2:C3") == (None, "B2:C3")
