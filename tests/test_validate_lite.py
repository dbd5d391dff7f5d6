import json

import pytest

from conftest import FakeLLM
from validate_lite import (
    REPORT_HEADER,
    ModelOutputMalformed,
    ValidateLiteJob,
    build_items,
    parse_rows_or_raise,
)

FAQ_ROWS = [
    ["Category", "Question", "Answer", "Frequency"],
    ["Parking", "Is parking free?", "Breakfast is from 7am.", "High"],
    ["Parking", "Is there EV charging?", "Yes, two chargers [VERIFY].", "Low"],
    ["Rooms", "Do rooms have a kettle?", "Yes, every room.", "Medium"],
]


def _reply(rows):
    return "```json\n" + json.dumps({"rows": rows}) + "\n```"


FLAGGED = _reply([
    {"rowIndex1Based": 2, "issue": "MISMATCH: answer is about breakfast", "fix": "No, parking costs €15 per night."},
    {"rowIndex1Based": 3, "issue": "-", "fix": ""},
    {"rowIndex1Based": 4, "issue": "OK", "fix": ""},
])


@pytest.fixture
def workbook(store):
    sid = store.create_spreadsheet("London FAQ")
    store.write_values(sid, "Sheet1!A1", FAQ_ROWS)
    return sid


def test_parse_rows_or_raise():
    rows = parse_rows_or_raise('noise {"rows": [{"rowIndex1Based": 2, "issue": "-", "fix": ""}]} noise')
    assert rows == [{"rowIndex1Based": 2, "issue": "-", "fix": ""}]


@pytest.mark.parametrize("text", [
    "not json",
    '{"items": []}',
    '{"rows": [{"rowIndex1Based": "2", "issue": "-", "fix": ""}]}',
    '{"rows": [{"rowIndex1Based": 2, "issue": null, "fix": ""}]}',
    '{"rows": [{"rowIndex1Based": 2, "issue": "-"}]}',
])
def test_parse_rows_or_raise_rejects(text):
    with pytest.raises(ModelOutputMalformed):
        parse_rows_or_raise(text)


def test_build_items_pads_short_rows():
    items = build_items([["h"], ["Cat", "Q?"]])
    assert items == [{"rowIndex1Based": 2, "category": "Cat", "question": "Q?", "answer": "", "frequency": ""}]


def test_run_writes_issue_and_fix_columns(store, workbook):
    llm = FakeLLM(FLAGGED)
    reports = ValidateLiteJob(llm, store).run([workbook])

    assert len(llm.calls) == 1
    assert '"rowIndex1Based": 4' in llm.calls[0]["prompt"]
    assert store.read_values(workbook, "Sheet1!G1:H4") == [
        ["Issue", "Fix (Suggested)"],
        ["MISMATCH: answer is about breakfast", "No, parking costs €15 per night."],
        ["-"],
        ["OK"],
    ]

    (report,) = reports
    assert report.file_name == "London FAQ"
    assert (report.issues, report.total) == (1, 3)
    assert report.issue_rows == [2]
    assert (report.verify_count, report.verify_rows) == (1, [3])


def test_fix_column_only_written_when_a_fix_exists(store, workbook):
    reply = _reply([{"rowIndex1Based": r, "issue": "-", "fix": ""} for r in (2, 3, 4)])
    ValidateLiteJob(FakeLLM(reply), store).run([workbook], write_col="I", fix_col="J")
    grid = store.read_values(workbook, "Sheet1!I1:J4")
    assert grid == [["Issue"], ["-"], ["-"], ["-"]]


def test_no_write_back_leaves_tab_untouched(store, workbook):
    reports = ValidateLiteJob(FakeLLM(FLAGGED), store).run([workbook], write_back=False)
    assert store.read_values(workbook, "Sheet1!A:Z") == FAQ_ROWS
    assert reports[0].issues == 1


def test_malformed_output_skips_tab(store, workbook, capsys):
    job = ValidateLiteJob(FakeLLM("sorry, no JSON today"), store)
    assert job.run([workbook]) == []
    assert "failed" in capsys.readouterr().out
    assert store.read_values(workbook, "Sheet1!G1") == []


def test_report_workbook(store, workbook):
    job = ValidateLiteJob(FakeLLM(FLAGGED), store)
    job.run([workbook])
    grid = store.read_values(job.report_spreadsheet_id, "A1:J5")
    assert grid[0] == REPORT_HEADER
    assert grid[1][0] == "London FAQ"
    assert grid[1][2:6] == ["Sheet1", "1", "3", "2"]
    assert grid[1][8:] == ["G", "H"]


def test_all_tabs_and_header_only_tabs(store, workbook):
    store.duplicate_sheet(workbook, 0, "Copy")
    store.duplicate_sheet(workbook, 0, "Empty")
    store.write_values(workbook, "Empty!A2", [[""] * 4] * 3)
    llm = FakeLLM(FLAGGED)
    reports = ValidateLiteJob(llm, store).run([workbook], tabs="ALL")
    assert [r.tab for r in reports] == ["Sheet1", "Copy"]


def test_control_range_adds_ids(store, workbook):
    control = store.create_spreadsheet("control")
    store.write_values(control, "Sheet1!A1", [[workbook], [""], ["not an id!"]])
    job = ValidateLiteJob(FakeLLM(FLAGGED), store)
    assert job.resolve_ids([], f"{control}!Sheet1!A1:A5") == [workbook]
    assert job.resolve_ids([workbook], f"{control}!A1:A5") == [workbook]


def test_nothing_to_validate(store):
    assert ValidateLiteJob(FakeLLM(), store).run([]) == []
