import json

from conftest import FakeLLM
from faq_models import Group, QA
from faq_semantic import (
    MAX_RESPONSE_CHARS,
    SYSTEM_PROMPT,
    Findings,
    Malformed,
    SemanticValidator,
    parse_findings,
    plan_batches,
)


def _qas(n, prefix="Q"):
    return [QA(f"{prefix}{i}?", f"Answer number {i}.") for i in range(n)]


# --- batching ---------------------------------------------------------------

def test_single_call_budget_sends_everything_at_once():
    qas = _qas(5)
    batches = plan_batches([Group("A", qas[:2]), Group("B", qas[2:])], qas, max_calls=1)
    assert len(batches) == 1
    assert batches[0].items == qas
    assert batches[0].base_index == 0


def test_one_batch_per_group_within_budget():
    qas = _qas(6)
    groups = [Group("A", qas[:2]), Group("B", qas[2:5]), Group("C", qas[5:])]
    batches = plan_batches(groups, qas, max_calls=6)
    assert [len(b.items) for b in batches] == [2, 3, 1]
    assert [b.base_index for b in batches] == [0, 2, 5]


def test_overflow_groups_fold_into_last_batch():
    qas = _qas(6)
    groups = [Group("A", qas[:2]), Group("B", qas[2:5]), Group("C", qas[5:])]
    batches = plan_batches(groups, qas, max_calls=2)
    assert len(batches) == 2
    assert batches[1].base_index == 2
    assert batches[1].items == qas[2:]


def test_uncovered_pairs_get_their_own_batch():
    qas = _qas(5)
    batches = plan_batches([Group("A", qas[:2]), Group("Empty", [])], qas, max_calls=3)
    assert [(b.base_index, len(b.items)) for b in batches] == [(0, 2), (2, 3)]


def test_even_chunks_without_groups():
    qas = _qas(5)
    batches = plan_batches([], qas, max_calls=2)
    assert [(b.base_index, len(b.items)) for b in batches] == [(0, 3), (3, 2)]


def test_budget_is_clamped():
    qas = _qas(10)
    assert len(plan_batches([], qas, max_calls=50)) == 5  # ceil(10/6) = 2 per chunk
    assert len(plan_batches([], qas, max_calls=0)) == 1
    assert plan_batches([], [], max_calls=3) == []


# --- parsing ----------------------------------------------------------------

def test_parse_findings_ignores_surrounding_prose():
    raw = 'Sure! Here you go:\n{"issues": [{"index": 1, "reason": "[spelling] accomodation"}]}\nThanks'
    assert parse_findings(raw) == Findings(items=[{"index": 1, "reason": "[spelling] accomodation"}])


def test_parse_findings_skips_blocks_that_do_not_fit():
    raw = 'first {not json} then {"other": 1} then {"issues": [{"index": 0, "reason": "[grammar] use {x}"}]}'
    result = parse_findings(raw)
    assert isinstance(result, Findings)
    assert result.items[0]["reason"] == "[grammar] use {x}"


def test_parse_findings_malformed():
    assert isinstance(parse_findings(""), Malformed)
    assert isinstance(parse_findings("no json at all"), Malformed)
    assert isinstance(parse_findings('{"issues": "none"}'), Malformed)


def test_parse_findings_unclosed_brace_before_answer():
    raw = 'note { unfinished {"issues": [{"index": 2, "reason": "[mismatch] off topic"}]}'
    assert parse_findings(raw) == Findings(items=[{"index": 2, "reason": "[mismatch] off topic"}])


def test_parse_findings_bounded_on_brace_floods():
    assert isinstance(parse_findings("{" * 40000), Malformed)
    assert isinstance(parse_findings("{" * (MAX_RESPONSE_CHARS + 1)), Malformed)
    # a nested block too deep to decode is skipped like any other bad block
    deep = '{"x": ' + "[" * 20000 + "]" * 20000 + "}"
    assert isinstance(parse_findings(deep), Malformed)


# --- validator --------------------------------------------------------------

def test_indices_are_mapped_to_the_full_list():
    qas = _qas(4)
    groups = [Group("A", qas[:2]), Group("B", qas[2:])]
    replies = iter([
        '{"issues": []}',
        json.dumps({"issues": [
            {"index": 1, "reason": "[mismatch] off topic"},
            {"index": 7, "reason": "out of range"},
            {"index": "x", "reason": "not a number"},
            {"index": 0},
        ]}),
    ])
    llm = FakeLLM(lambda prompt: next(replies))
    issues = SemanticValidator(llm, max_calls=2).check(groups, qas)

    assert [(i.index, i.reason, i.kind) for i in issues] == [
        (3, "[mismatch] off topic", "gpt"),
        (2, "mismatch", "gpt"),
    ]
    assert issues[0].q == "Q3?"
    assert len(llm.calls) == 2
    assert llm.calls[0]["system"] == SYSTEM_PROMPT


def test_model_failure_marks_every_pair_in_the_batch():
    qas = _qas(4)
    llm = FakeLLM(RuntimeError("model down"))
    issues = SemanticValidator(llm, max_calls=1).check([Group("FAQ", qas)], qas)
    assert [(i.index, i.reason, i.kind) for i in issues] == [(i, "inference_error", "gpt") for i in range(4)]


def test_malformed_output_gives_no_issues(capsys):
    qas = _qas(3)
    issues = SemanticValidator(FakeLLM("I could not decide."), max_calls=1).check([], qas)
    assert issues == []
    assert "Unreadable model output" in capsys.readouterr().out


def test_prompt_lists_every_pair_with_its_batch_index():
    qas = _qas(2)
    llm = FakeLLM()
    SemanticValidator(llm, model="gemini-test").check([], qas)
    prompt = llm.calls[0]["prompt"]
    assert "0. Q: Q0?\nA: Answer number 0." in prompt
    assert "1. Q: Q1?" in prompt
    assert llm.calls[0]["model"] == "gemini-test"
