import json

import pytest

from timed_quiz.utils.quiz_parser import (
    InvalidJSONError,
    QuizFormatError,
    parse_correct_option,
    parse_quiz_json
)
from timed_quiz.utils.quiz_prompt import build_quiz_prompt


def _item(**overrides):
    item = {
        "question": "What is a bond's coupon?",
        "options": ["Interest payment", "Principal", "Maturity", "Yield"],
        "correct": 0
    }
    item.update(overrides)
    return item


def test_parses_index_answers():
    parsed = parse_quiz_json(json.dumps([_item(correct=2)]))

    assert parsed == [{
        "question": "What is a bond's coupon?",
        "options": ["Interest payment", "Principal", "Maturity", "Yield"],
        "correct": 2
    }]


def test_parses_letter_answers():
    item = _item()
    del item["correct"]
    item["answer"] = "d"

    assert parse_quiz_json(json.dumps([item]))[0]["correct"] == 3


def test_cleans_markdown_fences_and_trailing_commas():
    raw = (
        "Here is your quiz:\n```json\n[\n"
        '  {"question": "Q?", "options": ["a", "b", "c", "d"], "correct": 1,},\n'
        "]\n```"
    )

    parsed = parse_quiz_json(raw)

    assert len(parsed) == 1
    assert parsed[0]["correct"] == 1


@pytest.mark.parametrize("raw", ["", "   ", "no json here", "[{broken"])
def test_unparseable_text_raises(raw):
    with pytest.raises(InvalidJSONError):
        parse_quiz_json(raw)


@pytest.mark.parametrize("payload", [
    {"question": "Q?"},
    [],
    [_item(options=["a", "b", "c"])],
    [_item(options=["a", "b", "", "d"])],
    [_item(correct=4)],
    [_item(correct="E")],
    [_item(question="  ")],
    ["not an object"],
])
def test_invalid_structure_raises(payload):
    with pytest.raises(QuizFormatError):
        parse_quiz_json(json.dumps(payload))


@pytest.mark.parametrize("value, expected", [
    (0, 0), (3, 3), ("2", 2), ("A", 0), ("c", 2), (" D ", 3)
])
def test_parse_correct_option(value, expected):
    assert parse_correct_option(value) == expected


@pytest.mark.parametrize("value", [True, None, -1, 4, "", "AB", "7", 1.5])
def test_parse_correct_option_rejects(value):
    with pytest.raises(QuizFormatError):
        parse_correct_option(value)


def test_prompt_mentions_topic_and_count():
    prompt = build_quiz_prompt("corporate finance", 10)

    assert "corporate finance" in prompt
    assert "10-question" in prompt
    assert '"correct"' in prompt
