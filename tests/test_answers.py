import json

import pytest

from prompt_wizard.answers import (
    AnswerSet,
    coerce_flag,
    coerce_list,
    coerce_text,
    resolve_choice,
    resolve_multi,
    snapshot,
)
from prompt_wizard.catalog import OTHER_KEY


@pytest.mark.parametrize("value,expected", [
    (None, ""),
    ("  hello ", "hello"),
    (3, "3"),
    (2.5, "2.5"),
    (True, ""),
    (["a"], ""),
    ({"a": 1}, ""),
])
def test_coerce_text(value, expected):
    assert coerce_text(value) == expected


@pytest.mark.parametrize("value,expected", [
    (None, []),
    ("one", ["one"]),
    ("   ", []),
    (["a", " b ", "", None, 4], ["a", "b", "4"]),
    (("x", "y"), ["x", "y"]),
    ({"a": 1}, []),
    (b"bytes", []),
    (12, []),
])
def test_coerce_list(value, expected):
    assert coerce_list(value) == expected


@pytest.mark.parametrize("value,expected", [
    (True, True),
    (False, False),
    (1, True),
    (0, False),
    ("TRUE", True),
    ("yes", True),
    ("on", True),
    ("no", False),
    ("", False),
    (None, False),
    ([True], False),
])
def test_coerce_flag(value, expected):
    assert coerce_flag(value) is expected


def test_resolve_choice_other_and_verbatim():
    answers = {"database": OTHER_KEY, "databaseCustom": "CockroachDB", "orm": "Prisma"}
    assert resolve_choice(answers, "database", "databaseCustom") == "CockroachDB"
    assert resolve_choice(answers, "orm", "ormCustom") == "Prisma"
    assert resolve_choice(answers, "deploy", "deployCustom") == ""


def test_resolve_multi_orders_catalog_then_unknown_then_custom():
    members = resolve_multi(["Z", "B", OTHER_KEY, "A", "Z"], ("A", "B", "C"), "Custom")
    assert members == ["A", "B", "Z", "Custom"]


def test_snapshot_is_read_only():
    snap = snapshot({"objective": "x"})
    with pytest.raises(TypeError):
        snap["objective"] = "y"  # type: ignore[index]


def test_snapshot_does_not_alias_source():
    source = {"objective": "x"}
    snap = snapshot(source)
    source["objective"] = "changed"
    assert snap["objective"] == "x"


def test_answer_set_accepts_camel_case_and_coerces_leniently():
    answers = AnswerSet.from_payload({
        "systemType": "crm",
        "objective": None,
        "colors": "Azul",
        "hasLandingPage": "true",
        "separateFrontendBackend": 0,
        "restrictions": {"bad": "shape"},
        "unknownKey": "ignored",
    })
    assert answers.system_type == "crm"
    assert answers.objective == ""
    assert answers.colors == ["Azul"]
    assert answers.has_landing_page is True
    assert answers.separate_frontend_backend is False
    assert answers.restrictions == []


def test_answer_set_from_non_mapping_is_empty():
    assert AnswerSet.from_payload(None) == AnswerSet()
    assert AnswerSet.from_payload(["x"]) == AnswerSet()


def test_answer_set_is_frozen():
    answers = AnswerSet(objective="x")
    with pytest.raises(Exception):
        answers.objective = "y"


def test_answer_set_json_uses_wire_names():
    data = json.loads(AnswerSet(system_type="saas").to_json())
    assert data["systemType"] == "saas"
    assert "system_type" not in data
