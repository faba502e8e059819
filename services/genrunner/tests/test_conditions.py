"""路由条件测试：编译期报错、数值强制转换与缺失字段语义。"""

from __future__ import annotations

import pytest

from genrunner.domain.conditions import MISSING, Eq, Gte, In, Ne, conditions_hold, field_lookup, parse_when
from genrunner.domain.errors import DefinitionError
from genrunner.domain.models import Route, SkillDefinition, Step


def _holds(when: dict, values: dict) -> bool:
    return conditions_hold(parse_when(when), field_lookup(values))


def test_literal_becomes_equality() -> None:
    compiled = parse_when({"provider": "fal"})
    assert compiled[0].field == "provider"
    assert compiled[0].checks == (Eq("fal"),)


def test_operator_map_compiles_to_typed_checks() -> None:
    compiled = parse_when({"quality": {"$gte": 8, "$ne": 10}, "mode": {"$in": ["a", "b"]}})
    assert compiled[0].checks == (Gte(8), Ne(10))
    assert compiled[1].checks == (In(("a", "b")),)


def test_numeric_comparisons_coerce_strings() -> None:
    assert _holds({"quality": {"$gte": 8}}, {"quality": "9"})
    assert not _holds({"quality": {"$lt": 5}}, {"quality": "abc"})
    assert _holds({"quality": {"$gt": 1, "$lte": 3}}, {"quality": 3})


def test_none_and_blank_strings_compare_as_zero() -> None:
    assert _holds({"x": {"$lt": 5}}, {"x": None})
    assert _holds({"x": {"$gte": 0, "$lte": 0}}, {"x": " "})
    assert not _holds({"x": {"$gt": 0}}, {"x": None})


def test_missing_field_semantics() -> None:
    """缺失字段不等于任何字面量，但满足 $ne。"""
    assert not _holds({"image": None}, {})
    assert _holds({"image": None}, {"image": None})
    assert _holds({"image": {"$ne": "x"}}, {})
    assert not _holds({"mode": {"$in": ["a"]}}, {})
    assert not _holds({"quality": {"$gte": 0}}, {})
    assert Eq(1).holds(MISSING) is False


def test_empty_when_always_holds() -> None:
    assert parse_when(None) == ()
    assert _holds({}, {"anything": 1})


@pytest.mark.parametrize(
    "when",
    [
        {"quality": {"$between": [1, 2]}},
        {"mode": {"$in": "abc"}},
        {"mode": {"$in": 3}},
    ],
)
def test_malformed_condition_fails_at_construction(when: dict) -> None:
    with pytest.raises(DefinitionError):
        Route(target="x", when=when)


def test_route_and_step_require_targets() -> None:
    with pytest.raises(DefinitionError):
        Route(target="")
    with pytest.raises(DefinitionError):
        Step(name="a", run="")


def test_duplicate_step_names_rejected() -> None:
    with pytest.raises(DefinitionError):
        SkillDefinition(name="dup", steps=[Step(name="a", run="x"), Step(name="a", run="y")])
