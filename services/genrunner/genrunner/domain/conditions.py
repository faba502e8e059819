"""路由条件：将 when 映射一次性编译为带类型的字段条件并求值。"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from genrunner.domain.errors import DefinitionError

# 字段缺失时的哨兵值，区别于显式传入的 None。
MISSING: Any = object()


def _to_number(value: Any) -> float:
    """数值比较前的强制转换：None 与空白字符串视为 0，缺失或无法转换时返回 NaN，使比较结果为 False。"""
    if value is MISSING:
        return math.nan
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


@dataclass(frozen=True, slots=True)
class Eq:
    expected: Any

    def holds(self, actual: Any) -> bool:
        return actual is not MISSING and actual == self.expected


@dataclass(frozen=True, slots=True)
class Ne:
    expected: Any

    def holds(self, actual: Any) -> bool:
        return actual is MISSING or actual != self.expected


@dataclass(frozen=True, slots=True)
class Lt:
    bound: Any

    def holds(self, actual: Any) -> bool:
        return _to_number(actual) < _to_number(self.bound)


@dataclass(frozen=True, slots=True)
class Lte:
    bound: Any

    def holds(self, actual: Any) -> bool:
        return _to_number(actual) <= _to_number(self.bound)


@dataclass(frozen=True, slots=True)
class Gt:
    bound: Any

    def holds(self, actual: Any) -> bool:
        return _to_number(actual) > _to_number(self.bound)


@dataclass(frozen=True, slots=True)
class Gte:
    bound: Any

    def holds(self, actual: Any) -> bool:
        return _to_number(actual) >= _to_number(self.bound)


@dataclass(frozen=True, slots=True)
class In:
    options: tuple[Any, ...]

    def holds(self, actual: Any) -> bool:
        return actual is not MISSING and actual in self.options


Condition = Eq | Ne | Lt | Lte | Gt | Gte | In

_OPERATORS: dict[str, Callable[[Any], Condition]] = {
    "$eq": Eq,
    "$ne": Ne,
    "$lt": Lt,
    "$lte": Lte,
    "$gt": Gt,
    "$gte": Gte,
}


@dataclass(frozen=True, slots=True)
class FieldCondition:
    """单个字段上的一组条件，全部成立才算满足。"""
    field: str
    checks: tuple[Condition, ...]

    def holds(self, actual: Any) -> bool:
        return all(check.holds(actual) for check in self.checks)


def _is_operator_map(value: Any) -> bool:
    return isinstance(value, Mapping) and any(isinstance(key, str) and key.startswith("$") for key in value)


def _parse_operators(field: str, rule: Mapping[str, Any]) -> tuple[Condition, ...]:
    checks: list[Condition] = []
    for operator, operand in rule.items():
        if operator == "$in":
            if isinstance(operand, (str, bytes)) or not isinstance(operand, (list, tuple, set, frozenset)):
                raise DefinitionError(f"condition on '{field}': $in expects a list, got {type(operand).__name__}")
            checks.append(In(tuple(operand)))
            continue
        factory = _OPERATORS.get(operator)
        if factory is None:
            raise DefinitionError(f"condition on '{field}': unsupported operator {operator}")
        checks.append(factory(operand))
    return tuple(checks)


def parse_when(when: Mapping[str, Any] | None) -> tuple[FieldCondition, ...]:
    """编译 when 映射；非法运算符在此处直接报错。"""
    if not when:
        return ()
    if not isinstance(when, Mapping):
        raise DefinitionError(f"condition must be a mapping, got {type(when).__name__}")
    compiled: list[FieldCondition] = []
    for field, rule in when.items():
        if _is_operator_map(rule):
            checks = _parse_operators(field, rule)
        else:
            checks = (Eq(rule),)
        compiled.append(FieldCondition(field=field, checks=checks))
    return tuple(compiled)


def conditions_hold(
    conditions: tuple[FieldCondition, ...],
    lookup: Callable[[str], Any],
) -> bool:
    """逐字段取值并求值；lookup 在字段缺失时应返回 MISSING。"""
    return all(condition.holds(lookup(condition.field)) for condition in conditions)


def field_lookup(values: Mapping[str, Any]) -> Callable[[str], Any]:
    """基于普通映射的取值函数，用于对输入参数求值。"""
    return lambda field: values.get(field, MISSING)
