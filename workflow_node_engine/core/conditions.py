"""Condition evaluation for CONDITION nodes and WHILE loops.

Operands are normalized before comparison: ``None`` stays ``None``, strings,
numbers and booleans pass through, containers become compact JSON text and
anything else is stringified. Comparisons are type-strict and never raise.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Sequence, Union

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.template import resolve
from workflow_node_engine.models.node_enums import (
    ORDERING_OPERATORS,
    STRING_OPERATORS,
    ConditionOperator,
    EvaluationMode,
)
from workflow_node_engine.models.workflow import Condition

logger = logging.getLogger(__name__)

Normalized = Union[None, str, int, float, bool]


def normalize_value(value: Any) -> Normalized:
    if value is None:
        return None
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equals(left: Normalized, right: Normalized) -> bool:
    """Equality without cross-type coercion (``1`` never equals ``True`` or ``"1"``)."""
    if _is_number(left) and _is_number(right):
        return left == right
    return type(left) is type(right) and left == right


def _compare(operator: ConditionOperator, left: Normalized, right: Normalized) -> bool:
    if operator == ConditionOperator.EQUALS:
        return strict_equals(left, right)
    if operator == ConditionOperator.NOT_EQUALS:
        return not strict_equals(left, right)

    if operator == ConditionOperator.IS_EMPTY:
        return left is None or left == ""
    if operator == ConditionOperator.IS_NOT_EMPTY:
        return left is not None and left != ""

    if operator in ORDERING_OPERATORS:
        if not (_is_number(left) and _is_number(right)):
            return False
        if operator == ConditionOperator.GREATER_THAN:
            return left > right
        if operator == ConditionOperator.LESS_THAN:
            return left < right
        if operator == ConditionOperator.GREATER_OR_EQUAL:
            return left >= right
        return left <= right

    if operator in STRING_OPERATORS and not (isinstance(left, str) and isinstance(right, str)):
        return False
    if operator == ConditionOperator.CONTAINS:
        return right in left
    if operator == ConditionOperator.NOT_CONTAINS:
        return right not in left
    if operator == ConditionOperator.STARTS_WITH:
        return left.startswith(right)
    if operator == ConditionOperator.ENDS_WITH:
        return left.endswith(right)

    logger.warning(f"Unknown condition operator: {operator}")
    return False


def evaluate(condition: Condition, context: ExecutionContext) -> bool:
    left = normalize_value(resolve(condition.variable, context))
    right = normalize_value(condition.value)
    return _compare(condition.operator, left, right)


def evaluate_conditions(
    conditions: Sequence[Condition],
    mode: Union[EvaluationMode, str],
    context: ExecutionContext,
) -> bool:
    """Combine ``conditions`` with AND (``all``) or OR (``any``).

    An empty list is vacuously true under ``all`` and false under ``any``.
    """
    mode = EvaluationMode(mode)
    if mode == EvaluationMode.ANY:
        return any(evaluate(condition, context) for condition in conditions)
    return all(evaluate(condition, context) for condition in conditions)


def describe_evaluation(conditions: Sequence[Condition], context: ExecutionContext) -> List[dict]:
    """Per-condition breakdown reported by CONDITION nodes."""
    return [
        {
            "variable": condition.variable,
            "operator": condition.operator.value,
            "value": condition.value,
            "resolved": resolve(condition.variable, context),
            "passed": evaluate(condition, context),
        }
        for condition in conditions
    ]


__all__ = [
    "normalize_value",
    "strict_equals",
    "evaluate",
    "evaluate_conditions",
    "describe_evaluation",
]
