"""FOR / WHILE loop state machine.

A LOOP node only initializes iteration; the embedding engine drives the loop
body and calls the ``advance_*`` functions between iterations. ``LoopState``
is immutable: every transition returns a new snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from workflow_node_engine.core.conditions import evaluate
from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.exceptions import FatalConfigError
from workflow_node_engine.core.template import resolve
from workflow_node_engine.models.node_enums import LoopType
from workflow_node_engine.models.workflow import Condition, LoopNodeConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 1000


@dataclass(frozen=True)
class LoopState:
    current_index: int
    iterations_completed: int
    should_continue: bool
    max_iterations: int
    loop_type: LoopType
    current_item: Any = None
    array: Optional[Tuple[Any, ...]] = None
    item_name: Optional[str] = None
    index_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentIndex": self.current_index,
            "iterationsCompleted": self.iterations_completed,
            "shouldContinue": self.should_continue,
            "maxIterations": self.max_iterations,
            "loopType": self.loop_type.value,
            "currentItem": self.current_item,
            "array": list(self.array) if self.array is not None else None,
            "arrayLength": len(self.array) if self.array is not None else None,
            "itemName": self.item_name,
            "indexName": self.index_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoopState":
        """Rebuild a snapshot from the ``state`` a LOOP node reported."""
        array = data.get("array")
        return cls(
            current_index=data["currentIndex"],
            iterations_completed=data["iterationsCompleted"],
            should_continue=data["shouldContinue"],
            max_iterations=data["maxIterations"],
            loop_type=LoopType(data["loopType"]),
            current_item=data.get("currentItem"),
            array=tuple(array) if array is not None else None,
            item_name=data.get("itemName"),
            index_name=data.get("indexName"),
        )


def _effective_cap(configured: Optional[int], hard_cap: int) -> int:
    cap = configured if configured is not None else DEFAULT_MAX_ITERATIONS
    return max(0, min(cap, DEFAULT_MAX_ITERATIONS, hard_cap))


def initialize_for_loop(
    config: LoopNodeConfig,
    context: ExecutionContext,
    hard_cap: int = DEFAULT_MAX_ITERATIONS,
) -> LoopState:
    if config.for_config is None:
        raise FatalConfigError("FOR loop requires for_config")

    array_value = resolve(config.for_config.array_variable, context)
    if not isinstance(array_value, (list, tuple)):
        raise FatalConfigError(
            f"FOR loop variable {config.for_config.array_variable} is not an array"
        )

    array = tuple(array_value)
    max_iterations = min(_effective_cap(config.max_iterations, hard_cap), len(array))
    if len(array) > max_iterations:
        logger.info(f"FOR loop over {len(array)} items capped at {max_iterations} iterations")

    return LoopState(
        current_index=0,
        iterations_completed=0,
        should_continue=len(array) > 0 and max_iterations > 0,
        max_iterations=max_iterations,
        loop_type=LoopType.FOR,
        current_item=array[0] if array else None,
        array=array,
        item_name=config.for_config.item_name,
        index_name=config.for_config.index_name,
    )


def advance_for_loop(state: LoopState) -> LoopState:
    next_index = state.current_index + 1
    array = state.array or ()
    return replace(
        state,
        current_index=next_index,
        iterations_completed=state.iterations_completed + 1,
        should_continue=next_index < len(array) and next_index < state.max_iterations,
        current_item=array[next_index] if next_index < len(array) else None,
    )


def initialize_while_loop(
    config: LoopNodeConfig,
    context: ExecutionContext,
    hard_cap: int = DEFAULT_MAX_ITERATIONS,
) -> LoopState:
    if config.while_config is None:
        raise FatalConfigError("WHILE loop requires while_config")

    condition_met = evaluate(config.while_config.condition, context)
    max_iterations = min(
        _effective_cap(config.max_iterations, hard_cap),
        config.while_config.max_iterations,
    )
    return LoopState(
        current_index=0,
        iterations_completed=0,
        should_continue=condition_met and max_iterations > 0,
        max_iterations=max_iterations,
        loop_type=LoopType.WHILE,
    )


def advance_while_loop(
    state: LoopState, condition: Condition, context: ExecutionContext
) -> LoopState:
    """Re-evaluate ``condition`` against the current context and step forward."""
    next_index = state.current_index + 1
    still_met = evaluate(condition, context)
    return replace(
        state,
        current_index=next_index,
        iterations_completed=state.iterations_completed + 1,
        should_continue=still_met and next_index < state.max_iterations,
    )


def get_loop_context_variables(state: LoopState) -> Dict[str, Any]:
    """Variables visible to loop-body nodes for the current iteration."""
    is_for = state.loop_type == LoopType.FOR
    array_length = len(state.array) if state.array is not None else 0
    variables: Dict[str, Any] = {
        "index": state.current_index,
        "iteration": state.iterations_completed + 1,
        "isFirst": state.current_index == 0,
        "isLast": is_for and state.current_index == array_length - 1,
        "total": array_length if is_for else -1,
    }
    if is_for and state.current_index < array_length:
        variables["item"] = state.current_item
        if state.item_name:
            variables[state.item_name] = state.current_item
        if state.index_name:
            variables[state.index_name] = state.current_index
    return variables


def should_loop_continue(state: LoopState) -> bool:
    if state.iterations_completed >= state.max_iterations:
        return False
    return state.should_continue


def _iteration_failed(result: Dict[str, Any]) -> bool:
    return result.get("success") is False or result.get("status") == "error"


def aggregate_loop_results(results: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    collected: List[Dict[str, Any]] = list(results)
    return {
        "iterations": len(collected),
        "results": collected,
        "allSucceeded": not any(_iteration_failed(r) for r in collected),
    }


__all__ = [
    "DEFAULT_MAX_ITERATIONS",
    "LoopState",
    "initialize_for_loop",
    "advance_for_loop",
    "initialize_while_loop",
    "advance_while_loop",
    "get_loop_context_variables",
    "should_loop_continue",
    "aggregate_loop_results",
]
