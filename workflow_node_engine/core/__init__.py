"""Core engine pieces: context, variable resolution, control flow and error analysis."""

from .conditions import evaluate, evaluate_conditions
from .context import ExecutionContext
from .error_handler import analyze_error
from .exceptions import (
    ApprovalTransitionError,
    EngineError,
    FatalConfigError,
    ProcessorNotFoundError,
    ProcessorTimeout,
)
from .loop import (
    LoopState,
    advance_for_loop,
    advance_while_loop,
    aggregate_loop_results,
    get_loop_context_variables,
    initialize_for_loop,
    initialize_while_loop,
    should_loop_continue,
)
from .template import resolve, substitute

__all__ = [
    "ExecutionContext",
    "resolve",
    "substitute",
    "evaluate",
    "evaluate_conditions",
    "LoopState",
    "initialize_for_loop",
    "advance_for_loop",
    "initialize_while_loop",
    "advance_while_loop",
    "get_loop_context_variables",
    "should_loop_continue",
    "aggregate_loop_results",
    "analyze_error",
    "EngineError",
    "FatalConfigError",
    "ProcessorTimeout",
    "ProcessorNotFoundError",
    "ApprovalTransitionError",
]
