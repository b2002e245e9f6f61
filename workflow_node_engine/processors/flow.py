"""Control-flow processors: CONDITION and LOOP."""

from __future__ import annotations

import logging
from datetime import datetime

from workflow_node_engine.config import get_settings
from workflow_node_engine.core.conditions import describe_evaluation, evaluate_conditions
from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.loop import (
    get_loop_context_variables,
    initialize_for_loop,
    initialize_while_loop,
)
from workflow_node_engine.models.execution import NodeOutput
from workflow_node_engine.models.node_enums import LogLevel, LoopType, NodeType
from workflow_node_engine.models.workflow import ConditionNodeConfig, LoopNodeConfig, Node
from workflow_node_engine.processors.base import NodeProcessor

logger = logging.getLogger(__name__)


class ConditionNodeProcessor(NodeProcessor):
    node_type = NodeType.CONDITION.value

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: ConditionNodeConfig = node.config
        if not config.conditions:
            raise ValueError("CONDITION node must have at least one condition")

        result = evaluate_conditions(config.conditions, config.evaluation_mode, context)
        evaluated = describe_evaluation(config.conditions, context)
        context.add_log(
            LogLevel.INFO,
            f"Conditions evaluated ({config.evaluation_mode.value}): {result}",
            "CONDITION",
            {"evaluatedConditions": evaluated},
        )
        return self.success(
            node,
            {"result": result, "conditionsMet": result, "evaluatedConditions": evaluated},
            started_at,
        )


class LoopNodeProcessor(NodeProcessor):
    """Initializes loop state; the embedding engine drives the iterations."""

    node_type = NodeType.LOOP.value

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: LoopNodeConfig = node.config
        hard_cap = get_settings().max_loop_iterations

        if config.loop_type == LoopType.FOR:
            state = initialize_for_loop(config, context, hard_cap=hard_cap)
        else:
            state = initialize_while_loop(config, context, hard_cap=hard_cap)

        loop_variables = get_loop_context_variables(state)
        context.global_variables[config.namespace] = loop_variables
        context.add_log(
            LogLevel.INFO,
            f"{config.loop_type.value} loop initialized with up to {state.max_iterations} iterations",
            "LOOP",
            {"shouldContinue": state.should_continue, "namespace": config.namespace},
        )

        data = {
            "loopType": config.loop_type.value,
            "state": state.to_dict(),
            "loopVariables": loop_variables,
            "shouldContinue": state.should_continue,
            "currentIndex": state.current_index,
            "maxIterations": state.max_iterations,
        }
        if config.loop_type == LoopType.FOR:
            data["currentItem"] = state.current_item
            data["arrayLength"] = len(state.array or ())
        return self.success(node, data, started_at)


__all__ = ["ConditionNodeProcessor", "LoopNodeProcessor"]
