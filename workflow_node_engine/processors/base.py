"""Base processor types for the node engine."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.exceptions import FatalConfigError
from workflow_node_engine.models.execution import NodeOutput, TokenUsage, utc_now
from workflow_node_engine.models.node_enums import LogLevel, NodeOutputStatus
from workflow_node_engine.models.workflow import Node

logger = logging.getLogger(__name__)


class NodeProcessor(ABC):
    """Runs one node against an execution context and reports a ``NodeOutput``.

    Failures of the delegated work become ``status=error`` outputs;
    ``FatalConfigError`` propagates to the caller.
    """

    node_type: str = ""

    async def process(self, node: Node, context: ExecutionContext) -> NodeOutput:
        started_at = utc_now()
        try:
            return await self.run(node, context, started_at)
        except FatalConfigError:
            raise
        except Exception as e:
            logger.error(f"{self.node_type} processor failed for node {node.id}: {str(e)}")
            context.add_log(LogLevel.ERROR, f"{node.name}: {str(e)}", self.node_type)
            return self.failure(node, str(e), started_at)

    @abstractmethod
    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        raise NotImplementedError

    def success(
        self,
        node: Node,
        data: Dict[str, Any],
        started_at: datetime,
        token_usage: Optional[TokenUsage] = None,
    ) -> NodeOutput:
        return NodeOutput(
            node_id=node.id,
            node_name=node.name,
            node_type=node.type.value,
            status=NodeOutputStatus.SUCCESS,
            data=data,
            started_at=started_at,
            completed_at=utc_now(),
            token_usage=token_usage,
        )

    def failure(
        self,
        node: Node,
        error: str,
        started_at: datetime,
        data: Optional[Dict[str, Any]] = None,
    ) -> NodeOutput:
        return NodeOutput(
            node_id=node.id,
            node_name=node.name,
            node_type=node.type.value,
            status=NodeOutputStatus.ERROR,
            data=data or {},
            error=error,
            started_at=started_at,
            completed_at=utc_now(),
        )

    def paused(
        self,
        node: Node,
        data: Dict[str, Any],
        started_at: datetime,
        approval_request_id: str,
    ) -> NodeOutput:
        return NodeOutput(
            node_id=node.id,
            node_name=node.name,
            node_type=node.type.value,
            status=NodeOutputStatus.PAUSED,
            data=data,
            started_at=started_at,
            completed_at=utc_now(),
            approval_request_id=approval_request_id,
        )


__all__ = ["NodeProcessor"]
