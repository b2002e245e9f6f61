"""INPUT node processor."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.models.execution import NodeOutput
from workflow_node_engine.models.node_enums import LogLevel, NodeType
from workflow_node_engine.models.workflow import InputNodeConfig, Node
from workflow_node_engine.processors.base import NodeProcessor


class InputNodeProcessor(NodeProcessor):
    node_type = NodeType.INPUT.value

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: InputNodeConfig = node.config
        data: Dict[str, Any] = {}
        for field in config.fields:
            if field.required and field.value in (None, ""):
                raise ValueError(f"Required input field '{field.name}' is empty")
            data[field.name] = field.value

        files: List[Dict[str, Any]] = [
            {"name": f.name, "type": f.mime_type, "url": f.url, "content": f.content}
            for f in config.files
        ]
        files.extend(
            {"name": f.name, "type": f.type, "url": None, "content": f.content}
            for f in context.imported_files
        )
        if files:
            data["files"] = files

        context.add_log(
            LogLevel.SUCCESS,
            f"Collected {len(config.fields)} input fields",
            "INPUT",
            {"fields": list(data.keys())},
        )
        return self.success(node, data, started_at)


__all__ = ["InputNodeProcessor"]
