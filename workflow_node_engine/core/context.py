"""
Shared execution state for node processors.

An ``ExecutionContext`` is owned by exactly one run (a debug invocation or a
workflow execution driven by an embedding engine) and is mutated by one
writer at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from workflow_node_engine.core.redaction import redact_sensitive_fields
from workflow_node_engine.models.execution import AIConfig, ImportedFile, LogEntry, NodeOutput
from workflow_node_engine.models.node_enums import MOCK_NODE_TYPE, LogLevel, NodeOutputStatus

logger = logging.getLogger(__name__)

LogListener = Callable[[LogEntry], None]


@dataclass
class ExecutionContext:
    execution_id: str
    workflow_id: str
    organization_id: str
    user_id: str
    node_outputs: Dict[str, NodeOutput] = field(default_factory=dict)
    node_outputs_by_id: Dict[str, NodeOutput] = field(default_factory=dict)
    global_variables: Dict[str, Any] = field(default_factory=dict)
    ai_configs: Dict[str, AIConfig] = field(default_factory=dict)
    logs: List[LogEntry] = field(default_factory=list)
    imported_files: List[ImportedFile] = field(default_factory=list)
    redactor: Callable[[Any], Any] = redact_sensitive_fields
    log_listener: Optional[LogListener] = None

    def add_log(
        self,
        level: Union[LogLevel, str],
        message: str,
        step: Optional[str] = None,
        data: Any = None,
    ) -> LogEntry:
        """Append a structured log entry; ``data`` is redacted before storage."""
        safe_data = self.redactor(data) if data is not None else None
        entry = LogEntry(level=LogLevel(level), message=message, step=step, data=safe_data)
        self.logs.append(entry)
        logger.debug(entry.render(), extra={"execution_id": self.execution_id})
        if self.log_listener is not None:
            self.log_listener(entry)
        return entry

    def set_output(self, output: NodeOutput) -> None:
        """Publish a finished node output under its name and its id.

        Two nodes sharing a name overwrite each other in the name index; the
        id index keeps both reachable.
        """
        existing = self.node_outputs.get(output.node_name)
        if existing is not None and existing.node_id != output.node_id:
            logger.warning(
                f"Node name '{output.node_name}' already produced output for node "
                f"{existing.node_id}; overwriting with node {output.node_id}"
            )
        self.node_outputs[output.node_name] = output
        self.node_outputs_by_id[output.node_id] = output

    def get_output(self, name_or_id: str) -> Optional[NodeOutput]:
        output = self.node_outputs.get(name_or_id)
        if output is None:
            output = self.node_outputs_by_id.get(name_or_id)
        return output

    def successful_outputs(self) -> Dict[str, NodeOutput]:
        return {
            name: output
            for name, output in self.node_outputs.items()
            if output.status == NodeOutputStatus.SUCCESS
        }

    def seed_mock_output(self, node_name: str, data: Dict[str, Any]) -> NodeOutput:
        """Install a caller-supplied upstream output, keyed by ``node_name``."""
        mock_output = NodeOutput(
            node_id=node_name,
            node_name=node_name,
            node_type=MOCK_NODE_TYPE,
            status=NodeOutputStatus.SUCCESS,
            data=dict(data),
        )
        self.set_output(mock_output)
        return mock_output


__all__ = ["ExecutionContext", "LogListener"]
