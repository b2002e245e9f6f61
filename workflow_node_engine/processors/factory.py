"""Processor registry mapping node-type tags to processor instances."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from workflow_node_engine.core.exceptions import ProcessorNotFoundError
from workflow_node_engine.models.node_enums import PROCESS_WITH_TOOLS, NodeType
from workflow_node_engine.models.workflow import Node, ProcessNodeConfig
from workflow_node_engine.processors.approval import ApprovalNodeProcessor
from workflow_node_engine.processors.base import NodeProcessor
from workflow_node_engine.processors.code import CodeNodeProcessor
from workflow_node_engine.processors.data import DataNodeProcessor
from workflow_node_engine.processors.flow import ConditionNodeProcessor, LoopNodeProcessor
from workflow_node_engine.processors.http import HttpNodeProcessor
from workflow_node_engine.processors.input import InputNodeProcessor
from workflow_node_engine.processors.media import (
    AudioNodeProcessor,
    ImageNodeProcessor,
    VideoNodeProcessor,
)
from workflow_node_engine.processors.output import OutputNodeProcessor
from workflow_node_engine.processors.process import ProcessNodeProcessor
from workflow_node_engine.processors.process_with_tools import ProcessWithToolsNodeProcessor

logger = logging.getLogger(__name__)


def _as_key(node_type) -> str:
    return node_type.value if isinstance(node_type, NodeType) else str(node_type)


class ProcessorRegistry:
    """One processor per node-type tag, plus the tool-calling override."""

    def __init__(self):
        self._processors: Dict[str, NodeProcessor] = {}

    def register(self, processor: NodeProcessor, key: Optional[str] = None) -> None:
        key = _as_key(key or processor.node_type)
        if key in self._processors:
            logger.warning(f"Replacing processor registered for {key}")
        self._processors[key] = processor

    def get(self, node_type) -> Optional[NodeProcessor]:
        return self._processors.get(_as_key(node_type))

    def has(self, node_type) -> bool:
        return _as_key(node_type) in self._processors

    @staticmethod
    def select_key(node: Node) -> str:
        """Dispatch key for ``node``; PROCESS nodes that want tools use the tool-aware processor."""
        if node.type == NodeType.PROCESS and isinstance(node.config, ProcessNodeConfig):
            if node.config.wants_tool_calling:
                return PROCESS_WITH_TOOLS
        return node.type.value

    def resolve(self, node: Node) -> NodeProcessor:
        key = self.select_key(node)
        processor = self._processors.get(key)
        if processor is None and key == PROCESS_WITH_TOOLS:
            logger.warning(
                f"No {PROCESS_WITH_TOOLS} processor registered, falling back to PROCESS for node {node.id}"
            )
            key = NodeType.PROCESS.value
            processor = self._processors.get(key)
        if processor is None:
            raise ProcessorNotFoundError(key)
        return processor


def build_default_registry() -> ProcessorRegistry:
    registry = ProcessorRegistry()
    for processor in (
        InputNodeProcessor(),
        ProcessNodeProcessor(),
        ProcessWithToolsNodeProcessor(),
        CodeNodeProcessor(),
        OutputNodeProcessor(),
        ConditionNodeProcessor(),
        LoopNodeProcessor(),
        DataNodeProcessor(),
        ImageNodeProcessor(),
        VideoNodeProcessor(),
        AudioNodeProcessor(),
        ApprovalNodeProcessor(),
        HttpNodeProcessor(),
    ):
        registry.register(processor)
    return registry


_registry: Optional[ProcessorRegistry] = None


def get_processor_registry() -> ProcessorRegistry:
    global _registry
    if _registry is None:
        _registry = build_default_registry()
    return _registry


def get_processor(node: Node) -> NodeProcessor:
    return get_processor_registry().resolve(node)


__all__ = [
    "ProcessorRegistry",
    "build_default_registry",
    "get_processor_registry",
    "get_processor",
]
