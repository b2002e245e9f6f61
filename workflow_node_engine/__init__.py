"""
Workflow node execution engine.

Dispatches workflow nodes to processors, resolves ``{{node.path}}`` references
against a shared execution context, drives conditions and loops, and runs
single nodes under a debug harness with structured logs.
"""

from .core.debug_runner import DebugRunner, debug_node, debug_node_stream
from .core.context import ExecutionContext
from .core.error_handler import analyze_error
from .models import DebugRequest, DebugResult, Node, NodeOutput, NodeType
from .processors import ProcessorRegistry, get_processor

__version__ = "0.1.0"

__all__ = [
    "DebugRunner",
    "debug_node",
    "debug_node_stream",
    "ExecutionContext",
    "analyze_error",
    "DebugRequest",
    "DebugResult",
    "Node",
    "NodeOutput",
    "NodeType",
    "ProcessorRegistry",
    "get_processor",
]
