"""Data models shared by the node execution engine."""

from .execution import (
    AIConfig,
    DebugRequest,
    DebugResult,
    ErrorAnalysis,
    ImportedFile,
    LogEntry,
    NodeOutput,
    TokenUsage,
)
from .node_enums import (
    ConditionOperator,
    EvaluationMode,
    LogLevel,
    LoopType,
    NodeOutputStatus,
    NodeType,
)
from .workflow import Condition, Node

__all__ = [
    "AIConfig",
    "Condition",
    "ConditionOperator",
    "DebugRequest",
    "DebugResult",
    "ErrorAnalysis",
    "EvaluationMode",
    "ImportedFile",
    "LogEntry",
    "LogLevel",
    "LoopType",
    "Node",
    "NodeOutput",
    "NodeOutputStatus",
    "NodeType",
    "TokenUsage",
]
