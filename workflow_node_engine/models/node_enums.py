"""
Node Type and Status Enums - Single Source of Truth

This module defines the authoritative enums for node types, output statuses,
log levels and control-flow operators used by the node execution engine.
"""

from enum import Enum
from typing import Set


class NodeType(str, Enum):
    """
    Core Node Types

    The closed set of node-type tags a workflow graph may contain.
    """

    INPUT = "INPUT"
    PROCESS = "PROCESS"
    CODE = "CODE"
    OUTPUT = "OUTPUT"
    CONDITION = "CONDITION"
    LOOP = "LOOP"
    DATA = "DATA"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    APPROVAL = "APPROVAL"
    HTTP = "HTTP"


# Registry key for the tool-aware PROCESS variant. Not a node type of its own.
PROCESS_WITH_TOOLS = "PROCESS_WITH_TOOLS"

# Node type recorded on outputs seeded by the debug runner.
MOCK_NODE_TYPE = "MOCK"

MEDIA_NODE_TYPES: Set[NodeType] = {NodeType.IMAGE, NodeType.VIDEO, NodeType.AUDIO}


class NodeOutputStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"
    PAUSED = "paused"


class LogLevel(str, Enum):
    INFO = "info"
    STEP = "step"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ConditionOperator(str, Enum):
    """Comparison operators available to CONDITION nodes and WHILE loops."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_OR_EQUAL = "greaterOrEqual"
    LESS_OR_EQUAL = "lessOrEqual"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"


ORDERING_OPERATORS: Set[ConditionOperator] = {
    ConditionOperator.GREATER_THAN,
    ConditionOperator.LESS_THAN,
    ConditionOperator.GREATER_OR_EQUAL,
    ConditionOperator.LESS_OR_EQUAL,
}

STRING_OPERATORS: Set[ConditionOperator] = {
    ConditionOperator.CONTAINS,
    ConditionOperator.NOT_CONTAINS,
    ConditionOperator.STARTS_WITH,
    ConditionOperator.ENDS_WITH,
}


class EvaluationMode(str, Enum):
    ALL = "all"
    ANY = "any"


class LoopType(str, Enum):
    FOR = "FOR"
    WHILE = "WHILE"


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"
    HTML = "html"
    CSV = "csv"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class HttpBodyType(str, Enum):
    JSON = "json"
    FORM = "form"
    TEXT = "text"
    NONE = "none"


class HttpAuthType(str, Enum):
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    API_KEY = "apikey"


class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ESCALATED = "ESCALATED"


class TimeoutAction(str, Enum):
    """What the timeout sweep does with an approval request nobody answered."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"
    ESCALATE = "ESCALATE"


__all__ = [
    "NodeType",
    "PROCESS_WITH_TOOLS",
    "MOCK_NODE_TYPE",
    "MEDIA_NODE_TYPES",
    "NodeOutputStatus",
    "LogLevel",
    "ConditionOperator",
    "ORDERING_OPERATORS",
    "STRING_OPERATORS",
    "EvaluationMode",
    "LoopType",
    "OutputFormat",
    "HttpMethod",
    "HttpBodyType",
    "HttpAuthType",
    "ApprovalStatus",
    "TimeoutAction",
]
