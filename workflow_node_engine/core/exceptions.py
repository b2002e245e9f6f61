"""Engine-specific exceptions for the node execution engine."""

from __future__ import annotations


class EngineError(Exception):
    pass


class FatalConfigError(EngineError):
    """A node is missing required configuration. Never retried."""


class ProcessorTimeout(EngineError):
    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Processor execution timed out after {timeout_seconds:g} seconds")


class ProcessorNotFoundError(EngineError):
    def __init__(self, node_type: str):
        self.node_type = node_type
        super().__init__(f"No processor registered for node type: {node_type}")


class ApprovalTransitionError(EngineError):
    pass


__all__ = [
    "EngineError",
    "FatalConfigError",
    "ProcessorTimeout",
    "ProcessorNotFoundError",
    "ApprovalTransitionError",
]
