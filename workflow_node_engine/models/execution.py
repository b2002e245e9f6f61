"""
Execution result models.

Covers what a processor produces (``NodeOutput``), what the debug runner
records and returns (``LogEntry``, ``DebugRequest``, ``DebugResult``) and
the user-facing classification of a failure (``ErrorAnalysis``).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .node_enums import LogLevel, NodeOutputStatus
from .workflow import Node


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class NodeOutput(BaseModel):
    """The record a processor produces for one node execution."""

    node_id: str
    node_name: str
    node_type: str
    status: NodeOutputStatus
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime = Field(default_factory=utc_now)
    token_usage: Optional[TokenUsage] = None
    approval_request_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_timing_and_pause(self):
        if self.completed_at < self.started_at:
            raise ValueError("completed_at must not precede started_at")
        if self.approval_request_id and self.status != NodeOutputStatus.PAUSED:
            raise ValueError("approval_request_id is only valid on paused outputs")
        return self

    @property
    def duration(self) -> int:
        """Elapsed milliseconds between start and completion."""
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    @property
    def is_success(self) -> bool:
        return self.status == NodeOutputStatus.SUCCESS


class LogEntry(BaseModel):
    level: LogLevel
    message: str
    step: Optional[str] = None
    data: Any = None
    timestamp: datetime = Field(default_factory=utc_now)

    def render(self) -> str:
        """Single-line rendering used for plain-text log trails."""
        time_str = self.timestamp.strftime("%H:%M:%S")
        prefix = f"[{time_str}] {self.level.value.upper()}"
        if self.step:
            return f"{prefix} [{self.step}] {self.message}"
        return f"{prefix} {self.message}"


class ErrorAnalysis(BaseModel):
    message: str
    friendly_message: str
    suggestions: List[str] = Field(default_factory=list)
    code: Optional[str] = None
    is_retryable: bool = False


class AIConfig(BaseModel):
    """Provider credentials and defaults for one AI configuration."""

    id: str
    provider: str = "echo"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    default_model: Optional[str] = None


class ImportedFile(BaseModel):
    """A file the caller injects into a debug run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    content: str = ""
    type: str = "text/plain"


class DebugRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    workflow_id: str
    organization_id: str
    user_id: str
    node: Node
    mock_inputs: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    global_variables: Dict[str, Any] = Field(default_factory=dict)
    imported_files: List[ImportedFile] = Field(default_factory=list)
    timeout_seconds: Optional[float] = None

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v):
        if v is not None and v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v


class DebugResult(BaseModel):
    status: NodeOutputStatus
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    duration: int = 0
    token_usage: Optional[TokenUsage] = None
    logs: List[LogEntry] = Field(default_factory=list)
    approval_request_id: Optional[str] = None

    @property
    def is_paused(self) -> bool:
        return bool(self.approval_request_id)

    def log_lines(self) -> List[str]:
        return [entry.render() for entry in self.logs]


__all__ = [
    "utc_now",
    "TokenUsage",
    "NodeOutput",
    "LogEntry",
    "ErrorAnalysis",
    "AIConfig",
    "ImportedFile",
    "DebugRequest",
    "DebugResult",
]
