"""
Workflow node models.

A ``Node`` carries a type tag and a config record; the concrete config model
is chosen by the tag. Config keys are accepted both in the editor's camelCase
form (``arrayVariable``) and in snake_case (``array_variable``).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .node_enums import (
    ConditionOperator,
    EvaluationMode,
    HttpAuthType,
    HttpBodyType,
    HttpMethod,
    LoopType,
    NodeType,
    OutputFormat,
    TimeoutAction,
)


class BaseNodeConfig(BaseModel):
    """Common base for every node config variant."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class FileReference(BaseModel):
    """A file attached to a node, either inline or behind a URL."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str
    url: Optional[str] = None
    content: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="type")
    size: Optional[int] = None


class InputField(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str
    value: Any = None
    field_type: str = "text"
    required: bool = False


class InputNodeConfig(BaseNodeConfig):
    fields: List[InputField] = Field(default_factory=list)
    files: List[FileReference] = Field(default_factory=list)


class KnowledgeItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    name: str = ""
    content: str = ""


class ToolConfig(BaseModel):
    """A tool the AI may call while processing a PROCESS node."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    type: str
    name: str
    description: str = ""
    enabled: bool = True
    parameters: Dict[str, Any] = Field(default_factory=dict)
    config: Dict[str, Any] = Field(default_factory=dict)


class AIBackedConfig(BaseNodeConfig):
    ai_config_id: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class ProcessNodeConfig(AIBackedConfig):
    system_prompt: str = ""
    user_prompt: str = ""
    knowledge_items: List[KnowledgeItem] = Field(default_factory=list)
    enable_tool_calling: bool = False
    tools: List[ToolConfig] = Field(default_factory=list)
    max_tool_call_rounds: Optional[int] = None

    @property
    def enabled_tools(self) -> List[ToolConfig]:
        return [tool for tool in self.tools if tool.enabled]

    @property
    def wants_tool_calling(self) -> bool:
        return bool(self.enable_tool_calling or self.enabled_tools)


class CodeNodeConfig(AIBackedConfig):
    language: str = "python"
    code: str = ""
    prompt: str = ""
    timeout_seconds: Optional[float] = None


class OutputNodeConfig(AIBackedConfig):
    prompt: str = ""
    format: OutputFormat = OutputFormat.TEXT
    file_name: Optional[str] = None

    @field_validator("format", mode="before")
    @classmethod
    def normalize_format(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v


class Condition(BaseModel):
    """A single comparison: resolved ``variable`` against literal ``value``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    variable: str
    operator: ConditionOperator
    value: Any = None


class ConditionNodeConfig(BaseNodeConfig):
    conditions: List[Condition] = Field(default_factory=list)
    evaluation_mode: EvaluationMode = EvaluationMode.ALL


class ForLoopConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    array_variable: str
    item_name: str = "item"
    index_name: str = "index"


class WhileLoopConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    condition: Condition
    max_iterations: int = 1000

    @field_validator("max_iterations")
    @classmethod
    def validate_max_iterations(cls, v):
        if v < 0:
            raise ValueError("max_iterations must be non-negative")
        return v


class LoopNodeConfig(BaseNodeConfig):
    loop_type: LoopType = LoopType.FOR
    for_config: Optional[ForLoopConfig] = None
    while_config: Optional[WhileLoopConfig] = None
    max_iterations: Optional[int] = None
    continue_on_error: bool = False
    namespace: str = "loop"


class DataNodeConfig(BaseNodeConfig):
    files: List[FileReference] = Field(default_factory=list)
    delimiter: str = ","
    has_header: bool = True


class MediaNodeConfig(AIBackedConfig):
    files: List[FileReference] = Field(default_factory=list)
    prompt: str = ""
    analyze: bool = True
    transcribe: bool = False
    language: Optional[str] = None


class Approver(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    type: str = "USER"
    target_id: str
    display_name: Optional[str] = None


class ApprovalNodeConfig(BaseNodeConfig):
    title: str = "Approval request"
    description: Optional[str] = None
    approvers: List[Approver] = Field(default_factory=list)
    required_approvals: int = 1
    timeout_seconds: Optional[int] = None
    timeout_action: TimeoutAction = TimeoutAction.REJECT
    notification_channels: List[str] = Field(default_factory=lambda: ["IN_APP"])
    custom_fields: List[Dict[str, Any]] = Field(default_factory=list)


class ApiKeyAuthConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    key: str
    value: str = ""
    add_to: str = "header"


class HttpAuthConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    type: HttpAuthType = HttpAuthType.NONE
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    api_key: Optional[ApiKeyAuthConfig] = None


class HttpBodyConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    type: HttpBodyType = HttpBodyType.NONE
    content: Optional[Any] = None


class HttpRetryConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    max_retries: int = 3
    retry_delay: int = 1000  # milliseconds, doubled after each attempt
    retry_on_status: List[int] = Field(default_factory=lambda: [408, 429, 500, 502, 503, 504])

    @field_validator("max_retries", "retry_delay")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("retry settings cannot be negative")
        return v


class HttpNodeConfig(BaseNodeConfig):
    method: HttpMethod = HttpMethod.GET
    url: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    query_params: Dict[str, str] = Field(default_factory=dict)
    body: Optional[HttpBodyConfig] = None
    auth: Optional[HttpAuthConfig] = None
    timeout: Optional[int] = None  # milliseconds
    retry: Optional[HttpRetryConfig] = None
    response_type: str = "json"
    validate_ssl: bool = Field(default=True, alias="validateSSL")

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        return v.upper() if isinstance(v, str) else v


CONFIG_MODELS: Dict[NodeType, Type[BaseNodeConfig]] = {
    NodeType.INPUT: InputNodeConfig,
    NodeType.PROCESS: ProcessNodeConfig,
    NodeType.CODE: CodeNodeConfig,
    NodeType.OUTPUT: OutputNodeConfig,
    NodeType.CONDITION: ConditionNodeConfig,
    NodeType.LOOP: LoopNodeConfig,
    NodeType.DATA: DataNodeConfig,
    NodeType.IMAGE: MediaNodeConfig,
    NodeType.VIDEO: MediaNodeConfig,
    NodeType.AUDIO: MediaNodeConfig,
    NodeType.APPROVAL: ApprovalNodeConfig,
    NodeType.HTTP: HttpNodeConfig,
}


class Node(BaseModel):
    """A typed unit of work in a workflow graph."""

    id: str
    type: NodeType
    name: str
    # Dumped by runtime type so the variant fields survive serialization
    config: SerializeAsAny[BaseNodeConfig] = Field(default_factory=BaseNodeConfig)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Node name cannot be empty")
        return v

    @model_validator(mode="before")
    @classmethod
    def coerce_config(cls, data):
        if not isinstance(data, dict):
            return data
        raw_type = data.get("type")
        try:
            node_type = NodeType(raw_type)
        except ValueError:
            # Let field validation report the bad tag
            return data
        config = data.get("config") or {}
        config_model = CONFIG_MODELS[node_type]
        if isinstance(config, BaseModel) and not isinstance(config, config_model):
            config = config.model_dump(by_alias=True)
        if isinstance(config, dict):
            config = config_model.model_validate(config)
        return {**data, "config": config}


__all__ = [
    "BaseNodeConfig",
    "FileReference",
    "InputField",
    "InputNodeConfig",
    "KnowledgeItem",
    "ToolConfig",
    "AIBackedConfig",
    "ProcessNodeConfig",
    "CodeNodeConfig",
    "OutputNodeConfig",
    "Condition",
    "ConditionNodeConfig",
    "ForLoopConfig",
    "WhileLoopConfig",
    "LoopNodeConfig",
    "DataNodeConfig",
    "MediaNodeConfig",
    "Approver",
    "ApprovalNodeConfig",
    "ApiKeyAuthConfig",
    "HttpAuthConfig",
    "HttpBodyConfig",
    "HttpRetryConfig",
    "HttpNodeConfig",
    "CONFIG_MODELS",
    "Node",
]
