"""AI service registry for the node engine.

Processors talk to AI providers only through ``AIService.chat`` and
``AIService.transcribe``. ``EchoAIService`` is the offline default; the
OpenAI-compatible service speaks the chat-completions wire format over httpx.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from workflow_node_engine.config import get_settings
from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.models.execution import AIConfig, TokenUsage

logger = logging.getLogger(__name__)


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ChatMessage(BaseModel):
    role: str
    content: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


class ChatRequest(BaseModel):
    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tools: List[Dict[str, Any]] = Field(default_factory=list)


class ChatResponse(BaseModel):
    content: str = ""
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    tool_calls: List[ToolCall] = Field(default_factory=list)
    finish_reason: Optional[str] = None


class AIService(ABC):
    @abstractmethod
    async def chat(self, request: ChatRequest, config: AIConfig) -> ChatResponse:
        raise NotImplementedError

    async def transcribe(
        self,
        audio: bytes,
        file_name: str,
        config: AIConfig,
        language: Optional[str] = None,
    ) -> str:  # pragma: no cover - interface
        raise NotImplementedError(f"{type(self).__name__} does not support transcription")


class EchoAIService(AIService):
    """Returns the last user message; used when no provider is configured."""

    async def chat(self, request: ChatRequest, config: AIConfig) -> ChatResponse:
        prompt = ""
        for message in reversed(request.messages):
            if message.role == "user" and message.content:
                prompt = message.content
                break
        prompt_tokens = sum(len((m.content or "").split()) for m in request.messages)
        completion_tokens = len(prompt.split())
        return ChatResponse(
            content=prompt,
            model=request.model or "echo",
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason="stop",
        )

    async def transcribe(
        self,
        audio: bytes,
        file_name: str,
        config: AIConfig,
        language: Optional[str] = None,
    ) -> str:
        return audio.decode("utf-8", errors="replace")


class OpenAICompatibleService(AIService):
    """Chat-completions client for OpenAI and API-compatible providers."""

    def __init__(self, base_url: str = "https://api.openai.com/v1", timeout_seconds: float = 120.0):
        self._base = base_url.rstrip("/")
        self._timeout = timeout_seconds

    def _headers(self, config: AIConfig) -> Dict[str, str]:
        api_key = config.api_key or get_settings().openai_api_key
        if not api_key:
            raise ValueError("OpenAI API key not provided")
        return {"Authorization": f"Bearer {api_key}"}

    def _base_url(self, config: AIConfig) -> str:
        return (config.base_url or self._base).rstrip("/")

    @staticmethod
    def _serialize_message(message: ChatMessage) -> Dict[str, Any]:
        body: Dict[str, Any] = {"role": message.role, "content": message.content}
        if message.tool_calls:
            body["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in message.tool_calls
            ]
        if message.tool_call_id:
            body["tool_call_id"] = message.tool_call_id
        return body

    async def chat(self, request: ChatRequest, config: AIConfig) -> ChatResponse:
        body: Dict[str, Any] = {
            "model": request.model,
            "messages": [self._serialize_message(m) for m in request.messages],
        }
        if request.temperature is not None:
            body["temperature"] = request.temperature
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if request.tools:
            body["tools"] = request.tools
            body["tool_choice"] = "auto"

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(
                f"{self._base_url(config)}/chat/completions",
                headers=self._headers(config),
                json=body,
            )
            resp.raise_for_status()
            data = resp.json()

        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}
        tool_calls = []
        for raw_call in message.get("tool_calls") or []:
            function = raw_call.get("function") or {}
            try:
                arguments = json.loads(function.get("arguments") or "{}")
            except ValueError:
                logger.warning(f"Tool call {function.get('name')} returned non-JSON arguments")
                arguments = {"raw": function.get("arguments")}
            tool_calls.append(
                ToolCall(id=raw_call.get("id", ""), name=function.get("name", ""), arguments=arguments)
            )
        usage = data.get("usage") or {}
        return ChatResponse(
            content=message.get("content") or "",
            model=data.get("model", request.model),
            usage=TokenUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            ),
            tool_calls=tool_calls,
            finish_reason=choice.get("finish_reason"),
        )

    async def transcribe(
        self,
        audio: bytes,
        file_name: str,
        config: AIConfig,
        language: Optional[str] = None,
    ) -> str:
        data = {"model": "whisper-1"}
        if language:
            data["language"] = language
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.post(
                f"{self._base_url(config)}/audio/transcriptions",
                headers=self._headers(config),
                data=data,
                files={"file": (file_name, audio)},
            )
            resp.raise_for_status()
            return resp.json().get("text", "")


_registry: Dict[str, AIService] = {
    "echo": EchoAIService(),
    "openai": OpenAICompatibleService(),
}


def get_ai_service(provider: str) -> AIService:
    service = _registry.get(provider)
    if service is None:
        logger.warning(f"Unknown AI provider '{provider}', falling back to echo")
        return _registry["echo"]
    return service


def register_ai_service(provider: str, service: AIService) -> None:
    _registry[provider] = service


class AIConfigStore(ABC):
    """Looks up provider credentials by AI config id."""

    @abstractmethod
    async def get_config(self, config_id: str, organization_id: str) -> Optional[AIConfig]:
        raise NotImplementedError


class InMemoryAIConfigStore(AIConfigStore):
    """Holds explicitly registered configs plus a ``default`` one built from settings."""

    DEFAULT_ID = "default"

    def __init__(self, configs: Optional[List[AIConfig]] = None):
        self._configs: Dict[str, AIConfig] = {c.id: c for c in configs or []}

    def add(self, config: AIConfig) -> None:
        self._configs[config.id] = config

    def _default_config(self) -> AIConfig:
        settings = get_settings()
        return AIConfig(
            id=self.DEFAULT_ID,
            provider=settings.default_ai_provider,
            api_key=settings.openai_api_key,
            default_model=settings.default_model,
        )

    async def get_config(self, config_id: str, organization_id: str) -> Optional[AIConfig]:
        if config_id in self._configs:
            return self._configs[config_id]
        if config_id == self.DEFAULT_ID:
            return self._default_config()
        return None


_config_store: AIConfigStore = InMemoryAIConfigStore()


def get_ai_config_store() -> AIConfigStore:
    return _config_store


def set_ai_config_store(store: AIConfigStore) -> None:
    global _config_store
    _config_store = store


async def load_ai_config(
    context: ExecutionContext,
    config_id: Optional[str],
    store: Optional[AIConfigStore] = None,
) -> AIConfig:
    """Fetch an AI config once per run; later calls read ``context.ai_configs``."""
    config_id = config_id or InMemoryAIConfigStore.DEFAULT_ID
    cached = context.ai_configs.get(config_id)
    if cached is not None:
        return cached
    store = store or get_ai_config_store()
    config = await store.get_config(config_id, context.organization_id)
    if config is None:
        raise ValueError(f"AI config not found: {config_id}")
    context.ai_configs[config_id] = config
    return config


__all__ = [
    "ToolCall",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "AIService",
    "EchoAIService",
    "OpenAICompatibleService",
    "get_ai_service",
    "register_ai_service",
    "AIConfigStore",
    "InMemoryAIConfigStore",
    "get_ai_config_store",
    "set_ai_config_store",
    "load_ai_config",
]
