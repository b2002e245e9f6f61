"""PROCESS node processor (AI processing)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.template import substitute
from workflow_node_engine.models.execution import AIConfig, NodeOutput
from workflow_node_engine.models.node_enums import LogLevel, NodeType
from workflow_node_engine.models.workflow import AIBackedConfig, Node, ProcessNodeConfig
from workflow_node_engine.processors.base import NodeProcessor
from workflow_node_engine.services.ai_service import (
    AIConfigStore,
    AIService,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    get_ai_service,
    load_ai_config,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048


class AIBackedProcessor(NodeProcessor):
    """Shared plumbing for processors that delegate to an ``AIService``."""

    def __init__(
        self,
        ai_config_store: Optional[AIConfigStore] = None,
        ai_service: Optional[AIService] = None,
    ):
        self._ai_config_store = ai_config_store
        self._ai_service = ai_service

    async def load_config(self, config: AIBackedConfig, context: ExecutionContext) -> AIConfig:
        return await load_ai_config(context, config.ai_config_id, self._ai_config_store)

    def service_for(self, ai_config: AIConfig) -> AIService:
        return self._ai_service or get_ai_service(ai_config.provider)

    @staticmethod
    def model_for(config: AIBackedConfig, ai_config: AIConfig) -> str:
        return config.model or ai_config.default_model or "echo"

    async def chat(
        self,
        config: AIBackedConfig,
        ai_config: AIConfig,
        messages: List[ChatMessage],
        context: ExecutionContext,
        tools: Optional[List[dict]] = None,
    ) -> ChatResponse:
        request = ChatRequest(
            model=self.model_for(config, ai_config),
            messages=messages,
            temperature=config.temperature if config.temperature is not None else DEFAULT_TEMPERATURE,
            max_tokens=config.max_tokens or DEFAULT_MAX_TOKENS,
            tools=tools or [],
        )
        context.add_log(
            LogLevel.STEP,
            f"Calling AI model {request.model}",
            "AI_CALL",
            {"provider": ai_config.provider, "messages": len(messages), "tools": len(request.tools)},
        )
        response = await self.service_for(ai_config).chat(request, ai_config)
        context.add_log(
            LogLevel.INFO,
            "AI response received",
            "AI_CALL",
            {"model": response.model, "usage": response.usage.model_dump()},
        )
        return response


def build_system_prompt(config: ProcessNodeConfig) -> str:
    system_prompt = config.system_prompt or ""
    if config.knowledge_items:
        knowledge_text = "\n\n".join(
            f"[{item.name}]\n{item.content}" for item in config.knowledge_items
        )
        system_prompt = f"{system_prompt}\n\nReference material:\n{knowledge_text}"
    return system_prompt


def build_messages(config: ProcessNodeConfig, context: ExecutionContext) -> List[ChatMessage]:
    """System prompt plus knowledge items, and the substituted user prompt."""
    system_prompt = build_system_prompt(config)
    user_prompt = substitute(config.user_prompt or "", context)
    if not user_prompt.strip():
        raise ValueError("User prompt cannot be empty")

    messages = []
    if system_prompt.strip():
        messages.append(ChatMessage(role="system", content=substitute(system_prompt, context)))
    messages.append(ChatMessage(role="user", content=user_prompt))
    return messages


class ProcessNodeProcessor(AIBackedProcessor):
    node_type = NodeType.PROCESS.value

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: ProcessNodeConfig = node.config
        ai_config = await self.load_config(config, context)
        messages = build_messages(config, context)

        response = await self.chat(config, ai_config, messages, context)
        return self.success(
            node,
            {"result": response.content, "model": response.model},
            started_at,
            token_usage=response.usage,
        )


__all__ = [
    "AIBackedProcessor",
    "build_system_prompt",
    "build_messages",
    "ProcessNodeProcessor",
]
