"""PROCESS node processor with multi-round tool calling."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from workflow_node_engine.config import get_settings
from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.template import substitute_structure
from workflow_node_engine.models.execution import NodeOutput, TokenUsage
from workflow_node_engine.models.node_enums import PROCESS_WITH_TOOLS, LogLevel
from workflow_node_engine.models.workflow import Node, ProcessNodeConfig, ToolConfig
from workflow_node_engine.processors.process import AIBackedProcessor, build_messages
from workflow_node_engine.services.ai_service import AIConfigStore, AIService, ChatMessage
from workflow_node_engine.services.tools import ToolExecutor, function_name_for

logger = logging.getLogger(__name__)


class ProcessWithToolsNodeProcessor(AIBackedProcessor):
    node_type = PROCESS_WITH_TOOLS

    def __init__(
        self,
        ai_config_store: Optional[AIConfigStore] = None,
        ai_service: Optional[AIService] = None,
        tool_executor: Optional[ToolExecutor] = None,
    ):
        super().__init__(ai_config_store=ai_config_store, ai_service=ai_service)
        self._tool_executor = tool_executor or ToolExecutor()

    def _usable_tools(self, config: ProcessNodeConfig, context: ExecutionContext) -> Dict[str, ToolConfig]:
        usable: Dict[str, ToolConfig] = {}
        for tool in config.enabled_tools:
            if not self._tool_executor.supports(tool.type):
                context.add_log(
                    LogLevel.WARNING,
                    f"Tool '{tool.name}' ({tool.type}) is not supported and will be skipped",
                    "TOOLS",
                )
                continue
            resolved = tool.model_copy(update={"config": substitute_structure(tool.config, context)})
            usable[function_name_for(tool)] = resolved
        return usable

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: ProcessNodeConfig = node.config
        ai_config = await self.load_config(config, context)
        messages = build_messages(config, context)
        tools = self._usable_tools(config, context)
        tool_specs = [self._tool_executor.to_function_spec(tool) for tool in tools.values()]
        max_rounds = config.max_tool_call_rounds or get_settings().max_tool_call_rounds

        context.add_log(
            LogLevel.INFO,
            f"Tool calling enabled with {len(tools)} tools",
            "TOOLS",
            {"tools": list(tools.keys()), "maxRounds": max_rounds},
        )

        usage = TokenUsage()
        tool_call_log: List[Dict[str, Any]] = []
        content = ""
        model = ""
        rounds = 0

        while rounds < max_rounds:
            rounds += 1
            context.add_log(LogLevel.INFO, f"Round {rounds}: waiting for AI response", "ROUND")
            response = await self.chat(config, ai_config, messages, context, tools=tool_specs)
            usage = usage + response.usage
            content = response.content
            model = response.model

            if not response.tool_calls:
                context.add_log(LogLevel.INFO, f"Round {rounds}: no tool calls, finishing", "ROUND")
                break

            context.add_log(
                LogLevel.STEP,
                f"Round {rounds}: AI requested {len(response.tool_calls)} tool calls",
                "TOOL_CALL",
                {"calls": [call.name for call in response.tool_calls]},
            )
            messages.append(
                ChatMessage(role="assistant", content=response.content or None, tool_calls=response.tool_calls)
            )
            for call in response.tool_calls:
                tool = tools.get(call.name)
                if tool is None:
                    result: Dict[str, Any] = {"success": False, "error": f"Unknown tool: {call.name}"}
                else:
                    result = await self._tool_executor.execute(tool, call.arguments, context)
                level = LogLevel.SUCCESS if result.get("success") else LogLevel.WARNING
                context.add_log(level, f"Tool {call.name} finished", "TOOL_CALL", result)
                tool_call_log.append(
                    {"round": rounds, "tool": call.name, "arguments": call.arguments, "result": result}
                )
                messages.append(
                    ChatMessage(
                        role="tool",
                        tool_call_id=call.id,
                        name=call.name,
                        content=json.dumps(result, ensure_ascii=False, default=str),
                    )
                )
        else:
            context.add_log(
                LogLevel.WARNING,
                f"Reached the maximum of {max_rounds} tool call rounds",
                "ROUND",
            )

        return self.success(
            node,
            {
                "result": content,
                "model": model,
                "toolCalls": tool_call_log,
                "toolCallRounds": rounds,
            },
            started_at,
            token_usage=usage,
        )


__all__ = ["ProcessWithToolsNodeProcessor"]
