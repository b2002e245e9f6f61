"""CODE node processor."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.template import substitute
from workflow_node_engine.models.execution import NodeOutput, TokenUsage
from workflow_node_engine.models.node_enums import LogLevel, NodeType
from workflow_node_engine.models.workflow import CodeNodeConfig, Node
from workflow_node_engine.processors.process import AIBackedProcessor
from workflow_node_engine.services.ai_service import AIConfigStore, AIService, ChatMessage
from workflow_node_engine.services.code_executor import CodeExecutor, SubprocessCodeExecutor

logger = logging.getLogger(__name__)

CODE_BLOCK_RE = re.compile(r"```[a-zA-Z0-9_+-]*\s*\n(.*?)```", re.DOTALL)

CODE_GENERATION_PROMPT = (
    "Write a {language} script for the task below. The script can read a dict named "
    "`inputs` and must assign its final value to a variable named `result`. "
    "Reply with the code only."
)


def extract_code(text: str) -> str:
    match = CODE_BLOCK_RE.search(text)
    return (match.group(1) if match else text).strip()


class CodeNodeProcessor(AIBackedProcessor):
    node_type = NodeType.CODE.value

    def __init__(
        self,
        ai_config_store: Optional[AIConfigStore] = None,
        ai_service: Optional[AIService] = None,
        code_executor: Optional[CodeExecutor] = None,
    ):
        super().__init__(ai_config_store=ai_config_store, ai_service=ai_service)
        self._code_executor = code_executor or SubprocessCodeExecutor()

    def _collect_inputs(self, context: ExecutionContext) -> Dict[str, Any]:
        inputs = {name: output.data for name, output in context.successful_outputs().items()}
        inputs.update({k: v for k, v in context.global_variables.items() if k not in inputs})
        return inputs

    async def _generate_code(
        self, config: CodeNodeConfig, context: ExecutionContext
    ) -> Tuple[str, Optional[TokenUsage]]:
        ai_config = await self.load_config(config, context)
        messages = [
            ChatMessage(role="system", content=CODE_GENERATION_PROMPT.format(language=config.language)),
            ChatMessage(role="user", content=substitute(config.prompt, context)),
        ]
        response = await self.chat(config, ai_config, messages, context)
        return extract_code(response.content), response.usage

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: CodeNodeConfig = node.config
        token_usage = None

        if config.code.strip():
            code = substitute(config.code, context)
        elif config.prompt.strip():
            context.add_log(LogLevel.STEP, "Generating code from prompt", "CODE")
            code, token_usage = await self._generate_code(config, context)
        else:
            raise ValueError("CODE node requires code or a prompt")

        context.add_log(LogLevel.STEP, f"Executing {config.language} code", "CODE", {"lines": len(code.splitlines())})
        result = await self._code_executor.execute(
            code, self._collect_inputs(context), config.language, config.timeout_seconds
        )
        for line in result.logs:
            context.add_log(LogLevel.INFO, line, "CODE_OUTPUT")

        data = {"result": result.output, "logs": result.logs, "code": code, "executionTime": result.duration_ms}
        if not result.success:
            context.add_log(LogLevel.ERROR, f"Code execution failed: {result.error}", "CODE")
            return self.failure(node, result.error or "Code execution failed", started_at, data=data)

        return self.success(node, data, started_at, token_usage=token_usage)


__all__ = ["CodeNodeProcessor", "extract_code"]
