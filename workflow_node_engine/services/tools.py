"""Tool execution for PROCESS nodes with tool calling enabled."""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.models.workflow import ToolConfig
from workflow_node_engine.services.code_executor import CodeExecutor, SubprocessCodeExecutor

logger = logging.getLogger(__name__)

ToolHandler = Callable[[ToolConfig, Dict[str, Any], ExecutionContext], Awaitable[Dict[str, Any]]]

_FUNCTION_NAME_RE = re.compile(r"[^a-zA-Z0-9_-]")


def function_name_for(tool: ToolConfig) -> str:
    """Provider-safe function name for a tool."""
    return _FUNCTION_NAME_RE.sub("_", tool.name)[:64] or _FUNCTION_NAME_RE.sub("_", tool.type)


class ToolExecutor:
    def __init__(
        self,
        handlers: Optional[Dict[str, ToolHandler]] = None,
        code_executor: Optional[CodeExecutor] = None,
        http_timeout: float = 30.0,
    ):
        self._code_executor = code_executor or SubprocessCodeExecutor()
        self._http_timeout = http_timeout
        self._handlers: Dict[str, ToolHandler] = {
            "http-request": self._http_request,
            "code-execution": self._code_execution,
        }
        self._handlers.update(handlers or {})

    def register(self, tool_type: str, handler: ToolHandler) -> None:
        self._handlers[tool_type] = handler

    def supports(self, tool_type: str) -> bool:
        return tool_type in self._handlers

    def to_function_spec(self, tool: ToolConfig) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": function_name_for(tool),
                "description": tool.description or f"Execute {tool.name}",
                "parameters": tool.parameters or {"type": "object", "properties": {}},
            },
        }

    async def execute(
        self, tool: ToolConfig, arguments: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        """Run one tool call; failures come back as ``{"success": False, "error": ...}``."""
        handler = self._handlers.get(tool.type)
        if handler is None:
            return {"success": False, "error": f"Unsupported tool type: {tool.type}"}
        try:
            result = await handler(tool, arguments, context)
        except Exception as e:
            logger.error(f"Tool '{tool.name}' ({tool.type}) failed: {str(e)}")
            return {"success": False, "error": str(e)}
        result.setdefault("success", True)
        return result

    async def _http_request(
        self, tool: ToolConfig, arguments: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        url = arguments.get("url") or tool.config.get("url")
        if not url:
            raise ValueError("http-request tool requires a url")
        method = str(arguments.get("method") or tool.config.get("method") or "GET").upper()
        headers = {**(tool.config.get("headers") or {}), **(arguments.get("headers") or {})}
        async with httpx.AsyncClient(timeout=self._http_timeout, follow_redirects=True) as client:
            resp = await client.request(
                method,
                url,
                headers=headers,
                params=arguments.get("query") or tool.config.get("query"),
                json=arguments.get("body") if method not in ("GET", "HEAD") else None,
            )
        try:
            body: Any = resp.json()
        except ValueError:
            body = resp.text
        return {"success": resp.is_success, "status": resp.status_code, "body": body}

    async def _code_execution(
        self, tool: ToolConfig, arguments: Dict[str, Any], context: ExecutionContext
    ) -> Dict[str, Any]:
        code = arguments.get("code") or tool.config.get("code")
        if not code:
            raise ValueError("code-execution tool requires code")
        result = await self._code_executor.execute(
            code, arguments.get("inputs") or {}, tool.config.get("language", "python")
        )
        return {
            "success": result.success,
            "output": result.output,
            "logs": result.logs,
            "error": result.error,
        }


__all__ = ["ToolHandler", "ToolExecutor", "function_name_for"]
