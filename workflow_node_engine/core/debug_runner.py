"""
Single-node debug harness.

Runs one node against a fresh context seeded with mock upstream outputs,
under a timeout, and returns the result together with the full log trail.
``debug_node_stream`` additionally pushes every log entry to a caller sink
as soon as it is recorded.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import traceback
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

from workflow_node_engine.config import EngineSettings, get_settings
from workflow_node_engine.core.context import ExecutionContext, LogListener
from workflow_node_engine.core.error_handler import analyze_error
from workflow_node_engine.core.exceptions import ProcessorTimeout
from workflow_node_engine.models.execution import DebugRequest, DebugResult, LogEntry, NodeOutput
from workflow_node_engine.models.node_enums import PROCESS_WITH_TOOLS, LogLevel, NodeOutputStatus
from workflow_node_engine.models.workflow import Node
from workflow_node_engine.processors.factory import ProcessorRegistry, get_processor_registry

logger = logging.getLogger(__name__)

LogSink = Callable[[LogEntry], Union[None, Awaitable[None]]]

STACK_LINES = 5


def _stack_summary(error: BaseException) -> str:
    lines = []
    for chunk in traceback.format_exception(type(error), error, error.__traceback__):
        lines.extend(line.strip() for line in chunk.splitlines() if line.strip())
    return " -> ".join(lines[:STACK_LINES])


class DebugRunner:
    def __init__(
        self,
        registry: Optional[ProcessorRegistry] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self._registry = registry
        self._settings = settings or get_settings()

    @property
    def registry(self) -> ProcessorRegistry:
        return self._registry or get_processor_registry()

    def create_mock_context(
        self, request: DebugRequest, log_listener: Optional[LogListener] = None
    ) -> ExecutionContext:
        """Fresh context for one debug run with the request's mock outputs installed."""
        context = ExecutionContext(
            execution_id=f"debug-{uuid.uuid4().hex[:12]}",
            workflow_id=request.workflow_id,
            organization_id=request.organization_id,
            user_id=request.user_id,
            global_variables=dict(request.global_variables),
            imported_files=list(request.imported_files),
            log_listener=log_listener,
        )
        for node_name, data in request.mock_inputs.items():
            context.seed_mock_output(node_name, data)
            context.add_log(
                LogLevel.INFO,
                f"Loaded mock input for upstream node '{node_name}'",
                "MOCK_INPUT",
                data,
            )
        return context

    def _log_preflight(self, node: Node, context: ExecutionContext) -> None:
        context.add_log(
            LogLevel.STEP,
            f"Debugging node '{node.name}' ({node.type.value})",
            "START",
            {"nodeId": node.id, "executionId": context.execution_id},
        )
        config_fields = node.config.model_dump(mode="json", exclude_none=True)
        context.add_log(
            LogLevel.INFO,
            f"Config check: {len(config_fields)} fields set",
            "CONFIG",
            config_fields,
        )
        if context.imported_files:
            context.add_log(
                LogLevel.INFO,
                f"{len(context.imported_files)} imported files available",
                "FILES",
                {"files": [f.name for f in context.imported_files]},
            )

    async def _execute(self, request: DebugRequest, context: ExecutionContext) -> DebugResult:
        node = request.node
        timeout = request.timeout_seconds or self._settings.debug_timeout_seconds
        start = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            self._log_preflight(node, context)
            key = self.registry.select_key(node)
            if key == PROCESS_WITH_TOOLS:
                tools = [tool.name for tool in node.config.enabled_tools]
                if self.registry.has(PROCESS_WITH_TOOLS):
                    context.add_log(
                        LogLevel.INFO,
                        f"Tool calling enabled, using tool-aware processor ({len(tools)} tools)",
                        "TOOLS",
                        {"tools": tools},
                    )
                else:
                    context.add_log(
                        LogLevel.WARNING,
                        "Tool calling enabled but no tool-aware processor is registered, using PROCESS",
                        "TOOLS",
                        {"tools": tools},
                    )
            processor = self.registry.resolve(node)
            context.add_log(LogLevel.INFO, f"Using {type(processor).__name__}", "PROCESSOR")

            try:
                output: NodeOutput = await asyncio.wait_for(processor.process(node, context), timeout)
            except asyncio.TimeoutError:
                raise ProcessorTimeout(timeout) from None

            context.set_output(output)
        except Exception as e:
            analysis = analyze_error(e, node.type)
            context.add_log(
                LogLevel.ERROR,
                f"Execution failed: {str(e)}",
                "ERROR",
                {"code": analysis.code, "friendlyMessage": analysis.friendly_message},
            )
            context.add_log(LogLevel.ERROR, f"Stack: {_stack_summary(e)}", "ERROR")
            logger.error(f"Debug run {context.execution_id} failed: {str(e)}")
            return DebugResult(
                status=NodeOutputStatus.ERROR,
                error=str(e),
                duration=elapsed_ms(),
                logs=list(context.logs),
            )

        if output.status == NodeOutputStatus.PAUSED:
            context.add_log(
                LogLevel.INFO,
                f"Node paused waiting for approval {output.approval_request_id}",
                "APPROVAL",
            )
        elif output.status == NodeOutputStatus.ERROR:
            context.add_log(LogLevel.ERROR, f"Node finished with error: {output.error}", "COMPLETE")
        else:
            context.add_log(
                LogLevel.SUCCESS,
                f"Node finished in {elapsed_ms()}ms",
                "COMPLETE",
                {"tokenUsage": output.token_usage.model_dump() if output.token_usage else None},
            )

        return DebugResult(
            status=output.status,
            output=output.data,
            error=output.error,
            duration=elapsed_ms(),
            token_usage=output.token_usage,
            logs=list(context.logs),
            approval_request_id=output.approval_request_id,
        )

    async def debug_node(self, request: DebugRequest) -> DebugResult:
        context = self.create_mock_context(request)
        return await self._execute(request, context)

    async def debug_node_stream(self, request: DebugRequest, sink: LogSink) -> DebugResult:
        """Like ``debug_node`` but delivers each log entry to ``sink`` in order as it is recorded."""
        queue: "asyncio.Queue[Optional[LogEntry]]" = asyncio.Queue()

        async def pump() -> None:
            while True:
                entry = await queue.get()
                if entry is None:
                    break
                try:
                    delivered: Any = sink(entry)
                    if inspect.isawaitable(delivered):
                        await delivered
                except Exception as e:
                    logger.warning(f"Log sink failed: {str(e)}")

        pump_task = asyncio.ensure_future(pump())
        try:
            context = self.create_mock_context(request, log_listener=queue.put_nowait)
            return await self._execute(request, context)
        finally:
            queue.put_nowait(None)
            await pump_task


async def debug_node(request: DebugRequest) -> DebugResult:
    return await DebugRunner().debug_node(request)


async def debug_node_stream(request: DebugRequest, sink: LogSink) -> DebugResult:
    return await DebugRunner().debug_node_stream(request, sink)


def create_mock_context(request: DebugRequest) -> ExecutionContext:
    return DebugRunner().create_mock_context(request)


__all__ = [
    "LogSink",
    "DebugRunner",
    "debug_node",
    "debug_node_stream",
    "create_mock_context",
]
