"""
Tests for the collaborator services: code execution, AI, tools and files.
"""
import base64
import sys
from unittest.mock import AsyncMock

import pytest

from workflow_node_engine.models.execution import AIConfig
from workflow_node_engine.models.workflow import FileReference, ToolConfig
from workflow_node_engine.services.ai_service import (
    ChatMessage,
    ChatRequest,
    EchoAIService,
    InMemoryAIConfigStore,
    get_ai_service,
    load_ai_config,
)
from workflow_node_engine.services.code_executor import SubprocessCodeExecutor
from workflow_node_engine.services.file_fetcher import FileFetcher
from workflow_node_engine.services.tools import ToolExecutor, function_name_for


class TestSubprocessCodeExecutor:
    @pytest.fixture
    def executor(self):
        return SubprocessCodeExecutor(python_executable=sys.executable)

    @pytest.mark.asyncio
    async def test_returns_result_and_printed_logs(self, executor):
        result = await executor.execute("print('working')\nresult = inputs['a'] * 2", {"a": 21})

        assert result.success is True
        assert result.output == 42
        assert result.logs == ["working"]

    @pytest.mark.asyncio
    async def test_reports_last_error_line(self, executor):
        result = await executor.execute("result = missing_name", {})

        assert result.success is False
        assert "NameError" in result.error

    @pytest.mark.asyncio
    async def test_timeout_kills_the_process(self, executor):
        result = await executor.execute("while True:\n    pass", {}, timeout_seconds=0.5)

        assert result.success is False
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_unsupported_language(self, executor):
        result = await executor.execute("console.log(1)", {}, language="javascript")

        assert result.success is False
        assert "javascript" in result.error


class TestAIService:
    @pytest.mark.asyncio
    async def test_echo_service_returns_last_user_message(self):
        request = ChatRequest(
            model="echo",
            messages=[ChatMessage(role="system", content="be brief"), ChatMessage(role="user", content="two words")],
        )

        response = await EchoAIService().chat(request, AIConfig(id="default"))

        assert response.content == "two words"
        assert response.usage.completion_tokens == 2

    def test_unknown_provider_falls_back_to_echo(self):
        assert isinstance(get_ai_service("does-not-exist"), EchoAIService)

    @pytest.mark.asyncio
    async def test_default_config_comes_from_settings(self, context):
        config = await load_ai_config(context, None, InMemoryAIConfigStore())

        assert config.id == "default"
        assert config.provider == "echo"
        assert context.ai_configs["default"] is config

    @pytest.mark.asyncio
    async def test_missing_config_raises(self, context):
        with pytest.raises(ValueError, match="AI config not found"):
            await load_ai_config(context, "nope", InMemoryAIConfigStore())


class TestToolExecutor:
    @pytest.mark.asyncio
    async def test_unsupported_tool_type(self, context):
        result = await ToolExecutor().execute(ToolConfig(type="teleport", name="beam"), {}, context)

        assert result == {"success": False, "error": "Unsupported tool type: teleport"}

    @pytest.mark.asyncio
    async def test_handler_errors_are_returned(self, context):
        handler = AsyncMock(side_effect=RuntimeError("upstream down"))
        executor = ToolExecutor(handlers={"custom": handler})

        result = await executor.execute(ToolConfig(type="custom", name="c"), {}, context)

        assert result == {"success": False, "error": "upstream down"}

    def test_function_spec(self):
        tool = ToolConfig(type="http-request", name="fetch page", description="Fetch a page")

        spec = ToolExecutor().to_function_spec(tool)

        assert function_name_for(tool) == "fetch_page"
        assert spec["function"]["name"] == "fetch_page"
        assert spec["function"]["parameters"] == {"type": "object", "properties": {}}


class TestFileFetcher:
    @pytest.mark.asyncio
    async def test_inline_and_data_url_content(self):
        fetcher = FileFetcher()
        encoded = base64.b64encode(b"binary!").decode()

        assert await fetcher.fetch_text(FileReference(name="a.txt", content="plain")) == "plain"
        assert await fetcher.fetch_bytes(FileReference(name="b.bin", content=f"data:application/octet-stream;base64,{encoded}")) == b"binary!"

    @pytest.mark.asyncio
    async def test_file_without_source(self):
        with pytest.raises(ValueError):
            await FileFetcher().fetch_bytes(FileReference(name="empty"))
