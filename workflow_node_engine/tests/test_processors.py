"""
Tests for the node processors.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from workflow_node_engine.core.exceptions import FatalConfigError
from workflow_node_engine.core.loop import LoopState, advance_for_loop
from workflow_node_engine.models.execution import ImportedFile, TokenUsage
from workflow_node_engine.models.node_enums import ApprovalStatus, NodeOutputStatus
from workflow_node_engine.models.workflow import Node
from workflow_node_engine.processors import (
    ApprovalNodeProcessor,
    AudioNodeProcessor,
    CodeNodeProcessor,
    ConditionNodeProcessor,
    DataNodeProcessor,
    ImageNodeProcessor,
    InputNodeProcessor,
    LoopNodeProcessor,
    OutputNodeProcessor,
    ProcessNodeProcessor,
    ProcessWithToolsNodeProcessor,
)
from workflow_node_engine.processors.code import extract_code
from workflow_node_engine.processors.data import parse_csv, parse_json
from workflow_node_engine.processors.media import detect_format
from workflow_node_engine.processors.output import format_output
from workflow_node_engine.services.ai_service import ChatResponse, ToolCall
from workflow_node_engine.services.code_executor import CodeExecutionResult
from workflow_node_engine.services.tools import ToolExecutor


def node(node_type, config, name=None):
    return Node(id=f"{node_type.lower()}_1", type=node_type, name=name or node_type.title(), config=config)


class TestInputNodeProcessor:
    @pytest.mark.asyncio
    async def test_emits_field_values(self, context):
        processor = InputNodeProcessor()
        n = node("INPUT", {"fields": [{"name": "topic", "value": "birds"}, {"name": "count", "value": 3}]})

        output = await processor.process(n, context)

        assert output.status == NodeOutputStatus.SUCCESS
        assert output.data == {"topic": "birds", "count": 3}

    @pytest.mark.asyncio
    async def test_lists_imported_files(self, context):
        context.imported_files.append(ImportedFile(name="notes.txt", content="hello", type="text/plain"))
        n = node("INPUT", {"fields": []})

        output = await InputNodeProcessor().process(n, context)

        assert output.data["files"][0]["name"] == "notes.txt"

    @pytest.mark.asyncio
    async def test_required_field_missing_is_error(self, context):
        n = node("INPUT", {"fields": [{"name": "topic", "value": "", "required": True}]})

        output = await InputNodeProcessor().process(n, context)

        assert output.status == NodeOutputStatus.ERROR
        assert "topic" in output.error
        assert context.logs[-1].level.value == "error"


class TestProcessNodeProcessor:
    @pytest.mark.asyncio
    async def test_calls_ai_with_substituted_prompt(self, context, make_output, ai_config_store, mock_ai_service):
        context.set_output(make_output("Form", {"topic": "owls"}))
        processor = ProcessNodeProcessor(ai_config_store=ai_config_store, ai_service=mock_ai_service)
        n = node(
            "PROCESS",
            {
                "aiConfigId": "cfg_1",
                "systemPrompt": "You are helpful.",
                "userPrompt": "Write about {{Form.topic}}",
                "knowledgeItems": [{"name": "Facts", "content": "Owls hunt at night."}],
            },
        )

        output = await processor.process(n, context)

        assert output.status == NodeOutputStatus.SUCCESS
        assert output.data == {"result": "mock answer", "model": "mock-model"}
        assert output.token_usage.total_tokens == 15
        request, ai_config = mock_ai_service.chat.call_args.args
        assert request.model == "mock-model"
        assert request.messages[-1].content == "Write about owls"
        assert "Owls hunt at night." in request.messages[0].content
        assert ai_config.id == "cfg_1"
        assert "cfg_1" in context.ai_configs

    @pytest.mark.asyncio
    async def test_ai_config_is_loaded_once_per_context(self, context, mock_ai_service):
        store = MagicMock()
        store.get_config = AsyncMock(return_value=MagicMock(id="cfg_1", provider="mock", default_model="m"))
        processor = ProcessNodeProcessor(ai_config_store=store, ai_service=mock_ai_service)
        n = node("PROCESS", {"aiConfigId": "cfg_1", "userPrompt": "hi"})

        await processor.process(n, context)
        await processor.process(n, context)

        store.get_config.assert_awaited_once_with("cfg_1", "org_test")

    @pytest.mark.asyncio
    async def test_empty_prompt_is_error(self, context, ai_config_store, mock_ai_service):
        processor = ProcessNodeProcessor(ai_config_store=ai_config_store, ai_service=mock_ai_service)
        n = node("PROCESS", {"aiConfigId": "cfg_1", "userPrompt": "{{Missing.value}}"})

        output = await processor.process(n, context)

        assert output.status == NodeOutputStatus.ERROR
        assert output.error == "User prompt cannot be empty"
        mock_ai_service.chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ai_failure_becomes_error_output(self, context, ai_config_store, mock_ai_service):
        mock_ai_service.chat.side_effect = RuntimeError("Error: 429 Too Many Requests")
        processor = ProcessNodeProcessor(ai_config_store=ai_config_store, ai_service=mock_ai_service)
        n = node("PROCESS", {"aiConfigId": "cfg_1", "userPrompt": "hi"})

        output = await processor.process(n, context)

        assert output.status == NodeOutputStatus.ERROR
        assert "429" in output.error


class TestProcessWithToolsNodeProcessor:
    @pytest.mark.asyncio
    async def test_runs_tool_rounds_and_sums_usage(self, context, make_output, ai_config_store, mock_ai_service):
        context.set_output(make_output("Form", {"city": "Oslo"}))
        mock_ai_service.chat.side_effect = [
            ChatResponse(
                content="",
                model="mock-model",
                usage=TokenUsage(prompt_tokens=5, completion_tokens=1, total_tokens=6),
                tool_calls=[ToolCall(id="call_1", name="weather", arguments={"day": "today"})],
            ),
            ChatResponse(
                content="It is sunny",
                model="mock-model",
                usage=TokenUsage(prompt_tokens=8, completion_tokens=3, total_tokens=11),
            ),
        ]
        handler = AsyncMock(return_value={"forecast": "sunny"})
        tool_executor = ToolExecutor(handlers={"weather-api": handler})
        processor = ProcessWithToolsNodeProcessor(
            ai_config_store=ai_config_store, ai_service=mock_ai_service, tool_executor=tool_executor
        )
        n = node(
            "PROCESS",
            {
                "aiConfigId": "cfg_1",
                "userPrompt": "Weather in {{Form.city}}?",
                "tools": [
                    {"type": "weather-api", "name": "weather", "config": {"city": "{{Form.city}}"}},
                    {"type": "unknown-kind", "name": "mystery"},
                ],
            },
        )

        output = await processor.process(n, context)

        assert output.status == NodeOutputStatus.SUCCESS
        assert output.data["result"] == "It is sunny"
        assert output.data["toolCallRounds"] == 2
        assert output.data["toolCalls"][0]["result"] == {"forecast": "sunny", "success": True}
        assert output.token_usage.total_tokens == 17

        tool, arguments, _ = handler.call_args.args
        assert tool.config == {"city": "Oslo"}
        assert arguments == {"day": "today"}

        first_request = mock_ai_service.chat.call_args_list[0].args[0]
        assert [spec["function"]["name"] for spec in first_request.tools] == ["weather"]
        last_messages = mock_ai_service.chat.call_args_list[1].args[0].messages
        assert last_messages[-1].role == "tool"
        assert json.loads(last_messages[-1].content)["forecast"] == "sunny"
        assert any("not supported" in entry.message for entry in context.logs)

    @pytest.mark.asyncio
    async def test_stops_at_round_limit(self, context, ai_config_store, mock_ai_service):
        mock_ai_service.chat.return_value = ChatResponse(
            content="again",
            model="mock-model",
            tool_calls=[ToolCall(id="c", name="weather", arguments={})],
        )
        tool_executor = ToolExecutor(handlers={"weather-api": AsyncMock(return_value={})})
        processor = ProcessWithToolsNodeProcessor(
            ai_config_store=ai_config_store, ai_service=mock_ai_service, tool_executor=tool_executor
        )
        n = node(
            "PROCESS",
            {
                "aiConfigId": "cfg_1",
                "userPrompt": "loop forever",
                "maxToolCallRounds": 2,
                "tools": [{"type": "weather-api", "name": "weather"}],
            },
        )

        output = await processor.process(n, context)

        assert output.status == NodeOutputStatus.SUCCESS
        assert mock_ai_service.chat.await_count == 2
        assert output.data["toolCallRounds"] == 2
        assert any("maximum of 2" in entry.message for entry in context.logs)


class TestCodeNodeProcessor:
    @pytest.fixture
    def code_executor(self):
        executor = MagicMock()
        executor.execute = AsyncMock(
            return_value=CodeExecutionResult(success=True, output={"total": 3}, logs=["hi"], duration_ms=12)
        )
        return executor

    @pytest.mark.asyncio
    async def test_runs_substituted_code(self, context, make_output, code_executor):
        context.set_output(make_output("Form", {"count": 2}))
        processor = CodeNodeProcessor(code_executor=code_executor)
        n = node("CODE", {"code": "result = {{Form.count}} + 1"})

        output = await processor.process(n, context)

        assert output.status == NodeOutputStatus.SUCCESS
        assert output.data == {"result": {"total": 3}, "logs": ["hi"], "code": "result = 2 + 1", "executionTime": 12}
        code, inputs, language, _ = code_executor.execute.call_args.args
        assert inputs == {"Form": {"count": 2}}
        assert language == "python"

    @pytest.mark.asyncio
    async def test_executor_failure_is_error_with_message(self, context, code_executor):
        code_executor.execute.return_value = CodeExecutionResult(
            success=False, error="NameError: name 'x' is not defined"
        )
        n = node("CODE", {"code": "result = x"})

        output = await CodeNodeProcessor(code_executor=code_executor).process(n, context)

        assert output.status == NodeOutputStatus.ERROR
        assert output.error == "NameError: name 'x' is not defined"
        assert output.data["code"] == "result = x"

    @pytest.mark.asyncio
    async def test_generates_code_from_prompt(self, context, ai_config_store, mock_ai_service, code_executor):
        mock_ai_service.chat.return_value = ChatResponse(
            content="Here you go:\n```python\nresult = 40 + 2\n```", model="mock-model"
        )
        processor = CodeNodeProcessor(
            ai_config_store=ai_config_store, ai_service=mock_ai_service, code_executor=code_executor
        )
        n = node("CODE", {"aiConfigId": "cfg_1", "prompt": "add numbers"})

        output = await processor.process(n, context)

        assert output.data["code"] == "result = 40 + 2"

    def test_extract_code_without_fence(self):
        assert extract_code("  result = 1  ") == "result = 1"


class TestOutputNodeProcessor:
    @pytest.mark.asyncio
    async def test_formats_upstream_outputs_without_prompt(self, context, make_output):
        context.set_output(make_output("Summary", {"result": "All good"}))
        n = node("OUTPUT", {"format": "markdown", "fileName": "report-{{date}}"})

        output = await OutputNodeProcessor().process(n, context)

        assert output.status == NodeOutputStatus.SUCCESS
        assert output.data["format"] == "markdown"
        assert output.data["result"].startswith("## Summary")
        assert output.data["file"]["fileName"].endswith(".md")
        assert output.data["file"]["mimeType"] == "text/markdown"

    @pytest.mark.asyncio
    async def test_uses_ai_when_prompt_is_set(self, context, ai_config_store, mock_ai_service):
        processor = OutputNodeProcessor(ai_config_store=ai_config_store, ai_service=mock_ai_service)
        n = node("OUTPUT", {"aiConfigId": "cfg_1", "prompt": "Summarize", "format": "JSON"})

        output = await processor.process(n, context)

        assert output.data == {"result": "mock answer", "format": "json"}
        system_message = mock_ai_service.chat.call_args.args[0].messages[0]
        assert "valid JSON" in system_message.content

    def test_csv_uses_first_record_list(self):
        text = format_output({"Data": {"records": [{"a": 1, "b": 2}, {"a": 3, "b": 4}]}}, "csv")

        assert text.splitlines() == ["a,b", "1,2", "3,4"]


class TestConditionNodeProcessor:
    @pytest.mark.asyncio
    async def test_reports_evaluation(self, context, make_output):
        context.set_output(make_output("Score", {"value": 7}))
        n = node(
            "CONDITION",
            {
                "conditions": [{"variable": "Score.value", "operator": "greaterThan", "value": 5}],
                "evaluationMode": "all",
            },
        )

        output = await ConditionNodeProcessor().process(n, context)

        assert output.data["result"] is True
        assert output.data["conditionsMet"] is True
        assert output.data["evaluatedConditions"][0]["resolved"] == 7

    @pytest.mark.asyncio
    async def test_requires_a_condition(self, context):
        output = await ConditionNodeProcessor().process(node("CONDITION", {"conditions": []}), context)

        assert output.status == NodeOutputStatus.ERROR


class TestLoopNodeProcessor:
    @pytest.mark.asyncio
    async def test_initializes_for_loop_and_publishes_variables(self, context, make_output):
        context.set_output(make_output("List", {"items": ["x", "y"]}))
        n = node("LOOP", {"loopType": "FOR", "forConfig": {"arrayVariable": "List.items", "itemName": "word"}})

        output = await LoopNodeProcessor().process(n, context)

        assert output.status == NodeOutputStatus.SUCCESS
        assert output.data["currentItem"] == "x"
        assert output.data["arrayLength"] == 2
        assert output.data["shouldContinue"] is True
        assert context.global_variables["loop"]["word"] == "x"

    @pytest.mark.asyncio
    async def test_reported_state_can_be_advanced(self, context, make_output):
        context.set_output(make_output("List", {"items": ["x", "y"]}))
        n = node("LOOP", {"loopType": "FOR", "forConfig": {"arrayVariable": "List.items"}})

        output = await LoopNodeProcessor().process(n, context)
        state = LoopState.from_dict(output.data["state"])
        advanced = advance_for_loop(state)

        assert output.data["state"]["array"] == ["x", "y"]
        assert advanced.current_item == "y"
        assert advanced.should_continue is True
        assert advance_for_loop(advanced).should_continue is False

    @pytest.mark.asyncio
    async def test_non_array_is_fatal(self, context, make_output):
        context.set_output(make_output("List", {"items": 5}))
        n = node("LOOP", {"loopType": "FOR", "forConfig": {"arrayVariable": "List.items"}})

        with pytest.raises(FatalConfigError):
            await LoopNodeProcessor().process(n, context)


class TestDataNodeProcessor:
    @pytest.mark.asyncio
    async def test_parses_inline_csv_and_json(self, context):
        n = node(
            "DATA",
            {
                "files": [
                    {"name": "people.csv", "type": "text/csv", "content": "name,age\nAda,36\nAlan,41\n"},
                    {"name": "extra.json", "content": '[{"name": "Grace", "age": 45}]'},
                ]
            },
        )

        output = await DataNodeProcessor().process(n, context)

        assert output.status == NodeOutputStatus.SUCCESS
        assert output.data["totalRecords"] == 3
        assert output.data["records"][0] == {"name": "Ada", "age": "36"}
        assert output.data["files"][0]["columns"] == ["name", "age"]
        assert output.data["files"][1]["recordCount"] == 1

    @pytest.mark.asyncio
    async def test_reads_imported_file_by_name(self, context):
        context.imported_files.append(ImportedFile(name="rows.csv", content="a;b\n1;2"))
        n = node("DATA", {"files": [{"name": "rows.csv"}], "delimiter": ";"})

        output = await DataNodeProcessor().process(n, context)

        assert output.data["records"] == [{"a": "1", "b": "2"}]

    @pytest.mark.asyncio
    async def test_no_files(self, context):
        output = await DataNodeProcessor().process(node("DATA", {}), context)

        assert output.data["records"] == []
        assert output.data["totalRecords"] == 0

    @pytest.mark.asyncio
    async def test_unsupported_format_is_error(self, context):
        n = node("DATA", {"files": [{"name": "sheet.xlsx", "content": "..."}]})

        output = await DataNodeProcessor().process(n, context)

        assert output.status == NodeOutputStatus.ERROR
        assert "sheet.xlsx" in output.error

    def test_parse_csv_without_header(self):
        records, columns = parse_csv("1,2\n3,4", has_header=False)

        assert columns == ["column1", "column2"]
        assert records[1] == {"column1": "3", "column2": "4"}

    def test_parse_json_object(self):
        assert parse_json('{"a": 1}') == ([{"a": 1}], ["a"])


class TestMediaNodeProcessors:
    @pytest.mark.asyncio
    async def test_image_description_and_analysis(self, context, ai_config_store, mock_ai_service):
        processor = ImageNodeProcessor(ai_config_store=ai_config_store, ai_service=mock_ai_service)
        n = node(
            "IMAGE",
            {"aiConfigId": "cfg_1", "prompt": "Describe", "files": [{"name": "cat.JPG", "url": "https://x/cat.JPG"}]},
        )

        output = await processor.process(n, context)

        assert output.data["images"][0]["format"] == "jpeg"
        assert output.data["count"] == 1
        assert output.data["analysis"] == "mock answer"
        assert output.token_usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_image_without_prompt_skips_ai(self, context, mock_ai_service):
        processor = ImageNodeProcessor(ai_service=mock_ai_service)
        n = node("IMAGE", {"files": [{"name": "a.png", "url": "https://x/a.png"}]})

        output = await processor.process(n, context)

        assert "analysis" not in output.data
        mock_ai_service.chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_audio_transcription(self, context, ai_config_store, mock_ai_service):
        processor = AudioNodeProcessor(ai_config_store=ai_config_store, ai_service=mock_ai_service)
        n = node(
            "AUDIO",
            {
                "aiConfigId": "cfg_1",
                "transcribe": True,
                "analyze": False,
                "language": "en",
                "files": [{"name": "memo.mp3", "content": "raw-bytes"}],
            },
        )

        output = await processor.process(n, context)

        assert output.data["transcription"] == "hello from audio"
        assert output.data["audio"][0]["format"] == "mp3"
        audio, file_name, _, language = mock_ai_service.transcribe.call_args.args
        assert audio == b"raw-bytes"
        assert file_name == "memo.mp3"
        assert language == "en"

    def test_detect_format_from_mime_type(self):
        from workflow_node_engine.models.workflow import FileReference
        from workflow_node_engine.processors.media import AUDIO_FORMATS

        assert detect_format(FileReference(name="blob", type="audio/mpeg"), AUDIO_FORMATS) == "mp3"
        assert detect_format(FileReference(name="blob"), AUDIO_FORMATS) == "unknown"


class TestApprovalNodeProcessor:
    @pytest.mark.asyncio
    async def test_creates_request_and_pauses(self, context, make_output, approval_store):
        context.set_output(make_output("Draft", {"result": "Release notes"}))
        processor = ApprovalNodeProcessor(approval_store=approval_store)
        n = node(
            "APPROVAL",
            {
                "title": "Approve {{Draft}}",
                "approvers": [{"type": "USER", "targetId": "u_1"}],
                "timeoutSeconds": 60,
                "timeoutAction": "APPROVE",
            },
        )

        output = await processor.process(n, context)

        assert output.status == NodeOutputStatus.PAUSED
        assert output.approval_request_id
        assert output.data["approvalRequestId"] == output.approval_request_id
        assert output.data["title"] == "Approve Release notes"
        request = await approval_store.get_request(output.approval_request_id)
        assert request.status == ApprovalStatus.PENDING
        assert request.input_snapshot == {"Draft": {"result": "Release notes"}}
        assert request.execution_id == context.execution_id

    @pytest.mark.asyncio
    async def test_requires_approvers(self, context, approval_store):
        output = await ApprovalNodeProcessor(approval_store=approval_store).process(node("APPROVAL", {}), context)

        assert output.status == NodeOutputStatus.ERROR
        assert output.approval_request_id is None
