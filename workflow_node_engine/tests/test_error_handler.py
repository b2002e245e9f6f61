"""
Tests for error classification.
"""
import pytest

from workflow_node_engine.core.error_handler import analyze_error
from workflow_node_engine.core.exceptions import ProcessorTimeout
from workflow_node_engine.models.node_enums import NodeType


class TestAnalyzeError:
    @pytest.mark.parametrize(
        "message,code,retryable",
        [
            ("Error: 429 Too Many Requests", "RATE_LIMIT", True),
            ("Incorrect API key provided", "AUTH_ERROR", False),
            ("OpenAI: You exceeded your current quota", "QUOTA_EXCEEDED", False),
            ("This model's maximum context length is 8192 tokens", "CONTEXT_LIMIT", False),
            ("anthropic request timed out", "TIMEOUT", True),
            ("openai returned 500", "AI_SERVICE_ERROR", True),
            ("NameError: name 'foo' is not defined", "CODE_EXECUTION_ERROR", False),
            ("connect ECONNREFUSED 127.0.0.1:5432", "NETWORK_ERROR", True),
            ("duplicate key value violates unique constraint", "DB_UNIQUE_VIOLATION", False),
            ("insert violates foreign key constraint", "DB_RELATION_ERROR", False),
            ("database is locked", "DB_ERROR", True),
            ("something odd happened", "UNKNOWN_ERROR", False),
        ],
    )
    def test_classification(self, message, code, retryable):
        analysis = analyze_error(message)

        assert analysis.code == code
        assert analysis.is_retryable is retryable
        assert analysis.message == message
        assert analysis.friendly_message
        assert analysis.suggestions

    def test_accepts_exceptions(self):
        analysis = analyze_error(RuntimeError("Error: 429 Too Many Requests"))

        assert analysis.code == "RATE_LIMIT"
        assert analysis.message == "Error: 429 Too Many Requests"

    def test_processor_timeout_is_retryable(self):
        analysis = analyze_error(ProcessorTimeout(240))

        assert analysis.code == "PROCESSOR_TIMEOUT"
        assert analysis.is_retryable is True
        assert "240 seconds" in analysis.message

    def test_code_hint_routes_to_code_analysis(self):
        analysis = analyze_error("Code execution timed out after 5s", NodeType.CODE)

        assert analysis.code == "CODE_TIMEOUT"
        assert analysis.is_retryable is True

    def test_code_hint_accepts_plain_string(self):
        analysis = analyze_error("division by zero", "CODE")

        assert analysis.code == "CODE_EXECUTION_ERROR"

    def test_type_error_has_specific_message(self):
        analysis = analyze_error("TypeError: unsupported operand type(s)")

        assert analysis.friendly_message == "Code hit a type error"
