"""
Error classification for user-facing hints.

Maps a raw failure onto a small taxonomy with a friendly message, repair
suggestions and a retryability flag. Classification is heuristic and
advisory; nothing in the engine retries based on it.
"""

from __future__ import annotations

from typing import List, Optional, Union

from workflow_node_engine.core.exceptions import ProcessorTimeout
from workflow_node_engine.models.execution import ErrorAnalysis
from workflow_node_engine.models.node_enums import NodeType

PROVIDER_KEYWORDS = [
    "openai",
    "anthropic",
    "api key",
    "api_key",
    "authentication",
    "unauthorized",
    "401",
    "rate limit",
    "rate_limit",
    "too many requests",
    "429",
    "quota",
    "insufficient_quota",
    "context length",
    "context_length",
    "max tokens",
    "maximum context",
]

CODE_KEYWORDS = [
    "syntaxerror",
    "syntax error",
    "referenceerror",
    "nameerror",
    "is not defined",
    "typeerror",
    "runtime error",
    "traceback (most recent call last)",
]

NETWORK_KEYWORDS = [
    "fetch",
    "network",
    "econnrefused",
    "econnreset",
    "etimedout",
    "dns",
    "unreachable",
    "connection refused",
    "connection reset",
    "connecterror",
    "timed out",
    "timeout",
]

DATABASE_KEYWORDS = [
    "database",
    "query",
    "unique constraint",
    "foreign key",
    "duplicate key",
    "integrityerror",
    "connection pool",
]


def _contains_any(text: str, keywords: List[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _analyze_provider_error(message: str, lower: str) -> ErrorAnalysis:
    if _contains_any(lower, ["api key", "api_key", "auth", "unauthorized", "401", "credentials"]):
        return ErrorAnalysis(
            message=message,
            friendly_message="AI service authentication failed",
            suggestions=[
                "Check that the API key is configured correctly",
                "Confirm the key has not expired or been revoked",
            ],
            code="AUTH_ERROR",
            is_retryable=False,
        )
    if _contains_any(lower, ["rate limit", "rate_limit", "too many requests", "429"]):
        return ErrorAnalysis(
            message=message,
            friendly_message="AI service is receiving too many requests",
            suggestions=[
                "Retry in a moment",
                "Reduce concurrency",
                "Check the provider's rate limits",
            ],
            code="RATE_LIMIT",
            is_retryable=True,
        )
    if _contains_any(lower, ["quota", "insufficient"]):
        return ErrorAnalysis(
            message=message,
            friendly_message="AI service quota exhausted",
            suggestions=["Check the account balance", "Upgrade the service plan"],
            code="QUOTA_EXCEEDED",
            is_retryable=False,
        )
    if _contains_any(lower, ["context length", "context_length", "max tokens", "maximum context"]):
        return ErrorAnalysis(
            message=message,
            friendly_message="Input exceeds the model's context limit",
            suggestions=[
                "Shorten the input text",
                "Switch to a model with a larger context window",
            ],
            code="CONTEXT_LIMIT",
            is_retryable=False,
        )
    if _contains_any(lower, ["timeout", "timed out"]):
        return ErrorAnalysis(
            message=message,
            friendly_message="AI service response timed out",
            suggestions=["Check network connectivity", "Increase the timeout setting"],
            code="TIMEOUT",
            is_retryable=True,
        )
    return ErrorAnalysis(
        message=message,
        friendly_message="AI service call failed",
        suggestions=["Check the AI configuration of this node", "Retry in a moment"],
        code="AI_SERVICE_ERROR",
        is_retryable=True,
    )


def _analyze_code_error(message: str, lower: str) -> ErrorAnalysis:
    suggestions = [
        "Check the code syntax",
        "Make sure the variable names are correct",
        "Inspect the execution logs for details",
    ]
    if "timeout" in lower or "timed out" in lower:
        return ErrorAnalysis(
            message=message,
            friendly_message="Code execution timed out",
            suggestions=[
                "Look for infinite loops",
                "Reduce the amount of data processed",
                "Increase the timeout setting",
            ],
            code="CODE_TIMEOUT",
            is_retryable=True,
        )
    friendly = "Code execution failed"
    if _contains_any(lower, ["referenceerror", "nameerror", "is not defined"]):
        friendly = "Code references a variable that does not exist"
        suggestions.insert(0, "Check for misspelled variable names")
    elif "syntaxerror" in lower or "syntax error" in lower:
        friendly = "Code has a syntax error"
    elif "typeerror" in lower:
        friendly = "Code hit a type error"
        suggestions.insert(0, "Check that variables have the expected types")
    return ErrorAnalysis(
        message=message,
        friendly_message=friendly,
        suggestions=suggestions,
        code="CODE_EXECUTION_ERROR",
        is_retryable=False,
    )


def _analyze_network_error(message: str) -> ErrorAnalysis:
    return ErrorAnalysis(
        message=message,
        friendly_message="Network request failed",
        suggestions=[
            "Check that the target service is running",
            "Check network connectivity",
            "Confirm firewall settings",
        ],
        code="NETWORK_ERROR",
        is_retryable=True,
    )


def _analyze_database_error(message: str, lower: str) -> ErrorAnalysis:
    if _contains_any(lower, ["unique constraint", "duplicate key"]):
        return ErrorAnalysis(
            message=message,
            friendly_message="Duplicate data conflict",
            suggestions=[
                "Check whether the data was submitted twice",
                "Make sure unique identifiers do not repeat",
            ],
            code="DB_UNIQUE_VIOLATION",
            is_retryable=False,
        )
    if "foreign key" in lower:
        return ErrorAnalysis(
            message=message,
            friendly_message="Related data is missing",
            suggestions=["The referenced record does not exist", "Refresh and try again"],
            code="DB_RELATION_ERROR",
            is_retryable=False,
        )
    return ErrorAnalysis(
        message=message,
        friendly_message="Database operation failed",
        suggestions=["Contact an administrator"],
        code="DB_ERROR",
        is_retryable=True,
    )


def analyze_error(
    error: Union[BaseException, str, object],
    node_type_hint: Optional[Union[NodeType, str]] = None,
) -> ErrorAnalysis:
    """Classify ``error``; the first matching category wins."""
    message = str(error)
    lower = message.lower()

    if isinstance(error, ProcessorTimeout):
        return ErrorAnalysis(
            message=message,
            friendly_message="Node execution timed out",
            suggestions=[
                "Simplify the node or reduce the number of tool calls",
                "Increase the debug timeout",
            ],
            code="PROCESSOR_TIMEOUT",
            is_retryable=True,
        )
    if _contains_any(lower, PROVIDER_KEYWORDS):
        return _analyze_provider_error(message, lower)
    hint = node_type_hint.value if isinstance(node_type_hint, NodeType) else node_type_hint
    if hint == NodeType.CODE.value or _contains_any(lower, CODE_KEYWORDS):
        return _analyze_code_error(message, lower)
    if _contains_any(lower, NETWORK_KEYWORDS):
        return _analyze_network_error(message)
    if _contains_any(lower, DATABASE_KEYWORDS):
        return _analyze_database_error(message, lower)

    return ErrorAnalysis(
        message=message,
        friendly_message="An unknown error occurred during execution",
        suggestions=["Check the node configuration", "Inspect the detailed logs for more information"],
        code="UNKNOWN_ERROR",
        is_retryable=False,
    )


__all__ = ["analyze_error"]
