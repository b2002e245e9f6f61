"""OUTPUT node processor: renders upstream results into the requested format."""

from __future__ import annotations

import csv
import html
import io
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.template import format_value, replace_file_name_variables, substitute
from workflow_node_engine.models.execution import NodeOutput
from workflow_node_engine.models.node_enums import LogLevel, NodeType, OutputFormat
from workflow_node_engine.models.workflow import Node, OutputNodeConfig
from workflow_node_engine.processors.process import AIBackedProcessor
from workflow_node_engine.services.ai_service import ChatMessage

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS: Dict[OutputFormat, str] = {
    OutputFormat.TEXT: "txt",
    OutputFormat.JSON: "json",
    OutputFormat.MARKDOWN: "md",
    OutputFormat.HTML: "html",
    OutputFormat.CSV: "csv",
}

FORMAT_MIME_TYPES: Dict[OutputFormat, str] = {
    OutputFormat.TEXT: "text/plain",
    OutputFormat.JSON: "application/json",
    OutputFormat.MARKDOWN: "text/markdown",
    OutputFormat.HTML: "text/html",
    OutputFormat.CSV: "text/csv",
}

FORMAT_INSTRUCTIONS: Dict[OutputFormat, str] = {
    OutputFormat.TEXT: "Reply in plain text.",
    OutputFormat.JSON: "Reply with valid JSON only.",
    OutputFormat.MARKDOWN: "Reply in Markdown.",
    OutputFormat.HTML: "Reply with a complete HTML document.",
    OutputFormat.CSV: "Reply with CSV only, including a header row.",
}


def _to_csv(outputs: Dict[str, Any]) -> str:
    rows = None
    for data in outputs.values():
        for value in (data.values() if isinstance(data, dict) else [data]):
            if isinstance(value, list) and value and all(isinstance(r, dict) for r in value):
                rows = value
                break
        if rows:
            break
    buffer = io.StringIO()
    if rows:
        fieldnames = list(dict.fromkeys(key for row in rows for key in row))
        writer = csv.DictWriter(buffer, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    else:
        writer = csv.writer(buffer)
        writer.writerow(["node", "output"])
        for name, data in outputs.items():
            writer.writerow([name, json.dumps(data, ensure_ascii=False, default=str)])
    return buffer.getvalue()


def format_output(outputs: Dict[str, Any], output_format: OutputFormat) -> str:
    if output_format == OutputFormat.JSON:
        return json.dumps(outputs, indent=2, ensure_ascii=False, default=str)
    if output_format == OutputFormat.MARKDOWN:
        return "\n\n".join(f"## {name}\n\n{format_value(data)}" for name, data in outputs.items())
    if output_format == OutputFormat.HTML:
        sections = "\n".join(
            f"<section><h2>{html.escape(name)}</h2><pre>{html.escape(format_value(data))}</pre></section>"
            for name, data in outputs.items()
        )
        return f"<!DOCTYPE html>\n<html><body>\n{sections}\n</body></html>"
    if output_format == OutputFormat.CSV:
        return _to_csv(outputs)
    return "\n\n".join(f"{name}:\n{format_value(data)}" for name, data in outputs.items())


class OutputNodeProcessor(AIBackedProcessor):
    node_type = NodeType.OUTPUT.value

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: OutputNodeConfig = node.config
        output_format = config.format
        prompt = substitute(config.prompt or "", context)
        upstream = {name: output.data for name, output in context.successful_outputs().items()}
        token_usage = None

        if prompt.strip():
            ai_config = await self.load_config(config, context)
            messages = [
                ChatMessage(
                    role="system",
                    content=(
                        "You produce the final output of a workflow. "
                        f"{FORMAT_INSTRUCTIONS[output_format]}\n\nUpstream results:\n"
                        f"{json.dumps(upstream, indent=2, ensure_ascii=False, default=str)}"
                    ),
                ),
                ChatMessage(role="user", content=prompt),
            ]
            response = await self.chat(config, ai_config, messages, context)
            content = response.content
            token_usage = response.usage
        else:
            context.add_log(LogLevel.INFO, "No prompt configured, formatting upstream outputs", "OUTPUT")
            content = format_output(upstream, output_format)

        file_info: Optional[Dict[str, Any]] = None
        if config.file_name:
            base_name = replace_file_name_variables(config.file_name, context)
            extension = FORMAT_EXTENSIONS[output_format]
            if not base_name.lower().endswith(f".{extension}"):
                base_name = f"{base_name}.{extension}"
            file_info = {
                "fileName": base_name,
                "mimeType": FORMAT_MIME_TYPES[output_format],
                "size": len(content.encode("utf-8")),
            }
            context.add_log(LogLevel.INFO, f"Prepared output file {base_name}", "OUTPUT", file_info)

        data: Dict[str, Any] = {"result": content, "format": output_format.value}
        if file_info:
            data["file"] = file_info
        return self.success(node, data, started_at, token_usage=token_usage)


__all__ = ["format_output", "OutputNodeProcessor"]
