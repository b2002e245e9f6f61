"""Variable resolution and template substitution.

Supports ``{{ nodeName.path.to.value }}`` references against the outputs held
in an ``ExecutionContext``. The first segment names a node (falling back to a
node id, then to a global variable such as the ``loop`` overlay); the
remaining segments are walked over the node's output data.

Resolution never raises: a dangling reference resolves to ``None`` and
substitutes as an empty string.
"""

from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.expr import MISSING, split_path, walk_path

logger = logging.getLogger(__name__)

TEMPLATE_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n(.*)\n```\s*$", re.DOTALL)
ILLEGAL_FILE_CHARS_RE = re.compile(r'[<>:"/\\|?*]')


def _strip_braces(path: str) -> str:
    path = path.strip()
    if path.startswith("{{") and path.endswith("}}"):
        path = path[2:-2]
    return path.strip()


def _parse_json_like(text: str) -> Any:
    candidate = text.strip()
    match = FENCE_RE.match(candidate)
    if match:
        candidate = match.group(1).strip()
    if not candidate:
        return None
    try:
        return json.loads(candidate)
    except ValueError:
        start = candidate.find("{")
        end = candidate.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            return json.loads(candidate[start : end + 1])
        except ValueError:
            return None


def default_output_value(data: Dict[str, Any]) -> Any:
    """Value a bare ``{{nodeName}}`` reference stands for."""
    images = data.get("images")
    videos = data.get("videos")
    audio = data.get("audio")
    if (isinstance(images, list) and images) or (isinstance(videos, list) and videos) or audio:
        media: Dict[str, Any] = {}
        if "result" in data:
            media["result"] = data["result"]
        if isinstance(images, list) and images:
            media["images"] = images
            media["imageUrls"] = [
                {"index": i + 1, "url": img.get("url"), "description": img.get("revisedPrompt") or f"Image {i + 1}"}
                for i, img in enumerate(img for img in images if isinstance(img, dict) and img.get("url"))
            ]
        if isinstance(videos, list) and videos:
            media["videos"] = videos
        if audio:
            media["audio"] = audio
        return media
    if "result" in data:
        return data["result"]
    if len(data) == 1:
        return next(iter(data.values()))
    return data


def _lookup_root(head: str, context: ExecutionContext) -> Tuple[Any, bool]:
    """Return (root value, is_node_output) for the first path segment."""
    output = context.get_output(head)
    if output is not None:
        return output.data, True
    if head in context.global_variables:
        return context.global_variables[head], False
    return MISSING, False


def resolve(path: str, context: ExecutionContext) -> Any:
    """Resolve a ``{{name.path}}`` reference; ``None`` when anything is missing."""
    parts = split_path(_strip_braces(path))
    if not parts:
        return None
    head, rest = parts[0], parts[1:]
    root, is_node_output = _lookup_root(head, context)
    if root is MISSING:
        return None
    if not rest:
        if is_node_output and isinstance(root, dict):
            return default_output_value(root)
        return root

    value = walk_path(root, rest)
    if value is MISSING and is_node_output and isinstance(root, dict):
        # Tolerate references written against the output record itself.
        if rest[0] == "data":
            value = walk_path(root, rest[1:])
        if value is MISSING and isinstance(root.get("result"), str):
            parsed = _parse_json_like(root["result"])
            if isinstance(parsed, (dict, list)):
                value = walk_path(parsed, rest)
    return None if value is MISSING else value


def format_value(value: Any) -> str:
    """Render a resolved value the way it is inlined into text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return str(value)


def substitute(template: str, context: ExecutionContext) -> str:
    if not template or "{{" not in template:
        return template or ""

    def repl(match: re.Match) -> str:
        value = resolve(match.group(1), context)
        if value is None:
            logger.debug(f"Unresolved reference: {match.group(0)}")
        return format_value(value)

    return TEMPLATE_RE.sub(repl, template)


def substitute_structure(data: Any, context: ExecutionContext) -> Any:
    if isinstance(data, str):
        return substitute(data, context) if "{{" in data else data
    if isinstance(data, dict):
        return {k: substitute_structure(v, context) for k, v in data.items()}
    if isinstance(data, list):
        return [substitute_structure(v, context) for v in data]
    return data


def extract_variable_references(text: str) -> List[Dict[str, Optional[str]]]:
    """List the ``{node_name, field_path}`` pairs referenced in ``text``."""
    references = []
    for match in TEMPLATE_RE.finditer(text or ""):
        parts = split_path(match.group(1))
        if not parts:
            continue
        references.append(
            {
                "node_name": parts[0],
                "field_path": ".".join(parts[1:]) or None,
            }
        )
    return references


def extract_referenced_node_names(text: str) -> List[str]:
    names: List[str] = []
    for ref in extract_variable_references(text):
        if ref["node_name"] not in names:
            names.append(ref["node_name"])
    return names


def sanitize_file_name(file_name: str) -> str:
    cleaned = ILLEGAL_FILE_CHARS_RE.sub("_", file_name)
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned.strip()


def replace_file_name_variables(
    file_name: str, context: ExecutionContext, now: Optional[datetime] = None
) -> str:
    """Expand ``{{date}}``, ``{{time}}``, ``{{timestamp}}``, ``{{executionId}}`` and node references."""
    now = now or datetime.now()
    builtins = {
        "date": now.strftime("%Y-%m-%d"),
        "time": now.strftime("%H-%M-%S"),
        "timestamp": str(int(time.time() * 1000)),
        "executionId": context.execution_id[:8],
    }

    def repl(match: re.Match) -> str:
        key = match.group(1).strip()
        return builtins.get(key, match.group(0))

    result = TEMPLATE_RE.sub(repl, file_name)
    result = substitute(result, context)
    return sanitize_file_name(result)


__all__ = [
    "TEMPLATE_RE",
    "default_output_value",
    "resolve",
    "format_value",
    "substitute",
    "substitute_structure",
    "extract_variable_references",
    "extract_referenced_node_names",
    "sanitize_file_name",
    "replace_file_name_variables",
]
