"""DATA node processor: imports CSV and JSON files as records."""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.models.execution import NodeOutput
from workflow_node_engine.models.node_enums import LogLevel, NodeType
from workflow_node_engine.models.workflow import DataNodeConfig, FileReference, Node
from workflow_node_engine.processors.base import NodeProcessor
from workflow_node_engine.services.file_fetcher import FileFetcher

logger = logging.getLogger(__name__)

Records = List[Dict[str, Any]]


def parse_csv(text: str, delimiter: str = ",", has_header: bool = True) -> Tuple[Records, List[str]]:
    rows = [row for row in csv.reader(io.StringIO(text), delimiter=delimiter) if any(c.strip() for c in row)]
    if not rows:
        return [], []
    if has_header:
        columns = [c.strip() for c in rows[0]]
        body = rows[1:]
    else:
        columns = [f"column{i + 1}" for i in range(max(len(r) for r in rows))]
        body = rows
    records = [
        {col: (row[idx].strip() if idx < len(row) else "") for idx, col in enumerate(columns)}
        for row in body
    ]
    return records, columns


def parse_json(text: str) -> Tuple[Records, List[str]]:
    parsed = json.loads(text)
    if isinstance(parsed, dict):
        parsed = [parsed]
    if not isinstance(parsed, list):
        raise ValueError("JSON data must be an object or an array")
    records = [item if isinstance(item, dict) else {"value": item} for item in parsed]
    columns = list(dict.fromkeys(key for record in records for key in record))
    return records, columns


class DataNodeProcessor(NodeProcessor):
    node_type = NodeType.DATA.value

    def __init__(self, file_fetcher: Optional[FileFetcher] = None):
        self._file_fetcher = file_fetcher or FileFetcher()

    async def _load_text(self, file: FileReference, context: ExecutionContext) -> str:
        if file.content is None and not file.url:
            for imported in context.imported_files:
                if imported.name == file.name:
                    return imported.content
        return await self._file_fetcher.fetch_text(file)

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: DataNodeConfig = node.config
        if not config.files:
            return self.success(
                node, {"files": [], "records": [], "totalRecords": 0, "summary": "No data files imported"}, started_at
            )

        all_records: Records = []
        file_infos = []
        for file in config.files:
            name = file.name.lower()
            text = await self._load_text(file, context)
            if name.endswith(".csv"):
                records, columns = parse_csv(text, config.delimiter, config.has_header)
            elif name.endswith(".json"):
                records, columns = parse_json(text)
            else:
                raise ValueError(f"Unsupported data file format: {file.name}")
            all_records.extend(records)
            file_infos.append(
                {"name": file.name, "type": file.mime_type or "unknown", "recordCount": len(records), "columns": columns}
            )
            context.add_log(LogLevel.INFO, f"Parsed {len(records)} records from {file.name}", "DATA")

        return self.success(
            node,
            {
                "files": file_infos,
                "records": all_records,
                "totalRecords": len(all_records),
                "summary": f"Imported {len(config.files)} files with {len(all_records)} records",
            },
            started_at,
        )


__all__ = ["parse_csv", "parse_json", "DataNodeProcessor"]
