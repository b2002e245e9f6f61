"""Loading of node file attachments, inline or over HTTP."""

from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx

from workflow_node_engine.config import get_settings
from workflow_node_engine.models.workflow import FileReference

logger = logging.getLogger(__name__)


class FileFetcher:
    def __init__(self, timeout_seconds: Optional[float] = None, follow_redirects: bool = True):
        self._timeout = timeout_seconds or get_settings().file_fetch_timeout_seconds
        self._follow_redirects = follow_redirects

    async def fetch_bytes(self, file: FileReference) -> bytes:
        if file.content is not None:
            if file.content.startswith("data:") and ";base64," in file.content:
                return base64.b64decode(file.content.split(";base64,", 1)[1])
            return file.content.encode("utf-8")
        if not file.url:
            raise ValueError(f"File {file.name} has neither content nor url")

        logger.info(f"Fetching file {file.name} from {file.url}")
        async with httpx.AsyncClient(
            timeout=self._timeout, follow_redirects=self._follow_redirects
        ) as client:
            resp = await client.get(file.url)
            resp.raise_for_status()
            return resp.content

    async def fetch_text(self, file: FileReference) -> str:
        return (await self.fetch_bytes(file)).decode("utf-8", errors="replace")


__all__ = ["FileFetcher"]
