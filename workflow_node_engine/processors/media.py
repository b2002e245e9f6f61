"""IMAGE, VIDEO and AUDIO node processors."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.template import substitute
from workflow_node_engine.models.execution import AIConfig, NodeOutput, TokenUsage
from workflow_node_engine.models.node_enums import LogLevel, NodeType
from workflow_node_engine.models.workflow import FileReference, MediaNodeConfig, Node
from workflow_node_engine.processors.process import AIBackedProcessor
from workflow_node_engine.services.ai_service import AIConfigStore, AIService, ChatMessage
from workflow_node_engine.services.file_fetcher import FileFetcher

logger = logging.getLogger(__name__)

IMAGE_FORMATS = ("png", "jpg", "jpeg", "gif", "webp", "bmp", "svg")
VIDEO_FORMATS = ("mp4", "webm", "mov", "avi", "mkv", "flv", "wmv")
AUDIO_FORMATS = ("mp3", "wav", "ogg", "m4a", "aac", "flac", "wma")


def detect_format(file: FileReference, known_formats: Tuple[str, ...]) -> str:
    """Detect a media format from the file extension, then from the mime type."""
    lower = file.name.lower()
    for fmt in known_formats:
        if lower.endswith(f".{fmt}"):
            return "jpeg" if fmt == "jpg" else fmt
    if file.mime_type and "/" in file.mime_type:
        subtype = file.mime_type.split("/", 1)[1].split(";", 1)[0].lower()
        if subtype in known_formats:
            return "jpeg" if subtype == "jpg" else subtype
        if subtype == "mpeg" and "mp3" in known_formats:
            return "mp3"
    return "unknown"


class MediaNodeProcessor(AIBackedProcessor):
    """Collects media file metadata and optionally asks the AI about it."""

    output_key = ""
    media_label = ""
    known_formats: Tuple[str, ...] = ()

    def __init__(
        self,
        ai_config_store: Optional[AIConfigStore] = None,
        ai_service: Optional[AIService] = None,
        file_fetcher: Optional[FileFetcher] = None,
    ):
        super().__init__(ai_config_store=ai_config_store, ai_service=ai_service)
        self._file_fetcher = file_fetcher or FileFetcher()

    def describe_files(self, files: List[FileReference]) -> List[Dict[str, Any]]:
        return [
            {
                "name": file.name,
                "url": file.url,
                "type": file.mime_type,
                "size": file.size,
                "format": detect_format(file, self.known_formats),
            }
            for file in files
        ]

    def system_prompt(self, infos: List[Dict[str, Any]], extra: Dict[str, Any]) -> str:
        listing = "\n".join(
            f"{self.media_label} {idx + 1}: {info['name']} (format: {info['format']})"
            for idx, info in enumerate(infos)
        )
        return f"You are an assistant that analyzes {self.media_label.lower()} content.\n\nFiles:\n{listing}"

    async def extra_data(
        self, config: MediaNodeConfig, ai_config: Optional[AIConfig], context: ExecutionContext
    ) -> Dict[str, Any]:
        return {}

    async def analyze(
        self,
        config: MediaNodeConfig,
        ai_config: AIConfig,
        prompt: str,
        infos: List[Dict[str, Any]],
        extra: Dict[str, Any],
        context: ExecutionContext,
    ) -> Tuple[str, TokenUsage]:
        messages = [
            ChatMessage(role="system", content=self.system_prompt(infos, extra)),
            ChatMessage(role="user", content=prompt),
        ]
        response = await self.chat(config, ai_config, messages, context)
        return response.content, response.usage

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: MediaNodeConfig = node.config
        prompt = substitute(config.prompt or "", context)
        infos = self.describe_files(config.files)
        context.add_log(LogLevel.INFO, f"{len(infos)} {self.output_key} attached", self.node_type)

        ai_config: Optional[AIConfig] = None
        wants_ai = bool(config.files) and (config.transcribe or (config.analyze and prompt.strip()))
        if wants_ai:
            ai_config = await self.load_config(config, context)

        data: Dict[str, Any] = {self.output_key: infos, "count": len(infos)}
        data.update(await self.extra_data(config, ai_config, context))

        token_usage = None
        if ai_config is not None and config.analyze and prompt.strip():
            analysis, token_usage = await self.analyze(config, ai_config, prompt, infos, data, context)
            data["analysis"] = analysis
        if prompt:
            data["prompt"] = prompt
        return self.success(node, data, started_at, token_usage=token_usage)


class ImageNodeProcessor(MediaNodeProcessor):
    node_type = NodeType.IMAGE.value
    output_key = "images"
    media_label = "Image"
    known_formats = IMAGE_FORMATS


class VideoNodeProcessor(MediaNodeProcessor):
    node_type = NodeType.VIDEO.value
    output_key = "videos"
    media_label = "Video"
    known_formats = VIDEO_FORMATS


class AudioNodeProcessor(MediaNodeProcessor):
    node_type = NodeType.AUDIO.value
    output_key = "audio"
    media_label = "Audio"
    known_formats = AUDIO_FORMATS

    def system_prompt(self, infos: List[Dict[str, Any]], extra: Dict[str, Any]) -> str:
        prompt = super().system_prompt(infos, extra)
        if extra.get("transcription"):
            prompt += f"\n\nTranscription:\n{extra['transcription']}"
        return prompt

    async def extra_data(
        self, config: MediaNodeConfig, ai_config: Optional[AIConfig], context: ExecutionContext
    ) -> Dict[str, Any]:
        if not config.transcribe or ai_config is None:
            return {}
        service = self.service_for(ai_config)
        transcripts = []
        for file in config.files:
            audio = await self._file_fetcher.fetch_bytes(file)
            context.add_log(LogLevel.STEP, f"Transcribing {file.name}", "AUDIO", {"bytes": len(audio)})
            text = await service.transcribe(audio, file.name, ai_config, config.language)
            transcripts.append(text.strip())
        return {"transcription": "\n\n".join(transcripts)}


__all__ = [
    "detect_format",
    "MediaNodeProcessor",
    "ImageNodeProcessor",
    "VideoNodeProcessor",
    "AudioNodeProcessor",
]
