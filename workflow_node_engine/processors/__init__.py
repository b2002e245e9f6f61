"""Node processors and the registry that dispatches to them."""

from .approval import ApprovalNodeProcessor
from .base import NodeProcessor
from .code import CodeNodeProcessor
from .data import DataNodeProcessor
from .factory import ProcessorRegistry, build_default_registry, get_processor, get_processor_registry
from .flow import ConditionNodeProcessor, LoopNodeProcessor
from .http import HttpNodeProcessor
from .input import InputNodeProcessor
from .media import AudioNodeProcessor, ImageNodeProcessor, VideoNodeProcessor
from .output import OutputNodeProcessor
from .process import ProcessNodeProcessor
from .process_with_tools import ProcessWithToolsNodeProcessor

__all__ = [
    "NodeProcessor",
    "InputNodeProcessor",
    "ProcessNodeProcessor",
    "ProcessWithToolsNodeProcessor",
    "CodeNodeProcessor",
    "OutputNodeProcessor",
    "ConditionNodeProcessor",
    "LoopNodeProcessor",
    "DataNodeProcessor",
    "ImageNodeProcessor",
    "VideoNodeProcessor",
    "AudioNodeProcessor",
    "ApprovalNodeProcessor",
    "HttpNodeProcessor",
    "ProcessorRegistry",
    "build_default_registry",
    "get_processor_registry",
    "get_processor",
]
