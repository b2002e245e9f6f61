"""Execution of CODE node scripts in a child interpreter."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from workflow_node_engine.config import get_settings

logger = logging.getLogger(__name__)

RESULT_MARKER = "__NODE_RESULT__"

# Runs inside the child process. Reads {"code", "inputs"} from stdin, exposes
# ``inputs`` to the script and reports whatever it assigns to ``result``.
_RUNNER = f"""
import json, sys
payload = json.loads(sys.stdin.read() or "{{}}")
namespace = {{"inputs": payload.get("inputs") or {{}}, "result": None}}
exec(compile(payload["code"], "<node>", "exec"), namespace)
print({RESULT_MARKER!r} + json.dumps(namespace.get("result"), default=str))
"""


class CodeExecutionResult(BaseModel):
    success: bool
    output: Any = None
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    duration_ms: int = 0


class CodeExecutor(ABC):
    @abstractmethod
    async def execute(
        self,
        code: str,
        inputs: Dict[str, Any],
        language: str = "python",
        timeout_seconds: Optional[float] = None,
    ) -> CodeExecutionResult:
        raise NotImplementedError


class SubprocessCodeExecutor(CodeExecutor):
    SUPPORTED_LANGUAGES = {"python", "py"}

    def __init__(self, python_executable: Optional[str] = None):
        self._python = python_executable or get_settings().python_executable

    async def execute(
        self,
        code: str,
        inputs: Dict[str, Any],
        language: str = "python",
        timeout_seconds: Optional[float] = None,
    ) -> CodeExecutionResult:
        if language.lower() not in self.SUPPORTED_LANGUAGES:
            return CodeExecutionResult(success=False, error=f"Unsupported code language: {language}")

        timeout = timeout_seconds or get_settings().code_timeout_seconds
        payload = json.dumps({"code": code, "inputs": inputs}, default=str).encode("utf-8")
        start = time.time()

        proc = await asyncio.create_subprocess_exec(
            self._python,
            "-c",
            _RUNNER,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(payload), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"Code execution killed after {timeout}s")
            return CodeExecutionResult(
                success=False,
                error=f"Code execution timed out after {timeout:g} seconds",
                duration_ms=int((time.time() - start) * 1000),
            )

        duration_ms = int((time.time() - start) * 1000)
        lines = stdout.decode("utf-8", errors="replace").splitlines()
        output = None
        logs = []
        for line in lines:
            if line.startswith(RESULT_MARKER):
                output = json.loads(line[len(RESULT_MARKER) :])
            else:
                logs.append(line)

        if proc.returncode != 0:
            err_lines = stderr.decode("utf-8", errors="replace").strip().splitlines()
            message = err_lines[-1] if err_lines else f"Process exited with code {proc.returncode}"
            return CodeExecutionResult(
                success=False, logs=logs, error=message, duration_ms=duration_ms
            )

        return CodeExecutionResult(success=True, output=output, logs=logs, duration_ms=duration_ms)


__all__ = ["CodeExecutionResult", "CodeExecutor", "SubprocessCodeExecutor"]
