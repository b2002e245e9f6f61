"""HTTP node processor: calls external APIs with auth, retries and variable substitution."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import httpx

from workflow_node_engine.config import get_settings
from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.core.template import substitute, substitute_structure
from workflow_node_engine.models.execution import NodeOutput
from workflow_node_engine.models.node_enums import HttpAuthType, HttpBodyType, LogLevel, NodeType
from workflow_node_engine.models.workflow import (
    HttpAuthConfig,
    HttpBodyConfig,
    HttpNodeConfig,
    HttpRetryConfig,
    Node,
)
from workflow_node_engine.processors.base import NodeProcessor

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {"authorization", "x-api-key", "api-key", "cookie", "set-cookie"}

Sleep = Callable[[float], Awaitable[None]]


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: ("[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


def build_auth(
    auth: Optional[HttpAuthConfig], context: ExecutionContext
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Headers and query parameters contributed by the node's auth settings."""
    headers: Dict[str, str] = {}
    params: Dict[str, str] = {}
    if auth is None:
        return headers, params
    if auth.type == HttpAuthType.BASIC and auth.username and auth.password:
        raw = f"{substitute(auth.username, context)}:{substitute(auth.password, context)}".encode()
        headers["Authorization"] = "Basic " + base64.b64encode(raw).decode()
    elif auth.type == HttpAuthType.BEARER and auth.token:
        headers["Authorization"] = f"Bearer {substitute(auth.token, context)}"
    elif auth.type == HttpAuthType.API_KEY and auth.api_key:
        value = substitute(auth.api_key.value, context)
        if auth.api_key.add_to == "query":
            params[auth.api_key.key] = value
        else:
            headers[auth.api_key.key] = value
    return headers, params


def build_body(body: Optional[HttpBodyConfig], context: ExecutionContext) -> Tuple[Dict[str, Any], Optional[str]]:
    """httpx request keyword arguments for the body, plus its content type."""
    if body is None or body.type == HttpBodyType.NONE or body.content is None:
        return {}, None
    if body.type == HttpBodyType.JSON:
        if isinstance(body.content, str):
            return {"content": substitute(body.content, context)}, "application/json"
        return {"content": json.dumps(substitute_structure(body.content, context))}, "application/json"
    if body.type == HttpBodyType.FORM:
        if not isinstance(body.content, dict):
            return {}, None
        form = {k: substitute(str(v), context) for k, v in body.content.items()}
        return {"data": form}, "application/x-www-form-urlencoded"
    content = body.content if isinstance(body.content, str) else json.dumps(body.content)
    return {"content": substitute(content, context)}, "text/plain"


def parse_response_body(response: httpx.Response, response_type: str) -> Any:
    content_type = response.headers.get("content-type", "")
    if response_type == "json" or "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class HttpNodeProcessor(NodeProcessor):
    node_type = NodeType.HTTP.value

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, sleep: Sleep = asyncio.sleep):
        self._transport = transport
        self._sleep = sleep

    async def _send_with_retry(
        self,
        client: httpx.AsyncClient,
        request_kwargs: Dict[str, Any],
        retry: HttpRetryConfig,
        context: ExecutionContext,
    ) -> Tuple[httpx.Response, int]:
        """Send the request, retrying on configured statuses and transport errors.

        The delay doubles after every attempt. When retries run out on a
        retryable status the last response is returned; transport errors
        are re-raised.
        """
        attempt = 0
        while True:
            try:
                response = await client.request(**request_kwargs)
            except httpx.TransportError as e:
                if attempt >= retry.max_retries:
                    raise
                logger.warning(f"HTTP request to {request_kwargs['url']} failed: {str(e)}, retrying")
                context.add_log(LogLevel.WARNING, f"Request failed ({type(e).__name__}), retrying", "HTTP")
            else:
                if response.status_code not in retry.retry_on_status or attempt >= retry.max_retries:
                    return response, attempt + 1
                context.add_log(
                    LogLevel.WARNING,
                    f"Received {response.status_code}, retrying (attempt {attempt + 1} of {retry.max_retries})",
                    "HTTP",
                )
            await self._sleep(retry.retry_delay * (2**attempt) / 1000)
            attempt += 1

    async def run(self, node: Node, context: ExecutionContext, started_at: datetime) -> NodeOutput:
        config: HttpNodeConfig = node.config
        if not config.url:
            raise ValueError("HTTP node requires a URL")

        method = config.method.value
        url = substitute(config.url, context)
        params = {k: substitute(v, context) for k, v in config.query_params.items()}
        headers = {k: substitute(v, context) for k, v in config.headers.items()}
        auth_headers, auth_params = build_auth(config.auth, context)
        headers.update(auth_headers)
        params.update(auth_params)
        body_kwargs, content_type = build_body(config.body, context)
        if content_type and not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = content_type

        timeout_ms = config.timeout or int(get_settings().http_timeout_seconds * 1000)
        retry = config.retry or HttpRetryConfig()
        request_info = {"method": method, "url": url, "headers": mask_headers(headers)}
        context.add_log(LogLevel.STEP, f"{method} {url}", "HTTP", request_info)

        try:
            async with httpx.AsyncClient(
                timeout=timeout_ms / 1000,
                follow_redirects=True,
                verify=config.validate_ssl,
                transport=self._transport,
            ) as client:
                response, attempts = await self._send_with_retry(
                    client,
                    {"method": method, "url": url, "params": params or None, "headers": headers, **body_kwargs},
                    retry,
                    context,
                )
        except httpx.TimeoutException:
            message = f"Request timeout after {timeout_ms}ms"
            return self.failure(node, message, started_at, {"request": request_info})
        except httpx.HTTPError as e:
            return self.failure(node, str(e), started_at, {"request": request_info})

        request_info["url"] = str(response.request.url)
        data = {
            "statusCode": response.status_code,
            "statusText": response.reason_phrase,
            "headers": dict(response.headers),
            "body": parse_response_body(response, config.response_type),
            "attempts": attempts,
            "request": request_info,
        }
        if not response.is_success:
            return self.failure(node, f"HTTP {response.status_code}: {response.reason_phrase}", started_at, data)

        context.add_log(LogLevel.SUCCESS, f"{method} {url} returned {response.status_code}", "HTTP")
        return self.success(node, data, started_at)


__all__ = ["HttpNodeProcessor", "build_auth", "build_body", "mask_headers", "SENSITIVE_HEADERS"]
