"""Completion client -- OpenAI-compatible chat completions over httpx.

Sends the whole conversation each round and returns the generated text
plus any structured tool calls. Streaming responses are reassembled from
SSE deltas. Every failure surfaces as CompletionError; retry policy
belongs to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from promptloop.api.models import (
    CompletionError,
    CompletionRequest,
    CompletionResponse,
    ToolCall,
)
from promptloop.config import Settings

logger = logging.getLogger(__name__)


def _headers(request: CompletionRequest) -> dict[str, str]:
    headers = {"content-type": "application/json"}
    if request.api_key:
        headers["authorization"] = f"Bearer {request.api_key}"
    return headers


def _endpoint(base_url: str) -> str:
    return base_url.rstrip("/") + "/chat/completions"


def _collect_tool_calls(raw_calls: list[dict[str, Any]] | None) -> list[ToolCall]:
    """Convert OpenAI tool_calls entries into ToolCall values."""
    calls: list[ToolCall] = []
    for tc in raw_calls or []:
        function = tc.get("function") or {}
        name = function.get("name") or ""
        if not name:
            continue
        arguments = function.get("arguments")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments or {}, separators=(",", ":"))
        calls.append(ToolCall(name=name, arguments=arguments or "{}"))
    return calls


class StreamAccumulator:
    """Reassembles content and tool-call fragments from streamed chunks.

    Tool call fragments arrive keyed by `index`; the name usually comes in
    the first fragment and arguments are split across many.
    """

    def __init__(self) -> None:
        self._text: list[str] = []
        self._calls: dict[int, dict[str, Any]] = {}

    def feed(self, chunk: Any) -> None:
        """Merge one decoded SSE chunk. Raises CompletionError on error or bad shape."""
        if not isinstance(chunk, dict):
            raise CompletionError(f"Malformed stream chunk: {chunk!r:.200}")
        if "error" in chunk:
            error = chunk["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise CompletionError(f"Stream error: {message}")

        try:
            for choice in chunk.get("choices") or []:
                delta = choice.get("delta") or {}
                content = delta.get("content")
                if content:
                    if not isinstance(content, str):
                        raise TypeError(f"content is {type(content).__name__}")
                    self._text.append(content)
                for tc in delta.get("tool_calls") or []:
                    acc = self._calls.setdefault(
                        tc.get("index", 0), {"name": "", "arguments": []}
                    )
                    function = tc.get("function") or {}
                    if function.get("name"):
                        acc["name"] += function["name"]
                    if function.get("arguments"):
                        if not isinstance(function["arguments"], str):
                            raise TypeError("tool call arguments fragment is not a string")
                        acc["arguments"].append(function["arguments"])
        except (AttributeError, TypeError) as e:
            raise CompletionError(f"Malformed stream chunk: {e}") from e

    def result(self) -> CompletionResponse:
        calls = [
            ToolCall(name=acc["name"], arguments="".join(acc["arguments"]) or "{}")
            for _, acc in sorted(self._calls.items())
            if acc["name"]
        ]
        return CompletionResponse(text="".join(self._text), tool_calls=calls)


class CompletionClient:
    """Async completion adapter backed by a single httpx.AsyncClient."""

    def __init__(self, settings: Settings, http: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=settings.api_timeout_connect,
                read=settings.api_timeout_read,
                write=10.0,
                pool=10.0,
            ),
        )

    async def __aenter__(self) -> CompletionClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the connection pool if this client created it."""
        if self._owns_http:
            await self._http.aclose()

    async def receive(self, request: CompletionRequest) -> CompletionResponse:
        """Send one completion request. Raises CompletionError on any failure."""
        try:
            if request.stream:
                return await self._receive_stream(request)
            return await self._receive_json(request)
        except httpx.HTTPError as e:
            raise CompletionError(f"HTTP error: {e}") from e

    async def _receive_json(self, request: CompletionRequest) -> CompletionResponse:
        response = await self._http.post(
            _endpoint(request.base_url),
            json=request.payload(),
            headers=_headers(request),
        )
        if response.status_code >= 400:
            raise CompletionError(
                f"Completion API error ({response.status_code}): {response.text[:500]}"
            )
        try:
            message = response.json()["choices"][0]["message"]
            content = message.get("content") or ""
            if not isinstance(content, str):
                raise TypeError(f"content is {type(content).__name__}")
            return CompletionResponse(
                text=content,
                tool_calls=_collect_tool_calls(message.get("tool_calls")),
            )
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise CompletionError(f"Malformed completion response: {e}") from e

    async def _receive_stream(self, request: CompletionRequest) -> CompletionResponse:
        accumulator = StreamAccumulator()
        async with self._http.stream(
            "POST",
            _endpoint(request.base_url),
            json=request.payload(),
            headers=_headers(request),
        ) as response:
            if response.status_code >= 400:
                body = await response.aread()
                raise CompletionError(
                    f"Completion API error ({response.status_code}): "
                    f"{body.decode(errors='replace')[:500]}"
                )

            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[5:].strip()
                if data == "[DONE]":
                    break
                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("Skipping undecodable stream line: %.200s", data)
                    continue
                accumulator.feed(chunk)

        return accumulator.result()
