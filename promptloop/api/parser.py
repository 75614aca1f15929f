"""Response parser -- strips reasoning spans and extracts text-markup tool calls.

Used for models that emit tool calls inline, e.g.

    <think>...</think>
    Let me check.
    <tool_call>{"name": "read_file", "arguments": {"path": "a.txt"}}</tool_call>

Parsing never fails: text without configured spans comes back unchanged,
and spans that are not valid tool-call JSON stay in the visible content.
"""

from __future__ import annotations

import json
import logging
import re

from promptloop.api.models import Delims, ParsedResponse, ToolCall

logger = logging.getLogger(__name__)


def _span_pattern(pair: tuple[str, str]) -> re.Pattern[str]:
    open_, close = pair
    return re.compile(re.escape(open_) + r"(.*?)" + re.escape(close), re.DOTALL)


def strip_reasoning(text: str, pair: tuple[str, str]) -> str:
    """Remove reasoning spans, including a dangling leading or trailing one."""
    open_, close = pair
    text = _span_pattern(pair).sub("", text)
    # Generation started inside the block: only the closing marker is present
    if close in text:
        text = text.split(close)[-1]
    # Generation was cut off inside the block
    if open_ in text:
        text = text.split(open_, 1)[0]
    return text


def _decode_tool_call(body: str) -> ToolCall | None:
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("name"), str):
        return None
    arguments = data.get("arguments", {})
    if isinstance(arguments, str):
        return ToolCall(name=data["name"], arguments=arguments or "{}")
    return ToolCall(
        name=data["name"],
        arguments=json.dumps(arguments, separators=(",", ":"), ensure_ascii=False),
    )


def parse(text: str, delims: Delims | None = None) -> ParsedResponse:
    """Split raw model text into visible content and tool calls."""
    if delims is None:
        return ParsedResponse(content=text)

    content = text
    if delims.reasoning:
        content = strip_reasoning(content, delims.reasoning)

    tool_calls: list[ToolCall] = []

    def _extract(match: re.Match[str]) -> str:
        call = _decode_tool_call(match.group(1).strip())
        if call is None:
            logger.warning("Ignoring malformed tool call span: %.200s", match.group(0))
            return match.group(0)
        tool_calls.append(call)
        return ""

    content = _span_pattern(delims.tool_call).sub(_extract, content)
    return ParsedResponse(content=content, tool_calls=tool_calls)
