"""Shared data models for the API layer.

Kept free of runner/compaction imports so every module in the loop can
depend on it without cycles.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


class ConfigError(ValueError):
    """Caller-supplied configuration is malformed or incomplete."""


class CompletionError(RuntimeError):
    """The completion endpoint failed to produce a response."""


# ------------------------------------------------------------------
# Conversation messages
# ------------------------------------------------------------------


@dataclass(frozen=True)
class SystemMessage:
    """Preamble; always element 0 of a conversation."""

    content: str

    @property
    def weight(self) -> int:
        return len(self.content)

    def to_wire(self, index: int) -> list[dict[str, Any]]:
        return [{"role": "system", "content": self.content}]


@dataclass(frozen=True)
class UserMessage:
    content: str

    @property
    def weight(self) -> int:
        return len(self.content)

    def to_wire(self, index: int) -> list[dict[str, Any]]:
        return [{"role": "user", "content": self.content}]


@dataclass(frozen=True)
class AssistantMessage:
    content: str

    @property
    def weight(self) -> int:
        return len(self.content)

    def to_wire(self, index: int) -> list[dict[str, Any]]:
        return [{"role": "assistant", "content": self.content}]


def _tool_exchange(index: int, name: str, arguments: str, result: str) -> list[dict[str, Any]]:
    """Render a call/result pair as an assistant tool_calls turn plus a tool turn."""
    call_id = f"call_{index}"
    return [
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": call_id,
                    "type": "function",
                    "function": {"name": name, "arguments": arguments},
                }
            ],
        },
        {"role": "tool", "tool_call_id": call_id, "content": result},
    ]


@dataclass(frozen=True)
class ToolCallMessage:
    """A dispatched tool call paired with the output it produced."""

    name: str
    arguments: str  # already-serialized JSON
    result: str

    @property
    def call(self) -> str:
        """Canonical call record; arguments are spliced in verbatim."""
        return f'{{"name":{json.dumps(self.name)},"arguments":{self.arguments}}}'

    @property
    def weight(self) -> int:
        return len(self.call) + len(self.result)

    def to_wire(self, index: int) -> list[dict[str, Any]]:
        return _tool_exchange(index, self.name, self.arguments, self.result)


@dataclass(frozen=True)
class StatusMessage:
    """Synthetic status snapshot, keyed by the reserved status-tool name."""

    name: str
    status: str

    @property
    def weight(self) -> int:
        return len(self.name) + len(self.status)

    def to_wire(self, index: int) -> list[dict[str, Any]]:
        return _tool_exchange(index, self.name, "{}", self.status)


Message = SystemMessage | UserMessage | AssistantMessage | ToolCallMessage | StatusMessage


def to_wire_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Flatten a conversation into chat-completions message dicts."""
    wire: list[dict[str, Any]] = []
    for i, msg in enumerate(messages):
        wire.extend(msg.to_wire(i))
    return wire


# ------------------------------------------------------------------
# Adapter payloads
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: str  # JSON text


@dataclass
class CompletionResponse:
    """Text and structured tool calls returned by the completion endpoint."""

    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class ParsedResponse:
    """Visible content and tool calls extracted from raw model text."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass(frozen=True)
class Delims:
    tool_call: tuple[str, str]
    reasoning: tuple[str, str] | None = None


@dataclass(frozen=True)
class ToolDelims:
    available_tools: tuple[str, str]
    tool_call: tuple[str, str]


@dataclass(frozen=True)
class SystemSetup:
    """Preamble text and the reserved status-tool name."""

    prompt: str
    status_call: str


@dataclass(frozen=True)
class PromptResult:
    """Outcome of asking the tooling whether a round is finished.

    done=True: text is the final answer.
    done=False: text is the next user turn (may be empty).
    """

    done: bool
    text: str

    @classmethod
    def final(cls, answer: str) -> PromptResult:
        return cls(done=True, text=answer)

    @classmethod
    def proceed(cls, user_text: str = "") -> PromptResult:
        return cls(done=False, text=user_text)


@dataclass(frozen=True)
class ToolOutput:
    output: str
    status: str | None = None


@dataclass
class CompletionRequest:
    """Connection parameters plus the live conversation for one round."""

    base_url: str
    model: str
    messages: list[Message]
    api_key: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    stream: bool = True

    def payload(self) -> dict[str, Any]:
        """Build the chat-completions request body."""
        body: dict[str, Any] = {
            "model": self.model,
            "messages": to_wire_messages(self.messages),
            "stream": self.stream,
        }
        if self.temperature is not None:
            body["temperature"] = self.temperature
        if self.top_p is not None:
            body["top_p"] = self.top_p
        return body
