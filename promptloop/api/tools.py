"""Tooling adapter protocol and the default ToolDispatcher implementation.

Provides:
- Tooling: the protocol the runner drives (init / prompt / call)
- ToolDispatcher: registers tool handlers, renders the system preamble,
  dispatches calls and decides when a round is a final answer

Handlers are async callables taking **kwargs and returning MCP-format
responses: {"content": [{"type": "text", "text": "..."}]}, optionally with
a "status" string describing the environment after the call.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Protocol

from promptloop.api.models import ConfigError, PromptResult, SystemSetup, ToolDelims, ToolOutput
from promptloop.config import DEFAULT_STATUS_TOOL, load_tooling_config

logger = logging.getLogger(__name__)

FINISH_TOOL = "finish"
EMPTY_INPUT_ANSWER = "Nothing to do."

_FINISH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Finish the task and return the final answer to the user.",
    "properties": {"answer": {"type": "string", "description": "The final answer"}},
    "required": ["answer"],
}


class Tooling(Protocol):
    """Tool execution and round-decision collaborator of the agent loop."""

    async def init(self, delims: ToolDelims) -> SystemSetup: ...

    async def prompt(self, text: str) -> PromptResult: ...

    async def call(self, name: str, arguments: str) -> ToolOutput: ...


ToolingFactory = Callable[[str], Tooling]


class ToolDispatcher:
    """Registers tool handlers and dispatches tool calls from the model.

    One instance serves a single run: it remembers whether the first
    prompt was issued and which tools ran since the last decision.
    """

    def __init__(
        self,
        system_prompt: str = "",
        status_tool: str = DEFAULT_STATUS_TOOL,
    ) -> None:
        self._system_prompt = system_prompt
        self._status_tool = status_tool
        self._handlers: dict[str, Callable[..., Any]] = {}
        self._schemas: dict[str, dict[str, Any]] = {}
        self._started = False
        self._round_calls = 0
        self._finish_answer: str | None = None
        self.register(FINISH_TOOL, self._finish, _FINISH_SCHEMA)

    @classmethod
    def from_config(cls, config_text: str) -> ToolDispatcher:
        """Build a dispatcher from the optional tooling keys of the run config.

        Raises ConfigError when a key has the wrong type or the status tool
        name collides with a registered tool.
        """
        cfg = load_tooling_config(config_text)
        try:
            dispatcher = cls(system_prompt=cfg.system_prompt, status_tool=cfg.status_tool)
            if cfg.workspace_dir:
                from promptloop.api.builtin_tools import register_workspace_tools

                register_workspace_tools(dispatcher, cfg.workspace_dir)
        except ValueError as e:
            raise ConfigError(f"status_tool: {e}") from e
        return dispatcher

    def register(self, name: str, handler: Callable[..., Any], schema: dict[str, Any]) -> None:
        """Register a tool handler with its JSON schema."""
        if name == self._status_tool:
            raise ValueError(f"'{name}' is reserved for status updates")
        self._handlers[name] = handler
        self._schemas[name] = schema

    def tool_definitions(self) -> list[dict[str, Any]]:
        """Return all tool definitions in function-calling format."""
        return [
            {
                "name": name,
                "description": schema.get("description", ""),
                "parameters": schema,
            }
            for name, schema in self._schemas.items()
        ]

    # ------------------------------------------------------------------
    # Tooling protocol
    # ------------------------------------------------------------------

    async def init(self, delims: ToolDelims) -> SystemSetup:
        """Render the system preamble and announce the reserved status name."""
        tools_open, tools_close = delims.available_tools
        call_open, call_close = delims.tool_call
        example = json.dumps({"name": "<tool name>", "arguments": {"<param>": "<value>"}})

        parts = []
        if self._system_prompt:
            parts.append(self._system_prompt)
        parts.append(
            "You can call the following tools:\n"
            f"{tools_open}\n{json.dumps(self.tool_definitions(), indent=2)}\n{tools_close}"
        )
        parts.append(
            "To call a tool, reply with one block per call:\n"
            f"{call_open}{example}{call_close}\n"
            f"When the task is complete, call `{FINISH_TOOL}` with your final answer. "
            f"Results named `{self._status_tool}` describe the current state of the "
            "environment; only the latest one is current."
        )
        return SystemSetup(prompt="\n\n".join(parts), status_call=self._status_tool)

    async def prompt(self, text: str) -> PromptResult:
        """Turn the external input into the first user turn, then judge each round."""
        if not self._started:
            self._started = True
            if not text.strip():
                return PromptResult.final(EMPTY_INPUT_ANSWER)
            return PromptResult.proceed(text)

        calls, self._round_calls = self._round_calls, 0
        if self._finish_answer is not None:
            answer, self._finish_answer = self._finish_answer, None
            return PromptResult.final(answer)
        if calls == 0 and text.strip():
            return PromptResult.final(text)
        return PromptResult.proceed("")

    async def call(self, name: str, arguments: str) -> ToolOutput:
        """Dispatch a tool call. Errors are reported as output text."""
        self._round_calls += 1
        try:
            args = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as e:
            return ToolOutput(output=f"Tool error: invalid arguments: {e}")
        if not isinstance(args, dict):
            return ToolOutput(output="Tool error: arguments must be a JSON object")

        handler = self._handlers.get(name)
        if not handler:
            return ToolOutput(output=f"Unknown tool: {name}")
        try:
            result = await handler(**args)
        except Exception as e:
            logger.exception("Tool dispatch error for %s", name)
            return ToolOutput(output=f"Tool error: {e}")

        return ToolOutput(output=_extract_text(result), status=result.get("status"))

    async def _finish(self, answer: str = "") -> dict[str, Any]:
        self._finish_answer = answer
        return {"content": [{"type": "text", "text": "Finished."}]}


def _extract_text(result: dict[str, Any]) -> str:
    """Join the text blocks of an MCP-format response."""
    return "\n".join(
        block.get("text", "")
        for block in result.get("content", [])
        if block.get("type") == "text"
    )
