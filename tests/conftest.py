"""Shared fixtures: settings without backoff, run configs and scripted collaborators."""

import json

import pytest

from promptloop.api.models import (
    CompletionError,
    CompletionRequest,
    CompletionResponse,
    PromptResult,
    SystemSetup,
    ToolDelims,
    ToolOutput,
)
from promptloop.config import Settings


def make_config(**overrides) -> dict:
    """Build a valid run config dict; overrides replace top-level keys."""
    config = {
        "base_url": "http://llm.test/v1",
        "api_key": "test-key",
        "model": "test-model",
        "temperature": 0.2,
        "delims": {
            "reasoning": ["<think>", "</think>"],
            "available_tools": ["<tools>", "</tools>"],
            "tool_call": ["<tool_call>", "</tool_call>"],
        },
        "budget": 20000,
    }
    config.update(overrides)
    return config


class ScriptedClient:
    """Completion adapter replaying a list of responses or CompletionErrors.

    Records a snapshot of every request's messages so tests can inspect
    what each round actually sent.
    """

    def __init__(self, *script: CompletionResponse | CompletionError) -> None:
        self.script = list(script)
        self.requests: list[CompletionRequest] = []
        self.sent_messages: list[list] = []

    async def receive(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        self.sent_messages.append(list(request.messages))
        if not self.script:
            raise AssertionError("ScriptedClient ran out of responses")
        item = self.script.pop(0)
        if isinstance(item, CompletionError):
            raise item
        return item


class ScriptedTooling:
    """Tooling adapter with preset verdicts, recording every call."""

    def __init__(
        self,
        verdicts: list[PromptResult],
        outputs: dict[str, ToolOutput] | None = None,
        status_call: str = "status",
    ) -> None:
        self.verdicts = list(verdicts)
        self.outputs = outputs or {}
        self.status_call = status_call
        self.init_calls: list[ToolDelims] = []
        self.prompt_calls: list[str] = []
        self.tool_calls: list[tuple[str, str]] = []

    async def init(self, delims: ToolDelims) -> SystemSetup:
        self.init_calls.append(delims)
        return SystemSetup(prompt="SYSTEM", status_call=self.status_call)

    async def prompt(self, text: str) -> PromptResult:
        self.prompt_calls.append(text)
        return self.verdicts.pop(0)

    async def call(self, name: str, arguments: str) -> ToolOutput:
        self.tool_calls.append((name, arguments))
        return self.outputs.get(name, ToolOutput(output=f"{name} done"))


@pytest.fixture
def settings() -> Settings:
    """Settings with immediate retries and a small attempt limit."""
    return Settings(completion_max_attempts=3, retry_backoff_base=0.0, retry_backoff_max=0.0)


@pytest.fixture
def config_text() -> str:
    return json.dumps(make_config())
