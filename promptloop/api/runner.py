"""Agent runner -- drives one model conversation to a final answer.

Each run:
  config check -> tooling init -> first user turn -> rounds until done

A round sends the whole conversation to the completion endpoint, cleans
the reply with the response parser, dispatches tool calls through the
tooling, asks the tooling whether the round produced a final answer and
finally compacts the history under the configured character budget.

There is no round ceiling; termination is decided by the tooling.
Failures are reported as the returned string, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from promptloop.api.client import CompletionClient
from promptloop.api.compaction import compact
from promptloop.api.models import (
    AssistantMessage,
    CompletionError,
    CompletionRequest,
    CompletionResponse,
    ConfigError,
    Delims,
    Message,
    ParsedResponse,
    StatusMessage,
    SystemMessage,
    ToolCall,
    ToolCallMessage,
    ToolDelims,
    UserMessage,
)
from promptloop.api.parser import parse
from promptloop.api.tools import ToolDispatcher, Tooling, ToolingFactory
from promptloop.config import Settings, load_config

logger = logging.getLogger(__name__)

FAILURE_PREFIX = "Failed"


class CompletionAdapter(Protocol):
    """Anything that can turn a CompletionRequest into a CompletionResponse."""

    async def receive(self, request: CompletionRequest) -> CompletionResponse: ...


Parser = Callable[[str, Delims | None], ParsedResponse]


class AgentRunner:
    """Runs the request/parse/dispatch/decide/compact loop.

    The completion adapter may be shared across runs; the tooling is built
    fresh from the config text for every run and dropped afterwards.
    """

    def __init__(
        self,
        settings: Settings,
        client: CompletionAdapter | None = None,
        tooling_factory: ToolingFactory = ToolDispatcher.from_config,
        parser: Parser = parse,
    ) -> None:
        self._settings = settings
        self._client = client
        self._tooling_factory = tooling_factory
        self._parser = parser

    async def run(self, user_input: str, config_text: str) -> str:
        """Execute a full run and return the final answer or a failure message."""
        try:
            config = load_config(config_text)
            tooling = self._tooling_factory(config_text)
            setup = await tooling.init(
                ToolDelims(
                    available_tools=config.delims.available_tools,
                    tool_call=config.delims.tool_call,
                )
            )
        except ConfigError as e:
            logger.error("Invalid configuration: %s", e)
            return f"{FAILURE_PREFIX}: invalid configuration: {e}"

        delims = Delims(tool_call=config.delims.tool_call, reasoning=config.delims.reasoning)

        first = await tooling.prompt(user_input)
        if first.done:
            logger.info("Tooling answered without a model round")
            return first.text

        request = CompletionRequest(
            base_url=config.base_url,
            model=config.model,
            messages=[SystemMessage(setup.prompt), UserMessage(first.text)],
            api_key=config.api_key,
            temperature=config.temperature,
            top_p=config.top_p,
            stream=config.stream,
        )

        if self._client is not None:
            return await self._loop(self._client, tooling, request, delims, setup.status_call, config.budget)
        async with CompletionClient(self._settings) as client:
            return await self._loop(client, tooling, request, delims, setup.status_call, config.budget)

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    async def _loop(
        self,
        client: CompletionAdapter,
        tooling: Tooling,
        request: CompletionRequest,
        delims: Delims,
        status_call: str,
        budget: int,
    ) -> str:
        """Run rounds until the tooling reports a final answer.

        The loop:
        1. Request a completion for the whole conversation (retried)
        2. Parse visible content; fall back to text-markup tool calls
        3. Append non-empty content as an assistant message
        4. Dispatch tool calls, appending call/result and status messages
        5. Ask the tooling for a verdict; append the next user turn if any
        6. Replace the conversation with its compacted copy
        """
        rounds = 0
        while True:
            rounds += 1
            logger.debug(
                "Round %d: %d messages in conversation", rounds, len(request.messages)
            )

            try:
                response = await self._receive(client, request)
            except CompletionError as e:
                logger.error("Giving up after round %d: %s", rounds, e)
                return f"{FAILURE_PREFIX}: {e}"

            parsed = self._parser(response.text, delims)
            tool_calls = response.tool_calls or parsed.tool_calls

            messages: list[Message] = list(request.messages)
            content = parsed.content.strip()
            if content:
                messages.append(AssistantMessage(content))

            for tool_call in tool_calls:
                messages.extend(await self._dispatch(tooling, tool_call, status_call))

            verdict = await tooling.prompt(content)
            if verdict.done:
                logger.info("Run finished after %d round(s)", rounds)
                return verdict.text
            if verdict.text:
                messages.append(UserMessage(verdict.text))

            request.messages = compact(messages, budget)

    async def _dispatch(
        self,
        tooling: Tooling,
        tool_call: ToolCall,
        status_call: str,
    ) -> list[Message]:
        """Run one tool call and return the messages that record it."""
        if tool_call.name == status_call:
            logger.warning("Ignoring call to reserved status tool '%s'", status_call)
            return []

        logger.info("Dispatching tool %s", tool_call.name)
        result = await tooling.call(tool_call.name, tool_call.arguments)
        recorded: list[Message] = [
            ToolCallMessage(name=tool_call.name, arguments=tool_call.arguments, result=result.output)
        ]
        if result.status is not None:
            recorded.append(StatusMessage(name=status_call, status=result.status))
        return recorded

    async def _receive(
        self,
        client: CompletionAdapter,
        request: CompletionRequest,
    ) -> CompletionResponse:
        """Send the identical request until it succeeds or attempts run out.

        Backoff doubles from retry_backoff_base up to retry_backoff_max.
        Raises CompletionError once completion_max_attempts is exhausted.
        """
        attempts = self._settings.completion_max_attempts
        last_error: CompletionError | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await client.receive(request)
            except CompletionError as e:
                last_error = e
                if attempt == attempts:
                    break
                delay = self._settings.backoff_delay(attempt)
                logger.warning(
                    "Completion attempt %d/%d failed, retrying in %.1fs: %s",
                    attempt,
                    attempts,
                    delay,
                    e,
                )
                await asyncio.sleep(delay)

        raise CompletionError(
            f"completion endpoint unavailable after {attempts} attempts: {last_error}"
        ) from last_error
