"""Conversation compaction -- size-bounded history truncation.

Walks the history backwards under a character budget and keeps the most
recent suffix, then drops stale status snapshots so at most one (the
newest) survives. No LLM calls; pure and reentrant.

Guarantees:
  - element 0 (the preamble) is always kept and never counted
  - the most recent message always survives, even at budget 0
  - the budget is soft: the message that crosses it is still kept, so a
    tool call is never split from the status that follows it
  - relative order is never changed
"""

from __future__ import annotations

import logging

from promptloop.api.models import Message, StatusMessage

logger = logging.getLogger(__name__)


def compact(messages: list[Message], budget: int) -> list[Message]:
    """Return a new conversation bounded by `budget` characters of history."""
    if len(messages) <= 1:
        return list(messages)

    preamble, history = messages[0], messages[1:]

    # Newest-first suffix. The check runs against the total accumulated
    # *before* the current message, so the first one is always taken.
    kept: list[Message] = []
    accumulated = 0
    for msg in reversed(history):
        if accumulated > budget:
            break
        accumulated += msg.weight
        kept.append(msg)

    kept = _drop_stale_status(kept)
    kept.reverse()

    dropped = len(history) - len(kept)
    if dropped:
        logger.info(
            "Compacted conversation: %d messages -> %d (budget=%d, kept=%d chars)",
            len(messages),
            len(kept) + 1,
            budget,
            sum(m.weight for m in kept),
        )
    return [preamble, *kept]


def _drop_stale_status(newest_first: list[Message]) -> list[Message]:
    """Keep the newest StatusMessage and everything after it; filter older ones."""
    for pos, msg in enumerate(newest_first):
        if isinstance(msg, StatusMessage):
            older = [m for m in newest_first[pos + 1:] if not isinstance(m, StatusMessage)]
            return newest_first[: pos + 1] + older
    return newest_first
