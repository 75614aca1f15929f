"""promptloop entry point.

run() is the synchronous process boundary: one input string and one JSON
config string in, one answer string out. main() wraps it as a CLI:

    promptloop --config agent.json "Summarise notes.txt"
    echo "Summarise notes.txt" | promptloop --config agent.json
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from promptloop.api.runner import FAILURE_PREFIX, AgentRunner
from promptloop.config import Settings

logger = logging.getLogger(__name__)


def run(user_input: str, config_text: str, settings: Settings | None = None) -> str:
    """Run the agent loop to completion and return its answer."""
    runner = AgentRunner(settings or Settings())
    return asyncio.run(runner.run(user_input, config_text))


def main(argv: list[str] | None = None) -> int:
    """CLI entry point -- read config and input, print the answer."""
    parser = argparse.ArgumentParser(prog="promptloop", description=__doc__.splitlines()[0])
    parser.add_argument("--config", required=True, type=Path, help="Path to the JSON run config")
    parser.add_argument("input", nargs="?", help="Task input (read from stdin when omitted)")
    args = parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config_text = args.config.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Cannot read config %s: %s", args.config, e)
        return 2

    user_input = args.input if args.input is not None else sys.stdin.read()
    answer = run(user_input, config_text, settings)
    print(answer)
    return 1 if answer.startswith(f"{FAILURE_PREFIX}:") else 0


if __name__ == "__main__":
    sys.exit(main())
