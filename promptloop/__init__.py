"""promptloop -- decision loop and history manager for a tool-using LLM agent.

Public API:
    run             - Synchronous entry point: (input, config JSON) -> answer
    AgentRunner     - Async request/parse/dispatch/decide/compact loop
    compact         - Size-bounded history compaction
    ToolDispatcher  - Default tooling adapter
    Settings        - Runtime settings (PROMPTLOOP_ env prefix)
    AgentConfig     - Per-run JSON configuration
"""

from promptloop.api.compaction import compact
from promptloop.api.runner import AgentRunner
from promptloop.api.tools import ToolDispatcher
from promptloop.config import AgentConfig, Settings, load_config
from promptloop.main import run

__all__ = [
    "AgentConfig",
    "AgentRunner",
    "Settings",
    "ToolDispatcher",
    "compact",
    "load_config",
    "run",
]
