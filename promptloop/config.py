"""Settings via pydantic-settings with PROMPTLOOP_ env prefix.

Three layers:
  Settings      -- process-wide runtime knobs (logging, retry, timeouts)
  AgentConfig   -- per-run JSON handed in by the caller alongside the input
  ToolingConfig -- the default tooling's keys in that same JSON

AgentConfig ignores unknown keys so tooling sections can share the same
JSON document.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from promptloop.api.models import ConfigError

DEFAULT_BUDGET = 20000  # characters of history kept between rounds
DEFAULT_STATUS_TOOL = "status"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PROMPTLOOP_", env_file=".env")

    log_level: str = "info"

    # Completion retry policy
    completion_max_attempts: int = Field(5, ge=1)
    retry_backoff_base: float = Field(1.0, ge=0.0)  # seconds
    retry_backoff_max: float = Field(30.0, ge=0.0)  # seconds

    # HTTP client
    api_timeout_connect: int = 10  # seconds
    api_timeout_read: int = 120  # seconds

    def backoff_delay(self, attempt: int) -> float:
        """Exponential delay before retry number `attempt` (1-based)."""
        return min(self.retry_backoff_base * 2 ** (attempt - 1), self.retry_backoff_max)


class DelimConfig(BaseModel):
    """Markup delimiters shared by the parser and the tooling preamble."""

    reasoning: tuple[str, str] | None = None
    available_tools: tuple[str, str]
    tool_call: tuple[str, str]

    @model_validator(mode="after")
    def _validate_pairs(self) -> "DelimConfig":
        for label, pair in (
            ("reasoning", self.reasoning),
            ("available_tools", self.available_tools),
            ("tool_call", self.tool_call),
        ):
            if pair is not None and not all(pair):
                raise ValueError(f"{label} delimiters must be non-empty strings")
        return self


class AgentConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    base_url: str
    api_key: str | None = None
    model: str
    temperature: float | None = None
    top_p: float | None = None
    delims: DelimConfig
    budget: int = Field(DEFAULT_BUDGET, ge=0)
    stream: bool = True


def load_config(text: str) -> AgentConfig:
    """Parse and validate the caller's JSON configuration.

    Raises ConfigError for malformed JSON or missing/invalid fields.
    """
    try:
        return AgentConfig.model_validate_json(text)
    except ValidationError as e:
        raise ConfigError(format_validation_error(e)) from e


def format_validation_error(error: ValidationError) -> str:
    """Flatten pydantic errors into "loc: msg; loc: msg"."""
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
        for err in error.errors()
    )


class ToolingConfig(BaseModel):
    """Keys of the run config read by the default tooling."""

    model_config = ConfigDict(extra="ignore")

    system_prompt: str = ""
    status_tool: str = Field(DEFAULT_STATUS_TOOL, min_length=1)
    workspace_dir: str | None = Field(None, min_length=1)


def load_tooling_config(text: str) -> ToolingConfig:
    """Validate the tooling keys of the run config. Raises ConfigError."""
    try:
        return ToolingConfig.model_validate_json(text)
    except ValidationError as e:
        raise ConfigError(format_validation_error(e)) from e
